# Overview: Stock ledger: stock-in, stock-out and adjustments over the per-product quantity projection.

# backend/pantrypal/services/inventory_service.py

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy import case, func, update

from ..errors import (
    InsufficientStockError,
    InvalidAdjustmentError,
    NegativeStockViolation,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import InventoryTransaction, Product, ProductStatus, TransactionType
from ..time_utils import utctoday
from ..validation import CENT, parse_int, parse_quantity, require_text
from .concurrency import begin_write_transaction, run_with_retry
from .tenant_service import TenantScope
"""
Stock Ledger Invariants (authoritative)

Model:
- Product.quantity_in_stock is the current-quantity projection.
- InventoryTransaction is the append-only log; every mutation of the
  projection writes exactly one row in the same DB transaction.
- quantity on a transaction is always positive; quantity_delta is the signed
  change that was applied.

Business invariants:
- quantity_in_stock >= 0 at all times, under any interleaving of callers.
- The only write to quantity_in_stock is _apply_stock_delta(): one UPDATE
  whose WHERE clause carries the non-negativity test, so the check and the
  write are a single atomic step in the database. The product row is also
  locked (FOR UPDATE / BEGIN IMMEDIATE) so concurrent writers serialize.
- Archived products are absent for every ledger operation.

Failure semantics:
- Projection update and log insert commit together or not at all.
- Lock timeouts / deadlocks are retried, then raised as TransientStorageError.
"""


STOCK_IN_REFERENCES = frozenset({"purchase", "adjustment", "return", "initial"})
STOCK_OUT_REFERENCES = frozenset({"sale", "damage", "adjustment", "expired"})


def _check_reference_type(reference_type: str, allowed: frozenset) -> str:
    if reference_type not in allowed:
        raise ValidationError(
            f"reference_type must be one of: {', '.join(sorted(allowed))}",
            details={"reference_type": reference_type},
        )
    return reference_type


def _get_active_product(scope: TenantScope, product_id, *, lock: bool = False) -> Product:
    product = scope.products.find_by_id(product_id, lock=lock)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found", details={"id": product_id})
    return product


def _apply_stock_delta(scope: TenantScope, product: Product, delta: int) -> bool:
    """
    Atomically apply delta to the product's quantity.

    Returns False, changing nothing, when the result would be negative.
    The product object is refreshed either way so callers can report the
    quantity the database actually holds.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product.id,
            Product.org_id == scope.org_id,
            Product.status == ProductStatus.ACTIVE,
            Product.quantity_in_stock + delta >= 0,
        )
        .values(
            quantity_in_stock=Product.quantity_in_stock + delta,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.refresh(product)
    return result.rowcount == 1


def _record_transaction(
    scope: TenantScope,
    *,
    product_id: int,
    transaction_type: TransactionType,
    quantity_delta: int,
    reference_type: str,
    reference_id=None,
    notes: str | None = None,
) -> InventoryTransaction:
    return scope.inventory_transactions.create(
        product_id=product_id,
        transaction_type=transaction_type,
        quantity=abs(quantity_delta),
        quantity_delta=quantity_delta,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        notes=notes,
    )


def _stock_in_inner(
    scope: TenantScope,
    product: Product,
    quantity: int,
    reference_type: str,
    reference_id=None,
    notes: str | None = None,
) -> InventoryTransaction:
    """Core stock-in without locking, retry or commit."""
    if not _apply_stock_delta(scope, product, quantity):
        # Only possible if the product was archived underneath us
        raise NotFoundError("Product not found", details={"id": product.id})
    return _record_transaction(
        scope,
        product_id=product.id,
        transaction_type=TransactionType.IN,
        quantity_delta=quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )


def _stock_out_inner(
    scope: TenantScope,
    product: Product,
    quantity: int,
    reference_type: str,
    reference_id=None,
    notes: str | None = None,
) -> InventoryTransaction:
    """Core stock-out without locking, retry or commit. Also used by bill finalization."""
    if not _apply_stock_delta(scope, product, -quantity):
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name!r}. "
            f"Available: {product.quantity_in_stock}, Requested: {quantity}",
            details={
                "product_id": product.id,
                "available": product.quantity_in_stock,
                "requested": quantity,
            },
        )
    return _record_transaction(
        scope,
        product_id=product.id,
        transaction_type=TransactionType.OUT,
        quantity_delta=-quantity,
        reference_type=reference_type,
        reference_id=reference_id,
        notes=notes,
    )


def stock_in(
    *,
    org_id: str,
    product_id: int,
    quantity: int,
    reference_type: str = "purchase",
    reference_id=None,
    notes: str | None = None,
) -> InventoryTransaction:
    """
    Increase stock and write an `in` transaction.

    Stock returns are booked here with reference_type="return"; they are
    independent of credit notes.
    """
    scope = TenantScope(org_id)
    product_id = parse_int(product_id, "product_id")
    quantity = parse_quantity(quantity)
    reference_type = _check_reference_type(reference_type, STOCK_IN_REFERENCES)

    def _op():
        begin_write_transaction()
        product = _get_active_product(scope, product_id, lock=True)
        tx = _stock_in_inner(scope, product, quantity, reference_type, reference_id, notes)
        db.session.commit()
        return tx

    return run_with_retry(_op)


def stock_out(
    *,
    org_id: str,
    product_id: int,
    quantity: int,
    reference_type: str = "sale",
    reference_id=None,
    notes: str | None = None,
) -> InventoryTransaction:
    """
    Decrease stock and write an `out` transaction.

    Raises InsufficientStockError, leaving stock untouched, if quantity
    exceeds what is on hand.
    """
    scope = TenantScope(org_id)
    product_id = parse_int(product_id, "product_id")
    quantity = parse_quantity(quantity)
    reference_type = _check_reference_type(reference_type, STOCK_OUT_REFERENCES)

    def _op():
        begin_write_transaction()
        product = _get_active_product(scope, product_id, lock=True)
        tx = _stock_out_inner(scope, product, quantity, reference_type, reference_id, notes)
        db.session.commit()
        return tx

    return run_with_retry(_op)


def adjust_stock(*, org_id: str, product_id: int, delta: int, reason: str) -> InventoryTransaction:
    """
    Apply a signed correction (shrinkage, recount, found stock).

    delta == 0 -> InvalidAdjustmentError.
    current + delta < 0 -> NegativeStockViolation, stock unchanged.
    """
    scope = TenantScope(org_id)
    product_id = parse_int(product_id, "product_id")
    delta = parse_int(delta, "delta")
    if delta == 0:
        raise InvalidAdjustmentError("Adjustment delta cannot be zero", details={"delta": 0})
    reason = require_text(reason, "reason", max_length=255)

    def _op():
        begin_write_transaction()
        product = _get_active_product(scope, product_id, lock=True)
        if not _apply_stock_delta(scope, product, delta):
            raise NegativeStockViolation(
                f"Adjustment would result in negative stock. "
                f"Current: {product.quantity_in_stock}, Delta: {delta}",
                details={
                    "product_id": product.id,
                    "current": product.quantity_in_stock,
                    "delta": delta,
                },
            )
        tx = _record_transaction(
            scope,
            product_id=product.id,
            transaction_type=TransactionType.ADJUSTMENT,
            quantity_delta=delta,
            reference_type="adjustment",
            notes=reason,
        )
        db.session.commit()
        return tx

    return run_with_retry(_op)


# =============================================================================
# Read-side queries (no invariant concerns)
# =============================================================================

def get_stock(*, org_id: str, product_id: int) -> int:
    scope = TenantScope(org_id)
    return _get_active_product(scope, product_id).quantity_in_stock


def is_low_stock(*, org_id: str, product_id: int) -> bool:
    scope = TenantScope(org_id)
    return _get_active_product(scope, product_id).is_low_stock


def find_low_stock(*, org_id: str) -> list[Product]:
    """Active products whose quantity is below their min_stock_level, emptiest first."""
    scope = TenantScope(org_id)
    return scope.products.find_all(
        Product.status == ProductStatus.ACTIVE,
        Product.quantity_in_stock < Product.min_stock_level,
        order_by=[Product.quantity_in_stock.asc(), Product.id.asc()],
    )


def find_near_expiry(*, org_id: str, days: int | None = None) -> list[Product]:
    """Active products expiring after today and within `days` days (inclusive)."""
    scope = TenantScope(org_id)
    if days is None:
        days = current_app.config.get("NEAR_EXPIRY_DEFAULT_DAYS", 7)
    days = parse_int(days, "days")
    if days < 0:
        raise ValidationError("days must be >= 0")

    today = utctoday()
    horizon = today + timedelta(days=days)
    return scope.products.find_all(
        Product.status == ProductStatus.ACTIVE,
        Product.expiry_date.isnot(None),
        Product.expiry_date > today,
        Product.expiry_date <= horizon,
        order_by=[Product.expiry_date.asc(), Product.id.asc()],
    )


def list_transactions(*, org_id: str, product_id: int, limit: int = 200) -> list[InventoryTransaction]:
    scope = TenantScope(org_id)
    # Archived products keep their history readable
    if scope.products.find_by_id(product_id) is None:
        raise NotFoundError("Product not found", details={"id": product_id})
    return scope.inventory_transactions.find_all(
        InventoryTransaction.product_id == product_id,
        order_by=[InventoryTransaction.created_at.desc(), InventoryTransaction.id.desc()],
        limit=limit,
    )


def get_movement_summary(
    *,
    org_id: str,
    product_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    """
    Totals of stock movement for one product. Window bounds are inclusive.

    adjustments is signed, so net_change == total_in - total_out + adjustments.
    """
    scope = TenantScope(org_id)
    if scope.products.find_by_id(product_id) is None:
        raise NotFoundError("Product not found", details={"id": product_id})

    q = db.session.query(
        func.coalesce(func.sum(case(
            (InventoryTransaction.transaction_type == TransactionType.IN, InventoryTransaction.quantity),
            else_=0,
        )), 0).label("total_in"),
        func.coalesce(func.sum(case(
            (InventoryTransaction.transaction_type == TransactionType.OUT, InventoryTransaction.quantity),
            else_=0,
        )), 0).label("total_out"),
        func.coalesce(func.sum(case(
            (InventoryTransaction.transaction_type == TransactionType.ADJUSTMENT, InventoryTransaction.quantity_delta),
            else_=0,
        )), 0).label("adjustments"),
    ).filter(
        InventoryTransaction.org_id == scope.org_id,
        InventoryTransaction.product_id == product_id,
    )
    if start is not None:
        q = q.filter(InventoryTransaction.created_at >= start)
    if end is not None:
        q = q.filter(InventoryTransaction.created_at <= end)

    row = q.one()
    total_in = int(row.total_in or 0)
    total_out = int(row.total_out or 0)
    adjustments = int(row.adjustments or 0)
    return {
        "product_id": product_id,
        "total_in": total_in,
        "total_out": total_out,
        "adjustments": adjustments,
        "net_change": total_in - total_out + adjustments,
    }


def get_inventory_stats(*, org_id: str) -> dict:
    scope = TenantScope(org_id)
    near_expiry_days = current_app.config.get("NEAR_EXPIRY_DEFAULT_DAYS", 7)
    today = utctoday()
    horizon = today + timedelta(days=near_expiry_days)

    products = scope.products.find_all(Product.status == ProductStatus.ACTIVE)

    total_value = sum(
        (Decimal(p.quantity_in_stock) * p.mrp for p in products),
        Decimal("0"),
    )
    return {
        "total_products": len(products),
        "low_stock_count": sum(1 for p in products if p.is_low_stock),
        "near_expiry_count": sum(
            1 for p in products
            if p.expiry_date is not None and today < p.expiry_date <= horizon
        ),
        "total_value": str(total_value.quantize(CENT)),
    }
