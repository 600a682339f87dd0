# Overview: Bill lifecycle: draft bills, line items, and the atomic finalize that commits stock.

"""
Billing Service - Draft -> Finalized bill lifecycle

LIFECYCLE:
- DRAFT: items can be added/removed, header fields edited, bill deleted.
- FINALIZED: terminal. Every mutation fails with BillFinalizedError;
  corrections go through credit_note_service.

FINALIZE (authoritative):
1. Open the write transaction and lock the bill row.
2. Lock every product on the bill, in product id order.
3. Re-validate stock for the summed quantity per product. The check made by
   add_item is advisory only; stock may have moved since.
4. One stock-out per item (reference "sale", reference id = bill id) and
   set finalized_at/finalized_by.
5. Commit once. Any failure rolls back steps 1-4 together, leaving the bill
   in DRAFT and every product untouched.

A replayed finalize on an already finalized bill fails with
BillFinalizedError and decrements nothing.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Iterable

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import (
    BillFinalizedError,
    ConflictError,
    EmptyBillError,
    InsufficientStockError,
    NotFoundError,
    StockValidationFailedError,
    ValidationError,
)
from ..extensions import db
from ..models import Bill, BillItem, BillSequence, Product
from ..time_utils import to_utc_z, utcnow
from ..validation import CENT, ModelValidationPolicy, parse_money, parse_quantity, require_text, validate_payload
from .concurrency import begin_write_transaction, run_with_retry
from .credit_note_service import _credit_total
from .inventory_service import _stock_out_inner
from .tenant_service import TenantScope


PAYMENT_METHODS = ("cash", "card", "check", "digital")

BILL_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"customer_id", "discount_amount", "tax_amount", "payment_method"},
)

ZERO = Decimal("0.00")


# =============================================================================
# Totals
# =============================================================================

def compute_totals(
    items: Iterable,
    *,
    discount: Decimal = ZERO,
    tax: Decimal = ZERO,
    credit: Decimal = ZERO,
) -> dict:
    """
    Pure totals arithmetic over objects with quantity and unit_price.

    final = max(0, subtotal - discount + tax - credit)
    """
    subtotal = sum(
        ((Decimal(item.unit_price) * item.quantity).quantize(CENT) for item in items),
        ZERO,
    )
    discount = Decimal(discount or 0).quantize(CENT)
    tax = Decimal(tax or 0).quantize(CENT)
    credit = Decimal(credit or 0).quantize(CENT)
    final = max(ZERO, subtotal - discount + tax - credit)
    return {
        "subtotal": subtotal,
        "discount": discount,
        "tax": tax,
        "total_credit": credit,
        "final": final,
    }


def _refresh_totals(scope: TenantScope, bill: Bill) -> None:
    items = scope.bill_items.for_bill(bill.id)
    totals = compute_totals(items, discount=bill.discount_amount, tax=bill.tax_amount)
    bill.total_amount = totals["subtotal"]
    bill.final_amount = totals["final"]


# =============================================================================
# Bill numbers
# =============================================================================

def _bump_sequence(org_id: str) -> int | None:
    """Advance the tenant's sequence row; None when the row does not exist yet."""
    stmt = (
        update(BillSequence)
        .where(BillSequence.org_id == org_id)
        .values(next_number=BillSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    if not db.session.execute(stmt).rowcount:
        return None
    current = (
        db.session.query(BillSequence.next_number)
        .filter(BillSequence.org_id == org_id)
        .scalar()
    )
    return current - 1


def next_bill_number(*, org_id: str) -> str:
    """
    Atomically allocate the next bill number for a tenant.

    Must run inside the caller's transaction; does not commit. Two first
    bills for a tenant may both try to create the sequence row; the loser's
    insert is rolled back to a savepoint and it takes the next number from
    the winner's row instead.
    """
    scope = TenantScope(org_id)
    prefix = current_app.config.get("BILL_NUMBER_PREFIX", "INV")

    next_num = _bump_sequence(scope.org_id)
    if next_num is None:
        try:
            with db.session.begin_nested():
                db.session.add(BillSequence(org_id=scope.org_id, next_number=2))
            next_num = 1
        except IntegrityError:
            next_num = _bump_sequence(scope.org_id)
            if next_num is None:
                raise

    return f"{prefix}-{next_num:06d}"


# =============================================================================
# Draft lifecycle
# =============================================================================

def _require_draft(bill: Bill, action: str) -> None:
    if bill.is_finalized:
        raise BillFinalizedError(
            f"Cannot {action}: bill {bill.bill_number} is finalized",
            details={"bill_id": bill.id, "finalized_at": to_utc_z(bill.finalized_at)},
        )


def _check_payment_method(value: str) -> str:
    if value not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
    return value


def create_bill(
    *,
    org_id: str,
    customer_id: int | None = None,
    bill_number: str | None = None,
    discount_amount="0",
    tax_amount="0",
    payment_method: str = "cash",
) -> Bill:
    """Create a DRAFT bill with no items."""
    scope = TenantScope(org_id)
    discount = parse_money(discount_amount, "discount_amount")
    tax = parse_money(tax_amount, "tax_amount")
    payment_method = _check_payment_method(payment_method)
    if bill_number is not None:
        bill_number = require_text(bill_number, "bill_number", max_length=64)

    def _op():
        begin_write_transaction()
        if customer_id is not None:
            scope.customers.get(customer_id)

        number = bill_number
        if number is None:
            number = next_bill_number(org_id=scope.org_id)
        elif scope.bills.find_one_by(bill_number=number) is not None:
            raise ConflictError("Bill number already exists", details={"bill_number": number})

        try:
            bill = scope.bills.create(
                bill_number=number,
                customer_id=customer_id,
                total_amount=ZERO,
                discount_amount=discount,
                tax_amount=tax,
                final_amount=max(ZERO, tax - discount),
                payment_method=payment_method,
            )
        except IntegrityError as exc:
            raise ConflictError("Bill number already exists", details={"bill_number": number}) from exc

        db.session.commit()
        return bill

    return run_with_retry(_op)


def add_item(*, org_id: str, bill_id: int, product_id: int, quantity: int) -> BillItem:
    """
    Add a line item to a DRAFT bill.

    The stock check here is optimistic: nothing is reserved or decremented.
    finalize_bill re-validates under lock.
    """
    scope = TenantScope(org_id)
    quantity = parse_quantity(quantity)

    def _op():
        begin_write_transaction()
        bill = scope.bills.get(bill_id, lock=True)
        _require_draft(bill, "add items")

        product = scope.products.find_by_id(product_id)
        if product is None or not product.is_active:
            raise NotFoundError("Product not found", details={"id": product_id})

        if quantity > product.quantity_in_stock:
            raise InsufficientStockError(
                f"Insufficient stock for product {product.name!r}. "
                f"Available: {product.quantity_in_stock}, Requested: {quantity}",
                details={
                    "product_id": product.id,
                    "available": product.quantity_in_stock,
                    "requested": quantity,
                },
            )

        unit_price = Decimal(product.mrp).quantize(CENT)
        item = scope.bill_items.create(
            bill_id=bill.id,
            product_id=product.id,
            quantity=quantity,
            unit_price=unit_price,
            total_price=(unit_price * quantity).quantize(CENT),
        )
        _refresh_totals(scope, bill)
        db.session.commit()
        return item

    return run_with_retry(_op)


def remove_item(*, org_id: str, bill_id: int, item_id: int) -> Bill:
    """Delete a line item from a DRAFT bill and return the updated bill."""
    scope = TenantScope(org_id)

    def _op():
        begin_write_transaction()
        bill = scope.bills.get(bill_id, lock=True)
        _require_draft(bill, "remove items")

        item = scope.bill_items.find_by_id(item_id, lock=True)
        if item is None or item.bill_id != bill.id:
            raise NotFoundError("Bill item not found", details={"id": item_id})

        scope.bill_items.delete(item)
        _refresh_totals(scope, bill)
        db.session.commit()
        return bill

    return run_with_retry(_op)


def update_bill(*, org_id: str, bill_id: int, payload: dict) -> Bill:
    """Edit header fields (customer, discount, tax, payment method) of a DRAFT bill."""
    scope = TenantScope(org_id)
    patch = validate_payload(model=Bill, payload=payload, policy=BILL_UPDATE_POLICY, partial=True)
    if "payment_method" in patch:
        _check_payment_method(patch["payment_method"])

    def _op():
        begin_write_transaction()
        bill = scope.bills.get(bill_id, lock=True)
        _require_draft(bill, "update")

        if patch.get("customer_id") is not None:
            scope.customers.get(patch["customer_id"])

        scope.bills.update(bill, **patch)
        _refresh_totals(scope, bill)
        db.session.commit()
        return bill

    return run_with_retry(_op)


def delete_bill(*, org_id: str, bill_id: int) -> None:
    """Delete a DRAFT bill together with its items."""
    scope = TenantScope(org_id)

    def _op():
        begin_write_transaction()
        bill = scope.bills.get(bill_id, lock=True)
        _require_draft(bill, "delete")
        scope.bills.delete(bill)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# Finalize
# =============================================================================

def _lock_and_validate_stock(scope: TenantScope, items: list[BillItem]) -> dict[int, Product]:
    required: dict[int, int] = {}
    for item in items:
        required[item.product_id] = required.get(item.product_id, 0) + item.quantity

    # Lock in a stable order so two finalizes sharing products cannot deadlock
    locked: dict[int, Product | None] = {}
    for product_id in sorted(required):
        locked[product_id] = scope.products.find_by_id(product_id, lock=True)

    # Report the first offender in item order
    for product_id, qty in required.items():
        product = locked[product_id]
        if product is None or not product.is_active:
            raise StockValidationFailedError(
                f"Product {product_id} is no longer available",
                details={"product_id": product_id, "reason": "product_unavailable", "requested": qty},
            )
        if product.quantity_in_stock < qty:
            raise StockValidationFailedError(
                f"Insufficient stock for product {product.name!r}. "
                f"Available: {product.quantity_in_stock}, Requested: {qty}",
                details={
                    "product_id": product_id,
                    "reason": "insufficient_stock",
                    "available": product.quantity_in_stock,
                    "requested": qty,
                },
            )
    return locked


def finalize_bill(*, org_id: str, bill_id: int, finalized_by) -> Bill:
    """
    Commit the bill: decrement stock for every item and lock the bill, all in one transaction.

    Raises:
        BillFinalizedError: already finalized (including replays)
        EmptyBillError: no items
        StockValidationFailedError: first product short of stock or archived
    """
    scope = TenantScope(org_id)
    if finalized_by is None:
        raise ValidationError("finalized_by is required")
    finalized_by = require_text(str(finalized_by), "finalized_by", max_length=64)

    def _op():
        begin_write_transaction()
        bill = scope.bills.get(bill_id, lock=True)
        _require_draft(bill, "finalize")

        items = scope.bill_items.for_bill(bill.id)
        if not items:
            raise EmptyBillError("Cannot finalize a bill with no items", details={"bill_id": bill.id})

        products = _lock_and_validate_stock(scope, items)

        for item in items:
            try:
                _stock_out_inner(
                    scope,
                    products[item.product_id],
                    item.quantity,
                    "sale",
                    reference_id=bill.id,
                    notes=f"Bill {bill.bill_number}",
                )
            except InsufficientStockError as exc:
                raise StockValidationFailedError(
                    exc.message, details={**exc.details, "reason": "insufficient_stock"}
                ) from exc

        bill.finalized_at = utcnow()
        bill.finalized_by = finalized_by
        db.session.commit()

        current_app.logger.info(
            "Finalized bill %s (org %s, %s items)", bill.bill_number, scope.org_id, len(items)
        )
        return bill

    return run_with_retry(_op)


# =============================================================================
# Reads
# =============================================================================

def get_bill(*, org_id: str, bill_id: int) -> Bill:
    return TenantScope(org_id).bills.get(bill_id)


def get_bill_details(*, org_id: str, bill_id: int) -> dict:
    scope = TenantScope(org_id)
    bill = scope.bills.get(bill_id)
    items = scope.bill_items.for_bill(bill.id)
    total_credit = _credit_total(scope, bill.id)
    return {
        "bill": bill,
        "items": items,
        "total_credit": total_credit,
        "net_amount": max(ZERO, Decimal(bill.final_amount) - total_credit),
    }


def calculate_bill_totals(*, org_id: str, bill_id: int) -> dict:
    scope = TenantScope(org_id)
    bill = scope.bills.get(bill_id)
    return compute_totals(
        scope.bill_items.for_bill(bill.id),
        discount=bill.discount_amount,
        tax=bill.tax_amount,
        credit=_credit_total(scope, bill.id),
    )


def find_by_bill_number(*, org_id: str, bill_number: str) -> Bill:
    bill = TenantScope(org_id).bills.find_one_by(bill_number=bill_number)
    if bill is None:
        raise NotFoundError("Bill not found", details={"bill_number": bill_number})
    return bill


def list_bills(
    *,
    org_id: str,
    finalized: bool | None = None,
    customer_id: int | None = None,
    limit: int | None = None,
) -> list[Bill]:
    scope = TenantScope(org_id)
    criteria = []
    if finalized is True:
        criteria.append(Bill.finalized_at.isnot(None))
    elif finalized is False:
        criteria.append(Bill.finalized_at.is_(None))
    if customer_id is not None:
        criteria.append(Bill.customer_id == customer_id)
    return scope.bills.find_all(*criteria, order_by=[Bill.created_at.desc(), Bill.id.desc()], limit=limit)


def get_bill_stats(*, org_id: str, start: datetime | None = None, end: datetime | None = None) -> dict:
    """Counts and sums over the tenant's bills, optionally limited to a created_at window (inclusive)."""
    scope = TenantScope(org_id)
    criteria = []
    if start is not None:
        criteria.append(Bill.created_at >= start)
    if end is not None:
        criteria.append(Bill.created_at <= end)
    bills = scope.bills.find_all(*criteria)

    total_amount = sum((Decimal(b.final_amount) for b in bills), ZERO)
    finalized_amount = sum((Decimal(b.final_amount) for b in bills if b.is_finalized), ZERO)
    average = (total_amount / len(bills)).quantize(CENT) if bills else ZERO
    return {
        "total_bills": len(bills),
        "finalized_bills": sum(1 for b in bills if b.is_finalized),
        "total_amount": str(total_amount.quantize(CENT)),
        "finalized_amount": str(finalized_amount.quantize(CENT)),
        "average_bill": str(average),
    }
