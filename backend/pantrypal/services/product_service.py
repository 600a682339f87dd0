# backend/pantrypal/services/product_service.py
"""
Product Catalog Service

MULTI-TENANT: every product operation goes through TenantScope(org_id).products.

STOCK: quantity_in_stock is not a catalog field. Opening stock is booked as a
stock-in (reference "initial") so the transaction log and the projection
agree from the first row; later changes go through inventory_service only.

SOFT DELETE: archive_product flips status to ARCHIVED. Archived products
disappear from lookups, listings and every stock/bill operation, while
historic bill items and transactions keep resolving.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product, ProductStatus
from ..validation import ModelValidationPolicy, parse_int, validate_payload
from .concurrency import begin_write_transaction, run_with_retry
from .inventory_service import _stock_in_inner
from .tenant_service import TenantScope

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "brand", "barcode", "qr_code", "unit", "description",
        "mrp", "cost", "min_stock_level", "manufacturing_date", "expiry_date",
    },
    required_on_create={"name", "category", "mrp", "cost"},
)

CODE_COLUMNS = {"barcode": Product.barcode, "qr": Product.qr_code}


def _check_codes_unique(scope: TenantScope, patch: dict, *, exclude_id: int | None = None) -> None:
    for field, label in (("barcode", "barcode"), ("qr_code", "QR code")):
        code = patch.get(field)
        if not code:
            continue
        existing = scope.products.find_one_by(**{field: code})
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(
                f"Product with {label} {code} already exists in this organization",
                details={field: code},
            )


def _check_dates(product: Product) -> None:
    if product.manufacturing_date and product.expiry_date and product.expiry_date < product.manufacturing_date:
        raise ValidationError("expiry_date cannot be before manufacturing_date")
    if product.min_stock_level is not None and product.min_stock_level < 0:
        raise ValidationError("min_stock_level must be >= 0")


def create_product(*, org_id: str, payload: dict) -> Product:
    """
    Create a product from a client payload.

    An optional quantity_in_stock in the payload is the opening stock.
    """
    scope = TenantScope(org_id)
    payload = dict(payload or {})
    opening_stock = parse_int(payload.pop("quantity_in_stock", 0), "quantity_in_stock")
    if opening_stock < 0:
        raise ValidationError("quantity_in_stock must be >= 0")
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    patch.setdefault("min_stock_level", current_app.config.get("DEFAULT_MIN_STOCK_LEVEL", 5))

    def _op():
        begin_write_transaction()
        _check_codes_unique(scope, patch)
        try:
            product = scope.products.create(status=ProductStatus.ACTIVE, quantity_in_stock=0, **patch)
        except IntegrityError as exc:
            raise ConflictError("Product barcode or QR code already exists in this organization") from exc
        _check_dates(product)

        if opening_stock:
            _stock_in_inner(scope, product, opening_stock, "initial", notes="Opening stock")

        db.session.commit()
        return product

    return run_with_retry(_op)


def get_product(*, org_id: str, product_id: int) -> Product:
    product = TenantScope(org_id).products.find_by_id(product_id)
    if product is None or not product.is_active:
        raise NotFoundError("Product not found", details={"id": product_id})
    return product


def find_by_code(*, org_id: str, code: str, kind: str | None = None) -> Product:
    """
    Look up an active product by barcode or QR code.

    kind=None tries barcode first, then QR code.
    """
    scope = TenantScope(org_id)
    if kind is not None and kind not in CODE_COLUMNS:
        raise ValidationError("kind must be 'barcode' or 'qr'")
    kinds = [kind] if kind else ["barcode", "qr"]

    for k in kinds:
        matches = scope.products.find_all(
            CODE_COLUMNS[k] == code,
            Product.status == ProductStatus.ACTIVE,
            limit=1,
        )
        if matches:
            return matches[0]
    raise NotFoundError("Product not found", details={"code": code})


def list_products(*, org_id: str, category: str | None = None, brand: str | None = None) -> list[Product]:
    scope = TenantScope(org_id)
    criteria = [Product.status == ProductStatus.ACTIVE]
    if category is not None:
        criteria.append(Product.category == category)
    if brand is not None:
        criteria.append(Product.brand == brand)
    return scope.products.find_all(*criteria, order_by=[Product.name.asc(), Product.id.asc()])


def update_product(*, org_id: str, product_id: int, payload: dict) -> Product:
    """Patch catalog fields. Stock is never editable here."""
    scope = TenantScope(org_id)
    payload = dict(payload or {})
    if "quantity_in_stock" in payload:
        raise ValidationError(
            "quantity_in_stock cannot be edited directly; use stock-in, stock-out or an adjustment"
        )
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)

    def _op():
        begin_write_transaction()
        product = scope.products.find_by_id(product_id, lock=True)
        if product is None or not product.is_active:
            raise NotFoundError("Product not found", details={"id": product_id})
        _check_codes_unique(scope, patch, exclude_id=product.id)
        scope.products.update(product, **patch)
        _check_dates(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def _set_status(scope: TenantScope, product_id: int, status: ProductStatus) -> Product:
    def _op():
        begin_write_transaction()
        product = scope.products.get(product_id, lock=True)
        scope.products.update(product, status=status)
        db.session.commit()
        return product

    return run_with_retry(_op)


def archive_product(*, org_id: str, product_id: int) -> Product:
    """Soft-delete. Idempotent."""
    return _set_status(TenantScope(org_id), product_id, ProductStatus.ARCHIVED)


def restore_product(*, org_id: str, product_id: int) -> Product:
    return _set_status(TenantScope(org_id), product_id, ProductStatus.ACTIVE)
