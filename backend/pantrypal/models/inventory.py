from __future__ import annotations

import enum

from ..extensions import db
from pantrypal.time_utils import to_utc_z


class ProductStatus(str, enum.Enum):
    """
    Catalog lifecycle of a product.

    ARCHIVED is the soft-delete state: the row stays so historic bill items
    and inventory transactions keep resolving, but lookups, new bill items
    and stock mutations treat it as absent.
    """
    ACTIVE = "active"
    ARCHIVED = "archived"


class TransactionType(str, enum.Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"


def _money(value):
    return str(value) if value is not None else None


class Product(db.Model):
    """
    Product master data with the current-quantity projection of the stock ledger.

    MULTI-TENANT: Products are scoped directly by org_id.

    STOCK INVARIANT:
    quantity_in_stock >= 0 at all times. It is only changed by the stock
    ledger (services/inventory_service.py) through a single conditional
    UPDATE, never by assigning the attribute on a loaded object. The CHECK
    constraint is a second line of defence at the storage level.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("org_id", "barcode", name="uq_products_org_barcode"),
        db.UniqueConstraint("org_id", "qr_code", name="uq_products_org_qr_code"),
        db.CheckConstraint("quantity_in_stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_org_name", "org_id", "name"),
        db.Index("ix_products_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    barcode = db.Column(db.String(64), nullable=True)
    qr_code = db.Column(db.String(255), nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="piece")
    description = db.Column(db.Text, nullable=True)

    # Selling price (maximum retail price) and buying cost
    mrp = db.Column(db.Numeric(10, 2), nullable=False)
    cost = db.Column(db.Numeric(10, 2), nullable=False)

    quantity_in_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=5)

    manufacturing_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True, index=True)

    status = db.Column(
        db.Enum(ProductStatus, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=ProductStatus.ACTIVE,
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_active(self) -> bool:
        return self.status == ProductStatus.ACTIVE

    @property
    def is_low_stock(self) -> bool:
        return self.quantity_in_stock < self.min_stock_level

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} org_id={self.org_id} qty={self.quantity_in_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "category": self.category,
            "brand": self.brand,
            "barcode": self.barcode,
            "qr_code": self.qr_code,
            "unit": self.unit,
            "description": self.description,
            "mrp": _money(self.mrp),
            "cost": _money(self.cost),
            "quantity_in_stock": self.quantity_in_stock,
            "min_stock_level": self.min_stock_level,
            "is_low_stock": self.is_low_stock,
            "manufacturing_date": self.manufacturing_date.isoformat() if self.manufacturing_date else None,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "status": self.status.value,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only audit record of one stock mutation.

    quantity is always positive; the direction comes from transaction_type.
    quantity_delta repeats it signed so adjustments stay reconstructible.
    Rows are never updated or deleted.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invtx_quantity_positive"),
        db.Index("ix_invtx_org_product_created", "org_id", "product_id", "created_at"),
        db.Index("ix_invtx_org_reference", "org_id", "reference_type", "reference_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    transaction_type = db.Column(
        db.Enum(TransactionType, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    quantity = db.Column(db.Integer, nullable=False)
    quantity_delta = db.Column(db.Integer, nullable=False)

    # purchase, sale, return, adjustment, damage, expired, initial
    reference_type = db.Column(db.String(32), nullable=False)
    reference_id = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type.value,
            "quantity": self.quantity,
            "quantity_delta": self.quantity_delta,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
