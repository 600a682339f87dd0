from __future__ import annotations

import enum

from ..extensions import db
from pantrypal.time_utils import to_utc_z


class BillStatus(str, enum.Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"


def _money(value):
    return str(value) if value is not None else None


class Bill(db.Model):
    """
    Sale bill with a two-state lifecycle: DRAFT -> FINALIZED (terminal).

    The state is derived from finalized_at so there is exactly one source of
    truth. Once finalized_at is set the bill row and its item set are
    immutable; corrections go through CreditNote.
    """
    __tablename__ = "bills"
    __table_args__ = (
        db.UniqueConstraint("org_id", "bill_number", name="uq_bills_org_bill_number"),
        db.Index("ix_bills_org_finalized", "org_id", "finalized_at"),
        db.Index("ix_bills_org_created", "org_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=False, index=True)

    # Human-readable number, unique within the tenant (e.g., "INV-000042")
    bill_number = db.Column(db.String(64), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Both null while draft
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)
    finalized_by = db.Column(db.String(64), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("bills", lazy=True))
    items = db.relationship(
        "BillItem", back_populates="bill", lazy=True, order_by="BillItem.id", cascade="all, delete-orphan"
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> BillStatus:
        return BillStatus.FINALIZED if self.finalized_at is not None else BillStatus.DRAFT

    @property
    def is_finalized(self) -> bool:
        return self.finalized_at is not None

    def __repr__(self) -> str:
        return f"<Bill id={self.id} number={self.bill_number!r} org_id={self.org_id} status={self.status.value}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "bill_number": self.bill_number,
            "customer_id": self.customer_id,
            "status": self.status.value,
            "total_amount": _money(self.total_amount),
            "discount_amount": _money(self.discount_amount),
            "tax_amount": _money(self.tax_amount),
            "final_amount": _money(self.final_amount),
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
            "finalized_at": to_utc_z(self.finalized_at) if self.finalized_at else None,
            "finalized_by": self.finalized_by,
            "version_id": self.version_id,
        }


class BillItem(db.Model):
    """
    Line item on a bill.

    Tenant scope is inherited through bill_id; every read goes through a join
    on Bill.org_id (see services/repository.py).
    unit_price is a snapshot of Product.mrp at the time the item was added.
    """
    __tablename__ = "bill_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_bill_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bill = db.relationship("Bill", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "bill_id": self.bill_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "total_price": _money(self.total_price),
            "created_at": to_utc_z(self.created_at),
        }


class CreditNote(db.Model):
    """
    Append-only compensating entry against a finalized bill.

    The cumulative amount of all credit notes for a bill never exceeds the
    bill's final_amount. A credit note is a financial correction only and
    never touches stock.
    """
    __tablename__ = "credit_notes"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_credit_notes_amount_positive"),
        db.Index("ix_credit_notes_org_bill_created", "org_id", "bill_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=False, index=True)
    bill_id = db.Column(db.Integer, db.ForeignKey("bills.id"), nullable=False, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    reason = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    bill = db.relationship("Bill", backref=db.backref("credit_notes", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "bill_id": self.bill_id,
            "amount": _money(self.amount),
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }


class BillSequence(db.Model):
    """
    Atomic per-tenant bill number sequence.

    WHY: Prevent race conditions when two cashiers open bills at once.
    """
    __tablename__ = "bill_sequences"
    __table_args__ = (
        db.UniqueConstraint("org_id", name="uq_bill_sequences_org"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.String(36), db.ForeignKey("organizations.id"), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
