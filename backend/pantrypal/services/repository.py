# Overview: Tenant-bound data access primitives (find/create/update) used by every service.

"""
Scoped repositories.

A ScopedRepository is bound to one model and one org_id when it is built
(through TenantScope in tenant_service.py). Every query it issues starts
from _base_query(), which already carries the tenant predicate, so a caller
cannot forget it.

Rows that are missing and rows that belong to another tenant both come back
as None / NotFoundError with the same message.
"""

from __future__ import annotations

from typing import Any

from ..errors import NotFoundError
from ..extensions import db
from ..models import Bill, BillItem
from .concurrency import lock_for_update


class ScopedRepository:
    def __init__(self, model, org_id: str, label: str | None = None):
        self.model = model
        self.org_id = org_id
        self.label = label or model.__name__

    def _base_query(self):
        return db.session.query(self.model).filter(self.model.org_id == self.org_id)

    def query(self):
        return self._base_query()

    def find_by_id(self, id_: Any, *, lock: bool = False):
        if id_ is None:
            return None
        query = self._base_query().filter(self.model.id == id_)
        if lock:
            query = lock_for_update(query)
        return query.first()

    def get(self, id_: Any, *, lock: bool = False):
        obj = self.find_by_id(id_, lock=lock)
        if obj is None:
            raise NotFoundError(f"{self.label} not found", details={"id": id_})
        return obj

    def find_one_by(self, **filters):
        return self._base_query().filter_by(**filters).first()

    def find_all(self, *criteria, order_by=None, limit: int | None = None) -> list:
        query = self._base_query()
        if criteria:
            query = query.filter(*criteria)
        if order_by is not None:
            query = query.order_by(*order_by) if isinstance(order_by, (list, tuple)) else query.order_by(order_by)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def create(self, **fields):
        """Insert a row stamped with this repository's org_id (any org_id passed in is ignored)."""
        fields["org_id"] = self.org_id
        obj = self.model(**fields)
        db.session.add(obj)
        db.session.flush()
        return obj

    def update(self, obj, **fields):
        if obj.org_id != self.org_id:
            raise NotFoundError(f"{self.label} not found", details={"id": obj.id})
        fields.pop("org_id", None)
        for key, value in fields.items():
            setattr(obj, key, value)
        db.session.flush()
        return obj

    def delete(self, obj) -> None:
        if obj.org_id != self.org_id:
            raise NotFoundError(f"{self.label} not found", details={"id": obj.id})
        db.session.delete(obj)
        db.session.flush()


class BillItemRepository(ScopedRepository):
    """BillItem has no org_id of its own; scope comes from the owning Bill."""

    def __init__(self, org_id: str):
        super().__init__(BillItem, org_id, label="Bill item")

    def _base_query(self):
        return (
            db.session.query(BillItem)
            .join(Bill, Bill.id == BillItem.bill_id)
            .filter(Bill.org_id == self.org_id)
        )

    def find_by_id(self, id_: Any, *, lock: bool = False):
        if id_ is None:
            return None
        query = self._base_query().filter(BillItem.id == id_)
        if lock:
            query = query.with_for_update(of=BillItem)
        return query.first()

    def for_bill(self, bill_id: int) -> list[BillItem]:
        return (
            self._base_query()
            .filter(BillItem.bill_id == bill_id)
            .order_by(BillItem.id)
            .all()
        )

    def create(self, **fields):
        bill = (
            db.session.query(Bill)
            .filter(Bill.id == fields.get("bill_id"), Bill.org_id == self.org_id)
            .first()
        )
        if bill is None:
            raise NotFoundError("Bill not found", details={"id": fields.get("bill_id")})
        obj = BillItem(**fields)
        db.session.add(obj)
        db.session.flush()
        return obj

    def delete(self, obj) -> None:
        if obj.bill is None or obj.bill.org_id != self.org_id:
            raise NotFoundError(f"{self.label} not found", details={"id": obj.id})
        db.session.delete(obj)
        db.session.flush()
