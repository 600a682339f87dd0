from __future__ import annotations

import uuid

from ..extensions import db
from pantrypal.time_utils import to_utc_z


def new_org_id() -> str:
    return str(uuid.uuid4())


class Organization(db.Model):
    """
    Multi-tenant root: Every tenant is an Organization.

    All products, bills, credit notes, customers and inventory transactions
    carry org_id. No data may cross organization boundaries.

    The id is an opaque string; the core receives it already resolved by the
    authentication layer and trusts it verbatim.
    """
    __tablename__ = "organizations"

    id = db.Column(db.String(36), primary_key=True, default=new_org_id)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
