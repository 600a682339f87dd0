"""
Multi-Tenant Service: tenant resolution and the scoped data-access handle

Every request must be scoped to a tenant (organization), and cross-tenant
access must be indistinguishable from "not found".

SECURITY INVARIANTS:
1. The tenant id is resolved once, upstream, by the authentication layer and
   placed on flask.g.org_id. This module trusts it verbatim.
2. Services never build tenant-scoped queries by hand; they build a
   TenantScope once per call and read/write only through its repositories.
3. A missing tenant id is a wiring bug (MissingTenantContext) and is raised
   before any storage access.

USAGE:
    from pantrypal.services.tenant_service import TenantScope

    scope = TenantScope(org_id)
    product = scope.products.get(product_id)
    bills = scope.bills.find_all(order_by=Bill.created_at.desc())
"""

from __future__ import annotations

from flask import current_app, g, has_request_context, request

from ..errors import MissingTenantContext
from ..models import Bill, Customer, CreditNote, InventoryTransaction, Product
from .repository import BillItemRepository, ScopedRepository


def require_org_id(org_id) -> str:
    """
    Validate that a tenant id was supplied.

    Raises MissingTenantContext for None, non-strings and blank strings.
    """
    if not isinstance(org_id, str) or not org_id.strip():
        raise MissingTenantContext("Tenant context not established")
    return org_id


def get_current_org_id() -> str:
    """
    Get current tenant's org_id from Flask g context.

    Raises MissingTenantContext if org_id not set.
    """
    return require_org_id(g.get("org_id"))


def resolve_request_tenant() -> tuple[str | None, str | None]:
    """
    Resolve (org_id, user_id) for the current request.

    Prefers values the auth layer already put on flask.g. The tenant header
    is honored only when TRUST_TENANT_HEADER is enabled, i.e. when an
    authenticating proxy in front of this service owns that header.
    """
    org_id = g.get("org_id")
    user_id = g.get("user_id")

    if org_id is None and has_request_context() and current_app.config.get("TRUST_TENANT_HEADER"):
        org_id = request.headers.get(current_app.config["TENANT_HEADER"])
        user_id = user_id or request.headers.get(current_app.config["USER_HEADER"])

    return org_id, user_id


class TenantScope:
    """
    Tenant-bound handle constructed once per call.

    Repositories are built lazily and all share the org_id validated here.
    """

    def __init__(self, org_id: str):
        self.org_id = require_org_id(org_id)
        self._repos: dict = {}

    @classmethod
    def for_request(cls) -> "TenantScope":
        return cls(get_current_org_id())

    def _repo(self, key: str, factory):
        repo = self._repos.get(key)
        if repo is None:
            repo = factory()
            self._repos[key] = repo
        return repo

    @property
    def products(self) -> ScopedRepository:
        return self._repo("products", lambda: ScopedRepository(Product, self.org_id))

    @property
    def inventory_transactions(self) -> ScopedRepository:
        return self._repo(
            "inventory_transactions",
            lambda: ScopedRepository(InventoryTransaction, self.org_id, label="Inventory transaction"),
        )

    @property
    def bills(self) -> ScopedRepository:
        return self._repo("bills", lambda: ScopedRepository(Bill, self.org_id))

    @property
    def bill_items(self) -> BillItemRepository:
        return self._repo("bill_items", lambda: BillItemRepository(self.org_id))

    @property
    def credit_notes(self) -> ScopedRepository:
        return self._repo("credit_notes", lambda: ScopedRepository(CreditNote, self.org_id, label="Credit note"))

    @property
    def customers(self) -> ScopedRepository:
        return self._repo("customers", lambda: ScopedRepository(Customer, self.org_id))
