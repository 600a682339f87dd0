# Overview: Tenant-scoped customer master data.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import begin_write_transaction, run_with_retry
from .tenant_service import TenantScope

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address"},
    required_on_create={"name"},
)

SEARCH_LIMIT = 50


def _check_contact_unique(scope: TenantScope, patch: dict, *, exclude_id: int | None = None) -> None:
    """Email and phone identify a customer within one tenant."""
    for field in ("email", "phone"):
        value = patch.get(field)
        if not value:
            continue
        existing = scope.customers.find_one_by(**{field: value})
        if existing is not None and existing.id != exclude_id:
            raise ConflictError(f"Customer with {field} {value} already exists", details={field: value})


def _contact_conflict(patch: dict) -> ConflictError:
    details = {k: patch[k] for k in ("email", "phone") if patch.get(k)}
    return ConflictError("Customer email or phone already exists in this organization", details=details)


def create_customer(*, org_id: str, payload: dict) -> Customer:
    scope = TenantScope(org_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()

    def _op():
        begin_write_transaction()
        _check_contact_unique(scope, patch)
        try:
            customer = scope.customers.create(**patch)
        except IntegrityError as exc:
            raise _contact_conflict(patch) from exc
        db.session.commit()
        return customer

    return run_with_retry(_op)


def get_customer(*, org_id: str, customer_id: int) -> Customer:
    return TenantScope(org_id).customers.get(customer_id)


def find_by_email(*, org_id: str, email: str) -> Customer:
    customer = TenantScope(org_id).customers.find_one_by(email=(email or "").strip().lower())
    if customer is None:
        raise NotFoundError("Customer not found", details={"email": email})
    return customer


def find_by_phone(*, org_id: str, phone: str) -> Customer:
    customer = TenantScope(org_id).customers.find_one_by(phone=(phone or "").strip())
    if customer is None:
        raise NotFoundError("Customer not found", details={"phone": phone})
    return customer


def list_customers(*, org_id: str) -> list[Customer]:
    return TenantScope(org_id).customers.find_all(order_by=[Customer.name.asc(), Customer.id.asc()])


def search_customers(*, org_id: str, query: str, limit: int = SEARCH_LIMIT) -> list[Customer]:
    """Case-insensitive substring match on name, email or phone."""
    scope = TenantScope(org_id)
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("query is required")

    term = query.strip().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{term}%"
    return scope.customers.find_all(
        or_(
            Customer.name.ilike(pattern, escape="\\"),
            Customer.email.ilike(pattern, escape="\\"),
            Customer.phone.ilike(pattern, escape="\\"),
        ),
        order_by=[Customer.name.asc(), Customer.id.asc()],
        limit=limit,
    )


def update_customer(*, org_id: str, customer_id: int, payload: dict) -> Customer:
    scope = TenantScope(org_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()

    def _op():
        begin_write_transaction()
        customer = scope.customers.get(customer_id, lock=True)
        _check_contact_unique(scope, patch, exclude_id=customer.id)
        try:
            scope.customers.update(customer, **patch)
        except IntegrityError as exc:
            raise _contact_conflict(patch) from exc
        db.session.commit()
        return customer

    return run_with_retry(_op)
