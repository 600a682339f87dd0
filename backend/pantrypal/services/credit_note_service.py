# Overview: Credit notes: append-only compensating entries against finalized bills.

"""
Credit Note Ledger

INVARIANTS:
- Only FINALIZED bills accept credit notes; drafts are corrected by removing items.
- Sum of credit notes for a bill <= bill.final_amount (boundary inclusive).
- Credit notes never touch stock. A physical return is a separate
  inventory_service.stock_in(reference_type="return").
- Rows are never updated or deleted.

The bill row is locked while the running total is read, so two concurrent
credit notes on the same bill cannot both pass the bound.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..errors import BillNotFinalizedError, CreditExceedsBillError
from ..extensions import db
from ..models import CreditNote
from ..validation import CENT, parse_money, require_text
from .concurrency import begin_write_transaction, run_with_retry
from .tenant_service import TenantScope


def _credit_total(scope: TenantScope, bill_id: int) -> Decimal:
    notes = scope.credit_notes.find_all(CreditNote.bill_id == bill_id)
    return sum((Decimal(n.amount) for n in notes), Decimal("0.00")).quantize(CENT)


def create_credit_note(*, org_id: str, bill_id: int, amount, reason: str) -> CreditNote:
    scope = TenantScope(org_id)
    amount = parse_money(amount, "amount", allow_zero=False)
    reason = require_text(reason, "reason", max_length=255)

    def _op():
        begin_write_transaction()
        bill = scope.bills.get(bill_id, lock=True)
        if not bill.is_finalized:
            raise BillNotFinalizedError(
                "Credit notes can only be issued against finalized bills",
                details={"bill_id": bill.id},
            )

        already_credited = _credit_total(scope, bill.id)
        final_amount = Decimal(bill.final_amount).quantize(CENT)
        if already_credited + amount > final_amount:
            raise CreditExceedsBillError(
                f"Credit amount {amount} exceeds remaining bill amount "
                f"{final_amount - already_credited}",
                details={
                    "bill_id": bill.id,
                    "final_amount": str(final_amount),
                    "already_credited": str(already_credited),
                    "requested": str(amount),
                },
            )

        note = scope.credit_notes.create(bill_id=bill.id, amount=amount, reason=reason)
        db.session.commit()

        current_app.logger.info(
            "Credit note %s issued against bill %s for %s", note.id, bill.bill_number, amount
        )
        return note

    return run_with_retry(_op)


def list_credit_notes(*, org_id: str, bill_id: int) -> list[CreditNote]:
    scope = TenantScope(org_id)
    scope.bills.get(bill_id)
    return scope.credit_notes.find_all(
        CreditNote.bill_id == bill_id,
        order_by=[CreditNote.created_at.asc(), CreditNote.id.asc()],
    )


def get_credit_note(*, org_id: str, credit_note_id: int) -> CreditNote:
    return TenantScope(org_id).credit_notes.get(credit_note_id)


def total_credit_for_bill(*, org_id: str, bill_id: int) -> Decimal:
    scope = TenantScope(org_id)
    scope.bills.get(bill_id)
    return _credit_total(scope, bill_id)
