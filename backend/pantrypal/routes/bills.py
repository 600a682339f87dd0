# Overview: Flask API routes for bills, bill items and credit notes; parses input and returns JSON responses.

# backend/pantrypal/routes/bills.py
"""Bill lifecycle and credit note API routes"""

from flask import Blueprint, request, jsonify, g

from ..errors import ValidationError
from ..services import billing_service, credit_note_service
from ..time_utils import parse_iso_datetime
from ..decorators import require_tenant


bills_bp = Blueprint("bills", __name__, url_prefix="/api/bills")


def _bill_payload(details: dict) -> dict:
    return {
        "bill": details["bill"].to_dict(),
        "items": [item.to_dict() for item in details["items"]],
        "total_credit": str(details["total_credit"]),
        "net_amount": str(details["net_amount"]),
    }


def _parse_bool_arg(name: str):
    raw = request.args.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in ("1", "true", "yes"):
        return True
    if value in ("0", "false", "no"):
        return False
    raise ValidationError(f"{name} must be true or false")


@bills_bp.post("")
@require_tenant
def create_bill_route():
    """Create a new draft bill."""
    data = request.get_json(silent=True) or {}
    bill = billing_service.create_bill(
        org_id=g.org_id,
        customer_id=data.get("customer_id"),
        bill_number=data.get("bill_number"),
        discount_amount=data.get("discount_amount", "0"),
        tax_amount=data.get("tax_amount", "0"),
        payment_method=data.get("payment_method", "cash"),
    )
    return jsonify({"bill": bill.to_dict()}), 201


@bills_bp.get("")
@require_tenant
def list_bills_route():
    """
    List bills, newest first.

    Query params:
    - finalized: true | false (optional)
    - customer_id: int (optional)
    - limit: int (optional)
    """
    bills = billing_service.list_bills(
        org_id=g.org_id,
        finalized=_parse_bool_arg("finalized"),
        customer_id=request.args.get("customer_id", type=int),
        limit=request.args.get("limit", type=int),
    )
    return jsonify({"items": [b.to_dict() for b in bills], "count": len(bills)})


@bills_bp.get("/stats")
@require_tenant
def bill_stats_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")
    return jsonify(billing_service.get_bill_stats(org_id=g.org_id, start=start, end=end))


@bills_bp.get("/by-number/<bill_number>")
@require_tenant
def get_bill_by_number_route(bill_number: str):
    bill = billing_service.find_by_bill_number(org_id=g.org_id, bill_number=bill_number)
    return jsonify(_bill_payload(billing_service.get_bill_details(org_id=g.org_id, bill_id=bill.id)))


@bills_bp.get("/<int:bill_id>")
@require_tenant
def get_bill_route(bill_id: int):
    return jsonify(_bill_payload(billing_service.get_bill_details(org_id=g.org_id, bill_id=bill_id)))


@bills_bp.patch("/<int:bill_id>")
@require_tenant
def update_bill_route(bill_id: int):
    """Edit a draft bill's customer, discount, tax or payment method."""
    payload = request.get_json(silent=True) or {}
    bill = billing_service.update_bill(org_id=g.org_id, bill_id=bill_id, payload=payload)
    return jsonify({"bill": bill.to_dict()})


@bills_bp.delete("/<int:bill_id>")
@require_tenant
def delete_bill_route(bill_id: int):
    billing_service.delete_bill(org_id=g.org_id, bill_id=bill_id)
    return jsonify({"ok": True})


@bills_bp.get("/<int:bill_id>/totals")
@require_tenant
def bill_totals_route(bill_id: int):
    totals = billing_service.calculate_bill_totals(org_id=g.org_id, bill_id=bill_id)
    return jsonify({key: str(value) for key, value in totals.items()})


@bills_bp.post("/<int:bill_id>/items")
@require_tenant
def add_item_route(bill_id: int):
    data = request.get_json(silent=True) or {}
    if data.get("product_id") is None or data.get("quantity") is None:
        return jsonify({"error": "validation_error", "message": "product_id and quantity required"}), 400

    item = billing_service.add_item(
        org_id=g.org_id,
        bill_id=bill_id,
        product_id=data["product_id"],
        quantity=data["quantity"],
    )
    return jsonify({"item": item.to_dict(), "bill": item.bill.to_dict()}), 201


@bills_bp.delete("/<int:bill_id>/items/<int:item_id>")
@require_tenant
def remove_item_route(bill_id: int, item_id: int):
    bill = billing_service.remove_item(org_id=g.org_id, bill_id=bill_id, item_id=item_id)
    return jsonify({"bill": bill.to_dict()})


@bills_bp.post("/<int:bill_id>/finalize")
@require_tenant
def finalize_bill_route(bill_id: int):
    """
    Finalize a draft bill: decrements stock for every item and locks the bill.

    A replayed request fails with bill_finalized and changes nothing.
    """
    data = request.get_json(silent=True) or {}
    finalized_by = g.get("user_id") or data.get("finalized_by")
    bill = billing_service.finalize_bill(org_id=g.org_id, bill_id=bill_id, finalized_by=finalized_by)
    return jsonify({"bill": bill.to_dict()})


@bills_bp.post("/<int:bill_id>/credit-notes")
@require_tenant
def create_credit_note_route(bill_id: int):
    data = request.get_json(silent=True) or {}
    note = credit_note_service.create_credit_note(
        org_id=g.org_id,
        bill_id=bill_id,
        amount=data.get("amount"),
        reason=data.get("reason"),
    )
    return jsonify({"credit_note": note.to_dict()}), 201


@bills_bp.get("/<int:bill_id>/credit-notes")
@require_tenant
def list_credit_notes_route(bill_id: int):
    notes = credit_note_service.list_credit_notes(org_id=g.org_id, bill_id=bill_id)
    total = credit_note_service.total_credit_for_bill(org_id=g.org_id, bill_id=bill_id)
    return jsonify({"items": [n.to_dict() for n in notes], "count": len(notes), "total_credit": str(total)})


@bills_bp.get("/credit-notes/<int:credit_note_id>")
@require_tenant
def get_credit_note_route(credit_note_id: int):
    note = credit_note_service.get_credit_note(org_id=g.org_id, credit_note_id=credit_note_id)
    return jsonify({"credit_note": note.to_dict()})
