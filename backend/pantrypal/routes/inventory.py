# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

# backend/pantrypal/routes/inventory.py
"""
Stock ledger routes.

Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- start/end filtering is inclusive.
"""
from flask import Blueprint, request, jsonify, g

from ..errors import ValidationError
from ..services import inventory_service
from ..time_utils import parse_iso_datetime
from ..decorators import require_tenant


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _parse_window():
    try:
        return parse_iso_datetime(request.args.get("start")), parse_iso_datetime(request.args.get("end"))
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")


@inventory_bp.post("/stock-in")
@require_tenant
def stock_in_route():
    """
    Book stock into a product.

    Body: product_id, quantity, reference_type (default "purchase"),
    reference_id, notes.
    """
    data = request.get_json(silent=True) or {}
    tx = inventory_service.stock_in(
        org_id=g.org_id,
        product_id=data.get("product_id"),
        quantity=data.get("quantity"),
        reference_type=data.get("reference_type", "purchase"),
        reference_id=data.get("reference_id"),
        notes=data.get("notes"),
    )
    return jsonify({"transaction": tx.to_dict(), "product": tx.product.to_dict()}), 201


@inventory_bp.post("/stock-out")
@require_tenant
def stock_out_route():
    data = request.get_json(silent=True) or {}
    tx = inventory_service.stock_out(
        org_id=g.org_id,
        product_id=data.get("product_id"),
        quantity=data.get("quantity"),
        reference_type=data.get("reference_type", "sale"),
        reference_id=data.get("reference_id"),
        notes=data.get("notes"),
    )
    return jsonify({"transaction": tx.to_dict(), "product": tx.product.to_dict()}), 201


@inventory_bp.post("/adjust")
@require_tenant
def adjust_route():
    """Body: product_id, delta (signed, non-zero), reason."""
    data = request.get_json(silent=True) or {}
    tx = inventory_service.adjust_stock(
        org_id=g.org_id,
        product_id=data.get("product_id"),
        delta=data.get("delta"),
        reason=data.get("reason"),
    )
    return jsonify({"transaction": tx.to_dict(), "product": tx.product.to_dict()}), 201


@inventory_bp.get("/low-stock")
@require_tenant
def low_stock_route():
    products = inventory_service.find_low_stock(org_id=g.org_id)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@inventory_bp.get("/near-expiry")
@require_tenant
def near_expiry_route():
    products = inventory_service.find_near_expiry(org_id=g.org_id, days=request.args.get("days"))
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@inventory_bp.get("/stats")
@require_tenant
def stats_route():
    return jsonify(inventory_service.get_inventory_stats(org_id=g.org_id))


@inventory_bp.get("/<int:product_id>/transactions")
@require_tenant
def transactions_route(product_id: int):
    limit = request.args.get("limit", default=200, type=int)
    txs = inventory_service.list_transactions(org_id=g.org_id, product_id=product_id, limit=min(limit, 1000))
    return jsonify({"items": [t.to_dict() for t in txs], "count": len(txs)})


@inventory_bp.get("/<int:product_id>/summary")
@require_tenant
def movement_summary_route(product_id: int):
    start, end = _parse_window()
    summary = inventory_service.get_movement_summary(
        org_id=g.org_id, product_id=product_id, start=start, end=end
    )
    return jsonify(summary)
