# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/pantrypal/routes/products.py
"""
Product catalog routes.

MULTI-TENANT: All product operations are scoped to the caller's organization
(g.org_id, set by @require_tenant). Products of another tenant answer 404.
"""
from flask import Blueprint, request, jsonify, g

from ..services import product_service
from ..decorators import require_tenant


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_tenant
def list_products_route():
    """
    List active products.

    Query params:
    - category: str (optional)
    - brand: str (optional)
    """
    products = product_service.list_products(
        org_id=g.org_id,
        category=request.args.get("category"),
        brand=request.args.get("brand"),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.post("")
@require_tenant
def create_product_route():
    payload = request.get_json(silent=True) or {}
    product = product_service.create_product(org_id=g.org_id, payload=payload)
    return jsonify({"product": product.to_dict()}), 201


@products_bp.get("/<int:product_id>")
@require_tenant
def get_product_route(product_id: int):
    product = product_service.get_product(org_id=g.org_id, product_id=product_id)
    return jsonify({"product": product.to_dict()})


@products_bp.get("/lookup")
@require_tenant
def lookup_product_route():
    """
    Find a product by scanned code.

    Query params:
    - code: str (required)
    - kind: "barcode" | "qr" (optional; barcode is tried first)
    """
    code = (request.args.get("code") or "").strip()
    if not code:
        return jsonify({"error": "validation_error", "message": "code is required"}), 400
    product = product_service.find_by_code(org_id=g.org_id, code=code, kind=request.args.get("kind"))
    return jsonify({"product": product.to_dict()})


@products_bp.patch("/<int:product_id>")
@require_tenant
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    product = product_service.update_product(org_id=g.org_id, product_id=product_id, payload=payload)
    return jsonify({"product": product.to_dict()})


@products_bp.delete("/<int:product_id>")
@require_tenant
def archive_product_route(product_id: int):
    """Soft-delete: the product is archived, never removed."""
    product = product_service.archive_product(org_id=g.org_id, product_id=product_id)
    return jsonify({"product": product.to_dict()})


@products_bp.post("/<int:product_id>/restore")
@require_tenant
def restore_product_route(product_id: int):
    product = product_service.restore_product(org_id=g.org_id, product_id=product_id)
    return jsonify({"product": product.to_dict()})
