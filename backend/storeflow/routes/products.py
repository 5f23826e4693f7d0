# backend/storeflow/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Reads are open to every role (order entry, quotations, demand notices)
- Create/update require manage_products
- Stock receiving requires receive_stock (storekeeper) or manage_products
"""
from flask import Blueprint, request, jsonify, g

from ..services import catalog_service
from ..decorators import require_auth, require_action


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params:
    - q: str (optional) - case-insensitive match on name or SKU
    """
    products = catalog_service.list_products(search=request.args.get("q"))
    return jsonify({"products": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    return jsonify({"product": catalog_service.require_product(product_id).to_dict()})


@products_bp.get("/by-sku/<path:sku>")
@require_auth
def get_product_by_sku(sku: str):
    product = catalog_service.get_product_by_sku(sku)
    if not product:
        return jsonify({"error": f"Product with SKU '{sku}' not found"}), 404
    return jsonify({"product": product.to_dict()})


@products_bp.post("")
@require_auth
@require_action("manage_products")
def create_product():
    payload = request.get_json(silent=True)
    product = catalog_service.create_product(payload)
    return jsonify({"product": product.to_dict()}), 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_action("manage_products")
def update_product(product_id: int):
    payload = request.get_json(silent=True)
    product = catalog_service.update_product(product_id, payload)
    return jsonify({"product": product.to_dict()})


@products_bp.post("/<int:product_id>/receive-stock")
@require_auth
@require_action("receive_stock")
def receive_stock(product_id: int):
    data = request.get_json(silent=True) or {}
    product = catalog_service.receive_stock(product_id, data.get("quantity"), user_id=g.current_user.id)
    return jsonify({"product": product.to_dict()})
