# backend/storeflow/routes/orders.py
"""
Order routes: creation, payments, status, delivery, transfer, delete and returns.

Taxes for new orders come from the enabled tax settings, loaded here and handed to
the service.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_action
from ..services import order_service, return_service, settings_service
from ..statuses import display_label
from storeflow.time_utils import parse_iso_datetime


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _serialize(order) -> dict:
    data = order.to_dict()
    data["status_label"] = display_label(order.status)
    return data


@orders_bp.get("")
@require_auth
def list_orders_route():
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return jsonify({"error": "start/end must be ISO-8601 datetimes"}), 400

    orders = order_service.list_orders(
        status=request.args.get("status"),
        salesperson_id=request.args.get("salesperson_id", type=int),
        start=start,
        end=end,
    )
    return jsonify({"orders": [_serialize(o) for o in orders], "count": len(orders)})


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    return jsonify({"order": _serialize(order_service.get_order(order_id))})


@orders_bp.post("")
@require_auth
@require_action("create_order")
def create_order_route():
    data = request.get_json(silent=True)
    taxes = settings_service.list_tax_settings(enabled_only=True)
    order = order_service.create_order(data, actor=g.current_user, tax_settings=taxes)
    return jsonify({"order": _serialize(order)}), 201


@orders_bp.post("/<int:order_id>/payments")
@require_auth
@require_action("record_order_payment")
def add_payment_route(order_id: int):
    data = request.get_json(silent=True) or {}
    order = order_service.add_payment(
        order_id,
        method=data.get("method"),
        amount=data.get("amount"),
        cashier=g.current_user,
    )
    return jsonify({"order": _serialize(order)}), 201


@orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_action("update_order_status")
def update_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    order = order_service.update_order_status(order_id, data.get("status"), actor=g.current_user)
    return jsonify({"order": _serialize(order)})


@orders_bp.patch("/<int:order_id>/delivery-status")
@require_auth
@require_action("update_delivery_status")
def update_delivery_status_route(order_id: int):
    data = request.get_json(silent=True) or {}
    order = order_service.update_delivery_status(order_id, data.get("delivery_status"), actor=g.current_user)
    return jsonify({"order": _serialize(order)})


@orders_bp.post("/<int:order_id>/transfer")
@require_auth
@require_action("transfer_order")
def transfer_order_route(order_id: int):
    data = request.get_json(silent=True) or {}
    order = order_service.transfer_order(
        order_id,
        primary_salesperson_id=data.get("primary_salesperson_id"),
        secondary_salesperson_id=data.get("secondary_salesperson_id"),
        primary_commission=data.get("primary_salesperson_commission"),
        secondary_commission=data.get("secondary_salesperson_commission"),
        actor=g.current_user,
    )
    return jsonify({"order": _serialize(order)})


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_action("delete_order")
def delete_order_route(order_id: int):
    order_service.delete_order(order_id, actor=g.current_user)
    return jsonify({"message": "Order deleted"})


@orders_bp.post("/<int:order_id>/returns")
@require_auth
@require_action("process_return")
def process_return_route(order_id: int):
    data = request.get_json(silent=True) or {}
    order = return_service.process_return(
        order_id,
        items=data.get("items") or [],
        refunds=data.get("refunds") or [],
        reason=data.get("reason"),
        processed_by=g.current_user,
    )
    current_app.logger.info("Return processed on order %s by %s", order.document_number, g.current_user.username)
    return jsonify({"order": _serialize(order)}), 201
