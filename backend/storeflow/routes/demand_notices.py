# backend/storeflow/routes/demand_notices.py
"""
Demand notice routes.

SECURITY:
- create: sales floor roles or manage_demand_notices
- payments: cashier, manage_orders or manage_demand_notices
- status: decided per notice and target (owner subset vs. managers)
- prepare-order: manage_demand_notices or manage_orders
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_action
from ..services import demand_notice_service
from ..services.authorization import StatusChange, require
from ..statuses import DemandNoticeStatus, display_label
from ..validation import ValidationError, to_int


demand_notices_bp = Blueprint("demand_notices", __name__, url_prefix="/api/demand-notices")


def _serialize(notice) -> dict:
    data = notice.to_dict()
    data["status_label"] = display_label(
        notice.status,
        quantity_fulfilled=notice.quantity_fulfilled,
        quantity_requested=notice.quantity_requested,
    )
    return data


@demand_notices_bp.get("")
@require_auth
def list_demand_notices_route():
    salesperson_id = request.args.get("salesperson_id", type=int)
    product_id = request.args.get("product_id", type=int)
    notices = demand_notice_service.list_demand_notices(
        status=request.args.get("status"),
        salesperson_id=salesperson_id,
        product_id=product_id,
    )
    return jsonify({"demand_notices": [_serialize(n) for n in notices], "count": len(notices)})


@demand_notices_bp.get("/<int:notice_id>")
@require_auth
def get_demand_notice_route(notice_id: int):
    return jsonify({"demand_notice": _serialize(demand_notice_service.get_demand_notice(notice_id))})


@demand_notices_bp.post("")
@require_auth
@require_action("create_demand_notice")
def create_demand_notice_route():
    data = request.get_json(silent=True) or {}
    notice = demand_notice_service.create_demand_notice(data, actor=g.current_user)
    return jsonify({"demand_notice": _serialize(notice)}), 201


@demand_notices_bp.post("/<int:notice_id>/payments")
@require_auth
@require_action("record_demand_notice_payment")
def record_payment_route(notice_id: int):
    data = request.get_json(silent=True) or {}
    notice = demand_notice_service.record_advance_payment(
        notice_id,
        method=data.get("method"),
        amount=data.get("amount"),
        cashier=g.current_user,
    )
    return jsonify({"demand_notice": _serialize(notice)}), 201


@demand_notices_bp.patch("/<int:notice_id>/status")
@require_auth
def update_status_route(notice_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    try:
        target = DemandNoticeStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid demand notice status: {status}")

    notice = demand_notice_service.get_demand_notice(notice_id)
    require(g.current_user, "update_demand_notice_status", StatusChange(notice, target.value))

    notice = demand_notice_service.update_status(notice_id, target, actor=g.current_user)
    return jsonify({"demand_notice": _serialize(notice)})


@demand_notices_bp.post("/<int:notice_id>/prepare-order")
@require_auth
@require_action("prepare_order_from_demand_notice")
def prepare_order_route(notice_id: int):
    order = demand_notice_service.prepare_order(notice_id, actor=g.current_user)
    notice = demand_notice_service.get_demand_notice(notice_id)
    return jsonify({"order": order.to_dict(), "demand_notice": _serialize(notice)}), 201


@demand_notices_bp.post("/sync-stock")
@require_auth
@require_action("sync_demand_notice_stock")
def sync_stock_route():
    data = request.get_json(silent=True) or {}
    product_id = to_int(data["product_id"], "product_id") if data.get("product_id") is not None else None
    changed = demand_notice_service.sync_stock_status(product_id)
    current_app.logger.info("Demand notice stock sync updated %d notices", len(changed))
    return jsonify({"updated": [_serialize(n) for n in changed], "count": len(changed)})
