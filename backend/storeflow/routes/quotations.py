# backend/storeflow/routes/quotations.py
"""
Quotation routes.

SECURITY: create is open to the sales floor; edit, status, conversion and delete
are checked against the loaded quotation (owning salesperson, admin, manager).
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_action
from ..services import quotation_service
from ..services.authorization import require
from ..statuses import display_label


quotations_bp = Blueprint("quotations", __name__, url_prefix="/api/quotations")


def _serialize(quotation) -> dict:
    data = quotation.to_dict()
    data["status_label"] = display_label(quotation.status)
    return data


@quotations_bp.get("")
@require_auth
def list_quotations_route():
    quotations = quotation_service.list_quotations(
        salesperson_id=request.args.get("salesperson_id", type=int),
        status=request.args.get("status"),
    )
    return jsonify({"quotations": [_serialize(q) for q in quotations], "count": len(quotations)})


@quotations_bp.get("/<int:quotation_id>")
@require_auth
def get_quotation_route(quotation_id: int):
    return jsonify({"quotation": _serialize(quotation_service.get_quotation(quotation_id))})


@quotations_bp.post("")
@require_auth
@require_action("create_quotation")
def create_quotation_route():
    data = request.get_json(silent=True)
    quotation = quotation_service.create_quotation(data, actor=g.current_user)
    return jsonify({"quotation": _serialize(quotation)}), 201


@quotations_bp.put("/<int:quotation_id>")
@require_auth
def update_quotation_route(quotation_id: int):
    require(g.current_user, "edit_quotation", quotation_service.get_quotation(quotation_id))
    data = request.get_json(silent=True)
    quotation = quotation_service.update_quotation(quotation_id, data, actor=g.current_user)
    return jsonify({"quotation": _serialize(quotation)})


@quotations_bp.patch("/<int:quotation_id>/status")
@require_auth
def change_status_route(quotation_id: int):
    require(g.current_user, "change_quotation_status", quotation_service.get_quotation(quotation_id))
    data = request.get_json(silent=True) or {}
    quotation = quotation_service.change_status(quotation_id, data.get("status"), actor=g.current_user)
    return jsonify({"quotation": _serialize(quotation)})


@quotations_bp.post("/<int:quotation_id>/convert-to-order")
@require_auth
def convert_to_order_route(quotation_id: int):
    require(g.current_user, "convert_quotation", quotation_service.get_quotation(quotation_id))
    order = quotation_service.convert_to_order(quotation_id, actor=g.current_user)
    quotation = quotation_service.get_quotation(quotation_id)
    return jsonify({"order": order.to_dict(), "quotation": _serialize(quotation)}), 201


@quotations_bp.post("/<int:quotation_id>/convert-to-demand-notices")
@require_auth
def convert_to_demand_notices_route(quotation_id: int):
    require(g.current_user, "convert_quotation", quotation_service.get_quotation(quotation_id))
    notices = quotation_service.convert_to_demand_notices(quotation_id, actor=g.current_user)
    quotation = quotation_service.get_quotation(quotation_id)
    return jsonify({
        "demand_notices": [n.to_dict() for n in notices],
        "count": len(notices),
        "quotation": _serialize(quotation),
    }), 201


@quotations_bp.delete("/<int:quotation_id>")
@require_auth
def delete_quotation_route(quotation_id: int):
    require(g.current_user, "delete_quotation", quotation_service.get_quotation(quotation_id))
    quotation_service.delete_quotation(quotation_id, actor=g.current_user)
    return jsonify({"message": "Quotation deleted"})
