# backend/storeflow/routes/settings.py
"""
Commission and tax settings.

Readable by any authenticated user; writes need manage_settings.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_action
from ..services import settings_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/commission")
@require_auth
def get_commission_route():
    return jsonify({"commission": settings_service.get_commission_setting().to_dict()})


@settings_bp.put("/commission")
@require_auth
@require_action("manage_settings")
def update_commission_route():
    data = request.get_json(silent=True) or {}
    setting = settings_service.update_commission_setting(data, updated_by_user_id=g.current_user.id)
    return jsonify({"commission": setting.to_dict()})


@settings_bp.get("/taxes")
@require_auth
def list_taxes_route():
    enabled_only = request.args.get("enabled", "false").lower() == "true"
    taxes = settings_service.list_tax_settings(enabled_only=enabled_only)
    return jsonify({"taxes": [t.to_dict() for t in taxes]})


@settings_bp.put("/taxes")
@require_auth
@require_action("manage_settings")
def upsert_tax_route():
    data = request.get_json(silent=True) or {}
    tax = settings_service.upsert_tax_setting(data)
    return jsonify({"tax": tax.to_dict()})


@settings_bp.delete("/taxes/<int:tax_id>")
@require_auth
@require_action("manage_settings")
def delete_tax_route(tax_id: int):
    settings_service.delete_tax_setting(tax_id)
    return jsonify({"message": "Tax setting deleted"})
