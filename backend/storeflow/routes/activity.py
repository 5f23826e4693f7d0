# backend/storeflow/routes/activity.py
from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_action
from ..services import activity_service


activity_bp = Blueprint("activity", __name__, url_prefix="/api/activity")


@activity_bp.get("")
@require_auth
@require_action("view_activity_logs")
def list_activity_route():
    limit = min(request.args.get("limit", default=200, type=int) or 200, 1000)
    events = activity_service.list_activity_events(
        entity_type=request.args.get("entity_type"),
        entity_id=request.args.get("entity_id", type=int),
        limit=limit,
    )
    return jsonify({"events": [e.to_dict() for e in events], "count": len(events)})
