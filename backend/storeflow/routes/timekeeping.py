# backend/storeflow/routes/timekeeping.py
"""
Attendance and break routes.

SECURITY:
- every authenticated user records their own attendance and breaks
- listing other users' logs requires view_activity_logs
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..services import timekeeping_service
from ..services.authorization import can
from storeflow.time_utils import parse_iso_date


timekeeping_bp = Blueprint("timekeeping", __name__, url_prefix="/api/timekeeping")


def _listing_filters():
    user_id = request.args.get("user_id", type=int)
    if not can(g.current_user, "view_activity_logs"):
        user_id = g.current_user.id
    try:
        start_date = parse_iso_date(request.args.get("start_date"))
        end_date = parse_iso_date(request.args.get("end_date"))
    except ValueError:
        return None
    return {"user_id": user_id, "start_date": start_date, "end_date": end_date}


@timekeeping_bp.post("/attendance")
@require_auth
def record_attendance_route():
    data = request.get_json(silent=True) or {}
    log = timekeeping_service.record_attendance(
        g.current_user,
        method=data.get("method", "button"),
        selfie_image_path=data.get("selfie_image_path"),
    )
    return jsonify({"attendance": log.to_dict()}), 201


@timekeeping_bp.post("/break/start")
@require_auth
def start_break_route():
    brk = timekeeping_service.start_break(g.current_user)
    return jsonify({"break": brk.to_dict()}), 201


@timekeeping_bp.post("/break/end")
@require_auth
def end_break_route():
    brk = timekeeping_service.end_break(g.current_user)
    return jsonify({"break": brk.to_dict()})


@timekeeping_bp.get("/status")
@require_auth
def get_status_route():
    return jsonify(timekeeping_service.get_current_status(g.current_user.id))


@timekeeping_bp.get("/attendance")
@require_auth
def list_attendance_route():
    filters = _listing_filters()
    if filters is None:
        return jsonify({"error": "start_date/end_date must be YYYY-MM-DD"}), 400
    logs = timekeeping_service.list_attendance(**filters)
    return jsonify({"attendance": [log.to_dict() for log in logs], "count": len(logs)})


@timekeeping_bp.get("/breaks")
@require_auth
def list_breaks_route():
    filters = _listing_filters()
    if filters is None:
        return jsonify({"error": "start_date/end_date must be YYYY-MM-DD"}), 400
    breaks = timekeeping_service.list_breaks(**filters)
    return jsonify({"breaks": [b.to_dict() for b in breaks], "count": len(breaks)})
