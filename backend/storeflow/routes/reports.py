# backend/storeflow/routes/reports.py
from flask import Blueprint, Response, jsonify, request, g

from ..decorators import require_auth, require_action
from ..services import export_service, reporting_service, settings_service, shift_report_service
from ..services.authorization import require
from ..services.reporting_service import ReportError
from storeflow.time_utils import end_of_day, parse_iso_date, start_of_day


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ReportError(f"{name} must be YYYY-MM-DD")


@reports_bp.get("/shift-summary")
@require_auth
def shift_summary_report():
    cashier_id = request.args.get("cashier_id", type=int) or g.current_user.id
    require(g.current_user, "view_shift_summary", cashier_id)

    day = _date_arg("date")
    if day is None:
        return jsonify({"error": "date is required"}), 400

    report = shift_report_service.shift_summary(
        cashier_id,
        day,
        start_time=request.args.get("start_time"),
        end_time=request.args.get("end_time"),
    )
    return jsonify(report), 200


@reports_bp.get("/salesperson/<int:salesperson_id>")
@require_auth
def salesperson_report(salesperson_id: int):
    require(g.current_user, "view_salesperson_report", salesperson_id)

    start_date = _date_arg("start_date")
    end_date = _date_arg("end_date")
    report = reporting_service.salesperson_report(
        salesperson_id,
        start_of_day(start_date) if start_date else None,
        end_of_day(end_date) if end_date else None,
        settings_service.get_commission_policy(),
    )
    report["orders"] = [order.to_dict() for order in report["orders"]]
    return jsonify(report), 200


@reports_bp.get("/export")
@require_auth
@require_action("export_data")
def export_csv_report():
    """
    Comprehensive CSV export.

    Query params:
    - sections: comma separated (sales, attendance, breaks, performance, products, users)
    - start_date / end_date: YYYY-MM-DD, inclusive, both optional
    """
    sections = [s.strip() for s in (request.args.get("sections") or "").split(",") if s.strip()]
    start_date = _date_arg("start_date")
    end_date = _date_arg("end_date")

    body = export_service.export_csv(
        sections,
        start_date,
        end_date,
        settings_service.get_commission_policy(),
    )
    filename = export_service.export_filename(start_date, end_date)
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
