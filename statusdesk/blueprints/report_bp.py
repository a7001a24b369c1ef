"""
Reports blueprint — billing summaries and exports.

Endpoints:
    GET /api/v1/reports/summary?month&year&period          — per-developer summaries
    GET /api/v1/reports/export?month&year&period&format    — json | csv | xlsx (manager, finance)
"""

import logging

from flask import Blueprint, Response, g, jsonify, request, send_file

from statusdesk.core.scope import scope_for
from statusdesk.middleware.permission_required import require_auth, require_roles
from statusdesk.services.report_service import (
    HALF_FULL,
    ReportPeriod,
    ReportService,
    export_table_csv,
    export_table_xlsx,
)
from statusdesk.utils.errors import E, api_error
from statusdesk.utils.helpers import parse_int

logger = logging.getLogger(__name__)

report_bp = Blueprint("report", __name__, url_prefix="/api/v1/reports")

EXPORT_FORMATS = ("json", "csv", "xlsx")
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _period_args() -> tuple[int, int, str]:
    month = parse_int(request.args.get("month"), "month", minimum=1, maximum=12)
    year = parse_int(request.args.get("year"), "year", minimum=2000, maximum=2100)
    half = request.args.get("period") or HALF_FULL
    return year, month, half


@report_bp.route("/summary", methods=["GET"])
@require_auth
def summary():
    """Developers only see their own summary."""
    year, month, half = _period_args()
    summaries = ReportService().generate_summary(year, month, half, scope=scope_for(g.current_user))
    return jsonify({
        "period": ReportPeriod(year, month, half).to_dict(),
        "summaries": summaries,
    })


@report_bp.route("/export", methods=["GET"])
@require_roles("manager", "finance")
def export():
    fmt = (request.args.get("format") or "json").lower()
    if fmt not in EXPORT_FORMATS:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unsupported format: {fmt}",
            details={"format": f"must be one of {list(EXPORT_FORMATS)}"},
        )

    year, month, half = _period_args()
    table = ReportService().generate_export(year, month, half)
    filename = f"Timesheet_Report_{table.period.start.isoformat()}_to_{table.period.end.isoformat()}"

    if fmt == "csv":
        return Response(
            export_table_csv(table),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}.csv"},
        )
    if fmt == "xlsx":
        return send_file(
            export_table_xlsx(table),
            download_name=f"{filename}.xlsx",
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
        )
    return jsonify(table.to_dict())
