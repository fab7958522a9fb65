# Overview: Flask API routes for reports; sales summaries, client balances, daily dashboard and xlsx export.

from io import BytesIO

from flask import Blueprint, current_app, jsonify, request, send_file

from ..decorators import require_auth
from ..services import reporting_service
from ..services.query_service import parse_date_range
from ..validation import parse_optional_datetime
from backoffice.time_utils import utcnow
from .common import DOMAIN_ERRORS, error_response

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@reports_bp.get("/tickets")
@require_auth
def ticket_report_route():
    """?from=&to= limits the report to tickets created in the range."""
    try:
        date_from, date_to = parse_date_range(request.args)
        return jsonify(reporting_service.ticket_report(date_from=date_from, date_to=date_to)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@reports_bp.get("/invoices")
@require_auth
def invoice_report_route():
    try:
        date_from, date_to = parse_date_range(request.args)
        return jsonify(reporting_service.invoice_report(date_from=date_from, date_to=date_to)), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)


@reports_bp.get("/client-balances")
@require_auth
def client_balances_route():
    items = reporting_service.client_balances()
    return jsonify({"items": items, "count": len(items)}), 200


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    """?date=YYYY-MM-DD, today (UTC) by default."""
    try:
        raw = request.args.get("date")
        day = parse_optional_datetime(raw, "date") if raw else utcnow()
        return jsonify(reporting_service.daily_dashboard(day.date())), 200
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to build dashboard")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/export/<kind>.xlsx")
@require_auth
def export_route(kind: str):
    """Spreadsheet of tickets or invoices for the requested period."""
    try:
        date_from, date_to = parse_date_range(request.args)
        content = reporting_service.export_documents_xlsx(kind, date_from=date_from, date_to=date_to)
        return send_file(
            BytesIO(content),
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=f"{kind}-{utcnow().strftime('%Y%m%d')}.xlsx",
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Export failed")
        return jsonify({"error": "Internal server error"}), 500
