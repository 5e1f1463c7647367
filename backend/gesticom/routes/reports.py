# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_permission
from ..errors import GestiComError
from ..services import reporting_service
from ..time_utils import parse_iso_date
from .labels import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reportes")


@reports_bp.get("/dashboard")
@require_auth
@require_permission("VIEW_DASHBOARD")
def dashboard_route():
    return jsonify(reporting_service.dashboard_metrics()), 200


@reports_bp.get("/ventas")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def sales_report_route():
    """Query params: inicio, fin (YYYY-MM-DD, inclusive)."""
    try:
        start = parse_iso_date(request.args.get("inicio"))
        end = parse_iso_date(request.args.get("fin"))
    except ValueError:
        return jsonify({"error": "Dates must be YYYY-MM-DD"}), 400

    try:
        report = reporting_service.sales_report(start=start, end=end)
    except GestiComError as e:
        return error_response(e)
    return jsonify(report), 200
