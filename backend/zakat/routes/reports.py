# Overview: Flask API routes for dashboard and laporan; read-only aggregates.

from flask import Blueprint

from ..decorators import require_auth
from ..responses import ok, server_error
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__)


@reports_bp.get("/dashboard")
@require_auth
def dashboard_route():
    try:
        return ok(reporting_service.dashboard_summary())
    except Exception:
        return server_error("load dashboard")


@reports_bp.get("/laporan")
@require_auth
def laporan_route():
    try:
        return ok(reporting_service.report_per_subdivision())
    except Exception:
        return server_error("load laporan")
