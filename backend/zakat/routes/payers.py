# Overview: Flask API routes for muzakki (payers) and master zakat rates; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request, send_file

from ..decorators import require_admin, require_auth
from ..numbers import as_number
from ..responses import error_response, fail, ok, request_data, server_error
from ..services import export_service, ledger_service, rate_service
from ..time_utils import utcnow
from ..validation import ZakatError, parse_optional_id


payers_bp = Blueprint("muzakki", __name__, url_prefix="/muzakki")


def _payer_data() -> dict:
    """JSON body, or form fields with parallel full_name/patronymic/parent_name lists."""
    data = request_data()
    if not request.form:
        return data

    full_names = request.form.getlist("full_name")
    patronymics = request.form.getlist("patronymic")
    parent_names = request.form.getlist("parent_name")
    data["names"] = [
        {
            "full_name": full_name,
            "patronymic": patronymics[i] if i < len(patronymics) else None,
            "parent_name": parent_names[i] if i < len(parent_names) else None,
        }
        for i, full_name in enumerate(full_names)
    ]
    return data


# =============================================================================
# PAYERS
# =============================================================================

@payers_bp.get("")
@require_auth
def list_payers_route():
    try:
        payers = ledger_service.list_payers(
            subdivision_id=parse_optional_id(request.args.get("rt_id"), "rt_id"),
            zakat_kind=request.args.get("zakat_kind"),
            search=request.args.get("q"),
        )
        return ok([p.to_dict() for p in payers])
    except ZakatError as exc:
        return error_response(exc)


@payers_bp.get("/<int:payer_id>")
@require_auth
def get_payer_route(payer_id: int):
    try:
        payer = ledger_service.get_payer(payer_id)
        data = payer.to_dict()
        data["donations"] = [d.to_dict() for d in payer.donations]
        return ok(data)
    except ZakatError as exc:
        return error_response(exc)


@payers_bp.post("")
@require_auth
def create_payer_route():
    try:
        payer = ledger_service.create_payer(_payer_data(), recorded_by=g.auth.user_id)
        message = "Muzakki recorded"
        if payer.change_amount and payer.change_amount > 0:
            message += f"; change of {as_number(payer.change_amount)} recorded as infak"
        return ok(payer.to_dict(), message, 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("create muzakki")


@payers_bp.put("/<int:payer_id>")
@require_auth
def update_payer_route(payer_id: int):
    try:
        payer = ledger_service.update_payer(payer_id, _payer_data(), recorded_by=g.auth.user_id)
        return ok(payer.to_dict(), "Muzakki updated")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("update muzakki")


@payers_bp.delete("/<int:payer_id>")
@require_auth
def delete_payer_route(payer_id: int):
    try:
        summary = ledger_service.delete_payer(payer_id)
        current_app.logger.info(
            "Muzakki %s deleted by %s (%s donations removed)",
            payer_id, g.auth.user_id, summary["donations_deleted"],
        )
        return ok(summary, "Muzakki deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete muzakki")


@payers_bp.post("/<int:payer_id>/sedekahkan-kembalian")
@require_auth
def donate_change_route(payer_id: int):
    try:
        donation = ledger_service.donate_change(payer_id, recorded_by=g.auth.user_id)
        return ok(donation.to_dict(), f"Change of {as_number(donation.amount)} donated as infak")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("donate change")


@payers_bp.post("/rt/<int:rt_id>/batch-infak")
@require_auth
def batch_donate_change_route(rt_id: int):
    data = request_data()
    payer_ids = data.get("payer_ids")
    if payer_ids is None and request.form:
        payer_ids = request.form.getlist("payer_ids")
    try:
        result = ledger_service.batch_donate_change(rt_id, payer_ids, recorded_by=g.auth.user_id)
        message = f"{len(result['processed'])} muzakki donated their change"
        if result["errors"]:
            message += f"; {len(result['errors'])} skipped"
        return ok(result, message)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("donate change in batch")


@payers_bp.get("/export-excel")
@require_auth
def export_excel_route():
    try:
        out = export_service.build_payers_workbook()
    except Exception:
        return server_error("export muzakki workbook")

    filename = f"data-muzakki-{utcnow().strftime('%Y-%m-%d')}.xlsx"
    current_app.logger.info("Muzakki workbook exported by %s", g.auth.user_id)
    return send_file(
        out,
        mimetype=export_service.XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
        max_age=0,
    )


# =============================================================================
# MASTER ZAKAT RATES (JSON sub-API)
# =============================================================================

@payers_bp.get("/api/master-zakat")
@require_auth
def list_rates_route():
    return ok([r.to_dict() for r in rate_service.list_rates()])


@payers_bp.get("/api/master-zakat/<int:rate_id>")
@require_auth
def get_rate_route(rate_id: int):
    try:
        return ok(rate_service.get_rate(rate_id).to_dict())
    except ZakatError as exc:
        return error_response(exc)


@payers_bp.post("/api/master-zakat")
@require_auth
@require_admin
def create_rate_route():
    payload = request.get_json(silent=True)
    if payload is None:
        return fail("Invalid JSON payload", 400)
    try:
        rate = rate_service.create_rate(payload, user_id=g.auth.user_id)
        return ok(rate.to_dict(), "Zakat rate created", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("create zakat rate")


@payers_bp.put("/api/master-zakat/<int:rate_id>")
@require_auth
@require_admin
def update_rate_route(rate_id: int):
    payload = request.get_json(silent=True)
    if payload is None:
        return fail("Invalid JSON payload", 400)
    try:
        rate = rate_service.update_rate(rate_id, payload, user_id=g.auth.user_id)
        return ok(rate.to_dict(), "Zakat rate updated")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("update zakat rate")


@payers_bp.delete("/api/master-zakat/<int:rate_id>")
@require_auth
@require_admin
def delete_rate_route(rate_id: int):
    try:
        rate_service.delete_rate(rate_id)
        return ok(message="Zakat rate deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete zakat rate")
