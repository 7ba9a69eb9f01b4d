# Overview: Flask API routes for zakat distribution; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, request, send_from_directory

from ..decorators import require_auth
from ..responses import error_response, fail, ok, request_data, server_error
from ..services import distribution_service, upload_service
from ..validation import ZakatError


distributions_bp = Blueprint("distribusi", __name__, url_prefix="/distribusi")

PHOTO_FIELD = "bukti_foto"


@distributions_bp.get("")
@require_auth
def list_disbursements_route():
    try:
        disbursements = distribution_service.list_disbursements(
            status=request.args.get("status"),
            zakat_kind=request.args.get("zakat_kind"),
        )
        return ok({
            "items": [d.to_dict() for d in disbursements],
            "stats": distribution_service.disbursement_stats(),
            "availability": distribution_service.availability_summary(),
        })
    except ZakatError as exc:
        return error_response(exc)


@distributions_bp.get("/availability")
@require_auth
def availability_route():
    return ok(distribution_service.availability_summary())


@distributions_bp.get("/laporan")
@require_auth
def report_route():
    return ok({
        "by_category": distribution_service.report_by_category(),
        "by_rt": distribution_service.report_by_subdivision(),
    })


@distributions_bp.get("/<int:disbursement_id>")
@require_auth
def get_disbursement_route(disbursement_id: int):
    try:
        return ok(distribution_service.get_disbursement(disbursement_id).to_dict())
    except ZakatError as exc:
        return error_response(exc)


@distributions_bp.post("")
@require_auth
def create_disbursement_route():
    try:
        disbursement = distribution_service.create_disbursement(
            request_data(),
            recorded_by=g.auth.user_id,
            photo=request.files.get(PHOTO_FIELD),
        )
        current_app.logger.info(
            "Disbursement %s created: %s %s", disbursement.id, disbursement.amount, disbursement.zakat_kind,
        )
        return ok(disbursement.to_dict(), "Disbursement recorded", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("create disbursement")


@distributions_bp.put("/<int:disbursement_id>/status")
@require_auth
def update_status_route(disbursement_id: int):
    status = request_data().get("status")
    if not status:
        return fail("status is required", 400)
    try:
        disbursement, previous = distribution_service.update_status(disbursement_id, status)
        current_app.logger.info(
            "Disbursement %s status %s -> %s by %s", disbursement_id, previous, disbursement.status, g.auth.user_id,
        )
        return ok(disbursement.to_dict(), "Status updated")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("update disbursement status")


@distributions_bp.post("/<int:disbursement_id>/upload-proof")
@require_auth
def upload_proof_route(disbursement_id: int):
    try:
        disbursement = distribution_service.attach_proof_photo(disbursement_id, request.files.get(PHOTO_FIELD))
        return ok(disbursement.to_dict(), "Proof photo uploaded")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("upload proof photo")


@distributions_bp.get("/uploads/<path:filename>")
@require_auth
def proof_photo_route(filename: str):
    return send_from_directory(upload_service.upload_folder(), filename)


@distributions_bp.delete("/<int:disbursement_id>")
@require_auth
def delete_disbursement_route(disbursement_id: int):
    try:
        distribution_service.delete_disbursement(disbursement_id)
        current_app.logger.info("Disbursement %s deleted by %s", disbursement_id, g.auth.user_id)
        return ok(message="Disbursement deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete disbursement")
