# Overview: Flask API routes for infak operations; parses input and returns JSON responses.

from flask import Blueprint, g, request

from ..decorators import require_auth
from ..numbers import as_number
from ..responses import error_response, ok, request_data, server_error
from ..services import donation_service
from ..validation import ZakatError


donations_bp = Blueprint("infak", __name__, url_prefix="/infak")


@donations_bp.get("")
@require_auth
def list_donations_route():
    try:
        donations = donation_service.list_donations(source=request.args.get("source"))
        return ok({
            "items": [d.to_dict() for d in donations],
            "total": as_number(donation_service.total_donations()),
        })
    except ZakatError as exc:
        return error_response(exc)


@donations_bp.post("")
@require_auth
def create_donation_route():
    try:
        donation = donation_service.create_manual_donation(request_data(), recorded_by=g.auth.user_id)
        return ok(donation.to_dict(), "Infak recorded", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("record infak")


@donations_bp.delete("/<int:donation_id>")
@require_auth
def delete_donation_route(donation_id: int):
    try:
        donation_service.delete_donation(donation_id)
        return ok(message="Infak deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete infak")
