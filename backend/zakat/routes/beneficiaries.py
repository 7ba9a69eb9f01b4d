# Overview: Flask API routes for mustahik operations; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..responses import error_response, ok, request_data, server_error
from ..services import beneficiary_service
from ..validation import ZakatError, parse_optional_id


beneficiaries_bp = Blueprint("mustahik", __name__, url_prefix="/mustahik")


@beneficiaries_bp.get("")
@require_auth
def list_beneficiaries_route():
    try:
        beneficiaries = beneficiary_service.list_beneficiaries(
            category=request.args.get("category"),
            subdivision_id=parse_optional_id(request.args.get("rt_id"), "rt_id"),
        )
        return ok([b.to_dict() for b in beneficiaries])
    except ZakatError as exc:
        return error_response(exc)


@beneficiaries_bp.get("/<int:beneficiary_id>")
@require_auth
def get_beneficiary_route(beneficiary_id: int):
    try:
        return ok(beneficiary_service.beneficiary_detail(beneficiary_id))
    except ZakatError as exc:
        return error_response(exc)


@beneficiaries_bp.post("")
@require_auth
def create_beneficiary_route():
    try:
        beneficiary = beneficiary_service.create_beneficiary(request_data())
        return ok(beneficiary.to_dict(), "Mustahik created", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("create mustahik")


@beneficiaries_bp.put("/<int:beneficiary_id>")
@require_auth
def update_beneficiary_route(beneficiary_id: int):
    try:
        beneficiary = beneficiary_service.update_beneficiary(beneficiary_id, request_data())
        return ok(beneficiary.to_dict(), "Mustahik updated")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("update mustahik")


@beneficiaries_bp.delete("/<int:beneficiary_id>")
@require_auth
def delete_beneficiary_route(beneficiary_id: int):
    try:
        name = beneficiary_service.delete_beneficiary(beneficiary_id)
        current_app.logger.info("Mustahik %s (%s) deleted", beneficiary_id, name)
        return ok(message=f"Mustahik {name} deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete mustahik")
