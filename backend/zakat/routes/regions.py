# Overview: Flask API routes for RT and RW management; parses input and returns JSON responses.

from flask import Blueprint, current_app

from ..decorators import require_auth
from ..responses import error_response, ok, request_data, server_error
from ..services import region_service
from ..validation import ZakatError


rt_bp = Blueprint("rt", __name__, url_prefix="/rt")
rw_bp = Blueprint("rw", __name__, url_prefix="/rw")


# =============================================================================
# RT
# =============================================================================

@rt_bp.get("")
@require_auth
def list_rt_route():
    return ok(region_service.subdivision_stats())


@rt_bp.get("/<int:rt_id>")
@require_auth
def get_rt_route(rt_id: int):
    try:
        return ok(region_service.subdivision_detail(rt_id))
    except ZakatError as exc:
        return error_response(exc)


@rt_bp.post("")
@require_auth
def create_rt_route():
    try:
        rt = region_service.create_subdivision(request_data())
        return ok(rt.to_dict(), f"RT {rt.number} created", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("create RT")


@rt_bp.put("/<int:rt_id>")
@require_auth
def update_rt_route(rt_id: int):
    try:
        rt = region_service.update_subdivision(rt_id, request_data())
        return ok(rt.to_dict(), f"RT {rt.number} updated")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("update RT")


@rt_bp.delete("/<int:rt_id>")
@require_auth
def delete_rt_route(rt_id: int):
    try:
        number = region_service.delete_subdivision(rt_id)
        current_app.logger.info("RT %s deleted", number)
        return ok(message=f"RT {number} deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete RT")


# =============================================================================
# RW
# =============================================================================

@rw_bp.get("")
@require_auth
def list_rw_route():
    return ok(region_service.group_stats())


@rw_bp.get("/<int:rw_id>")
@require_auth
def get_rw_route(rw_id: int):
    try:
        return ok(region_service.group_detail(rw_id))
    except ZakatError as exc:
        return error_response(exc)


@rw_bp.post("")
@require_auth
def create_rw_route():
    try:
        rw = region_service.create_group(request_data())
        return ok(rw.to_dict(), f"RW {rw.number} created", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("create RW")


@rw_bp.put("/<int:rw_id>")
@require_auth
def update_rw_route(rw_id: int):
    try:
        rw = region_service.update_group(rw_id, request_data())
        return ok(rw.to_dict(), f"RW {rw.number} updated")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("update RW")


@rw_bp.delete("/<int:rw_id>")
@require_auth
def delete_rw_route(rw_id: int):
    try:
        number = region_service.delete_group(rw_id)
        current_app.logger.info("RW %s deleted", number)
        return ok(message=f"RW {number} deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete RW")
