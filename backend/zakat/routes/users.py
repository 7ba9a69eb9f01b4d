# Overview: Flask API routes for committee user administration; admin only.

from flask import Blueprint, current_app, g

from ..decorators import require_admin, require_auth
from ..responses import error_response, ok, request_data, server_error
from ..services import auth_service
from ..validation import ZakatError


users_bp = Blueprint("users", __name__, url_prefix="/users")


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    return ok([u.to_dict() for u in auth_service.list_users()])


@users_bp.get("/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    try:
        return ok(auth_service.get_user(user_id).to_dict())
    except ZakatError as exc:
        return error_response(exc)


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    data = request_data()
    try:
        user = auth_service.create_user(
            name=data.get("name"),
            phone=data.get("phone"),
            password=data.get("password"),
            role=data.get("role"),
            confirm_password=data.get("confirm_password"),
        )
        current_app.logger.info("User %s created by %s", user.id, g.auth.user_id)
        return ok(user.to_dict(), "User created", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("create user")


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    try:
        user = auth_service.update_user(user_id, request_data(), acting_user_id=g.auth.user_id)
        return ok(user.to_dict(), "User updated")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("update user")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    try:
        auth_service.delete_user(user_id, acting_user_id=g.auth.user_id)
        current_app.logger.info("User %s deleted by %s", user_id, g.auth.user_id)
        return ok(message="User deleted")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("delete user")
