# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

- Login with WhatsApp number + password; the session cookie carries an
  opaque token whose hash is stored server-side (session_tokens).
- Logout revokes the token.
- Self-registration exists for development setups only
  (ALLOW_SELF_REGISTRATION).
"""

from flask import Blueprint, current_app, g, request, session

from ..decorators import require_auth
from ..responses import error_response, fail, ok, request_data, server_error
from ..services import auth_service, session_service
from ..validation import AuthError, ForbiddenError, ZakatError


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.post("/login")
def login_route():
    data = request_data()
    phone = data.get("phone")
    password = data.get("password")

    if not phone or not password:
        return fail("Phone number and password are required", 400)

    try:
        user = auth_service.authenticate(phone, password)
        if not user:
            current_app.logger.info("Failed login for phone %s", phone)
            return error_response(AuthError("Invalid phone number or password"))

        _, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        session.clear()
        session.permanent = True
        session["token"] = token

        current_app.logger.info("User %s logged in", user.id)
        return ok({"user": user.to_dict(), "token": token}, f"Welcome, {user.name}!")
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("log in user")


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = session.pop("token", None)
    if not token:
        header = request.headers.get("Authorization", "")
        token = header.split(" ", 1)[1] if header.startswith("Bearer ") else None
    if token:
        session_service.revoke_session(token, reason="User logout")
    session.clear()
    return ok(message="You have been logged out")


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok(g.auth.to_dict())


@auth_bp.post("/register")
def register_route():
    """Development-only self-registration as panitia."""
    if not current_app.config.get("ALLOW_SELF_REGISTRATION"):
        return error_response(ForbiddenError("Self-registration is disabled. Ask an admin to create your account."))

    data = request_data()
    try:
        user = auth_service.create_user(
            name=data.get("name"),
            phone=data.get("phone"),
            password=data.get("password"),
            confirm_password=data.get("confirm_password", data.get("password")),
        )
        current_app.logger.info("Self-registered user %s", user.id)
        return ok(user.to_dict(), "Registration successful, please log in", 201)
    except ZakatError as exc:
        return error_response(exc)
    except Exception:
        return server_error("register user")
