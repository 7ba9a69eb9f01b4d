# Overview: Request decorators for API routes (authentication and admin check).

from functools import wraps
from flask import g, jsonify, request, session

from .services import session_service


def _request_token() -> str | None:
    """Token from the signed session cookie, else from an Authorization: Bearer header."""
    token = session.get("token")
    if token:
        return token
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1]
    return None


def require_auth(f):
    """
    Require a valid session and establish g.auth.

    g.auth is an AuthContext built from the current user row, so role and
    active-state changes apply on the next request.

    Returns 401 when there is no token, the token is unknown, revoked or
    expired, or the user has been deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _request_token()
        if not token:
            return jsonify({"success": False, "message": "Please log in first"}), 401

        context = session_service.validate_session(token)
        if not context:
            session.pop("token", None)
            return jsonify({"success": False, "message": "Session expired, please log in again"}), 401

        g.auth = context
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Admin-only; must be stacked below @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth = getattr(g, "auth", None)
        if auth is None:
            return jsonify({"success": False, "message": "Please log in first"}), 401
        if not auth.is_admin:
            return jsonify({"success": False, "message": "Access denied: admin only"}), 403
        return f(*args, **kwargs)

    return decorated_function
