# Overview: JSON envelope helpers shared by every blueprint.

from flask import current_app, jsonify, request

from .validation import ZakatError


def ok(data=None, message: str | None = None, status: int = 200):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    return jsonify(body), status


def fail(message: str, status: int = 400):
    return jsonify({"success": False, "message": message}), status


def error_response(exc: ZakatError):
    return fail(str(exc), exc.status_code)


def server_error(action: str):
    """Log the active exception and answer a generic 500."""
    current_app.logger.exception("Failed to %s", action)
    return fail("Internal server error", 500)


def request_data() -> dict:
    """JSON body, or the form fields of a form/multipart request."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    if request.form:
        return request.form.to_dict()
    return {}
