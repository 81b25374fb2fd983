from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from services.errors import AuthError

logger = logging.getLogger(__name__)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def auth_error_response(err: AuthError):
    """The single place an AuthError becomes a client-facing response."""
    if err.should_log:
        logger.error("Internal error occurred: %s", err, exc_info=err.__cause__)
    else:
        logger.info("Request rejected: %s", err)
    return error_response(err.error_code, err.public_message, err.status_code)


def register_error_handlers(app):
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        return auth_error_response(err)

    # 400 Bad Request (generic)
    @app.errorhandler(400)
    def bad_request(e):
        message = getattr(e, "description", "Bad request")
        return error_response("BAD_REQUEST", message, 400)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # 405 Method Not Allowed
    @app.errorhandler(405)
    def method_not_allowed(e):
        return error_response("METHOD_NOT_ALLOWED", "Method not allowed", 405)

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION_ERROR", "Invalid input", 422, details=err.messages)

    # Integrity errors that escaped the stores (unique constraints, FK violations)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        logger.error("Unhandled integrity error: %s", getattr(err, "orig", err))
        message = str(getattr(err, "orig", err)).lower()
        if "unique constraint" in message or "unique violation" in message:
            return error_response("CONFLICT", "Unique constraint violated.", 409)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response("BAD_REQUEST", err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        details = None
        # In dev, include exception details to speed up debugging
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
