# Overview: JSON error bodies shared by every blueprint: {"message": ..., "details"?: ...}.

from flask import current_app, jsonify

from .extensions import db
from .validation import ServiceError


def error_response(message: str, status: int, details=None):
    body = {"message": message}
    if details is not None:
        body["details"] = details
    return jsonify(body), status


def service_error_response(exc: ServiceError):
    """Roll back the request's work and report a known failure."""
    db.session.rollback()
    return jsonify(exc.to_dict()), exc.status_code


def unexpected_error_response(exc: Exception, message: str):
    """Roll back, log with traceback, and surface the underlying message in details."""
    db.session.rollback()
    current_app.logger.exception(message)
    return error_response(message, 500, details=str(exc))


def register_error_handlers(app) -> None:
    @app.errorhandler(404)
    def not_found(_exc):
        return error_response("Resource not found", 404)

    @app.errorhandler(405)
    def method_not_allowed(_exc):
        return error_response("Method not allowed", 405)
