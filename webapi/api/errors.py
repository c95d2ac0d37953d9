"""Error handlers for the application."""
from __future__ import annotations
from http import HTTPStatus
from typing import Optional

from werkzeug.exceptions import BadRequest, HTTPException


class ApiError(Exception):
    """Malformed-request error raised by the HTTP layer (400, 406, 415...)."""

    def __init__(self, status: int, detail: str):
        self.status = status
        self.detail = detail
        super().__init__(detail)


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Error"


def error_response(status: int, message: Optional[str] = None):
    """Render ``{"error", "message"}`` in the client's preferred format."""
    from webapi.api.negotiation import preferred_mimetype, render

    body = {"error": _reason(status), "message": message or _reason(status)}
    return render(body, status, preferred_mimetype())


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        """Handle malformed requests detected while parsing."""
        app.logger.info(f"Rejected request: [{error.status}] {error.detail}")
        return error_response(error.status, error.detail)

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        message = "Request body or identifier is missing or malformed"
        description = getattr(error, "description", None)
        if description and description != BadRequest.description:
            message = str(description)
        return error_response(400, message)

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        return error_response(404, "Resource not found")

    @app.errorhandler(405)
    def method_not_allowed(error):
        response = error_response(405, "Method not allowed for this resource")
        # Keep the Allow header werkzeug computed for the route
        for name, value in error.get_headers():
            if name.lower() == "allow":
                response.headers["Allow"] = value
        return response

    @app.errorhandler(406)
    def not_acceptable(error):
        return error_response(406, "Supported response formats: application/json, application/xml")

    @app.errorhandler(413)
    def request_too_large(error):
        """Handle payload too large errors."""
        return error_response(413, "Request payload exceeds maximum allowed size")

    @app.errorhandler(415)
    def unsupported_media_type(error):
        return error_response(415, "Unsupported Content-Type")

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        # ALWAYS log the full error (even in production) - logs are secure
        app.logger.error(f"Internal error: {error}", exc_info=True)
        return error_response(500, "An unexpected error occurred")

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions (repository or link builder failures)."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error

        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return error_response(500, "An unexpected error occurred")
