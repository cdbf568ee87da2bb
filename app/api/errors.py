"""Error responses for the token proxy.

Every failure leaves the proxy in the OAuth2 error shape
``{"error": ..., "error_description": ...}``.
"""
from __future__ import annotations
import logging
from typing import Optional

from flask import Response, jsonify
from werkzeug.exceptions import HTTPException

from app.core.exceptions import SERVER_ERROR, ProvisioningError

logger = logging.getLogger(__name__)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


class ErrorFlowGateway:
    """The single exit for a token exchange that must not be forwarded.

    A token response is either forwarded untouched or replaced by exactly
    one error payload produced here; the two never happen together.
    """

    status_code = 500

    def reject(self, error: str, description: str, cause: Optional[BaseException] = None) -> Response:
        """Build the error response that replaces the upstream token response."""
        if cause is not None:
            logger.error("Error provisioning access: %s (%s: %s)", description, type(cause).__name__, cause)
        else:
            logger.error("Error provisioning access: %s", description)

        response = jsonify({"error": error, "error_description": description})
        response.status_code = self.status_code
        response.headers.update(NO_STORE_HEADERS)
        return response

    def reject_error(self, exc: ProvisioningError) -> Response:
        return self.reject(exc.error, exc.description, cause=exc.cause or exc)


def _error_response(status: int, error: str, description: str) -> tuple[Response, int]:
    return jsonify({"error": error, "error_description": description}), status


def register_error_handlers(app):
    """Register JSON error handlers with the Flask app."""

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        return _error_response(400, "invalid_request", str(getattr(error, "description", error)))

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        return _error_response(404, "not_found", "Resource not found")

    @app.errorhandler(405)
    def method_not_allowed(error):
        """Handle 405 Method Not Allowed errors."""
        return _error_response(405, "invalid_request", "Method not allowed")

    @app.errorhandler(500)
    def internal_error(error):
        """Handle 500 Internal Server Error."""
        app.logger.error(f"Internal error: {error}", exc_info=True)
        return _error_response(500, SERVER_ERROR, "An unexpected error occurred")

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        # Pass through HTTP errors
        if isinstance(error, HTTPException):
            return error

        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return _error_response(500, SERVER_ERROR, "An unexpected error occurred")
