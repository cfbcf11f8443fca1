from __future__ import annotations

from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException


class APIError(Exception):
    def __init__(self, status_code: int, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details or {}


class ValidationError(APIError):
    """Malformed or missing input."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(400, code, message, details)


class NotFoundOrUnauthorized(APIError):
    """Missing resources and resources owned by someone else look the same to the caller."""

    def __init__(self, code: str = "NOT_FOUND", message: str = "Resource not found or unauthorized.") -> None:
        super().__init__(404, code, message)


class ConflictError(APIError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(409, code, message, details)


class CapabilityError(APIError):
    """Share token is expired, exhausted or lacks the requested capability."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(403, code, message)


class CollaboratorFailure(APIError):
    """A blob store or metadata store call failed.

    The failing collaborator and operation are kept on the instance for logging
    and never rendered into the response.
    """

    def __init__(self, collaborator: str, operation: str) -> None:
        super().__init__(502, "COLLABORATOR_FAILURE", "The storage backend could not complete the request.")
        self.collaborator = collaborator
        self.operation = operation

    def __str__(self) -> str:
        return f"{self.collaborator}.{self.operation} failed"


def error_payload(code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        }
    }


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(APIError)
    def handle_api_error(error: APIError):  # type: ignore[no-untyped-def]
        if isinstance(error, CollaboratorFailure):
            app.logger.error("Request failed on collaborator: %s", error)
        return jsonify(error_payload(error.code, error.message, error.details)), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):  # type: ignore[no-untyped-def]
        return (
            jsonify(error_payload("HTTP_ERROR", error.description, {"status": error.code})),
            error.code or 500,
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):  # type: ignore[no-untyped-def]
        app.logger.exception("Unhandled exception", exc_info=error)
        return jsonify(error_payload("INTERNAL_ERROR", "An unexpected error occurred.")), 500
