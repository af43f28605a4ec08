# Overview: Typed error taxonomy shared by services and routes.

"""
Every rejected operation surfaces as a ServiceError subclass.

- kind: stable, machine-readable name the client can branch on
- status_code: HTTP status used by the API error handler
- details: extra JSON fields (field errors, current status, ...)

Services raise these before any mutation; the Flask error handler
registered in create_app() renders them as
{"error": <message>, "kind": <kind>, ...details}.
"""

from __future__ import annotations

from flask import jsonify


class ServiceError(Exception):
    kind = "Error"
    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message, "kind": self.kind}
        body.update(self.details)
        return body


class ValidationError(ServiceError):
    """400-level input problem. `fields` maps field name -> problem."""
    kind = "ValidationError"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None, fields: dict | None = None):
        merged = dict(fields or {})
        if field is not None:
            merged.setdefault(field, message)
        super().__init__(message, fields=merged)

    @property
    def fields(self) -> dict:
        return self.details["fields"]


class WeakPasswordError(ValidationError):
    kind = "WeakPassword"


class NotFoundError(ServiceError):
    kind = "NotFound"
    status_code = 404


class DuplicateCodeError(ServiceError):
    kind = "DuplicateCode"
    status_code = 409


class DuplicateNameError(ServiceError):
    kind = "DuplicateName"
    status_code = 409


class InvalidTransitionError(ServiceError):
    """Check-in/out rejected by the item state machine."""
    kind = "InvalidTransition"
    status_code = 409

    def __init__(self, message: str, *, code: str, current_status: str, action: str):
        super().__init__(message, code=code, current_status=current_status, action=action)

    @property
    def current_status(self) -> str:
        return self.details["current_status"]


class InvalidCredentialsError(ServiceError):
    kind = "InvalidCredentials"
    status_code = 401


class UnauthorizedError(ServiceError):
    kind = "Unauthorized"
    status_code = 401


class ForbiddenError(ServiceError):
    kind = "Forbidden"
    status_code = 403


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., deleting a protected account)."""
    kind = "Conflict"
    status_code = 409


class BusyError(ServiceError):
    """Another operation holds the item; safe to retry with backoff."""
    kind = "Busy"
    status_code = 503


def error_response(exc: ServiceError):
    """JSON response for a ServiceError; Busy carries Retry-After."""
    response = jsonify(exc.to_dict())
    response.status_code = exc.status_code
    if isinstance(exc, BusyError):
        response.headers["Retry-After"] = str(exc.details.get("retry_after_seconds", 1))
    return response
