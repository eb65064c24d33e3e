# Overview: Error taxonomy shared by services and the HTTP layer.

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """
    Base for every business-rule failure raised by the services.

    Carries a machine-readable kind and the concrete offending values so the
    calling UI can show an actionable message.
    """
    kind = "ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(ServiceError):
    """Referenced entity does not exist."""
    kind = "NOT_FOUND"
    http_status = 404


class ConflictError(ServiceError):
    """Uniqueness or one-time invariant violated (duplicate open shift, register already closed...)."""
    kind = "CONFLICT"
    http_status = 409


class InvalidError(ServiceError):
    """Value-level precondition failed (index regression, payment mismatch, overpayment...)."""
    kind = "INVALID"
    http_status = 400


class ForbiddenError(ServiceError):
    """Ownership or role check failed for the acting user."""
    kind = "FORBIDDEN"
    http_status = 403
