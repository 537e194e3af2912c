"""Domain errors raised by the memorial services.

Every error carries the HTTP status it maps to so the application factory can
render all of them through a single JSON error handler.
"""

from __future__ import annotations

from typing import Any, Mapping


class MemorialError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code}


class ValidationError(MemorialError):
    """Raised when a payload is missing fields or carries invalid values."""

    status_code = 400
    code = "validation_error"

    def __init__(
        self,
        message: str = "Invalid request payload",
        *,
        fields: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.fields = dict(fields or {})

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, fields={field: [message]})

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.fields:
            payload["fields"] = self.fields
        return payload


class NotFoundError(MemorialError):
    status_code = 404
    code = "not_found"


class ConflictError(MemorialError):
    """Raised on uniqueness violations and stale concurrent writes."""

    status_code = 409
    code = "conflict"


class SlugAllocationError(ConflictError):
    code = "slug_unavailable"

    def __init__(self, message: str = "Could not allocate a unique identifier") -> None:
        super().__init__(message)


class InvalidTransitionError(MemorialError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, message: str | None = None) -> None:
        super().__init__(
            message
            or f"Cannot move a memorial request from {from_status!r} to {to_status!r}"
        )
        self.from_status = from_status
        self.to_status = to_status

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["from_status"] = self.from_status
        payload["to_status"] = self.to_status
        return payload


class UpstreamError(MemorialError):
    """Raised when storage or notification dependencies fail."""

    status_code = 502
    code = "upstream_error"
