"""Typed failures reported by the catalog engine."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError


class DirectoryError(Exception):
    """Base class for every failure surfaced to callers."""

    code = "internal"
    status_code = 500

    def __init__(
        self, message: str, *, details: list[dict[str, Any]] | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def as_dict(self) -> dict[str, Any]:
        """Return the JSON body used by the HTTP layer."""

        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.details:
            payload["errors"] = self.details
        return payload


class InvalidArgument(DirectoryError):
    """Malformed or out-of-range input that the caller can fix."""

    code = "invalid_argument"
    status_code = 400


class NotFound(DirectoryError):
    """A referenced category, specialty or provider does not exist."""

    code = "not_found"
    status_code = 404


class Conflict(DirectoryError):
    """A write collided with a uniqueness or referential constraint."""

    code = "conflict"
    status_code = 409


class RateLimited(DirectoryError):
    """The caller exhausted a quota."""

    code = "rate_limited"
    status_code = 429


class DependencyUnavailable(DirectoryError):
    """The store or the mail relay could not be reached."""

    code = "dependency_unavailable"
    status_code = 503


class Internal(DirectoryError):
    """An invariant of the catalog was found broken."""

    code = "internal"
    status_code = 500


def field_error(field: str, message: str) -> dict[str, Any]:
    return {"field": field, "message": message}


def invalid_from_validation(exc: ValidationError, message: str) -> InvalidArgument:
    """Convert a pydantic validation error into an ``InvalidArgument``."""

    details = [
        field_error(
            ".".join(str(part) for part in error.get("loc", ())) or "__root__",
            error.get("msg", "invalid value"),
        )
        for error in exc.errors()
    ]
    return InvalidArgument(message, details=details)


__all__ = [
    "Conflict",
    "DependencyUnavailable",
    "DirectoryError",
    "Internal",
    "InvalidArgument",
    "NotFound",
    "RateLimited",
    "field_error",
    "invalid_from_validation",
]
