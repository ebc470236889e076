"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside the complaint
lifecycle engine.  They are deliberately **not** DRF exceptions so that the
domain layer stays framework-agnostic.  The engine facade converts them into
``MutationResult`` failures; anything raised outside the facade is mapped by
``core.domain.exception_handler``.

Mapping cheatsheet
------------------
┌─────────────────────┬──────────────────────────────┬──────┐
│ Domain Exception    │ Meaning                      │ Code │
├─────────────────────┼──────────────────────────────┼──────┤
│ ValidationError     │ malformed field values       │ 400  │
│ Forbidden           │ policy denied field(s)       │ 403  │
│ NotFound            │ complaint / user missing     │ 404  │
│ InvalidTransition   │ illegal status change        │ 409  │
│ VersionConflict     │ lost the CAS race            │ 409  │
│ ComplaintClosed     │ (re)assigning a closed item  │ 409  │
└─────────────────────┴──────────────────────────────┴──────┘

``VersionConflict`` is the only error a caller is expected to retry
(reload, recompute the patch, apply again).
"""

from __future__ import annotations

from typing import Iterable


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    ``code`` is a stable machine-readable identifier included in API
    error bodies.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)

    def as_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class Forbidden(DomainError):
    """
    The actor may not apply one or more of the requested fields.

    ``fields`` lists the denied field names (empty when the whole
    operation is denied).
    """

    code = "forbidden"

    def __init__(
        self,
        message: str = "You do not have permission to perform this action.",
        *,
        fields: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.fields = sorted(fields)

    def as_dict(self) -> dict:
        data = super().as_dict()
        if self.fields:
            data["fields"] = self.fields
        return data


class NotFound(DomainError):
    """The requested resource does not exist (or is not visible to the actor)."""

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class ValidationError(DomainError):
    """
    One or more field values are malformed (e.g. rating out of range).

    ``errors`` maps field name → list of messages, mirroring the shape
    DRF uses for serializer errors.
    """

    code = "validation_error"

    def __init__(
        self,
        message: str = "Invalid input.",
        *,
        errors: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or {}

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors={field: [message]})

    def as_dict(self) -> dict:
        data = super().as_dict()
        if self.errors:
            data["errors"] = self.errors
        return data


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The request conflicts with the current state.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A requested status change is not an edge of the complaint state machine.

    Example::

        raise InvalidTransition(current="resolved", target="pending")
    """

    code = "invalid_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            if reason:
                parts.append(f"({reason})")
            message = " ".join(parts) + "."
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason


class VersionConflict(Conflict):
    """
    A write's expected version does not match the stored version.

    The caller should reload the complaint, re-derive its patch against
    the fresh state and try again.
    """

    code = "version_conflict"

    def __init__(
        self,
        message: str | None = None,
        *,
        expected: int | None = None,
        current: int | None = None,
    ) -> None:
        if message is None:
            message = (
                "The complaint was modified by someone else "
                f"(expected version {expected}, current version {current}). "
                "Reload and retry."
            )
        super().__init__(message)
        self.expected = expected
        self.current = current

    def as_dict(self) -> dict:
        data = super().as_dict()
        data["current_version"] = self.current
        return data


class ComplaintClosed(Conflict):
    """Assignment was attempted on a resolved or cancelled complaint."""

    code = "complaint_closed"

    def __init__(self, message: str = "Closed complaints cannot be (re)assigned.") -> None:
        super().__init__(message)
