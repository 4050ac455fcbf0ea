"""Result and error types shared by the dispatch core and backend connectors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

# Error categories reported to the calling agent.
NOT_FOUND = "not_found"
INVALID_PARAMS = "invalid_params"
BACKEND_ERROR = "backend_error"
INTERNAL_ERROR = "internal_error"

ERROR_KINDS = (NOT_FOUND, INVALID_PARAMS, BACKEND_ERROR, INTERNAL_ERROR)


@dataclass(frozen=True)
class ErrorEnvelope:
    """Normalized failure returned in place of a raised exception."""

    kind: str
    message: str
    details: Any = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


@dataclass(frozen=True)
class Ok:
    """Successful tool outcome."""

    value: Any


@dataclass(frozen=True)
class Err:
    """Failed tool outcome."""

    error: ErrorEnvelope


Result = Ok | Err


@dataclass(frozen=True)
class Violation:
    """One offending field and the constraint it broke."""

    field: str
    problem: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "problem": self.problem}


class InvalidArguments(Exception):
    """Arguments that pass the schema but break a rule spanning several fields.

    Raised by tool handlers for checks the parameter declarations cannot
    express, such as mutually exclusive options. Reported as ``invalid_params``
    with the same ``violations`` details as schema failures.
    """

    def __init__(self, *violations: Violation) -> None:
        super().__init__("; ".join(f"{item.field}: {item.problem}" for item in violations))
        self.violations = violations

    def to_details(self) -> dict[str, Any]:
        return {"violations": [item.to_dict() for item in self.violations]}


class BackendFailure(Exception):
    """The wrapped system refused or failed an operation.

    Args:
        message: Diagnostic text, usually whatever the backend produced.
        retryable: Whether repeating the same call could succeed (timeouts,
            dropped connections, rate limits). The dispatch core never retries;
            the flag is surfaced to the caller.
        raw: Backend-specific payload (exit code, HTTP body, SQL state).
    """

    def __init__(self, message: str, *, retryable: bool = False, raw: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable
        self.raw = raw

    def to_details(self) -> dict[str, Any]:
        details: dict[str, Any] = {"retryable": self.retryable}
        if self.raw is not None:
            details["raw"] = self.raw
        return details


__all__ = [
    "BACKEND_ERROR",
    "ERROR_KINDS",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "NOT_FOUND",
    "BackendFailure",
    "Err",
    "ErrorEnvelope",
    "InvalidArguments",
    "Ok",
    "Result",
    "Violation",
]
