"""Error taxonomy shared by the resolver, executors and collaborators."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Optional

import httpx
import jwt


class ErrorKind(str, Enum):
    """Closed set of failure categories used for routing decisions."""

    VALIDATION = "validation"
    INVALID_DATE = "invalid_date"
    AUTH_REQUIRED = "auth_required"
    NETWORK = "network"
    RATE_LIMIT = "rate_limit"
    PERSISTENCE = "persistence"
    RETRY_EXCEEDED = "retry_exceeded"
    UNKNOWN = "unknown"


class ToolError(Exception):
    """Base error raised by chatflow components."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        retryable: bool = True,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.retryable = retryable
        self.details = details


class FieldValidationError(ToolError):
    """A single field failed sanitization or validation."""

    def __init__(
        self, field: str, message: str, kind: ErrorKind = ErrorKind.VALIDATION
    ) -> None:
        super().__init__(message, kind=kind)
        self.field = field


class StepValidationError(FieldValidationError):
    """Validation failure tied to the step that owns the offending field."""

    def __init__(
        self,
        field: str,
        step: str,
        message: str,
        kind: ErrorKind = ErrorKind.VALIDATION,
    ) -> None:
        super().__init__(field, message, kind=kind)
        self.step = step


class AuthenticationRequired(ToolError):
    """No caller identity is available, or it was rejected."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, kind=ErrorKind.AUTH_REQUIRED, retryable=False)


def classify_error(exc: BaseException) -> ToolError:
    """Map an arbitrary exception onto a :class:`ToolError`."""

    if isinstance(exc, ToolError):
        return exc
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return ToolError(
            "The request timed out. Please try again.",
            kind=ErrorKind.NETWORK,
            details=str(exc),
        )
    if isinstance(exc, httpx.TransportError):
        return ToolError(
            "Network error. Please check your connection and try again.",
            kind=ErrorKind.NETWORK,
            details=str(exc),
        )
    if isinstance(exc, jwt.PyJWTError):
        return AuthenticationRequired("Please sign in to use this feature.")
    return ToolError(
        str(exc) or "An unexpected error occurred. Please try again.",
        kind=ErrorKind.UNKNOWN,
    )
