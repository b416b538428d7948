"""Sanitization and field validation for collected values."""

from __future__ import annotations

import re
from typing import Any

from .constants import MAX_EMAIL_LENGTH, MAX_NAME_LENGTH
from .errors import FieldValidationError

_UNSAFE_CHARS = re.compile(r"[<>\"'&]")
_EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

_TRUTHY = {"yes", "y", "true", "1"}
_TRUTHY_FRAGMENTS = ("yes", "recur", "annual")


def sanitize_input(value: Any) -> Any:
    """Trim ``value`` and strip characters that are unsafe to echo back.

    Booleans pass through unchanged, ``None`` becomes an empty string.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return value
    return _UNSAFE_CHARS.sub("", str(value).strip())


def validate_session_id(value: Any) -> str:
    session_id = str(value or "").strip()
    if not session_id:
        raise FieldValidationError("sessionId", "Session ID is required")
    return session_id


def validate_name(value: Any, label: str = "Name", field: str = "name") -> str:
    name = sanitize_input(value)
    if not isinstance(name, str) or not name:
        raise FieldValidationError(field, f"{label} is required")
    if len(name) > MAX_NAME_LENGTH:
        raise FieldValidationError(field, f"{label} is too long")
    return name


def validate_email(value: Any) -> str:
    email = sanitize_input(value)
    if (
        not isinstance(email, str)
        or len(email) > MAX_EMAIL_LENGTH
        or not _EMAIL_PATTERN.match(email)
    ):
        raise FieldValidationError("email", "Please provide a valid email address")
    return email


def parse_recurring_response(value: Any, field: str = "isRecurring") -> bool:
    """Interpret a yes/no style answer about annual recurrence."""
    if isinstance(value, bool):
        return value
    answer = str(sanitize_input(value)).lower()
    if not answer:
        raise FieldValidationError(
            field, "Please answer yes or no: does this event recur annually?"
        )
    return answer in _TRUTHY or any(part in answer for part in _TRUTHY_FRAGMENTS)
