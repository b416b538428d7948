"""Structured logging helpers for tool calls."""

from __future__ import annotations

import logging
from typing import Any, Mapping

logger = logging.getLogger("chatflow.tools")


def redact_value(value: Any) -> Any:
    """Replace collected text with its length so personal data stays out of logs."""
    if value is None or value == "":
        return "empty"
    if isinstance(value, bool):
        return value
    return f"[{len(str(value))} chars]"


def redact_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: redact_value(value) for key, value in fields.items()}


def log_tool_call(
    tool_name: str, action: str, session_id: str, fields: Mapping[str, Any]
) -> None:
    logger.info(
        f"[tool_call:{tool_name}:{action}] session_id={session_id} "
        f"fields={redact_fields(fields)}"
    )
