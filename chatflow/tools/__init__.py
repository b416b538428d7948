"""Multi-turn collection tools invoked by the chat orchestration layer."""

from __future__ import annotations

from typing import Dict, Type

from .base import StepExecutor
from .contact import ContactStepExecutor
from .contracts import (
    ContactDetails,
    ContactFields,
    ContactResult,
    ContactStep,
    ContactSubmission,
    EventDetails,
    EventFields,
    EventResult,
    EventStep,
    EventSubmission,
    ToolResult,
    ToolStatus,
)
from .event import EventStepExecutor

EXECUTORS: Dict[str, Type[StepExecutor]] = {
    ContactStepExecutor.tool_name: ContactStepExecutor,
    EventStepExecutor.tool_name: EventStepExecutor,
}

__all__ = [
    "StepExecutor",
    "ContactStepExecutor",
    "EventStepExecutor",
    "EXECUTORS",
    "ContactStep",
    "EventStep",
    "ContactFields",
    "EventFields",
    "ContactSubmission",
    "EventSubmission",
    "ToolResult",
    "ToolStatus",
    "ContactResult",
    "EventResult",
    "ContactDetails",
    "EventDetails",
]
