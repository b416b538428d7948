"""Store abstraction for flow state."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from .models import FlowRecord, FlowStats, StepStatus


class FlowStore(Protocol):
    """Protocol for flow state backends, keyed by session id."""

    async def start(
        self,
        session_id: str,
        tool_name: str,
        user_id: Optional[str] = None,
        initial_step: str = "start",
    ) -> FlowRecord:
        """Create a record, replacing any existing one for ``session_id``."""

    async def get(self, session_id: str) -> FlowRecord | None:
        """Retrieve the record by session id."""

    async def update(
        self,
        session_id: str,
        step_name: str,
        fields: dict[str, Any],
        status: StepStatus = StepStatus.IN_PROGRESS,
        next_step: Optional[str] = None,
    ) -> FlowRecord | None:
        """Merge ``fields``, record the attempt and move to ``next_step``.

        Returns ``None`` when the session is unknown.
        """

    async def mark_error(
        self, session_id: str, step_name: str, error: str
    ) -> tuple[FlowRecord | None, bool]:
        """Record a failed attempt; the flag tells whether a retry is allowed."""

    async def complete(self, session_id: str) -> FlowRecord | None:
        """Mark the flow finished; it stays readable until swept."""

    async def cancel(self, session_id: str) -> bool:
        """Remove the flow outright."""

    async def list_flows(self, user_id: Optional[str] = None) -> list[FlowRecord]:
        """Return all flows, optionally only those owned by ``user_id``."""

    async def clear(self) -> None:
        """Drop every flow."""

    async def stats(self) -> FlowStats:
        """Summarize stored flows."""

    async def sweep(self) -> int:
        """Evict inactive flows and return how many were removed."""

    def start_cleanup(self) -> None:
        """Begin sweeping periodically."""

    async def stop_cleanup(self) -> None:
        """Stop the periodic sweep."""
