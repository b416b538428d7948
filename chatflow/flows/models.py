"""Data models for in-progress flow state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from ..constants import DEFAULT_MAX_RETRIES

FieldValue = Union[bool, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


class StepEntry(BaseModel):
    """Record of an individual step attempt."""

    step_name: str
    timestamp: datetime = Field(default_factory=utcnow)
    status: StepStatus = StepStatus.IN_PROGRESS
    error: Optional[str] = None
    fields: dict[str, Any] = Field(default_factory=dict)


class FlowRecord(BaseModel):
    """State of one multi-turn collection conversation."""

    session_id: str
    tool_name: str
    user_id: Optional[str] = None
    current_step: str = "start"
    fields: dict[str, FieldValue] = Field(default_factory=dict)
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    created_at: datetime = Field(default_factory=utcnow)
    last_activity: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    step_history: list[StepEntry] = Field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    @property
    def has_errors(self) -> bool:
        return any(step.status == StepStatus.ERROR for step in self.step_history)

    @property
    def duration_ms(self) -> float:
        return (self.last_activity - self.created_at).total_seconds() * 1000

    def apply_update(
        self,
        step_name: str,
        fields: dict[str, Any],
        status: StepStatus,
        next_step: Optional[str],
        now: datetime,
    ) -> None:
        """Merge ``fields`` and append an attempt entry for ``step_name``."""
        self.fields = {**self.fields, **fields}
        self.step_history.append(
            StepEntry(
                step_name=step_name, timestamp=now, status=status, fields=dict(fields)
            )
        )
        self.current_step = next_step or step_name
        self.last_activity = now

    def apply_error(self, step_name: str, error: str, now: datetime) -> bool:
        """Record a failed attempt and move back to ``step_name``.

        Returns ``True`` while the retry ceiling has not been reached.
        """
        self.step_history.append(
            StepEntry(
                step_name=step_name, timestamp=now, status=StepStatus.ERROR, error=error
            )
        )
        self.current_step = step_name
        self.retry_count += 1
        self.last_activity = now

        should_retry = self.retry_count < self.max_retries
        if not should_retry:
            self._close_open_steps(StepStatus.CANCELLED)
        return should_retry

    def apply_complete(self, now: datetime) -> None:
        self._close_open_steps(StepStatus.COMPLETED)
        self.completed_at = now
        self.last_activity = now

    def _close_open_steps(self, status: StepStatus) -> None:
        for step in self.step_history:
            if step.status in (StepStatus.PENDING, StepStatus.IN_PROGRESS):
                step.status = status


class FlowStats(BaseModel):
    """Read-only snapshot of the store for observability."""

    total: int = 0
    active: int = 0
    completed: int = 0
    errored: int = 0
    average_duration_ms: float = 0.0

    @classmethod
    def from_records(cls, records: list[FlowRecord]) -> "FlowStats":
        completed = [r for r in records if r.is_completed]
        average = (
            sum(r.duration_ms for r in completed) / len(completed) if completed else 0.0
        )
        return cls(
            total=len(records),
            active=len(records) - len(completed),
            completed=len(completed),
            errored=sum(1 for r in records if r.has_errors),
            average_duration_ms=average,
        )
