"""In-memory implementation of the flow store."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from ..constants import (
    DEFAULT_FLOW_TIMEOUT_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
)
from .models import FlowRecord, FlowStats, StepStatus, utcnow
from .store import FlowStore

logger = logging.getLogger(__name__)


class InMemoryFlowStore(FlowStore):
    """Store flow state in local memory.

    Data does not survive a process restart and is not shared between
    processes; use a shared backend for multi-instance deployments. Records
    handed out are copies, so callers cannot change stored state behind the
    lock.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_FLOW_TIMEOUT_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.timeout = timedelta(seconds=timeout)
        self.sweep_interval = sweep_interval
        self.max_retries = max_retries
        self._clock = clock
        self._flows: Dict[str, FlowRecord] = {}
        self._lock = asyncio.Lock()
        self._cleanup_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    async def start(
        self,
        session_id: str,
        tool_name: str,
        user_id: Optional[str] = None,
        initial_step: str = "start",
    ) -> FlowRecord:
        now = self._clock()
        record = FlowRecord(
            session_id=session_id,
            tool_name=tool_name,
            user_id=user_id,
            current_step=initial_step,
            max_retries=self.max_retries,
            created_at=now,
            last_activity=now,
        )
        async with self._lock:
            self._flows[session_id] = record
        return record.model_copy(deep=True)

    async def get(self, session_id: str) -> FlowRecord | None:
        async with self._lock:
            record = self._flows.get(session_id)
            return record.model_copy(deep=True) if record else None

    async def update(
        self,
        session_id: str,
        step_name: str,
        fields: dict[str, Any],
        status: StepStatus = StepStatus.IN_PROGRESS,
        next_step: Optional[str] = None,
    ) -> FlowRecord | None:
        async with self._lock:
            record = self._flows.get(session_id)
            if not record:
                return None
            record.apply_update(step_name, fields, status, next_step, self._clock())
            return record.model_copy(deep=True)

    async def mark_error(
        self, session_id: str, step_name: str, error: str
    ) -> tuple[FlowRecord | None, bool]:
        async with self._lock:
            record = self._flows.get(session_id)
            if not record:
                return None, False
            should_retry = record.apply_error(step_name, error, self._clock())
            return record.model_copy(deep=True), should_retry

    async def complete(self, session_id: str) -> FlowRecord | None:
        async with self._lock:
            record = self._flows.get(session_id)
            if not record:
                return None
            record.apply_complete(self._clock())
            return record.model_copy(deep=True)

    async def cancel(self, session_id: str) -> bool:
        async with self._lock:
            return self._flows.pop(session_id, None) is not None

    async def list_flows(self, user_id: Optional[str] = None) -> list[FlowRecord]:
        async with self._lock:
            return [
                record.model_copy(deep=True)
                for record in self._flows.values()
                if user_id is None or record.user_id == user_id
            ]

    async def clear(self) -> None:
        async with self._lock:
            self._flows.clear()

    async def stats(self) -> FlowStats:
        async with self._lock:
            return FlowStats.from_records(list(self._flows.values()))

    # ------------------------------------------------------------------
    # Expiry
    async def sweep(self) -> int:
        cutoff = self._clock() - self.timeout
        async with self._lock:
            expired = [
                session_id
                for session_id, record in self._flows.items()
                if record.last_activity < cutoff
            ]
            for session_id in expired:
                del self._flows[session_id]

        for session_id in expired:
            logger.debug(f"Cleaning up expired flow: {session_id}")
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired flows")
        return len(expired)

    async def _run_cleanup(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Flow sweep failed")

    def start_cleanup(self) -> None:
        """Schedule the periodic sweep on the running event loop."""
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
        self._cleanup_task = asyncio.get_running_loop().create_task(
            self._run_cleanup()
        )

    async def stop_cleanup(self) -> None:
        task, self._cleanup_task = self._cleanup_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
