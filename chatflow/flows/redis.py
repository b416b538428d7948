"""Redis-backed flow store for deployments with more than one process."""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, TypeVar

import redis.asyncio as redis
from redis.exceptions import WatchError

from ..constants import (
    DEFAULT_FLOW_TIMEOUT_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
)
from .models import FlowRecord, FlowStats, StepStatus, utcnow
from .store import FlowStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_PREFIX = "chatflow:flow:"


def encode_record(record: FlowRecord) -> str:
    return record.model_dump_json()


def decode_record(raw: str | bytes) -> FlowRecord:
    return FlowRecord.model_validate_json(raw)


class RedisFlowStore(FlowStore):
    """Keep flow records in Redis as JSON documents.

    Each record lives under ``chatflow:flow:<session_id>`` with a TTL equal to
    the inactivity timeout, refreshed on every write. Read-modify-write cycles
    use ``WATCH``/``MULTI`` so concurrent turns never interleave partially.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        timeout: float = DEFAULT_FLOW_TIMEOUT_SECONDS,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], datetime] = utcnow,
        client: Optional[Any] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.timeout = timedelta(seconds=timeout)
        self.sweep_interval = sweep_interval
        self.max_retries = max_retries
        self._clock = clock
        self._redis: Optional[Any] = client
        self._cleanup_task: Optional[asyncio.Task] = None

    @property
    def ttl_seconds(self) -> int:
        return max(1, math.ceil(self.timeout.total_seconds()))

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        await self.stop_cleanup()
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    async def _transact(
        self,
        session_id: str,
        mutate: Callable[[FlowRecord], T],
    ) -> tuple[FlowRecord | None, T | None]:
        """Apply ``mutate`` to the stored record atomically."""
        client = await self._client()
        key = self._key(session_id)
        while True:
            async with client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    raw = await pipe.get(key)
                    if raw is None:
                        await pipe.unwatch()
                        return None, None
                    record = decode_record(raw)
                    outcome = mutate(record)
                    pipe.multi()
                    pipe.set(key, encode_record(record), ex=self.ttl_seconds)
                    await pipe.execute()
                    return record, outcome
                except WatchError:
                    logger.debug(f"Concurrent update on flow {session_id}, retrying")
                    continue

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
        client = await self._client()
        await client.set(
            self._key(session_id), encode_record(record), ex=self.ttl_seconds
        )
        return record

    async def get(self, session_id: str) -> FlowRecord | None:
        client = await self._client()
        raw = await client.get(self._key(session_id))
        return decode_record(raw) if raw is not None else None

    async def update(
        self,
        session_id: str,
        step_name: str,
        fields: dict[str, Any],
        status: StepStatus = StepStatus.IN_PROGRESS,
        next_step: Optional[str] = None,
    ) -> FlowRecord | None:
        record, _ = await self._transact(
            session_id,
            lambda r: r.apply_update(
                step_name, fields, status, next_step, self._clock()
            ),
        )
        return record

    async def mark_error(
        self, session_id: str, step_name: str, error: str
    ) -> tuple[FlowRecord | None, bool]:
        record, should_retry = await self._transact(
            session_id, lambda r: r.apply_error(step_name, error, self._clock())
        )
        return record, bool(should_retry)

    async def complete(self, session_id: str) -> FlowRecord | None:
        record, _ = await self._transact(
            session_id, lambda r: r.apply_complete(self._clock())
        )
        return record

    async def cancel(self, session_id: str) -> bool:
        client = await self._client()
        return bool(await client.delete(self._key(session_id)))

    async def _records(self) -> list[FlowRecord]:
        client = await self._client()
        records = []
        async for key in client.scan_iter(match=f"{KEY_PREFIX}*"):
            raw = await client.get(key)
            if raw is not None:
                records.append(decode_record(raw))
        return records

    async def list_flows(self, user_id: Optional[str] = None) -> list[FlowRecord]:
        return [
            record
            for record in await self._records()
            if user_id is None or record.user_id == user_id
        ]

    async def clear(self) -> None:
        client = await self._client()
        keys = [key async for key in client.scan_iter(match=f"{KEY_PREFIX}*")]
        if keys:
            await client.delete(*keys)

    async def stats(self) -> FlowStats:
        return FlowStats.from_records(await self._records())

    # ------------------------------------------------------------------
    # Expiry
    async def _evict_if_stale(self, key: str, cutoff: datetime) -> bool:
        client = await self._client()
        async with client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                raw = await pipe.get(key)
                if raw is None or decode_record(raw).last_activity >= cutoff:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
                return True
            except WatchError:
                # Touched while we looked at it, so it is not stale.
                return False

    async def sweep(self) -> int:
        client = await self._client()
        cutoff = self._clock() - self.timeout
        evicted = 0
        async for key in client.scan_iter(match=f"{KEY_PREFIX}*"):
            if await self._evict_if_stale(key, cutoff):
                evicted += 1
        if evicted:
            logger.info(f"Cleaned up {evicted} expired flows")
        return evicted

    async def _run_cleanup(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Flow sweep failed")

    def start_cleanup(self) -> None:
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
