"""Flow state storage for multi-turn collection flows."""

from __future__ import annotations

import os
from typing import Optional

from ..config import ChatflowConfig, load_config
from .inmemory import InMemoryFlowStore
from .models import FlowRecord, FlowStats, StepEntry, StepStatus
from .store import FlowStore

_store_instance: FlowStore | None = None


def get_flow_store(
    backend: Optional[str] = None, config: Optional[ChatflowConfig] = None
) -> FlowStore:
    """Factory function to obtain the flow store.

    The backend is selected from ``backend``, the ``CHATFLOW_STORE``
    environment variable, or loaded configuration. Without explicit
    arguments the previously created store is reused so every executor in a
    process shares the same flows.
    """

    global _store_instance
    if _store_instance is not None and backend is None and config is None:
        return _store_instance

    config = config or load_config()
    backend = (backend or os.getenv("CHATFLOW_STORE") or config.store.backend).lower()
    flows = config.flows

    if backend == "inmemory":
        _store_instance = InMemoryFlowStore(
            timeout=flows.timeout_seconds,
            sweep_interval=flows.sweep_interval_seconds,
            max_retries=flows.max_retries,
        )
    elif backend == "redis":
        from .redis import RedisFlowStore

        redis_conf = config.store.redis
        _store_instance = RedisFlowStore(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            timeout=flows.timeout_seconds,
            sweep_interval=flows.sweep_interval_seconds,
            max_retries=flows.max_retries,
        )
    else:
        raise ValueError(f"Unsupported flow store backend: {backend}")

    return _store_instance


__all__ = [
    "FlowRecord",
    "FlowStats",
    "StepEntry",
    "StepStatus",
    "FlowStore",
    "InMemoryFlowStore",
    "get_flow_store",
]
