"""In-memory entity backend."""

from __future__ import annotations

import asyncio
import uuid
from typing import Dict, Tuple, Union

from .base import ContactPayload, CreateResult, EntityBackend, EventPayload, Identity

Payload = Union[ContactPayload, EventPayload]


class InMemoryEntityBackend(EntityBackend):
    """Keep created entities in local memory.

    Useful for tests and the interactive CLI. Repeated calls with the same
    idempotency key return the entity created by the first call.
    """

    def __init__(self) -> None:
        self.contacts: Dict[str, Tuple[str, ContactPayload]] = {}
        self.events: Dict[str, Tuple[str, EventPayload]] = {}
        self._by_key: Dict[Tuple[str, str], str] = {}
        self._lock = asyncio.Lock()

    async def _create(
        self,
        kind: str,
        store: Dict[str, Tuple[str, Payload]],
        identity: Identity,
        payload: Payload,
        idempotency_key: str,
    ) -> CreateResult:
        async with self._lock:
            existing = self._by_key.get((kind, idempotency_key))
            if existing:
                return CreateResult.ok(existing)
            entity_id = f"{kind}_{uuid.uuid4().hex[:12]}"
            store[entity_id] = (identity.user_id, payload)
            self._by_key[(kind, idempotency_key)] = entity_id
            return CreateResult.ok(entity_id)

    async def create_contact(
        self, identity: Identity, payload: ContactPayload, idempotency_key: str
    ) -> CreateResult:
        return await self._create(
            "contact", self.contacts, identity, payload, idempotency_key
        )

    async def create_event(
        self, identity: Identity, payload: EventPayload, idempotency_key: str
    ) -> CreateResult:
        return await self._create(
            "event", self.events, identity, payload, idempotency_key
        )
