"""Contracts for the systems a flow talks to at submit time."""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from pydantic import BaseModel, Field

from ..errors import ErrorKind


class Identity(BaseModel):
    """Authenticated caller on whose behalf an entity is created."""

    user_id: str
    token: Optional[str] = None
    claims: Dict[str, Any] = Field(default_factory=dict)


class ContactPayload(BaseModel):
    name: str
    email: str
    birthday: int = Field(..., description="Milliseconds since epoch, local noon")


class EventPayload(BaseModel):
    name: str
    date: int = Field(..., description="Milliseconds since epoch, local noon")
    is_recurring: bool = False


class CreateResult(BaseModel):
    """Outcome of a create call; ``kind`` classifies failures."""

    success: bool
    id: Optional[str] = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, entity_id: str) -> "CreateResult":
        return cls(success=True, id=entity_id)

    @classmethod
    def failed(
        cls, error: str, kind: ErrorKind = ErrorKind.PERSISTENCE
    ) -> "CreateResult":
        return cls(success=False, error=error, kind=kind)


class IdentityProvider(Protocol):
    """Source of the caller identity, consulted once per submit."""

    async def get_identity(self) -> Identity:
        """Return the current identity or raise ``AuthenticationRequired``."""


class EntityBackend(Protocol):
    """Persistence collaborator that creates the collected entities.

    ``idempotency_key`` is stable for a flow, so retrying a submit after a
    timeout does not create a duplicate.
    """

    async def create_contact(
        self, identity: Identity, payload: ContactPayload, idempotency_key: str
    ) -> CreateResult:
        """Create a contact record."""

    async def create_event(
        self, identity: Identity, payload: EventPayload, idempotency_key: str
    ) -> CreateResult:
        """Create a calendar event."""
