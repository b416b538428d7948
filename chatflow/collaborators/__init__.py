"""Adapters for the identity provider and the entity backend."""

from __future__ import annotations

from .auth import JwksConfig, JwtIdentityProvider, JwtVerifier, StaticIdentityProvider
from .base import (
    ContactPayload,
    CreateResult,
    EntityBackend,
    EventPayload,
    Identity,
    IdentityProvider,
)
from .http import HttpEntityBackend
from .inmemory import InMemoryEntityBackend

__all__ = [
    "Identity",
    "IdentityProvider",
    "StaticIdentityProvider",
    "JwtIdentityProvider",
    "JwtVerifier",
    "JwksConfig",
    "ContactPayload",
    "EventPayload",
    "CreateResult",
    "EntityBackend",
    "InMemoryEntityBackend",
    "HttpEntityBackend",
]
