from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_BIRTHDAY_MIN_YEAR,
    DEFAULT_EVENT_YEAR_WINDOW,
    DEFAULT_FLOW_TIMEOUT_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SUBMIT_TIMEOUT_SECONDS,
    DEFAULT_SWEEP_INTERVAL_SECONDS,
)


class RedisConfig(BaseModel):
    """Configuration for the Redis flow store."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class StoreConfig(BaseModel):
    """Flow store backend selection."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class FlowConfig(BaseModel):
    """Lifecycle limits applied to every flow."""

    timeout_seconds: float = DEFAULT_FLOW_TIMEOUT_SECONDS
    sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES
    submit_timeout_seconds: float = DEFAULT_SUBMIT_TIMEOUT_SECONDS


class ResolverConfig(BaseModel):
    """Date resolver settings."""

    timezone: Optional[str] = None
    event_year_window: int = DEFAULT_EVENT_YEAR_WINDOW
    birthday_min_year: int = DEFAULT_BIRTHDAY_MIN_YEAR


class BackendConfig(BaseModel):
    """Entity backend used by the submit step."""

    base_url: Optional[str] = None
    timeout_seconds: float = 10.0
    max_attempts: int = 3


class AuthConfig(BaseModel):
    """JWKS settings for verifying caller identity tokens."""

    jwks_url: str = ""
    audience: str = ""
    issuer: str = ""
    leeway: int = 30


class ChatflowConfig(BaseModel):
    """Top-level configuration model."""

    flows: FlowConfig = FlowConfig()
    store: StoreConfig = StoreConfig()
    resolver: ResolverConfig = ResolverConfig()
    backend: BackendConfig = BackendConfig()
    auth: AuthConfig = AuthConfig()


def load_config(path: Optional[str] = None) -> ChatflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CHATFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CHATFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = ChatflowConfig(**data)
    else:
        config = ChatflowConfig()

    env_store = os.getenv("CHATFLOW_STORE")
    if env_store:
        config.store.backend = env_store.lower()
    env_backend_url = os.getenv("CHATFLOW_BACKEND_URL")
    if env_backend_url:
        config.backend.base_url = env_backend_url
    env_tz = os.getenv("CHATFLOW_TIMEZONE")
    if env_tz:
        config.resolver.timezone = env_tz
    return config
