import asyncio
import datetime as dt

import pytest

import chatflow.flows as flows
from chatflow.collaborators import CreateResult


class FakeClock:
    """Deterministic clock for flow store tests."""

    def __init__(self, start: dt.datetime | None = None) -> None:
        self.now = start or dt.datetime(2025, 3, 12, 12, tzinfo=dt.timezone.utc)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += dt.timedelta(**kwargs)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from local config files and the shared store."""
    monkeypatch.setenv("CHATFLOW_CONFIG", str(tmp_path / "missing.yaml"))
    for name in ("CHATFLOW_STORE", "CHATFLOW_BACKEND_URL", "CHATFLOW_TIMEZONE"):
        monkeypatch.delenv(name, raising=False)
    flows._store_instance = None
    yield
    flows._store_instance = None


@pytest.fixture
def clock():
    return FakeClock()


class ScriptedBackend:
    """Entity backend returning a preset outcome, optionally after a delay."""

    def __init__(self, result=None, delay=0.0):
        self.result = result or CreateResult.ok("entity_1")
        self.delay = delay
        self.calls = []

    async def create_contact(self, identity, payload, idempotency_key):
        self.calls.append((identity, payload, idempotency_key))
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result

    create_event = create_contact


@pytest.fixture
def scripted_backend():
    return ScriptedBackend
