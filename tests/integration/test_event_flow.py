import datetime as dt

import pytest

from chatflow.collaborators import (
    CreateResult,
    InMemoryEntityBackend,
    StaticIdentityProvider,
)
from chatflow.config import ChatflowConfig
from chatflow.errors import ErrorKind
from chatflow.flows import InMemoryFlowStore
from chatflow.tools import EventFields, EventStepExecutor, ToolStatus


@pytest.fixture
def backend():
    return InMemoryEntityBackend()


@pytest.fixture
def executor(backend):
    return EventStepExecutor(
        backend=backend,
        identity_provider=StaticIdentityProvider("alice"),
        store=InMemoryFlowStore(),
        config=ChatflowConfig(),
    )


@pytest.mark.asyncio
async def test_event_happy_path(executor, backend):
    result = await executor.execute("start", {}, "e1")
    assert result.next_step == "collect-name"

    result = await executor.execute("collect-name", {"name": "Launch"}, "e1")
    assert result.next_step == "collect-date"
    assert "When is the Launch event?" in result.message

    result = await executor.execute(
        "collect-date", {"date": "two weeks from today"}, "e1"
    )
    assert result.next_step == "collect-recurring"
    assert result.message == "Is this a recurring annual event? (yes/no)"

    result = await executor.execute("collect-recurring", {"isRecurring": "yes"}, "e1")
    assert result.next_step == "confirm"
    assert "**Recurring annually:** Yes" in result.message
    assert result.fields["isRecurring"] is True

    result = await executor.execute("confirm", {}, "e1")
    assert result.next_step == "submit"
    assert result.message.endswith("that recurs annually.")

    result = await executor.execute("submit", {}, "e1")
    assert result.status == ToolStatus.SUCCESS
    assert "that will recur annually" in result.message
    assert result.event_details.is_recurring is True
    assert result.to_payload()["eventDetails"]["isRecurring"] is True

    (user_id, payload), = backend.events.values()
    expected = dt.date.today() + dt.timedelta(days=14)
    assert payload.date == int(
        dt.datetime.combine(expected, dt.time(12)).timestamp() * 1000
    )
    assert payload.is_recurring is True


@pytest.mark.asyncio
async def test_implausible_year_returns_to_date_step(executor):
    await executor.execute("start", {}, "e1")
    await executor.execute("collect-name", {"name": "Launch"}, "e1")

    result = await executor.execute("collect-date", {"date": "06/25/1500"}, "e1")

    assert result.status == ToolStatus.ERROR
    assert result.next_step == "collect-date"
    assert result.error_kind == ErrorKind.INVALID_DATE
    assert "1500" in result.message


@pytest.mark.asyncio
async def test_empty_recurrence_answer_is_rejected(executor):
    await executor.execute("start", {}, "e1")
    await executor.execute("collect-name", {"name": "Launch"}, "e1")
    await executor.execute("collect-date", {"date": "in 3 months"}, "e1")

    result = await executor.execute("collect-recurring", {"isRecurring": ""}, "e1")

    assert result.status == ToolStatus.ERROR
    assert result.next_step == "collect-recurring"
    assert result.field == "isRecurring"


@pytest.mark.asyncio
async def test_accepts_boolean_and_model_fields(executor):
    await executor.execute("start", {}, "e1")
    await executor.execute("collect-name", EventFields(name="Launch"), "e1")
    await executor.execute("collect-date", {"date": "next month"}, "e1")

    result = await executor.execute(
        "collect-recurring", EventFields(is_recurring=False), "e1"
    )
    assert result.next_step == "confirm"
    assert "**Recurring annually:** No" in result.message

    result = await executor.execute("confirm", {"isRecurring": True}, "e1")
    assert result.fields["isRecurring"] is True
    assert result.message.endswith("that recurs annually.")


def _executor(backend, user="alice"):
    return EventStepExecutor(
        backend=backend,
        identity_provider=StaticIdentityProvider(user),
        store=InMemoryFlowStore(),
        config=ChatflowConfig(),
    )


async def _walk_to_submit(executor, session_id="e1"):
    await executor.execute("start", {}, session_id)
    await executor.execute("collect-name", {"name": "Launch"}, session_id)
    await executor.execute("collect-date", {"date": "in 3 months"}, session_id)
    await executor.execute("collect-recurring", {"isRecurring": "yes"}, session_id)
    return await executor.execute("confirm", {}, session_id)


@pytest.mark.asyncio
async def test_backend_date_rejection_returns_to_date_step(scripted_backend):
    backend = scripted_backend(
        CreateResult.failed("Event date cannot be stored", ErrorKind.INVALID_DATE)
    )
    executor = _executor(backend)
    await _walk_to_submit(executor)

    result = await executor.execute("submit", {}, "e1")

    assert result.status == ToolStatus.ERROR
    assert result.next_step == "collect-date"
    assert result.field == "date"
    assert result.error_kind == ErrorKind.INVALID_DATE
    assert result.message.startswith("There was an issue with the date format.")
    assert result.fields["name"] == "Launch"
    assert result.fields["isRecurring"] is True
    record = await executor.store.get("e1")
    assert record.current_step == "collect-date"
    assert record.retry_count == 1


@pytest.mark.asyncio
async def test_signed_out_event_submit_restarts(scripted_backend):
    backend = scripted_backend()
    executor = _executor(backend, user=None)
    await _walk_to_submit(executor)

    result = await executor.execute("submit", {}, "e1")

    assert result.next_step == "start"
    assert result.field == "auth"
    assert result.error_kind == ErrorKind.AUTH_REQUIRED
    assert "logged in to create events" in result.message
    assert backend.calls == []
    assert await executor.store.get("e1") is None
