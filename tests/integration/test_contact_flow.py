import asyncio
import datetime as dt

import pytest

from chatflow.collaborators import (
    CreateResult,
    Identity,
    InMemoryEntityBackend,
    StaticIdentityProvider,
)
from chatflow.config import ChatflowConfig, FlowConfig
from chatflow.errors import ErrorKind
from chatflow.flows import InMemoryFlowStore
from chatflow.tools import ContactStepExecutor, ToolStatus


def make_executor(backend=None, user="alice", config=None, store=None):
    return ContactStepExecutor(
        backend=backend or InMemoryEntityBackend(),
        identity_provider=StaticIdentityProvider(user),
        store=store or InMemoryFlowStore(),
        config=config or ChatflowConfig(),
    )


async def walk_to_submit(executor, session_id="session-1"):
    await executor.execute("start", {}, session_id)
    await executor.execute("collect-name", {"name": "Ada"}, session_id)
    await executor.execute("collect-email", {"email": "ada@example.com"}, session_id)
    await executor.execute("collect-birthday", {"birthday": "12/10/1815"}, session_id)
    return await executor.execute("confirm", {}, session_id)


@pytest.mark.asyncio
async def test_contact_happy_path():
    backend = InMemoryEntityBackend()
    executor = make_executor(backend)

    result = await executor.execute("start", {}, "session-1")
    assert result.status == ToolStatus.IN_PROGRESS
    assert result.next_step == "collect-name"
    assert result.message == "I'll help you add a new contact. What's their name?"

    result = await executor.execute("collect-name", {"name": "Ada"}, "session-1")
    assert result.next_step == "collect-email"
    assert "Ada's email address" in result.message

    result = await executor.execute(
        "collect-email", {"email": "ada@example.com"}, "session-1"
    )
    assert result.next_step == "collect-birthday"

    result = await executor.execute(
        "collect-birthday", {"birthday": "12/10/1815"}, "session-1"
    )
    assert result.next_step == "confirm"
    assert "**Birthday:** December 10, 1815" in result.message

    result = await executor.execute("confirm", {}, "session-1")
    assert result.next_step == "submit"
    assert result.message.startswith("I'll now create a contact for Ada")

    result = await executor.execute("submit", {}, "session-1")
    assert result.status == ToolStatus.SUCCESS
    assert result.next_step is None
    assert "Successfully created contact **Ada**" in result.message
    assert result.contact_details.name == "Ada"
    assert result.contact_details.birthday == "December 10, 1815"

    (user_id, payload), = backend.contacts.values()
    assert user_id == "alice"
    assert payload.email == "ada@example.com"
    assert payload.birthday == int(dt.datetime(1815, 12, 10, 12).timestamp() * 1000)

    record = await executor.store.get("session-1")
    assert record.is_completed


@pytest.mark.asyncio
async def test_impossible_birthday_returns_to_birthday_step():
    executor = make_executor()
    await executor.execute("start", {}, "s")
    await executor.execute("collect-name", {"name": "Ada"}, "s")
    await executor.execute("collect-email", {"email": "ada@example.com"}, "s")

    result = await executor.execute("collect-birthday", {"birthday": "13/40/1999"}, "s")

    assert result.status == ToolStatus.ERROR
    assert result.next_step == "collect-birthday"
    assert result.field == "birthday"
    assert result.error_kind == ErrorKind.INVALID_DATE
    assert result.fields == {"name": "Ada", "email": "ada@example.com"}
    record = await executor.store.get("s")
    assert record.retry_count == 1
    assert record.current_step == "collect-birthday"

    result = await executor.execute("collect-birthday", {"birthday": "12/10/1815"}, "s")
    assert result.next_step == "confirm"


@pytest.mark.asyncio
async def test_invalid_value_at_confirm_moves_backward():
    executor = make_executor()
    await walk_to_submit(executor, "s")

    result = await executor.execute("confirm", {"birthday": "13/40/1999"}, "s")

    assert result.status == ToolStatus.ERROR
    assert result.next_step == "collect-birthday"


@pytest.mark.asyncio
async def test_unknown_session_asks_for_first_missing_field():
    executor = make_executor()

    result = await executor.execute("confirm", {"name": "Ada"}, "brand-new")

    assert result.status == ToolStatus.ERROR
    assert result.next_step == "collect-email"
    assert result.field == "email"
    assert "email address" in result.message


@pytest.mark.asyncio
async def test_retry_ceiling_abandons_flow():
    executor = make_executor()
    await executor.execute("start", {}, "s")
    await executor.execute("collect-name", {"name": "Ada"}, "s")

    first = await executor.execute("collect-email", {"email": "nope"}, "s")
    second = await executor.execute("collect-email", {"email": "still-nope"}, "s")
    third = await executor.execute("collect-email", {"email": "nope@"}, "s")

    assert first.next_step == second.next_step == "collect-email"
    assert first.message == "Please provide a valid email address"
    assert third.next_step == "start"
    assert third.error_kind == ErrorKind.RETRY_EXCEEDED
    assert third.message == "Too many invalid attempts. Let's start over."
    assert await executor.store.get("s") is None


@pytest.mark.asyncio
async def test_same_inputs_give_same_results():
    turns = [
        ("start", {}),
        ("collect-name", {"name": "Ada"}),
        ("collect-email", {"email": "ada@example.com"}),
        ("collect-birthday", {"birthday": "April 20, 1969"}),
        ("confirm", {}),
    ]
    outputs = []
    for session_id in ("first", "second"):
        executor = make_executor()
        results = [await executor.execute(step, f, session_id) for step, f in turns]
        outputs.append([(r.message, r.next_step, r.fields) for r in results])
    assert outputs[0] == outputs[1]


@pytest.mark.asyncio
async def test_unknown_step_restarts():
    executor = make_executor()
    result = await executor.execute("collect-phone", {}, "s")
    assert result.status == ToolStatus.ERROR
    assert result.field == "step"
    assert result.next_step == "start"
    assert result.message == "Invalid step. Let's start over."


@pytest.mark.asyncio
async def test_missing_session_id_is_rejected():
    executor = make_executor()
    result = await executor.execute("start", {}, "  ")
    assert result.status == ToolStatus.ERROR
    assert result.field == "sessionId"
    assert result.next_step == "start"


@pytest.mark.asyncio
async def test_values_for_later_steps_are_ignored():
    executor = make_executor()
    await executor.execute("start", {}, "s")

    result = await executor.execute(
        "collect-name", {"name": "Ada", "email": "ada@example.com"}, "s"
    )

    assert result.fields == {"name": "Ada"}
    record = await executor.store.get("s")
    assert "email" not in record.fields


@pytest.mark.asyncio
async def test_markup_is_stripped_from_values():
    executor = make_executor()
    await executor.execute("start", {}, "s")
    result = await executor.execute("collect-name", {"name": "  <Ada>  "}, "s")
    assert result.fields == {"name": "Ada"}


@pytest.mark.asyncio
async def test_signed_out_submit_cancels_flow():
    executor = make_executor(user=None)
    await walk_to_submit(executor, "s")

    result = await executor.execute("submit", {}, "s")

    assert result.status == ToolStatus.ERROR
    assert result.field == "auth"
    assert result.error_kind == ErrorKind.AUTH_REQUIRED
    assert result.next_step == "start"
    assert "logged in to create contacts" in result.message
    assert await executor.store.get("s") is None


@pytest.mark.asyncio
async def test_backend_date_rejection_returns_to_birthday_step(scripted_backend):
    backend = scripted_backend(
        CreateResult.failed("Birthday cannot be stored", ErrorKind.INVALID_DATE)
    )
    executor = make_executor(backend)
    await walk_to_submit(executor, "s")

    result = await executor.execute("submit", {}, "s")

    assert result.next_step == "collect-birthday"
    assert result.error_kind == ErrorKind.INVALID_DATE
    assert result.message.startswith("There was an issue with the birthday format.")


@pytest.mark.asyncio
async def test_submit_timeout_keeps_flow_for_retry(scripted_backend):
    backend = scripted_backend(delay=0.2)
    config = ChatflowConfig(flows=FlowConfig(submit_timeout_seconds=0.01))
    executor = make_executor(backend, config=config)
    await walk_to_submit(executor, "s")

    result = await executor.execute("submit", {}, "s")

    assert result.status == ToolStatus.ERROR
    assert result.error_kind == ErrorKind.NETWORK
    assert result.next_step == "submit"
    record = await executor.store.get("s")
    assert record.current_step == "submit"
    assert not record.is_completed

    backend.delay = 0
    result = await executor.execute("submit", {}, "s")
    assert result.status == ToolStatus.SUCCESS
    assert [call[2] for call in backend.calls] == ["s", "s"]


@pytest.mark.asyncio
async def test_persistence_failure_restarts(scripted_backend):
    backend = scripted_backend(CreateResult.failed("database unavailable"))
    executor = make_executor(backend)
    await walk_to_submit(executor, "s")

    result = await executor.execute("submit", {}, "s")

    assert result.next_step == "start"
    assert result.error_kind == ErrorKind.PERSISTENCE
    assert result.message == (
        "There was an error creating the contact: database unavailable"
    )


@pytest.mark.asyncio
async def test_repeated_submit_does_not_duplicate_contact():
    backend = InMemoryEntityBackend()
    executor = make_executor(backend)
    await walk_to_submit(executor, "s")

    first = await executor.backend.create_contact(
        await executor.identity_provider.get_identity(),
        executor.build_submission(
            {"name": "Ada", "email": "ada@example.com", "birthday": "12/10/1815"},
            executor.resolver.now(),
        ).to_payload(),
        "s",
    )
    result = await executor.execute("submit", {}, "s")

    assert result.contact_details.id == first.id
    assert len(backend.contacts) == 1


class SlowIdentityProvider:
    def __init__(self, delay):
        self.delay = delay

    async def get_identity(self):
        await asyncio.sleep(self.delay)
        return Identity(user_id="alice")


@pytest.mark.asyncio
async def test_slow_identity_lookup_counts_against_submit_timeout(scripted_backend):
    backend = scripted_backend()
    executor = ContactStepExecutor(
        backend=backend,
        identity_provider=SlowIdentityProvider(delay=0.2),
        store=InMemoryFlowStore(),
        config=ChatflowConfig(flows=FlowConfig(submit_timeout_seconds=0.01)),
    )
    await walk_to_submit(executor, "s")

    result = await executor.execute("submit", {}, "s")

    assert result.status == ToolStatus.ERROR
    assert result.error_kind == ErrorKind.NETWORK
    assert result.next_step == "submit"
    assert backend.calls == []
    record = await executor.store.get("s")
    assert record.current_step == "submit"


@pytest.mark.asyncio
@pytest.mark.parametrize("fields", [["Ada"], 42, "Ada"])
async def test_unreadable_fields_are_a_validation_error(fields):
    executor = make_executor()
    await executor.execute("start", {}, "s")

    result = await executor.execute("collect-name", fields, "s")

    assert result.status == ToolStatus.ERROR
    assert result.error_kind == ErrorKind.VALIDATION
    assert result.field == "name"
    assert result.next_step == "collect-name"
    assert result.message == "The submitted values could not be read."
    record = await executor.store.get("s")
    assert record.retry_count == 1
