"""Shared step machine behind the collection tools."""

from __future__ import annotations

import abc
import asyncio
import datetime as dt
import logging
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from ..collaborators.base import (
    CreateResult,
    EntityBackend,
    Identity,
    IdentityProvider,
)
from ..config import ChatflowConfig, load_config
from ..dates import DateParseError, DateResolver, ParsedDate
from ..errors import (
    ErrorKind,
    FieldValidationError,
    StepValidationError,
    classify_error,
)
from ..flows import FlowRecord, FlowStore, StepStatus, get_flow_store
from ..utils.logging import log_tool_call
from ..validation import sanitize_input, validate_session_id
from .contracts import FieldValue, ToolResult, ToolStatus

logger = logging.getLogger(__name__)

START = "start"
CONFIRM = "confirm"
SUBMIT = "submit"

IncomingFields = Union[Mapping[str, Any], BaseModel, None]


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


class StepExecutor(metaclass=abc.ABCMeta):
    """Drives one collection tool through its ordered steps.

    Every ``collect-*`` step owns exactly one field. ``confirm`` and
    ``submit`` own nothing and re-validate everything collected so far. A
    validation error always sends the caller back to the step that owns the
    offending field, never forward. Only ``submit`` talks to the outside
    world: one identity lookup and one create call on the backend.
    """

    tool_name: ClassVar[str]
    entity_label: ClassVar[str]
    steps: ClassVar[Type[Enum]]
    # collect step -> field it owns, in step order
    field_owners: ClassVar[Dict[str, str]]
    field_labels: ClassVar[Dict[str, str]]
    fields_model: ClassVar[Type[BaseModel]]
    result_model: ClassVar[Type[ToolResult]] = ToolResult
    date_field: ClassVar[str]

    def __init__(
        self,
        backend: EntityBackend,
        identity_provider: IdentityProvider,
        store: Optional[FlowStore] = None,
        config: Optional[ChatflowConfig] = None,
        resolver: Optional[DateResolver] = None,
    ) -> None:
        self.config = config or load_config()
        self.backend = backend
        self.identity_provider = identity_provider
        self.store = store or get_flow_store()
        self.resolver = resolver or self.build_resolver(self.config)

    # ------------------------------------------------------------------
    # Hooks supplied by each tool
    @abc.abstractmethod
    def build_resolver(self, config: ChatflowConfig) -> DateResolver:
        """Resolver carrying the year policy for this tool's date field."""

    @abc.abstractmethod
    def validate_field(self, field: str, value: Any, now: dt.datetime) -> FieldValue:
        """Return the normalized value or raise ``FieldValidationError``."""

    @abc.abstractmethod
    def prompt(
        self, step: str, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> str:
        """Message asking for the value ``step`` collects."""

    @abc.abstractmethod
    def confirm_message(
        self, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> str:
        """Message returned once the caller confirmed the summary."""

    @abc.abstractmethod
    def build_submission(
        self, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> BaseModel:
        """Typed, fully resolved values for the backend call."""

    @abc.abstractmethod
    async def create(
        self, identity: Identity, submission: Any, idempotency_key: str
    ) -> CreateResult:
        """Issue the single create call for ``submission``."""

    @abc.abstractmethod
    def success_result(
        self,
        session_id: str,
        entity_id: str,
        submission: Any,
        fields: Dict[str, FieldValue],
    ) -> ToolResult:
        """Result returned after the backend accepted the entity."""

    # ------------------------------------------------------------------
    # Step bookkeeping
    @property
    def step_order(self) -> List[str]:
        return [step.value for step in self.steps]

    def next_step(self, step: str) -> str:
        order = self.step_order
        return order[min(order.index(step) + 1, len(order) - 1)]

    def owner_of(self, field: str) -> str:
        for step, owned in self.field_owners.items():
            if owned == field:
                return step
        raise KeyError(field)

    def fields_up_to(self, step: str) -> List[str]:
        """Fields owned by ``step`` and the steps before it, in step order."""
        limit = self.step_order.index(step)
        return [
            field
            for owner, field in self.field_owners.items()
            if self.step_order.index(owner) <= limit
        ]

    def label(self, field: str) -> str:
        return self.field_labels.get(field, field)

    def resolve_date(self, value: Any, now: dt.datetime) -> ParsedDate:
        try:
            return self.resolver.resolve(str(value), now)
        except DateParseError as exc:
            raise FieldValidationError(
                self.date_field, exc.message, kind=exc.kind
            ) from exc

    # ------------------------------------------------------------------
    async def execute(
        self,
        step: Union[str, Enum],
        fields: IncomingFields = None,
        session_id: Optional[str] = None,
    ) -> ToolResult:
        """Run one turn of the flow and return the caller-facing result."""

        raw_step = step.value if isinstance(step, Enum) else str(step or "")
        try:
            session_id = validate_session_id(session_id)
        except FieldValidationError as exc:
            return self._error(exc.message, "", START, field=exc.field, kind=exc.kind)

        try:
            current = self.steps(raw_step).value
        except ValueError:
            log_tool_call(self.tool_name, raw_step or "unknown", session_id, {})
            return self._error(
                "Invalid step. Let's start over.", session_id, START, field="step"
            )

        if current == START:
            log_tool_call(self.tool_name, current, session_id, {})
            return await self._start(session_id)

        record = await self._load(session_id, current)
        try:
            incoming = self._incoming(fields, current)
            log_tool_call(self.tool_name, current, session_id, incoming)
            now = self.resolver.now()
            collected = self._merge(record, incoming, current)
            validated = self._validate(collected, current, now)
        except StepValidationError as exc:
            return await self._reject(session_id, exc)

        if current == SUBMIT:
            return await self._submit(session_id, validated, now)

        following = self.next_step(current)
        updated = await self.store.update(
            session_id, current, validated, StepStatus.COMPLETED, following
        )
        if current == CONFIRM:
            message = self.confirm_message(validated, now)
        else:
            message = self.prompt(following, validated, now)
        return self._result(
            ToolStatus.IN_PROGRESS,
            message,
            session_id,
            next_step=following,
            fields=updated.fields if updated else validated,
        )

    # ------------------------------------------------------------------
    async def _start(self, session_id: str) -> ToolResult:
        first = self.next_step(START)
        await self.store.start(session_id, self.tool_name)
        await self.store.update(session_id, START, {}, StepStatus.COMPLETED, first)
        return self._result(
            ToolStatus.IN_PROGRESS,
            self.prompt(first, {}, self.resolver.now()),
            session_id,
            next_step=first,
        )

    async def _load(self, session_id: str, step: str) -> FlowRecord:
        record = await self.store.get(session_id)
        stale = record is not None and (
            record.is_completed or record.tool_name != self.tool_name
        )
        if record is None or stale:
            logger.info(
                f"Starting fresh {self.tool_name} flow for session {session_id}"
            )
            record = await self.store.start(
                session_id, self.tool_name, initial_step=step
            )
        return record

    def _incoming(self, fields: IncomingFields, step: str) -> Dict[str, FieldValue]:
        if fields is None:
            data: Dict[str, Any] = {}
        elif isinstance(fields, BaseModel):
            data = fields.model_dump(by_alias=True, exclude_none=True)
        else:
            try:
                raw = dict(fields)
            except (TypeError, ValueError) as exc:
                raise StepValidationError(
                    self.field_owners.get(step, "fields"),
                    step,
                    "The submitted values could not be read.",
                ) from exc
            try:
                parsed = self.fields_model.model_validate(raw)
            except ValidationError as exc:
                loc = exc.errors()[0].get("loc") or ()
                field = str(loc[0]) if loc else self.field_owners.get(step, "fields")
                owned = field in self.field_owners.values()
                owner = self.owner_of(field) if owned else step
                raise StepValidationError(
                    field, owner, f"The {self.label(field)} value could not be read."
                ) from exc
            data = parsed.model_dump(by_alias=True, exclude_none=True)
        return {key: sanitize_input(value) for key, value in data.items()}

    def _merge(
        self, record: FlowRecord, incoming: Mapping[str, FieldValue], step: str
    ) -> Dict[str, FieldValue]:
        """Stored values overlaid with non-empty incoming ones.

        Keys owned by steps after ``step`` are dropped.
        """
        merged: Dict[str, FieldValue] = {}
        for field in self.fields_up_to(step):
            value = incoming.get(field)
            if _is_blank(value):
                value = record.fields.get(field)
            if not _is_blank(value):
                merged[field] = value
        return merged

    def _validate(
        self, collected: Mapping[str, FieldValue], step: str, now: dt.datetime
    ) -> Dict[str, FieldValue]:
        owned = self.field_owners.get(step)
        fields = self.fields_up_to(step)
        for field in fields:
            if field != owned and _is_blank(collected.get(field)):
                raise StepValidationError(
                    field,
                    self.owner_of(field),
                    f"I still need the {self.label(field)} before we can continue.",
                )

        validated: Dict[str, FieldValue] = {}
        for field in fields:
            try:
                validated[field] = self.validate_field(field, collected.get(field), now)
            except FieldValidationError as exc:
                raise StepValidationError(
                    field, self.owner_of(field), exc.message, exc.kind
                ) from exc
        return validated

    async def _reject(self, session_id: str, exc: StepValidationError) -> ToolResult:
        record, should_retry = await self.store.mark_error(
            session_id, exc.step, exc.message
        )
        if record is not None and not should_retry:
            await self.store.cancel(session_id)
            logger.warning(
                f"{self.tool_name} flow {session_id} abandoned after "
                f"{record.retry_count} failed attempts"
            )
            return self._error(
                "Too many invalid attempts. Let's start over.",
                session_id,
                START,
                field=exc.field,
                kind=ErrorKind.RETRY_EXCEEDED,
            )
        return self._error(
            exc.message,
            session_id,
            exc.step,
            field=exc.field,
            kind=exc.kind,
            fields=record.fields if record else {},
        )

    async def _submit(
        self, session_id: str, fields: Dict[str, FieldValue], now: dt.datetime
    ) -> ToolResult:
        submission = self.build_submission(fields, now)
        try:
            outcome = await asyncio.wait_for(
                self._identify_and_create(submission, session_id),
                timeout=self.config.flows.submit_timeout_seconds,
            )
        except Exception as exc:
            error = classify_error(exc)
            outcome = CreateResult.failed(error.message, error.kind)

        if outcome.success and outcome.id:
            record = await self.store.complete(session_id)
            logger.info(
                f"Created {self.entity_label} {outcome.id} for session {session_id}"
            )
            return self.success_result(
                session_id, outcome.id, submission, record.fields if record else fields
            )

        kind = outcome.kind or ErrorKind.PERSISTENCE
        error_message = outcome.error or f"Failed to create {self.entity_label}"
        logger.warning(
            f"{self.tool_name} submit failed for session {session_id}: "
            f"{kind.value}: {error_message}"
        )
        return await self._route_failure(session_id, kind, error_message, fields)

    async def _identify_and_create(
        self, submission: BaseModel, session_id: str
    ) -> CreateResult:
        identity = await self.identity_provider.get_identity()
        return await self.create(identity, submission, session_id)

    async def _route_failure(
        self,
        session_id: str,
        kind: ErrorKind,
        error_message: str,
        fields: Dict[str, FieldValue],
    ) -> ToolResult:
        if kind == ErrorKind.AUTH_REQUIRED:
            await self.store.cancel(session_id)
            return self._error(
                f"You need to be logged in to create {self.entity_label}s. "
                "Please sign in and start again.",
                session_id,
                START,
                field="auth",
                kind=kind,
            )
        if kind == ErrorKind.INVALID_DATE:
            return await self._reject(
                session_id,
                StepValidationError(
                    self.date_field,
                    self.owner_of(self.date_field),
                    f"There was an issue with the {self.label(self.date_field)} "
                    f"format. {error_message}",
                    kind,
                ),
            )
        if kind in (ErrorKind.NETWORK, ErrorKind.RATE_LIMIT):
            return self._error(
                error_message, session_id, SUBMIT, kind=kind, fields=fields
            )
        return self._error(
            f"There was an error creating the {self.entity_label}: {error_message}",
            session_id,
            START,
            kind=kind,
            fields=fields,
        )

    # ------------------------------------------------------------------
    def _result(
        self, status: ToolStatus, message: str, session_id: str, **extra: Any
    ) -> ToolResult:
        return self.result_model(
            status=status, message=message, session_id=session_id, **extra
        )

    def _error(
        self,
        message: str,
        session_id: str,
        next_step: str,
        field: Optional[str] = None,
        kind: ErrorKind = ErrorKind.VALIDATION,
        fields: Optional[Dict[str, FieldValue]] = None,
    ) -> ToolResult:
        return self._result(
            ToolStatus.ERROR,
            message,
            session_id,
            next_step=next_step,
            field=field,
            error_kind=kind,
            fields=fields or {},
        )
