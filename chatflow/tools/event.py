"""Event collection tool: name, date and annual recurrence."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Mapping

from ..collaborators.base import CreateResult, Identity
from ..config import ChatflowConfig
from ..dates import DateResolver, event_date_resolver
from ..validation import parse_recurring_response, validate_name
from .base import StepExecutor
from .contracts import (
    EventDetails,
    EventFields,
    EventResult,
    EventStep,
    EventSubmission,
    FieldValue,
    ToolStatus,
)


def _recurrence(is_recurring: bool, recurring: str, once: str) -> str:
    return recurring if is_recurring else once


class EventStepExecutor(StepExecutor):
    tool_name = "event"
    entity_label = "event"
    steps = EventStep
    field_owners = {
        EventStep.COLLECT_NAME.value: "name",
        EventStep.COLLECT_DATE.value: "date",
        EventStep.COLLECT_RECURRING.value: "isRecurring",
    }
    field_labels = {"name": "event name", "date": "date", "isRecurring": "recurrence"}
    fields_model = EventFields
    result_model = EventResult
    date_field = "date"

    def build_resolver(self, config: ChatflowConfig) -> DateResolver:
        return event_date_resolver(config.resolver)

    def validate_field(self, field: str, value: Any, now: dt.datetime) -> FieldValue:
        if field == "name":
            return validate_name(value, label="Event name")
        if field == "date":
            self.resolve_date(value, now)
            return str(value)
        if field == "isRecurring":
            return parse_recurring_response(value)
        raise KeyError(field)

    def prompt(
        self, step: str, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> str:
        name = fields.get("name", "")
        if step == EventStep.COLLECT_NAME:
            return "Let's create a new event. What's the name of the event?"
        if step == EventStep.COLLECT_DATE:
            return (
                f"Great! When is the {name} event? You can provide the date in "
                'any format (e.g., "03/18/2025", "March 18, 2025", "next Tuesday", '
                '"two weeks from today").'
            )
        if step == EventStep.COLLECT_RECURRING:
            return "Is this a recurring annual event? (yes/no)"
        date = self.resolve_date(fields["date"], now)
        recurring = "Yes" if fields["isRecurring"] else "No"
        return (
            "Great! Here's a summary of the event:\n\n"
            f"• **Name:** {name}\n"
            f"• **Date:** {date.display()}\n"
            f"• **Recurring annually:** {recurring}\n\n"
            "Is this information correct? (yes/no)"
        )

    def confirm_message(
        self, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> str:
        date = self.resolve_date(fields["date"], now)
        recurrence = _recurrence(
            bool(fields["isRecurring"]), "that recurs annually", "as a one-time event"
        )
        return (
            f"I'll now create the event {fields['name']} on {date.display()} "
            f"{recurrence}."
        )

    def build_submission(
        self, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> EventSubmission:
        return EventSubmission(
            name=str(fields["name"]),
            date=self.resolve_date(fields["date"], now),
            is_recurring=bool(fields["isRecurring"]),
        )

    async def create(
        self, identity: Identity, submission: EventSubmission, idempotency_key: str
    ) -> CreateResult:
        return await self.backend.create_event(
            identity, submission.to_payload(), idempotency_key
        )

    def success_result(
        self,
        session_id: str,
        entity_id: str,
        submission: EventSubmission,
        fields: Dict[str, FieldValue],
    ) -> EventResult:
        recurrence = _recurrence(
            submission.is_recurring, " that will recur annually", ""
        )
        return EventResult(
            status=ToolStatus.SUCCESS,
            message=(
                f"Successfully created event **{submission.name}** on "
                f"{submission.date.display()}{recurrence}! "
                "It's been added to your calendar."
            ),
            session_id=session_id,
            fields=fields,
            event_details=EventDetails(
                id=entity_id,
                name=submission.name,
                date=submission.date.display(),
                is_recurring=submission.is_recurring,
            ),
        )
