"""Contact collection tool: name, email and birthday."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Mapping

from ..collaborators.base import CreateResult, Identity
from ..config import ChatflowConfig
from ..dates import DateResolver, birthday_resolver
from ..validation import validate_email, validate_name
from .base import StepExecutor
from .contracts import (
    ContactDetails,
    ContactFields,
    ContactResult,
    ContactStep,
    ContactSubmission,
    FieldValue,
    ToolStatus,
)


class ContactStepExecutor(StepExecutor):
    """Collects a contact over ``collect-name``, ``collect-email`` and
    ``collect-birthday``, then confirms and submits it."""

    tool_name = "contact"
    entity_label = "contact"
    steps = ContactStep
    field_owners = {
        ContactStep.COLLECT_NAME.value: "name",
        ContactStep.COLLECT_EMAIL.value: "email",
        ContactStep.COLLECT_BIRTHDAY.value: "birthday",
    }
    field_labels = {"name": "name", "email": "email address", "birthday": "birthday"}
    fields_model = ContactFields
    result_model = ContactResult
    date_field = "birthday"

    def build_resolver(self, config: ChatflowConfig) -> DateResolver:
        return birthday_resolver(config.resolver)

    def validate_field(self, field: str, value: Any, now: dt.datetime) -> FieldValue:
        if field == "name":
            return validate_name(value)
        if field == "email":
            return validate_email(value)
        if field == "birthday":
            # keep the raw text; it is resolved again at submit time
            self.resolve_date(value, now)
            return str(value)
        raise KeyError(field)

    def prompt(
        self, step: str, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> str:
        name = fields.get("name", "")
        if step == ContactStep.COLLECT_NAME:
            return "I'll help you add a new contact. What's their name?"
        if step == ContactStep.COLLECT_EMAIL:
            return f"Great! Now, what's {name}'s email address?"
        if step == ContactStep.COLLECT_BIRTHDAY:
            return (
                f"Perfect! Now, when is {name}'s birthday? You can use formats "
                'like "04/20/1969" or "April 20, 1969".'
            )
        birthday = self.resolve_date(fields["birthday"], now)
        return (
            "Here's the summary:\n\n"
            f"• **Name:** {name}\n"
            f"• **Email:** {fields['email']}\n"
            f"• **Birthday:** {birthday.display()}\n\n"
            "Is this information correct?"
        )

    def confirm_message(
        self, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> str:
        birthday = self.resolve_date(fields["birthday"], now)
        return (
            f"I'll now create a contact for {fields['name']} with email "
            f"{fields['email']} and birthday {birthday.display()}."
        )

    def build_submission(
        self, fields: Mapping[str, FieldValue], now: dt.datetime
    ) -> ContactSubmission:
        return ContactSubmission(
            name=str(fields["name"]),
            email=str(fields["email"]),
            birthday=self.resolve_date(fields["birthday"], now),
        )

    async def create(
        self, identity: Identity, submission: ContactSubmission, idempotency_key: str
    ) -> CreateResult:
        return await self.backend.create_contact(
            identity, submission.to_payload(), idempotency_key
        )

    def success_result(
        self,
        session_id: str,
        entity_id: str,
        submission: ContactSubmission,
        fields: Dict[str, FieldValue],
    ) -> ContactResult:
        return ContactResult(
            status=ToolStatus.SUCCESS,
            message=(
                f"Successfully created contact **{submission.name}**! "
                "They've been added to your contact list."
            ),
            session_id=session_id,
            fields=fields,
            contact_details=ContactDetails(
                id=entity_id,
                name=submission.name,
                email=submission.email,
                birthday=submission.birthday.display(),
            ),
        )
