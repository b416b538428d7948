"""Inbound and outbound contracts for the collection tools."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..collaborators.base import ContactPayload, EventPayload
from ..dates import ParsedDate
from ..errors import ErrorKind
from ..flows.models import FieldValue


class ContactStep(str, Enum):
    START = "start"
    COLLECT_NAME = "collect-name"
    COLLECT_EMAIL = "collect-email"
    COLLECT_BIRTHDAY = "collect-birthday"
    CONFIRM = "confirm"
    SUBMIT = "submit"


class EventStep(str, Enum):
    START = "start"
    COLLECT_NAME = "collect-name"
    COLLECT_DATE = "collect-date"
    COLLECT_RECURRING = "collect-recurring"
    CONFIRM = "confirm"
    SUBMIT = "submit"


class ContactFields(BaseModel):
    """Values a caller may supply on any contact turn; all optional."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    birthday: Optional[str] = None


class EventFields(BaseModel):
    """Values a caller may supply on any event turn; all optional."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: Optional[str] = None
    date: Optional[str] = None
    is_recurring: Optional[Union[bool, str]] = Field(default=None, alias="isRecurring")


class ContactSubmission(BaseModel):
    name: str
    email: str
    birthday: ParsedDate

    def to_payload(self) -> ContactPayload:
        return ContactPayload(
            name=self.name, email=self.email, birthday=self.birthday.timestamp
        )


class EventSubmission(BaseModel):
    name: str
    date: ParsedDate
    is_recurring: bool = False

    def to_payload(self) -> EventPayload:
        return EventPayload(
            name=self.name, date=self.date.timestamp, is_recurring=self.is_recurring
        )


class ToolStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    ERROR = "error"


class ToolResult(BaseModel):
    """Result handed back to the orchestration layer after every turn.

    ``next_step`` is always set unless the flow succeeded. ``fields`` carries
    the values accumulated so far so the caller can show a running summary.
    """

    model_config = ConfigDict(populate_by_name=True)

    status: ToolStatus
    message: str
    session_id: str = Field(alias="sessionId")
    next_step: Optional[str] = Field(default=None, alias="nextStep")
    field: Optional[str] = None
    error_kind: Optional[ErrorKind] = Field(default=None, alias="errorKind")
    fields: Dict[str, FieldValue] = Field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, omitting unset values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ContactDetails(BaseModel):
    id: str
    name: str
    email: str
    birthday: str


class EventDetails(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    date: str
    is_recurring: bool = Field(alias="isRecurring")


class ContactResult(ToolResult):
    contact_details: Optional[ContactDetails] = Field(
        default=None, alias="contactDetails"
    )


class EventResult(ToolResult):
    event_details: Optional[EventDetails] = Field(default=None, alias="eventDetails")
