"""Visitor, ticket and message models persisted by the widget."""

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chat_widget.utils import utc_now_iso


class Sender(str, Enum):
    USER = "user"
    AGENT = "agent"


class VisitorIdentity(BaseModel):
    """Anonymous visitor identifier, immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str


class UserDetails(BaseModel):
    """Onboarding answers, stored with the widget's camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    email: str = ""


class TicketInfo(BaseModel):
    """Ticket association; both fields are None until a ticket exists."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    organization_id: Optional[str] = Field(default=None, alias="organizationId")

    @property
    def is_active(self) -> bool:
        return self.id is not None


class Message(BaseModel):
    """A single chat message. Immutable once appended to the log."""

    model_config = ConfigDict(frozen=True)

    text: str
    sender: Sender
    timestamp: str = Field(default_factory=utc_now_iso)

    @field_validator("sender", mode="before")
    @classmethod
    def _legacy_bot_sender(cls, value: Any) -> Any:
        # Older widget builds stored agent messages as "bot".
        if value == "bot":
            return Sender.AGENT
        return value


class DateSeparator(BaseModel):
    """Synthetic calendar-day marker shown before a message. Never persisted."""

    model_config = ConfigDict(frozen=True)

    day: date
    label: str


class SessionSnapshot(BaseModel):
    """Everything the durable store restores on reload."""

    user_details: UserDetails = Field(default_factory=UserDetails)
    ticket_info: TicketInfo = Field(default_factory=TicketInfo)
    messages: list[Message] = Field(default_factory=list)
