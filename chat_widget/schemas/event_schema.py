"""
Inbound realtime events, decoded at the transport boundary.

The backend has sent message content under several field names over time
(``message``, ``text``, ``content``). Everything past the connector sees a
single canonical shape: one of ``AgentMessage``, ``TypingSignal`` or
``TicketClosed``.
"""

import logging
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

RECEIVE_MESSAGE = "receive_message"
TICKET_CLOSED = "ticket_closed"
TYPING = "typing"
SEND_MESSAGE = "send_message"
JOIN_ROOM = "join_room"
AUTHENTICATE = "authenticate"

# Legacy content fields, highest priority first.
CONTENT_FIELDS = ("message", "text", "content")


class AgentMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["agent_message"] = "agent_message"
    text: str


class TypingSignal(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["typing"] = "typing"


class TicketClosed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ticket_closed"] = "ticket_closed"
    ticket_id: Optional[str] = None


InboundEvent = Union[AgentMessage, TypingSignal, TicketClosed]


def extract_text(data: dict[str, Any]) -> Optional[str]:
    """Return the first non-empty content field, honouring legacy priority."""
    for name in CONTENT_FIELDS:
        value = data.get(name)
        if isinstance(value, str) and value:
            return value
    return None


def decode_inbound(event: str, data: Any) -> Optional[InboundEvent]:
    """Map a raw ``(event, data)`` frame to a canonical inbound event.

    Returns None for frames the widget does not act on.
    """
    payload = data if isinstance(data, dict) else {}

    if event == TICKET_CLOSED:
        ticket_id = payload.get("ticket_id")
        if ticket_id is None or ticket_id == "":
            ticket_id = payload.get("ticketId")
        if ticket_id is None or ticket_id == "":
            return TicketClosed()
        # Numeric ids are normalised; any other shape is not a closure we can match.
        if isinstance(ticket_id, str) or (isinstance(ticket_id, int) and not isinstance(ticket_id, bool)):
            return TicketClosed(ticket_id=str(ticket_id))
        logger.warning("Closure frame with unusable ticket id ignored: %r", ticket_id)
        return None

    if event == TYPING:
        return TypingSignal()

    if event == RECEIVE_MESSAGE:
        text = extract_text(payload)
        if payload.get("type") == "message" or any(name in payload for name in CONTENT_FIELDS):
            if text:
                return AgentMessage(text=text)
            logger.debug("Message frame without content ignored: %s", payload)
            return None
        if payload.get("type") == TYPING:
            return TypingSignal()

    logger.debug("Unhandled inbound frame '%s': %s", event, data)
    return None
