"""
Durable session store for onboarding answers, ticket association and messages.

Each record lives under its own storage key and is parsed on its own, so a
corrupt record only costs that record. Write failures never propagate: the
store logs them and keeps working from memory for the rest of its lifetime.
"""

import json
import logging
from typing import Callable, Iterable, TypeVar

from pydantic import TypeAdapter, ValidationError

from chat_widget.schemas.session_schema import (
    Message,
    SessionSnapshot,
    TicketInfo,
    UserDetails,
)
from chat_widget.storage.backends import KeyValueStorage, StorageError

logger = logging.getLogger(__name__)

USER_DETAILS_KEY = "chat-widget-user-details"
TICKET_INFO_KEY = "chat-widget-ticket-info"
MESSAGES_KEY = "chat-widget-messages"

T = TypeVar("T")

_message_list = TypeAdapter(list[Message])


class DurableSessionStore:
    """Persists the three session records and serves them back on reload."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self._durable = True
        self._user_details = UserDetails()
        self._ticket_info = TicketInfo()
        self._messages: list[Message] = []

    @property
    def is_durable(self) -> bool:
        """False once a write has failed and the store went memory-only."""
        return self._durable

    # ------------------------------------------------------------------ #
    # Reading
    # ------------------------------------------------------------------ #

    def load(self) -> SessionSnapshot:
        """Read all three records, substituting defaults for any that fail."""
        if self._durable:
            self._user_details = self._read(USER_DETAILS_KEY, UserDetails.model_validate_json, UserDetails)
            self._ticket_info = self._read(TICKET_INFO_KEY, TicketInfo.model_validate_json, TicketInfo)
            self._messages = self._read(MESSAGES_KEY, _message_list.validate_json, list)
            logger.debug(
                "Session loaded: email=%s ticket=%s messages=%d",
                bool(self._user_details.email), self._ticket_info.id, len(self._messages),
            )
        return SessionSnapshot(
            user_details=self._user_details.model_copy(),
            ticket_info=self._ticket_info.model_copy(),
            messages=list(self._messages),
        )

    def _read(self, key: str, parse: Callable[[str], T], default: Callable[[], T]) -> T:
        try:
            raw = self._storage.get(key)
        except StorageError as exc:
            logger.error("Failed to read '%s', using default: %s", key, exc)
            return default()
        if raw is None:
            return default()
        try:
            return parse(raw)
        except (ValidationError, ValueError) as exc:
            logger.error("Failed to parse '%s', using default: %s", key, exc)
            return default()

    # ------------------------------------------------------------------ #
    # Writing
    # ------------------------------------------------------------------ #

    def save_user_details(self, details: UserDetails) -> None:
        self._user_details = details.model_copy()
        self._write(USER_DETAILS_KEY, details.model_dump_json(by_alias=True))

    def save_ticket_info(self, ticket: TicketInfo) -> None:
        self._ticket_info = ticket.model_copy()
        self._write(TICKET_INFO_KEY, ticket.model_dump_json(by_alias=True))

    def save_messages(self, messages: Iterable[Message]) -> None:
        """Replace the persisted message history."""
        self._messages = list(messages)
        self._write(MESSAGES_KEY, self._dump_messages())

    def append_messages(self, messages: Iterable[Message]) -> None:
        self._messages.extend(messages)
        self._write(MESSAGES_KEY, self._dump_messages())

    def clear_ticket_state(self) -> None:
        """Drop ticket info and messages together; user details survive."""
        self._ticket_info = TicketInfo()
        self._messages = []
        self._remove([TICKET_INFO_KEY, MESSAGES_KEY])

    def reset(self) -> None:
        """Forget everything, user details included."""
        self._user_details = UserDetails()
        self._ticket_info = TicketInfo()
        self._messages = []
        self._remove([USER_DETAILS_KEY, TICKET_INFO_KEY, MESSAGES_KEY])

    def _dump_messages(self) -> str:
        return json.dumps([m.model_dump(mode="json") for m in self._messages])

    def _write(self, key: str, value: str) -> None:
        if not self._durable:
            return
        try:
            self._storage.set(key, value)
        except StorageError as exc:
            self._degrade(key, exc)

    def _remove(self, keys: list[str]) -> None:
        if not self._durable:
            return
        try:
            self._storage.remove_many(keys)
        except StorageError as exc:
            self._degrade(", ".join(keys), exc)

    def _degrade(self, what: str, exc: Exception) -> None:
        self._durable = False
        logger.error("Storage write failed for '%s', continuing in memory: %s", what, exc)
