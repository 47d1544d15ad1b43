"""
Append-only, time-ordered message log backed by the durable session store.

Ordering: timestamps never decrease in insertion order. An explicit
timestamp older than the newest entry is clamped to that entry's time,
ties keep insertion order. Appending an exact duplicate is a no-op, so
replaying stored history through the log is safe.

Date separators are derived, never stored: one before the first visitor
message, then one whenever the calendar day changes between consecutive
messages.
"""

import logging
from typing import Callable, Iterable, Optional, Union

from chat_widget.schemas.session_schema import DateSeparator, Message, Sender
from chat_widget.storage.session_store import DurableSessionStore
from chat_widget.utils import calendar_day, format_day, parse_timestamp, utc_now_iso

logger = logging.getLogger(__name__)

LogItem = Union[DateSeparator, Message]


def separator_days(messages: list[Message]) -> list[Optional[DateSeparator]]:
    """For each message, the separator shown before it (or None)."""
    result: list[Optional[DateSeparator]] = []
    user_seen = False
    previous: Optional[Message] = None
    for message in messages:
        day = calendar_day(message.timestamp)
        separator = None
        if not user_seen:
            if message.sender == Sender.USER:
                user_seen = True
                separator = DateSeparator(day=day, label=format_day(day))
        elif previous is not None and day != calendar_day(previous.timestamp):
            separator = DateSeparator(day=day, label=format_day(day))
        result.append(separator)
        previous = message
    return result


class MessageLog:
    """In-memory ordered history mirrored to durable storage on every append."""

    def __init__(self, store: DurableSessionStore, clock: Callable[[], str] = utc_now_iso) -> None:
        self._store = store
        self._clock = clock
        self._messages: list[Message] = []

    def __len__(self) -> int:
        return len(self._messages)

    def restore(self, messages: Iterable[Message]) -> None:
        """Load history from a snapshot without writing it back."""
        self._messages = list(messages)
        logger.debug("Message log restored with %d messages", len(self._messages))

    def append(self, text: str, sender: Sender, timestamp: Optional[str] = None) -> Optional[Message]:
        """Append a message and persist the full log.

        Blank text and exact duplicates are ignored and return None.
        """
        if not text or not text.strip():
            return None

        stamp = timestamp or self._clock()
        if self._messages:
            newest = self._messages[-1].timestamp
            if parse_timestamp(stamp) < parse_timestamp(newest):
                logger.debug("Timestamp %s precedes %s, clamping", stamp, newest)
                stamp = newest

        message = Message(text=text, sender=sender, timestamp=stamp)
        if message in self._messages:
            logger.debug("Duplicate %s message ignored", message.sender.value)
            return None

        self._messages.append(message)
        self._store.save_messages(self._messages)
        logger.debug("Message appended (%s): %s...", message.sender.value, text[:20])
        return message

    def replay(self) -> list[Message]:
        """Full history in stored order."""
        return list(self._messages)

    def replay_with_separators(self) -> list[LogItem]:
        """History interleaved with the date separators that precede messages."""
        items: list[LogItem] = []
        for separator, message in zip(separator_days(self._messages), self._messages):
            if separator is not None:
                items.append(separator)
            items.append(message)
        return items

    def separator_for_last(self) -> Optional[DateSeparator]:
        """Separator that belongs before the most recently appended message."""
        if not self._messages:
            return None
        return separator_days(self._messages)[-1]

    def clear(self) -> None:
        """Empty the log in memory and in storage."""
        self._messages = []
        self._store.save_messages([])
        logger.info("Message log cleared")
