"""Tests for the append-only message log and its date separators."""

from datetime import date

from chat_widget.conversation.message_log import MessageLog, separator_days
from chat_widget.schemas.session_schema import DateSeparator, Message, Sender
from chat_widget.storage.session_store import DurableSessionStore

T0 = "2025-03-15T10:00:00+00:00"
T1 = "2025-03-15T10:05:00+00:00"
T2 = "2025-03-15T10:10:00+00:00"
NEXT_DAY = "2025-03-16T09:00:00+00:00"


class TestAppend:
    def test_append_returns_message(self, message_log):
        message = message_log.append("hello", Sender.USER, T0)
        assert message == Message(text="hello", sender=Sender.USER, timestamp=T0)

    def test_blank_text_ignored(self, message_log):
        assert message_log.append("   ", Sender.USER) is None
        assert message_log.append("", Sender.AGENT) is None
        assert len(message_log) == 0

    def test_timestamp_defaults_to_clock(self, session_store):
        log = MessageLog(session_store, clock=lambda: T1)
        assert log.append("hi", Sender.USER).timestamp == T1

    def test_ordering_preserved(self, message_log):
        for text, ts in [("a", T0), ("b", T1), ("c", T1), ("d", T2)]:
            message_log.append(text, Sender.USER, ts)
        assert [m.text for m in message_log.replay()] == ["a", "b", "c", "d"]

    def test_earlier_timestamp_clamped(self, message_log):
        message_log.append("late", Sender.USER, T2)
        message = message_log.append("early", Sender.AGENT, T0)
        assert message.timestamp == T2
        assert [m.text for m in message_log.replay()] == ["late", "early"]

    def test_exact_duplicate_ignored(self, message_log):
        message_log.append("hi", Sender.USER, T0)
        assert message_log.append("hi", Sender.USER, T0) is None
        assert len(message_log) == 1

    def test_same_text_different_sender_kept(self, message_log):
        message_log.append("ok", Sender.USER, T0)
        message_log.append("ok", Sender.AGENT, T0)
        assert len(message_log) == 2

    def test_string_sender_accepted(self, message_log):
        assert message_log.append("hi", "agent", T0).sender == Sender.AGENT


class TestPersistence:
    def test_round_trip_through_reload(self, storage, message_log):
        message_log.append("a", Sender.USER, T0)
        message_log.append("b", Sender.AGENT, T1)

        reloaded = MessageLog(DurableSessionStore(storage))
        reloaded.restore(DurableSessionStore(storage).load().messages)
        assert reloaded.replay() == message_log.replay()

    def test_replay_is_pure(self, message_log):
        message_log.append("a", Sender.USER, T0)
        first = message_log.replay()
        first.clear()
        assert len(message_log.replay()) == 1

    def test_restore_does_not_write(self, storage, session_store):
        log = MessageLog(session_store)
        log.restore([Message(text="old", sender=Sender.USER, timestamp=T0)])
        assert storage.data == {}

    def test_clear_empties_memory_and_storage(self, storage, message_log):
        message_log.append("a", Sender.USER, T0)
        message_log.clear()
        assert message_log.replay() == []
        assert DurableSessionStore(storage).load().messages == []


class TestDateSeparators:
    def test_first_user_message_gets_separator(self, message_log):
        message_log.append("hi", Sender.USER, T0)
        assert message_log.separator_for_last() == DateSeparator(day=date(2025, 3, 15), label="March 15, 2025")

    def test_leading_agent_message_has_no_separator(self, message_log):
        message_log.append("welcome", Sender.AGENT, T0)
        assert message_log.separator_for_last() is None
        message_log.append("hi", Sender.USER, T1)
        assert message_log.separator_for_last() is not None

    def test_same_day_followups_have_none(self, message_log):
        message_log.append("hi", Sender.USER, T0)
        message_log.append("hello", Sender.AGENT, T1)
        assert message_log.separator_for_last() is None

    def test_new_day_gets_separator(self, message_log):
        message_log.append("hi", Sender.USER, T0)
        message_log.append("morning", Sender.AGENT, NEXT_DAY)
        assert message_log.separator_for_last().day == date(2025, 3, 16)

    def test_replay_with_separators(self, message_log):
        message_log.append("hi", Sender.USER, T0)
        message_log.append("hello", Sender.AGENT, T1)
        message_log.append("again", Sender.USER, NEXT_DAY)
        items = message_log.replay_with_separators()
        kinds = [type(item).__name__ for item in items]
        assert kinds == ["DateSeparator", "Message", "Message", "DateSeparator", "Message"]

    def test_separator_days_empty(self):
        assert separator_days([]) == []

    def test_empty_log_has_no_separator(self, message_log):
        assert message_log.separator_for_last() is None
