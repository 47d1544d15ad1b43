"""Tests for the onboarding state machine."""

import pytest

from chat_widget.conversation.onboarding import (
    FIRST_NAME_PROMPT,
    INVALID_EMAIL_PROMPT,
    ISSUE_PROMPT,
    InvalidTransitionError,
    NextPrompt,
    OnboardingStateMachine,
    OnboardingStep,
    OnboardingTrigger,
    TicketCreationRequested,
    looks_like_email,
)
from chat_widget.schemas.session_schema import UserDetails


def _answer_all(machine, answers=("Ana", "Lee", "ana@x.com")):
    machine.start(UserDetails())
    results = [machine.submit(a) for a in answers]
    return results


class TestInitialState:
    def test_starts_idle(self, onboarding):
        assert onboarding.current_step == OnboardingStep.IDLE
        assert not onboarding.is_active

    def test_initial_history_has_one_entry(self, onboarding):
        assert len(onboarding.get_history()) == 1

    def test_submit_while_idle_is_noop(self, onboarding):
        assert onboarding.submit("hello") is None
        assert onboarding.current_step == OnboardingStep.IDLE

    def test_steps_declared_in_cycle_order(self):
        assert [s.order for s in OnboardingStep] == [0, 1, 2, 3, 4]


class TestNewVisitor:
    def test_start_asks_first_name(self, onboarding):
        prompt = onboarding.start(UserDetails())
        assert prompt == NextPrompt(
            step=OnboardingStep.ASK_FIRST_NAME,
            text=FIRST_NAME_PROMPT,
            placeholder="Enter your First Name...",
        )

    def test_first_name_prompt_mentions_name(self, onboarding):
        onboarding.start(UserDetails())
        prompt = onboarding.submit("Ana")
        assert prompt.step == OnboardingStep.ASK_LAST_NAME
        assert prompt.text == "Thanks Ana! What is your Last Name?"

    def test_email_answer_persists_details(self, onboarding):
        first, last, email = _answer_all(onboarding)
        assert not first.persist_user_details
        assert not last.persist_user_details
        assert email.persist_user_details
        assert email.step == OnboardingStep.ASK_ISSUE
        assert email.text == ISSUE_PROMPT
        assert onboarding.details == UserDetails(first_name="Ana", last_name="Lee", email="ana@x.com")

    def test_issue_requests_ticket(self, onboarding):
        _answer_all(onboarding)
        result = onboarding.submit("Billing issue")
        assert isinstance(result, TicketCreationRequested)
        assert result.description == "Billing issue"
        assert result.details.email == "ana@x.com"
        assert onboarding.awaiting_ticket

    def test_answers_are_trimmed(self, onboarding):
        onboarding.start(UserDetails())
        onboarding.submit("  Ana  ")
        assert onboarding.details.first_name == "Ana"

    def test_blank_answer_does_not_advance(self, onboarding):
        onboarding.start(UserDetails())
        assert onboarding.submit("   ") is None
        assert onboarding.current_step == OnboardingStep.ASK_FIRST_NAME

    def test_full_cycle_trace(self, onboarding):
        _answer_all(onboarding)
        onboarding.submit("Billing issue")
        onboarding.ticket_created()
        assert onboarding.get_step_trace() == [
            "idle", "ask_first_name", "ask_last_name", "ask_email", "ask_issue", "idle",
        ]
        assert onboarding.get_history()[-1].trigger == OnboardingTrigger.TICKET_CREATED

    def test_steps_never_skipped(self, onboarding):
        _answer_all(onboarding)
        onboarding.submit("Billing issue")
        onboarding.ticket_created()
        orders = [OnboardingStep(name).order for name in onboarding.get_step_trace()[:-1]]
        assert orders == sorted(orders)


class TestTicketOutcome:
    def test_input_ignored_while_awaiting(self, onboarding):
        _answer_all(onboarding)
        onboarding.submit("Billing issue")
        assert onboarding.submit("hello?") is None

    def test_failure_allows_retry(self, onboarding):
        _answer_all(onboarding)
        onboarding.submit("Billing issue")
        onboarding.ticket_failed()
        assert onboarding.current_step == OnboardingStep.ASK_ISSUE
        assert not onboarding.awaiting_ticket
        assert isinstance(onboarding.submit("Billing issue"), TicketCreationRequested)

    def test_created_returns_to_idle(self, onboarding):
        _answer_all(onboarding)
        onboarding.submit("Billing issue")
        onboarding.ticket_created()
        assert onboarding.current_step == OnboardingStep.IDLE
        assert not onboarding.awaiting_ticket


class TestReturningVisitor:
    def test_known_email_skips_to_issue(self, onboarding):
        prompt = onboarding.start(UserDetails(first_name="Ana", last_name="Lee", email="ana@x.com"))
        assert prompt.step == OnboardingStep.ASK_ISSUE
        assert prompt.text == "Welcome back Ana! How can we help you today?"

    def test_known_email_without_name(self, onboarding):
        prompt = onboarding.start(UserDetails(email="ana@x.com"))
        assert prompt.text == ISSUE_PROMPT

    def test_second_cycle_after_closure(self, onboarding):
        _answer_all(onboarding)
        onboarding.submit("Billing issue")
        onboarding.ticket_created()
        prompt = onboarding.start(onboarding.details)
        assert prompt.step == OnboardingStep.ASK_ISSUE


class TestEmailValidation:
    def test_validator_rejects_and_reprompts(self):
        machine = OnboardingStateMachine(email_validator=looks_like_email)
        machine.start(UserDetails())
        machine.submit("Ana")
        machine.submit("Lee")
        prompt = machine.submit("not-an-email")
        assert prompt.text == INVALID_EMAIL_PROMPT
        assert prompt.step == OnboardingStep.ASK_EMAIL
        assert machine.details.email == ""

        prompt = machine.submit("ana@x.com")
        assert prompt.step == OnboardingStep.ASK_ISSUE

    def test_no_validator_accepts_anything(self, onboarding):
        _, _, prompt = _answer_all(onboarding, answers=("Ana", "Lee", "whatever"))
        assert prompt.step == OnboardingStep.ASK_ISSUE

    @pytest.mark.parametrize("value,expected", [
        ("ana@x.com", True),
        ("a.b+c@sub.example.org", True),
        ("ana@x", False),
        ("ana x@y.com", False),
        ("", False),
    ])
    def test_looks_like_email(self, value, expected):
        assert looks_like_email(value) is expected


class TestInvalidTransitions:
    def test_invalid_trigger_raises(self, onboarding):
        with pytest.raises(InvalidTransitionError):
            onboarding.transition(OnboardingTrigger.EMAIL_GIVEN)

    def test_error_lists_valid_triggers(self, onboarding):
        with pytest.raises(InvalidTransitionError, match="start"):
            onboarding.transition(OnboardingTrigger.TICKET_CREATED)
