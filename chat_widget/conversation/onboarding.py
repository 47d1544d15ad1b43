"""
Finite state machine for the onboarding questions asked before a ticket exists.

    idle -> ask_first_name -> ask_last_name -> ask_email -> ask_issue -> idle

Visitors whose details are already stored (a previous ticket was closed)
enter directly at ``ask_issue``. Every transition is declared explicitly;
anything else raises InvalidTransitionError.

Usage:
    machine = OnboardingStateMachine()
    prompt = machine.start(UserDetails())
    machine.submit("Ana")          # -> NextPrompt(step=ASK_LAST_NAME, ...)
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from chat_widget.schemas.session_schema import UserDetails

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class OnboardingStep(str, Enum):
    """Onboarding steps, declared in cycle order."""
    IDLE = "idle"
    ASK_FIRST_NAME = "ask_first_name"
    ASK_LAST_NAME = "ask_last_name"
    ASK_EMAIL = "ask_email"
    ASK_ISSUE = "ask_issue"

    @property
    def order(self) -> int:
        return list(OnboardingStep).index(self)


class OnboardingTrigger(str, Enum):
    """Events that cause step transitions."""
    START = "start"
    RETURNING_VISITOR = "returning_visitor"
    FIRST_NAME_GIVEN = "first_name_given"
    LAST_NAME_GIVEN = "last_name_given"
    EMAIL_GIVEN = "email_given"
    TICKET_CREATED = "ticket_created"


@dataclass(frozen=True)
class Transition:
    """A single valid step transition."""
    from_step: OnboardingStep
    to_step: OnboardingStep
    trigger: OnboardingTrigger


@dataclass(frozen=True)
class StepEntry:
    """Recorded history entry for a step visit."""
    step: OnboardingStep
    entered_at: datetime
    trigger: Optional[OnboardingTrigger] = None


@dataclass(frozen=True)
class NextPrompt:
    """Show ``text`` to the visitor after the pacing delay."""
    step: OnboardingStep
    text: str
    placeholder: str
    persist_user_details: bool = False


@dataclass(frozen=True)
class TicketCreationRequested:
    """Onboarding is complete; a ticket must be created from these answers."""
    description: str
    details: UserDetails


OnboardingResult = Union[NextPrompt, TicketCreationRequested]


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current step."""


def looks_like_email(value: str) -> bool:
    """Loose ``local@domain.tld`` check for the optional email hook."""
    return bool(EMAIL_PATTERN.match(value.strip()))


FIRST_NAME_PROMPT = "Hi there! 👋 To get started, could you please tell me your First Name?"
LAST_NAME_PROMPT = "Thanks {first_name}! What is your Last Name?"
EMAIL_PROMPT = "Great! And finally, what is your Email?"
ISSUE_PROMPT = "Perfect. Now, how can we help you today?"
RETURNING_PROMPT = "Welcome back {first_name}! How can we help you today?"
INVALID_EMAIL_PROMPT = "That email doesn't look right. Could you check it and send it again?"

PLACEHOLDERS = {
    OnboardingStep.ASK_FIRST_NAME: "Enter your First Name...",
    OnboardingStep.ASK_LAST_NAME: "Enter your Last Name...",
    OnboardingStep.ASK_EMAIL: "Enter your Email...",
    OnboardingStep.ASK_ISSUE: "Describe what you need help with...",
}


class OnboardingStateMachine:
    """
    Collects first name, last name and email, then the issue description.

    The machine only records answers and decides what comes next; creating
    the ticket and persisting details is the controller's job, signalled
    through the returned results.
    """

    TRANSITIONS: list[Transition] = [
        Transition(OnboardingStep.IDLE, OnboardingStep.ASK_FIRST_NAME,
                   OnboardingTrigger.START),
        Transition(OnboardingStep.IDLE, OnboardingStep.ASK_ISSUE,
                   OnboardingTrigger.RETURNING_VISITOR),
        Transition(OnboardingStep.ASK_FIRST_NAME, OnboardingStep.ASK_LAST_NAME,
                   OnboardingTrigger.FIRST_NAME_GIVEN),
        Transition(OnboardingStep.ASK_LAST_NAME, OnboardingStep.ASK_EMAIL,
                   OnboardingTrigger.LAST_NAME_GIVEN),
        Transition(OnboardingStep.ASK_EMAIL, OnboardingStep.ASK_ISSUE,
                   OnboardingTrigger.EMAIL_GIVEN),
        Transition(OnboardingStep.ASK_ISSUE, OnboardingStep.IDLE,
                   OnboardingTrigger.TICKET_CREATED),
    ]

    def __init__(self, email_validator: Optional[Callable[[str], bool]] = None) -> None:
        self._current_step = OnboardingStep.IDLE
        self._history: list[StepEntry] = [
            StepEntry(step=OnboardingStep.IDLE, entered_at=datetime.now(timezone.utc))
        ]
        self._email_validator = email_validator
        self._awaiting_ticket = False
        self.details = UserDetails()

    @property
    def current_step(self) -> OnboardingStep:
        return self._current_step

    @property
    def is_active(self) -> bool:
        return self._current_step != OnboardingStep.IDLE

    @property
    def awaiting_ticket(self) -> bool:
        """True while a ticket-creation request is outstanding."""
        return self._awaiting_ticket

    def transition(self, trigger: OnboardingTrigger) -> OnboardingStep:
        """
        Execute a step transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_step == self._current_step and t.trigger == trigger:
                old_step = self._current_step
                self._current_step = t.to_step
                self._history.append(StepEntry(
                    step=self._current_step,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Onboarding transition: %s -> %s (trigger: %s)",
                    old_step.value, self._current_step.value, trigger.value,
                )
                return self._current_step

        valid = [t.trigger.value for t in self.TRANSITIONS if t.from_step == self._current_step]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_step.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def start(self, details: UserDetails) -> NextPrompt:
        """Begin onboarding. Visitors with known details skip to the issue."""
        self.details = details.model_copy()
        self._awaiting_ticket = False
        if self.details.email:
            self.transition(OnboardingTrigger.RETURNING_VISITOR)
            if self.details.first_name:
                text = RETURNING_PROMPT.format(first_name=self.details.first_name)
            else:
                text = ISSUE_PROMPT
            return self._prompt(text)
        self.transition(OnboardingTrigger.START)
        return self._prompt(FIRST_NAME_PROMPT)

    def submit(self, text: str) -> Optional[OnboardingResult]:
        """Record the answer for the current step and say what happens next.

        Returns None when there is nothing to do: blank input, no active
        onboarding, or a ticket request still in flight.
        """
        text = text.strip()
        if not text or not self.is_active:
            return None
        if self._awaiting_ticket:
            logger.debug("Input ignored while ticket creation is in flight")
            return None

        step = self._current_step
        if step == OnboardingStep.ASK_FIRST_NAME:
            self.details.first_name = text
            self.transition(OnboardingTrigger.FIRST_NAME_GIVEN)
            return self._prompt(LAST_NAME_PROMPT.format(first_name=text))

        if step == OnboardingStep.ASK_LAST_NAME:
            self.details.last_name = text
            self.transition(OnboardingTrigger.LAST_NAME_GIVEN)
            return self._prompt(EMAIL_PROMPT)

        if step == OnboardingStep.ASK_EMAIL:
            if self._email_validator is not None and not self._email_validator(text):
                logger.info("Email rejected by validator")
                return self._prompt(INVALID_EMAIL_PROMPT)
            self.details.email = text
            self.transition(OnboardingTrigger.EMAIL_GIVEN)
            return self._prompt(ISSUE_PROMPT, persist_user_details=True)

        self._awaiting_ticket = True
        return TicketCreationRequested(description=text, details=self.details.model_copy())

    def ticket_created(self) -> None:
        """Finish onboarding after the ticket exists."""
        self._awaiting_ticket = False
        self.transition(OnboardingTrigger.TICKET_CREATED)

    def ticket_failed(self) -> None:
        """Stay at ask_issue; the next input is a fresh attempt."""
        self._awaiting_ticket = False
        logger.info("Ticket creation failed, waiting for the issue again")

    def get_history(self) -> list[StepEntry]:
        """Return the full step transition history."""
        return list(self._history)

    def get_step_trace(self) -> list[str]:
        """Return ordered list of step names visited."""
        return [entry.step.value for entry in self._history]

    def _prompt(self, text: str, persist_user_details: bool = False) -> NextPrompt:
        return NextPrompt(
            step=self._current_step,
            text=text,
            placeholder=PLACEHOLDERS.get(self._current_step, ""),
            persist_user_details=persist_user_details,
        )
