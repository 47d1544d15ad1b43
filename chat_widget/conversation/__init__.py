from chat_widget.conversation.controller import EventKind, SessionController, SessionEvent
from chat_widget.conversation.message_log import MessageLog
from chat_widget.conversation.onboarding import (
    OnboardingStateMachine,
    OnboardingStep,
    OnboardingTrigger,
)

__all__ = [
    "SessionController",
    "SessionEvent",
    "EventKind",
    "MessageLog",
    "OnboardingStateMachine",
    "OnboardingStep",
    "OnboardingTrigger",
]
