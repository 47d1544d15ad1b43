"""Shared test fixtures and helpers."""

from typing import Optional

import pytest

from chat_widget.conversation.controller import EventKind, SessionController, SessionEvent
from chat_widget.conversation.message_log import MessageLog
from chat_widget.conversation.onboarding import OnboardingStateMachine
from chat_widget.services.tickets import LoopbackTicketClient
from chat_widget.storage.backends import MemoryStorage
from chat_widget.storage.identity import IdentityStore
from chat_widget.storage.session_store import DurableSessionStore
from chat_widget.transport.connector import TransportConnector
from chat_widget.transport.loopback import LoopbackChannel
from chat_widget.transport.scheduler import ManualScheduler

BACKOFF_SEC = 3.0
TYPING_DELAY_SEC = 0.6


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def session_store(storage):
    return DurableSessionStore(storage)


@pytest.fixture
def message_log(session_store):
    return MessageLog(session_store)


@pytest.fixture
def onboarding():
    return OnboardingStateMachine()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def channel():
    return LoopbackChannel()


@pytest.fixture
def connector(channel, scheduler):
    return TransportConnector(channel, scheduler, backoff_sec=BACKOFF_SEC, auth_mode="handshake")


@pytest.fixture
def tickets():
    return LoopbackTicketClient(organization_id="O1")


class EventRecorder:
    """Collects controller events for assertions."""

    def __init__(self) -> None:
        self.events: list[SessionEvent] = []

    def __call__(self, event: SessionEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]

    def of(self, kind: EventKind) -> list[SessionEvent]:
        return [e for e in self.events if e.kind == kind]

    def prompts(self) -> list[str]:
        return [e.prompt.text for e in self.of(EventKind.PROMPT_CHANGED)]

    def clear(self) -> None:
        self.events.clear()


def make_controller(
    storage: MemoryStorage,
    channel: LoopbackChannel,
    scheduler: ManualScheduler,
    tickets: LoopbackTicketClient,
    email_validator=None,
    visitor_id: Optional[str] = "visitor-1",
) -> tuple[SessionController, EventRecorder]:
    """Build a controller over shared test doubles, as a page load would."""
    identity = IdentityStore(storage, id_factory=lambda: visitor_id)
    controller = SessionController(
        identity=identity,
        store=DurableSessionStore(storage),
        connector=TransportConnector(channel, scheduler, backoff_sec=BACKOFF_SEC, auth_mode="handshake"),
        tickets=tickets,
        scheduler=scheduler,
        api_token="token-123",
        ticket_category="support",
        typing_delay_sec=TYPING_DELAY_SEC,
        email_validator=email_validator,
    )
    recorder = EventRecorder()
    controller.subscribe(recorder)
    return controller, recorder


@pytest.fixture
def controller_factory(storage, channel, scheduler, tickets):
    def _factory(**kwargs):
        return make_controller(storage, channel, scheduler, tickets, **kwargs)
    return _factory


async def complete_onboarding(
    controller: SessionController,
    scheduler: ManualScheduler,
    answers: tuple[str, ...] = ("Ana", "Lee", "ana@x.com", "Billing issue"),
) -> None:
    """Open the widget and answer every onboarding question."""
    await controller.open()
    for answer in answers:
        await controller.submit(answer)
        await scheduler.advance(TYPING_DELAY_SEC)
