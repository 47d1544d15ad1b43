"""
Session controller: composes identity, storage, transport, onboarding and
the message log into one conversation session.

The host constructs exactly one controller per page and hands it to its
rendering layer, which observes the session through ``subscribe``. All
handlers run to completion on a single event loop, so no locking is needed.

Usage:
    controller = SessionController(identity, store, connector, tickets, scheduler)
    controller.subscribe(render)
    await controller.start()
    await controller.open()
    await controller.submit("Ana")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from chat_widget.config import settings
from chat_widget.conversation.message_log import MessageLog
from chat_widget.conversation.onboarding import (
    NextPrompt,
    OnboardingStateMachine,
    OnboardingStep,
    TicketCreationRequested,
)
from chat_widget.logging_context import set_visitor_id
from chat_widget.schemas.event_schema import (
    SEND_MESSAGE,
    AgentMessage,
    InboundEvent,
    TicketClosed,
    TypingSignal,
)
from chat_widget.schemas.service_schema import TicketRequest
from chat_widget.schemas.session_schema import (
    DateSeparator,
    Message,
    Sender,
    TicketInfo,
    UserDetails,
    VisitorIdentity,
)
from chat_widget.services.tickets import TicketCreationError, TicketService
from chat_widget.storage.identity import IdentityStore
from chat_widget.storage.session_store import DurableSessionStore
from chat_widget.transport.channel import AuthPayload
from chat_widget.transport.connector import (
    ConnectionState,
    NotConnectedError,
    TransportConnector,
)
from chat_widget.transport.scheduler import Scheduler

logger = logging.getLogger(__name__)

PROMPT_TIMER = "onboarding-prompt"

SEND_FAILURE_TEXT = "Failed to send message. Please try again."
TICKET_FAILURE_TEXT = "Sorry, we encountered an error setting up your chat. Please try again."


class EventKind(str, Enum):
    """State changes a rendering layer can observe."""
    CONVERSATION_STARTED = "conversation-started"
    MESSAGE_APPENDED = "message-appended"
    DATE_SEPARATOR = "date-separator"
    TYPING_STARTED = "typing-started"
    TYPING_STOPPED = "typing-stopped"
    PROMPT_CHANGED = "prompt-changed"
    TICKET_CLOSED = "ticket-closed"
    NOTICE = "notice"
    CONNECTION_CHANGED = "connection-changed"


@dataclass(frozen=True)
class SessionEvent:
    """One presentation event. Only the fields relevant to ``kind`` are set."""
    kind: EventKind
    message: Optional[Message] = None
    separator: Optional[DateSeparator] = None
    prompt: Optional[NextPrompt] = None
    text: Optional[str] = None
    connection: Optional[ConnectionState] = None
    replayed: bool = False


EventHandler = Callable[[SessionEvent], Any]


class SessionController:
    """Routes user input and inbound transport events for one visitor."""

    def __init__(
        self,
        identity: IdentityStore,
        store: DurableSessionStore,
        connector: TransportConnector,
        tickets: TicketService,
        scheduler: Scheduler,
        api_token: str = settings.service.api_token,
        ticket_category: str = settings.service.ticket_category,
        typing_delay_sec: float = settings.onboarding.typing_delay_sec,
        email_validator: Optional[Callable[[str], bool]] = None,
    ) -> None:
        self._identity = identity
        self._store = store
        self._connector = connector
        self._tickets = tickets
        self._scheduler = scheduler
        self._api_token = api_token
        self._ticket_category = ticket_category
        self._typing_delay_sec = typing_delay_sec

        self._log = MessageLog(store)
        self._onboarding = OnboardingStateMachine(email_validator=email_validator)
        self._visitor: Optional[VisitorIdentity] = None
        self._user_details = UserDetails()
        self._ticket_info = TicketInfo()
        self._subscribers: list[EventHandler] = []
        # Issue messages created while offline, sent once the connection is back.
        self._outbox: list[Message] = []
        # Prompt waiting out the typing delay.
        self._pending_prompt: Optional[NextPrompt] = None

        self._started = False
        self._is_open = False
        self._onboarding_started = False
        self._conversation_started = False
        self._history_shown = False
        self._typing = False

        connector.on_message(self._handle_inbound)
        connector.on_connection_change(self._handle_connection_change)

    # ------------------------------------------------------------------ #
    # Observation
    # ------------------------------------------------------------------ #

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register a presentation handler. Returns a function that removes it."""
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def _emit(self, kind: EventKind, **fields: Any) -> None:
        event = SessionEvent(kind=kind, **fields)
        for handler in list(self._subscribers):
            handler(event)

    @property
    def visitor_id(self) -> str:
        return self._require_visitor().id

    @property
    def user_details(self) -> UserDetails:
        return self._user_details.model_copy()

    @property
    def ticket_info(self) -> TicketInfo:
        return self._ticket_info.model_copy()

    @property
    def onboarding_step(self) -> OnboardingStep:
        return self._onboarding.current_step

    @property
    def connection_state(self) -> ConnectionState:
        return self._connector.state

    @property
    def messages(self) -> list[Message]:
        return self._log.replay()

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def is_typing(self) -> bool:
        return self._typing

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        """Rehydrate from durable storage and connect the transport."""
        if self._started:
            return
        self._visitor = self._identity.get_or_create_visitor_id()
        set_visitor_id(self._visitor.id)

        snapshot = self._store.load()
        self._user_details = snapshot.user_details
        self._ticket_info = snapshot.ticket_info
        self._log.restore(snapshot.messages)
        self._conversation_started = len(self._log) > 0
        self._started = True
        logger.info(
            "Session started: ticket=%s messages=%d", self._ticket_info.id, len(self._log)
        )
        await self._connector.connect(self._auth_payload())

    async def open(self) -> None:
        """The visitor opened the widget."""
        if not self._started:
            await self.start()
        self._is_open = True
        if self._connector.state == ConnectionState.DISCONNECTED:
            await self._connector.connect(self._auth_payload())

        if not self._history_shown:
            self._history_shown = True
            self._replay_history()

        if not self._ticket_info.is_active and not self._onboarding_started:
            self._begin_onboarding()

    async def close(self) -> None:
        """The visitor closed the widget; stop the connection and its reconnects."""
        self._is_open = False
        await self._connector.disconnect()

    def _replay_history(self) -> None:
        for item in self._log.replay_with_separators():
            if isinstance(item, DateSeparator):
                self._emit(EventKind.DATE_SEPARATOR, separator=item, replayed=True)
            else:
                self._emit(EventKind.MESSAGE_APPENDED, message=item, replayed=True)

    def _begin_onboarding(self) -> None:
        if self._onboarding.is_active:
            logger.debug("Onboarding already at %s", self._onboarding.current_step.value)
            return
        self._onboarding_started = True
        self._start_conversation()
        prompt = self._onboarding.start(self._user_details)
        logger.info("Onboarding started at %s", prompt.step.value)
        self._emit(EventKind.PROMPT_CHANGED, prompt=prompt)

    def _start_conversation(self) -> None:
        if not self._conversation_started:
            self._conversation_started = True
            self._emit(EventKind.CONVERSATION_STARTED)

    # ------------------------------------------------------------------ #
    # User input
    # ------------------------------------------------------------------ #

    async def submit(self, text: str) -> None:
        """Route visitor input to onboarding or to the conversation."""
        text = text.strip()
        if not text:
            return
        if self._onboarding.is_active:
            await self._handle_onboarding(text)
        else:
            await self._send_user_message(text)

    async def _handle_onboarding(self, text: str) -> None:
        result = self._onboarding.submit(text)
        if result is None:
            return
        self._flush_prompt()
        if isinstance(result, TicketCreationRequested):
            await self._create_ticket(result)
            return

        self._user_details = self._onboarding.details.model_copy()
        if result.persist_user_details:
            self._store.save_user_details(self._user_details)
            logger.info("User details stored")
        self._set_typing(True)
        self._pending_prompt = result
        self._scheduler.call_later(
            PROMPT_TIMER, self._typing_delay_sec, lambda: self._show_prompt(result)
        )

    def _show_prompt(self, prompt: NextPrompt) -> None:
        self._pending_prompt = None
        self._set_typing(False)
        self._emit(EventKind.PROMPT_CHANGED, prompt=prompt)

    def _flush_prompt(self) -> None:
        """Show a prompt still in its typing delay before the visitor's next answer is handled."""
        prompt = self._pending_prompt
        if prompt is None:
            return
        self._pending_prompt = None
        self._scheduler.cancel(PROMPT_TIMER)
        self._emit(EventKind.PROMPT_CHANGED, prompt=prompt)

    async def _create_ticket(self, request: TicketCreationRequested) -> None:
        self._set_typing(True)
        details = request.details
        ticket_request = TicketRequest(
            user_id=self.visitor_id,
            category=self._ticket_category,
            description=request.description,
            first_name=details.first_name,
            last_name=details.last_name,
            email=details.email,
        )
        try:
            ticket = await self._tickets.create_ticket(ticket_request)
        except TicketCreationError as exc:
            logger.error("Onboarding error: %s", exc)
            self._onboarding.ticket_failed()
            self._set_typing(False)
            self._emit(EventKind.NOTICE, text=TICKET_FAILURE_TEXT)
            return

        self._set_typing(False)
        self._ticket_info = ticket
        self._store.save_ticket_info(ticket)
        self._onboarding.ticket_created()
        logger.info("Ticket %s associated with visitor", ticket.id)

        await self._connector.join_ticket_room(ticket.id)
        message = self._append(request.description, Sender.USER)
        if message is None:
            return
        if self._connector.is_connected:
            await self._deliver(message)
        else:
            logger.info("Transport offline, issue message queued")
            self._outbox.append(message)

    async def _send_user_message(self, text: str) -> None:
        message = self._append(text, Sender.USER)
        if message is None:
            return
        if self._ticket_info.id:
            await self._connector.join_ticket_room(self._ticket_info.id)
        await self._deliver(message)

    async def _deliver(self, message: Message) -> None:
        try:
            await self._connector.send(SEND_MESSAGE, self._outbound_payload(message))
        except NotConnectedError as exc:
            logger.warning("Error sending message: %s", exc)
            self._set_typing(False)
            self._emit(EventKind.NOTICE, text=SEND_FAILURE_TEXT)

    def _outbound_payload(self, message: Message) -> dict[str, Any]:
        return {
            "message": message.text,
            "senderId": self.visitor_id,
            "ticketId": self._ticket_info.id,
            "organizationId": self._ticket_info.organization_id,
            "attachments": [],
            "createdAt": message.timestamp,
        }

    def _append(self, text: str, sender: Sender) -> Optional[Message]:
        message = self._log.append(text, sender)
        if message is None:
            return None
        self._start_conversation()
        separator = self._log.separator_for_last()
        if separator is not None:
            self._emit(EventKind.DATE_SEPARATOR, separator=separator)
        self._emit(EventKind.MESSAGE_APPENDED, message=message)
        return message

    # ------------------------------------------------------------------ #
    # Transport events
    # ------------------------------------------------------------------ #

    async def _handle_inbound(self, event: InboundEvent) -> None:
        if isinstance(event, TypingSignal):
            self._set_typing(True)
        elif isinstance(event, AgentMessage):
            self._set_typing(False)
            self._append(event.text, Sender.AGENT)
        elif isinstance(event, TicketClosed):
            self._close_ticket(event)

    def _close_ticket(self, event: TicketClosed) -> None:
        if not self._ticket_info.is_active:
            logger.info("Closure for %s ignored, no active ticket", event.ticket_id)
            return
        if event.ticket_id and event.ticket_id != self._ticket_info.id:
            logger.warning("Ignoring closure of foreign ticket %s", event.ticket_id)
            return
        closed_id = self._ticket_info.id
        logger.info("Ticket closed event received for %s. Clearing storage.", closed_id)
        self._set_typing(False)
        self._ticket_info = TicketInfo()
        self._log.clear()
        self._store.clear_ticket_state()
        self._outbox.clear()
        self._conversation_started = False
        self._onboarding_started = False
        self._emit(EventKind.TICKET_CLOSED, text=closed_id)
        if self._is_open:
            self._begin_onboarding()

    async def _handle_connection_change(self, state: ConnectionState) -> None:
        self._emit(EventKind.CONNECTION_CHANGED, connection=state)
        if state != ConnectionState.CONNECTED or not self._ticket_info.id:
            return
        await self._connector.join_ticket_room(self._ticket_info.id)
        while self._outbox and self._connector.is_connected:
            await self._deliver(self._outbox.pop(0))

    def _set_typing(self, typing: bool) -> None:
        if typing == self._typing:
            return
        self._typing = typing
        self._emit(EventKind.TYPING_STARTED if typing else EventKind.TYPING_STOPPED)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _require_visitor(self) -> VisitorIdentity:
        if self._visitor is None:
            self._visitor = self._identity.get_or_create_visitor_id()
        return self._visitor

    def _auth_payload(self) -> AuthPayload:
        return AuthPayload(api_key=self._api_token, user_id=self.visitor_id)
