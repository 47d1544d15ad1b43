"""
Transport connector: connection state, authentication, rooms and reconnects.

Wraps a raw Channel with an explicit state machine:

    disconnected -> connecting -> connected
                        ^             |
                        |   (unexpected close / open failure)
                        +-- reconnecting <-+

Reconnects use a constant backoff and never give up on their own; only an
intentional ``disconnect()`` stops them. Inbound frames are decoded into
canonical events here, so observers never see legacy payload shapes.
"""

import inspect
import logging
from enum import Enum
from typing import Any, Callable, Optional

from chat_widget.config import settings
from chat_widget.schemas.event_schema import (
    AUTHENTICATE,
    JOIN_ROOM,
    InboundEvent,
    decode_inbound,
)
from chat_widget.transport.channel import AuthPayload, Channel, ChannelError
from chat_widget.transport.scheduler import Scheduler

logger = logging.getLogger(__name__)

RECONNECT_TIMER = "reconnect"

MessageHandler = Callable[[InboundEvent], Any]
StateHandler = Callable[["ConnectionState"], Any]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class NotConnectedError(Exception):
    """Raised when sending while the connection is not established."""


async def _call(handler: Callable[..., Any], *args: Any) -> None:
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


class TransportConnector:
    """Owns the realtime connection and its ConnectionState."""

    def __init__(
        self,
        channel: Channel,
        scheduler: Scheduler,
        backoff_sec: float = settings.transport.reconnect_backoff_sec,
        auth_mode: str = settings.transport.auth_mode,
    ) -> None:
        self._channel = channel
        self._scheduler = scheduler
        self._backoff_sec = backoff_sec
        self._auth_mode = auth_mode
        self._state = ConnectionState.DISCONNECTED
        self._auth: Optional[AuthPayload] = None
        self._closed_intentionally = False
        self._message_handlers: list[MessageHandler] = []
        self._state_handlers: list[StateHandler] = []
        self.connect_attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_connection_change(self, handler: StateHandler) -> None:
        self._state_handlers.append(handler)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def connect(self, auth: AuthPayload) -> None:
        """Open the connection, retrying with backoff until it succeeds or is closed."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            logger.debug("connect() ignored, already %s", self._state.value)
            return
        self._auth = auth
        self._closed_intentionally = False
        self._scheduler.cancel(RECONNECT_TIMER)
        await self._attempt()

    async def disconnect(self) -> None:
        """Close intentionally and suppress any further reconnect attempts."""
        self._closed_intentionally = True
        self._scheduler.cancel(RECONNECT_TIMER)
        if self._state != ConnectionState.DISCONNECTED:
            await self._channel.close()
            await self._set_state(ConnectionState.DISCONNECTED)
            logger.info("Transport disconnected by request")

    async def _attempt(self) -> None:
        if self._closed_intentionally or self._auth is None:
            return
        await self._set_state(ConnectionState.CONNECTING)
        self.connect_attempts += 1
        try:
            await self._channel.open(self._auth, self._on_frame, self._on_close)
        except ChannelError as exc:
            logger.warning("Connection attempt %d failed: %s", self.connect_attempts, exc)
            await self._schedule_reconnect()
            return
        if self._auth_mode == "message" or not self._channel.supports_connect_auth:
            try:
                await self._channel.emit(AUTHENTICATE, self._auth.model_dump())
            except ChannelError as exc:
                logger.warning("Authentication handshake failed: %s", exc)
                await self._channel.close()
                await self._schedule_reconnect()
                return

        if self._closed_intentionally:
            # disconnect() arrived while the channel was opening
            await self._channel.close()
            return
        logger.info("Transport connected (attempt %d)", self.connect_attempts)
        await self._set_state(ConnectionState.CONNECTED)

    async def _on_close(self, error: Optional[Exception]) -> None:
        if self._closed_intentionally:
            return
        logger.warning("Connection lost: %s", error)
        await self._schedule_reconnect()

    async def _schedule_reconnect(self) -> None:
        await self._set_state(ConnectionState.RECONNECTING)
        self._scheduler.call_later(RECONNECT_TIMER, self._backoff_sec, self._attempt)
        logger.info("Reconnecting in %.1fs", self._backoff_sec)

    async def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        self._state = state
        for handler in list(self._state_handlers):
            await _call(handler, state)

    # ------------------------------------------------------------------ #
    # Traffic
    # ------------------------------------------------------------------ #

    async def join_ticket_room(self, ticket_id: str) -> None:
        """Scope inbound messages to a ticket. No-op unless connected."""
        if not self.is_connected:
            logger.debug("join_room for %s skipped, state=%s", ticket_id, self._state.value)
            return
        try:
            await self._channel.emit(JOIN_ROOM, {"ticket_id": ticket_id})
            logger.debug("Joined room for ticket %s", ticket_id)
        except ChannelError as exc:
            logger.warning("join_room for %s failed: %s", ticket_id, exc)

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        """Best-effort delivery of an application event.

        Raises:
            NotConnectedError: If the connection is not established or the
                channel failed while sending.
        """
        if not self.is_connected:
            raise NotConnectedError(f"Cannot send '{event}' while {self._state.value}")
        try:
            await self._channel.emit(event, payload)
        except ChannelError as exc:
            raise NotConnectedError(f"Send of '{event}' failed: {exc}") from exc

    async def _on_frame(self, event: str, data: Any) -> None:
        try:
            decoded = decode_inbound(event, data)
        except Exception:
            logger.exception("Dropping undecodable '%s' frame: %r", event, data)
            return
        if decoded is None:
            return
        for handler in list(self._message_handlers):
            try:
                await _call(handler, decoded)
            except Exception:
                logger.exception("Inbound handler failed for '%s'", event)
