"""
In-process channel with a programmable backend side.

Stands in for the realtime server in the offline console demo and in
tests: everything the widget emits is recorded, and the "server" pushes
frames with ``deliver`` or kills the connection with ``drop``.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from chat_widget.transport.channel import (
    AuthPayload,
    Channel,
    ChannelError,
    CloseHandler,
    FrameHandler,
)

logger = logging.getLogger(__name__)

Responder = Callable[["LoopbackChannel", str, dict[str, Any]], Awaitable[None]]


class LoopbackChannel(Channel):
    """Channel whose far end is driven from Python code."""

    def __init__(self, supports_connect_auth: bool = True, responder: Optional[Responder] = None) -> None:
        self.supports_connect_auth = supports_connect_auth
        self.responder = responder
        self.emitted: list[tuple[str, dict[str, Any]]] = []
        self.auth_history: list[AuthPayload] = []
        self.open_count = 0
        self.fail_opens = 0
        self.is_open = False
        self._on_frame: Optional[FrameHandler] = None
        self._on_close: Optional[CloseHandler] = None

    async def open(self, auth: AuthPayload, on_frame: FrameHandler, on_close: CloseHandler) -> None:
        self.open_count += 1
        if self.fail_opens > 0:
            self.fail_opens -= 1
            raise ChannelError("loopback refused connection")
        self.auth_history.append(auth)
        self._on_frame = on_frame
        self._on_close = on_close
        self.is_open = True

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        if not self.is_open:
            raise ChannelError("loopback channel is closed")
        self.emitted.append((event, payload))
        if self.responder is not None:
            await self.responder(self, event, payload)

    async def close(self) -> None:
        self.is_open = False
        self._on_frame = None
        self._on_close = None

    # ------------------------------------------------------------------ #
    # Server side
    # ------------------------------------------------------------------ #

    async def deliver(self, event: str, data: Any = None) -> None:
        """Push an inbound frame to the widget."""
        if not self.is_open or self._on_frame is None:
            raise ChannelError("cannot deliver on a closed loopback channel")
        await self._on_frame(event, data)

    async def drop(self, error: Optional[Exception] = None) -> None:
        """Simulate the server or network closing the connection."""
        on_close = self._on_close
        await self.close()
        if on_close is not None:
            await on_close(error or ConnectionError("loopback dropped"))

    def emitted_events(self, event: str) -> list[dict[str, Any]]:
        return [payload for name, payload in self.emitted if name == event]
