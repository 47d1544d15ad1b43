"""
Realtime channel abstraction and the WebSocket implementation.

A Channel is the raw bidirectional pipe: open it with credentials, emit
named events, and receive named events plus a close notification. State,
reconnection and room membership live one level up in TransportConnector.

Wire format for the WebSocket channel is one JSON object per frame:
    {"event": "receive_message", "data": {...}}
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

import websockets
from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)

FrameHandler = Callable[[str, Any], Awaitable[None]]
CloseHandler = Callable[[Optional[Exception]], Awaitable[None]]


class ChannelError(Exception):
    """Raised when the underlying channel cannot open or deliver."""


class AuthPayload(BaseModel):
    """Credentials presented when a connection is established."""

    api_key: str
    user_id: str

    def as_headers(self) -> dict[str, str]:
        return {"apiKey": self.api_key, "user_id": self.user_id}


class Channel(ABC):
    """Raw realtime pipe consumed by the TransportConnector."""

    # True when credentials travel with the connection request itself.
    supports_connect_auth: bool = True

    @abstractmethod
    async def open(self, auth: AuthPayload, on_frame: FrameHandler, on_close: CloseHandler) -> None:
        """Open the channel. Raises ChannelError if it cannot be established."""

    @abstractmethod
    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Send one named event. Raises ChannelError if the channel is gone."""

    @abstractmethod
    async def close(self) -> None:
        """Close intentionally. ``on_close`` is not invoked for this close."""


class WebSocketChannel(Channel):
    """JSON-over-WebSocket channel with header-based authentication."""

    def __init__(self, url: str, open_timeout: Optional[float] = 10.0) -> None:
        self.url = url
        self.open_timeout = open_timeout
        self._ws: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._closing = False

    async def open(self, auth: AuthPayload, on_frame: FrameHandler, on_close: CloseHandler) -> None:
        self._closing = False
        try:
            self._ws = await websockets.connect(
                self.url,
                additional_headers=auth.as_headers(),
                open_timeout=self.open_timeout,
            )
        except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
            raise ChannelError(f"Could not open {self.url}: {exc}") from exc
        logger.info("WebSocket opened: %s", self.url)
        self._reader = asyncio.create_task(self._read_loop(self._ws, on_frame, on_close))

    async def _read_loop(self, ws: Any, on_frame: FrameHandler, on_close: CloseHandler) -> None:
        error: Optional[Exception] = None
        try:
            async for raw in ws:
                frame = self._decode(raw)
                if frame is None:
                    continue
                try:
                    await on_frame(*frame)
                except Exception:
                    logger.exception("Frame handler failed for '%s'", frame[0])
        except ConnectionClosed as exc:
            error = exc
        if not self._closing:
            logger.warning("WebSocket closed unexpectedly: %s", error)
            await on_close(error)

    @staticmethod
    def _decode(raw: Any) -> Optional[tuple[str, Any]]:
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Dropping non-JSON frame: %r", raw)
            return None
        if not isinstance(message, dict) or not isinstance(message.get("event"), str):
            logger.warning("Dropping frame without event name: %r", message)
            return None
        return message["event"], message.get("data")

    async def emit(self, event: str, payload: dict[str, Any]) -> None:
        if self._ws is None:
            raise ChannelError("channel is not open")
        try:
            await self._ws.send(json.dumps({"event": event, "data": payload}))
        except ConnectionClosed as exc:
            raise ChannelError(f"Send failed: {exc}") from exc

    async def close(self) -> None:
        self._closing = True
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._reader is not None and self._reader is not asyncio.current_task():
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        logger.info("WebSocket closed: %s", self.url)
