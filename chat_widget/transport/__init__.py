from chat_widget.transport.channel import AuthPayload, Channel, ChannelError, WebSocketChannel
from chat_widget.transport.connector import (
    ConnectionState,
    NotConnectedError,
    TransportConnector,
)
from chat_widget.transport.loopback import LoopbackChannel
from chat_widget.transport.scheduler import AsyncioScheduler, ManualScheduler, Scheduler

__all__ = [
    "AuthPayload",
    "Channel",
    "ChannelError",
    "WebSocketChannel",
    "LoopbackChannel",
    "ConnectionState",
    "NotConnectedError",
    "TransportConnector",
    "Scheduler",
    "AsyncioScheduler",
    "ManualScheduler",
]
