"""
Chat widget entry point.

Builds one session against the configured backend (widget config, ticket
service, WebSocket transport, SQLite-backed client storage) and drives it
from the terminal.

Usage:
    Live session:  python main.py console
    Offline demo:  python main.py demo
"""

import asyncio
import logging
import sys
from pathlib import Path

from chat_widget.config import settings

logger = logging.getLogger(__name__)


def _build_session():
    """Build a SessionController wired to the real services."""
    from chat_widget.conversation.controller import SessionController
    from chat_widget.conversation.onboarding import looks_like_email
    from chat_widget.services.tickets import HttpTicketClient
    from chat_widget.storage.backends import SQLiteStorage
    from chat_widget.storage.identity import IdentityStore
    from chat_widget.storage.session_store import DurableSessionStore
    from chat_widget.transport.channel import WebSocketChannel
    from chat_widget.transport.connector import TransportConnector
    from chat_widget.transport.scheduler import AsyncioScheduler

    storage = SQLiteStorage(Path(settings.storage.path), origin=settings.storage.origin)
    scheduler = AsyncioScheduler()
    return SessionController(
        identity=IdentityStore(storage),
        store=DurableSessionStore(storage),
        connector=TransportConnector(WebSocketChannel(settings.service.ws_url), scheduler),
        tickets=HttpTicketClient(),
        scheduler=scheduler,
        email_validator=looks_like_email if settings.onboarding.validate_email else None,
    )


async def _run_live_console() -> None:
    """Fetch the widget config, then chat until /quit."""
    from chat_widget.services.widget_config import WidgetConfigClient, WidgetConfigError
    from console_demo import ConsoleRenderer

    try:
        widget_config = await WidgetConfigClient().fetch()
    except WidgetConfigError:
        logger.error("Chat Widget initialization failed")
        raise SystemExit(1)

    controller = _build_session()
    controller.subscribe(ConsoleRenderer(agent_name=widget_config.name))
    await controller.start()
    await controller.open()
    try:
        while True:
            raw = await asyncio.to_thread(sys.stdin.readline)
            line = raw.strip()
            if not raw or line in ("/quit", "/exit"):
                break
            await controller.submit(line)
    finally:
        await controller.close()


def _run_offline_demo() -> None:
    """Start the offline console demo (no backend required)."""
    from console_demo import ConsoleSession

    asyncio.run(ConsoleSession().run())


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "demo":
        _run_offline_demo()
    else:
        asyncio.run(_run_live_console())
