"""
Offline console demo: runs a full widget conversation without a backend.

Uses the real session controller, onboarding machine, message log and
transport connector, wired to an in-process loopback channel and ticket
service. A scripted "agent" answers every visitor message. No network,
no API token.

Usage:
    python console_demo.py
    python console_demo.py --scenario onboarding
    python console_demo.py --scenario reconnect
    python console_demo.py --scenario closure
"""

import argparse
import asyncio
import sys
from typing import Any, Optional

from chat_widget.config import settings
from chat_widget.conversation.controller import EventKind, SessionController, SessionEvent
from chat_widget.schemas.event_schema import RECEIVE_MESSAGE, SEND_MESSAGE, TICKET_CLOSED, TYPING
from chat_widget.schemas.session_schema import Sender
from chat_widget.services.tickets import LoopbackTicketClient
from chat_widget.storage.backends import MemoryStorage
from chat_widget.storage.identity import IdentityStore
from chat_widget.storage.session_store import DurableSessionStore
from chat_widget.transport.connector import TransportConnector
from chat_widget.transport.loopback import LoopbackChannel
from chat_widget.transport.scheduler import AsyncioScheduler, Scheduler

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

AGENT_REPLY_DELAY_SEC = 1.0


class ConsoleRenderer:
    """Prints controller events the way the widget window would show them."""

    def __init__(self, agent_name: str = "Agent") -> None:
        self.agent_name = agent_name

    def __call__(self, event: SessionEvent) -> None:
        kind = event.kind
        if kind == EventKind.MESSAGE_APPENDED and event.message is not None:
            stamp = event.message.timestamp[11:16]
            if event.message.sender == Sender.AGENT:
                print(f"{GREEN}{BOLD}[{self.agent_name} {stamp}]{RESET} {GREEN}{event.message.text}{RESET}")
            else:
                print(f"{BLUE}{BOLD}[You {stamp}]{RESET} {BLUE}{event.message.text}{RESET}")
        elif kind == EventKind.PROMPT_CHANGED and event.prompt is not None:
            print(f"{GREEN}{BOLD}[{self.agent_name}]{RESET} {GREEN}{event.prompt.text}{RESET}")
            print(f"{DIM}  ({event.prompt.placeholder}){RESET}")
        elif kind == EventKind.DATE_SEPARATOR and event.separator is not None:
            print(f"{DIM}---------- {event.separator.label} ----------{RESET}")
        elif kind == EventKind.TYPING_STARTED:
            print(f"{DIM}  {self.agent_name} is typing...{RESET}")
        elif kind == EventKind.NOTICE:
            print(f"{RED}{BOLD}[!]{RESET} {RED}{event.text}{RESET}")
        elif kind == EventKind.TICKET_CLOSED:
            print(f"{YELLOW}{BOLD}Ticket {event.text} was closed. History cleared.{RESET}")
        elif kind == EventKind.CONNECTION_CHANGED and event.connection is not None:
            print(f"{DIM}  >> connection: {event.connection.value}{RESET}")


class ScriptedAgent:
    """Backend side of the loopback channel: types, then answers."""

    REPLIES = [
        "Thanks for reaching out! I'm looking into this now.",
        "Could you share a little more detail?",
        "Got it. I've passed this to the billing team.",
    ]

    def __init__(self, scheduler: Scheduler) -> None:
        self._scheduler = scheduler
        self._turn = 0

    async def __call__(self, channel: LoopbackChannel, event: str, payload: dict[str, Any]) -> None:
        if event != SEND_MESSAGE:
            return
        reply = self.REPLIES[self._turn % len(self.REPLIES)]
        self._turn += 1
        await channel.deliver(TYPING, {"type": "typing"})

        async def _answer() -> None:
            if channel.is_open:
                await channel.deliver(RECEIVE_MESSAGE, {"type": "message", "message": reply})

        self._scheduler.call_later("agent-reply", AGENT_REPLY_DELAY_SEC, _answer)


class ConsoleSession:
    """Offline widget session: loopback transport, memory storage."""

    SCENARIOS: dict[str, list[str]] = {
        "onboarding": [
            "Ana",
            "Lee",
            "ana@x.com",
            "Billing issue",
            "I was charged twice this month.",
        ],
        "reconnect": [
            "Ana",
            "Lee",
            "ana@x.com",
            "Billing issue",
            "/drop",
            "Are you still there?",
        ],
        "closure": [
            "Ana",
            "Lee",
            "ana@x.com",
            "Billing issue",
            "/close-ticket",
            "Another question about my invoice",
        ],
    }

    def __init__(self) -> None:
        self.scheduler = AsyncioScheduler()
        self.channel = LoopbackChannel(responder=ScriptedAgent(self.scheduler))
        self.tickets = LoopbackTicketClient()
        storage = MemoryStorage()
        self.controller = SessionController(
            identity=IdentityStore(storage),
            store=DurableSessionStore(storage),
            connector=TransportConnector(self.channel, self.scheduler),
            tickets=self.tickets,
            scheduler=self.scheduler,
            api_token="demo-token",
        )
        self.controller.subscribe(ConsoleRenderer())

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    async def handle(self, line: str) -> bool:
        """Process one input line. Returns False when the session should end."""
        if line in ("/quit", "/exit"):
            return False
        if line == "/drop":
            self.system_log("simulating network drop")
            await self.channel.drop()
            return True
        if line == "/close-ticket":
            ticket_id = self.controller.ticket_info.id
            self.system_log(f"agent closes ticket {ticket_id}")
            await self.channel.deliver(TICKET_CLOSED, {"ticket_id": ticket_id})
            return True
        print(f"{BLUE}{BOLD}> {RESET}{line}")
        await self.controller.submit(line)
        return True

    async def run(self, scenario: Optional[str] = None) -> None:
        await self.controller.start()
        await self.controller.open()
        pause = max(settings.onboarding.typing_delay_sec, AGENT_REPLY_DELAY_SEC) + 0.2
        try:
            if scenario:
                for line in self.SCENARIOS[scenario]:
                    await asyncio.sleep(pause)
                    await self.handle(line)
                    if line == "/drop":
                        await asyncio.sleep(settings.transport.reconnect_backoff_sec + 0.2)
                await asyncio.sleep(AGENT_REPLY_DELAY_SEC + 0.2)
            else:
                print(f"{DIM}Type a message. /drop, /close-ticket, /quit{RESET}")
                while True:
                    raw = await asyncio.to_thread(sys.stdin.readline)
                    if not raw or not await self.handle(raw.strip()):
                        break
        finally:
            await self.controller.close()
            self.system_log(f"tickets created: {[r.description for r in self.tickets.requests]}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline chat widget demo")
    parser.add_argument("--scenario", choices=sorted(ConsoleSession.SCENARIOS), default=None)
    args = parser.parse_args()
    asyncio.run(ConsoleSession().run(args.scenario))


if __name__ == "__main__":
    main()
