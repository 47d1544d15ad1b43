"""
Ticket Service clients.

In production tickets are created over HTTP. The loopback client issues
ticket ids locally for the offline demo and for tests.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from chat_widget.config import settings
from chat_widget.schemas.service_schema import TicketRequest, TicketResponse
from chat_widget.schemas.session_schema import TicketInfo

logger = logging.getLogger(__name__)

TICKETS_PATH = "/integrations/tickets"


class TicketCreationError(Exception):
    """Raised when the Ticket Service does not return a usable ticket."""


class TicketService(ABC):
    """Creates a support ticket from onboarding answers."""

    @abstractmethod
    async def create_ticket(self, request: TicketRequest) -> TicketInfo:
        """Create a ticket. Raises TicketCreationError on failure."""


def _unwrap(body: Any) -> Any:
    # The service wraps the ticket in {"data": {...}}; older builds did not.
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body


class HttpTicketClient(TicketService):
    """Ticket Service over HTTP, authenticated with the widget's API token."""

    def __init__(
        self,
        api_base_url: str = settings.service.api_base_url,
        api_token: str = settings.service.api_token,
        timeout: Optional[float] = settings.service.http_timeout,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_base_url = api_base_url
        self.api_token = api_token
        self.timeout = timeout
        self._transport = transport

    async def create_ticket(self, request: TicketRequest) -> TicketInfo:
        headers = {"apiKey": self.api_token, "Content-Type": "application/json"}
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    TICKETS_PATH,
                    headers=headers,
                    json=request.model_dump(by_alias=True),
                )
                response.raise_for_status()
                ticket = TicketResponse.model_validate(_unwrap(response.json()))
        except httpx.HTTPError as exc:
            logger.error("Ticket creation failed: %s", exc)
            raise TicketCreationError(f"Ticket creation failed: {exc}") from exc
        except (ValueError, ValidationError) as exc:
            logger.error("Ticket response unreadable: %s", exc)
            raise TicketCreationError("Ticket response unreadable") from exc

        logger.info("Ticket created: %s (org %s)", ticket.id, ticket.organization_id)
        return TicketInfo(id=ticket.id, organization_id=ticket.organization_id)


class LoopbackTicketClient(TicketService):
    """Issues sequential ticket ids in-process. ``fail_next`` forces failures."""

    def __init__(self, organization_id: str = "ORG-LOCAL") -> None:
        self.organization_id = organization_id
        self.requests: list[TicketRequest] = []
        self.fail_next = 0

    async def create_ticket(self, request: TicketRequest) -> TicketInfo:
        self.requests.append(request)
        if self.fail_next > 0:
            self.fail_next -= 1
            raise TicketCreationError("loopback ticket service unavailable")
        ticket_id = f"T{len(self.requests)}"
        logger.info("Loopback ticket created: %s", ticket_id)
        return TicketInfo(id=ticket_id, organization_id=self.organization_id)
