"""
Widget Config Service client.

Fetched once at startup. Any failure here is fatal to widget
initialization: it is logged and re-raised as WidgetConfigError, never
retried.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from chat_widget.config import settings
from chat_widget.schemas.service_schema import WidgetConfig

logger = logging.getLogger(__name__)

CONFIG_PATH = "/integrations/chat-widgets"


class WidgetConfigError(Exception):
    """Raised when the widget configuration cannot be fetched."""


class WidgetConfigClient:
    """Reads branding and copy keyed by the widget's API token."""

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

    async def fetch(self) -> WidgetConfig:
        """Fetch the widget configuration.

        Raises:
            WidgetConfigError: On a non-2xx response, network error or an
                unreadable body.
        """
        headers = {
            "apiKey": self.api_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.api_base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(CONFIG_PATH, headers=headers)
                response.raise_for_status()
                config = WidgetConfig.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch widget configuration: %s", exc)
            raise WidgetConfigError("Failed to fetch widget configuration") from exc
        except (ValueError, ValidationError) as exc:
            logger.error("Widget configuration response unreadable: %s", exc)
            raise WidgetConfigError("Widget configuration response unreadable") from exc

        logger.info("Widget configuration loaded for '%s'", config.name)
        return config
