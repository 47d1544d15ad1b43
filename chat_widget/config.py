"""
Centralized configuration with environment variable overrides.

Service endpoints, reconnect timing, onboarding pacing and storage
location are all configurable here. Nothing is hardcoded in the
transport, storage or conversation logic.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from chat_widget.logging_context import visitor_handler

load_dotenv()

logger = logging.getLogger(__name__)

AUTH_MODES = ("handshake", "message")


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class ServiceConfig:
    """Backend endpoints and credentials."""

    api_base_url: str = os.getenv("CHAT_WIDGET_API_BASE_URL", "https://staging.dispute.evoolv.com")
    ws_url: str = os.getenv("CHAT_WIDGET_WS_URL", "wss://staging.dispute.evoolv.com/user")
    api_token: str = os.getenv("CHAT_WIDGET_API_TOKEN", "")
    ticket_category: str = os.getenv("TICKET_CATEGORY", "support")
    http_timeout_sec: float = _safe_float("HTTP_TIMEOUT_SEC", "0")

    @property
    def http_timeout(self) -> Optional[float]:
        """Request timeout for httpx, ``None`` when waiting forever."""
        return self.http_timeout_sec or None


@dataclass(frozen=True)
class TransportConfig:
    """Realtime connection settings."""

    reconnect_backoff_sec: float = _safe_float("RECONNECT_BACKOFF_SEC", "3.0")
    auth_mode: str = os.getenv("AUTH_MODE", "handshake")


@dataclass(frozen=True)
class OnboardingConfig:
    """Onboarding pacing and input checks."""

    typing_delay_sec: float = _safe_float("TYPING_DELAY_SEC", "0.6")
    validate_email: bool = _safe_bool("VALIDATE_EMAIL", "false")


@dataclass(frozen=True)
class StorageConfig:
    """Where the durable client storage lives."""

    path: str = os.getenv("STORAGE_PATH", os.path.join(os.path.expanduser("~"), ".chat_widget", "storage.db"))
    origin: str = os.getenv("STORAGE_ORIGIN", "default")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    service: ServiceConfig = field(default_factory=ServiceConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    onboarding: OnboardingConfig = field(default_factory=OnboardingConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.transport.reconnect_backoff_sec <= 0:
        raise ValueError(
            "RECONNECT_BACKOFF_SEC must be > 0, "
            f"got {config.transport.reconnect_backoff_sec}"
        )
    if config.transport.auth_mode not in AUTH_MODES:
        raise ValueError(
            f"AUTH_MODE must be one of {AUTH_MODES}, got {config.transport.auth_mode!r}"
        )
    if config.onboarding.typing_delay_sec < 0:
        raise ValueError(
            f"TYPING_DELAY_SEC must be >= 0, got {config.onboarding.typing_delay_sec}"
        )
    if config.service.http_timeout_sec < 0:
        raise ValueError(
            f"HTTP_TIMEOUT_SEC must be >= 0, got {config.service.http_timeout_sec}"
        )
    for name, url, schemes in [
        ("CHAT_WIDGET_API_BASE_URL", config.service.api_base_url, ("http://", "https://")),
        ("CHAT_WIDGET_WS_URL", config.service.ws_url, ("ws://", "wss://")),
    ]:
        if not url.startswith(schemes):
            raise ValueError(f"{name} must start with one of {schemes}, got {url!r}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[visitor_handler()],
    )
    logger.info("Configuration loaded for '%s'", config.service.api_base_url)
    return config


# Singleton instance
settings = load_config()
