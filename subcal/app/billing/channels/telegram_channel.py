"""
telegram_channel.py — Chat-bot delivery via the Telegram Bot API.

    App  →  POST {api_base}/bot{token}/sendMessage  →  Telegram  →  chat
            {"chat_id": ..., "text": ..., "parse_mode": "HTML"}

The bot is pre-authenticated by its token and never polls for updates;
it only pushes messages. The dispatcher sees the narrow ChatTransport
interface:

    send_message(chat_id, text) -> None

A transport returns on success and raises ChannelError on failure. The
bot token is scrubbed from every error detail.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from subcal.app.billing.models import NotificationChannel
from subcal.app.billing.rendering import PARSE_MODE_HTML
from subcal.app.core.config import Settings
from subcal.app.core.errors import ChannelError

logger = logging.getLogger(__name__)


class ChatTransport(Protocol):
    def send_message(self, chat_id: str, text: str) -> None:
        ...


class TelegramBotClient:
    """Minimal synchronous client for the Bot API sendMessage method."""

    def __init__(
        self,
        token: str,
        *,
        api_base: str = "https://api.telegram.org",
        parse_mode: str = PARSE_MODE_HTML,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.api_base = api_base.rstrip("/")
        self.parse_mode = parse_mode
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _scrub(self, text: str) -> str:
        return text.replace(self.token, "<token>") if self.token else text

    def _fail(self, message: str, **details: Any) -> ChannelError:
        return ChannelError(NotificationChannel.TELEGRAM.value, self._scrub(message), **details)

    def send_message(self, chat_id: str, text: str) -> None:
        url = f"{self.api_base}/bot{self.token}/sendMessage"
        body: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": self.parse_mode,
        }

        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = client.post(url, json=body)
        except httpx.HTTPError as exc:
            raise self._fail(f"{type(exc).__name__}: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error or not data.get("ok", False):
            description = data.get("description") or response.reason_phrase or "unknown error"
            raise self._fail(
                f"HTTP {response.status_code}: {description}",
                status_code=response.status_code,
            )

        logger.info(
            "[TELEGRAM] Message sent to chat %s (%d chars)",
            chat_id, len(text),
            extra={"channel": NotificationChannel.TELEGRAM.value, "recipient": chat_id},
        )


class SimulatedChatClient:
    """Log instead of sending; used in development and demos."""

    def send_message(self, chat_id: str, text: str) -> None:
        logger.info(
            "[TELEGRAM] (simulated) → chat %s: '%s'",
            chat_id, text[:80] + ("..." if len(text) > 80 else ""),
            extra={"channel": NotificationChannel.TELEGRAM.value, "recipient": chat_id},
        )


def build_chat_client(config: Settings) -> Optional[ChatTransport]:
    """
    Select the chat transport named by TELEGRAM_PROVIDER.

    Returns None when the Bot API is selected but no token is configured;
    the dispatcher then reports the channel as unconfigured.
    """
    provider = config.TELEGRAM_PROVIDER.lower()
    if provider == "simulation":
        return SimulatedChatClient()
    if provider == "bot_api":
        if not config.TELEGRAM_BOT_TOKEN:
            return None
        return TelegramBotClient(
            config.TELEGRAM_BOT_TOKEN,
            api_base=config.TELEGRAM_API_BASE,
            parse_mode=config.TELEGRAM_PARSE_MODE,
            timeout_seconds=config.TELEGRAM_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown telegram provider: {config.TELEGRAM_PROVIDER}")
