"""
dispatcher.py — Fan a billing reminder out to its delivery channels.

This is the coordinator that:
    1. Validates the request (recipient present, subscriptions non-empty)
    2. Renders the email and, in multi mode, the chat message
    3. Invokes each channel exactly once, capturing one outcome per channel
    4. Rolls the outcomes up according to the configured DispatchMode

═══════════════════════════════════════════════════════════════════════════
DISPATCH FLOW
═══════════════════════════════════════════════════════════════════════════

    ┌─────────────────────┐
    │  NotificationRequest│
    └─────────┬───────────┘
              │  ValidationError → raised, nothing sent
              ▼
    ┌─────────────────────┐
    │  Render             │  subject + HTML body, chat markup
    └─────────┬───────────┘
              │
       ┌──────┴──────┐         multi mode: both run concurrently,
       ▼             ▼         the join waits for every channel
    ┌───────┐   ┌──────────┐
    │ email │   │ telegram │   each wrapped: success, or failure + detail
    └───┬───┘   └────┬─────┘
        └──────┬─────┘
               ▼
    ┌─────────────────────┐
    │  DispatchOutcome    │
    └─────────────────────┘

Failures are reported, never retried here; retry and alerting policy
belong to the caller.
"""

from __future__ import annotations

import contextvars
import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from subcal.app.billing.channels.email_channel import SIMULATED_SENDER, MailTransport
from subcal.app.billing.channels.telegram_channel import ChatTransport
from subcal.app.billing.models import (
    CHANNELS_BY_MODE,
    ChannelOutcome,
    DispatchMode,
    DispatchOutcome,
    NotificationChannel,
    NotificationRequest,
)
from subcal.app.billing.rendering import (
    PARSE_MODE_HTML,
    SUPPORTED_PARSE_MODES,
    TEST_CHAT_HTML,
    TEST_EMAIL_HTML,
    TEST_EMAIL_SUBJECT,
    render_chat_message,
    render_email,
    to_chat_markup,
)
from subcal.app.core.config import Settings
from subcal.app.core.errors import ChannelError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DispatcherConfig:
    """
    Everything the dispatcher needs from the environment, made explicit.

    Attributes
    ----------
    mode : DispatchMode
        single = email only; multi = email + telegram.
    sender_address : str | None
        From: address for email.
    chat_id : str | None
        Telegram chat that receives reminders.
    parse_mode : str
        Telegram markup dialect ("HTML" or "MarkdownV2").
    """
    mode: DispatchMode = DispatchMode.SINGLE
    sender_address: Optional[str] = None
    chat_id: Optional[str] = None
    parse_mode: str = PARSE_MODE_HTML

    def __post_init__(self) -> None:
        if self.parse_mode not in SUPPORTED_PARSE_MODES:
            raise ValueError(
                f"Unsupported parse mode '{self.parse_mode}'. "
                f"Must be one of: {list(SUPPORTED_PARSE_MODES)}"
            )

    @classmethod
    def from_settings(cls, config: Settings) -> "DispatcherConfig":
        sender = config.EMAIL_USER
        if not sender and config.EMAIL_PROVIDER.lower() == "simulation":
            sender = SIMULATED_SENDER
        return cls(
            mode=DispatchMode(config.DISPATCH_MODE.lower()),
            sender_address=sender,
            chat_id=config.TELEGRAM_CHAT_ID,
            parse_mode=config.TELEGRAM_PARSE_MODE,
        )


def validate_request(request: NotificationRequest) -> None:
    """Raise ValidationError for a request that must not be sent."""
    if not request.recipient_address or not request.recipient_address.strip():
        raise ValidationError("Email address is required", field="emailAddress")
    if not request.subscriptions:
        raise ValidationError("At least one subscription is required", field="subscriptions")
    if request.days_until_billing < 0:
        raise ValidationError(
            "daysUntilBilling must be zero or greater",
            field="daysUntilBilling",
            value=request.days_until_billing,
        )


class NotificationDispatcher:
    """
    Send one notification through the channels selected by the mode.

    Usage:
        dispatcher = NotificationDispatcher(config, mailer, chat_client)
        outcome = dispatcher.dispatch(request)
        if outcome.partial:
            ...
    """

    def __init__(
        self,
        config: DispatcherConfig,
        mailer: MailTransport,
        chat_client: Optional[ChatTransport] = None,
    ):
        self.config = config
        self.mailer = mailer
        self.chat_client = chat_client

    # ── Channel senders ──

    def _send_email(self, to_addr: str, subject: str, html_body: str) -> None:
        if not self.config.sender_address:
            raise ChannelError(NotificationChannel.EMAIL.value, "sender address not configured")
        self.mailer.send_mail(self.config.sender_address, to_addr, subject, html_body)

    def _send_chat(self, chat_id: Optional[str], text: str) -> None:
        if self.chat_client is None or not chat_id:
            raise ChannelError(NotificationChannel.TELEGRAM.value, "telegram bot not configured")
        self.chat_client.send_message(chat_id, text)

    def _invoke(self, channel: NotificationChannel, send: Callable[[], None]) -> ChannelOutcome:
        """Run one channel send; always returns exactly one outcome."""
        outcome = ChannelOutcome(channel=channel)
        try:
            send()
            outcome.success = True
        except ChannelError as exc:
            outcome.error = exc.detail
            logger.error(
                "[%s] Delivery failed: %s", channel.value.upper(), exc.detail,
                extra={"channel": channel.value},
            )
        except Exception as exc:
            outcome.error = f"{type(exc).__name__}: {exc}"
            logger.exception(
                "[%s] Unexpected delivery error", channel.value.upper(),
                extra={"channel": channel.value},
            )
        outcome.completed_at = datetime.now(timezone.utc)
        return outcome

    def _run_all(
        self, jobs: Dict[NotificationChannel, Callable[[], None]]
    ) -> Dict[NotificationChannel, ChannelOutcome]:
        if len(jobs) == 1:
            return {channel: self._invoke(channel, send) for channel, send in jobs.items()}

        # each worker runs in a copy of the caller's context so channel logs
        # keep the request_id
        with ThreadPoolExecutor(max_workers=len(jobs)) as executor:
            futures = {
                channel: executor.submit(
                    contextvars.copy_context().run, self._invoke, channel, send
                )
                for channel, send in jobs.items()
            }
            wait(futures.values())
        return {channel: future.result() for channel, future in futures.items()}

    # ── Public API ──

    def dispatch(self, request: NotificationRequest) -> DispatchOutcome:
        """
        Send a billing reminder.

        Raises
        ------
        ValidationError
            Before any channel is touched, if the request is incomplete.
        """
        validate_request(request)

        mode = self.config.mode
        email = render_email(request)
        jobs: Dict[NotificationChannel, Callable[[], None]] = {
            NotificationChannel.EMAIL: lambda: self._send_email(
                request.recipient_address, email.subject, email.html_body
            ),
        }
        if mode == DispatchMode.MULTI:
            chat_text = render_chat_message(request, self.config.parse_mode)
            jobs[NotificationChannel.TELEGRAM] = lambda: self._send_chat(
                self.config.chat_id, chat_text
            )

        logger.info(
            "Dispatching reminder: %d subscription(s) due in %d days → %s [%s]",
            request.count, request.days_until_billing,
            request.recipient_address, mode.value,
            extra={
                "subscription_count": request.count,
                "days_until_billing": request.days_until_billing,
                "recipient": request.recipient_address,
            },
        )

        results = self._run_all(jobs)
        outcome = DispatchOutcome(
            mode=mode,
            channels={c: results[c] for c in CHANNELS_BY_MODE[mode]},
        )

        log = logger.info if outcome.success else logger.warning
        log(
            "Reminder dispatch finished: success=%s partial=%s failed=%s",
            outcome.success, outcome.partial,
            [c.value for c in outcome.failed_channels],
        )
        return outcome

    def send_test(self, channel: NotificationChannel, target: Optional[str] = None) -> ChannelOutcome:
        """
        Send a canned verification message through one channel.

        `target` is an email address for EMAIL (required) and a chat id for
        TELEGRAM (defaults to the configured chat).
        """
        if channel == NotificationChannel.EMAIL:
            if not target or not target.strip():
                raise ValidationError("Email address is required", field="emailAddress")
            return self._invoke(
                channel,
                lambda: self._send_email(target, TEST_EMAIL_SUBJECT, TEST_EMAIL_HTML),
            )

        chat_id = target or self.config.chat_id
        text = to_chat_markup(TEST_CHAT_HTML, self.config.parse_mode)
        return self._invoke(channel, lambda: self._send_chat(chat_id, text))
