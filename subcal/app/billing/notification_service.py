"""
notification_service.py — Entry points consumed by the HTTP layer.

    check_upcoming            matcher → (optional) dispatcher, in process
    send_billing_notification dispatcher only
    send_test                 canned message through one named channel

The clock is injected so that "today" is controllable in tests; it
defaults to the server's local calendar date.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Callable, Optional, Sequence, Union

from subcal.app.billing.channels.email_channel import build_mailer
from subcal.app.billing.channels.telegram_channel import build_chat_client
from subcal.app.billing.dispatcher import DispatcherConfig, NotificationDispatcher
from subcal.app.billing.due_date_matcher import find_due_subscriptions
from subcal.app.billing.models import (
    ChannelOutcome,
    DispatchOutcome,
    NotificationChannel,
    NotificationRequest,
    Subscription,
    UpcomingCheckResult,
)
from subcal.app.core.config import Settings
from subcal.app.core.errors import ValidationError

logger = logging.getLogger(__name__)

Clock = Callable[[], date]


def parse_lookahead(value: Any, today: Optional[date] = None) -> int:
    """
    Coerce a lookahead window to a non-negative int.

    Accepts ints and integer strings ("7"); rejects everything else. When
    `today` is given, windows reaching past `date.max` are rejected too.
    """
    if isinstance(value, bool):
        raise ValidationError("notificationDays must be an integer", field="notificationDays")
    if isinstance(value, int):
        days = value
    elif isinstance(value, str) and re.fullmatch(r"[+-]?[0-9]+", value.strip()):
        try:
            days = int(value.strip())
        except ValueError:
            raise ValidationError(
                "notificationDays is out of range",
                field="notificationDays",
            ) from None
    else:
        raise ValidationError(
            "notificationDays must be an integer",
            field="notificationDays",
            value=repr(value),
        )
    if days < 0:
        raise ValidationError(
            "notificationDays must be zero or greater",
            field="notificationDays",
        )
    if today is not None and days > (date.max - today).days:
        raise ValidationError(
            "notificationDays is out of range",
            field="notificationDays",
        )
    return days


def parse_channel(value: Union[str, NotificationChannel]) -> NotificationChannel:
    try:
        return NotificationChannel(value)
    except ValueError:
        valid = [c.value for c in NotificationChannel]
        raise ValidationError(
            f"Invalid channel '{value}'. Must be one of: {valid}",
            field="channel",
        ) from None


class NotificationService:
    """Compose the due-date matcher with the notification dispatcher."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        *,
        clock: Clock = date.today,
        default_recipient: Optional[str] = None,
    ):
        self.dispatcher = dispatcher
        self.clock = clock
        self.default_recipient = default_recipient

    def check_upcoming(
        self,
        subscriptions: Sequence[Subscription],
        notification_days: Any,
        recipient_address: Optional[str] = None,
    ) -> UpcomingCheckResult:
        """
        Find subscriptions billing `notification_days` from today and, when
        there are any and a recipient is known, notify about them.
        """
        today = self.clock()
        days = parse_lookahead(notification_days, today)
        found = find_due_subscriptions(subscriptions, today, days)
        result = UpcomingCheckResult(matched=found.matched, rejected=found.rejected)

        recipient = (recipient_address or self.default_recipient or "").strip()
        if not found.matched:
            logger.info("No subscriptions due in %d days (today=%s)", days, today.isoformat())
            return result
        if not recipient:
            logger.info(
                "%d subscription(s) due in %d days but no recipient configured; not notifying",
                len(found.matched), days,
            )
            return result

        result.outcome = self.dispatcher.dispatch(
            NotificationRequest(
                recipient_address=recipient,
                subscriptions=found.matched,
                days_until_billing=days,
            )
        )
        return result

    def send_billing_notification(self, request: NotificationRequest) -> DispatchOutcome:
        return self.dispatcher.dispatch(request)

    def send_test(
        self,
        channel: Union[str, NotificationChannel],
        target: Optional[str] = None,
    ) -> ChannelOutcome:
        return self.dispatcher.send_test(parse_channel(channel), target)


def build_notification_service(config: Settings, *, clock: Clock = date.today) -> NotificationService:
    """Wire transports and dispatcher from settings."""
    dispatcher = NotificationDispatcher(
        DispatcherConfig.from_settings(config),
        mailer=build_mailer(config),
        chat_client=build_chat_client(config),
    )
    return NotificationService(
        dispatcher,
        clock=clock,
        default_recipient=config.DEFAULT_RECIPIENT,
    )
