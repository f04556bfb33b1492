"""Shared fixtures: recording transports, fixed clock, sample subscriptions."""

from __future__ import annotations

import threading
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

import pytest

from subcal.app.billing.dispatcher import DispatcherConfig, NotificationDispatcher
from subcal.app.billing.models import DispatchMode, Subscription
from subcal.app.billing.notification_service import NotificationService

TODAY = date(2025, 1, 30)


class RecordingMailer:
    """MailTransport that records calls and can be told to fail."""

    def __init__(self, fail_with: Optional[Exception] = None, barrier: Optional[threading.Barrier] = None):
        self.fail_with = fail_with
        self.barrier = barrier
        self.sent: List[Tuple[str, str, str, str]] = []

    def send_mail(self, from_addr, to_addr, subject, html_body):
        self.sent.append((from_addr, to_addr, subject, html_body))
        if self.barrier is not None:
            self.barrier.wait()
        if self.fail_with is not None:
            raise self.fail_with


class RecordingChat:
    """ChatTransport that records calls and can be told to fail."""

    def __init__(self, fail_with: Optional[Exception] = None, barrier: Optional[threading.Barrier] = None):
        self.fail_with = fail_with
        self.barrier = barrier
        self.sent: List[Tuple[str, str]] = []

    def send_message(self, chat_id, text):
        self.sent.append((chat_id, text))
        if self.barrier is not None:
            self.barrier.wait()
        if self.fail_with is not None:
            raise self.fail_with


def make_subscription(
    name: str = "Netflix",
    price: str = "15.99",
    billing_cycle: str = "monthly",
    next_billing_date=None,
) -> Subscription:
    return Subscription(
        name=name,
        price=Decimal(price),
        billing_cycle=billing_cycle,
        next_billing_date=next_billing_date if next_billing_date is not None else TODAY + timedelta(days=7),
    )


def make_config(mode: DispatchMode = DispatchMode.MULTI, **overrides) -> DispatcherConfig:
    values = {
        "mode": mode,
        "sender_address": "reminders@example.com",
        "chat_id": "424242",
    }
    values.update(overrides)
    return DispatcherConfig(**values)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def chat() -> RecordingChat:
    return RecordingChat()


@pytest.fixture
def service(mailer, chat) -> NotificationService:
    dispatcher = NotificationDispatcher(make_config(), mailer, chat)
    return NotificationService(dispatcher, clock=lambda: TODAY)
