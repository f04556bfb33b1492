"""
test_notification_service.py — Matcher + dispatcher composition.

Run with:
    pytest tests/test_notification_service.py -v
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from subcal.app.billing.channels.email_channel import SIMULATED_SENDER
from subcal.app.billing.dispatcher import DispatcherConfig, NotificationDispatcher
from subcal.app.billing.models import DispatchMode, NotificationChannel
from subcal.app.billing.notification_service import (
    NotificationService,
    build_notification_service,
    parse_channel,
    parse_lookahead,
)
from subcal.app.core.config import Settings
from subcal.app.core.errors import ChannelError, ValidationError

from conftest import TODAY, RecordingMailer, make_config, make_subscription


class TestParseLookahead:

    @pytest.mark.parametrize("value, expected", [(0, 0), (7, 7), ("7", 7), (" 3 ", 3)])
    def test_accepts_integers(self, value, expected):
        assert parse_lookahead(value) == expected

    @pytest.mark.parametrize("value", [-1, "-2", "seven", "7.5", 7.5, None, True, [7]])
    def test_rejects_everything_else(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_lookahead(value)
        assert exc_info.value.details["field"] == "notificationDays"

    def test_window_must_stay_inside_calendar(self):
        last = (date.max - TODAY).days

        assert parse_lookahead(last, TODAY) == last
        with pytest.raises(ValidationError, match="out of range"):
            parse_lookahead(last + 1, TODAY)
        with pytest.raises(ValidationError, match="out of range"):
            parse_lookahead("10000000", TODAY)

    def test_oversized_digit_string(self):
        with pytest.raises(ValidationError, match="out of range"):
            parse_lookahead("9" * 5000, TODAY)


class TestParseChannel:

    def test_known(self):
        assert parse_channel("telegram") == NotificationChannel.TELEGRAM

    def test_unknown(self):
        with pytest.raises(ValidationError):
            parse_channel("carrier-pigeon")


class TestCheckUpcoming:

    def test_netflix_spotify_end_to_end(self, service, mailer, chat):
        netflix = make_subscription("Netflix", "15.99", next_billing_date=TODAY + timedelta(days=7))
        spotify = make_subscription("Spotify", "9.99", next_billing_date=TODAY + timedelta(days=10))

        result = service.check_upcoming([netflix, spotify], 7, "me@example.com")

        assert result.matched == [netflix]
        assert result.notification_sent is True
        _, to_addr, subject, body = mailer.sent[0]
        assert to_addr == "me@example.com"
        assert "1 subscription(s) due in 7 days" in subject
        assert "$15.99" in body
        assert "Spotify" not in body
        assert len(chat.sent) == 1

    def test_no_match_sends_nothing(self, service, mailer, chat):
        result = service.check_upcoming([make_subscription()], 3, "me@example.com")

        assert result.matched == []
        assert result.notification_sent is False
        assert result.outcome is None
        assert mailer.sent == [] and chat.sent == []

    def test_match_without_recipient_sends_nothing(self, service, mailer):
        result = service.check_upcoming([make_subscription()], 7, None)

        assert len(result.matched) == 1
        assert result.notification_sent is False
        assert result.outcome is None
        assert mailer.sent == []

    def test_default_recipient_used(self, mailer, chat):
        dispatcher = NotificationDispatcher(make_config(), mailer, chat)
        service = NotificationService(dispatcher, clock=lambda: TODAY, default_recipient="fallback@example.com")

        result = service.check_upcoming([make_subscription()], "7")

        assert result.notification_sent is True
        assert mailer.sent[0][1] == "fallback@example.com"

    def test_malformed_lookahead_is_validation_error(self, service, mailer):
        with pytest.raises(ValidationError):
            service.check_upcoming([make_subscription()], "soon", "me@example.com")
        assert mailer.sent == []

    def test_rejected_records_reported(self, service):
        good = make_subscription("Good")
        bad = make_subscription("Bad", next_billing_date="whenever")

        result = service.check_upcoming([good, bad], 7, "me@example.com")

        assert result.matched == [good]
        assert [r.name for r in result.rejected] == ["Bad"]
        data = result.to_dict()
        assert data["rejected"][0]["index"] == 1
        assert data["upcomingSubscriptions"][0]["name"] == "Good"

    def test_partial_delivery_is_not_reported_as_sent(self, chat):
        mailer = RecordingMailer(fail_with=ChannelError("email", "SMTP down"))
        dispatcher = NotificationDispatcher(make_config(), mailer, chat)
        service = NotificationService(dispatcher, clock=lambda: TODAY)

        result = service.check_upcoming([make_subscription()], 7, "me@example.com")

        assert result.notification_sent is False
        assert result.outcome.partial is True
        assert result.outcome.telegram.success is True

    def test_huge_lookahead_is_validation_error(self, service, mailer, chat):
        with pytest.raises(ValidationError) as exc_info:
            service.check_upcoming([make_subscription()], 10**7, "me@example.com")

        assert exc_info.value.details["field"] == "notificationDays"
        assert mailer.sent == [] and chat.sent == []

    def test_clock_is_consulted(self, mailer, chat):
        dispatcher = NotificationDispatcher(make_config(DispatchMode.SINGLE), mailer, chat)
        later = TODAY + timedelta(days=1)
        service = NotificationService(dispatcher, clock=lambda: later)

        # billing on TODAY + 7 is only 6 days after the injected clock
        assert service.check_upcoming([make_subscription()], 6, "me@example.com").matched


class TestBuildNotificationService:

    def test_wires_dispatch_mode_and_recipient(self):
        config = Settings(
            _env_file=None,
            DISPATCH_MODE="single",
            EMAIL_PROVIDER="simulation",
            EMAIL_USER="sender@example.com",
            DEFAULT_RECIPIENT="me@example.com",
        )

        service = build_notification_service(config, clock=lambda: TODAY)
        result = service.check_upcoming([make_subscription()], 7)

        assert service.dispatcher.config.mode == DispatchMode.SINGLE
        assert result.notification_sent is True
        assert list(result.outcome.channels) == [NotificationChannel.EMAIL]

    def test_simulation_without_sender_still_delivers(self):
        config = Settings(
            _env_file=None,
            DISPATCH_MODE="single",
            EMAIL_PROVIDER="simulation",
            EMAIL_USER=None,
        )

        service = build_notification_service(config, clock=lambda: TODAY)
        result = service.check_upcoming([make_subscription()], 7, "me@example.com")

        assert service.dispatcher.config.sender_address == SIMULATED_SENDER
        assert result.notification_sent is True

    def test_smtp_without_sender_is_not_defaulted(self):
        config = Settings(_env_file=None, EMAIL_PROVIDER="smtp", EMAIL_USER=None)
        assert DispatcherConfig.from_settings(config).sender_address is None
