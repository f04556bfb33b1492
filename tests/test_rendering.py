"""
test_rendering.py — Email and chat templates.

Run with:
    pytest tests/test_rendering.py -v
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from subcal.app.billing.models import NotificationRequest
from subcal.app.billing.rendering import (
    PARSE_MODE_HTML,
    PARSE_MODE_MARKDOWN_V2,
    build_subject,
    format_money,
    render_chat_message,
    render_email,
    to_chat_markup,
)

from conftest import make_subscription


def _make_request(*subs, days: int = 7) -> NotificationRequest:
    return NotificationRequest(
        recipient_address="me@example.com",
        subscriptions=list(subs) or [make_subscription()],
        days_until_billing=days,
    )


class TestFormatMoney:

    def test_two_decimals(self):
        assert format_money(Decimal("15.99")) == "$15.99"
        assert format_money(Decimal("10")) == "$10.00"

    def test_rounds_half_up(self):
        assert format_money(Decimal("0.125")) == "$0.13"


class TestEmail:

    def test_subject_includes_count_and_days(self):
        subject = build_subject(_make_request(days=7))
        assert "1 subscription(s) due in 7 days" in subject

    def test_body_has_total_and_line_items(self):
        request = _make_request(
            make_subscription("Netflix", "15.99"),
            make_subscription("Gym", "30", billing_cycle="yearly"),
        )
        email = render_email(request)

        assert "Total Amount Due: $45.99" in email.html_body
        assert "<strong>Netflix</strong> - $15.99 (monthly)" in email.html_body
        assert "<strong>Gym</strong> - $30.00 (yearly)" in email.html_body
        assert "2 subscription(s)" in email.html_body

    def test_names_are_html_escaped(self):
        email = render_email(_make_request(make_subscription("<script>x</script>")))
        assert "<script>" not in email.html_body
        assert "&lt;script&gt;" in email.html_body


class TestChatMarkup:

    def test_html_mode_keeps_b_and_i(self):
        text = render_chat_message(_make_request(make_subscription("Netflix")), PARSE_MODE_HTML)

        assert "<b>Upcoming Subscription Billing</b>" in text
        assert "• Netflix - $15.99 (monthly)" in text
        assert "<i>" in text

    def test_html_mode_normalises_strong_and_em(self):
        assert to_chat_markup("<strong>a</strong> <em>b</em>") == "<b>a</b> <i>b</i>"

    def test_markdown_v2_translates_emphasis_and_escapes(self):
        text = to_chat_markup("<b>Total: $1.50</b> - <i>A_b</i>", PARSE_MODE_MARKDOWN_V2)
        assert text == "*Total: $1\\.50* \\- _A\\_b_"

    def test_markdown_v2_unescapes_html_entities(self):
        text = render_chat_message(_make_request(make_subscription("R&D")), PARSE_MODE_MARKDOWN_V2)
        assert "R&D" in text
        assert "&amp;" not in text

    def test_unknown_parse_mode_rejected(self):
        with pytest.raises(ValueError):
            to_chat_markup("<b>x</b>", "BBCode")
