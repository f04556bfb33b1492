"""
rendering.py — Message templates for billing reminders.

═══════════════════════════════════════════════════════════════════════════
EMAIL TEMPLATE STRUCTURE
═══════════════════════════════════════════════════════════════════════════

    Subject: 🔔 Subscription Billing Reminder - {count} subscription(s) due in {days} days
    Body:
        ┌─────────────────────────────────────────┐
        │  ⚠️ Upcoming Subscription Billing         │
        │  {count} subscription(s) due in {days}    │
        ├─────────────────────────────────────────┤
        │  Total Amount Due: ${total}               │
        │  • {name} - ${price} ({cycle})            │
        │  💡 Tip: keep funds available             │
        └─────────────────────────────────────────┘

═══════════════════════════════════════════════════════════════════════════
CHAT MARKUP
═══════════════════════════════════════════════════════════════════════════

The chat message is authored with HTML emphasis (<b>, <i>) and translated
to the bot's parse mode:

    Parse mode     Bold          Italic        Escaping
    ──────────     ──────────    ──────────    ─────────────────────────
    HTML           <b>…</b>      <i>…</i>      & < > as entities
    MarkdownV2     *…*           _…_           backslash before specials

Subscription names are user input and are escaped for every format.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from subcal.app.billing.models import NotificationRequest

CURRENCY_SYMBOL = "$"

PARSE_MODE_HTML = "HTML"
PARSE_MODE_MARKDOWN_V2 = "MarkdownV2"
SUPPORTED_PARSE_MODES = (PARSE_MODE_HTML, PARSE_MODE_MARKDOWN_V2)

FUNDS_TIP = (
    "Make sure you have sufficient funds in your payment method "
    "to avoid any service interruptions."
)

# Characters MarkdownV2 requires escaping outside of entities
_MARKDOWN_V2_SPECIALS = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
_EMPHASIS_TAG = re.compile(r"<(/?)(b|strong|i|em)>")


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html_body: str


def format_money(amount: Decimal) -> str:
    """Render an amount as currency with exactly two decimals."""
    quantized = Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return f"{CURRENCY_SYMBOL}{quantized}"


def build_subject(request: NotificationRequest) -> str:
    return (
        f"🔔 Subscription Billing Reminder - {request.count} subscription(s) "
        f"due in {request.days_until_billing} days"
    )


def _build_line_items(request: NotificationRequest) -> str:
    return "".join(
        f'<li style="margin:10px 0;padding:10px;background:#f9f9f9;border-radius:4px;">'
        f"<strong>{html.escape(s.name)}</strong> - {format_money(s.price)} "
        f"({html.escape(s.billing_cycle)})</li>"
        for s in request.subscriptions
    )


def build_html_body(request: NotificationRequest) -> str:
    """Render the HTML email body."""
    total = format_money(request.total_amount)
    return f"""
    <div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;">
      <h2 style="color:#d32f2f;">⚠️ Upcoming Subscription Billing</h2>
      <p>You have <strong>{request.count} subscription(s)</strong> due in <strong>{request.days_until_billing} days</strong>.</p>
      <div style="background:#fff3cd;padding:20px;border-radius:8px;margin:20px 0;border-left:4px solid #ffc107;">
        <h3 style="color:#856404;margin-top:0;">Total Amount Due: {total}</h3>
      </div>
      <h3 style="color:#333;">Upcoming Subscriptions:</h3>
      <ul style="list-style:none;padding:0;">
        {_build_line_items(request)}
      </ul>
      <div style="background:#e3f2fd;padding:15px;border-radius:8px;margin:20px 0;">
        <p style="margin:0;color:#1976d2;"><strong>💡 Tip:</strong> {FUNDS_TIP}</p>
      </div>
      <p style="color:#666;font-size:14px;">This notification was sent from your Subscription Calendar app.</p>
    </div>
    """


def render_email(request: NotificationRequest) -> RenderedEmail:
    return RenderedEmail(subject=build_subject(request), html_body=build_html_body(request))


def build_chat_html(request: NotificationRequest) -> str:
    """Chat message in HTML emphasis, before dialect translation."""
    lines = "\n".join(
        f"• {html.escape(s.name)} - {format_money(s.price)} ({html.escape(s.billing_cycle)})"
        for s in request.subscriptions
    )
    return (
        "⚠️ <b>Upcoming Subscription Billing</b>\n\n"
        f"You have <b>{request.count} subscription(s)</b> due in "
        f"<b>{request.days_until_billing} days</b>.\n\n"
        f"💰 <b>Total Amount Due: {format_money(request.total_amount)}</b>\n\n"
        "📋 <b>Upcoming Subscriptions:</b>\n"
        f"{lines}\n\n"
        f"💡 <i>{FUNDS_TIP}</i>"
    )


def _html_to_markdown_v2(text: str) -> str:
    markers = {"b": "*", "strong": "*", "i": "_", "em": "_"}
    out = []
    pos = 0
    for tag in _EMPHASIS_TAG.finditer(text):
        chunk = html.unescape(text[pos:tag.start()])
        out.append(_MARKDOWN_V2_SPECIALS.sub(r"\\\1", chunk))
        out.append(markers[tag.group(2)])
        pos = tag.end()
    out.append(_MARKDOWN_V2_SPECIALS.sub(r"\\\1", html.unescape(text[pos:])))
    return "".join(out)


def to_chat_markup(html_text: str, parse_mode: str = PARSE_MODE_HTML) -> str:
    """
    Translate HTML emphasis into the chat bot's markup dialect.

    Raises
    ------
    ValueError
        For a parse mode the bot does not understand.
    """
    if parse_mode == PARSE_MODE_HTML:
        html_text = re.sub(r"<(/?)strong>", r"<\1b>", html_text)
        return re.sub(r"<(/?)em>", r"<\1i>", html_text)
    if parse_mode == PARSE_MODE_MARKDOWN_V2:
        return _html_to_markdown_v2(html_text)
    raise ValueError(f"Unsupported parse mode: {parse_mode}")


def render_chat_message(request: NotificationRequest, parse_mode: str = PARSE_MODE_HTML) -> str:
    return to_chat_markup(build_chat_html(request), parse_mode)


# ── Canned verification messages ──

TEST_EMAIL_SUBJECT = "Subscription Calendar - Test Email"

TEST_EMAIL_HTML = """
    <div style="font-family:Arial,sans-serif;max-width:600px;margin:0 auto;">
      <h2 style="color:#333;">🔔 Subscription Calendar Test Email</h2>
      <p>This is a test email from your Subscription Calendar app!</p>
      <div style="background:#f5f5f5;padding:20px;border-radius:8px;margin:20px 0;">
        <h3 style="color:#1976d2;">Email notifications are working correctly!</h3>
        <p>You'll now receive notifications for upcoming subscription billing dates.</p>
      </div>
      <p style="color:#666;font-size:14px;">If you received this email, your notification system is properly configured.</p>
    </div>
    """

TEST_CHAT_HTML = (
    "🔔 <b>Subscription Calendar Test Message</b>\n\n"
    "This is a test message from your Subscription Calendar app!\n\n"
    "✅ Telegram notifications are working correctly!"
)
