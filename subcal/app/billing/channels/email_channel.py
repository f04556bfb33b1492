"""
email_channel.py — Email delivery via SMTP.

Delivery mechanism:
    • SMTP with STARTTLS + login (Gmail by default: smtp.gmail.com:587,
      authenticated with an app password)
    • multipart/alternative message: plain-text fallback + HTML body

The dispatcher only sees the narrow MailTransport interface:

    send_mail(from_addr, to_addr, subject, html_body) -> None

A transport returns on success and raises ChannelError on failure.
"""

from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from subcal.app.billing.models import NotificationChannel
from subcal.app.core.config import Settings
from subcal.app.core.errors import ChannelError

logger = logging.getLogger(__name__)

_TAG = re.compile(r"<[^>]+>")
_BLANK_LINES = re.compile(r"\n\s*\n+")


class MailTransport(Protocol):
    def send_mail(self, from_addr: str, to_addr: str, subject: str, html_body: str) -> None:
        ...


def html_to_plain(html_body: str) -> str:
    """Crude text fallback for mail clients that refuse HTML."""
    text = _TAG.sub("", html_body)
    lines = (line.strip() for line in text.splitlines())
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()


def build_message(from_addr: str, to_addr: str, subject: str, html_body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_addr
    msg.set_content(html_to_plain(html_body))
    msg.add_alternative(html_body, subtype="html")
    return msg


class SmtpMailer:
    """Send mail through an authenticated SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        *,
        timeout_seconds: float = 30.0,
        use_starttls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout_seconds = timeout_seconds
        self.use_starttls = use_starttls

    def send_mail(self, from_addr: str, to_addr: str, subject: str, html_body: str) -> None:
        msg = build_message(from_addr, to_addr, subject, html_body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as server:
                server.ehlo()
                if self.use_starttls:
                    server.starttls()
                    server.ehlo()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except smtplib.SMTPAuthenticationError as exc:
            raise ChannelError(
                NotificationChannel.EMAIL.value,
                "SMTP authentication failed; check EMAIL_USER and EMAIL_PASS",
                smtp_code=exc.smtp_code,
            ) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise ChannelError(NotificationChannel.EMAIL.value, str(exc) or type(exc).__name__) from exc

        logger.info(
            "[EMAIL] Sent '%s' to %s via %s:%d",
            subject, to_addr, self.host, self.port,
            extra={"channel": NotificationChannel.EMAIL.value, "recipient": to_addr},
        )


# From: address used when simulating without EMAIL_USER
SIMULATED_SENDER = "reminders@subcal.invalid"


class SimulatedMailer:
    """Log instead of sending; used in development and demos."""

    def send_mail(self, from_addr: str, to_addr: str, subject: str, html_body: str) -> None:
        logger.info(
            "[EMAIL] (simulated) %s → %s: Subject='%s' (%d bytes html)",
            from_addr, to_addr, subject, len(html_body),
            extra={"channel": NotificationChannel.EMAIL.value, "recipient": to_addr},
        )


def build_mailer(config: Settings) -> MailTransport:
    """Select the mail transport named by EMAIL_PROVIDER."""
    provider = config.EMAIL_PROVIDER.lower()
    if provider == "simulation":
        return SimulatedMailer()
    if provider == "smtp":
        return SmtpMailer(
            config.SMTP_HOST,
            config.SMTP_PORT,
            config.EMAIL_USER,
            config.EMAIL_PASS,
            timeout_seconds=config.SMTP_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown email provider: {config.EMAIL_PROVIDER}")
