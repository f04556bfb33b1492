"""
models.py — Shared data structures for billing reminders.

Defines:
    • NotificationChannel — delivery channel enum
    • DispatchMode        — how channel outcomes roll up into overall success
    • Subscription        — one tracked subscription (read-only here)
    • NotificationRequest — what to send, and to whom
    • ChannelOutcome      — result of one channel invocation
    • DispatchOutcome     — per-channel results for one notification
    • MatchResult         — due subscriptions + records that could not be read
    • UpcomingCheckResult — combined matcher + dispatcher result

═══════════════════════════════════════════════════════════════════════════
DISPATCH MODES
═══════════════════════════════════════════════════════════════════════════

    Mode      Channels invoked      Overall success
    ──────    ──────────────────    ─────────────────────────────────
    single    email                 email succeeded
    multi     email + telegram      every invoked channel succeeded

In multi mode a partially delivered notification has success=False and
partial=True; callers that accept partial delivery inspect `channels`.

All entities are request scoped: built from the incoming payload and
discarded once the response is produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union


# ═══════════════════════════════════════════════════════════════════════════
# Enums
# ═══════════════════════════════════════════════════════════════════════════

class NotificationChannel(str, Enum):
    """Available delivery channels."""
    EMAIL    = "email"
    TELEGRAM = "telegram"


class DispatchMode(str, Enum):
    """Aggregation policy for a dispatch."""
    SINGLE = "single"   # email only
    MULTI  = "multi"    # email + telegram


# Which channels are invoked in each mode, in dispatch order
CHANNELS_BY_MODE: Dict[DispatchMode, List[NotificationChannel]] = {
    DispatchMode.SINGLE: [NotificationChannel.EMAIL],
    DispatchMode.MULTI: [NotificationChannel.EMAIL, NotificationChannel.TELEGRAM],
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ═══════════════════════════════════════════════════════════════════════════
# Data Structures
# ═══════════════════════════════════════════════════════════════════════════

BillingDate = Union[date, datetime, str, None]


@dataclass(frozen=True)
class Subscription:
    """
    A tracked subscription as supplied by the caller.

    Attributes
    ----------
    name : str
        Display label.
    price : Decimal
        Non-negative amount in the implied currency (USD).
    billing_cycle : str
        Human-readable recurrence label ("monthly", "yearly"); display only.
    next_billing_date : date | datetime | str | None
        Raw value as received. Strings are ISO-8601; only the calendar
        day is ever used. Any other value (numbers, objects) is reported
        back as a rejected record.
    """
    name: str
    price: Decimal
    billing_cycle: str = "monthly"
    next_billing_date: BillingDate = None

    def to_dict(self) -> Dict[str, Any]:
        raw = self.next_billing_date
        return {
            "name": self.name,
            "price": float(self.price),
            "billingCycle": self.billing_cycle,
            "nextBillingDate": raw.isoformat() if isinstance(raw, date) else raw,
        }


@dataclass
class NotificationRequest:
    """One reminder to dispatch."""
    recipient_address: Optional[str]
    subscriptions: Sequence[Subscription]
    days_until_billing: int

    @property
    def count(self) -> int:
        return len(self.subscriptions)

    @property
    def total_amount(self) -> Decimal:
        return sum((s.price for s in self.subscriptions), Decimal("0"))


@dataclass
class ChannelOutcome:
    """Result of invoking one channel exactly once."""
    channel: NotificationChannel
    success: bool = False
    error: Optional[str] = None
    attempted_at: datetime = field(default_factory=_now)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel.value,
            "success": self.success,
            "error": self.error,
            "attempted_at": self.attempted_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }


@dataclass
class DispatchOutcome:
    """Per-channel delivery results for one notification."""
    mode: DispatchMode
    channels: Dict[NotificationChannel, ChannelOutcome] = field(default_factory=dict)

    @property
    def email(self) -> Optional[ChannelOutcome]:
        return self.channels.get(NotificationChannel.EMAIL)

    @property
    def telegram(self) -> Optional[ChannelOutcome]:
        return self.channels.get(NotificationChannel.TELEGRAM)

    @property
    def success(self) -> bool:
        """Overall success under this outcome's dispatch mode."""
        if self.mode == DispatchMode.SINGLE:
            return self.email is not None and self.email.success
        return bool(self.channels) and all(o.success for o in self.channels.values())

    @property
    def partial(self) -> bool:
        """True if some, but not all, channels delivered."""
        delivered = [o.success for o in self.channels.values()]
        return any(delivered) and not all(delivered)

    @property
    def failed_channels(self) -> List[NotificationChannel]:
        return [c for c, o in self.channels.items() if not o.success]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "success": self.success,
            "partial": self.partial,
            "channels": {c.value: o.to_dict() for c, o in self.channels.items()},
        }


@dataclass
class RejectedSubscription:
    """A record skipped because its billing date could not be read."""
    index: int
    name: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "name": self.name, "reason": self.reason}


@dataclass
class MatchResult:
    matched: List[Subscription] = field(default_factory=list)
    rejected: List[RejectedSubscription] = field(default_factory=list)


@dataclass
class UpcomingCheckResult:
    """Matched subscriptions plus what happened when notifying about them."""
    matched: List[Subscription] = field(default_factory=list)
    rejected: List[RejectedSubscription] = field(default_factory=list)
    outcome: Optional[DispatchOutcome] = None

    @property
    def notification_sent(self) -> bool:
        return self.outcome is not None and self.outcome.success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "upcomingSubscriptions": [s.to_dict() for s in self.matched],
            "notificationSent": self.notification_sent,
            "rejected": [r.to_dict() for r in self.rejected],
            "dispatch": self.outcome.to_dict() if self.outcome else None,
        }
