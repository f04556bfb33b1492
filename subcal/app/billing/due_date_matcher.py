"""
due_date_matcher.py — Select subscriptions billing on an exact future day.

    target = today + lookahead_days

A subscription is due when its next billing date falls on the same
calendar day as `target` (year, month and day all equal). Time-of-day and
UTC offsets inside a stored timestamp are ignored: "2025-02-02T23:30-05:00"
is Feb 2, regardless of the server's timezone.

Records whose billing date cannot be read are skipped with a warning and
reported back as rejected; they never abort the batch.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from subcal.app.billing.models import (
    BillingDate,
    MatchResult,
    RejectedSubscription,
    Subscription,
)
from subcal.app.core.errors import DataError

logger = logging.getLogger(__name__)


def parse_billing_date(value: BillingDate) -> date:
    """
    Reduce a billing date to its calendar day.

    Raises
    ------
    DataError
        If the value is missing or not an ISO-8601 date/timestamp.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise DataError(f"Missing or non-text billing date: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text).date()
    except ValueError as exc:
        raise DataError(f"Unparseable billing date {value!r}: {exc}") from exc


def target_date(today: date, lookahead_days: int) -> Optional[date]:
    """`today + lookahead_days`, or None when that falls outside the calendar."""
    try:
        return today + timedelta(days=lookahead_days)
    except OverflowError:
        return None


def find_due_subscriptions(
    subscriptions: Sequence[Subscription],
    today: date,
    lookahead_days: int,
) -> MatchResult:
    """
    Split subscriptions into those due on `today + lookahead_days` and
    those whose billing date is unreadable.

    Input order is preserved and nothing is deduplicated. A lookahead that
    runs past the last representable date matches nothing.
    """
    target = target_date(today, lookahead_days)
    result = MatchResult()

    for index, subscription in enumerate(subscriptions):
        try:
            billing_day = parse_billing_date(subscription.next_billing_date)
        except DataError as exc:
            logger.warning(
                "Skipping subscription #%d (%s): %s",
                index, subscription.name, exc.message,
            )
            result.rejected.append(
                RejectedSubscription(index=index, name=subscription.name, reason=exc.message)
            )
            continue

        if target is not None and billing_day == target:
            result.matched.append(subscription)

    logger.debug(
        "Matched %d/%d subscriptions for %s (%d rejected)",
        len(result.matched), len(subscriptions),
        target.isoformat() if target else "out of range", len(result.rejected),
    )
    return result


def match(
    subscriptions: Sequence[Subscription],
    today: date,
    lookahead_days: int,
) -> List[Subscription]:
    """Subscriptions billing exactly `lookahead_days` after `today`."""
    return find_due_subscriptions(subscriptions, today, lookahead_days).matched
