"""
test_due_date_matcher.py — Calendar-day matching of billing dates.

Covers:
    • Exact-day matching for date, datetime and ISO string inputs
    • Month / year boundary arithmetic
    • Order preservation, duplicates, idempotence, empty input
    • Unparseable dates: skipped, reported, never raised

Run with:
    pytest tests/test_due_date_matcher.py -v
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from subcal.app.billing.due_date_matcher import (
    find_due_subscriptions,
    match,
    parse_billing_date,
    target_date,
)
from subcal.app.core.errors import DataError

from conftest import TODAY, make_subscription


# ═══════════════════════════════════════════════════════════════════════════
# Section 1: Date parsing
# ═══════════════════════════════════════════════════════════════════════════

class TestParseBillingDate:
    """Reduce assorted inputs to a calendar day."""

    def test_date_passthrough(self):
        assert parse_billing_date(date(2025, 2, 2)) == date(2025, 2, 2)

    def test_datetime_drops_time(self):
        assert parse_billing_date(datetime(2025, 2, 2, 23, 59)) == date(2025, 2, 2)

    def test_plain_iso_string(self):
        assert parse_billing_date("2025-02-02") == date(2025, 2, 2)

    def test_timestamp_with_z_suffix(self):
        assert parse_billing_date("2025-02-02T00:00:00.000Z") == date(2025, 2, 2)

    def test_offset_is_not_converted(self):
        # 23:30 at -05:00 is already Feb 3 in UTC; the written day wins
        assert parse_billing_date("2025-02-02T23:30:00-05:00") == date(2025, 2, 2)

    def test_aware_datetime_keeps_its_own_day(self):
        value = datetime(2025, 2, 2, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert parse_billing_date(value) == date(2025, 2, 2)

    @pytest.mark.parametrize(
        "bad",
        ["", "   ", "not-a-date", "2025-13-40", None, 20250202, 1738800000000, 17.5, True, {"$date": "2025-02-02"}],
    )
    def test_unparseable_raises_data_error(self, bad):
        with pytest.raises(DataError):
            parse_billing_date(bad)


# ═══════════════════════════════════════════════════════════════════════════
# Section 2: Matching
# ═══════════════════════════════════════════════════════════════════════════

class TestTargetDate:

    def test_crosses_month_boundary(self):
        assert target_date(date(2025, 1, 30), 3) == date(2025, 2, 2)

    def test_crosses_year_boundary(self):
        assert target_date(date(2024, 12, 30), 5) == date(2025, 1, 4)

    def test_leap_day(self):
        assert target_date(date(2024, 2, 27), 2) == date(2024, 2, 29)

    @pytest.mark.parametrize("days", [10**7, 10**12, -(10**7)])
    def test_outside_calendar_is_none(self, days):
        assert target_date(TODAY, days) is None


class TestMatch:
    """Inclusion iff the billing day equals today + lookahead."""

    def test_matches_exact_day_only(self):
        due = make_subscription("Netflix", next_billing_date=TODAY + timedelta(days=7))
        early = make_subscription("Early", next_billing_date=TODAY + timedelta(days=6))
        late = make_subscription("Late", next_billing_date=TODAY + timedelta(days=8))

        assert match([early, due, late], TODAY, 7) == [due]

    def test_month_boundary_matches_feb_2_not_feb_1(self):
        feb_1 = make_subscription("Feb1", next_billing_date="2025-02-01")
        feb_2 = make_subscription("Feb2", next_billing_date="2025-02-02")

        assert match([feb_1, feb_2], date(2025, 1, 30), 3) == [feb_2]

    def test_zero_lookahead_matches_today(self):
        today = make_subscription("Today", next_billing_date=TODAY)
        tomorrow = make_subscription("Tomorrow", next_billing_date=TODAY + timedelta(days=1))

        assert match([today, tomorrow], TODAY, 0) == [today]

    def test_time_of_day_ignored(self):
        late_night = make_subscription(next_billing_date="2025-02-06T23:59:59")
        assert match([late_night], TODAY, 7) == [late_night]

    def test_preserves_order_and_duplicates(self):
        a = make_subscription("Same", price="1.00")
        b = make_subscription("Other", price="2.00")
        c = make_subscription("Same", price="3.00")

        assert match([a, b, c], TODAY, 7) == [a, b, c]

    @pytest.mark.parametrize("days", [0, 1, 7, 365])
    def test_empty_input_empty_output(self, days):
        assert match([], TODAY, days) == []

    def test_idempotent(self):
        subs = [
            make_subscription("A"),
            make_subscription("B", next_billing_date="garbage"),
            make_subscription("C", next_billing_date=TODAY),
            make_subscription("D"),
        ]
        assert match(subs, TODAY, 7) == match(subs, TODAY, 7)

    def test_input_not_mutated(self):
        subs = [make_subscription("A"), make_subscription("B", next_billing_date=TODAY)]
        snapshot = list(subs)

        match(subs, TODAY, 7)

        assert subs == snapshot

    def test_lookahead_past_calendar_end_matches_nothing(self):
        far = make_subscription("Far", next_billing_date=date.max)
        bad = make_subscription("Bad", next_billing_date=1738800000000)

        result = find_due_subscriptions([far, bad], TODAY, 10**7)

        assert result.matched == []
        assert [r.name for r in result.rejected] == ["Bad"]

    def test_last_representable_day_still_matches(self):
        last = make_subscription("Last", next_billing_date=date.max)
        assert match([last], TODAY, (date.max - TODAY).days) == [last]


class TestRejectedRecords:
    """Malformed dates fail open: excluded, reported, logged."""

    def test_bad_date_excluded_rest_of_batch_matched(self):
        good = make_subscription("Good")
        bad = make_subscription("Bad", next_billing_date="31/02/2025")

        result = find_due_subscriptions([bad, good], TODAY, 7)

        assert result.matched == [good]
        assert len(result.rejected) == 1
        assert result.rejected[0].index == 0
        assert result.rejected[0].name == "Bad"
        assert "31/02/2025" in result.rejected[0].reason

    def test_bad_date_logged_as_warning(self, caplog):
        bad = make_subscription("Bad", next_billing_date="nope")

        with caplog.at_level("WARNING"):
            assert match([bad], TODAY, 7) == []

        assert any("Bad" in r.getMessage() for r in caplog.records)
