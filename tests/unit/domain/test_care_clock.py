"""
Care Clock Tests
================
Due-date arithmetic: next due, signed day differences, display clamp.
"""

from datetime import datetime, timedelta, timezone

import pytest

from plantcare.domain.care_clock import clamp_for_display, compute_next_due, days_since, days_until_due
from plantcare.domain.exceptions import ValidationError


class TestComputeNextDue:
    """Tests for compute_next_due."""

    def test_never_cared_for_is_due_now(self, now):
        assert compute_next_due(None, 7, now) == now

    def test_adds_frequency_in_days(self, now, days_ago):
        last = days_ago(3)
        assert compute_next_due(last, 7, now) == last + timedelta(days=7)

    def test_result_independent_of_now(self, days_ago, now):
        last = days_ago(3)
        later = now + timedelta(days=20)
        assert compute_next_due(last, 7, now) == compute_next_due(last, 7, later)

    def test_naive_timestamps_are_utc(self, now):
        naive = datetime(2024, 6, 1, 8, 0)
        due = compute_next_due(naive, 2, now)
        assert due == datetime(2024, 6, 3, 8, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("frequency", [0, -1, 1.5, "7", True, None])
    def test_rejects_invalid_frequency(self, now, frequency):
        with pytest.raises(ValidationError):
            compute_next_due(None, frequency, now)


class TestDayDifferences:
    """Tests for days_until_due / days_since."""

    def test_overdue_is_negative(self, now, days_ago):
        # Watered 10 days ago on a 7-day cadence: three days overdue
        due = compute_next_due(days_ago(10), 7, now)
        assert days_until_due(due, now) == -3

    def test_future_due_is_positive(self, now, days_ago):
        due = compute_next_due(days_ago(3), 7, now)
        assert days_until_due(due, now) == 4

    def test_partial_days_floor(self, now):
        assert days_until_due(now + timedelta(hours=36), now) == 1
        assert days_until_due(now - timedelta(hours=1), now) == -1

    def test_days_since(self, now, days_ago):
        assert days_since(days_ago(10), now) == 10
        assert days_since(now - timedelta(hours=23), now) == 0

    def test_clamp_only_for_display(self):
        assert clamp_for_display(-3) == 0
        assert clamp_for_display(4) == 4
