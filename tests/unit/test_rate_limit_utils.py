"""
Unit tests for fixed-window rate limit arithmetic.
"""

from datetime import UTC, datetime, timedelta

import pytest

from cosmic_access_core.constants import RateWindow
from cosmic_access_core.schemas.access_token_schemas import RateLimits, UsageStats
from cosmic_access_core.utils.rate_limit_utils import (
    current_counts,
    evaluate_rate_limit,
    window_elapsed,
    window_index,
    window_start,
)

NOW = datetime(2024, 3, 15, 10, 30, 15, 500000, tzinfo=UTC)


class TestWindows:
    """Test epoch-aligned window boundaries."""

    def test_window_index_at_epoch(self):
        epoch = datetime(1970, 1, 1, tzinfo=UTC)
        assert window_index(epoch, RateWindow.MINUTE) == 0
        assert window_index(epoch + timedelta(seconds=59, microseconds=999999), RateWindow.MINUTE) == 0
        assert window_index(epoch + timedelta(seconds=60), RateWindow.MINUTE) == 1

    @pytest.mark.parametrize(
        "window,expected",
        [
            (RateWindow.MINUTE, datetime(2024, 3, 15, 10, 30, tzinfo=UTC)),
            (RateWindow.HOUR, datetime(2024, 3, 15, 10, 0, tzinfo=UTC)),
            (RateWindow.DAY, datetime(2024, 3, 15, tzinfo=UTC)),
        ],
    )
    def test_window_start(self, window, expected):
        assert window_start(NOW, window) == expected

    def test_window_elapsed(self):
        same_minute = datetime(2024, 3, 15, 10, 30, 59, tzinfo=UTC)
        next_minute = datetime(2024, 3, 15, 10, 31, 0, tzinfo=UTC)

        assert not window_elapsed(NOW, same_minute, RateWindow.MINUTE)
        assert window_elapsed(NOW, next_minute, RateWindow.MINUTE)
        assert not window_elapsed(NOW, next_minute, RateWindow.HOUR)

    def test_naive_values_are_utc(self):
        naive = datetime(2024, 3, 15, 10, 30, 15, 500000)
        assert window_index(naive, RateWindow.MINUTE) == window_index(NOW, RateWindow.MINUTE)


class TestEvaluateRateLimit:
    """Test admission decisions."""

    LIMITS = RateLimits(requests_per_minute=2, requests_per_hour=5, requests_per_day=10)

    def _counts(self, minute=0, hour=0, day=0):
        return {RateWindow.MINUTE: minute, RateWindow.HOUR: hour, RateWindow.DAY: day}

    def test_allowed_below_every_limit(self):
        decision = evaluate_rate_limit(self.LIMITS, self._counts(1, 1, 1))
        assert decision.allowed
        assert decision.reason is None
        assert decision.window is None

    @pytest.mark.parametrize(
        "counts,window,reason",
        [
            ((2, 2, 2), RateWindow.MINUTE, "per-minute limit exceeded"),
            ((0, 5, 5), RateWindow.HOUR, "per-hour limit exceeded"),
            ((0, 0, 10), RateWindow.DAY, "per-day limit exceeded"),
        ],
    )
    def test_limit_reached(self, counts, window, reason):
        decision = evaluate_rate_limit(self.LIMITS, self._counts(*counts))
        assert not decision.allowed
        assert decision.window == window
        assert decision.reason == reason

    def test_minute_checked_before_hour_and_day(self):
        decision = evaluate_rate_limit(self.LIMITS, self._counts(2, 5, 10))
        assert decision.reason == "per-minute limit exceeded"

    def test_hour_checked_before_day(self):
        decision = evaluate_rate_limit(self.LIMITS, self._counts(0, 5, 10))
        assert decision.reason == "per-hour limit exceeded"


class TestCurrentCounts:
    """Test read-only counts with stale windows treated as empty."""

    def _usage(self, reset_at):
        return UsageStats(
            requests_this_minute=3,
            requests_this_hour=7,
            requests_today=9,
            minute_reset_at=reset_at,
            hour_reset_at=reset_at,
            day_reset_at=reset_at,
        )

    def test_counts_within_windows(self):
        counts = current_counts(self._usage(NOW), NOW + timedelta(seconds=10))
        assert counts == {RateWindow.MINUTE: 3, RateWindow.HOUR: 7, RateWindow.DAY: 9}

    def test_elapsed_minute_reads_as_zero(self):
        counts = current_counts(self._usage(NOW), NOW + timedelta(minutes=1))
        assert counts == {RateWindow.MINUTE: 0, RateWindow.HOUR: 7, RateWindow.DAY: 9}

    def test_everything_elapsed_next_day(self):
        counts = current_counts(self._usage(NOW), NOW + timedelta(days=1))
        assert counts == {RateWindow.MINUTE: 0, RateWindow.HOUR: 0, RateWindow.DAY: 0}
