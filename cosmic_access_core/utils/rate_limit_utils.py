"""
Fixed-window rate limit arithmetic.

Windows are aligned to the Unix epoch: window index = floor(epoch_ms / length).
A counter whose reset timestamp falls in an earlier window than "now" is
stale and starts over. This is a fixed-window scheme, so up to twice a limit
can pass around a window boundary.
"""

from datetime import UTC, datetime, timedelta
from typing import Dict, Optional, Tuple

from ..constants import WINDOW_MILLISECONDS, RateWindow
from ..db.db_base import ensure_utc
from ..schemas.access_token_schemas import RateLimitDecision, RateLimits, UsageStats

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Evaluation order; the first exhausted window wins
WINDOW_ORDER: Tuple[RateWindow, ...] = (RateWindow.MINUTE, RateWindow.HOUR, RateWindow.DAY)

LIMIT_REASONS: Dict[RateWindow, str] = {
    RateWindow.MINUTE: "per-minute limit exceeded",
    RateWindow.HOUR: "per-hour limit exceeded",
    RateWindow.DAY: "per-day limit exceeded",
}


def window_index(moment: datetime, window: RateWindow) -> int:
    elapsed_ms = (ensure_utc(moment) - EPOCH) // timedelta(milliseconds=1)
    return elapsed_ms // WINDOW_MILLISECONDS[window]


def window_start(moment: datetime, window: RateWindow) -> datetime:
    """First instant of the window containing `moment`."""
    return EPOCH + timedelta(milliseconds=window_index(moment, window) * WINDOW_MILLISECONDS[window])


def window_elapsed(reset_at: datetime, now: datetime, window: RateWindow) -> bool:
    """True when `now` lies in a later window than `reset_at`."""
    return window_index(now, window) > window_index(reset_at, window)


def limit_for(limits: RateLimits, window: RateWindow) -> int:
    return {
        RateWindow.MINUTE: limits.requests_per_minute,
        RateWindow.HOUR: limits.requests_per_hour,
        RateWindow.DAY: limits.requests_per_day,
    }[window]


def current_counts(usage: UsageStats, now: datetime) -> Dict[RateWindow, int]:
    """Window counts as of `now`, treating elapsed windows as empty."""
    stored = {
        RateWindow.MINUTE: (usage.requests_this_minute, usage.minute_reset_at),
        RateWindow.HOUR: (usage.requests_this_hour, usage.hour_reset_at),
        RateWindow.DAY: (usage.requests_today, usage.day_reset_at),
    }
    return {
        window: 0 if window_elapsed(reset_at, now, window) else count
        for window, (count, reset_at) in stored.items()
    }


def evaluate_rate_limit(
    limits: RateLimits, counts: Dict[RateWindow, int], usage: Optional[UsageStats] = None
) -> RateLimitDecision:
    """
    Admission verdict for a request that found `counts` already used.

    A request is admitted while every window count is below its limit, so
    with a per-minute limit of N exactly N requests pass per minute.
    """
    for window in WINDOW_ORDER:
        if counts.get(window, 0) >= limit_for(limits, window):
            return RateLimitDecision(
                allowed=False, reason=LIMIT_REASONS[window], window=window, usage=usage
            )
    return RateLimitDecision(allowed=True, usage=usage)
