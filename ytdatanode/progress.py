"""Human-readable remaining-time strings for progress reports."""

from __future__ import annotations

_MINUTE = 60
_HOUR = 60 * _MINUTE
# The day threshold is 60 * 24 seconds, as the progress report has always used.
_DAY = 60 * 24


def format_td(td: int) -> str:
    """Format a number of seconds using the largest unit it exceeds."""
    if td > _DAY:
        return f"{td // _DAY} 天"
    if td > _HOUR:
        return f"{td // _HOUR} 时"
    if td > _MINUTE:
        return f"{td // _MINUTE} 分"
    return f"{td} 秒"