"""Countdown to a tryout's start or end, recomputed on a fixed one-second poll."""
from datetime import datetime, timedelta
from typing import Callable, NamedTuple, Optional

from tryxpert.status import TryoutStatus, parse_timestamp, resolve_status, utc_now

TICK_SECONDS = 1


class TimeRemaining(NamedTuple):
    days: int
    hours: int
    minutes: int
    seconds: int


class CountdownState(NamedTuple):
    status: TryoutStatus
    remaining: Optional[TimeRemaining]


def compute_remaining(target: datetime, now: datetime) -> Optional[TimeRemaining]:
    """Breakdown of the time until `target`, or None once it has been reached."""
    if now >= target:
        return None
    total_seconds = (target - now) // timedelta(seconds=1)
    return TimeRemaining(
        days=total_seconds // 86400,
        hours=(total_seconds % 86400) // 3600,
        minutes=(total_seconds % 3600) // 60,
        seconds=total_seconds % 60,
    )


class Countdown:
    """Re-derives status on every tick and switches target between start and end."""

    def __init__(self, start, end, clock: Callable[[], datetime] = utc_now):
        self.start = parse_timestamp(start)
        self.end = parse_timestamp(end)
        self.clock = clock

    def tick(self) -> CountdownState:
        now = self.clock()
        status = resolve_status(now, self.start, self.end)
        if status is TryoutStatus.NOT_STARTED:
            return CountdownState(status, compute_remaining(self.start, now))
        if status is TryoutStatus.IN_PROGRESS:
            return CountdownState(status, compute_remaining(self.end, now))
        return CountdownState(status, None)


def format_remaining(remaining: Optional[TimeRemaining]) -> str:
    if remaining is None:
        return "Ended"
    return f"{remaining.days}d {remaining.hours:02d}h {remaining.minutes:02d}m {remaining.seconds:02d}s"


def format_clock(seconds: Optional[int]) -> str:
    """Session timer display, HH:MM:SS."""
    if seconds is None:
        return "No time limit"
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_time_taken(seconds: int) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)

    def unit(n, name):
        return f"{n} {name}" if n == 1 else f"{n} {name}s"

    if hours > 0:
        return f"{unit(hours, 'hour')} {unit(minutes, 'minute')} {unit(secs, 'second')}"
    if minutes > 0:
        return f"{unit(minutes, 'minute')} {unit(secs, 'second')}"
    return unit(secs, "second")
