"""
Tryout status resolution against the availability window.
All comparisons use the caller's wall clock; there is no server-side time source.
"""
import logging
from datetime import datetime, timezone
from enum import Enum

from tryxpert.errors import TimingError

logger = logging.getLogger(__name__)


class TryoutStatus(str, Enum):
    NOT_STARTED = "notStarted"
    IN_PROGRESS = "inProgress"
    ENDED = "ended"


STATUS_DISPLAY = {
    TryoutStatus.NOT_STARTED: {"title": "Tryout has not started", "message": "Time until start:"},
    TryoutStatus.IN_PROGRESS: {"title": "Tryout in progress", "message": "Time remaining:"},
    TryoutStatus.ENDED: {"title": "Tryout has ended", "message": "This tryout is no longer available."},
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime:
    """ISO-8601 string (trailing Z allowed) or datetime -> aware datetime. Naive values are UTC."""
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp: {value!r}")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def resolve_status(now: datetime, start: datetime, end: datetime) -> TryoutStatus:
    if now < start:
        return TryoutStatus.NOT_STARTED
    if now < end:
        return TryoutStatus.IN_PROGRESS
    return TryoutStatus.ENDED


def ensure_can_start(tryout, now: datetime) -> None:
    """Gate for beginning a tryout. `now` must be read immediately before the action it gates."""
    status = resolve_status(now, tryout.start_date, tryout.end_date)
    if status is TryoutStatus.NOT_STARTED:
        logger.info("Start refused for tryout %s: not started", tryout.id)
        raise TimingError("This tryout has not started yet. Please come back at the scheduled time.")
    if status is TryoutStatus.ENDED:
        logger.info("Start refused for tryout %s: ended", tryout.id)
        raise TimingError("This tryout has already ended.")
