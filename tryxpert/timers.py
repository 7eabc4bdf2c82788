"""
Timer driver for a running session. Polled from the page loop with an injected clock
instead of owning threads, so missed polls are caught up on the next call.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from tryxpert.errors import PersistenceError
from tryxpert.session import TryoutSession
from tryxpert.status import utc_now

logger = logging.getLogger(__name__)

COUNTDOWN_INTERVAL_SECONDS = 1
AUTOSAVE_INTERVAL_SECONDS = 10


class PeriodicTimer:
    def __init__(self, interval_seconds: int):
        self.interval = interval_seconds
        self.last_fired: Optional[datetime] = None
        self.cancelled = False

    def due(self, now: datetime) -> int:
        """Number of whole intervals elapsed since the last fire. The first call arms the timer."""
        if self.cancelled:
            return 0
        if self.last_fired is None:
            self.last_fired = now
            return 0
        count = (now - self.last_fired) // timedelta(seconds=self.interval)
        if count <= 0:
            return 0
        self.last_fired += timedelta(seconds=self.interval * count)
        return count

    def cancel(self) -> None:
        self.cancelled = True


class SessionTimers:
    """The 1-second countdown and 10-second autosave timers of one session, cancelled together."""

    def __init__(self, session: TryoutSession, clock: Callable[[], datetime] = utc_now):
        self.session = session
        self.clock = clock
        self.countdown = PeriodicTimer(COUNTDOWN_INTERVAL_SECONDS)
        self.autosave = PeriodicTimer(AUTOSAVE_INTERVAL_SECONDS)

    @property
    def cancelled(self) -> bool:
        return self.countdown.cancelled and self.autosave.cancelled

    def poll(self) -> None:
        if self.cancelled:
            return
        if self.session.is_finished:
            self.cancel()
            return

        now = self.clock()
        ticks = self.countdown.due(now)
        if ticks:
            self.session.tick(ticks)

        if self.autosave.due(now):
            try:
                self.session.save_draft()
            except PersistenceError as e:
                logger.warning(f"Draft autosave failed for tryout {self.session.tryout.id}: {e}")

        if self.session.is_finished:
            self.cancel()

    def cancel(self) -> None:
        self.countdown.cancel()
        self.autosave.cancel()
        logger.debug(f"Timers cancelled for tryout {self.session.tryout.id}")
