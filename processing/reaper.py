"""
Garbage collection for stale alert state.

Reaping is the only way watchlist and special latches are ever cleared: an
aircraft that reappears after the TTL is treated as a first sighting.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from processing.metrics import STATE_REAPED
from processing.rule_evaluator import utc_now
from processing.state_store import AlertStateStore

logger = logging.getLogger(__name__)

DEFAULT_STATE_TTL = timedelta(minutes=30)


class StateReaper:
    def __init__(
        self,
        store: AlertStateStore,
        ttl: timedelta = DEFAULT_STATE_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.ttl = ttl
        self.clock = clock

    def reap(self, now: Optional[datetime] = None, ttl: Optional[timedelta] = None) -> int:
        """Remove states not seen within the TTL. Returns the number removed."""
        if now is None:
            now = self.clock()
        if ttl is None:
            ttl = self.ttl
        removed = self.store.reap(now, ttl)
        if removed:
            STATE_REAPED.inc(removed)
            logger.info(
                f"State cleanup complete. Removed {removed} old aircraft. "
                f"Tracking {len(self.store)}."
            )
        return removed
