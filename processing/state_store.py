"""
Per-aircraft alert state with latch semantics.

Each tracked identifier owns one AlertState holding the last squawk, the
last-seen time and three latches (watchlist, special, proximity). A latch is
ARMED until its trigger fires, then ALERTED until re-armed: proximity re-arms
itself when the aircraft leaves the zone, watchlist and special only re-arm
when the whole state is reaped.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterator, List, Optional

from processing.metrics import TRACKED_AIRCRAFT
from processing.models import TriggerKind

logger = logging.getLogger(__name__)


class LatchState(str, Enum):
    ARMED = "armed"
    ALERTED = "alerted"


_LATCH_FIELDS = {
    TriggerKind.WATCHLIST: "watchlist",
    TriggerKind.SPECIAL: "special",
    TriggerKind.PROXIMITY: "proximity",
}


@dataclass
class AlertState:
    """Mutable alert bookkeeping for one identifier."""
    last_squawk: Optional[str] = None
    watchlist: LatchState = LatchState.ARMED
    special: LatchState = LatchState.ARMED
    proximity: LatchState = LatchState.ARMED
    last_seen: Optional[datetime] = None

    @staticmethod
    def _field(kind: TriggerKind) -> str:
        try:
            return _LATCH_FIELDS[kind]
        except KeyError:
            raise ValueError(f"{kind.value} alerts are not latched") from None

    def is_armed(self, kind: TriggerKind) -> bool:
        return getattr(self, self._field(kind)) is LatchState.ARMED

    def fire(self, kind: TriggerKind) -> None:
        setattr(self, self._field(kind), LatchState.ALERTED)

    def rearm(self, kind: TriggerKind) -> None:
        setattr(self, self._field(kind), LatchState.ARMED)


class AlertStateStore:
    """
    Thread-safe identifier -> AlertState map.

    Read-modify-write goes through `transaction()`, which serializes callers
    working on the same identifier. Locks are striped so unrelated identifiers
    rarely contend and no per-identifier lock ever has to be cleaned up.
    """

    def __init__(self, stripes: int = 64):
        self._states: Dict[str, AlertState] = {}
        self._lock = threading.RLock()
        self._stripes = [threading.Lock() for _ in range(stripes)]

    def _stripe(self, identifier: str) -> threading.Lock:
        return self._stripes[hash(identifier) % len(self._stripes)]

    @contextmanager
    def transaction(self, identifier: str) -> Iterator[AlertState]:
        """
        Yield a working copy of the identifier's state (a fresh zero-value
        state on first sighting) and store it when the block exits normally.
        """
        with self._stripe(identifier):
            with self._lock:
                current = self._states.get(identifier)
            state = replace(current) if current is not None else AlertState()

            yield state

            with self._lock:
                self._states[identifier] = state
                TRACKED_AIRCRAFT.set(len(self._states))

    def get(self, identifier: str) -> Optional[AlertState]:
        """Return a copy of the stored state, or None if untracked."""
        with self._lock:
            state = self._states.get(identifier)
            return replace(state) if state is not None else None

    def reap(self, now: datetime, ttl: timedelta) -> int:
        """
        Drop every state last seen before `now - ttl`.

        Returns:
            Number of states removed
        """
        cutoff = now - ttl
        with self._lock:
            stale: List[str] = []
            for identifier, state in self._states.items():
                if state.last_seen is None:
                    state.last_seen = now
                elif state.last_seen < cutoff:
                    stale.append(identifier)

            for identifier in stale:
                del self._states[identifier]

            TRACKED_AIRCRAFT.set(len(self._states))

        return len(stale)

    def identifiers(self) -> List[str]:
        with self._lock:
            return list(self._states)

    def __contains__(self, identifier: str) -> bool:
        with self._lock:
            return identifier in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
