"""
Alert rules.

Triggers are checked in priority order and the first one that matches ends
evaluation, even when its own latch suppresses the alert:

1. Watchlist   - identifier is on the watchlist; sticky latch
2. Emergency   - squawk 7500/7600/7700 that differs from the last squawk seen
3. Special     - military / special-category flag; sticky latch
4. Proximity   - inside the home geofence and altitude band; the latch
                 re-arms as soon as the aircraft is outside the zone, so
                 crossing the boundary repeatedly alerts on every entry

A watchlisted aircraft squawking an emergency therefore never produces an
emergency alert. Every evaluation records the squawk and last-seen time,
whether or not anything fired.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from contracts.constants import EMERGENCY_SQUAWKS, SQUAWK_MEANINGS
from processing.coordinates import resolve
from processing.enrichment import EnrichmentCache
from processing.geofence import Geofence
from processing.metrics import ALERTS_FIRED
from processing.models import AlertRecord, ObjectSnapshot, TriggerKind, WatchlistEntry
from processing.state_store import AlertState, AlertStateStore
from processing.watchlist import WatchlistSet

logger = logging.getLogger(__name__)

Decision = Tuple[Optional[TriggerKind], Optional[WatchlistEntry]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RuleEvaluator:
    """Decides whether a snapshot alerts and keeps the per-aircraft state current."""

    def __init__(
        self,
        geofence: Geofence,
        enrichment: EnrichmentCache,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.geofence = geofence
        self.enrichment = enrichment
        self.clock = clock

    def evaluate(
        self, snapshot: ObjectSnapshot, watchlist: WatchlistSet, store: AlertStateStore
    ) -> Optional[AlertRecord]:
        """
        Evaluate one snapshot.

        Returns:
            An AlertRecord if a trigger fired, else None. The aircraft's
            AlertState is written back in both cases.
        """
        now = self.clock()

        with store.transaction(snapshot.identifier) as state:
            kind, entry = self._decide(snapshot, watchlist, state)
            state.last_squawk = snapshot.squawk
            state.last_seen = now

        if kind is None:
            return None

        ALERTS_FIRED.labels(kind=kind.value).inc()
        # Remote lookup happens outside the state lock
        detail = self.enrichment.lookup(snapshot.identifier)
        return AlertRecord(
            kind=kind,
            snapshot=snapshot,
            detail=detail,
            watchlist_entry=entry,
            detected_at=now,
        )

    def _decide(self, snapshot: ObjectSnapshot, watchlist: WatchlistSet, state: AlertState) -> Decision:
        entry, listed = watchlist.contains(snapshot.identifier)
        if listed:
            if not state.is_armed(TriggerKind.WATCHLIST):
                return None, None
            state.fire(TriggerKind.WATCHLIST)
            logger.info(f"!!! WATCHLIST DETECTED: {snapshot.identifier} (Note: {entry.note})")
            return TriggerKind.WATCHLIST, entry

        if snapshot.squawk in EMERGENCY_SQUAWKS:
            # Driven by code changes only, no latch
            if snapshot.squawk == state.last_squawk:
                return None, None
            logger.info(
                f"!!! EMERGENCY DETECTED: {snapshot.identifier} (Flight: {snapshot.callsign}) "
                f"squawking {snapshot.squawk} ({SQUAWK_MEANINGS[snapshot.squawk]})"
            )
            return TriggerKind.EMERGENCY, None

        if snapshot.special:
            if not state.is_armed(TriggerKind.SPECIAL):
                return None, None
            state.fire(TriggerKind.SPECIAL)
            logger.info(f"!!! SPECIAL CATEGORY DETECTED: {snapshot.identifier} (Flight: {snapshot.callsign})")
            return TriggerKind.SPECIAL, None

        return self._check_proximity(snapshot, state), None

    def _check_proximity(self, snapshot: ObjectSnapshot, state: AlertState) -> Optional[TriggerKind]:
        lat, lon, has_fix = resolve(snapshot)
        if has_fix:
            distance = self.geofence.distance_nm(lat, lon)
            if distance <= self.geofence.radius_nm and self.geofence.in_altitude_band(snapshot.altitude):
                if not state.is_armed(TriggerKind.PROXIMITY):
                    return None
                state.fire(TriggerKind.PROXIMITY)
                logger.info(
                    f"!!! PROXIMITY DETECTED: {snapshot.identifier} "
                    f"({distance:.1f} nm, {snapshot.altitude.feet:.0f} ft)"
                )
                return TriggerKind.PROXIMITY

        # Outside the zone, outside the band, or no position: re-arm
        state.rearm(TriggerKind.PROXIMITY)
        return None
