"""
Poll cycle.

Each cycle:
1. Fetch a snapshot batch from one feed
2. Evaluate every aircraft against the alert rules (feed order)
3. Dispatch produced alerts
4. Reap stale alert state

Every feed gets its own FeedPoller thread. All pollers share one
AlertPipeline, so state, watchlist and enrichment cache are common to them.
"""

import logging
import threading
import time
from typing import Iterable, List, Optional, Protocol

from processing.dispatcher import NotificationDispatcher
from processing.models import AlertRecord, ObjectSnapshot
from processing.reaper import StateReaper
from processing.rule_evaluator import RuleEvaluator
from processing.state_store import AlertStateStore
from processing.watchlist import WatchlistSet

logger = logging.getLogger(__name__)


class SnapshotSource(Protocol):
    def fetch(self) -> Optional[List[ObjectSnapshot]]: ...


class AlertPipeline:
    """Evaluates snapshots and dispatches the alerts they produce."""

    def __init__(
        self,
        evaluator: RuleEvaluator,
        watchlist: WatchlistSet,
        store: AlertStateStore,
        dispatcher: NotificationDispatcher,
        reaper: StateReaper,
    ):
        self.evaluator = evaluator
        self.watchlist = watchlist
        self.store = store
        self.dispatcher = dispatcher
        self.reaper = reaper

    def process_snapshot(self, snapshot: ObjectSnapshot) -> Optional[AlertRecord]:
        record = self.evaluator.evaluate(snapshot, self.watchlist, self.store)
        if record is not None:
            self.dispatcher.dispatch(record)
        return record

    def process_batch(self, snapshots: Iterable[ObjectSnapshot]) -> List[AlertRecord]:
        """
        Process one batch in feed order.

        A snapshot that raises is logged and skipped; the rest of the batch
        still runs. Stale state is reaped once the batch is done.

        Returns:
            Alerts produced by this batch
        """
        alerts = []
        count = 0
        for snapshot in snapshots:
            count += 1
            try:
                record = self.process_snapshot(snapshot)
            except Exception as e:
                logger.error(f"Error processing aircraft {snapshot.identifier}: {e}", exc_info=True)
                continue
            if record is not None:
                alerts.append(record)

        logger.info(f"Processed {count} aircraft, {len(alerts)} alerts")
        self.reaper.reap()
        return alerts


class FeedPoller:
    """Polls one feed on a fixed period in a background thread."""

    def __init__(self, name: str, client: SnapshotSource, pipeline: AlertPipeline, interval: float):
        self.name = name
        self.client = client
        self.pipeline = pipeline
        self.interval = interval
        self.running = False
        self._stop_event = threading.Event()
        self._thread = None

    def run_once(self) -> List[AlertRecord]:
        """Fetch and process a single batch. A failed fetch skips the cycle."""
        snapshots = self.client.fetch()
        if snapshots is None:
            logger.warning(f"[{self.name}] No data this cycle, skipping")
            return []
        return self.pipeline.process_batch(snapshots)

    def _poll_loop(self):
        logger.info(f"[{self.name}] Poller running every {self.interval:.0f}s")

        while self.running:
            started = time.monotonic()
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"[{self.name}] Unexpected error in poll cycle: {e}", exc_info=True)

            # An overrunning cycle starts the next one immediately
            wait = max(0.0, self.interval - (time.monotonic() - started))
            if self._stop_event.wait(wait):
                break

    def start(self):
        """Start poller in background thread."""
        if self.running:
            logger.warning(f"[{self.name}] Poller already running")
            return

        self.running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._poll_loop, name=f"poller-{self.name}", daemon=True)
        self._thread.start()
        logger.info(f"[{self.name}] Poller started")

    def stop(self):
        if not self.running:
            return

        self.running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        logger.info(f"[{self.name}] Poller stopped")
