"""
Watchlist download and periodic refresh.

The plane-alert-db CSV is fetched once at startup and then on a long fixed
period. A failed refresh keeps the previous watchlist in place.
"""

import csv
import io
import logging
import threading
from typing import List, Optional

import requests

from contracts.constants import WATCHLIST_CSV_URL
from processing.metrics import WATCHLIST_REFRESHES
from processing.watchlist import WatchlistSet

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 24 * 60 * 60


class WatchlistSource:
    """Downloads the watchlist CSV as rows of strings."""

    def __init__(
        self,
        url: str = WATCHLIST_CSV_URL,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_rows(self) -> Optional[List[List[str]]]:
        """Return all rows including the header, or None on error."""
        logger.info("Refreshing aircraft watchlist...")
        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching watchlist CSV: {e}")
            return None

        if response.status_code != 200:
            logger.error(f"Watchlist source returned non-200 status: {response.status_code}")
            return None

        try:
            return list(csv.reader(io.StringIO(response.text)))
        except csv.Error as e:
            logger.error(f"Error parsing watchlist CSV: {e}")
            return None


class WatchlistRefresher:
    """Keeps a WatchlistSet current from a WatchlistSource on a background thread."""

    def __init__(self, source: WatchlistSource, watchlist: WatchlistSet, interval: float = DEFAULT_REFRESH_INTERVAL):
        self.source = source
        self.watchlist = watchlist
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def refresh_once(self) -> bool:
        rows = self.source.fetch_rows()
        if rows is None:
            WATCHLIST_REFRESHES.labels(status="failed").inc()
            logger.warning(f"Watchlist refresh failed; keeping {len(self.watchlist)} existing entries")
            return False

        self.watchlist.refresh(rows)
        WATCHLIST_REFRESHES.labels(status="success").inc()
        return True

    def _run(self):
        while not self._stop.wait(self.interval):
            try:
                self.refresh_once()
            except Exception as e:
                WATCHLIST_REFRESHES.labels(status="failed").inc()
                logger.error(f"Unexpected error refreshing watchlist: {e}", exc_info=True)

    def start(self):
        """Refresh immediately, then keep refreshing in a background thread."""
        if self._thread is not None:
            logger.warning("Watchlist refresher already running")
            return

        self.refresh_once()
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="watchlist-refresher", daemon=True)
        self._thread.start()
        logger.info(f"Watchlist refresher started (every {self.interval:.0f}s)")

    def stop(self):
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=5.0)
        self._thread = None
        logger.info("Watchlist refresher stopped")
