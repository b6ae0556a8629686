"""
Watchlist of identifiers of interest.

The active set is replaced wholesale on every refresh. Readers either see the
previous complete mapping or the new one, never a partially built one.
"""

import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from contracts.constants import (
    WATCHLIST_COL_ICAO,
    WATCHLIST_COL_NOTE,
    WATCHLIST_COL_REGISTRATION,
    WATCHLIST_COL_TYPE,
    WATCHLIST_MIN_COLUMNS,
)
from processing.metrics import WATCHLIST_SIZE
from processing.models import WatchlistEntry

logger = logging.getLogger(__name__)


def normalize_identifier(identifier: str) -> str:
    return identifier.strip().lower()


def parse_watchlist_rows(rows: Iterable[Sequence[str]]) -> Dict[str, WatchlistEntry]:
    """
    Build an identifier -> entry map from tabular rows.

    The first row is a header and is skipped. Rows with too few columns or a
    blank identifier are dropped.
    """
    entries: Dict[str, WatchlistEntry] = {}
    dropped = 0

    for i, row in enumerate(rows):
        if i == 0:
            continue
        if len(row) < WATCHLIST_MIN_COLUMNS:
            dropped += 1
            continue

        identifier = normalize_identifier(row[WATCHLIST_COL_ICAO])
        if not identifier:
            dropped += 1
            continue

        entries[identifier] = WatchlistEntry(
            identifier=identifier,
            registration=row[WATCHLIST_COL_REGISTRATION].strip(),
            type_hint=row[WATCHLIST_COL_TYPE].strip(),
            note=row[WATCHLIST_COL_NOTE].strip(),
        )

    if dropped:
        logger.debug(f"Dropped {dropped} malformed watchlist rows")
    return entries


def _rekey(entries: Mapping[str, WatchlistEntry]) -> Mapping[str, WatchlistEntry]:
    return MappingProxyType({normalize_identifier(k): v for k, v in entries.items()})


class WatchlistSet:
    """Atomically swapped identifier -> WatchlistEntry set."""

    def __init__(self, entries: Optional[Mapping[str, WatchlistEntry]] = None):
        self._lock = threading.RLock()
        self._entries: Mapping[str, WatchlistEntry] = _rekey(entries or {})

    def refresh(self, rows: Iterable[Sequence[str]]) -> int:
        """Parse header-first rows into a new set and swap it in. Returns the new size."""
        return self.replace(parse_watchlist_rows(rows))

    def replace(self, entries: Mapping[str, WatchlistEntry]) -> int:
        fresh = _rekey(entries)
        with self._lock:
            self._entries = fresh
        WATCHLIST_SIZE.set(len(fresh))
        logger.info(f"Successfully loaded {len(fresh)} aircraft into watchlist.")
        return len(fresh)

    def snapshot(self) -> Mapping[str, WatchlistEntry]:
        """Borrow the current read-only mapping. It is never mutated after a swap."""
        with self._lock:
            return self._entries

    def contains(self, identifier: str) -> Tuple[Optional[WatchlistEntry], bool]:
        entry = self.snapshot().get(normalize_identifier(identifier))
        return entry, entry is not None

    def __contains__(self, identifier: str) -> bool:
        return self.contains(identifier)[1]

    def __len__(self) -> int:
        return len(self.snapshot())
