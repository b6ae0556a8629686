"""
Lookaside enrichment cache for aircraft reference data.

Lookup order:
1. Backing store (Postgres, in-memory, or none)
2. Remote detail lookup (adsbdb / hexdb)
3. Normalize whichever payload shape came back and upsert it

Lookups never raise: any failure degrades to an empty EnrichmentDetail.
Concurrent lookups for the same identifier share one remote call.

An empty result (unknown airframe or a payload matching neither shape) is
returned but never upserted, so a later sighting retries the remote lookup.
"""

import logging
import threading
from typing import Any, Callable, Dict, Optional, Protocol

from pydantic import ValidationError

from contracts.validation import AdsbDbNestedPayload, FlatDetailPayload
from processing.metrics import ENRICHMENT_LOOKUPS
from processing.models import EnrichmentDetail

logger = logging.getLogger(__name__)


# ============================================
# Payload Normalization
# ============================================

def _normalize_type(value: str) -> str:
    return " ".join(value.split())


def normalize_detail(identifier: str, payload: Any) -> EnrichmentDetail:
    """
    Map a remote lookup payload onto one EnrichmentDetail.

    The nested commercial shape wins when its registration is non-empty;
    otherwise the flat reference shape is used. A payload matching neither
    gives an empty record. airline falls back to owner when no operator flag
    is present.
    """
    if not isinstance(payload, dict):
        return EnrichmentDetail.empty(identifier)

    try:
        aircraft = AdsbDbNestedPayload.model_validate(payload).aircraft
    except ValidationError as e:
        logger.debug(f"Nested detail shape rejected for {identifier}: {e}")
        aircraft = None

    if aircraft is not None and aircraft.registration:
        return EnrichmentDetail(
            identifier=identifier,
            registration=aircraft.registration,
            aircraft_type=_normalize_type(aircraft.type),
            owner=aircraft.registered_owner,
            airline=aircraft.registered_owner_operator_flag_code or aircraft.registered_owner,
            thumbnail_url=aircraft.url_photo_thumbnail,
            image_url=aircraft.url_photo,
        )

    try:
        flat = FlatDetailPayload.model_validate(payload)
    except ValidationError as e:
        logger.debug(f"Flat detail shape rejected for {identifier}: {e}")
        return EnrichmentDetail.empty(identifier)

    if not (flat.registration or flat.type or flat.owner):
        return EnrichmentDetail.empty(identifier)

    return EnrichmentDetail(
        identifier=identifier,
        registration=flat.registration,
        aircraft_type=_normalize_type(flat.type),
        owner=flat.owner,
        airline=flat.operator_flag_code or flat.owner,
    )


# ============================================
# Backing Stores
# ============================================

class DetailStore(Protocol):
    def get(self, identifier: str) -> Optional[EnrichmentDetail]: ...

    def upsert(self, detail: EnrichmentDetail) -> None: ...


class NullDetailStore:
    """Always misses; used when no database is configured."""

    def get(self, identifier: str) -> Optional[EnrichmentDetail]:
        return None

    def upsert(self, detail: EnrichmentDetail) -> None:
        pass


class InMemoryDetailStore:
    """Process-local store. Last write wins."""

    def __init__(self):
        self._details: Dict[str, EnrichmentDetail] = {}
        self._lock = threading.Lock()

    def get(self, identifier: str) -> Optional[EnrichmentDetail]:
        with self._lock:
            return self._details.get(identifier)

    def upsert(self, detail: EnrichmentDetail) -> None:
        with self._lock:
            self._details[detail.identifier] = detail

    def __len__(self) -> int:
        with self._lock:
            return len(self._details)


# ============================================
# Cache
# ============================================

class _InFlight:
    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[EnrichmentDetail] = None


class EnrichmentCache:
    """Lookaside cache in front of a remote detail lookup."""

    def __init__(
        self,
        fetch: Callable[[str], Optional[dict]],
        store: Optional[DetailStore] = None,
        wait_timeout: float = 60.0,
    ):
        """
        Args:
            fetch: Remote lookup; returns the raw JSON payload, None for an
                unknown airframe, or raises on transport/status errors.
            store: Backing store; defaults to NullDetailStore.
            wait_timeout: How long a concurrent caller waits for the
                in-flight lookup of the same identifier.
        """
        self.fetch = fetch
        self.store = store if store is not None else NullDetailStore()
        self.wait_timeout = wait_timeout
        self._lock = threading.Lock()
        self._in_flight: Dict[str, _InFlight] = {}

    def lookup(self, identifier: str) -> EnrichmentDetail:
        cached = self._from_store(identifier)
        if cached is not None:
            ENRICHMENT_LOOKUPS.labels(result="hit").inc()
            logger.debug(f"CACHE HIT: Found details for {identifier}")
            return cached

        with self._lock:
            flight = self._in_flight.get(identifier)
            leader = flight is None
            if leader:
                flight = self._in_flight[identifier] = _InFlight()

        if not leader:
            ENRICHMENT_LOOKUPS.labels(result="shared").inc()
            if not flight.done.wait(self.wait_timeout):
                logger.warning(f"Timed out waiting for in-flight lookup of {identifier}")
            return flight.result or EnrichmentDetail.empty(identifier)

        try:
            # A leader that finished between our store miss and taking the lock
            # has already stored the detail
            cached = self._from_store(identifier)
            if cached is not None:
                ENRICHMENT_LOOKUPS.labels(result="hit").inc()
                flight.result = cached
            else:
                flight.result = self._fetch_and_store(identifier)
        finally:
            with self._lock:
                del self._in_flight[identifier]
            flight.done.set()
        return flight.result

    def _from_store(self, identifier: str) -> Optional[EnrichmentDetail]:
        try:
            return self.store.get(identifier)
        except Exception as e:
            logger.error(f"Detail store read failed for {identifier}: {e}")
            return None

    def _fetch_and_store(self, identifier: str) -> EnrichmentDetail:
        logger.info(f"CACHE MISS: Fetching details for {identifier}")
        try:
            payload = self.fetch(identifier)
        except Exception as e:
            ENRICHMENT_LOOKUPS.labels(result="error").inc()
            logger.error(f"Error getting details for {identifier}: {e}")
            return EnrichmentDetail.empty(identifier)

        ENRICHMENT_LOOKUPS.labels(result="miss").inc()
        detail = normalize_detail(identifier, payload)

        # Unknown airframes are not cached so a later sighting can retry
        if detail.is_empty:
            return detail

        try:
            self.store.upsert(detail)
        except Exception as e:
            logger.error(f"DB CACHE_SAVE ERROR for {identifier}: {e}")
        return detail
