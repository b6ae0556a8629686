"""
Positional feed client for adsb.lol v2 endpoints.

Fetches one snapshot of aircraft per poll and converts each validated
record into an ObjectSnapshot. A failed poll returns None; the caller skips
that cycle.
"""

import logging
from typing import Any, Iterable, List, Optional

import requests

from contracts.constants import ADSB_LOL_API_BASE
from contracts.validation import FeedAircraft, validate_feed_aircraft, validate_feed_response
from processing.metrics import FEED_RECORDS_REJECTED, POLL_LATENCY, POLLS_TOTAL
from processing.models import Altitude, GeoPoint, ObjectSnapshot

logger = logging.getLogger(__name__)


def point_feed_url(lat: float, lon: float, radius_nm: float, base: str = ADSB_LOL_API_BASE) -> str:
    """URL of the aircraft-within-radius query around a point."""
    return f"{base.rstrip('/')}/point/{lat:.6f}/{lon:.6f}/{int(radius_nm)}"


def to_snapshot(record: FeedAircraft) -> ObjectSnapshot:
    """Transform a validated feed record into an ObjectSnapshot."""
    position = None
    if record.lat is not None and record.lon is not None:
        position = GeoPoint(record.lat, record.lon)

    last_position = None
    last = record.lastPosition
    if last is not None and last.lat is not None and last.lon is not None:
        last_position = GeoPoint(last.lat, last.lon)

    return ObjectSnapshot(
        identifier=record.hex,
        callsign=record.flight or "",
        registration=record.r or "",
        squawk=record.squawk or "",
        special=record.is_special,
        altitude=Altitude.from_raw(record.alt_baro),
        ground_speed=record.gs or 0.0,
        position=position,
        last_position=last_position,
        type_designator=record.t,
    )


class AdsbFeedClient:
    """Client for one adsb.lol v2 query."""

    def __init__(
        self,
        url: str,
        name: str = "primary",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.name = name
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self) -> Optional[List[ObjectSnapshot]]:
        """Fetch current aircraft. Returns snapshots in feed order, or None on error."""
        logger.info(f"[{self.name}] Fetching new aircraft data...")
        try:
            with POLL_LATENCY.labels(feed=self.name).time():
                response = self.session.get(self.url, timeout=self.timeout)
        except requests.exceptions.Timeout:
            POLLS_TOTAL.labels(feed=self.name, status="timeout").inc()
            logger.error(f"[{self.name}] ADSB API timeout")
            return None
        except requests.exceptions.RequestException as e:
            POLLS_TOTAL.labels(feed=self.name, status="connection_error").inc()
            logger.error(f"[{self.name}] Error fetching ADSB data: {e}")
            return None

        if response.status_code != 200:
            POLLS_TOTAL.labels(feed=self.name, status="error").inc()
            logger.error(f"[{self.name}] ADSB API returned non-200 status: {response.status_code}")
            return None

        try:
            body = response.json()
        except ValueError as e:
            POLLS_TOTAL.labels(feed=self.name, status="bad_payload").inc()
            logger.error(f"[{self.name}] Error decoding JSON: {e}")
            return None

        is_valid, feed, error = validate_feed_response(body)
        if not is_valid:
            POLLS_TOTAL.labels(feed=self.name, status="bad_payload").inc()
            logger.error(f"[{self.name}] Unexpected feed payload: {error}")
            return None

        POLLS_TOTAL.labels(feed=self.name, status="success").inc()
        return self.parse_records(feed.ac)

    def parse_records(self, records: Iterable[Any]) -> List[ObjectSnapshot]:
        """Validate raw records, dropping the ones that fail."""
        snapshots = []
        for raw in records:
            is_valid, record, error = validate_feed_aircraft(raw)
            if not is_valid:
                FEED_RECORDS_REJECTED.labels(feed=self.name).inc()
                logger.warning(f"[{self.name}] Dropping invalid aircraft record: {error}")
                continue
            snapshots.append(to_snapshot(record))
        return snapshots
