"""
Data model for the alerting engine.

Snapshots, watchlist entries, enrichment details and alert records are
immutable. Mutable per-aircraft latch state lives in state_store.py.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import NamedTuple, Optional

from contracts.constants import (
    ALTITUDE_GROUND,
    TRIGGER_EMERGENCY,
    TRIGGER_PROXIMITY,
    TRIGGER_SPECIAL,
    TRIGGER_WATCHLIST,
)


class TriggerKind(str, Enum):
    WATCHLIST = TRIGGER_WATCHLIST
    EMERGENCY = TRIGGER_EMERGENCY
    SPECIAL = TRIGGER_SPECIAL
    PROXIMITY = TRIGGER_PROXIMITY


class AltitudeKind(str, Enum):
    NUMERIC = "numeric"
    GROUND = "ground"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Altitude:
    """
    Barometric altitude as reported by the feed: a number of feet, the literal
    "ground", or nothing usable. Only NUMERIC carries `feet`.
    """
    kind: AltitudeKind
    feet: Optional[float] = None

    @classmethod
    def numeric(cls, feet: float) -> "Altitude":
        return cls(AltitudeKind.NUMERIC, float(feet))

    @classmethod
    def ground(cls) -> "Altitude":
        return cls(AltitudeKind.GROUND)

    @classmethod
    def unknown(cls) -> "Altitude":
        return cls(AltitudeKind.UNKNOWN)

    @classmethod
    def from_raw(cls, value) -> "Altitude":
        """Parse the feed's `alt_baro`, which is a number or the string "ground"."""
        if value is None or isinstance(value, bool):
            return cls.unknown()
        if isinstance(value, (int, float)):
            return cls.numeric(value)
        if isinstance(value, str):
            text = value.strip().lower()
            if text == ALTITUDE_GROUND:
                return cls.ground()
            try:
                return cls.numeric(float(text))
            except ValueError:
                return cls.unknown()
        return cls.unknown()

    def describe(self) -> str:
        """Human-readable form used in notifications."""
        if self.kind is AltitudeKind.NUMERIC:
            return f"{self.feet:.0f}"
        if self.kind is AltitudeKind.GROUND:
            return ALTITUDE_GROUND
        return "N/A"


class GeoPoint(NamedTuple):
    lat: float
    lon: float


@dataclass(frozen=True)
class ObjectSnapshot:
    """One poll's reported state for one aircraft."""
    identifier: str
    callsign: str = ""
    registration: str = ""
    squawk: str = ""
    special: bool = False
    altitude: Altitude = field(default_factory=Altitude.unknown)
    ground_speed: float = 0.0
    position: Optional[GeoPoint] = None
    last_position: Optional[GeoPoint] = None
    type_designator: Optional[str] = None


@dataclass(frozen=True)
class WatchlistEntry:
    identifier: str
    registration: str = ""
    note: str = ""
    type_hint: str = ""


@dataclass(frozen=True)
class EnrichmentDetail:
    """Reference data for an airframe. Unknown fields are empty strings."""
    identifier: str
    registration: str = ""
    aircraft_type: str = ""
    owner: str = ""
    airline: str = ""
    thumbnail_url: str = ""
    image_url: str = ""

    @classmethod
    def empty(cls, identifier: str) -> "EnrichmentDetail":
        return cls(identifier=identifier)

    @property
    def is_empty(self) -> bool:
        return not (self.registration or self.aircraft_type or self.owner or self.airline)


@dataclass(frozen=True)
class AlertRecord:
    kind: TriggerKind
    snapshot: ObjectSnapshot
    detail: EnrichmentDetail
    watchlist_entry: Optional[WatchlistEntry] = None
    detected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def identifier(self) -> str:
        return self.snapshot.identifier
