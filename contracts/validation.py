"""
Validation library for SkyWatch message contracts.

Provides Pydantic models for the upstream payloads the alerter consumes
(adsb.lol positional feed, adsbdb / hexdb detail lookups) and for the alert
events it produces. Feed and lookup models are lenient (extra keys ignored,
nulls coerced); the outbound alert envelope is strict.
"""

from typing import Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)
from contracts.constants import DB_FLAG_MILITARY


def _blank_if_none(v):
    """Upstream APIs send null for unknown text fields; the alerter wants ''."""
    if v is None:
        return ""
    if isinstance(v, str):
        return v.strip()
    return str(v)


# ============================================================================
# Shared Components
# ============================================================================

class Position(BaseModel):
    """Geographic position."""
    lat: float = Field(ge=-90, le=90, description="Latitude in degrees (WGS84)")
    lon: float = Field(ge=-180, le=180, description="Longitude in degrees (WGS84)")


class SourceInfo(BaseModel):
    """Source information for envelope."""
    provider: Literal["adsb.lol", "skywatch-alerter"]
    feed: Optional[str] = None


# ============================================================================
# Positional Feed (adsb.lol v2)
# ============================================================================

class LastPosition(BaseModel):
    """Nested last-known position reported when the live fix is stale."""
    model_config = ConfigDict(extra="ignore")

    lat: Optional[float] = None
    lon: Optional[float] = None
    seen_pos: Optional[float] = None


class FeedAircraft(BaseModel):
    """One aircraft record from the adsb.lol `ac` array."""
    model_config = ConfigDict(extra="ignore")

    hex: str = Field(min_length=1, description="ICAO 24-bit address (hex)")
    flight: Optional[str] = None
    r: Optional[str] = None
    t: Optional[str] = None
    squawk: Optional[str] = None
    mil: bool = False
    dbFlags: Optional[int] = None
    alt_baro: Optional[Union[float, str]] = None
    gs: Optional[float] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    lastPosition: Optional[LastPosition] = None

    @field_validator("hex")
    @classmethod
    def normalize_hex(cls, v: str) -> str:
        """Normalize hex to stripped lowercase."""
        v = v.strip().lower()
        if not v:
            raise ValueError("hex must not be blank")
        return v

    @field_validator("flight", "r", "t", "squawk")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        """Callsigns arrive space-padded to eight characters."""
        if v is None:
            return None
        return v.strip() or None

    @property
    def is_special(self) -> bool:
        """Military / special-category airframe."""
        return self.mil or bool((self.dbFlags or 0) & DB_FLAG_MILITARY)


class FeedResponse(BaseModel):
    """Envelope returned by adsb.lol v2 endpoints."""
    model_config = ConfigDict(extra="ignore")

    ac: List[Dict[str, Any]] = Field(default_factory=list)
    msg: Optional[str] = None
    now: Optional[float] = None
    total: Optional[int] = None

    @field_validator("ac", mode="before")
    @classmethod
    def null_is_empty(cls, v):
        """An empty area comes back as `"ac": null` on some mirrors."""
        return v or []


# ============================================================================
# Detail Lookup Payloads
# ============================================================================

class AdsbDbAircraft(BaseModel):
    """The `response.aircraft` sub-record of the nested commercial shape."""
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    registration: str = ""
    registered_owner: str = ""
    registered_owner_operator_flag_code: str = ""
    url_photo_thumbnail: str = ""
    url_photo: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def blank_if_none(cls, v):
        return _blank_if_none(v)


class AdsbDbResponseBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    aircraft: Optional[AdsbDbAircraft] = None


class AdsbDbNestedPayload(BaseModel):
    """
    Nested commercial shape:
        {"response": {"aircraft": {"registration": ..., ...}}}

    adsbdb answers unknown airframes with `{"response": "unknown aircraft"}`,
    so `response` may also be a plain string.
    """
    model_config = ConfigDict(extra="ignore")

    response: Optional[Union[AdsbDbResponseBody, str]] = None

    @property
    def aircraft(self) -> Optional[AdsbDbAircraft]:
        if isinstance(self.response, AdsbDbResponseBody):
            return self.response.aircraft
        return None


class FlatDetailPayload(BaseModel):
    """
    Flat reference shape with fields at the top level. Accepts the snake_case
    keys and the capitalised hexdb.io keys.
    """
    model_config = ConfigDict(extra="ignore")

    registration: str = Field(
        default="", validation_alias=AliasChoices("registration", "Registration")
    )
    type: str = Field(
        default="", validation_alias=AliasChoices("type", "ICAOTypeCode", "Type")
    )
    owner: str = Field(
        default="",
        validation_alias=AliasChoices("owner", "registered_owner", "RegisteredOwners"),
    )
    operator_flag_code: str = Field(
        default="",
        validation_alias=AliasChoices("operator_flag_code", "OperatorFlagCode"),
    )

    @field_validator("*", mode="before")
    @classmethod
    def blank_if_none(cls, v):
        return _blank_if_none(v)


# ============================================================================
# Alert Payload and Envelope
# ============================================================================

class AlertPayload(BaseModel):
    """Alert event payload."""
    identifier: str = Field(pattern=r"^~?[0-9a-f]{6}$")
    callsign: Optional[str] = None
    trigger: Literal["watchlist", "emergency", "special", "proximity"]
    squawk: Optional[str] = None
    altitude_status: Literal["numeric", "ground", "unknown"]
    altitude_ft: Optional[float] = None
    ground_speed_kts: Optional[float] = None
    position: Optional[Position] = None
    registration: str = ""
    aircraft_type: str = ""
    owner: str = ""
    airline: str = ""
    note: Optional[str] = None
    detected_at: datetime

    @field_validator("identifier", mode="before")
    @classmethod
    def validate_identifier(cls, v):
        """Normalize identifier to lowercase before the pattern check."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("detected_at", mode="before")
    @classmethod
    def parse_detected_at(cls, v):
        """Parse ISO 8601 datetime string."""
        if isinstance(v, str):
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v


class AlertEventEnvelope(BaseModel):
    """Envelope for the aircraft.alerts topic."""
    schema_version: Literal[1] = 1
    type: Literal["alert_event"] = "alert_event"
    produced_at: datetime
    source: SourceInfo
    payload: AlertPayload

    @field_validator("produced_at", mode="before")
    @classmethod
    def parse_produced_at(cls, v):
        """Parse ISO 8601 datetime string."""
        if isinstance(v, str):
            return datetime.fromisoformat(v.replace("Z", "+00:00"))
        return v


# ============================================================================
# Validation Functions
# ============================================================================

def validate_feed_aircraft(data: dict) -> tuple[bool, Optional[FeedAircraft], Optional[str]]:
    """
    Validate one positional feed record.

    Returns:
        (is_valid, record_or_none, error_message_or_none)
    """
    try:
        return True, FeedAircraft.model_validate(data), None
    except ValidationError as e:
        return False, None, str(e)


def validate_feed_response(data: Any) -> tuple[bool, Optional[FeedResponse], Optional[str]]:
    """
    Validate a positional feed response body.

    Returns:
        (is_valid, response_or_none, error_message_or_none)
    """
    try:
        return True, FeedResponse.model_validate(data), None
    except ValidationError as e:
        return False, None, str(e)


def validate_alert_event_envelope(data: dict) -> tuple[bool, Optional[AlertEventEnvelope], Optional[str]]:
    """
    Validate AlertEventEnvelope.

    Returns:
        (is_valid, envelope_or_none, error_message_or_none)
    """
    try:
        return True, AlertEventEnvelope.model_validate(data), None
    except ValidationError as e:
        return False, None, str(e)
