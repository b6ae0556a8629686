"""
SkyWatch Contracts Package

Provides shared constants and validation for upstream payloads and alert events.
"""

from contracts.constants import *
from contracts.validation import (
    Position,
    LastPosition,
    FeedAircraft,
    FeedResponse,
    AdsbDbAircraft,
    AdsbDbNestedPayload,
    FlatDetailPayload,
    AlertPayload,
    AlertEventEnvelope,
    validate_feed_aircraft,
    validate_feed_response,
    validate_alert_event_envelope,
)

__all__ = [
    # Constants
    "SCHEMA_VERSION",
    "KAFKA_TOPIC_ALERTS",
    "MESSAGE_TYPE_ALERT_EVENT",
    "TRIGGER_WATCHLIST",
    "TRIGGER_EMERGENCY",
    "TRIGGER_SPECIAL",
    "TRIGGER_PROXIMITY",
    "TRIGGER_KINDS",
    "EMERGENCY_SQUAWKS",
    "SQUAWK_MEANINGS",
    # Models
    "Position",
    "LastPosition",
    "FeedAircraft",
    "FeedResponse",
    "AdsbDbAircraft",
    "AdsbDbNestedPayload",
    "FlatDetailPayload",
    "AlertPayload",
    "AlertEventEnvelope",
    # Validators
    "validate_feed_aircraft",
    "validate_feed_response",
    "validate_alert_event_envelope",
]
