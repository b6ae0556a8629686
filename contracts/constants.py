"""
Shared constants for SkyWatch services.

This module provides a single source of truth for:
- Trigger kinds and emergency squawk codes
- Kafka topic names and message types
- Schema versions and provider names

All modules should import from this module to ensure consistency.
"""

# Schema version
SCHEMA_VERSION = 1

# Kafka Topic Names
KAFKA_TOPIC_ALERTS = "aircraft.alerts"

# Message Types
MESSAGE_TYPE_ALERT_EVENT = "alert_event"

# Trigger Kinds (priority order: first match wins)
TRIGGER_WATCHLIST = "watchlist"
TRIGGER_EMERGENCY = "emergency"
TRIGGER_SPECIAL = "special"
TRIGGER_PROXIMITY = "proximity"

TRIGGER_KINDS = (
    TRIGGER_WATCHLIST,
    TRIGGER_EMERGENCY,
    TRIGGER_SPECIAL,
    TRIGGER_PROXIMITY,
)

# Reserved emergency transponder codes
SQUAWK_HIJACK = "7500"
SQUAWK_RADIO_FAILURE = "7600"
SQUAWK_GENERAL_EMERGENCY = "7700"

EMERGENCY_SQUAWKS = frozenset({SQUAWK_HIJACK, SQUAWK_RADIO_FAILURE, SQUAWK_GENERAL_EMERGENCY})

SQUAWK_MEANINGS = {
    SQUAWK_GENERAL_EMERGENCY: "General Emergency",
    SQUAWK_RADIO_FAILURE: "Radio Failure",
    SQUAWK_HIJACK: "Hijack",
}

# Altitude markers used by the positional feed
ALTITUDE_GROUND = "ground"

# readsb dbFlags bit for military / special-category airframes
DB_FLAG_MILITARY = 1

# Data Providers
PROVIDER_ADSB_LOL = "adsb.lol"
PROVIDER_ADSBDB = "adsbdb"
PROVIDER_SKYWATCH_ALERTER = "skywatch-alerter"

# Upstream endpoints
ADSB_LOL_API_BASE = "https://api.adsb.lol/v2"
ADSBDB_API_URL = "https://api.adsbdb.com/v0/aircraft/"
WATCHLIST_CSV_URL = "https://raw.githubusercontent.com/sdr-enthusiasts/plane-alert-db/main/plane-alert-db-images.csv"
TRACKING_URL_TEMPLATE = "https://globe.adsb.lol/?icao={identifier}"

# Watchlist CSV column offsets (plane-alert-db layout)
WATCHLIST_COL_ICAO = 0
WATCHLIST_COL_REGISTRATION = 1
WATCHLIST_COL_TYPE = 4
WATCHLIST_COL_NOTE = 6
WATCHLIST_MIN_COLUMNS = WATCHLIST_COL_NOTE + 1
