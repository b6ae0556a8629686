"""
Runtime configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from contracts.constants import ADSBDB_API_URL, KAFKA_TOPIC_ALERTS, WATCHLIST_CSV_URL
from processing.errors import ConfigError
from processing.models import TriggerKind

ALERT_SINKS = ("discord", "kafka", "log")
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

# Raleigh, NC
DEFAULT_HOME_LAT = 35.740971
DEFAULT_HOME_LON = -78.498878


@dataclass(frozen=True)
class Settings:
    home_lat: float = DEFAULT_HOME_LAT
    home_lon: float = DEFAULT_HOME_LON
    feed_radius_nm: float = 50.0
    proximity_radius_nm: float = 5.0
    proximity_altitude_ft: float = 2000.0
    poll_interval_seconds: float = 60.0
    secondary_feed_url: Optional[str] = None
    secondary_poll_interval_seconds: float = 120.0
    watchlist_url: str = WATCHLIST_CSV_URL
    watchlist_interval_seconds: float = 86400.0
    state_ttl_seconds: float = 1800.0
    adsbdb_api_url: str = ADSBDB_API_URL
    http_timeout_seconds: float = 15.0
    database_url: Optional[str] = None
    alert_sink: str = "discord"
    discord_webhook_url: Optional[str] = None
    discord_webhooks: Dict[TriggerKind, str] = field(default_factory=dict)
    redpanda_broker: Optional[str] = None
    kafka_topic_alerts: str = KAFKA_TOPIC_ALERTS
    metrics_port: int = 8080
    log_level: str = "INFO"

    def webhook_for(self, kind: TriggerKind) -> Optional[str]:
        return self.discord_webhooks.get(kind, self.discord_webhook_url)


def _get(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _get(env, name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _positive(name: str, value: float) -> float:
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Raises:
        ConfigError: a value is unparsable or a setting required by the
            selected alert sink is missing.
    """
    if env is None:
        env = os.environ

    alert_sink = (_get(env, "ALERT_SINK") or "discord").lower()
    if alert_sink not in ALERT_SINKS:
        raise ConfigError(f"ALERT_SINK must be one of {', '.join(ALERT_SINKS)}, got {alert_sink!r}")

    home_lat = _float(env, "HOME_LAT", DEFAULT_HOME_LAT)
    home_lon = _float(env, "HOME_LON", DEFAULT_HOME_LON)
    if not -90 <= home_lat <= 90 or not -180 <= home_lon <= 180:
        raise ConfigError(f"Home location out of range: {home_lat}, {home_lon}")

    webhooks = {}
    for kind in TriggerKind:
        url = _get(env, f"DISCORD_WEBHOOK_URL_{kind.name}")
        if url:
            webhooks[kind] = url
    default_webhook = _get(env, "DISCORD_WEBHOOK_URL")

    if alert_sink == "discord" and default_webhook is None:
        missing = [kind.name for kind in TriggerKind if kind not in webhooks]
        if missing:
            raise ConfigError(
                f"DISCORD_WEBHOOK_URL is required (no override for {', '.join(missing)})"
            )

    log_level = (_get(env, "LOG_LEVEL") or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    broker = _get(env, "REDPANDA_BROKER")
    if alert_sink == "kafka" and broker is None:
        raise ConfigError("REDPANDA_BROKER is required when ALERT_SINK=kafka")

    return Settings(
        home_lat=home_lat,
        home_lon=home_lon,
        feed_radius_nm=_positive("FEED_RADIUS_NM", _float(env, "FEED_RADIUS_NM", 50.0)),
        proximity_radius_nm=_positive("PROXIMITY_RADIUS_NM", _float(env, "PROXIMITY_RADIUS_NM", 5.0)),
        proximity_altitude_ft=_positive("PROXIMITY_ALTITUDE_FT", _float(env, "PROXIMITY_ALTITUDE_FT", 2000.0)),
        poll_interval_seconds=_positive("POLL_INTERVAL_SECONDS", _float(env, "POLL_INTERVAL_SECONDS", 60.0)),
        secondary_feed_url=_get(env, "SECONDARY_FEED_URL"),
        secondary_poll_interval_seconds=_positive(
            "SECONDARY_POLL_INTERVAL_SECONDS", _float(env, "SECONDARY_POLL_INTERVAL_SECONDS", 120.0)
        ),
        watchlist_url=_get(env, "WATCHLIST_URL") or WATCHLIST_CSV_URL,
        watchlist_interval_seconds=_positive(
            "WATCHLIST_INTERVAL_SECONDS", _float(env, "WATCHLIST_INTERVAL_SECONDS", 86400.0)
        ),
        state_ttl_seconds=_positive("STATE_TTL_SECONDS", _float(env, "STATE_TTL_SECONDS", 1800.0)),
        adsbdb_api_url=_get(env, "ADSBDB_API_URL") or ADSBDB_API_URL,
        http_timeout_seconds=_positive("HTTP_TIMEOUT_SECONDS", _float(env, "HTTP_TIMEOUT_SECONDS", 15.0)),
        database_url=_get(env, "DATABASE_URL"),
        alert_sink=alert_sink,
        discord_webhook_url=default_webhook,
        discord_webhooks=webhooks,
        redpanda_broker=broker,
        kafka_topic_alerts=_get(env, "KAFKA_TOPIC_ALERTS") or KAFKA_TOPIC_ALERTS,
        metrics_port=_int(env, "METRICS_PORT", 8080),
        log_level=log_level,
    )
