"""
Notification routing and delivery.

The dispatcher maps each trigger kind to a sink (falling back to a default
sink) and delivers best-effort: a failed delivery is logged and counted,
never retried, queued or raised.
"""

import logging
from typing import Dict, Mapping, Optional, Protocol

import requests

from contracts.constants import TRACKING_URL_TEMPLATE
from processing.errors import DeliveryFailed
from processing.metrics import DISPATCH_TOTAL
from processing.models import AlertRecord, TriggerKind

logger = logging.getLogger(__name__)

DISCORD_FOOTER = "SkyWatch ADS-B Alerter"

EMBED_STYLE = {
    TriggerKind.WATCHLIST: ("⭐ Watchlist Alert", 16776960),                # yellow
    TriggerKind.EMERGENCY: ("\U0001f534 EMERGENCY: SQUAWK {squawk}", 16711680),  # red
    TriggerKind.SPECIAL: ("✈️ Military Aircraft Detected", 3447003),   # blue
    TriggerKind.PROXIMITY: ("\U0001f4e1 LOW-FLYING: Overhead Alert", 16753920),  # orange
}


class AlertSink(Protocol):
    def send(self, record: AlertRecord) -> None:
        """Deliver one alert; raise on failure."""
        ...


# ============================================
# Discord
# ============================================

def _or_na(value: Optional[str]) -> str:
    # Discord rejects embeds with empty field values
    return value if value else "N/A"


def build_discord_payload(record: AlertRecord, proximity_radius_nm: Optional[float] = None) -> dict:
    """Format an AlertRecord as a Discord webhook body with a single embed."""
    snapshot = record.snapshot
    detail = record.detail
    altitude = snapshot.altitude.describe()

    title, color = EMBED_STYLE[record.kind]
    title = title.format(squawk=snapshot.squawk)

    description = ""
    if record.kind is TriggerKind.WATCHLIST and record.watchlist_entry is not None:
        description = f"**Note:** {_or_na(record.watchlist_entry.note)}"
    elif record.kind is TriggerKind.PROXIMITY:
        radius = f" within {proximity_radius_nm:g}nm" if proximity_radius_nm else ""
        description = f"**Aircraft is at {altitude} ft{radius}**"

    registration = detail.registration or snapshot.registration
    aircraft_type = detail.aircraft_type or snapshot.type_designator

    embed = {
        "title": title,
        "color": color,
        "url": TRACKING_URL_TEMPLATE.format(identifier=snapshot.identifier),
        "fields": [
            {"name": "Callsign", "value": f"`{_or_na(snapshot.callsign)}`", "inline": True},
            {"name": "ICAO Hex", "value": f"`{snapshot.identifier}`", "inline": True},
            {"name": "Squawk", "value": f"`{_or_na(snapshot.squawk)}`", "inline": True},
            {"name": "Registration", "value": f"`{_or_na(registration)}`", "inline": True},
            {"name": "Aircraft Type", "value": f"`{_or_na(aircraft_type)}`", "inline": True},
            {"name": "Altitude", "value": f"{altitude} ft", "inline": True},
            {"name": "Speed", "value": f"{snapshot.ground_speed:.1f} kts", "inline": True},
            {"name": "Owner", "value": _or_na(detail.owner), "inline": False},
            {"name": "Airline", "value": _or_na(detail.airline), "inline": False},
        ],
        "footer": {"text": DISCORD_FOOTER},
        "timestamp": record.detected_at.isoformat(),
    }
    if description:
        embed["description"] = description
    if detail.thumbnail_url:
        embed["thumbnail"] = {"url": detail.thumbnail_url}

    return {"embeds": [embed]}


class DiscordWebhookSink:
    """Posts alerts to a Discord webhook."""

    def __init__(
        self,
        webhook_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        proximity_radius_nm: Optional[float] = None,
    ):
        self.webhook_url = webhook_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self.proximity_radius_nm = proximity_radius_nm

    def send(self, record: AlertRecord) -> None:
        payload = build_discord_payload(record, self.proximity_radius_nm)
        response = self.session.post(self.webhook_url, json=payload, timeout=self.timeout)
        if not 200 <= response.status_code < 300:
            raise DeliveryFailed(f"Discord API returned non-2xx status: {response.status_code}")


# ============================================
# Logging
# ============================================

class LogSink:
    """Writes alerts to the log only. Useful for dry runs."""

    def __init__(self, level: int = logging.WARNING):
        self.level = level

    def send(self, record: AlertRecord) -> None:
        snapshot = record.snapshot
        logger.log(
            self.level,
            f"ALERT [{record.kind.value}] {snapshot.identifier} "
            f"callsign={snapshot.callsign or '-'} squawk={snapshot.squawk or '-'} "
            f"alt={snapshot.altitude.describe()} reg={record.detail.registration or snapshot.registration or '-'}"
        )


# ============================================
# Dispatcher
# ============================================

class NotificationDispatcher:
    """Routes alerts to sinks by trigger kind."""

    def __init__(
        self,
        routes: Optional[Mapping[TriggerKind, AlertSink]] = None,
        default: Optional[AlertSink] = None,
    ):
        self.routes: Dict[TriggerKind, AlertSink] = dict(routes or {})
        self.default = default

    def sink_for(self, kind: TriggerKind) -> Optional[AlertSink]:
        return self.routes.get(kind, self.default)

    def dispatch(self, record: AlertRecord) -> bool:
        """
        Deliver one alert.

        Returns:
            True if the sink accepted it, False otherwise. Never raises.
        """
        kind = record.kind.value
        sink = self.sink_for(record.kind)
        if sink is None:
            logger.warning(f"No sink configured for {kind} alerts. Skipping alert for {record.identifier}.")
            DISPATCH_TOTAL.labels(kind=kind, status="unrouted").inc()
            return False

        try:
            sink.send(record)
        except Exception as e:
            DISPATCH_TOTAL.labels(kind=kind, status="failed").inc()
            logger.error(f"Error sending {kind} alert for {record.identifier}: {e}")
            return False

        DISPATCH_TOTAL.labels(kind=kind, status="sent").inc()
        logger.info(f"Successfully sent alert for {record.identifier} (Type: {kind})")
        return True
