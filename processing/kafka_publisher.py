"""
Kafka sink for alert events.

Publishes AlertEventEnvelope messages to the aircraft.alerts topic, keyed by
identifier so all alerts for one airframe land on one partition.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from confluent_kafka import Producer

from contracts.constants import (
    KAFKA_TOPIC_ALERTS,
    MESSAGE_TYPE_ALERT_EVENT,
    PROVIDER_SKYWATCH_ALERTER,
    SCHEMA_VERSION,
)
from contracts.validation import validate_alert_event_envelope
from processing.coordinates import resolve
from processing.errors import DeliveryFailed
from processing.models import AlertRecord

logger = logging.getLogger(__name__)


def create_producer(broker: str) -> Producer:
    """Create Kafka producer with delivery confirmation."""
    return Producer({
        "bootstrap.servers": broker,
        "client.id": "skywatch-alerter",
        "acks": "all",
    })


def build_alert_envelope(record: AlertRecord) -> dict:
    """Create the AlertEventEnvelope dict for one alert."""
    snapshot = record.snapshot
    lat, lon, has_fix = resolve(snapshot)
    entry = record.watchlist_entry

    return {
        "schema_version": SCHEMA_VERSION,
        "type": MESSAGE_TYPE_ALERT_EVENT,
        "produced_at": datetime.now(timezone.utc).isoformat(),
        "source": {
            "provider": PROVIDER_SKYWATCH_ALERTER
        },
        "payload": {
            "identifier": snapshot.identifier,
            "callsign": snapshot.callsign or None,
            "trigger": record.kind.value,
            "squawk": snapshot.squawk or None,
            "altitude_status": snapshot.altitude.kind.value,
            "altitude_ft": snapshot.altitude.feet,
            "ground_speed_kts": snapshot.ground_speed,
            "position": {"lat": lat, "lon": lon} if has_fix else None,
            "registration": record.detail.registration or snapshot.registration,
            "aircraft_type": record.detail.aircraft_type or (snapshot.type_designator or ""),
            "owner": record.detail.owner,
            "airline": record.detail.airline,
            "note": entry.note if entry else None,
            "detected_at": record.detected_at.isoformat(),
        }
    }


class KafkaAlertSink:
    """Publishes alerts to Kafka."""

    def __init__(self, producer: Producer, topic: str = KAFKA_TOPIC_ALERTS):
        self.producer = producer
        self.topic = topic

    @classmethod
    def from_broker(cls, broker: str, topic: Optional[str] = None) -> "KafkaAlertSink":
        return cls(create_producer(broker), topic or KAFKA_TOPIC_ALERTS)

    def send(self, record: AlertRecord) -> None:
        envelope_dict = build_alert_envelope(record)

        # Validate envelope before publishing
        is_valid, envelope, error = validate_alert_event_envelope(envelope_dict)
        if not is_valid:
            raise DeliveryFailed(f"Invalid alert envelope: {error}")
        envelope_dict["payload"]["identifier"] = envelope.payload.identifier

        self.producer.produce(
            self.topic,
            key=envelope.payload.identifier.encode(),
            value=json.dumps(envelope_dict),
            callback=self._delivery_callback,
        )
        self.producer.poll(0)  # Trigger delivery callbacks

    @staticmethod
    def _delivery_callback(err, msg):
        if err:
            logger.error(f"Failed to publish alert: {err}")

    def flush(self, timeout: float = 10.0) -> int:
        return self.producer.flush(timeout)
