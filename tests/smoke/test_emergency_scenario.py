"""
Smoke test: an emergency squawk flows through the whole alert pipeline.

This test verifies that:
1. A 7700 on first sighting produces exactly one emergency alert
2. The same code on the next cycle produces nothing
3. Switching to 7600 produces a new alert
4. Each alert reaches the configured sink with enrichment attached
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ingestion.feed_client import AdsbFeedClient
from processing.dispatcher import NotificationDispatcher
from processing.enrichment import EnrichmentCache, InMemoryDetailStore
from processing.geofence import Geofence
from processing.models import TriggerKind, WatchlistEntry
from processing.pipeline import AlertPipeline
from processing.reaper import StateReaper
from processing.rule_evaluator import RuleEvaluator
from processing.state_store import AlertStateStore
from processing.watchlist import WatchlistSet

T0 = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self):
        self.now = T0

    def __call__(self):
        return self.now


class RecordingSink:
    def __init__(self):
        self.records = []

    def send(self, record):
        self.records.append(record)


def feed_record(squawk: str) -> dict:
    return {"hex": "A1B2C3", "flight": "N123AB  ", "squawk": squawk, "alt_baro": 3500, "gs": 120.0,
            "lat": 36.2, "lon": -79.1}


@pytest.fixture
def harness():
    clock = FakeClock()
    sink = RecordingSink()
    store = AlertStateStore()
    lookups = []

    def fetch(identifier):
        lookups.append(identifier)
        return {"response": {"aircraft": {"registration": "N123AB", "registered_owner": "Triangle Flight Training LLC"}}}

    evaluator = RuleEvaluator(
        Geofence(35.740971, -78.498878, 5.0, 2000),
        EnrichmentCache(fetch, InMemoryDetailStore()),
        clock=clock,
    )
    pipeline = AlertPipeline(
        evaluator=evaluator,
        watchlist=WatchlistSet(),
        store=store,
        dispatcher=NotificationDispatcher(default=sink),
        reaper=StateReaper(store, timedelta(minutes=30), clock=clock),
    )
    parser = AdsbFeedClient("http://feed.test", name="smoke")
    return pipeline, parser, sink, clock, lookups


def test_emergency_code_change_scenario(harness):
    """Test 7700 -> 7700 -> 7600 across three cycles."""
    pipeline, parser, sink, clock, lookups = harness

    first = pipeline.process_batch(parser.parse_records([feed_record("7700")]))
    assert [r.kind for r in first] == [TriggerKind.EMERGENCY]
    assert first[0].identifier == "a1b2c3"

    clock.now += timedelta(minutes=1)
    second = pipeline.process_batch(parser.parse_records([feed_record("7700")]))
    assert second == []

    clock.now += timedelta(minutes=1)
    third = pipeline.process_batch(parser.parse_records([feed_record("7600")]))
    assert [r.kind for r in third] == [TriggerKind.EMERGENCY]

    assert [r.snapshot.squawk for r in sink.records] == ["7700", "7600"]
    assert all(r.detail.registration == "N123AB" for r in sink.records)
    # Second alert is served from the store
    assert lookups == ["a1b2c3"]


def test_reappearance_after_ttl_is_first_sighting(harness):
    """Test that a reaped aircraft alerts again on the same code."""
    pipeline, parser, sink, clock, _ = harness

    pipeline.process_batch(parser.parse_records([feed_record("7700")]))
    clock.now += timedelta(minutes=45)
    pipeline.process_batch([])

    again = pipeline.process_batch(parser.parse_records([feed_record("7700")]))
    assert [r.kind for r in again] == [TriggerKind.EMERGENCY]
    assert len(sink.records) == 2


def test_watchlist_masks_emergency(harness):
    """Test that a watchlisted aircraft squawking 7700 gets only the watchlist alert."""
    pipeline, parser, sink, _, _ = harness
    pipeline.watchlist.replace({"a1b2c3": WatchlistEntry(identifier="a1b2c3", note="Flight school")})

    alerts = pipeline.process_batch(parser.parse_records([feed_record("7700")]))
    assert [r.kind for r in alerts] == [TriggerKind.WATCHLIST]

    assert pipeline.process_batch(parser.parse_records([feed_record("7600")])) == []


def test_failing_item_does_not_abort_batch(harness):
    """Test that one aircraft raising mid-batch leaves the rest processed."""
    pipeline, parser, sink, _, _ = harness
    records = parser.parse_records([
        {"hex": "ae1234", "mil": True},
        {"hex": "a4c5d6", "squawk": "7500"},
    ])

    real_evaluate = pipeline.evaluator.evaluate

    def flaky(snapshot, watchlist, store):
        if snapshot.identifier == "ae1234":
            raise RuntimeError("boom")
        return real_evaluate(snapshot, watchlist, store)

    pipeline.evaluator.evaluate = flaky

    alerts = pipeline.process_batch(records)
    assert [r.identifier for r in alerts] == ["a4c5d6"]
