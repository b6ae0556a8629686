"""
Tests for per-aircraft alert state and the state reaper.
"""

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys

import pytest

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from processing.models import TriggerKind
from processing.reaper import StateReaper
from processing.state_store import AlertState, AlertStateStore, LatchState

T0 = datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc)


class TestAlertState:
    """Test latch transitions."""

    def test_new_state_is_armed(self):
        state = AlertState()
        for kind in (TriggerKind.WATCHLIST, TriggerKind.SPECIAL, TriggerKind.PROXIMITY):
            assert state.is_armed(kind)
        assert state.last_squawk is None
        assert state.last_seen is None

    def test_fire_and_rearm(self):
        state = AlertState()
        state.fire(TriggerKind.PROXIMITY)
        assert state.proximity is LatchState.ALERTED
        assert not state.is_armed(TriggerKind.PROXIMITY)
        assert state.is_armed(TriggerKind.WATCHLIST)

        state.rearm(TriggerKind.PROXIMITY)
        assert state.is_armed(TriggerKind.PROXIMITY)

    def test_emergency_is_not_latched(self):
        with pytest.raises(ValueError):
            AlertState().is_armed(TriggerKind.EMERGENCY)


class TestAlertStateStore:
    """Test AlertStateStore read-modify-write."""

    def test_first_transaction_creates_state(self):
        store = AlertStateStore()
        assert store.get("a1b2c3") is None

        with store.transaction("a1b2c3") as state:
            state.last_squawk = "1200"
            state.last_seen = T0

        stored = store.get("a1b2c3")
        assert stored.last_squawk == "1200"
        assert stored.last_seen == T0
        assert "a1b2c3" in store
        assert len(store) == 1

    def test_get_returns_copy(self):
        store = AlertStateStore()
        with store.transaction("a1b2c3") as state:
            state.fire(TriggerKind.WATCHLIST)

        copy = store.get("a1b2c3")
        copy.rearm(TriggerKind.WATCHLIST)

        assert not store.get("a1b2c3").is_armed(TriggerKind.WATCHLIST)

    def test_failed_transaction_not_stored(self):
        store = AlertStateStore()
        with pytest.raises(RuntimeError):
            with store.transaction("a1b2c3") as state:
                state.last_squawk = "7700"
                raise RuntimeError("boom")

        assert store.get("a1b2c3") is None

    def test_concurrent_updates_single_entry(self):
        """Concurrent read-modify-write on one identifier keeps one entry and loses no update."""
        store = AlertStateStore(stripes=4)
        counts = {}
        counts_lock = threading.Lock()

        def worker(n):
            for _ in range(200):
                with store.transaction("a1b2c3") as state:
                    # last_squawk doubles as a counter here
                    state.last_squawk = str(int(state.last_squawk or "0") + 1)
            with counts_lock:
                counts[n] = True

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(counts) == 8
        assert store.identifiers() == ["a1b2c3"]
        assert store.get("a1b2c3").last_squawk == str(8 * 200)

    def test_concurrent_distinct_identifiers(self):
        store = AlertStateStore()
        identifiers = [f"{n:06x}" for n in range(500)]

        def worker(chunk):
            for identifier in chunk:
                with store.transaction(identifier) as state:
                    state.last_seen = T0

        threads = [threading.Thread(target=worker, args=(identifiers[i::4],)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert sorted(store.identifiers()) == identifiers


class TestReap:
    """Test TTL-based reaping."""

    def test_stale_state_removed(self):
        store = AlertStateStore()
        with store.transaction("a1b2c3") as state:
            state.last_seen = T0
        with store.transaction("ae1234") as state:
            state.last_seen = T0 + timedelta(minutes=20)

        removed = store.reap(T0 + timedelta(minutes=31), timedelta(minutes=30))

        assert removed == 1
        assert "a1b2c3" not in store
        assert "ae1234" in store

    def test_state_at_ttl_kept(self):
        store = AlertStateStore()
        with store.transaction("a1b2c3") as state:
            state.last_seen = T0

        assert store.reap(T0 + timedelta(minutes=30), timedelta(minutes=30)) == 0
        assert "a1b2c3" in store

    def test_unstamped_state_gets_timestamp(self):
        store = AlertStateStore()
        with store.transaction("a1b2c3"):
            pass

        store.reap(T0, timedelta(minutes=30))
        assert store.get("a1b2c3").last_seen == T0

    def test_reaped_identifier_starts_fresh(self):
        store = AlertStateStore()
        with store.transaction("a1b2c3") as state:
            state.fire(TriggerKind.WATCHLIST)
            state.fire(TriggerKind.SPECIAL)
            state.last_squawk = "7700"
            state.last_seen = T0

        store.reap(T0 + timedelta(hours=1), timedelta(minutes=30))

        with store.transaction("a1b2c3") as state:
            assert state.is_armed(TriggerKind.WATCHLIST)
            assert state.is_armed(TriggerKind.SPECIAL)
            assert state.last_squawk is None


class TestStateReaper:
    """Test StateReaper with a fixed clock."""

    def test_reap_uses_clock_and_ttl(self):
        store = AlertStateStore()
        with store.transaction("a1b2c3") as state:
            state.last_seen = T0

        reaper = StateReaper(store, timedelta(minutes=30), clock=lambda: T0 + timedelta(minutes=45))

        assert reaper.reap() == 1
        assert len(store) == 0

    def test_explicit_now_overrides_clock(self):
        store = AlertStateStore()
        with store.transaction("a1b2c3") as state:
            state.last_seen = T0

        reaper = StateReaper(store, clock=lambda: T0 + timedelta(days=1))

        assert reaper.reap(now=T0 + timedelta(minutes=5)) == 0
        assert "a1b2c3" in store

    def test_zero_ttl_is_honoured(self):
        """Test that an explicit zero TTL reaps instead of falling back to the default."""
        store = AlertStateStore()
        with store.transaction("a1b2c3") as state:
            state.last_seen = T0

        reaper = StateReaper(store, timedelta(minutes=30), clock=lambda: T0)

        assert reaper.reap(now=T0 + timedelta(seconds=1), ttl=timedelta(0)) == 1
        assert len(store) == 0
