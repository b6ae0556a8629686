"""
Tests for detail payload normalization and the enrichment cache.

Covers both remote payload shapes, the lookaside store, failure degradation
and in-flight deduplication of concurrent lookups.
"""

import json
import threading
import time
from pathlib import Path
import sys

import pytest
import requests

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from ingestion.adsbdb_client import AdsbDbClient
from processing.enrichment import EnrichmentCache, InMemoryDetailStore, normalize_detail
from processing.errors import LookupFailed
from processing.models import EnrichmentDetail


def load_example(filename: str) -> dict:
    """Load example JSON file."""
    example_path = Path(__file__).parent.parent.parent / "contracts" / "examples" / filename
    with open(example_path) as f:
        return json.load(f)


class FailingStore(InMemoryDetailStore):
    def upsert(self, detail):
        raise RuntimeError("connection reset")


class TestNormalizeDetail:
    """Test normalize_detail across the nested and flat shapes."""

    def test_nested_shape(self):
        detail = normalize_detail("a1b2c3", load_example("adsbdb_aircraft.json"))

        assert detail.registration == "N123AB"
        assert detail.aircraft_type == "Cessna 172S Skyhawk SP"
        assert detail.owner == "Triangle Flight Training LLC"
        assert detail.thumbnail_url.endswith("thumbnails/000/123/123456.jpg")
        assert detail.image_url.endswith("000/123/123456.jpg")

    def test_airline_falls_back_to_owner(self):
        """The example has a null operator flag, so airline is the owner."""
        detail = normalize_detail("a1b2c3", load_example("adsbdb_aircraft.json"))
        assert detail.airline == "Triangle Flight Training LLC"

    def test_operator_flag_used_as_airline(self):
        payload = load_example("adsbdb_aircraft.json")
        payload["response"]["aircraft"]["registered_owner_operator_flag_code"] = "DAL"
        detail = normalize_detail("a1b2c3", payload)
        assert detail.airline == "DAL"
        assert detail.owner == "Triangle Flight Training LLC"

    def test_nested_registration_wins_over_flat_fields(self):
        payload = load_example("adsbdb_aircraft.json")
        payload.update({"registration": "FLAT-REG", "type": "FLAT TYPE", "owner": "Flat Owner"})

        detail = normalize_detail("a1b2c3", payload)

        assert detail.registration == "N123AB"
        assert detail.owner == "Triangle Flight Training LLC"

    def test_empty_nested_registration_uses_flat_fields(self):
        payload = {
            "response": {"aircraft": {"registration": "", "registered_owner": "Nested Owner"}},
            "registration": "05-5140",
            "type": "C17",
            "owner": "United States Air Force",
        }

        detail = normalize_detail("ae1234", payload)

        assert detail.registration == "05-5140"
        assert detail.aircraft_type == "C17"
        assert detail.owner == "United States Air Force"
        assert detail.airline == "United States Air Force"
        assert detail.thumbnail_url == ""

    def test_hexdb_capitalised_keys(self):
        payload = {
            "ModeS": "AE1234",
            "Registration": "05-5140",
            "Manufacturer": "Boeing",
            "ICAOTypeCode": "C17",
            "Type": "C-17A Globemaster III",
            "RegisteredOwners": "United States Air Force",
            "OperatorFlagCode": "RCH",
        }

        detail = normalize_detail("ae1234", payload)

        assert detail.registration == "05-5140"
        assert detail.aircraft_type == "C17"
        assert detail.airline == "RCH"

    def test_unknown_aircraft_response(self):
        """adsbdb answers unknown airframes with a plain string."""
        detail = normalize_detail("a1b2c3", {"response": "unknown aircraft"})
        assert detail.is_empty
        assert detail.identifier == "a1b2c3"

    @pytest.mark.parametrize("payload", [None, {}, [], "garbage", {"response": {"aircraft": None}}])
    def test_unrecognised_payload_is_empty(self, payload):
        detail = normalize_detail("a1b2c3", payload)
        assert detail == EnrichmentDetail.empty("a1b2c3")

    def test_null_fields_become_empty_strings(self):
        payload = {"response": {"aircraft": {"registration": "N1", "type": None, "registered_owner": None}}}
        detail = normalize_detail("a1b2c3", payload)
        assert detail.aircraft_type == ""
        assert detail.owner == ""
        assert detail.airline == ""


class TestEnrichmentCache:
    """Test EnrichmentCache lookaside behaviour."""

    def test_store_hit_skips_remote(self):
        store = InMemoryDetailStore()
        cached = EnrichmentDetail(identifier="a1b2c3", registration="N123AB")
        store.upsert(cached)
        calls = []

        cache = EnrichmentCache(lambda ident: calls.append(ident), store)

        assert cache.lookup("a1b2c3") == cached
        assert calls == []

    def test_miss_fetches_and_upserts(self):
        store = InMemoryDetailStore()
        calls = []

        def fetch(identifier):
            calls.append(identifier)
            return load_example("adsbdb_aircraft.json")

        cache = EnrichmentCache(fetch, store)

        first = cache.lookup("a1b2c3")
        second = cache.lookup("a1b2c3")

        assert first.registration == "N123AB"
        assert second == first
        assert calls == ["a1b2c3"]
        assert store.get("a1b2c3") == first

    def test_remote_error_degrades_to_empty(self):
        def fetch(identifier):
            raise LookupFailed("adsbdb API returned non-200 status: 500")

        cache = EnrichmentCache(fetch, InMemoryDetailStore())
        assert cache.lookup("a1b2c3") == EnrichmentDetail.empty("a1b2c3")

    def test_not_found_is_empty_and_not_stored(self):
        store = InMemoryDetailStore()
        cache = EnrichmentCache(lambda ident: None, store)

        assert cache.lookup("a1b2c3").is_empty
        assert len(store) == 0

    def test_upsert_failure_still_returns_detail(self):
        cache = EnrichmentCache(lambda ident: load_example("adsbdb_aircraft.json"), FailingStore())
        assert cache.lookup("a1b2c3").registration == "N123AB"

    def test_without_store_always_fetches(self):
        calls = []

        def fetch(identifier):
            calls.append(identifier)
            return load_example("adsbdb_aircraft.json")

        cache = EnrichmentCache(fetch)
        cache.lookup("a1b2c3")
        cache.lookup("a1b2c3")
        assert calls == ["a1b2c3", "a1b2c3"]

    def test_concurrent_lookups_share_one_remote_call(self):
        """Concurrent lookups for the same identifier issue one remote call."""
        release = threading.Event()
        calls = []
        calls_lock = threading.Lock()

        def slow_fetch(identifier):
            with calls_lock:
                calls.append(identifier)
            release.wait(5)
            return load_example("adsbdb_aircraft.json")

        cache = EnrichmentCache(slow_fetch, InMemoryDetailStore())
        results = []
        results_lock = threading.Lock()

        def worker():
            detail = cache.lookup("a1b2c3")
            with results_lock:
                results.append(detail)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()

        # Let every worker reach the store check / in-flight wait
        time.sleep(0.2)
        release.set()
        for t in threads:
            t.join(timeout=5)

        assert calls == ["a1b2c3"]
        assert len(results) == 8
        assert all(r.registration == "N123AB" for r in results)

    def test_different_identifiers_fetch_independently(self):
        calls = []
        calls_lock = threading.Lock()

        def fetch(identifier):
            with calls_lock:
                calls.append(identifier)
            return None

        cache = EnrichmentCache(fetch)
        threads = [threading.Thread(target=cache.lookup, args=(ident,)) for ident in ("a1b2c3", "ae1234")]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert sorted(calls) == ["a1b2c3", "ae1234"]

    def test_empty_store_is_kept(self):
        """Test that an empty store is used rather than replaced by the null store."""
        store = InMemoryDetailStore()
        cache = EnrichmentCache(lambda ident: load_example("adsbdb_aircraft.json"), store)

        assert cache.store is store
        cache.lookup("a1b2c3")
        assert store.get("a1b2c3").registration == "N123AB"

    def test_late_caller_after_finished_lookup_does_not_refetch(self):
        """A caller whose store miss predates a finished lookup reuses the stored detail."""
        entered = threading.Event()
        release = threading.Event()

        class StallingStore(InMemoryDetailStore):
            """Holds the first read's miss until released."""

            def __init__(self):
                super().__init__()
                self.stalled = False

            def get(self, identifier):
                result = super().get(identifier)
                if not self.stalled:
                    self.stalled = True
                    entered.set()
                    release.wait(5)
                return result

        calls = []

        def fetch(identifier):
            calls.append(identifier)
            return load_example("adsbdb_aircraft.json")

        cache = EnrichmentCache(fetch, StallingStore())
        late = []
        thread = threading.Thread(target=lambda: late.append(cache.lookup("a1b2c3")))
        thread.start()
        assert entered.wait(5)

        first = cache.lookup("a1b2c3")
        release.set()
        thread.join(timeout=5)

        assert calls == ["a1b2c3"]
        assert first.registration == "N123AB"
        assert late[0].registration == "N123AB"


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("Expecting value")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.response


class TestAdsbDbClient:
    """Test the remote detail lookup client."""

    def test_fetch_builds_url(self):
        session = FakeSession(FakeResponse(body={"response": "unknown aircraft"}))
        client = AdsbDbClient("https://api.adsbdb.com/v0/aircraft", session=session)

        assert client.fetch("a1b2c3") == {"response": "unknown aircraft"}
        assert session.urls == ["https://api.adsbdb.com/v0/aircraft/a1b2c3"]

    def test_404_is_none(self):
        client = AdsbDbClient(session=FakeSession(FakeResponse(status_code=404)))
        assert client.fetch("a1b2c3") is None

    def test_other_status_raises(self):
        client = AdsbDbClient(session=FakeSession(FakeResponse(status_code=502)))
        with pytest.raises(LookupFailed):
            client.fetch("a1b2c3")

    def test_bad_json_raises(self):
        client = AdsbDbClient(session=FakeSession(FakeResponse(status_code=200)))
        with pytest.raises(LookupFailed):
            client.fetch("a1b2c3")

    def test_transport_error_degrades_through_cache(self):
        client = AdsbDbClient(session=FakeSession(error=requests.exceptions.ConnectionError("refused")))
        cache = EnrichmentCache(client.fetch)
        assert cache.lookup("a1b2c3").is_empty
