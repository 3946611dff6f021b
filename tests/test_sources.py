"""
Tests for segment sources: the TTL cache, bundled file, community mirrors
and parental guide lookup. HTTP is mocked at the requests.Session level.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from scene_filter.error_handler import SourceUnavailableError
from scene_filter.sources import (
    BundledDatabase,
    CommunityDatabase,
    DISABLED_TAG,
    ParentalGuideClient,
    TTLCache,
    normalize_records,
)
from scene_filter.sources.metadata import count_sensitive_keywords


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def json_response(payload, status=200):
    response = MagicMock()
    response.ok = status < 400
    response.status_code = status
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status}")
    return response


DATABASE = [
    {"id": "tt0000001", "segments": [{"start": 1, "end": 2, "type": "sexual"}]},
    {"id": "tt0000002", "segments": []},
]


class TestTTLCache:
    """Tests for the expiring cache."""

    def test_entry_expires(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        cache.set("db", {"a": 1})

        clock.now = 299
        assert cache.get("db") == {"a": 1}
        clock.now = 300
        assert cache.get("db") is None

    def test_get_or_load_caches(self):
        cache = TTLCache(60, clock=FakeClock())
        loader = MagicMock(return_value="value")

        assert cache.get_or_load("k", loader) == "value"
        assert cache.get_or_load("k", loader) == "value"
        assert loader.call_count == 1

    def test_none_is_not_cached(self):
        cache = TTLCache(60, clock=FakeClock())
        loader = MagicMock(return_value=None)

        cache.get_or_load("k", loader)
        cache.get_or_load("k", loader)
        assert loader.call_count == 2

    def test_invalidate(self):
        cache = TTLCache(60, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        assert "a" not in cache
        assert "b" in cache

        cache.invalidate()
        assert len(cache) == 0


class TestNormalizeRecords:
    def test_indexes_by_id(self):
        records = normalize_records(DATABASE)
        assert set(records) == {"tt0000001", "tt0000002"}
        assert len(records["tt0000001"].segments) == 1

    def test_drops_malformed_entries(self):
        records = normalize_records([
            {"id": 5, "segments": []},
            "junk",
            {"id": "tt3", "segments": "not a list"},
        ])
        assert list(records) == ["tt3"]
        assert records["tt3"].segments == []

    def test_non_list_database(self):
        assert normalize_records({"id": "tt1"}) == {}


class TestBundledDatabase:
    """Tests for the bundled segments.json loader."""

    def test_load(self, tmp_path):
        path = tmp_path / "segments.json"
        path.write_text(json.dumps(DATABASE))

        db = BundledDatabase(path)
        assert db.get("tt0000001").segments[0]["type"] == "sexual"
        assert db.get("tt9999999") is None

    def test_cached_between_lookups(self, tmp_path):
        path = tmp_path / "segments.json"
        path.write_text(json.dumps(DATABASE))
        db = BundledDatabase(path, TTLCache(300, clock=FakeClock()))

        db.load()
        path.write_text("[]")
        assert "tt0000001" in db.load()

    def test_no_path_is_empty(self):
        assert BundledDatabase(None).load() == {}

    def test_unreadable_file_raises(self, tmp_path):
        path = tmp_path / "segments.json"
        path.write_text("{not json")

        with pytest.raises(SourceUnavailableError):
            BundledDatabase(path).load()


class TestCommunityDatabase:
    """Tests for mirror fallback and caching."""

    MIRRORS = [
        {"name": "mirror-a", "url": "https://a.example/segments.json"},
        {"name": "mirror-b", "url": "https://b.example/segments.json"},
    ]

    def test_first_mirror_used(self):
        session = MagicMock()
        session.get.return_value = json_response(DATABASE)
        db = CommunityDatabase(self.MIRRORS, session=session)

        assert db.get("tt0000001") is not None
        assert db.active_source == "mirror-a"
        assert session.get.call_count == 1

    def test_falls_back_on_connection_error(self):
        session = MagicMock()
        session.get.side_effect = [requests.ConnectionError("down"), json_response(DATABASE)]
        db = CommunityDatabase(self.MIRRORS, session=session)

        assert db.get("tt0000001") is not None
        assert db.active_source == "mirror-b"

    def test_falls_back_on_http_error_and_empty_database(self):
        session = MagicMock()
        session.get.side_effect = [json_response(None, status=503), json_response([])]
        db = CommunityDatabase(self.MIRRORS, session=session)

        assert db.load() is None
        assert db.active_source is None

    def test_invalid_json_falls_back(self):
        bad = json_response(None)
        bad.json.side_effect = ValueError("Expecting value")
        session = MagicMock()
        session.get.side_effect = [bad, json_response(DATABASE)]
        db = CommunityDatabase(self.MIRRORS, session=session)

        assert db.active_source is None
        db.load()
        assert db.active_source == "mirror-b"

    def test_refresh_refetches(self):
        session = MagicMock()
        session.get.return_value = json_response(DATABASE)
        db = CommunityDatabase(self.MIRRORS, cache=TTLCache(300, clock=FakeClock()), session=session)

        db.load()
        db.load()
        assert session.get.call_count == 1

        db.refresh()
        db.load()
        assert session.get.call_count == 2


class TestParentalGuideClient:
    """Tests for the metadata tag lookup."""

    def page(self, text, ok=True):
        response = MagicMock()
        response.ok = ok
        response.status_code = 200 if ok else 404
        response.text = text
        return response

    def test_disabled(self):
        session = MagicMock()
        client = ParentalGuideClient(session=session)

        assert client.lookup("tt1", enabled=False) == DISABLED_TAG
        assert client.lookup(None) == DISABLED_TAG
        session.get.assert_not_called()

    def test_keywords_detected(self):
        session = MagicMock()
        session.get.return_value = self.page("Nudity. Sex scene. Topless. Breast. Erotic.")
        tag = ParentalGuideClient(session=session).lookup("tt1")

        assert tag.potential_sensitive is True
        assert tag.hint == "keywords_detected"
        assert tag.source == "imdb-parentalguide"
        assert "parentalguide" in session.get.call_args[0][0]

    def test_low_keyword_count(self):
        session = MagicMock()
        session.get.return_value = self.page("A kiss.")
        tag = ParentalGuideClient(session=session).lookup("tt1")

        assert tag.potential_sensitive is False
        assert tag.hint == "low_keyword_count"

    def test_unavailable(self):
        session = MagicMock()
        session.get.return_value = self.page("", ok=False)
        assert ParentalGuideClient(session=session).lookup("tt1").hint == "unavailable"

    def test_fetch_failed(self):
        session = MagicMock()
        session.get.side_effect = requests.Timeout("slow")
        assert ParentalGuideClient(session=session).lookup("tt1").hint == "fetch_failed"

    def test_cached(self):
        session = MagicMock()
        session.get.return_value = self.page("nothing here")
        client = ParentalGuideClient(session=session, cache=TTLCache(86400, clock=FakeClock()))

        client.lookup("tt1")
        client.lookup("tt1")
        assert session.get.call_count == 1

    def test_to_dict(self):
        assert DISABLED_TAG.to_dict() == {"potential_sensitive": False, "source": "disabled"}

    def test_count_keywords(self):
        assert count_sensitive_keywords("NUDITY and sexual content") == 2
