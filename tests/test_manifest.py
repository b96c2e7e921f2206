from datetime import datetime, timezone

import pytest
import requests

from autocrane.manifest import DataRepositoryManifestFetcher, parse_manifest


class StubResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class StubSession:
    def __init__(self, response):
        self.response = response
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        return self.response


class TestParseManifest:
    def test_parses_sources(self):
        manifest = parse_manifest({
            "d": [
                {"path": "d/1.zip", "hash": "h1", "timestamp": 100},
                {"path": "d/2.zip", "hash": "h2", "timestamp": "2024-01-01T00:00:00Z"},
            ],
            "e": [],
        })
        assert manifest.most_recent("d").archive_file_path == "d/2.zip"
        assert manifest.most_recent("d").timestamp == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert manifest.most_recent("e") is None
        assert manifest.most_recent("missing") is None

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            parse_manifest(["d"])


class TestManifestFetcher:
    def test_fetch(self):
        session = StubSession(StubResponse({"d": [{"path": "d/1.zip", "hash": "h", "timestamp": 1}]}))
        manifest = DataRepositoryManifestFetcher("http://datarepo/", session=session).fetch()

        assert session.urls == ["http://datarepo/.manifest"]
        assert list(manifest.sources) == ["d"]

    def test_fetch_error(self):
        session = StubSession(StubResponse({}, status_code=503))
        with pytest.raises(requests.HTTPError):
            DataRepositoryManifestFetcher("http://datarepo", session=session).fetch()
