import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

import requests

from .models import DataRepositoryManifest, DataRepositorySource


def parse_manifest(data: Dict[str, Any]) -> DataRepositoryManifest:
    """
    Build a manifest from its JSON form:

        {"repo": [{"path": "...", "hash": "...", "timestamp": 1700000000}]}
    """
    if not isinstance(data, dict):
        raise ValueError("manifest must be a JSON object")

    sources: Dict[str, List[DataRepositorySource]] = {}
    for repo, entries in data.items():
        items = []
        for entry in entries or []:
            items.append(DataRepositorySource(
                archive_file_path=entry["path"],
                hash=entry.get("hash", ""),
                timestamp=_parse_timestamp(entry["timestamp"]),
            ))
        sources[repo] = items
    return DataRepositoryManifest(sources)


def _parse_timestamp(value) -> datetime:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DataRepositoryManifestFetcher:
    """Downloads the manifest published by the data repository service"""

    def __init__(self, base_url: str, timeout: int = 30, session: requests.Session = None):
        self.manifest_url = f"{base_url.rstrip('/')}/.manifest"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

    def fetch(self) -> DataRepositoryManifest:
        self.logger.debug(f"Downloading {self.manifest_url}")
        response = self.session.get(self.manifest_url, timeout=self.timeout)
        response.raise_for_status()
        manifest = parse_manifest(response.json())
        self.logger.debug(f"Manifest has {len(manifest.sources)} repos")
        return manifest
