"""
Known good and latest version stores.

Both live as annotations on an Endpoints object in each watched namespace,
keyed by repository name, with version tokens as values.
"""

import logging
from typing import Dict

from .models import (
    DataRepositoryManifest,
    KnownGoods,
    LatestVersions,
    VersionDescriptor,
)

KNOWN_GOOD_ENDPOINT_NAME = "autocranelkg"
LATEST_VERSION_ENDPOINT_NAME = "autocranedatadeploy"


class KnownGoodAccessor:
    def __init__(self, client):
        self.client = client
        self.logger = logging.getLogger(__name__)

    def get_or_create(self, namespace: str, manifest: DataRepositoryManifest) -> KnownGoods:
        """Seed a known good version for every repo that has none yet"""
        known_goods = self.client.get_endpoint_annotations(namespace, KNOWN_GOOD_ENDPOINT_NAME)
        items_to_add: Dict[str, str] = {}
        for repo in manifest.sources:
            if repo in known_goods:
                continue
            source = manifest.most_recent(repo)
            if source is None:
                continue

            version = VersionDescriptor(source.archive_file_path, source.hash)
            self.logger.info(f"Setting LKG for {repo} to hash={version.hash} filePath={version.path}")
            items_to_add[repo] = version.to_token()

        if items_to_add:
            self.client.put_endpoint_annotations(namespace, KNOWN_GOOD_ENDPOINT_NAME, items_to_add)

        return KnownGoods({**known_goods, **items_to_add})


class LatestVersionAccessor:
    def __init__(self, client):
        self.client = client
        self.logger = logging.getLogger(__name__)

    def get_or_update(self, namespace: str, manifest: DataRepositoryManifest) -> LatestVersions:
        """Record the newest manifest entry of each repo as its latest version"""
        current = self.client.get_endpoint_annotations(namespace, LATEST_VERSION_ENDPOINT_NAME)
        items_to_add: Dict[str, str] = {}
        for repo in manifest.sources:
            source = manifest.most_recent(repo)
            if source is None:
                continue

            stored = VersionDescriptor.from_token(current.get(repo))
            if stored is not None and stored.path == source.archive_file_path:
                continue

            version = VersionDescriptor(source.archive_file_path, source.hash)
            self.logger.info(f"Setting Latest for {repo} to hash={version.hash} filePath={version.path}")
            items_to_add[repo] = version.to_token()

        if items_to_add:
            self.client.put_endpoint_annotations(namespace, LATEST_VERSION_ENDPOINT_NAME, items_to_add)

        return LatestVersions({**current, **items_to_add})
