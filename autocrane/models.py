"""
Data model shared by the controller, the health monitor and the upgrade oracle.

Pod metadata lives in annotations; the constants below are the keys the
controller reads and writes.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Mapping, Optional


WATCHDOG_PREFIX = "status.autocrane.io/"
HEALTH_LABEL = f"{WATCHDOG_PREFIX}health"
ERROR_LEVEL = "error"
VALID_LEVELS = frozenset(["error", "warning", "info"])

DATA_DEPENDS_ON = "store.autocrane.io/deps"
DATA_DEPLOYMENT_PREFIX = "data.autocrane.io/"
DATA_REQUEST_PREFIX = "request.data.autocrane.io/"


class AutoCraneError(Exception):
    """Base class for collaborator-facing failures"""


class PodNotFoundError(AutoCraneError):
    def __init__(self, pod: "PodIdentifier"):
        super().__init__(f"pod not found: {pod}")
        self.pod = pod


class ForbiddenError(AutoCraneError):
    """Raised when a namespace is not in the allow-list"""

    def __init__(self, namespace: str):
        super().__init__(f"namespace: {namespace}")
        self.namespace = namespace


@dataclass(frozen=True)
class PodIdentifier:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class WatchdogStatus:
    """A named health signal attached to a pod"""
    name: str
    level: str
    message: str = ""

    @property
    def is_failure(self) -> bool:
        return self.level.lower() == ERROR_LEVEL


@dataclass
class VersionDescriptor:
    """
    One version of a data repository.

    Two descriptors are equal when path and hash match; the timestamp only
    records when the version was handed to a pod, so re-issuing the same
    version never looks like a new one.
    """
    path: Optional[str]
    hash: Optional[str]
    unix_timestamp_seconds: Optional[int] = field(default=None, compare=False)

    def __hash__(self):
        return hash((self.path, self.hash))

    def is_complete(self) -> bool:
        return self.unix_timestamp_seconds is not None

    def with_timestamp(self, now: datetime) -> "VersionDescriptor":
        return VersionDescriptor(self.path, self.hash, int(now.timestamp()))

    def created_at(self) -> Optional[datetime]:
        if self.unix_timestamp_seconds is None:
            return None
        return datetime.fromtimestamp(self.unix_timestamp_seconds, tz=timezone.utc)

    def to_token(self) -> str:
        payload = {"path": self.path, "hash": self.hash}
        if self.unix_timestamp_seconds is not None:
            payload["unixTimestampSeconds"] = self.unix_timestamp_seconds
        return base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")

    @classmethod
    def from_token(cls, token: Optional[str]) -> Optional["VersionDescriptor"]:
        """Decode a token; returns None when it is not a version at all"""
        if not token:
            return None
        try:
            data = json.loads(base64.b64decode(token, validate=True).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError, ValueError, RecursionError):
            return None

        if not isinstance(data, dict):
            return None

        timestamp = data.get("unixTimestampSeconds")
        if timestamp is not None:
            if isinstance(timestamp, bool) or not isinstance(timestamp, int):
                return None
            try:
                datetime.fromtimestamp(timestamp, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None

        return cls(data.get("path"), data.get("hash"), timestamp)


@dataclass
class KnownGoods:
    """Last known good version token per repository"""
    versions: Dict[str, str]


@dataclass
class LatestVersions:
    """Most recently discovered version token per repository"""
    versions: Dict[str, str]


@dataclass
class DataRepositorySource:
    archive_file_path: str
    hash: str
    timestamp: datetime


@dataclass
class DataRepositoryManifest:
    sources: Dict[str, List[DataRepositorySource]]

    def most_recent(self, repo: str) -> Optional[DataRepositorySource]:
        items = self.sources.get(repo) or []
        if not items:
            return None
        return max(items, key=lambda s: s.timestamp)


@dataclass
class PodInfo:
    """A pod as listed from the cluster"""
    id: PodIdentifier
    annotations: Dict[str, str]
    containers_ready: Dict[str, bool] = field(default_factory=dict)
    pod_ip: str = ""


def parse_watchdogs(annotations: Mapping[str, str]) -> List[WatchdogStatus]:
    """Read watchdog annotations of the form level/timestamp/message"""
    statuses = []
    for key, value in annotations.items():
        if not key.startswith(WATCHDOG_PREFIX) or key == HEALTH_LABEL:
            continue
        parts = (value or "").split("/", 1)
        if len(parts) > 1:
            statuses.append(WatchdogStatus(key[len(WATCHDOG_PREFIX):], parts[0], parts[1]))
    return statuses


@dataclass
class PodDataState:
    """Deployment slots, active requests and dependencies of one pod"""
    id: PodIdentifier
    deployments: Dict[str, str]
    requests: Dict[str, str]
    depends_on: FrozenSet[str]
    watchdogs: List[WatchdogStatus] = field(default_factory=list)

    @classmethod
    def from_annotations(cls, pod_id: PodIdentifier, annotations: Mapping[str, str]) -> "PodDataState":
        deployments = {
            k[len(DATA_DEPLOYMENT_PREFIX):]: v
            for k, v in annotations.items() if k.startswith(DATA_DEPLOYMENT_PREFIX)
        }
        requests = {
            k[len(DATA_REQUEST_PREFIX):]: v
            for k, v in annotations.items() if k.startswith(DATA_REQUEST_PREFIX)
        }
        deps = frozenset(
            d.strip() for d in (annotations.get(DATA_DEPENDS_ON) or "").split(",") if d.strip()
        )
        return cls(
            id=pod_id,
            deployments=deployments,
            requests=requests,
            depends_on=deps,
            watchdogs=parse_watchdogs(annotations),
        )

    @property
    def needs_request(self) -> List[str]:
        return [slot for slot in self.deployments if slot not in self.requests]

    @property
    def has_failing_watchdog(self) -> bool:
        return any(w.is_failure for w in self.watchdogs)

    def is_dependent_on(self, repo: str) -> bool:
        return repo in self.deployments.values() or repo in self.depends_on
