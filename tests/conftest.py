from datetime import datetime, timezone
from typing import Dict, List

import pytest

from autocrane.models import PodIdentifier, PodInfo, WatchdogStatus


class ManualClock:
    def __init__(self, time: datetime = None):
        self.time = time or datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)

    def now(self) -> datetime:
        return self.time


class FakeWatchdogStatusGetter:
    def __init__(self):
        self.result: List[WatchdogStatus] = []
        self.error: Exception = None

    def get_status(self, pod: PodIdentifier) -> List[WatchdogStatus]:
        if self.error is not None:
            raise self.error
        return list(self.result)


class FakeKubernetesClient:
    """In-memory stand-in for KubernetesClient"""

    def __init__(self):
        self.pods: Dict[str, List[PodInfo]] = {}
        self.failing: Dict[str, List[PodIdentifier]] = {}
        self.endpoints: Dict[tuple, Dict[str, str]] = {}
        self.put_annotations: List[tuple] = []
        self.evicted: List[PodIdentifier] = []

    def list_pods(self, namespace):
        return self.pods.get(namespace, [])

    def get_failing_pods(self, namespace):
        return self.failing.get(namespace, [])

    def put_pod_annotations(self, pod, items):
        self.put_annotations.append((pod, dict(items)))
        for info in self.pods.get(pod.namespace, []):
            if info.id == pod:
                info.annotations.update(items)

    def get_pod_annotations(self, pod):
        for info in self.pods.get(pod.namespace, []):
            if info.id == pod:
                return dict(info.annotations)
        return {}

    def evict_pod(self, pod):
        self.evicted.append(pod)

    def get_endpoint_annotations(self, namespace, name):
        return dict(self.endpoints.get((namespace, name), {}))

    def put_endpoint_annotations(self, namespace, name, items):
        self.endpoints.setdefault((namespace, name), {}).update(items)


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def watchdog_getter():
    return FakeWatchdogStatusGetter()


@pytest.fixture
def fake_client():
    return FakeKubernetesClient()
