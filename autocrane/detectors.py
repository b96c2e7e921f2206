"""Watchdog status aggregation"""

from typing import Iterable, List, Mapping

from .models import WATCHDOG_PREFIX, PodIdentifier, WatchdogStatus, parse_watchdogs

UNKNOWN_STATUS = "Unknown"

_STATUS_WEIGHTS = {
    "error": 3,
    "warning": 2,
    "info": 1,
}


def status_weight(status: str) -> int:
    return _STATUS_WEIGHTS.get(status.lower(), 0)


class StatusAggregator:
    """Reduces a pod's watchdog annotations to the most critical level"""

    def aggregate(self, annotations: Mapping[str, str]) -> str:
        max_status = UNKNOWN_STATUS
        for key, value in annotations.items():
            if not key.startswith(WATCHDOG_PREFIX) or not value:
                continue

            idx = value.find("/")
            if idx > 0:
                max_status = self.more_critical_status(max_status, value[:idx])

        return max_status

    def more_critical_status(self, s1: str, s2: str) -> str:
        # ties keep the left value so folding is stable
        if status_weight(s1) >= status_weight(s2):
            return s1
        return s2


class WatchdogStatusGetter:
    """Reads a pod's watchdog statuses from its annotations"""

    def __init__(self, client):
        self.client = client

    def get_status(self, pod: PodIdentifier) -> List[WatchdogStatus]:
        return parse_watchdogs(self.client.get_pod_annotations(pod))


class WatchdogStatusPutter:
    def __init__(self, client, clock):
        self.client = client
        self.clock = clock

    def put_status(self, pod: PodIdentifier, statuses: Iterable[WatchdogStatus]):
        timestamp = self.clock.now().strftime("%Y-%m-%dT%H:%M:%S")
        self.client.put_pod_annotations(pod, {
            f"{WATCHDOG_PREFIX}{s.name}": f"{s.level.lower()}/{timestamp}/{s.message}"
            for s in statuses
        })
