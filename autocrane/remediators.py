import logging
from collections import deque
from typing import Deque, Iterable, Set

from .models import PodIdentifier

DEFAULT_FAILURES_BEFORE_EVICTION = 3


class EvictionConsensus:
    """
    Debounces failing-watchdog reports across control cycles.

    A pod is selected for eviction only when it was reported failing in the
    current cycle and in each of the previous `depth` cycles.
    """

    def __init__(self, depth: int = DEFAULT_FAILURES_BEFORE_EVICTION):
        self.depth = depth
        self.window: Deque[Set[PodIdentifier]] = deque()

    def observe(self, failing: Iterable[PodIdentifier]) -> Set[PodIdentifier]:
        current = set(failing)

        while len(self.window) > self.depth:
            self.window.popleft()

        persistent: Set[PodIdentifier] = set()
        if len(self.window) == self.depth:
            persistent = set(current)
            for previous in self.window:
                persistent &= previous

        self.window.append(current)
        return persistent


class PodEvicter:
    def __init__(self, client):
        self.client = client
        self.logger = logging.getLogger(__name__)

    def evict_pods(self, pods: Iterable[PodIdentifier]) -> int:
        """Evict every pod, continuing past individual failures"""
        evicted = 0
        errors = []
        for pod in sorted(pods, key=str):
            try:
                self.client.evict_pod(pod)
                evicted += 1
            except Exception as e:
                self.logger.error(f"Error evicting pod {pod}: {e}")
                errors.append(e)

        if errors:
            raise errors[0]
        return evicted
