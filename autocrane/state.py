"""
Consecutive-health tracking for pods.

Each pod is in exactly one of three states: never probed, failing, or
healthy since some instant. A pod only reports healthy once it has stayed
in the healthy state longer than the configured minimum.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Generic, Hashable, Optional, TypeVar

from .models import PodIdentifier

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(frozen=True)
class NeverProbed:
    pass


@dataclass(frozen=True)
class Failing:
    pass


@dataclass(frozen=True)
class HealthySince:
    since: datetime


NEVER_PROBED = NeverProbed()
FAILING = Failing()


class HealthRegistry(Generic[K, V]):
    """
    Keyed map with per-key compare-and-set.

    Every key gets its own lock, so writers for different pods never wait on
    each other and there is no registry-wide lock.
    """

    def __init__(self, default: V):
        self._default = default
        self._values: Dict[K, V] = {}
        self._locks: Dict[K, threading.Lock] = {}

    def _lock_for(self, key: K) -> threading.Lock:
        # dict.setdefault is atomic, so concurrent callers agree on one lock
        return self._locks.setdefault(key, threading.Lock())

    def get(self, key: K) -> V:
        return self._values.get(key, self._default)

    def compare_and_set(self, key: K, expected: V, new: V) -> bool:
        with self._lock_for(key):
            if self._values.get(key, self._default) != expected:
                return False
            self._values[key] = new
            return True


class HealthMonitor:
    """Probes pod watchdogs and answers whether a pod has been healthy long enough"""

    def __init__(self, clock, watchdog_status_getter, min_healthy: timedelta):
        self.clock = clock
        self.watchdog_status_getter = watchdog_status_getter
        self.min_healthy = min_healthy
        self.registry: HealthRegistry[PodIdentifier, object] = HealthRegistry(NEVER_PROBED)
        self.logger = logging.getLogger(__name__)

    def probe(self, pod: PodIdentifier) -> None:
        try:
            statuses = self.watchdog_status_getter.get_status(pod)
        except Exception as e:
            self.logger.warning(f"Unable to read watchdogs for {pod}: {e}")
            return

        is_failure = any(s.is_failure for s in statuses)
        while True:
            current = self.registry.get(pod)
            new = self._next_state(current, is_failure)
            if new is current or self.registry.compare_and_set(pod, current, new):
                break

        if is_failure and not isinstance(current, Failing):
            self.logger.info(f"Pod {pod} has a failing watchdog")

    def _next_state(self, current, is_failure: bool):
        if is_failure:
            return FAILING
        if isinstance(current, HealthySince):
            return current
        return HealthySince(self.clock.now())

    def is_healthy(self, pod: PodIdentifier) -> bool:
        state = self.registry.get(pod)
        if not isinstance(state, HealthySince):
            return False
        return self.clock.now() - state.since > self.min_healthy

    def healthy_since(self, pod: PodIdentifier) -> Optional[datetime]:
        state = self.registry.get(pod)
        return state.since if isinstance(state, HealthySince) else None
