"""
Orchestration loop.

Every cycle fetches the data repository manifest, refreshes the known good
and latest versions per namespace, hands out new data requests through the
upgrade oracle, and evicts pods whose watchdogs have failed for several
consecutive cycles.
"""

import logging
import threading
from typing import List, Optional, Set

from .models import DATA_REQUEST_PREFIX, PodDataState, PodIdentifier, PodNotFoundError
from .oracle import UpgradeOracleFactory
from .remediators import EvictionConsensus

CONSECUTIVE_ERRORS_BEFORE_EXITING = 5

EXIT_OK = 0
EXIT_TOO_MANY_ERRORS = 2
EXIT_NO_NAMESPACES = 3


class Orchestrator:
    def __init__(self, config, clock, client, manifest_fetcher, known_good_accessor,
                 latest_version_accessor, evicter, oracle_factory: UpgradeOracleFactory = None,
                 stop_event: threading.Event = None):
        self.config = config
        self.client = client
        self.manifest_fetcher = manifest_fetcher
        self.known_good_accessor = known_good_accessor
        self.latest_version_accessor = latest_version_accessor
        self.evicter = evicter
        self.oracle_factory = oracle_factory or UpgradeOracleFactory(clock, config.soak_duration)
        self.consensus = EvictionConsensus(config.failures_before_eviction)
        self.stop_event = stop_event or threading.Event()
        self.logger = logging.getLogger(__name__)

    def run(self, iterations: Optional[int] = None) -> int:
        if not self.config.namespaces:
            self.logger.error(
                "No namespaces configured to watch... set env var AutoCrane__Namespaces to a comma-separated value"
            )
            return EXIT_NO_NAMESPACES

        error_count = 0
        while iterations is None or iterations > 0:
            if error_count > CONSECUTIVE_ERRORS_BEFORE_EXITING:
                self.logger.error("Hit max consecutive error count...exiting...")
                return EXIT_TOO_MANY_ERRORS

            if self.stop_event.is_set():
                break

            try:
                self.run_once()
                error_count = 0
                if iterations is not None:
                    iterations -= 1
            except Exception as e:
                self.logger.exception(f"Unhandled exception: {e}")
                error_count += 1

            if self.stop_event.wait(self.config.iteration_seconds):
                break

        return EXIT_OK

    def run_once(self) -> Set[PodIdentifier]:
        """Run one full cycle; returns the pods selected for eviction"""
        manifest = self.manifest_fetcher.fetch()

        failing: List[PodIdentifier] = []
        for namespace in self.config.namespaces:
            known_goods = self.known_good_accessor.get_or_create(namespace, manifest)
            latest = self.latest_version_accessor.get_or_update(namespace, manifest)
            pods = [
                PodDataState.from_annotations(p.id, p.annotations)
                for p in self.client.list_pods(namespace)
            ]
            self.process_data_requests(self.oracle_factory.create(known_goods, latest, pods), pods)
            failing.extend(self.client.get_failing_pods(namespace))

        to_evict = self.consensus.observe(failing)
        if to_evict:
            self.logger.info(f"Evicting {len(to_evict)} pods with persistently failing watchdogs")
            self.evicter.evict_pods(to_evict)
        return to_evict

    def process_data_requests(self, oracle, pods: List[PodDataState]):
        for pod in pods:
            if pod.needs_request:
                self.logger.debug(f"Pod {pod.id} has no data request yet for {', '.join(pod.needs_request)}")

            annotations = {}
            for slot in pod.deployments:
                token = oracle.get_data_request(pod.id, slot)
                if token is not None:
                    annotations[f"{DATA_REQUEST_PREFIX}{slot}"] = token

            if annotations:
                self.logger.info(f"Pod {pod.id}: writing {len(annotations)} data requests")
                try:
                    self.client.put_pod_annotations(pod.id, annotations)
                except PodNotFoundError:
                    self.logger.warning(f"Pod {pod.id} disappeared before its data requests were written")
