"""
Data version rollout decisions.

An oracle is built once per control cycle from a snapshot of the known good
versions, the latest versions, and every pod's data requests. For each
(pod, slot) it answers which version token the pod should be asked to run
next, or None when the pod should be left alone.

Rollout is two-phase: one canary pod moves to the latest version first, and
once a pod is seen running it the rest of the cohort follows. Any dependent
pod reporting an error watchdog freezes the repository for the cycle.
"""

import logging
from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from .models import (
    KnownGoods,
    LatestVersions,
    PodDataState,
    PodIdentifier,
    VersionDescriptor,
)

DEFAULT_SOAK_DURATION = timedelta(hours=1)


class UpgradeOracleFactory:
    def __init__(self, clock, soak_duration: timedelta = DEFAULT_SOAK_DURATION):
        self.clock = clock
        self.soak_duration = soak_duration

    def create(self, known_goods: KnownGoods, latest: LatestVersions,
               pods: Sequence[PodDataState]) -> "UpgradeOracle":
        return UpgradeOracle(known_goods, latest, pods, self.clock, self.soak_duration)


class UpgradeOracle:
    """Answers data requests against one immutable snapshot"""

    def __init__(self, known_goods: KnownGoods, latest: LatestVersions,
                 pods: Sequence[PodDataState], clock, soak_duration: timedelta):
        self.known_goods = dict(known_goods.versions)
        self.latest = dict(latest.versions)
        self.pods: List[PodDataState] = list(pods)
        self.pods_by_id: Dict[PodIdentifier, PodDataState] = {p.id: p for p in self.pods}
        self.clock = clock
        self.soak_duration = soak_duration
        self.logger = logging.getLogger(__name__)

    def get_data_request(self, pod_id: PodIdentifier, slot: str) -> Optional[str]:
        pod = self.pods_by_id.get(pod_id)
        if pod is None:
            self.logger.warning(f"Pod {pod_id} is not part of this snapshot")
            return None

        repo = pod.deployments.get(slot)
        if repo is None:
            self.logger.debug(f"Pod {pod_id} has no data deployment for slot {slot}")
            return None

        if self.is_frozen(repo):
            self.logger.info(f"Repo {repo} is frozen: a dependent pod has a failing watchdog")
            return None

        current = VersionDescriptor.from_token(pod.requests.get(slot))
        latest = self._decode(self.latest, repo)
        if current is not None and latest is not None and current == latest:
            return None

        if current is None or not current.is_complete():
            if slot in pod.requests:
                self.logger.warning(f"Pod {pod_id} has an invalid request for slot {slot}, resetting to known good")
            return self._known_good_request(pod_id, repo)

        known_good = self._decode(self.known_goods, repo)
        if known_good is not None and current == known_good:
            soaking_for = self.clock.now() - current.created_at()
            if soaking_for < self.soak_duration:
                return None

        if latest is None:
            return None

        return self._promote(pod, repo, latest)

    def is_frozen(self, repo: str) -> bool:
        return any(
            p.has_failing_watchdog for p in self.pods if p.is_dependent_on(repo)
        )

    def _known_good_request(self, pod_id: PodIdentifier, repo: str) -> Optional[str]:
        known_good = self._decode(self.known_goods, repo)
        if known_good is None:
            self.logger.error(
                f"Pod {pod_id} is requesting data repo {repo} which is not found in LKG sources: "
                f"{','.join(self.known_goods)}"
            )
            return None

        self.logger.info(f"Pod {pod_id} requesting data {repo}, got LKG {known_good.path}")
        return known_good.with_timestamp(self.clock.now()).to_token()

    def _promote(self, pod: PodDataState, repo: str, latest: VersionDescriptor) -> Optional[str]:
        cohort = [p for p in self.pods if repo in p.deployments.values()]
        pending = [p for p in cohort if not self._is_on(p, repo, latest)]

        if len(pending) < len(cohort):
            self.logger.info(f"Upgrading pod {pod.id} to latest {repo} {latest.path}")
            return latest.with_timestamp(self.clock.now()).to_token()

        if pending and pending[-1].id == pod.id:
            self.logger.info(f"Upgrading canary pod {pod.id} to latest {repo} {latest.path}")
            return latest.with_timestamp(self.clock.now()).to_token()

        return None

    @staticmethod
    def _is_on(pod: PodDataState, repo: str, version: VersionDescriptor) -> bool:
        for slot, slot_repo in pod.deployments.items():
            if slot_repo == repo and VersionDescriptor.from_token(pod.requests.get(slot)) == version:
                return True
        return False

    def _decode(self, versions: Dict[str, str], repo: str) -> Optional[VersionDescriptor]:
        token = versions.get(repo)
        if token is None:
            return None
        version = VersionDescriptor.from_token(token)
        if version is None:
            self.logger.error(f"Stored version for repo {repo} is not a valid token")
        return version
