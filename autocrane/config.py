"""
Controller configuration.

Values come from an optional YAML file named by AUTOCRANE_CONFIG, then from
environment variables using the AutoCrane__<Setting> naming, which win.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "AutoCrane__"

_DURATION_UNITS = {
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
}


class DurationParser:
    """Parses durations like 3d, 12h, 5m or 30s"""

    def parse(self, duration: str) -> Optional[timedelta]:
        duration = (duration or "").strip()
        if len(duration) < 2:
            return None

        multiplier = _DURATION_UNITS.get(duration[-1])
        if multiplier is None:
            return None

        amount = duration[:-1]
        if not amount.isdigit():
            return None
        return multiplier * int(amount)


@dataclass
class AutoCraneConfig:
    namespaces: List[str] = field(default_factory=list)
    eviction_delete_grace_period_seconds: int = 120
    require_healthy_status_for_seconds: int = 0
    soak_duration: timedelta = timedelta(hours=1)
    iteration_seconds: int = 10
    failures_before_eviction: int = 3
    data_repo_url: str = "http://datarepo"
    pod_namespace: str = ""
    pod_name: str = ""

    def is_allowed_namespace(self, namespace: str) -> bool:
        return namespace in self.namespaces

    @property
    def min_healthy(self) -> timedelta:
        return timedelta(seconds=self.require_healthy_status_for_seconds)


def _split_namespaces(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = str(value or "").split(",")
    return [str(i).strip() for i in items if str(i).strip()]


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


def load_config(environ: Optional[Mapping[str, str]] = None) -> AutoCraneConfig:
    """Build the configuration once at process start"""
    environ = os.environ if environ is None else environ
    settings: Dict[str, Any] = {}

    config_file = environ.get("AUTOCRANE_CONFIG")
    if config_file:
        logger.info(f"Loading configuration from {config_file}")
        settings.update(_read_yaml(config_file))

    for key, value in environ.items():
        if key.startswith(ENV_PREFIX):
            settings[key[len(ENV_PREFIX):]] = value

    config = AutoCraneConfig(
        pod_namespace=environ.get("POD_NAMESPACE", ""),
        pod_name=environ.get("POD_NAME", ""),
    )

    if "Namespaces" in settings:
        config.namespaces = _split_namespaces(settings["Namespaces"])

    for name, attr in [
        ("EvictionDeleteGracePeriodSeconds", "eviction_delete_grace_period_seconds"),
        ("RequireHealthyStatusForSeconds", "require_healthy_status_for_seconds"),
        ("IterationSeconds", "iteration_seconds"),
        ("FailuresBeforeEviction", "failures_before_eviction"),
    ]:
        if name in settings:
            setattr(config, attr, int(settings[name]))

    if "SoakDuration" in settings:
        soak = DurationParser().parse(str(settings["SoakDuration"]))
        if soak is None:
            raise ValueError(f"Invalid SoakDuration: {settings['SoakDuration']}")
        config.soak_duration = soak

    if "DataRepoUrl" in settings:
        config.data_repo_url = str(settings["DataRepoUrl"]).rstrip("/")

    return config
