from datetime import timedelta

import pytest

from autocrane.config import DurationParser, load_config


class TestDurationParser:
    @pytest.mark.parametrize("value,seconds", [
        ("1d", 60 * 60 * 24),
        ("3d", 60 * 60 * 24 * 3),
        ("3h", 60 * 60 * 3),
        ("3m", 60 * 3),
        ("3s", 3),
        ("3ms", None),
        ("", None),
        ("1", None),
    ])
    def test_durations(self, value, seconds):
        result = DurationParser().parse(value)
        if seconds is None:
            assert result is None
        else:
            assert result == timedelta(seconds=seconds)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config({})
        assert config.namespaces == []
        assert config.eviction_delete_grace_period_seconds == 120
        assert config.soak_duration == timedelta(hours=1)
        assert config.iteration_seconds == 10
        assert config.failures_before_eviction == 3

    def test_environment(self):
        config = load_config({
            "AutoCrane__Namespaces": "a, b,",
            "AutoCrane__EvictionDeleteGracePeriodSeconds": "30",
            "AutoCrane__RequireHealthyStatusForSeconds": "20",
            "AutoCrane__SoakDuration": "2h",
            "POD_NAMESPACE": "a",
            "POD_NAME": "pod",
        })
        assert config.namespaces == ["a", "b"]
        assert config.is_allowed_namespace("a")
        assert not config.is_allowed_namespace("c")
        assert config.eviction_delete_grace_period_seconds == 30
        assert config.min_healthy == timedelta(seconds=20)
        assert config.soak_duration == timedelta(hours=2)
        assert (config.pod_namespace, config.pod_name) == ("a", "pod")

    def test_yaml_file_overridden_by_environment(self, tmp_path):
        path = tmp_path / "autocrane.yaml"
        path.write_text("Namespaces: [x, y]\nIterationSeconds: 30\nDataRepoUrl: http://repo/\n")

        config = load_config({
            "AUTOCRANE_CONFIG": str(path),
            "AutoCrane__IterationSeconds": "5",
        })
        assert config.namespaces == ["x", "y"]
        assert config.iteration_seconds == 5
        assert config.data_repo_url == "http://repo"

    def test_unknown_settings_are_ignored(self):
        config = load_config({"AutoCrane__WatchdogProbeTimeoutSeconds": "9"})
        assert not hasattr(config, "watchdog_probe_timeout_seconds")

    def test_bad_soak_duration(self):
        with pytest.raises(ValueError):
            load_config({"AutoCrane__SoakDuration": "soon"})
