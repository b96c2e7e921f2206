import pytest

from autocrane.models import PodIdentifier
from autocrane.remediators import EvictionConsensus, PodEvicter

P1 = PodIdentifier("ns", "p1")
P2 = PodIdentifier("ns", "p2")


class TestEvictionConsensus:
    def test_requires_four_consecutive_failures(self):
        consensus = EvictionConsensus(depth=3)

        assert consensus.observe([P1]) == set()
        assert consensus.observe([P1]) == set()
        assert consensus.observe([P1]) == set()
        assert consensus.observe([P1]) == {P1}

    def test_keeps_selecting_while_failing(self):
        consensus = EvictionConsensus(depth=3)
        for _ in range(4):
            consensus.observe([P1])

        assert consensus.observe([P1]) == {P1}

    def test_flapping_pod_is_never_selected(self):
        consensus = EvictionConsensus(depth=3)
        pattern = [[P1, P2], [P2], [P1, P2], [P1, P2], [P1, P2], [P2], [P1, P2]]

        selected = [consensus.observe(failing) for failing in pattern]

        assert all(P1 not in s for s in selected)
        assert selected[3] == {P2}

    def test_window_stays_bounded(self):
        consensus = EvictionConsensus(depth=3)
        for _ in range(10):
            consensus.observe([P1])
            assert len(consensus.window) <= 4


class FlakyClient:
    def __init__(self, fail_on):
        self.fail_on = fail_on
        self.evicted = []

    def evict_pod(self, pod):
        if pod == self.fail_on:
            raise RuntimeError("api down")
        self.evicted.append(pod)


class TestPodEvicter:
    def test_evicts_all(self, fake_client):
        assert PodEvicter(fake_client).evict_pods({P1, P2}) == 2
        assert sorted(fake_client.evicted, key=str) == [P1, P2]

    def test_continues_past_failures_then_raises(self):
        client = FlakyClient(fail_on=P1)
        with pytest.raises(RuntimeError):
            PodEvicter(client).evict_pods({P1, P2})
        assert client.evicted == [P2]
