import random

from support import Guest
from tiercache.utils import LatencySimulator, TierStats


def test_stats_summary_and_hit_rate():
    stats = TierStats()
    stats.record("cache_hits", 3)
    stats.record("cache_misses")

    summary = stats.summary()
    assert summary["cache_hits"] == 3
    assert summary["cache_hit_rate"] == 0.75

    stats.reset()
    assert stats.summary()["cache_hits"] == 0
    assert stats.cache_hit_rate == 0.0


def test_session_counts_tiers(session, store):
    session.put(Guest(id=1, name="Ada"))
    session.get(Guest(id=1))
    session.get(Guest(id=1))

    assert session.stats.store_writes == 1
    assert session.stats.store_reads == 1
    assert session.stats.cache_misses == 1
    assert session.stats.cache_hits == 1


def test_disabled_latency_never_sleeps(monkeypatch):
    slept = []
    monkeypatch.setattr("tiercache.utils.latency.time.sleep", slept.append)
    LatencySimulator().delay(50)
    assert slept == []


def test_enabled_latency_sleeps_within_bound(monkeypatch):
    slept = []
    monkeypatch.setattr("tiercache.utils.latency.time.sleep", slept.append)

    simulator = LatencySimulator(True, rng=random.Random(7))
    simulator.delay(20)
    simulator.delay(0)

    assert len(slept) == 1
    assert 0 <= slept[0] <= 0.02
