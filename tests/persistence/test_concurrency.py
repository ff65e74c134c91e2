import threading

from support import Guest
from tiercache import SessionConfig
from tiercache.cache import InMemoryCacheBackend
from tiercache.core import Identity
from tiercache.persistence import Session
from tiercache.store import SQLiteStore


def _run_threads(count, target):
    errors: list[Exception] = []
    barrier = threading.Barrier(count)

    def worker(index: int) -> None:
        try:
            barrier.wait()
            target(index)
        except Exception as exc:  # pragma: no cover - failure path
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


def test_concurrent_readers_populate_cache_once(tmp_path):
    store = SQLiteStore(f"sqlite:///{tmp_path / 'shared.db'}")
    backend = InMemoryCacheBackend()
    store.put_multi([Identity.of("Guest", i) for i in range(1, 21)], [Guest(id=i, name=f"g{i}") for i in range(1, 21)])
    config = SessionConfig(simulate_latency=True)
    sessions = [Session(store, cache_backend=backend, config=config) for _ in range(4)]

    def read(index):
        batch = [Guest(id=i) for i in range(1, 21)]
        sessions[index].get_multi(batch)
        assert [g.name for g in batch] == [f"g{i}" for i in range(1, 21)]

    errors = _run_threads(4, read)

    store.close()
    assert errors == []
    assert len(backend) == 20
    # Every key is added exactly once; later populates lose the race.
    assert sum(s.stats.store_reads - s.stats.populate_races for s in sessions) == 20


def test_writers_and_readers_converge_on_latest_value(tmp_path):
    store = SQLiteStore(f"sqlite:///{tmp_path / 'race.db'}")
    backend = InMemoryCacheBackend()
    config = SessionConfig(simulate_latency=True)
    Session(store, cache_backend=backend).put(Guest(id=1, name="v0"))

    def work(index):
        session = Session(store, cache_backend=backend, config=config)
        if index % 2:
            session.get(Guest(id=1))
        else:
            session.put(Guest(id=1, name=f"v{index}"))

    errors = _run_threads(6, work)
    assert errors == []

    final = Session(store, cache_backend=backend)
    final.put(Guest(id=1, name="final"))
    assert Session(store, cache_backend=backend).get(Guest(id=1)).name == "final"
    store.close()
