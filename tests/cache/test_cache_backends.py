import threading

from tiercache.cache import InMemoryCacheBackend, NoOpCacheBackend


def test_add_multi_only_stores_absent_keys():
    backend = InMemoryCacheBackend()
    assert backend.add_multi({"a": b"1", "b": b"2"}) == []
    assert backend.add_multi({"a": b"changed", "c": b"3"}) == ["a"]
    assert backend.get_multi(["a", "b", "c", "d"]) == {"a": b"1", "b": b"2", "c": b"3"}


def test_delete_multi_ignores_absent_keys():
    backend = InMemoryCacheBackend()
    backend.add_multi({"a": b"1"})
    backend.delete_multi(["a", "missing"])
    backend.delete_multi(["a"])
    assert backend.get_multi(["a"]) == {}
    assert len(backend) == 0


def test_expired_entries_are_misses_and_can_be_re_added():
    backend = InMemoryCacheBackend(ttl_seconds=0)
    backend.add_multi({"a": b"1"})
    assert backend.get_multi(["a"]) == {}
    assert backend.add_multi({"a": b"2"}) == []


def test_noop_backend_never_stores():
    backend = NoOpCacheBackend()
    assert backend.add_multi({"a": b"1"}) == []
    assert backend.get_multi(["a"]) == {}


def test_concurrent_add_has_exactly_one_winner():
    backend = InMemoryCacheBackend()
    barrier = threading.Barrier(8)
    losses: list[list[str]] = []
    errors: list[Exception] = []

    def worker(value: int) -> None:
        try:
            barrier.wait()
            losses.append(backend.add_multi({"shared": str(value).encode()}))
        except Exception as exc:  # pragma: no cover - failure path
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sum(1 for lost in losses if lost == []) == 1
    assert backend.get_multi(["shared"])["shared"] in {str(i).encode() for i in range(8)}
