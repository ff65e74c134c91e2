from support import Guest
from tiercache.cache import MemoryCache
from tiercache.core import Identity


def test_put_get_and_overwrite():
    cache = MemoryCache()
    identity = Identity.of("Guest", 1)
    first, second = Guest(id=1, name="a"), Guest(id=1, name="b")

    cache.put(identity, first)
    assert cache.get(identity) is first
    cache.put(identity, second)
    assert cache.get(identity.encode()) is second
    assert identity in cache
    assert len(cache) == 1


def test_invalidate_is_idempotent():
    cache = MemoryCache()
    identity = Identity.of("Guest", 1)
    cache.put(identity, Guest(id=1, name="a"))

    cache.invalidate(identity)
    cache.invalidate(identity)

    assert cache.get(identity) is None
    assert len(cache) == 0
