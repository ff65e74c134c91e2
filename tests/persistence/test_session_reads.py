import pytest

from support import Guest
from tiercache import SessionConfig, is_not_found
from tiercache.cache import InMemoryCacheBackend
from tiercache.core import Identity
from tiercache.errors import (
    EntityNotFoundError,
    IncompleteIdentityError,
    InvalidArgumentError,
    InvalidEntityError,
    MultiError,
)
from tiercache.persistence import Session
from tiercache.store import StoreError


def seed(store, *guests):
    store.put_multi([g.get_identity() for g in guests], list(guests))
    store.events.clear()
    store.calls["put"].clear()


def test_get_multi_reports_missing_entity_positionally(session, store):
    seed(store, Guest(id=1, name="A"), Guest(id=3, name="C"))
    targets = [Guest(id=1), Guest(id=2), Guest(id=3)]

    with pytest.raises(MultiError) as excinfo:
        session.get_multi(targets)

    err = excinfo.value
    assert err[0] is None and err[2] is None
    assert isinstance(err[1], EntityNotFoundError)
    assert is_not_found(err, 1)
    assert not is_not_found(err, 0)
    assert not is_not_found(err, 2)
    assert not is_not_found(err, 7)
    assert not is_not_found(StoreError("x"), 0)
    assert [t.name for t in (targets[0], targets[2])] == ["A", "C"]


def test_get_raises_the_single_item_error(session):
    with pytest.raises(EntityNotFoundError):
        session.get(Guest(id=404))


def test_store_read_populates_both_cache_tiers(session, store, backend):
    seed(store, Guest(id=1, name="Ada"))

    loaded = session.get(Guest(id=1))

    identity = Identity.of("Guest", 1)
    assert loaded.name == "Ada"
    assert session.memory_cache.get(identity) is loaded
    assert identity.encode() in backend.get_multi([identity.encode()])
    assert session.stats.store_reads == 1


def test_second_session_is_served_from_distributed_cache(store, make_session):
    seed(store, Guest(id=1, name="Ada"))
    make_session().get(Guest(id=1))

    other = make_session()
    loaded = other.get(Guest(id=1))

    assert loaded.name == "Ada"
    assert store.calls["get"] == [1]
    assert other.stats.cache_hits == 1
    assert other.memory_cache.get(Identity.of("Guest", 1)) is loaded


def test_memory_reads_are_off_by_default(session, store):
    seed(store, Guest(id=1, name="Ada"))
    first = session.get(Guest(id=1))
    second = session.get(Guest(id=1))

    assert first is not second
    assert session.stats.memory_hits == 0
    assert session.stats.cache_hits == 1


def test_memory_reads_short_circuit_when_enabled(store, backend, make_session, events):
    seed(store, Guest(id=1, name="Ada"))
    session = make_session(config=SessionConfig(serve_reads_from_memory=True))
    first = session.get(Guest(id=1))
    events.clear()

    batch = [Guest(id=1)]
    session.get_multi(batch)

    assert batch[0] is first
    assert events == []
    assert session.stats.memory_hits == 1


def test_undecodable_cache_entry_falls_back_to_store(session, store, backend):
    seed(store, Guest(id=1, name="Ada"))
    backend.add_multi({Identity.of("Guest", 1).encode(): b"not json"})

    loaded = session.get(Guest(id=1))

    assert loaded.name == "Ada"
    assert session.stats.cache_errors == 1
    assert store.calls["get"] == [1]


def test_cache_outage_does_not_fail_reads(session, store, backend):
    seed(store, Guest(id=1, name="Ada"))
    backend.failing.update({"get", "add"})

    assert session.get(Guest(id=1)).name == "Ada"


def test_store_outage_is_raised(session, store):
    store.fail_on["get"] = 1
    with pytest.raises(StoreError):
        session.get(Guest(id=1))


def test_reads_require_complete_identities_before_any_io(session, events):
    with pytest.raises(IncompleteIdentityError) as excinfo:
        session.get_multi([Guest(id=1), Guest(name="new")])
    assert excinfo.value.index == 1
    assert events == []


@pytest.mark.parametrize("value", [(Guest(id=1),), "Guest", None, {"id": 1}])
def test_get_multi_rejects_wrong_shapes(session, events, value):
    with pytest.raises(InvalidArgumentError):
        session.get_multi(value)
    assert events == []


def test_get_rejects_objects_without_identity(session):
    with pytest.raises(InvalidEntityError):
        session.get(object())


def test_reads_straddling_the_chunk_boundary_match_single_batch(session, store):
    guests = [Guest(id=i, name=f"g{i}") for i in range(1, 1002)]
    for lo in range(0, len(guests), 500):
        seed(store, *guests[lo : lo + 500])
    targets = [Guest(id=i) for i in range(1, 1003)]

    with pytest.raises(MultiError) as excinfo:
        session.get_multi(targets)

    assert store.calls["get"] == [1000, 2]
    assert excinfo.value.failed_indexes() == [1001]
    assert targets[999].name == "g1000" and targets[1000].name == "g1001"


def test_key_helpers(session):
    assert session.key(Guest(name="new")) is None
    assert session.key(object()) is None
    assert session.key(Guest(id=5)) == Identity.of("Guest", 5)
    assert session.key_error(Guest(name="new")).incomplete
    with pytest.raises(InvalidEntityError):
        session.key_error(object())


def test_empty_shared_backend_is_kept(store):
    shared = InMemoryCacheBackend()
    session = Session(store, cache_backend=shared)
    store.put_multi([Identity.of("Guest", 1)], [Guest(id=1, name="Ada")])

    session.get(Guest(id=1))

    assert session.cache.backend is shared
    assert len(shared) == 1
