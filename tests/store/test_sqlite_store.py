import pytest

from support import Guest
from tiercache.core import Identity
from tiercache.errors import EntityNotFoundError, MultiError, TransactionError
from tiercache.store import (
    BatchLimitExceededError,
    ReadOnlyTransactionError,
    SQLiteStore,
    StoreConnectionError,
    TransactionConflictError,
    TransactionOptions,
)


@pytest.fixture
def sqlite_store(tmp_path):
    store = SQLiteStore(f"sqlite:///{tmp_path / 'entities.db'}", max_get_batch=10, max_put_batch=5, max_delete_batch=5)
    yield store
    store.close()


def test_put_allocates_sequential_ids_and_does_not_touch_entities(sqlite_store):
    guests = [Guest(name="a"), Guest(name="b")]
    assigned = sqlite_store.put_multi([g.get_identity() for g in guests], guests)

    assert [identity.int_id for identity in assigned] == [1, 2]
    assert all(g.id is None for g in guests)
    assert sqlite_store.count("Guest") == 2


def test_explicit_ids_reserve_the_sequence(sqlite_store):
    sqlite_store.put_multi([Identity.of("Guest", 10)], [Guest(id=10, name="x")])
    (assigned,) = sqlite_store.put_multi([Identity("Guest")], [Guest(name="y")])
    assert assigned.int_id == 11


def test_allocation_skips_explicit_ids_later_in_the_same_batch(sqlite_store):
    guests = [Guest(name="allocated"), Guest(id=1, name="explicit"), Guest(name="next")]

    assigned = sqlite_store.put_multi([g.get_identity() for g in guests], guests)

    assert [identity.int_id for identity in assigned] == [2, 1, 3]
    assert sqlite_store.count("Guest") == 3
    loaded = [Guest(id=identity.int_id) for identity in assigned]
    sqlite_store.get_multi(assigned, loaded)
    assert [g.name for g in loaded] == ["allocated", "explicit", "next"]


def test_get_reports_missing_items_positionally(sqlite_store):
    sqlite_store.put_multi([Identity.of("Guest", 1)], [Guest(id=1, name="Ada")])
    targets = [Guest(id=1), Guest(id=2)]

    with pytest.raises(MultiError) as excinfo:
        sqlite_store.get_multi([t.get_identity() for t in targets], targets)

    assert excinfo.value[0] is None
    assert isinstance(excinfo.value[1], EntityNotFoundError)
    assert targets[0].name == "Ada"


def test_batch_ceilings_are_enforced(sqlite_store):
    guests = [Guest(name=str(i)) for i in range(6)]
    with pytest.raises(BatchLimitExceededError):
        sqlite_store.put_multi([g.get_identity() for g in guests], guests)
    assert sqlite_store.count() == 0


def test_delete_ignores_missing_identities(sqlite_store):
    sqlite_store.put_multi([Identity.of("Guest", 1)], [Guest(id=1, name="Ada")])
    sqlite_store.delete_multi([Identity.of("Guest", 1), Identity.of("Guest", 99)])
    assert sqlite_store.count() == 0


def test_transaction_rolls_back_when_unit_of_work_fails(sqlite_store):
    def work(tx):
        tx.put_multi([Identity.of("Guest", 1)], [Guest(id=1, name="Ada")])
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        sqlite_store.run_in_transaction(work)
    assert sqlite_store.count() == 0


def test_transaction_retries_on_conflict(sqlite_store):
    calls = []

    def work(tx):
        calls.append(tx)
        tx.put_multi([Identity.of("Guest", 1)], [Guest(id=1, name=f"attempt {len(calls)}")])
        if len(calls) == 1:
            raise TransactionConflictError("simulated contention")

    sqlite_store.run_in_transaction(work, TransactionOptions(attempts=2))

    assert len(calls) == 2
    loaded = Guest(id=1)
    sqlite_store.get_multi([loaded.get_identity()], [loaded])
    assert loaded.name == "attempt 2"
    with pytest.raises(TransactionError):
        calls[0].get_multi([loaded.get_identity()], [loaded])


def test_transaction_gives_up_after_configured_attempts(sqlite_store):
    def work(tx):
        raise TransactionConflictError("always")

    with pytest.raises(TransactionConflictError, match="after 3 attempts"):
        sqlite_store.run_in_transaction(work)


def test_read_only_transactions_reject_writes(sqlite_store):
    def work(tx):
        tx.put_multi([Identity.of("Guest", 1)], [Guest(id=1, name="Ada")])

    with pytest.raises(ReadOnlyTransactionError):
        sqlite_store.run_in_transaction(work, TransactionOptions(read_only=True))


def test_nested_store_transactions_are_rejected(sqlite_store):
    def work(tx):
        tx.run_in_transaction(lambda inner: None)

    with pytest.raises(TransactionError):
        sqlite_store.run_in_transaction(work)


def test_closed_store_raises_connection_error(tmp_path):
    store = SQLiteStore(f"sqlite:///{tmp_path / 'closed.db'}")
    store.close()
    with pytest.raises(StoreConnectionError):
        store.delete_multi([Identity.of("Guest", 1)])
