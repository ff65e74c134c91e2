import pytest

from support import CountingStore, RecordingBackend
from tiercache.persistence import Session


@pytest.fixture
def events():
    return []


@pytest.fixture
def store(tmp_path, events):
    counting = CountingStore(f"sqlite:///{tmp_path / 'store.db'}", events=events)
    yield counting
    counting.close()


@pytest.fixture
def backend(events):
    return RecordingBackend(events)


@pytest.fixture
def session(store, backend):
    with Session(store, cache_backend=backend) as active:
        yield active


@pytest.fixture
def make_session(store, backend):
    def factory(**kwargs):
        kwargs.setdefault("cache_backend", backend)
        return Session(store, **kwargs)

    return factory
