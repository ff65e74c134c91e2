"""Shared entities and instrumented backends for the test-suite."""

from tiercache.cache import CacheBackendError, InMemoryCacheBackend
from tiercache.core import Entity, IntegerField, ParentField, StringField
from tiercache.store import SQLiteStore, StoreError


class Guest(Entity):
    name = StringField(nullable=False)
    visits = IntegerField(default=0)


class Note(Entity):
    slug = StringField(primary_key=True)
    owner = ParentField()
    body = StringField()


class CountingStore(SQLiteStore):
    """SQLite store recording every batch call and failing on demand."""

    def __init__(self, *args, events=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = {"get": [], "put": [], "delete": []}
        self.events = events if events is not None else []
        self.fail_on = {}

    def _track(self, op, size):
        self.calls[op].append(size)
        self.events.append(f"store.{op}")
        if self.fail_on.get(op) == len(self.calls[op]):
            raise StoreError(f"injected {op} failure")

    def get_multi(self, identities, entities):
        self._track("get", len(identities))
        return super().get_multi(identities, entities)

    def put_multi(self, identities, entities):
        self._track("put", len(identities))
        return super().put_multi(identities, entities)

    def delete_multi(self, identities):
        self._track("delete", len(identities))
        return super().delete_multi(identities)


class RecordingBackend(InMemoryCacheBackend):
    """In-memory cache backend logging calls and failing on demand."""

    def __init__(self, events=None, **kwargs):
        super().__init__(**kwargs)
        self.events = events if events is not None else []
        self.failing = set()

    def _track(self, op):
        self.events.append(f"cache.{op}")
        if op in self.failing:
            raise CacheBackendError(f"injected {op} failure")

    def add_multi(self, items):
        self._track("add")
        return super().add_multi(items)

    def get_multi(self, keys):
        self._track("get")
        return super().get_multi(keys)

    def delete_multi(self, keys):
        self._track("delete")
        return super().delete_multi(keys)
