"""
Guestbook example showing tiered reads, batched writes and transactions.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from tiercache import SessionConfig, SQLiteStore
from tiercache.cache import CacheBackend, InMemoryCacheBackend
from tiercache.core import Identity
from tiercache.persistence import Session, TransactionalSession
from tiercache.utils import correlation_scope

from .models import Greeting, Guestbook, Visitor

DEFAULT_BOOK = "default"


def bootstrap_session(
    dsn: str = "sqlite:///:memory:",
    *,
    store: Optional[SQLiteStore] = None,
    cache_backend: Optional[CacheBackend] = None,
    config: Optional[SessionConfig] = None,
) -> Session:
    return Session(
        store if store is not None else SQLiteStore(dsn),
        cache_backend=cache_backend if cache_backend is not None else InMemoryCacheBackend(),
        config=config,
    )


def seed_sample_data(session: Session) -> Dict[str, List[Dict[str, Any]]]:
    book = Guestbook(name=DEFAULT_BOOK, title="Visitors of the week")
    visitors = [Visitor(handle="octavia"), Visitor(handle="haruki")]
    session.put_many(book, *visitors)
    greetings = [
        sign_book(session, visitors[0].handle, "Lovely place."),
        sign_book(session, visitors[1].handle, "I will be back."),
    ]
    return {
        "books": [book.to_dict()],
        "visitors": [v.to_dict() for v in visitors],
        "greetings": [g.to_dict() for g in greetings],
    }


def sign_book(session: Session, author: Optional[str], content: str, book: str = DEFAULT_BOOK) -> Greeting:
    greeting = Greeting(book=Identity.of("Guestbook", book), author=author, content=content)
    session.put(greeting)
    return greeting


def record_visit(session: Session, visitor_id: int) -> int:
    """Increment a visitor's counter atomically and return the new value."""
    counts: List[int] = []

    def bump(tx: TransactionalSession) -> None:
        counts.clear()
        visitor = tx.get(Visitor(id=visitor_id))
        visitor.visits += 1
        tx.put(visitor)
        counts.append(visitor.visits)

    session.run_in_transaction(bump)
    return counts[0]


def fetch_greetings(session: Session, greeting_ids: List[int], book: str = DEFAULT_BOOK) -> List[Dict[str, Any]]:
    parent = Identity.of("Guestbook", book)
    greetings = [Greeting(id=gid, book=parent) for gid in greeting_ids]
    session.get_multi(greetings)
    return [{"author": g.author or "anonymous", "content": g.content} for g in greetings]


def run_demo(dsn: str = "sqlite:///:memory:") -> Dict[str, Any]:
    store = SQLiteStore(dsn)
    cache = InMemoryCacheBackend()
    try:
        with bootstrap_session(store=store, cache_backend=cache) as writer:
            seeded = seed_sample_data(writer)
            visitor_id = seeded["visitors"][0]["id"]
            record_visit(writer, visitor_id)
            visits = record_visit(writer, visitor_id)
        greeting_ids = [g["id"] for g in seeded["greetings"]]
        with correlation_scope("guestbook-reader"), bootstrap_session(store=store, cache_backend=cache) as reader:
            feed = fetch_greetings(reader, greeting_ids)
            fetch_greetings(reader, greeting_ids)
            stats = reader.stats.summary()
        return {"feed": feed, "visits": visits, "stats": stats}
    finally:
        store.close()


if __name__ == "__main__":
    result = run_demo("sqlite:///guestbook_demo.db")
    for entry in result["feed"]:
        print(f"{entry['author']}: {entry['content']}")
    print(f"visits recorded: {result['visits']}")
    print(f"cache hit rate: {result['stats']['cache_hit_rate']:.0%}")
