from examples.guestbook import (
    bootstrap_session,
    fetch_greetings,
    record_visit,
    run_demo,
    seed_sample_data,
)


def test_guestbook_bootstrap_and_seed(tmp_path):
    db_path = tmp_path / "guestbook_example.db"
    session = bootstrap_session(dsn=f"sqlite:///{db_path}")
    try:
        seeded = seed_sample_data(session)
        assert len(seeded["books"]) == 1
        assert len(seeded["visitors"]) == 2
        assert all(v["id"] for v in seeded["visitors"])

        ids = [g["id"] for g in seeded["greetings"]]
        feed = fetch_greetings(session, ids)
        assert [entry["author"] for entry in feed] == ["octavia", "haruki"]

        visitor_id = seeded["visitors"][1]["id"]
        assert record_visit(session, visitor_id) == 1
        assert record_visit(session, visitor_id) == 2
    finally:
        session.close()
        session.store.close()


def test_run_guestbook_demo_serves_second_read_from_cache():
    result = run_demo()
    assert len(result["feed"]) == 2
    assert result["visits"] == 2
    assert result["stats"]["cache_hits"] == 2
    assert result["stats"]["store_reads"] == 2
