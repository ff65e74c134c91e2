from .demo import (  # noqa: F401
    bootstrap_session,
    fetch_greetings,
    record_visit,
    run_demo,
    seed_sample_data,
    sign_book,
)

__all__ = [
    "bootstrap_session",
    "seed_sample_data",
    "fetch_greetings",
    "sign_book",
    "record_visit",
    "run_demo",
]
