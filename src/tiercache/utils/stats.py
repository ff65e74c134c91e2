"""
Per-session counters describing which tier served each request.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Dict


@dataclass
class TierStats:
    memory_hits: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    store_reads: int = 0
    store_writes: int = 0
    store_deletes: int = 0
    populate_races: int = 0
    cache_errors: int = 0
    invalidation_failures: int = 0

    def record(self, counter: str, amount: int = 1) -> None:
        setattr(self, counter, getattr(self, counter) + amount)

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        if lookups == 0:
            return 0.0
        return self.cache_hits / lookups

    def summary(self) -> Dict[str, float]:
        data: Dict[str, float] = {f.name: getattr(self, f.name) for f in fields(self)}
        data["cache_hit_rate"] = self.cache_hit_rate
        return data

    def reset(self) -> None:
        for f in fields(self):
            setattr(self, f.name, 0)
