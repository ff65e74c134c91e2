"""
Artificial round-trip delays used to shake out cache races in tests.
"""

from __future__ import annotations

import random
import time


class LatencySimulator:
    """Sleeps a random time up to ``max_ms`` after each backing call when enabled."""

    def __init__(self, enabled: bool = False, *, rng: random.Random | None = None) -> None:
        self.enabled = enabled
        self._rng = rng or random.Random()

    def delay(self, max_ms: float) -> None:
        if not self.enabled or max_ms <= 0:
            return
        time.sleep(self._rng.uniform(0, max_ms) / 1000)
