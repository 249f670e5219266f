from __future__ import annotations

import random

from core.config import REASSURANCE_PROBABILITY, REASSURANCE_SEED
from core.state import StressLevel


class ReassurancePolicy:
    """Chooses a reassurance line over the next question when stress is high.

    Pass ``seed`` for a reproducible sequence; ``probability`` of 0 or 1 makes it fixed.
    """

    def __init__(self, probability: float = REASSURANCE_PROBABILITY, seed: int | None = REASSURANCE_SEED):
        self.probability = min(1.0, max(0.0, float(probability)))
        self._rng = random.Random(seed)

    def should_reassure(self, stress_level: StressLevel) -> bool:
        if stress_level != StressLevel.HIGH:
            return False
        if self.probability <= 0.0:
            return False
        if self.probability >= 1.0:
            return True
        return self._rng.random() < self.probability
