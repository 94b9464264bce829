from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class UniformSource(Protocol):
    """What the engines need from a random source."""

    def randrange(self, n: int) -> int: ...

    def random(self) -> float: ...


@dataclass
class RandomSource:
    """
    A thin wrapper around random.Random to:
    - centralize RNG handling
    - support optional deterministic seeding for tests
    """

    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)
        if self.seed is not None:
            logger.debug("Initialized RandomSource with deterministic seed=%s", self.seed)
        else:
            logger.debug("Initialized RandomSource with non-deterministic seed")

    def randrange(self, n: int) -> int:
        """Uniform integer in [0, n)."""
        if n <= 0:
            raise ValueError(f"randrange requires n > 0, got {n}")
        return self._rng.randrange(n)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return self._rng.random()

    def choice(self, seq: Sequence[Any]) -> Any:
        if not seq:
            raise ValueError("RandomSource.choice() received an empty sequence")
        return seq[self.randrange(len(seq))]


__all__ = ["RandomSource", "UniformSource"]
