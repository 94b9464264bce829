from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class XPCurve:
    """Exponential per-level XP requirement.

    required_for_level(L) = round(base_xp * growth ** (L - 1)) is the XP needed
    to advance *into* level L from L-1. XP is tracked per level (it resets on
    every level up), not cumulatively.
    """

    base_xp: int = 100
    growth: float = 1.5
    max_level: int = 50

    def __post_init__(self) -> None:
        if self.base_xp <= 0:
            raise ValueError("base_xp must be > 0")
        if self.growth <= 1.0:
            raise ValueError("growth must be > 1.0 so requirements strictly increase")
        if self.max_level < 1:
            raise ValueError("max_level must be >= 1")

    def required_for_level(self, level: int) -> int:
        if level <= 1:
            return self.base_xp
        return int(round(self.base_xp * (self.growth ** (level - 1))))

    def xp_to_next(self, level: int, current_xp: int) -> int | None:
        """XP still missing to reach level+1. None at the level cap."""
        if level >= self.max_level:
            return None
        return max(0, self.required_for_level(level + 1) - current_xp)

    def total_xp_for_level(self, level: int) -> int:
        """Cumulative XP from level 1 up to ``level``."""
        level = min(level, self.max_level)
        return sum(self.required_for_level(L) for L in range(2, level + 1))
