"""Value objects describing what changed, plus the queue the caller drains.

The engines append events as they mutate state; the presentation layer pulls
them with :meth:`EventQueue.drain`. There are no subscribers.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional, Tuple

logger = logging.getLogger(__name__)

Position = Tuple[int, int]


@dataclass(frozen=True)
class ElementPlaced:
    position: Position
    element_id: str
    reason: str  # "place", "production", "restore"


@dataclass(frozen=True)
class ElementMoved:
    source: Position
    target: Position
    element_id: str


@dataclass(frozen=True)
class ElementRemoved:
    position: Position
    element_id: str


@dataclass(frozen=True)
class MergeCompleted:
    source: Position
    target: Position
    consumed_id: str
    result_id: str
    result_tier: int
    chained: bool = False


@dataclass(frozen=True)
class ProductionCompleted:
    generator_position: Position
    target: Position
    element_id: str
    energy_spent: int


@dataclass(frozen=True)
class GeneratorUpgraded:
    position: Position
    from_level: int
    to_level: int
    cost: int


@dataclass(frozen=True)
class CraftStarted:
    recipe_id: str
    quality: str
    ready_at: float


@dataclass(frozen=True)
class CraftCancelled:
    recipe_id: str


@dataclass(frozen=True)
class CraftSucceeded:
    recipe_id: str
    quality: str
    result_id: str
    quantity: int
    roll: int
    chance: int


@dataclass(frozen=True)
class CraftFailed:
    recipe_id: str
    quality: str
    roll: Optional[int]
    chance: int
    reason: str  # "roll" or "ingredients_changed"


@dataclass(frozen=True)
class XPAwarded:
    amount: int
    source: str


@dataclass(frozen=True)
class LevelUp:
    from_level: int
    to_level: int
    coins_awarded: int


@dataclass(frozen=True)
class AchievementCompleted:
    achievement_id: str
    coins: int
    gems: int
    essence: int
    xp: int


@dataclass(frozen=True)
class RecipeUnlocked:
    recipe_id: str


@dataclass(frozen=True)
class CurrencyChanged:
    currency: str
    old_amount: int
    new_amount: int
    delta: int
    reason: str


@dataclass(frozen=True)
class EnergyChanged:
    old_amount: int
    new_amount: int
    reason: str


@dataclass(frozen=True)
class ElementSold:
    element_id: str
    tier: int
    quantity: int
    coins: int


@dataclass(frozen=True)
class RelationshipChanged:
    npc_id: str
    old_value: int
    new_value: int


class EventQueue:
    """FIFO of pending events, appended by the engines and drained by the caller."""

    def __init__(self) -> None:
        self._pending: Deque[object] = deque()

    def append(self, event: object) -> None:
        self._pending.append(event)
        logger.debug("Queued event %s", event)

    def drain(self) -> List[object]:
        """Return all pending events in emission order and clear the queue."""
        events = list(self._pending)
        self._pending.clear()
        return events

    def peek(self) -> List[object]:
        return list(self._pending)

    def of_type(self, event_type: type) -> List[object]:
        return [e for e in self._pending if isinstance(e, event_type)]

    def __len__(self) -> int:
        return len(self._pending)
