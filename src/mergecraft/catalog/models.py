from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .curves import DEFAULT_COST_CURVE, DEFAULT_PERIOD_CURVE, InterpolationCurve


class ElementType(str, Enum):
    BERRY = "berry"
    MUSHROOM = "mushroom"
    CRYSTAL = "crystal"
    STEAM = "steam"
    TOOL = "tool"
    POTION = "potion"
    ARTIFACT = "artifact"
    GENERATOR = "generator"


class Rarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def multiplier(self) -> int:
        return _RARITY_MULTIPLIERS[self]


_RARITY_MULTIPLIERS = {
    Rarity.COMMON: 1,
    Rarity.UNCOMMON: 2,
    Rarity.RARE: 4,
    Rarity.EPIC: 8,
    Rarity.LEGENDARY: 16,
}


class Quality(str, Enum):
    """Player-chosen craft quality: lower success odds, larger output."""

    NORMAL = "normal"
    GOOD = "good"
    EXCELLENT = "excellent"
    PERFECT = "perfect"

    @property
    def success_factor(self) -> float:
        return _QUALITY_SUCCESS[self]

    @property
    def output_multiplier(self) -> float:
        return _QUALITY_OUTPUT[self]


_QUALITY_SUCCESS = {
    Quality.NORMAL: 1.0,
    Quality.GOOD: 0.9,
    Quality.EXCELLENT: 0.8,
    Quality.PERFECT: 0.7,
}

_QUALITY_OUTPUT = {
    Quality.NORMAL: 1.0,
    Quality.GOOD: 1.1,
    Quality.EXCELLENT: 1.2,
    Quality.PERFECT: 1.5,
}


class AchievementKind(str, Enum):
    MERGE = "merge"
    GENERATOR = "generator"
    CRAFT = "craft"
    QUEST = "quest"
    LEVEL = "level"
    CURRENCY = "currency"
    SPECIAL = "special"


@dataclass(frozen=True)
class GeneratorSpec:
    """Production parameters of a generator element.

    Period and energy cost at a level are ``base * curve(t)`` where
    ``t = (level - 1) / (max_level - 1)`` with the level clamped to
    ``[1, max_level]`` first.
    """

    output_id: str
    base_period: float = 30.0
    base_energy_cost: int = 5
    max_level: int = 5
    period_curve: InterpolationCurve = DEFAULT_PERIOD_CURVE
    cost_curve: InterpolationCurve = DEFAULT_COST_CURVE
    upgrade_cost_multiplier: int = 100

    def __post_init__(self) -> None:
        if self.base_period <= 0:
            raise ValueError("Generator base_period must be > 0")
        if self.base_energy_cost < 0:
            raise ValueError("Generator base_energy_cost cannot be negative")
        if self.max_level < 1:
            raise ValueError("Generator max_level must be >= 1")
        for name, curve in (("period_curve", self.period_curve), ("cost_curve", self.cost_curve)):
            if any(not 0 < v <= 1 for _, v in curve.keys):
                raise ValueError(f"Generator {name} values must lie in (0, 1]")

    def curve_position(self, level: int) -> float:
        level = max(1, min(level, self.max_level))
        if self.max_level == 1:
            return 0.0
        return (level - 1) / (self.max_level - 1)

    def period_for_level(self, level: int) -> float:
        return self.base_period * self.period_curve.evaluate(self.curve_position(level))

    def cost_for_level(self, level: int) -> int:
        return int(round(self.base_energy_cost * self.cost_curve.evaluate(self.curve_position(level))))

    def upgrade_cost(self, level: int) -> int:
        return self.upgrade_cost_multiplier * (level + 1)


@dataclass(frozen=True)
class ElementDefinition:
    id: str
    type: ElementType
    tier: int
    name: str = ""
    merge_target: Optional[str] = None
    can_merge: bool = True
    base_value: int = 0
    rarity: Rarity = Rarity.COMMON
    generator: Optional[GeneratorSpec] = None
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ElementDefinition.id must be a non-empty string")
        if self.tier < 1:
            raise ValueError(f"Element {self.id}: tier must be >= 1, got {self.tier}")
        if self.base_value < 0:
            raise ValueError(f"Element {self.id}: base_value cannot be negative")

    @property
    def key(self) -> Tuple[str, int]:
        return (self.id, self.tier)

    @property
    def is_generator(self) -> bool:
        return self.generator is not None

    @property
    def is_terminal(self) -> bool:
        return self.merge_target is None or not self.can_merge

    def sell_value(self) -> int:
        return self.base_value * (self.tier + 1)

    def can_merge_with(self, other: "ElementDefinition") -> bool:
        """Same type, same tier and a next tier to merge into."""
        return (
            self.can_merge
            and other.can_merge
            and self.type == other.type
            and self.tier == other.tier
            and self.merge_target is not None
        )


@dataclass(frozen=True)
class Ingredient:
    element_id: str
    quantity: int

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise ValueError(f"Ingredient {self.element_id}: quantity must be >= 1")


@dataclass(frozen=True)
class RecipeDefinition:
    id: str
    ingredients: Tuple[Ingredient, ...]
    result_id: str
    result_quantity: int = 1
    base_success: int = 100
    required_level: int = 1
    has_puzzle: bool = False
    crafting_duration: float = 5.0
    name: str = ""

    def __post_init__(self) -> None:
        if not self.ingredients:
            raise ValueError(f"Recipe {self.id}: needs at least one ingredient")
        ids = [i.element_id for i in self.ingredients]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Recipe {self.id}: duplicate ingredients are not allowed")
        if not 0 <= self.base_success <= 100:
            raise ValueError(f"Recipe {self.id}: base_success must be within [0, 100]")
        if self.result_quantity < 1:
            raise ValueError(f"Recipe {self.id}: result_quantity must be >= 1")
        if self.required_level < 1:
            raise ValueError(f"Recipe {self.id}: required_level must be >= 1")
        if self.crafting_duration < 0:
            raise ValueError(f"Recipe {self.id}: crafting_duration cannot be negative")

    def craft_xp(self) -> int:
        return max(10, int(round(self.crafting_duration * 2)))


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    kind: AchievementKind
    required_value: int
    stat: Optional[str] = None
    required_level: int = 1
    coin_reward: int = 0
    gem_reward: int = 0
    essence_reward: int = 0
    xp_reward: int = 0
    hidden: bool = False
    name: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        if self.kind != AchievementKind.LEVEL and not self.stat:
            raise ValueError(f"Achievement {self.id}: non-level achievements need a stat")
        if min(self.coin_reward, self.gem_reward, self.essence_reward, self.xp_reward) < 0:
            raise ValueError(f"Achievement {self.id}: rewards cannot be negative")

    def progress_text(self) -> str:
        if self.kind == AchievementKind.LEVEL:
            return f"Reach level {self.required_value}"
        if self.stat:
            return f"{self.description} ({self.required_value} required)"
        return self.description
