from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from ..catalog.catalog import Catalog
from ..catalog.models import AchievementDefinition, AchievementKind
from ..config import GameConfig
from ..events import (
    AchievementCompleted,
    CurrencyChanged,
    EnergyChanged,
    EventQueue,
    LevelUp,
    RecipeUnlocked,
    RelationshipChanged,
    XPAwarded,
)
from ..exceptions import InsufficientEnergyError, InsufficientFundsError, InvariantViolationError
from .xp_curve import XPCurve

logger = logging.getLogger(__name__)

RELATIONSHIP_MIN = 0
RELATIONSHIP_MAX = 100
RELATIONSHIP_TIER_SIZE = 20


class Currency(str, Enum):
    COINS = "coins"
    GEMS = "gems"
    ESSENCE = "essence"


class ProgressionLedger:
    """Level, XP, currencies, energy, achievement counters and unlocks.

    - XP is per level: on level up the threshold is subtracted.
    - Level ups grant coins scaled by the new level, raise the energy cap,
      refill energy and auto-unlock recipes whose required level is met.
    - Achievements complete at most once; completion order is kept in
      ``completed_achievements`` which is only ever appended to.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: Optional[GameConfig] = None,
        events: Optional[EventQueue] = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or GameConfig()
        self.events = events if events is not None else EventQueue()
        self.curve = XPCurve(self.config.base_xp, self.config.xp_growth, self.config.max_level)

        self.level = 1
        self.current_xp = 0
        self._balances: Dict[Currency, int] = {
            Currency.COINS: self.config.starting_coins,
            Currency.GEMS: self.config.starting_gems,
            Currency.ESSENCE: self.config.starting_essence,
        }
        self.max_energy = self.config.max_energy
        self.energy = self.config.starting_energy
        self.stats: Dict[str, int] = {}
        self.unlocked_recipes: Set[str] = set()
        self._completed: List[str] = []
        self.relationships: Dict[str, int] = {}

        self._leveling = False
        self._last_regen: Optional[float] = None

    # Leveling

    @property
    def max_level(self) -> int:
        return self.curve.max_level

    def required_for_level(self, level: int) -> int:
        return self.curve.required_for_level(level)

    def xp_to_next(self) -> Optional[int]:
        return self.curve.xp_to_next(self.level, self.current_xp)

    def level_progress(self) -> float:
        if self.max_level <= 1:
            return 0.0
        return (self.level - 1) / (self.max_level - 1)

    def add_xp(self, amount: int, source: str = "adjust") -> int:
        """Add XP and level up while the next threshold is met. Returns levels gained.

        XP awarded from inside a level up (achievement rewards) is folded into
        the running loop instead of starting a nested one.
        """
        if amount < 0:
            raise ValueError("XP amount cannot be negative")
        if amount == 0:
            return 0
        self.current_xp += amount
        self.events.append(XPAwarded(amount=amount, source=source))
        logger.debug("XP +%d (%s) -> %d at level %d", amount, source, self.current_xp, self.level)
        if self._leveling:
            return 0

        start = self.level
        self._leveling = True
        try:
            while self.level < self.max_level:
                needed = self.required_for_level(self.level + 1)
                if self.current_xp < needed:
                    break
                self.current_xp -= needed
                self._level_up()
        finally:
            self._leveling = False
        return self.level - start

    def _level_up(self) -> None:
        old = self.level
        self.level += 1
        coins = self.config.coins_per_level * self.level
        self._credit(Currency.COINS, coins, reason="level_up")
        self.max_energy += self.config.energy_per_level
        self._set_energy(self.max_energy, reason="level_up")
        self.events.append(LevelUp(from_level=old, to_level=self.level, coins_awarded=coins))
        logger.info("Level up: %d -> %d (+%d coins)", old, self.level, coins)
        self.unlock_recipes_for_level()
        self.check_achievements()

    def unlock_recipes_for_level(self) -> List[str]:
        unlocked = []
        for recipe in self.catalog.recipes_for_level(self.level):
            if self.unlock_recipe(recipe.id):
                unlocked.append(recipe.id)
        return unlocked

    def unlock_recipe(self, recipe_id: str) -> bool:
        """Idempotent. Returns True only when the id was newly unlocked."""
        if recipe_id in self.unlocked_recipes:
            return False
        self.unlocked_recipes.add(recipe_id)
        self.events.append(RecipeUnlocked(recipe_id=recipe_id))
        logger.info("Recipe unlocked: %s", recipe_id)
        return True

    # Achievements

    @property
    def completed_achievements(self) -> tuple:
        return tuple(self._completed)

    def is_completed(self, achievement_id: str) -> bool:
        return achievement_id in self._completed

    def track_progress(self, stat: str, amount: int = 1) -> List[str]:
        """Increment a named counter and complete any achievement it now satisfies."""
        if amount < 0:
            raise ValueError("Progress counters never decrease")
        self.stats[stat] = self.stats.get(stat, 0) + amount
        logger.debug("Progress %s +%d -> %d", stat, amount, self.stats[stat])
        return self.check_achievements(stat)

    def achievement_progress(self, achievement_id: str) -> int:
        achievement = self.catalog.achievement(achievement_id)
        if achievement.kind == AchievementKind.LEVEL:
            return self.level
        return self.stats.get(achievement.stat or "", 0)

    def _is_met(self, achievement: AchievementDefinition) -> bool:
        if self.level < achievement.required_level:
            return False
        if achievement.kind == AchievementKind.LEVEL:
            return self.level >= achievement.required_value
        return self.stats.get(achievement.stat or "", 0) >= achievement.required_value

    def check_achievements(self, stat: Optional[str] = None) -> List[str]:
        """Complete every met achievement (bound to ``stat`` if given). Safe to repeat."""
        if stat is None:
            candidates = self.catalog.achievements
        else:
            candidates = self.catalog.achievements_for_stat(stat)
        completed = []
        for achievement in candidates:
            if not self.is_completed(achievement.id) and self._is_met(achievement):
                if self.complete_achievement(achievement.id):
                    completed.append(achievement.id)
        return completed

    def complete_achievement(self, achievement_id: str) -> bool:
        """Complete and reward an achievement exactly once."""
        if self.is_completed(achievement_id):
            return False
        achievement = self.catalog.achievement(achievement_id)
        # Mark first so rewards that re-enter (XP -> level up -> check) cannot award twice
        self._completed.append(achievement_id)
        self._credit(Currency.COINS, achievement.coin_reward, reason="achievement")
        self._credit(Currency.GEMS, achievement.gem_reward, reason="achievement")
        self._credit(Currency.ESSENCE, achievement.essence_reward, reason="achievement")
        self.events.append(
            AchievementCompleted(
                achievement_id=achievement_id,
                coins=achievement.coin_reward,
                gems=achievement.gem_reward,
                essence=achievement.essence_reward,
                xp=achievement.xp_reward,
            )
        )
        logger.info("Achievement completed: %s", achievement_id)
        self.add_xp(achievement.xp_reward, source=f"achievement:{achievement_id}")
        return True

    # Currencies

    def balance(self, currency: Currency) -> int:
        return self._balances[Currency(currency)]

    @property
    def coins(self) -> int:
        return self._balances[Currency.COINS]

    @property
    def gems(self) -> int:
        return self._balances[Currency.GEMS]

    @property
    def essence(self) -> int:
        return self._balances[Currency.ESSENCE]

    def _credit(self, currency: Currency, amount: int, reason: str) -> None:
        if amount == 0:
            return
        old = self._balances[currency]
        new = old + amount
        if new < 0:
            logger.error("%s balance would go negative: %d%+d", currency.value, old, amount)
            raise InvariantViolationError(f"{currency.value} balance would go negative")
        self._balances[currency] = new
        self.events.append(
            CurrencyChanged(currency=currency.value, old_amount=old, new_amount=new, delta=amount, reason=reason)
        )
        logger.debug("%s %+d (%s): %d -> %d", currency.value, amount, reason, old, new)

    def earn(self, currency: Currency, amount: int, reason: str = "grant") -> int:
        if amount < 0:
            raise ValueError("Cannot earn a negative amount; use spend()")
        currency = Currency(currency)
        self._credit(currency, amount, reason)
        if currency == Currency.COINS and amount > 0:
            self.track_progress("coins_earned", amount)
        return self._balances[currency]

    def can_afford(self, coins: int = 0, gems: int = 0, essence: int = 0) -> bool:
        return (
            self._balances[Currency.COINS] >= coins
            and self._balances[Currency.GEMS] >= gems
            and self._balances[Currency.ESSENCE] >= essence
        )

    def spend(self, currency: Currency, amount: int, reason: str = "purchase") -> int:
        currency = Currency(currency)
        if amount < 0:
            raise ValueError("Cannot spend a negative amount")
        have = self._balances[currency]
        if amount > have:
            raise InsufficientFundsError(f"Cannot spend {amount} {currency.value}; only {have} available")
        self._credit(currency, -amount, reason)
        return self._balances[currency]

    def spend_many(self, coins: int = 0, gems: int = 0, essence: int = 0, reason: str = "purchase") -> None:
        """Spend several currencies all-or-nothing."""
        if min(coins, gems, essence) < 0:
            raise ValueError("Cannot spend a negative amount")
        if not self.can_afford(coins, gems, essence):
            raise InsufficientFundsError(
                f"Need {coins} coins, {gems} gems, {essence} essence; have "
                f"{self.coins}/{self.gems}/{self.essence}"
            )
        self._credit(Currency.COINS, -coins, reason)
        self._credit(Currency.GEMS, -gems, reason)
        self._credit(Currency.ESSENCE, -essence, reason)

    # Energy

    def _set_energy(self, value: int, reason: str) -> None:
        if not 0 <= value <= self.max_energy:
            logger.error("Energy %d outside [0, %d]", value, self.max_energy)
            raise InvariantViolationError(f"Energy {value} outside [0, {self.max_energy}]")
        old = self.energy
        self.energy = value
        if old != value:
            self.events.append(EnergyChanged(old_amount=old, new_amount=value, reason=reason))

    def has_energy(self, amount: int) -> bool:
        return self.energy >= amount

    def use_energy(self, amount: int, reason: str = "use") -> int:
        if amount < 0:
            raise ValueError("Cannot use a negative amount of energy")
        if amount > self.energy:
            raise InsufficientEnergyError(f"Need {amount} energy, have {self.energy}")
        self._set_energy(self.energy - amount, reason)
        return self.energy

    def add_energy(self, amount: int, reason: str = "refill") -> int:
        """Add energy capped at ``max_energy``. Returns the amount actually added."""
        if amount < 0:
            raise ValueError("Cannot add a negative amount of energy")
        new = min(self.energy + amount, self.max_energy)
        added = new - self.energy
        self._set_energy(new, reason)
        return added

    def regenerate(self, now: float) -> int:
        """Passive regeneration: one point per ``60 / energy_regen_per_minute`` seconds."""
        rate = self.config.energy_regen_per_minute
        if self._last_regen is None or rate <= 0:
            self._last_regen = now
            return 0
        interval = 60.0 / rate
        elapsed = now - self._last_regen
        points = int(math.floor(elapsed / interval))
        if points <= 0:
            return 0
        self._last_regen += points * interval
        return self.add_energy(points, reason="regen")

    # Relationships

    def update_relationship(self, npc_id: str, change: int) -> int:
        old = self.relationships.get(npc_id, 0)
        new = max(RELATIONSHIP_MIN, min(RELATIONSHIP_MAX, old + change))
        self.relationships[npc_id] = new
        if new != old:
            self.events.append(RelationshipChanged(npc_id=npc_id, old_value=old, new_value=new))
        return new

    def relationship_level(self, npc_id: str) -> int:
        return self.relationships.get(npc_id, 0) // RELATIONSHIP_TIER_SIZE

    # Snapshot support

    def export_state(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "current_xp": self.current_xp,
            "coins": self.coins,
            "gems": self.gems,
            "essence": self.essence,
            "energy": self.energy,
            "max_energy": self.max_energy,
            "stats": dict(self.stats),
            "unlocked_recipes": sorted(self.unlocked_recipes),
            "completed_achievements": list(self._completed),
            "relationships": dict(self.relationships),
        }

    def import_state(self, state: Dict[str, Any]) -> None:
        """Replace ledger fields wholesale. ``state`` must already be validated."""
        self.level = int(state["level"])
        self.current_xp = int(state["current_xp"])
        self._balances = {
            Currency.COINS: int(state["coins"]),
            Currency.GEMS: int(state["gems"]),
            Currency.ESSENCE: int(state["essence"]),
        }
        self.max_energy = int(state["max_energy"])
        self.energy = int(state["energy"])
        self.stats = {str(k): int(v) for k, v in state.get("stats", {}).items()}
        self.unlocked_recipes = set(state.get("unlocked_recipes", []))
        self._completed = list(state.get("completed_achievements", []))
        self.relationships = {str(k): int(v) for k, v in state.get("relationships", {}).items()}
        self._last_regen = None
