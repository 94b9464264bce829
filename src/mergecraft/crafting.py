from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .catalog.catalog import Catalog
from .catalog.models import Quality, RecipeDefinition
from .config import GameConfig
from .events import CraftCancelled, CraftFailed, CraftStarted, CraftSucceeded, EventQueue
from .exceptions import CraftRejectedError, CraftStateError, IngredientsChangedError, RejectionReason
from .inventory import Inventory, requirements_for
from .progression.ledger import ProgressionLedger
from .rng import UniformSource

logger = logging.getLogger(__name__)


class CraftState(str, Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Eligibility:
    recipe_id: str
    reason: Optional[RejectionReason] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class CraftJob:
    recipe: RecipeDefinition
    quality: Quality
    started_at: float
    ready_at: float

    def remaining(self, now: float) -> float:
        return max(0.0, self.ready_at - now)


@dataclass(frozen=True)
class CraftOutcome:
    recipe_id: str
    quality: Quality
    succeeded: bool
    chance: int
    roll: int
    result_id: Optional[str] = None
    quantity: int = 0
    xp: int = 0
    # "roll" or "ingredients_changed" when the craft failed
    reason: Optional[str] = None


def apply_quality(base_chance: int, quality: Quality) -> int:
    return int(round(base_chance * quality.success_factor))


def output_quantity(recipe: RecipeDefinition, quality: Quality) -> int:
    return int(round(recipe.result_quantity * quality.output_multiplier))


class CraftingEngine:
    """Recipe eligibility, timed crafting and stochastic resolution.

    State machine per attempt::

        IDLE -> EVALUATING -> REJECTED -> IDLE
                           -> IN_PROGRESS -> SUCCEEDED | FAILED -> IDLE
                              IN_PROGRESS -> (cancel) -> IDLE

    Ingredients are only consumed on success; a failed roll keeps them.
    """

    def __init__(
        self,
        catalog: Catalog,
        inventory: Inventory,
        ledger: ProgressionLedger,
        events: EventQueue,
        rng: UniformSource,
        config: Optional[GameConfig] = None,
    ) -> None:
        self.catalog = catalog
        self.inventory = inventory
        self.ledger = ledger
        self.events = events
        self.rng = rng
        self.config = config or GameConfig()
        self.state = CraftState.IDLE
        self.job: Optional[CraftJob] = None
        self.last_outcome: Optional[CraftOutcome] = None

    def _transition(self, new: CraftState) -> None:
        logger.debug("Craft state %s -> %s", self.state.value, new.value)
        self.state = new

    # Eligibility

    def _requirements(self, recipe: RecipeDefinition):
        return requirements_for(recipe.ingredients, self.catalog.element)

    def can_craft(self, recipe: RecipeDefinition) -> Eligibility:
        """Level, unlock and ingredient checks, in that order."""
        if self.ledger.level < recipe.required_level:
            return Eligibility(
                recipe.id,
                RejectionReason.LEVEL_TOO_LOW,
                f"level {self.ledger.level} < {recipe.required_level}",
            )
        if recipe.id not in self.ledger.unlocked_recipes:
            return Eligibility(recipe.id, RejectionReason.RECIPE_LOCKED)
        short = self.inventory.missing(self._requirements(recipe))
        if short:
            detail = ", ".join(f"{d.id} x{n}" for d, n in short)
            return Eligibility(recipe.id, RejectionReason.INSUFFICIENT_INGREDIENTS, f"missing {detail}")
        return Eligibility(recipe.id)

    def available_recipes(self) -> List[RecipeDefinition]:
        return [
            r
            for r in self.catalog.recipes
            if r.id in self.ledger.unlocked_recipes and self.ledger.level >= r.required_level
        ]

    def craftable_recipes(self) -> List[RecipeDefinition]:
        return [r for r in self.catalog.recipes if self.can_craft(r).ok]

    def unlock_recipe(self, recipe_id: str) -> bool:
        self.catalog.recipe(recipe_id)
        return self.ledger.unlock_recipe(recipe_id)

    # Odds

    def base_success(self, recipe: RecipeDefinition) -> int:
        chance = recipe.base_success
        chance += self.config.level_success_bonus * (self.ledger.level - recipe.required_level)
        if recipe.has_puzzle:
            chance += self.config.puzzle_success_bonus
        return max(0, min(100, chance))

    def success_chance(self, recipe: RecipeDefinition, quality: Quality = Quality.NORMAL) -> int:
        return apply_quality(self.base_success(recipe), quality)

    # Lifecycle

    def begin_craft(self, recipe: RecipeDefinition, quality: Quality = Quality.NORMAL, now: float = 0.0) -> CraftJob:
        if self.state == CraftState.IN_PROGRESS:
            raise CraftStateError(f"Already crafting {self.job.recipe.id if self.job else '?'}")
        quality = Quality(quality)
        self._transition(CraftState.EVALUATING)
        eligibility = self.can_craft(recipe)
        if not eligibility.ok:
            self._transition(CraftState.REJECTED)
            self._transition(CraftState.IDLE)
            raise CraftRejectedError(recipe.id, eligibility.reason, eligibility.detail)
        self.job = CraftJob(recipe, quality, started_at=now, ready_at=now + recipe.crafting_duration)
        self._transition(CraftState.IN_PROGRESS)
        self.events.append(CraftStarted(recipe_id=recipe.id, quality=quality.value, ready_at=self.job.ready_at))
        logger.debug("Started crafting %s (%s), ready at %.2f", recipe.id, quality.value, self.job.ready_at)
        return self.job

    def cancel(self) -> None:
        """Abort the running craft. Nothing was consumed, so nothing is refunded."""
        if self.state != CraftState.IN_PROGRESS or self.job is None:
            raise CraftStateError("No craft in progress")
        recipe_id = self.job.recipe.id
        self.job = None
        self._transition(CraftState.IDLE)
        self.events.append(CraftCancelled(recipe_id=recipe_id))
        logger.debug("Cancelled craft %s", recipe_id)

    def remaining(self, now: float) -> Optional[float]:
        if self.job is None:
            return None
        return self.job.remaining(now)

    def tick(self, now: float) -> Optional[CraftOutcome]:
        """Resolve the running craft once its duration has elapsed."""
        if self.state != CraftState.IN_PROGRESS or self.job is None:
            return None
        if now < self.job.ready_at:
            return None
        return self.resolve(self.job.recipe, now=now)

    def resolve(self, recipe: RecipeDefinition, quality: Optional[Quality] = None, *, now: float) -> CraftOutcome:
        """Roll for the running craft of ``recipe`` and apply the result.

        Only a job started with :meth:`begin_craft` can be resolved, and only
        once ``now`` reaches its ``ready_at``. ``quality`` defaults to the
        job's; passing a different one is an error.

        Raises IngredientsChangedError, after moving through FAILED back to
        IDLE, if a successful roll finds the ingredients gone. The failed
        outcome is kept in ``last_outcome``.
        """
        job = self.job
        if self.state != CraftState.IN_PROGRESS or job is None:
            raise CraftStateError(f"No craft of {recipe.id} in progress")
        if job.recipe.id != recipe.id:
            raise CraftStateError(f"Resolving {recipe.id} while {job.recipe.id} is in progress")
        if quality is not None and Quality(quality) != job.quality:
            raise CraftStateError(
                f"{recipe.id} was started at {job.quality.value} quality, not {Quality(quality).value}"
            )
        if now < job.ready_at:
            raise CraftStateError(f"{recipe.id} is not ready for another {job.remaining(now):.2f}s")

        quality = job.quality
        chance = self.success_chance(recipe, quality)
        roll = self.rng.randrange(100)
        self.job = None

        if roll >= chance:
            self._transition(CraftState.FAILED)
            outcome = CraftOutcome(recipe.id, quality, succeeded=False, chance=chance, roll=roll, reason="roll")
            self.events.append(
                CraftFailed(recipe_id=recipe.id, quality=quality.value, roll=roll, chance=chance, reason="roll")
            )
            logger.debug("Craft %s failed: roll %d >= %d", recipe.id, roll, chance)
            return self._finish(outcome)

        requirements = self._requirements(recipe)
        if self.inventory.missing(requirements):
            self._transition(CraftState.FAILED)
            self.events.append(
                CraftFailed(
                    recipe_id=recipe.id, quality=quality.value, roll=roll, chance=chance, reason="ingredients_changed"
                )
            )
            self._finish(
                CraftOutcome(
                    recipe.id, quality, succeeded=False, chance=chance, roll=roll, reason="ingredients_changed"
                )
            )
            raise IngredientsChangedError(f"Ingredients for {recipe.id} are no longer available")

        self.inventory.remove_many(requirements)
        result = self.catalog.element(recipe.result_id)
        quantity = output_quantity(recipe, quality)
        self.inventory.add(result, quantity)
        xp = recipe.craft_xp()
        self._transition(CraftState.SUCCEEDED)
        self.events.append(
            CraftSucceeded(
                recipe_id=recipe.id,
                quality=quality.value,
                result_id=result.id,
                quantity=quantity,
                roll=roll,
                chance=chance,
            )
        )
        logger.info("Crafted %d x %s from %s (%s)", quantity, result.id, recipe.id, quality.value)
        self.ledger.add_xp(xp, source="craft")
        self.ledger.track_progress("crafts")
        outcome = CraftOutcome(
            recipe.id, quality, succeeded=True, chance=chance, roll=roll, result_id=result.id, quantity=quantity, xp=xp
        )
        return self._finish(outcome)

    def restore_job(self, job: Optional[CraftJob]) -> None:
        """Reinstate a running craft from a snapshot (or clear it with None)."""
        self.job = job
        self.state = CraftState.IN_PROGRESS if job is not None else CraftState.IDLE
        self.last_outcome = None

    def _finish(self, outcome: CraftOutcome) -> CraftOutcome:
        self.last_outcome = outcome
        self._transition(CraftState.IDLE)
        return outcome
