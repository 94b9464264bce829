from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from .catalog.catalog import Catalog
from .catalog.models import GeneratorSpec
from .config import GameConfig
from .events import ElementPlaced, EventQueue, GeneratorUpgraded, ProductionCompleted
from .exceptions import InsufficientFundsError, InvariantViolationError, NoEmptyCellError
from .grid import ElementInstance, Grid
from .progression.ledger import Currency, ProgressionLedger
from .rng import UniformSource

logger = logging.getLogger(__name__)


class ProductionStatus(str, Enum):
    PRODUCED = "produced"
    NOT_READY = "not_ready"
    NO_ENERGY = "no_energy"
    NO_SPACE = "no_space"
    DETACHED = "detached"


@dataclass(frozen=True)
class ProductionResult:
    status: ProductionStatus
    element_id: Optional[str] = None
    position: Optional[tuple] = None

    @property
    def produced(self) -> bool:
        return self.status == ProductionStatus.PRODUCED


class GeneratorTimer:
    """Production clock bound to one generator instance on the grid.

    Running out of energy or space is a steady state: the tick reports it and
    the next tick simply tries again.
    """

    def __init__(
        self,
        instance: ElementInstance,
        grid: Grid,
        catalog: Catalog,
        ledger: ProgressionLedger,
        events: EventQueue,
        rng: UniformSource,
        now: float,
        config: Optional[GameConfig] = None,
        level: int = 1,
    ) -> None:
        spec = instance.definition.generator
        if spec is None:
            logger.error("Element %s is not a generator", instance.definition.id)
            raise InvariantViolationError(f"Element {instance.definition.id} is not a generator")
        self.instance = instance
        self.spec: GeneratorSpec = spec
        self.grid = grid
        self.catalog = catalog
        self.ledger = ledger
        self.events = events
        self.rng = rng
        self.config = config or GameConfig()
        self.level = max(1, min(level, spec.max_level))
        self.last_production_time = now

    @property
    def position(self) -> Optional[tuple]:
        return self.instance.position

    def period(self) -> float:
        return self.spec.period_for_level(self.level)

    def energy_cost(self) -> int:
        return self.spec.cost_for_level(self.level)

    def upgrade_cost(self) -> int:
        return self.spec.upgrade_cost(self.level)

    def progress(self, now: float) -> float:
        elapsed = now - self.last_production_time
        return max(0.0, min(1.0, elapsed / self.period()))

    def is_ready(self, now: float) -> bool:
        return now - self.last_production_time >= self.period()

    def tick(self, now: float) -> ProductionResult:
        if not self.is_ready(now):
            return ProductionResult(ProductionStatus.NOT_READY)
        return self._produce(now)

    def activate(self, now: float) -> ProductionResult:
        """Manual activation: produce right away if energy and space allow."""
        return self._produce(now)

    def _produce(self, now: float) -> ProductionResult:
        if self.instance.cell is None:
            return ProductionResult(ProductionStatus.DETACHED)
        cost = self.energy_cost()
        if not self.ledger.has_energy(cost):
            logger.debug("Generator %s at %s waiting for energy (%d needed)", self.spec.output_id, self.position, cost)
            return ProductionResult(ProductionStatus.NO_ENERGY)
        output = self.catalog.element(self.spec.output_id)
        try:
            claim = self.grid.claim_random_empty_cell(self.rng)
        except NoEmptyCellError:
            logger.debug("Generator at %s has no space to produce", self.position)
            return ProductionResult(ProductionStatus.NO_SPACE)

        with claim:
            self.ledger.use_energy(cost, reason="production")
            claim.commit(output)
        self.last_production_time = now
        target = claim.cell.position
        self.events.append(ElementPlaced(position=target, element_id=output.id, reason="production"))
        self.events.append(
            ProductionCompleted(
                generator_position=self.position, target=target, element_id=output.id, energy_spent=cost
            )
        )
        logger.debug("Generator at %s produced %s at %s", self.position, output.id, target)
        self.ledger.add_xp(self.config.production_xp, source="production")
        self.ledger.track_progress("elements_generated")
        return ProductionResult(ProductionStatus.PRODUCED, element_id=output.id, position=target)

    def can_upgrade(self) -> bool:
        return self.level < self.spec.max_level and self.ledger.coins >= self.upgrade_cost()

    def upgrade(self) -> int:
        if self.level >= self.spec.max_level:
            raise InsufficientFundsError(f"Generator already at max level {self.spec.max_level}")
        cost = self.upgrade_cost()
        if self.ledger.coins < cost:
            raise InsufficientFundsError(f"Upgrade needs {cost} coins; only {self.ledger.coins} available")
        self.ledger.spend(Currency.COINS, cost, reason="generator_upgrade")
        old = self.level
        self.level += 1
        self.events.append(GeneratorUpgraded(position=self.position, from_level=old, to_level=self.level, cost=cost))
        logger.info("Generator at %s upgraded %d -> %d for %d coins", self.position, old, self.level, cost)
        return self.level


class ProductionScheduler:
    """Keeps one timer per generator instance on the grid and ticks them in grid order."""

    def __init__(
        self,
        grid: Grid,
        catalog: Catalog,
        ledger: ProgressionLedger,
        events: EventQueue,
        rng: UniformSource,
        config: Optional[GameConfig] = None,
    ) -> None:
        self.grid = grid
        self.catalog = catalog
        self.ledger = ledger
        self.events = events
        self.rng = rng
        self.config = config or GameConfig()
        self._timers: Dict[int, GeneratorTimer] = {}

    def sync(self, now: float) -> None:
        """Start timers for new generators and drop timers of removed ones."""
        live: Dict[int, ElementInstance] = {
            id(i): i for i in self.grid.instances() if i.definition.is_generator
        }
        for key in list(self._timers):
            if key not in live or self._timers[key].instance is not live[key]:
                logger.debug("Dropping timer for generator %s", self._timers[key].instance.definition.id)
                del self._timers[key]
        for key, instance in live.items():
            if key not in self._timers:
                self._timers[key] = self._make_timer(instance, now)
                self.ledger.track_progress("generators_built")

    def _make_timer(self, instance: ElementInstance, now: float, level: int = 1) -> GeneratorTimer:
        return GeneratorTimer(
            instance, self.grid, self.catalog, self.ledger, self.events, self.rng, now, self.config, level=level
        )

    def timer_at(self, position: tuple) -> Optional[GeneratorTimer]:
        for timer in self._timers.values():
            if timer.position == tuple(position):
                return timer
        return None

    def timers(self) -> List[GeneratorTimer]:
        return sorted(self._timers.values(), key=lambda t: (t.position[1], t.position[0]))

    def tick(self, now: float) -> List[ProductionResult]:
        self.sync(now)
        return [timer.tick(now) for timer in self.timers()]

    def restore_timer(self, instance: ElementInstance, level: int, last_production_time: float) -> GeneratorTimer:
        timer = self._make_timer(instance, last_production_time, level=level)
        self._timers[id(instance)] = timer
        return timer

    def reset(self) -> None:
        self._timers.clear()
