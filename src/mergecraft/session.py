from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from .catalog.catalog import Catalog
from .clock import Clock, ManualClock
from .config import GameConfig
from .crafting import CraftingEngine, CraftOutcome
from .economy import Economy
from .events import EventQueue
from .exceptions import IngredientsChangedError
from .generators import ProductionResult, ProductionScheduler
from .grid import ElementInstance, Grid
from .inventory import Inventory
from .merge import MergeEngine
from .progression.ledger import ProgressionLedger
from .rng import RandomSource, UniformSource

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    now: float
    energy_regenerated: int = 0
    productions: List[ProductionResult] = field(default_factory=list)
    craft: Optional[CraftOutcome] = None

    @property
    def produced(self) -> int:
        return sum(1 for p in self.productions if p.produced)


class GameSession:
    """Wires the engines together around one grid, inventory and ledger.

    Everything is injected: the catalog, tuning config, random source and
    clock. Tests hand in a scripted random source and a manual clock.
    """

    def __init__(
        self,
        catalog: Catalog,
        config: Optional[GameConfig] = None,
        rng: Optional[UniformSource] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.catalog = catalog
        self.config = config or GameConfig()
        self.config.validate()
        self.rng = rng if rng is not None else RandomSource()
        self.clock = clock if clock is not None else ManualClock()
        self._build()

    def _build(self) -> None:
        cfg = self.config
        self.events = EventQueue()
        self.grid = Grid(cfg.grid_width, cfg.grid_height)
        self.inventory = Inventory()
        self.ledger = ProgressionLedger(self.catalog, cfg, self.events)
        self.merge = MergeEngine(self.grid, self.catalog, self.ledger, self.inventory, self.events, cfg)
        self.scheduler = ProductionScheduler(self.grid, self.catalog, self.ledger, self.events, self.rng, cfg)
        self.crafting = CraftingEngine(self.catalog, self.inventory, self.ledger, self.events, self.rng, cfg)
        self.economy = Economy(self.catalog, self.inventory, self.ledger, self.events, cfg)

    def new_game(self, starting_elements: Iterable[str] = ()) -> None:
        """Reset to a fresh game and drop ``starting_elements`` on random empty cells."""
        self._build()
        self.ledger.unlock_recipes_for_level()
        now = self.clock.now()
        self.ledger.regenerate(now)
        for element_id in starting_elements:
            self.spawn(element_id)
        self.scheduler.sync(now)
        logger.info("New game on a %dx%d grid", self.grid.width, self.grid.height)

    def now(self) -> float:
        return self.clock.now()

    def spawn(self, element_id: str, position: Optional[Tuple[int, int]] = None) -> ElementInstance:
        """Place an element at ``position``, or on a random empty cell."""
        definition = self.catalog.element(element_id)
        if position is None:
            cell = self.grid.random_empty_cell(self.rng)
        else:
            cell = self.grid.cell(*position)
        return self.merge.place_element(cell, definition)

    def tick(self, now: Optional[float] = None) -> TickReport:
        """Advance regeneration, then generators, then the running craft.

        A craft whose ingredients vanished comes back as a failed
        ``report.craft`` instead of raising, so the production results
        are not lost.
        """
        if now is None:
            now = self.clock.now()
        report = TickReport(now=now)
        report.energy_regenerated = self.ledger.regenerate(now)
        report.productions = self.scheduler.tick(now)
        try:
            report.craft = self.crafting.tick(now)
        except IngredientsChangedError as exc:
            logger.warning("%s", exc)
            report.craft = self.crafting.last_outcome
        return report

    def drain_events(self) -> List[object]:
        return self.events.drain()

    def auto_merge(self) -> int:
        """Merge every adjacent compatible pair, cascading each result. Returns merges done."""
        merges = 0
        while True:
            pair = next(iter(self.grid.find_merge_candidates()), None)
            if pair is None:
                return merges
            source, target = pair
            self.merge.resolve_merge(source, target)
            merges += 1 + self.merge.cascade(target)

    def summary(self) -> dict:
        ledger = self.ledger
        return {
            "level": ledger.level,
            "xp": ledger.current_xp,
            "coins": ledger.coins,
            "gems": ledger.gems,
            "essence": ledger.essence,
            "energy": ledger.energy,
            "max_energy": ledger.max_energy,
            "grid_occupied": len(self.grid.occupied_cells()),
            "inventory": {f"{e.element_id}@{e.tier}": e.quantity for e in self.inventory.entries()},
            "stats": dict(sorted(ledger.stats.items())),
            "achievements": list(ledger.completed_achievements),
            "unlocked_recipes": sorted(ledger.unlocked_recipes),
        }
