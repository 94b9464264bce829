from __future__ import annotations

import logging
from typing import Optional

from .catalog.catalog import Catalog
from .catalog.models import ElementDefinition
from .config import GameConfig
from .events import ElementMoved, ElementPlaced, ElementRemoved, EventQueue, MergeCompleted
from .exceptions import EmptyCellError, IncompatibleMergeError, InvalidMoveError, OccupiedCellError
from .grid import Cell, ElementInstance, Grid
from .inventory import Inventory
from .progression.ledger import ProgressionLedger

logger = logging.getLogger(__name__)


class MergeEngine:
    """Placement, movement and merge resolution on a :class:`Grid`.

    Every operation validates before it mutates, so a raised
    GameValidationError leaves grid, inventory and ledger untouched.
    Merges award a flat XP amount and bump the ``merges`` counter.
    """

    def __init__(
        self,
        grid: Grid,
        catalog: Catalog,
        ledger: ProgressionLedger,
        inventory: Inventory,
        events: EventQueue,
        config: Optional[GameConfig] = None,
    ) -> None:
        self.grid = grid
        self.catalog = catalog
        self.ledger = ledger
        self.inventory = inventory
        self.events = events
        self.config = config or GameConfig()

    def can_accept(self, cell: Cell, incoming: ElementDefinition) -> bool:
        return self.grid.can_accept(cell, incoming)

    def place_element(self, cell: Cell, definition: ElementDefinition) -> ElementInstance:
        """Place onto an empty cell, or merge into a compatible occupant."""
        occupant = cell.occupant
        if occupant is None:
            if cell.reserved:
                raise OccupiedCellError(f"{cell!r} is reserved for production")
            instance = self.grid.attach(cell, ElementInstance(definition))
            self.events.append(ElementPlaced(position=cell.position, element_id=definition.id, reason="place"))
            logger.debug("Placed %s at %s", definition.id, cell.position)
            return instance
        if not occupant.definition.can_merge_with(definition):
            raise OccupiedCellError(
                f"{cell!r} holds {occupant.definition.id}, which cannot merge with {definition.id}"
            )
        result = self.catalog.merge_result(occupant.definition)
        self.grid.detach(cell)
        merged = self.grid.attach(cell, ElementInstance(result))
        self._after_merge(cell, cell, definition, result, chained=False)
        return merged

    def resolve_merge(self, source: Cell, target: Cell, *, chained: bool = False) -> ElementInstance:
        """Consume both occupants and create one of the next tier in ``target``."""
        if source is target:
            raise IncompatibleMergeError("Cannot merge a cell with itself")
        if source.occupant is None or target.occupant is None:
            raise IncompatibleMergeError(f"Both cells must be occupied to merge ({source!r}, {target!r})")
        incoming = source.occupant.definition
        if not target.occupant.definition.can_merge_with(incoming):
            raise IncompatibleMergeError(
                f"{incoming.id} (tier {incoming.tier}) cannot merge with "
                f"{target.occupant.definition.id} (tier {target.occupant.definition.tier})"
            )
        # Resolve before mutating: a missing target is a catalog bug and must abort cleanly
        result = self.catalog.merge_result(target.occupant.definition)

        self.grid.detach(source)
        self.grid.detach(target)
        merged = self.grid.attach(target, ElementInstance(result))
        self._after_merge(source, target, incoming, result, chained=chained)
        return merged

    def _after_merge(
        self,
        source: Cell,
        target: Cell,
        consumed: ElementDefinition,
        result: ElementDefinition,
        chained: bool,
    ) -> None:
        logger.debug("Merged %s at %s -> %s at %s", consumed.id, source.position, result.id, target.position)
        self.events.append(
            MergeCompleted(
                source=source.position,
                target=target.position,
                consumed_id=consumed.id,
                result_id=result.id,
                result_tier=result.tier,
                chained=chained,
            )
        )
        self.ledger.add_xp(self.config.merge_xp, source="merge")
        self.ledger.track_progress("merges")
        if result.tier >= self.config.high_tier_threshold:
            self.ledger.track_progress("high_level_elements")

    def move_element(self, source: Cell, target: Cell) -> ElementInstance:
        if source is target:
            raise InvalidMoveError("Source and target are the same cell")
        if source.occupant is None:
            raise EmptyCellError(f"Nothing to move at {source.position}")
        if target.occupant is not None or target.reserved:
            raise InvalidMoveError(f"Target {target.position} is not empty")
        instance = self.grid.detach(source)
        self.grid.attach(target, instance)
        self.events.append(
            ElementMoved(source=source.position, target=target.position, element_id=instance.definition.id)
        )
        return instance

    def drop(self, source: Cell, target: Cell) -> ElementInstance:
        """Drag-and-drop semantics: merge onto a compatible occupant, otherwise move."""
        if target.occupant is not None:
            return self.resolve_merge(source, target)
        return self.move_element(source, target)

    def remove_element(self, cell: Cell) -> ElementDefinition:
        instance = self.grid.detach(cell)
        self.events.append(ElementRemoved(position=cell.position, element_id=instance.definition.id))
        return instance.definition

    def bank_element(self, cell: Cell) -> int:
        """Move an element off the grid into the inventory. Returns the banked count."""
        if cell.occupant is None:
            raise EmptyCellError(f"Nothing to bank at {cell.position}")
        if cell.occupant.definition.is_generator:
            raise InvalidMoveError("Generators stay on the grid")
        definition = self.remove_element(cell)
        return self.inventory.add(definition, 1)

    def chain_reaction(self, cell: Cell) -> Optional[ElementInstance]:
        """Opt-in follow-up pass after a merge into ``cell``.

        Performs at most one further merge with a compatible neighbour and
        returns the new instance, or None. Callers loop on the returned
        instance's cell if they want a full cascade; every step raises the
        tier, so the loop ends within the catalog's max tier depth.
        """
        if not self.config.enable_chain_reactions or cell.occupant is None:
            return None
        definition = cell.occupant.definition
        for neighbour in self.grid.adjacent_cells(cell):
            if neighbour.occupant is not None and neighbour.occupant.definition.can_merge_with(definition):
                return self.resolve_merge(neighbour, cell, chained=True)
        return None

    def cascade(self, cell: Cell) -> int:
        """Run :meth:`chain_reaction` until nothing merges. Returns merges performed."""
        merges = 0
        limit = self.catalog.max_tier_depth
        while merges < limit and self.chain_reaction(cell) is not None:
            merges += 1
        return merges
