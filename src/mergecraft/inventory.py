from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Tuple

from .catalog.models import ElementDefinition, Ingredient
from .exceptions import InsufficientQuantityError, InvariantViolationError

logger = logging.getLogger(__name__)

InventoryKey = Tuple[str, int]


@dataclass(frozen=True)
class InventoryEntry:
    element_id: str
    tier: int
    quantity: int


class Inventory:
    """
    Multiset of banked (off-grid) elements keyed by (element id, tier).

    Entries whose quantity drops to zero are deleted, never retained.
    """

    def __init__(self) -> None:
        self._counts: Dict[InventoryKey, int] = {}

    def quantity(self, definition: ElementDefinition) -> int:
        return self._counts.get(definition.key, 0)

    def quantity_of(self, element_id: str, tier: int) -> int:
        return self._counts.get((element_id, tier), 0)

    def has(self, definition: ElementDefinition, qty: int = 1) -> bool:
        return self.quantity(definition) >= qty

    def add(self, definition: ElementDefinition, qty: int = 1) -> int:
        if qty < 0:
            logger.error("Refusing to add negative quantity %d of %s", qty, definition.id)
            raise InvariantViolationError(f"Cannot add a negative quantity ({qty}) of {definition.id}")
        if qty == 0:
            return self.quantity(definition)
        new = self._counts.get(definition.key, 0) + qty
        self._counts[definition.key] = new
        logger.debug("Inventory +%d %s (tier %d) -> %d", qty, definition.id, definition.tier, new)
        return new

    def remove(self, definition: ElementDefinition, qty: int = 1) -> int:
        if qty < 0:
            logger.error("Refusing to remove negative quantity %d of %s", qty, definition.id)
            raise InvariantViolationError(f"Cannot remove a negative quantity ({qty}) of {definition.id}")
        have = self.quantity(definition)
        if have < qty:
            raise InsufficientQuantityError(f"Need {qty} of {definition.id}, only {have} banked")
        new = have - qty
        if new == 0:
            self._counts.pop(definition.key, None)
        else:
            self._counts[definition.key] = new
        logger.debug("Inventory -%d %s (tier %d) -> %d", qty, definition.id, definition.tier, new)
        return new

    def missing(self, requirements: Iterable[Tuple[ElementDefinition, int]]) -> List[Tuple[ElementDefinition, int]]:
        """Return (definition, shortfall) for every unmet requirement."""
        short = []
        for definition, qty in requirements:
            have = self.quantity(definition)
            if have < qty:
                short.append((definition, qty - have))
        return short

    def remove_many(self, requirements: Iterable[Tuple[ElementDefinition, int]]) -> None:
        """Remove several stacks all-or-nothing."""
        reqs = list(requirements)
        short = self.missing(reqs)
        if short:
            desc = ", ".join(f"{d.id} x{n}" for d, n in short)
            raise InsufficientQuantityError(f"Missing ingredients: {desc}")
        for definition, qty in reqs:
            self.remove(definition, qty)

    def entries(self) -> List[InventoryEntry]:
        return [InventoryEntry(eid, tier, qty) for (eid, tier), qty in sorted(self._counts.items())]

    def as_dict(self) -> Dict[InventoryKey, int]:
        return dict(self._counts)

    def load(self, counts: Mapping[InventoryKey, int]) -> None:
        """Replace the whole content, used by snapshot restore."""
        for key, qty in counts.items():
            if qty < 0:
                raise InvariantViolationError(f"Negative inventory quantity for {key}: {qty}")
        self._counts = {key: qty for key, qty in counts.items() if qty > 0}

    def total(self) -> int:
        return sum(self._counts.values())

    def __len__(self) -> int:
        return len(self._counts)

    def __contains__(self, definition: object) -> bool:
        return isinstance(definition, ElementDefinition) and definition.key in self._counts


def requirements_for(ingredients: Iterable[Ingredient], resolve) -> List[Tuple[ElementDefinition, int]]:
    """Pair recipe ingredients with their definitions via ``resolve(element_id)``."""
    return [(resolve(i.element_id), i.quantity) for i in ingredients]
