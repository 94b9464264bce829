from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from ..exceptions import InvariantViolationError, UnknownDefinitionError
from .models import AchievementDefinition, AchievementKind, ElementDefinition, ElementType, RecipeDefinition

logger = logging.getLogger(__name__)


class Catalog:
    """Immutable registry of element, recipe and achievement definitions.

    The catalog is assumed to be validated data (see :mod:`.loader`), but the
    constructor still refuses merge chains that do not terminate because the
    grid engine relies on it.
    """

    def __init__(
        self,
        elements: Iterable[ElementDefinition],
        recipes: Iterable[RecipeDefinition] = (),
        achievements: Iterable[AchievementDefinition] = (),
    ) -> None:
        self._elements: Dict[str, ElementDefinition] = {}
        for e in elements:
            if e.id in self._elements:
                raise ValueError(f"Duplicate element id: {e.id}")
            self._elements[e.id] = e
        self._recipes: Dict[str, RecipeDefinition] = {}
        for r in recipes:
            if r.id in self._recipes:
                raise ValueError(f"Duplicate recipe id: {r.id}")
            self._recipes[r.id] = r
        self._achievements: Dict[str, AchievementDefinition] = {}
        for a in achievements:
            if a.id in self._achievements:
                raise ValueError(f"Duplicate achievement id: {a.id}")
            self._achievements[a.id] = a
        self._max_depth = self._compute_max_depth()
        logger.debug(
            "Catalog built: %d elements, %d recipes, %d achievements (max tier depth %d)",
            len(self._elements),
            len(self._recipes),
            len(self._achievements),
            self._max_depth,
        )

    def _compute_max_depth(self) -> int:
        deepest = 0
        for element_id in self._elements:
            deepest = max(deepest, len(self.merge_chain(element_id)) - 1)
        return deepest

    # Lookups

    def element(self, element_id: str) -> ElementDefinition:
        try:
            return self._elements[element_id]
        except KeyError:
            raise UnknownDefinitionError(f"Unknown element id: {element_id}") from None

    def recipe(self, recipe_id: str) -> RecipeDefinition:
        try:
            return self._recipes[recipe_id]
        except KeyError:
            raise UnknownDefinitionError(f"Unknown recipe id: {recipe_id}") from None

    def achievement(self, achievement_id: str) -> AchievementDefinition:
        try:
            return self._achievements[achievement_id]
        except KeyError:
            raise UnknownDefinitionError(f"Unknown achievement id: {achievement_id}") from None

    def has_element(self, element_id: str) -> bool:
        return element_id in self._elements

    @property
    def elements(self) -> List[ElementDefinition]:
        return list(self._elements.values())

    @property
    def recipes(self) -> List[RecipeDefinition]:
        return list(self._recipes.values())

    @property
    def achievements(self) -> List[AchievementDefinition]:
        return list(self._achievements.values())

    def elements_by_type(self, element_type: ElementType) -> List[ElementDefinition]:
        return [e for e in self._elements.values() if e.type == element_type]

    def elements_by_tier(self, tier: int) -> List[ElementDefinition]:
        return [e for e in self._elements.values() if e.tier == tier]

    def generators(self) -> List[ElementDefinition]:
        return [e for e in self._elements.values() if e.is_generator]

    def recipes_for_level(self, level: int) -> List[RecipeDefinition]:
        return [r for r in self._recipes.values() if r.required_level <= level]

    def achievements_for_stat(self, stat: str) -> List[AchievementDefinition]:
        return [a for a in self._achievements.values() if a.stat == stat]

    def level_achievements(self) -> List[AchievementDefinition]:
        return [a for a in self._achievements.values() if a.kind == AchievementKind.LEVEL]

    # Merge chains

    def merge_result(self, definition: ElementDefinition) -> ElementDefinition:
        """Definition one tier higher. Missing targets are catalog bugs."""
        if definition.merge_target is None:
            raise InvariantViolationError(f"Element {definition.id} is terminal and has no merge target")
        target = self._elements.get(definition.merge_target)
        if target is None:
            logger.error("Element %s merges into unknown element %s", definition.id, definition.merge_target)
            raise InvariantViolationError(
                f"Element {definition.id} merges into unknown element {definition.merge_target}"
            )
        return target

    def merge_chain(self, element_id: str) -> List[ElementDefinition]:
        """Follow merge targets from ``element_id`` to the terminal tier (inclusive)."""
        chain = [self.element(element_id)]
        seen = {element_id}
        while chain[-1].merge_target is not None:
            nxt = chain[-1].merge_target
            if nxt in seen:
                logger.error("Merge chain cycle detected at %s", nxt)
                raise InvariantViolationError(f"Merge chain starting at {element_id} cycles through {nxt}")
            if nxt not in self._elements:
                logger.error("Merge chain of %s references unknown element %s", element_id, nxt)
                raise InvariantViolationError(f"Merge chain of {element_id} references unknown element {nxt}")
            seen.add(nxt)
            chain.append(self._elements[nxt])
        return chain

    @property
    def max_tier_depth(self) -> int:
        """Longest number of merge steps from any element to its terminal tier."""
        return self._max_depth

    def __contains__(self, element_id: object) -> bool:
        return element_id in self._elements

    def __repr__(self) -> str:
        return f"Catalog(elements={len(self._elements)}, recipes={len(self._recipes)})"

    def find_element(self, element_id: Optional[str]) -> Optional[ElementDefinition]:
        if element_id is None:
            return None
        return self._elements.get(element_id)
