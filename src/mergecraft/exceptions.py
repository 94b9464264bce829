from __future__ import annotations

from enum import Enum
from typing import Optional


class MergeCraftError(Exception):
    """Base exception for the mergecraft simulation core."""


class GameValidationError(MergeCraftError):
    """A precondition failed. State is left exactly as it was before the call."""


class UnknownDefinitionError(GameValidationError):
    """Raised when an element, recipe or achievement id is not in the catalog."""


class OccupiedCellError(GameValidationError):
    """Raised when placing onto a cell whose occupant cannot absorb the element."""


class EmptyCellError(GameValidationError):
    """Raised when an operation needs an occupied cell but found none."""


class IncompatibleMergeError(GameValidationError):
    """Raised when two cells cannot be merged."""


class InvalidMoveError(GameValidationError):
    """Raised when a move targets an occupied cell or the source cell itself."""


class NoEmptyCellError(GameValidationError):
    """Raised when the grid has no free cell left."""


class InsufficientQuantityError(GameValidationError):
    """Raised when removing more inventory units than are banked."""


class InsufficientFundsError(GameValidationError):
    """Raised when a purchase or upgrade cannot be paid for."""


class InsufficientEnergyError(GameValidationError):
    """Raised when there is not enough energy for an explicit energy spend."""


class RejectionReason(str, Enum):
    LEVEL_TOO_LOW = "level_too_low"
    RECIPE_LOCKED = "recipe_locked"
    INSUFFICIENT_INGREDIENTS = "insufficient_ingredients"


class CraftRejectedError(GameValidationError):
    """Raised when a craft is started for a recipe the player cannot craft."""

    def __init__(self, recipe_id: str, reason: RejectionReason, detail: Optional[str] = None) -> None:
        self.recipe_id = recipe_id
        self.reason = reason
        message = f"Cannot craft {recipe_id}: {reason.value}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class IngredientsChangedError(GameValidationError):
    """Raised at resolution when the ingredients disappeared while crafting."""


class CraftStateError(GameValidationError):
    """Raised when a crafting operation is invalid in the current state."""


class InvariantViolationError(MergeCraftError):
    """A programmer or catalog authoring error. Never recovered from silently."""


class CatalogError(MergeCraftError):
    """Raised when catalog data fails schema or reference validation."""

    def __init__(self, message: str, errors: Optional[list] = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])

    def to_human(self) -> str:
        parts = [str(self)]
        for e in self.errors:
            path = "/".join(str(p) for p in getattr(e, "path", [])) or "<root>"
            parts.append(f" - at {path}: {getattr(e, 'message', e)}")
        return "\n".join(parts)


class SnapshotError(MergeCraftError):
    """Raised when a snapshot cannot be restored."""
