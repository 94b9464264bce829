from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from .catalog.models import ElementDefinition
from .exceptions import EmptyCellError, InvariantViolationError, NoEmptyCellError, OccupiedCellError
from .rng import UniformSource

logger = logging.getLogger(__name__)

# Left, right, down, up
_DIRECTIONS: Tuple[Tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


@dataclass(eq=False)
class ElementInstance:
    """A placed element. Identity is (definition, owning cell)."""

    definition: ElementDefinition
    cell: Optional["Cell"] = field(default=None, repr=False)

    @property
    def position(self) -> Optional[Tuple[int, int]]:
        return self.cell.position if self.cell is not None else None


@dataclass(eq=False)
class Cell:
    x: int
    y: int
    occupant: Optional[ElementInstance] = None
    reserved: bool = False

    @property
    def position(self) -> Tuple[int, int]:
        return (self.x, self.y)

    def is_empty(self) -> bool:
        return self.occupant is None

    def has_element(self) -> bool:
        return self.occupant is not None

    def __repr__(self) -> str:
        what = self.occupant.definition.id if self.occupant else "-"
        return f"Cell({self.x},{self.y}:{what})"


class CellClaim:
    """A reserved empty cell. Commit it with an element or release it.

    While claimed the cell is excluded from :meth:`Grid.empty_cells`, so two
    producers in the same tick can never pick the same cell.
    """

    def __init__(self, grid: "Grid", cell: Cell) -> None:
        self._grid = grid
        self.cell = cell
        self._open = True

    def commit(self, definition: ElementDefinition) -> ElementInstance:
        if not self._open:
            raise InvariantViolationError(f"Claim on {self.cell!r} already closed")
        self._open = False
        self.cell.reserved = False
        return self._grid.attach(self.cell, ElementInstance(definition))

    def release(self) -> None:
        if self._open:
            self._open = False
            self.cell.reserved = False

    def __enter__(self) -> "CellClaim":
        return self

    def __exit__(self, *exc) -> None:
        self.release()


class MergeCandidates:
    """Restartable lazy sequence of adjacent merge-compatible cell pairs.

    Each unordered pair is produced once. Iterating again rescans the grid's
    current state.
    """

    def __init__(self, grid: "Grid", reference: Optional[ElementDefinition]) -> None:
        self._grid = grid
        self._reference = reference

    def _matches(self, definition: ElementDefinition) -> bool:
        if self._reference is None:
            return True
        return definition.can_merge_with(self._reference)

    def __iter__(self) -> Iterator[Tuple[Cell, Cell]]:
        grid = self._grid
        for cell in grid.cells():
            if cell.occupant is None or not self._matches(cell.occupant.definition):
                continue
            # Only look right and up so each pair appears once
            for dx, dy in ((1, 0), (0, 1)):
                other = grid.get_cell(cell.x + dx, cell.y + dy)
                if other is None or other.occupant is None:
                    continue
                if cell.occupant.definition.can_merge_with(other.occupant.definition):
                    yield cell, other


class Grid:
    """
    Fixed W x H matrix of cells, each holding at most one element instance.

    Coordinate system is 0-based: x in [0, width), y in [0, height).
    Cells live as long as the grid; only their occupancy changes.
    """

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("Grid width/height must be > 0")
        self.width = width
        self.height = height
        self._cells: List[List[Cell]] = [[Cell(x, y) for x in range(width)] for y in range(height)]
        logger.debug("Grid created: %dx%d", width, height)

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_cell(self, x: int, y: int) -> Optional[Cell]:
        if not self.in_bounds(x, y):
            return None
        return self._cells[y][x]

    def cell(self, x: int, y: int) -> Cell:
        if not self.in_bounds(x, y):
            raise IndexError(f"Cell ({x},{y}) out of bounds for {self.width}x{self.height} grid")
        return self._cells[y][x]

    def cells(self) -> Iterator[Cell]:
        for row in self._cells:
            yield from row

    def adjacent_cells(self, cell: Cell) -> List[Cell]:
        """In-bounds 4-neighbours; out-of-bounds directions are omitted."""
        result = []
        for dx, dy in _DIRECTIONS:
            neighbour = self.get_cell(cell.x + dx, cell.y + dy)
            if neighbour is not None:
                result.append(neighbour)
        return result

    def empty_cells(self) -> List[Cell]:
        return [c for c in self.cells() if c.occupant is None and not c.reserved]

    def occupied_cells(self) -> List[Cell]:
        return [c for c in self.cells() if c.occupant is not None]

    def instances(self) -> List[ElementInstance]:
        return [c.occupant for c in self.cells() if c.occupant is not None]

    def count(self, predicate: Optional[Callable[[ElementDefinition], bool]] = None) -> int:
        return sum(1 for i in self.instances() if predicate is None or predicate(i.definition))

    def count_of(self, definition: ElementDefinition) -> int:
        return self.count(lambda d: d.id == definition.id)

    def is_full(self) -> bool:
        return not self.empty_cells()

    def random_empty_cell(self, rng: UniformSource) -> Cell:
        """Uniform sample over the current empty cells."""
        empties = self.empty_cells()
        if not empties:
            raise NoEmptyCellError("Grid is full")
        return empties[rng.randrange(len(empties))]

    def claim_random_empty_cell(self, rng: UniformSource) -> CellClaim:
        cell = self.random_empty_cell(rng)
        cell.reserved = True
        return CellClaim(self, cell)

    def can_accept(self, cell: Cell, incoming: ElementDefinition) -> bool:
        """Empty, or occupied by something ``incoming`` can merge with."""
        if cell.occupant is None:
            return not cell.reserved
        return cell.occupant.definition.can_merge_with(incoming)

    def find_merge_candidates(self, definition: Optional[ElementDefinition] = None) -> MergeCandidates:
        return MergeCandidates(self, definition)

    # Ownership transfer primitives. Callers validate first.

    def attach(self, cell: Cell, instance: ElementInstance) -> ElementInstance:
        if cell.occupant is not None:
            raise OccupiedCellError(f"{cell!r} is already occupied")
        if instance.cell is not None:
            logger.error("Instance %s is still owned by %r", instance.definition.id, instance.cell)
            raise InvariantViolationError("An element instance can be owned by one cell only")
        cell.occupant = instance
        instance.cell = cell
        return instance

    def detach(self, cell: Cell) -> ElementInstance:
        instance = cell.occupant
        if instance is None:
            raise EmptyCellError(f"{cell!r} is empty")
        cell.occupant = None
        instance.cell = None
        return instance

    def clear(self) -> None:
        for cell in self.cells():
            if cell.occupant is not None:
                cell.occupant.cell = None
            cell.occupant = None
            cell.reserved = False

    def __repr__(self) -> str:
        return f"Grid({self.width}x{self.height})"
