import pytest

from mergecraft.config import GameConfig
from mergecraft.events import ElementMoved, MergeCompleted, XPAwarded
from mergecraft.exceptions import EmptyCellError, IncompatibleMergeError, InvalidMoveError, OccupiedCellError
from mergecraft.grid import Grid
from mergecraft.merge import MergeEngine


@pytest.fixture
def engine(grid, catalog, ledger, inventory, events, config):
    events.drain()
    return MergeEngine(grid, catalog, ledger, inventory, events, config)


def test_merging_two_adjacent_berries(engine, grid, catalog, ledger, events):
    berry = catalog.element("berry_1")
    a, b = grid.cell(2, 2), grid.cell(3, 2)
    engine.place_element(a, berry)
    engine.place_element(b, berry)
    xp_before = ledger.current_xp

    merged = engine.resolve_merge(a, b)

    assert merged.definition.id == "berry_2"
    assert merged.definition.tier == 2
    assert a.occupant is None
    assert b.occupant is merged
    assert grid.count() == 1
    assert ledger.current_xp == xp_before + 10
    assert ledger.stats["merges"] == 1
    emitted = events.drain()
    merges = [e for e in emitted if isinstance(e, MergeCompleted)]
    assert merges == [
        MergeCompleted(source=(2, 2), target=(3, 2), consumed_id="berry_1", result_id="berry_2", result_tier=2)
    ]
    assert XPAwarded(amount=10, source="merge") in emitted


def test_incompatible_merge_changes_nothing(engine, grid, catalog, ledger):
    a, b = grid.cell(0, 0), grid.cell(1, 0)
    engine.place_element(a, catalog.element("berry_1"))
    engine.place_element(b, catalog.element("berry_2"))
    state = ledger.export_state()
    with pytest.raises(IncompatibleMergeError):
        engine.resolve_merge(a, b)
    assert a.occupant.definition.id == "berry_1"
    assert b.occupant.definition.id == "berry_2"
    assert ledger.export_state() == state


def test_merge_needs_two_distinct_occupied_cells(engine, grid, catalog):
    a = grid.cell(0, 0)
    engine.place_element(a, catalog.element("berry_1"))
    with pytest.raises(IncompatibleMergeError):
        engine.resolve_merge(a, a)
    with pytest.raises(IncompatibleMergeError):
        engine.resolve_merge(a, grid.cell(5, 5))


def test_terminal_tier_cannot_merge(engine, grid, catalog):
    top = catalog.element("berry_5")
    a, b = grid.cell(0, 0), grid.cell(0, 1)
    engine.place_element(a, top)
    engine.place_element(b, top)
    with pytest.raises(OccupiedCellError):
        engine.place_element(a, top)
    with pytest.raises(IncompatibleMergeError):
        engine.resolve_merge(a, b)
    assert a.occupant.definition.id == "berry_5"
    assert b.occupant.definition.id == "berry_5"


def test_place_onto_compatible_occupant_merges_in_place(engine, grid, catalog, ledger):
    cell = grid.cell(1, 1)
    engine.place_element(cell, catalog.element("berry_1"))
    engine.place_element(cell, catalog.element("berry_1"))
    assert cell.occupant.definition.id == "berry_2"
    assert ledger.stats["merges"] == 1
    with pytest.raises(OccupiedCellError):
        engine.place_element(cell, catalog.element("mushroom_1"))


def test_high_tier_results_are_tracked(engine, grid, catalog, ledger):
    b4 = catalog.element("berry_4")
    engine.place_element(grid.cell(0, 0), b4)
    engine.place_element(grid.cell(1, 0), b4)
    engine.resolve_merge(grid.cell(0, 0), grid.cell(1, 0))
    assert ledger.stats["high_level_elements"] == 1


def test_move_and_drop(engine, grid, catalog, events):
    b1 = catalog.element("berry_1")
    engine.place_element(grid.cell(0, 0), b1)
    engine.place_element(grid.cell(4, 4), b1)
    events.drain()
    engine.move_element(grid.cell(0, 0), grid.cell(0, 1))
    assert events.drain() == [ElementMoved(source=(0, 0), target=(0, 1), element_id="berry_1")]
    with pytest.raises(InvalidMoveError):
        engine.move_element(grid.cell(0, 1), grid.cell(4, 4))
    with pytest.raises(EmptyCellError):
        engine.move_element(grid.cell(3, 3), grid.cell(3, 4))

    # Drop onto a compatible element merges, regardless of adjacency
    result = engine.drop(grid.cell(0, 1), grid.cell(4, 4))
    assert result.definition.id == "berry_2"
    engine.drop(grid.cell(4, 4), grid.cell(2, 2))
    assert grid.cell(2, 2).occupant.definition.id == "berry_2"


def test_bank_element_moves_to_inventory(engine, grid, catalog, inventory):
    engine.place_element(grid.cell(0, 0), catalog.element("berry_3"))
    assert engine.bank_element(grid.cell(0, 0)) == 1
    assert grid.cell(0, 0).occupant is None
    assert inventory.quantity_of("berry_3", 3) == 1
    engine.place_element(grid.cell(0, 0), catalog.element("bush"))
    with pytest.raises(InvalidMoveError):
        engine.bank_element(grid.cell(0, 0))


def test_chain_reaction_merges_one_neighbour_per_call(engine, grid, catalog):
    b1 = catalog.element("berry_1")
    b2 = catalog.element("berry_2")
    engine.place_element(grid.cell(1, 0), b2)
    engine.place_element(grid.cell(2, 0), b1)
    engine.place_element(grid.cell(3, 0), b1)
    target = grid.cell(2, 0)
    engine.resolve_merge(grid.cell(3, 0), target)
    assert target.occupant.definition.id == "berry_2"

    result = engine.chain_reaction(target)
    assert result is not None and result.definition.id == "berry_3"
    assert grid.cell(1, 0).occupant is None
    assert engine.chain_reaction(target) is None


def test_cascade_is_bounded_and_can_be_disabled(grid, catalog, ledger, inventory, events):
    b = [catalog.element(f"berry_{t}") for t in range(1, 5)]
    engine = MergeEngine(grid, catalog, ledger, inventory, events, GameConfig())
    engine.place_element(grid.cell(0, 0), b[3])
    engine.place_element(grid.cell(2, 0), b[1])
    engine.place_element(grid.cell(1, 1), b[2])
    engine.place_element(grid.cell(1, 0), b[0])
    engine.place_element(grid.cell(1, 0), b[0])
    # berry_2 at (1,0) climbs through each neighbour in turn
    assert engine.cascade(grid.cell(1, 0)) == 3
    assert grid.cell(1, 0).occupant.definition.id == "berry_5"
    assert grid.count() == 1
    assert ledger.stats["merges"] == 4
    assert ledger.stats["high_level_elements"] == 1

    off = MergeEngine(Grid(3, 3), catalog, ledger, inventory, events, GameConfig(enable_chain_reactions=False))
    off.place_element(off.grid.cell(0, 0), b[1])
    off.place_element(off.grid.cell(1, 0), b[1])
    assert off.chain_reaction(off.grid.cell(0, 0)) is None
