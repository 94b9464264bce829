from conftest import ScriptedRandom
from mergecraft.clock import ManualClock
from mergecraft.config import GameConfig
from mergecraft.crafting import CraftState
from mergecraft.events import CraftFailed, ElementPlaced, LevelUp, ProductionCompleted
from mergecraft.session import GameSession


def make_session(catalog, ints=(), **overrides):
    clock = ManualClock()
    session = GameSession(catalog, GameConfig(**overrides), ScriptedRandom(ints=ints), clock)
    return session, clock


def test_new_game_places_starting_elements(catalog):
    session, _ = make_session(catalog, ints=[0, 0])
    session.new_game(["bush", "log"])
    assert session.grid.cell(0, 0).occupant.definition.id == "bush"
    assert session.grid.cell(1, 0).occupant.definition.id == "log"
    assert len(session.scheduler.timers()) == 2
    assert session.ledger.unlocked_recipes == {"tonic", "stew"}
    placed = [e for e in session.drain_events() if isinstance(e, ElementPlaced)]
    assert [p.element_id for p in placed] == ["bush", "log"]
    assert session.events.drain() == []


def test_tick_drives_generators_and_regeneration(catalog):
    session, clock = make_session(catalog, grid_width=4, grid_height=4)
    session.new_game(["bush"])
    assert session.grid.cell(0, 0).occupant.definition.id == "bush"
    session.ledger.use_energy(10)
    session.drain_events()

    clock.advance(10)
    report = session.tick()
    assert report.produced == 1
    assert report.energy_regenerated == 0
    assert session.grid.count() == 2

    clock.advance(50)
    report = session.tick()
    # 60s since start: one regen point, and another production
    assert report.energy_regenerated == 1
    assert report.produced == 1
    events = session.drain_events()
    assert sum(isinstance(e, ProductionCompleted) for e in events) == 2


def test_auto_merge_collapses_pairs(catalog):
    session, _ = make_session(catalog)
    session.new_game()
    for pos in [(0, 0), (1, 0), (3, 3), (3, 4)]:
        session.spawn("berry_1", pos)
    merges = session.auto_merge()
    assert merges == 2
    ids = sorted(i.definition.id for i in session.grid.instances())
    assert ids == ["berry_2", "berry_2"]


def test_merging_levels_the_player_up(catalog):
    session, _ = make_session(catalog, merge_xp=150)
    session.new_game()
    session.spawn("berry_1", (0, 0))
    session.spawn("berry_1", (0, 1))
    session.merge.resolve_merge(session.grid.cell(0, 0), session.grid.cell(0, 1))
    assert session.ledger.level == 2
    assert any(isinstance(e, LevelUp) for e in session.drain_events())


def test_crafting_through_the_session(catalog):
    session, clock = make_session(catalog, ints=[10])
    session.new_game()
    session.inventory.add(catalog.element("berry_2"), 2)
    session.crafting.begin_craft(catalog.recipe("tonic"), now=clock.now())
    clock.advance(5)
    report = session.tick()
    assert report.craft is not None and report.craft.succeeded
    assert session.summary()["inventory"] == {"potion_1@1": 1}


def test_new_game_resets_state(catalog):
    session, _ = make_session(catalog)
    session.new_game(["berry_1"])
    session.ledger.add_xp(500)
    session.new_game()
    assert session.ledger.level == 1
    assert session.grid.count() == 0
    assert session.summary()["coins"] == 100


def test_tick_reports_craft_whose_ingredients_vanished(catalog):
    session, clock = make_session(catalog, grid_width=4, grid_height=4)
    session.new_game(["bush"])
    session.inventory.add(catalog.element("berry_2"), 2)
    session.crafting.begin_craft(catalog.recipe("tonic"), now=clock.now())
    session.inventory.remove(catalog.element("berry_2"), 1)
    session.drain_events()

    clock.advance(10)
    report = session.tick()

    assert report.produced == 1
    assert session.grid.count() == 2
    assert report.craft is not None
    assert not report.craft.succeeded
    assert report.craft.reason == "ingredients_changed"
    assert session.crafting.state == CraftState.IDLE
    assert any(isinstance(e, CraftFailed) for e in session.drain_events())
