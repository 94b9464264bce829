import json
from pathlib import Path

import pytest

from conftest import ScriptedRandom
from mergecraft.catalog import Quality
from mergecraft.clock import ManualClock
from mergecraft.config import GameConfig
from mergecraft.crafting import CraftState
from mergecraft.exceptions import SnapshotError
from mergecraft.session import GameSession
from mergecraft.snapshot import GameSnapshot, capture, load_snapshot, restore, save_snapshot


def busy_session(catalog):
    clock = ManualClock()
    session = GameSession(catalog, GameConfig(), ScriptedRandom(), clock)
    session.new_game()
    session.spawn("bush", (0, 0))
    session.spawn("berry_3", (2, 1))
    session.scheduler.sync(clock.now())
    session.inventory.add(catalog.element("berry_2"), 2)
    session.ledger.add_xp(170)
    session.ledger.track_progress("merges", 2)
    clock.advance(4)
    session.crafting.begin_craft(catalog.recipe("tonic"), Quality.GOOD, now=clock.now())
    return session, clock


def test_capture_contents(catalog):
    session, _ = busy_session(catalog)
    snap = capture(session)
    assert snap.time == 4.0
    assert {(c["x"], c["y"], c["element"]) for c in snap.cells} == {(0, 0, "bush"), (2, 1, "berry_3")}
    assert snap.generators == [{"x": 0, "y": 0, "level": 1, "last_production_time": 0.0}]
    assert snap.inventory == [{"element": "berry_2", "tier": 2, "quantity": 2}]
    assert snap.ledger["level"] == 2
    assert snap.craft == {"recipe": "tonic", "quality": "good", "started_at": 4.0, "ready_at": 9.0}


def test_restore_into_fresh_session(catalog, tmp_path: Path):
    session, _ = busy_session(catalog)
    path = save_snapshot(capture(session), tmp_path / "saves" / "slot.json")
    assert json.loads(path.read_text(encoding="utf-8"))["schema_version"] == 1

    other = GameSession(catalog, GameConfig(), ScriptedRandom(), ManualClock(4.0))
    other.new_game()
    restore(other, load_snapshot(path))

    assert other.grid.cell(2, 1).occupant.definition.id == "berry_3"
    timer = other.scheduler.timer_at((0, 0))
    assert timer is not None and timer.last_production_time == 0.0
    assert other.inventory.quantity_of("berry_2", 2) == 2
    assert other.ledger.export_state() == session.ledger.export_state()
    assert other.crafting.state == CraftState.IN_PROGRESS
    assert other.crafting.remaining(4.0) == 5.0
    assert capture(other).to_dict() == capture(session).to_dict()


def test_restore_validates_before_touching_state(catalog):
    session, _ = busy_session(catalog)
    data = capture(session).to_dict()
    data["grid"]["cells"].append({"x": 5, "y": 5, "element": "unobtainium", "tier": 1})
    data["ledger"]["unlocked_recipes"].append("ghost_recipe")
    snap = GameSnapshot.from_dict(data)

    target = GameSession(catalog, GameConfig(), ScriptedRandom(), ManualClock())
    target.new_game()
    target.spawn("berry_1", (1, 1))
    before = capture(target).to_dict()

    with pytest.raises(SnapshotError) as ei:
        restore(target, snap)
    assert "unobtainium" in str(ei.value)
    assert "ghost_recipe" in str(ei.value)
    assert capture(target).to_dict() == before


def test_restore_rejects_wrong_grid_and_bad_generator_level(catalog):
    session, _ = busy_session(catalog)
    data = capture(session).to_dict()
    data["generators"][0]["level"] = 9
    snap = GameSnapshot.from_dict(data)
    small = GameSession(catalog, GameConfig(grid_width=3, grid_height=3), ScriptedRandom(), ManualClock())
    with pytest.raises(SnapshotError) as ei:
        restore(small, snap)
    assert "3x3" in str(ei.value)
    assert "level 9" in str(ei.value)


def test_malformed_snapshot_rejected(catalog):
    session, _ = busy_session(catalog)
    data = capture(session).to_dict()
    data["ledger"]["coins"] = -5
    with pytest.raises(SnapshotError):
        GameSnapshot.from_dict(data)
    with pytest.raises(SnapshotError):
        GameSnapshot.from_dict({"schema_version": 99})


def test_unreadable_snapshot_file(tmp_path: Path):
    p = tmp_path / "slot.json"
    p.write_text("{", encoding="utf-8")
    with pytest.raises(SnapshotError):
        load_snapshot(p)


def test_missing_snapshot_file_is_not_wrapped(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_snapshot(tmp_path / "empty_slot.json")


def test_restore_rejects_generator_recorded_twice(catalog):
    session, _ = busy_session(catalog)
    data = capture(session).to_dict()
    data["generators"].append({"x": 0, "y": 0, "level": 2, "last_production_time": 1.0})
    snap = GameSnapshot.from_dict(data)
    target = GameSession(catalog, GameConfig(), ScriptedRandom(), ManualClock())
    target.new_game()
    with pytest.raises(SnapshotError) as ei:
        restore(target, snap)
    assert "recorded twice" in str(ei.value)
    assert target.grid.count() == 0
