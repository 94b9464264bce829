from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from jsonschema import Draft202012Validator

from . import __version__
from .catalog.models import Quality
from .crafting import CraftJob
from .exceptions import SnapshotError, UnknownDefinitionError
from .grid import ElementInstance

if TYPE_CHECKING:
    from .session import GameSession

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

_NON_NEG_INT = {"type": "integer", "minimum": 0}
_POSITION = {
    "x": _NON_NEG_INT,
    "y": _NON_NEG_INT,
}

SNAPSHOT_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "mergecraft://snapshot.schema.json",
    "type": "object",
    "required": ["schema_version", "time", "grid", "inventory", "ledger"],
    "properties": {
        "schema_version": {"const": SCHEMA_VERSION},
        "game_version": {"type": "string"},
        "time": {"type": "number"},
        "grid": {
            "type": "object",
            "required": ["width", "height", "cells"],
            "properties": {
                "width": {"type": "integer", "minimum": 1},
                "height": {"type": "integer", "minimum": 1},
                "cells": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "required": ["x", "y", "element", "tier"],
                        "additionalProperties": False,
                        "properties": dict(_POSITION, element={"type": "string"}, tier={"type": "integer"}),
                    },
                },
            },
        },
        "generators": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["x", "y", "level", "last_production_time"],
                "additionalProperties": False,
                "properties": dict(
                    _POSITION,
                    level={"type": "integer", "minimum": 1},
                    last_production_time={"type": "number"},
                ),
            },
        },
        "inventory": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["element", "tier", "quantity"],
                "additionalProperties": False,
                "properties": {
                    "element": {"type": "string"},
                    "tier": {"type": "integer"},
                    "quantity": {"type": "integer", "minimum": 1},
                },
            },
        },
        "ledger": {
            "type": "object",
            "required": ["level", "current_xp", "coins", "gems", "essence", "energy", "max_energy"],
            "properties": {
                "level": {"type": "integer", "minimum": 1},
                "current_xp": _NON_NEG_INT,
                "coins": _NON_NEG_INT,
                "gems": _NON_NEG_INT,
                "essence": _NON_NEG_INT,
                "energy": _NON_NEG_INT,
                "max_energy": _NON_NEG_INT,
                "stats": {"type": "object", "additionalProperties": _NON_NEG_INT},
                "unlocked_recipes": {"type": "array", "items": {"type": "string"}},
                "completed_achievements": {"type": "array", "items": {"type": "string"}},
                "relationships": {
                    "type": "object",
                    "additionalProperties": {"type": "integer", "minimum": 0, "maximum": 100},
                },
            },
        },
        "craft": {
            "type": ["object", "null"],
            "required": ["recipe", "quality", "started_at", "ready_at"],
            "properties": {
                "recipe": {"type": "string"},
                "quality": {"enum": [q.value for q in Quality]},
                "started_at": {"type": "number"},
                "ready_at": {"type": "number"},
            },
        },
    },
}


@dataclass
class GameSnapshot:
    """Plain-data image of a running game.

    ``cells`` holds one record per occupied cell, ``generators`` the level and
    production timer of each generator cell, ``inventory`` the banked stacks.
    """

    time: float
    width: int
    height: int
    cells: List[Dict[str, Any]] = field(default_factory=list)
    generators: List[Dict[str, Any]] = field(default_factory=list)
    inventory: List[Dict[str, Any]] = field(default_factory=list)
    ledger: Dict[str, Any] = field(default_factory=dict)
    craft: Optional[Dict[str, Any]] = None
    game_version: str = __version__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "game_version": self.game_version,
            "time": self.time,
            "grid": {"width": self.width, "height": self.height, "cells": [dict(c) for c in self.cells]},
            "generators": [dict(g) for g in self.generators],
            "inventory": [dict(i) for i in self.inventory],
            "ledger": dict(self.ledger),
            "craft": dict(self.craft) if self.craft is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "GameSnapshot":
        validator = Draft202012Validator(SNAPSHOT_SCHEMA)
        errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
        if errors:
            for err in errors:
                logger.error("Snapshot schema error at %s: %s", list(err.path), err.message)
            raise SnapshotError(f"Malformed snapshot: {errors[0].message}")
        grid = data["grid"]
        return cls(
            time=float(data["time"]),
            width=int(grid["width"]),
            height=int(grid["height"]),
            cells=[dict(c) for c in grid["cells"]],
            generators=[dict(g) for g in data.get("generators", [])],
            inventory=[dict(i) for i in data["inventory"]],
            ledger=dict(data["ledger"]),
            craft=dict(data["craft"]) if data.get("craft") else None,
            game_version=str(data.get("game_version", "")),
        )


def capture(session: "GameSession") -> GameSnapshot:
    """Take a snapshot of the session at the session clock's current time."""
    grid = session.grid
    cells = [
        {"x": c.x, "y": c.y, "element": c.occupant.definition.id, "tier": c.occupant.definition.tier}
        for c in grid.occupied_cells()
    ]
    generators = [
        {
            "x": t.position[0],
            "y": t.position[1],
            "level": t.level,
            "last_production_time": t.last_production_time,
        }
        for t in session.scheduler.timers()
    ]
    inventory = [
        {"element": e.element_id, "tier": e.tier, "quantity": e.quantity} for e in session.inventory.entries()
    ]
    craft = None
    job = session.crafting.job
    if job is not None:
        craft = {
            "recipe": job.recipe.id,
            "quality": job.quality.value,
            "started_at": job.started_at,
            "ready_at": job.ready_at,
        }
    return GameSnapshot(
        time=session.clock.now(),
        width=grid.width,
        height=grid.height,
        cells=cells,
        generators=generators,
        inventory=inventory,
        ledger=session.ledger.export_state(),
        craft=craft,
    )


def _check(snapshot: GameSnapshot, session: "GameSession") -> List[str]:
    """Every reason ``snapshot`` cannot be applied to ``session``."""
    problems: List[str] = []
    catalog = session.catalog
    grid = session.grid
    if (snapshot.width, snapshot.height) != (grid.width, grid.height):
        problems.append(f"grid is {snapshot.width}x{snapshot.height}, session grid is {grid.width}x{grid.height}")

    def known(element_id: str, tier: int, where: str) -> bool:
        found = catalog.find_element(element_id)
        if found is None:
            problems.append(f"{where}: unknown element {element_id}")
            return False
        if found.tier != tier:
            problems.append(f"{where}: {element_id} is tier {found.tier}, not {tier}")
            return False
        return True

    occupied: Dict[tuple, str] = {}
    for rec in snapshot.cells:
        pos = (rec["x"], rec["y"])
        if not grid.in_bounds(*pos):
            problems.append(f"cell {pos}: out of bounds")
            continue
        if pos in occupied:
            problems.append(f"cell {pos}: occupied twice")
            continue
        if known(rec["element"], rec["tier"], f"cell {pos}"):
            occupied[pos] = rec["element"]

    timed = set()
    for rec in snapshot.generators:
        pos = (rec["x"], rec["y"])
        if pos in timed:
            problems.append(f"generator {pos}: recorded twice")
            continue
        timed.add(pos)
        element_id = occupied.get(pos)
        if element_id is None:
            problems.append(f"generator {pos}: no element recorded there")
            continue
        spec = catalog.element(element_id).generator
        if spec is None:
            problems.append(f"generator {pos}: {element_id} is not a generator")
        elif rec["level"] > spec.max_level:
            problems.append(f"generator {pos}: level {rec['level']} above max {spec.max_level}")

    for rec in snapshot.inventory:
        known(rec["element"], rec["tier"], "inventory")

    ledger = snapshot.ledger
    if ledger.get("level", 1) > session.ledger.max_level:
        problems.append(f"ledger: level {ledger['level']} above max {session.ledger.max_level}")
    if ledger.get("energy", 0) > ledger.get("max_energy", 0):
        problems.append("ledger: energy above max_energy")
    for recipe_id in ledger.get("unlocked_recipes", []):
        try:
            catalog.recipe(recipe_id)
        except UnknownDefinitionError:
            problems.append(f"ledger: unknown recipe {recipe_id}")
    completed = ledger.get("completed_achievements", [])
    if len(set(completed)) != len(completed):
        problems.append("ledger: duplicate completed achievements")
    for achievement_id in completed:
        try:
            catalog.achievement(achievement_id)
        except UnknownDefinitionError:
            problems.append(f"ledger: unknown achievement {achievement_id}")

    if snapshot.craft is not None:
        try:
            catalog.recipe(snapshot.craft["recipe"])
        except UnknownDefinitionError:
            problems.append(f"craft: unknown recipe {snapshot.craft['recipe']}")
    return problems


def restore(session: "GameSession", snapshot: GameSnapshot) -> None:
    """Replace the session state with ``snapshot``.

    The whole snapshot is checked against the session's catalog and grid
    first; on any problem SnapshotError is raised and nothing is touched.
    """
    problems = _check(snapshot, session)
    if problems:
        for p in problems:
            logger.error("Snapshot restore error: %s", p)
        raise SnapshotError("Snapshot cannot be restored:\n  " + "\n  ".join(problems))

    catalog = session.catalog
    grid = session.grid
    grid.clear()
    session.scheduler.reset()
    for rec in snapshot.cells:
        grid.attach(grid.cell(rec["x"], rec["y"]), ElementInstance(catalog.element(rec["element"])))
    for rec in snapshot.generators:
        instance = grid.cell(rec["x"], rec["y"]).occupant
        session.scheduler.restore_timer(instance, rec["level"], float(rec["last_production_time"]))

    session.inventory.load(
        {(rec["element"], rec["tier"]): rec["quantity"] for rec in snapshot.inventory}
    )
    session.ledger.import_state(snapshot.ledger)

    job = None
    if snapshot.craft is not None:
        craft = snapshot.craft
        job = CraftJob(
            recipe=catalog.recipe(craft["recipe"]),
            quality=Quality(craft["quality"]),
            started_at=float(craft["started_at"]),
            ready_at=float(craft["ready_at"]),
        )
    session.crafting.restore_job(job)
    # Generators present without a timer record start fresh
    session.scheduler.sync(snapshot.time)
    logger.info(
        "Restored snapshot: %d cells, %d inventory stacks, level %d",
        len(snapshot.cells),
        len(snapshot.inventory),
        session.ledger.level,
    )


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name, dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)


def save_snapshot(snapshot: GameSnapshot, path: Union[str, os.PathLike]) -> Path:
    path = Path(path)
    data = json.dumps(snapshot.to_dict(), indent=2, sort_keys=True).encode("utf-8")
    _atomic_write(path, data)
    logger.info("Saved snapshot to %s", path)
    return path


def load_snapshot(path: Union[str, os.PathLike]) -> GameSnapshot:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        # A missing slot surfaces as FileNotFoundError, not as a corrupt snapshot.
        raise
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Failed to read snapshot {path}: {e}") from e
    return GameSnapshot.from_dict(data)


__all__ = ["GameSnapshot", "SNAPSHOT_SCHEMA", "capture", "load_snapshot", "restore", "save_snapshot"]
