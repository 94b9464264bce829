import copy
import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from mergecraft.catalog import catalog_from_dict  # noqa: E402
from mergecraft.clock import ManualClock  # noqa: E402
from mergecraft.config import GameConfig  # noqa: E402
from mergecraft.events import EventQueue  # noqa: E402
from mergecraft.grid import Grid  # noqa: E402
from mergecraft.inventory import Inventory  # noqa: E402
from mergecraft.progression import ProgressionLedger  # noqa: E402


class ScriptedRandom:
    """Returns queued values in order; falls back to 0 once the script runs out."""

    def __init__(self, ints=(), floats=()):
        self.ints = list(ints)
        self.floats = list(floats)
        self.calls = []

    def randrange(self, n):
        self.calls.append(n)
        if not self.ints:
            return 0
        value = self.ints.pop(0)
        assert 0 <= value < n, f"scripted value {value} outside [0, {n})"
        return value

    def random(self):
        return self.floats.pop(0) if self.floats else 0.0


SAMPLE_CATALOG = {
    "elements": [
        {"id": "berry_1", "type": "berry", "tier": 1, "merge_target": "berry_2", "base_value": 2},
        {"id": "berry_2", "type": "berry", "tier": 2, "merge_target": "berry_3", "base_value": 3},
        {"id": "berry_3", "type": "berry", "tier": 3, "merge_target": "berry_4", "base_value": 5},
        {"id": "berry_4", "type": "berry", "tier": 4, "merge_target": "berry_5", "base_value": 8},
        {"id": "berry_5", "type": "berry", "tier": 5, "base_value": 13, "rarity": "rare"},
        {"id": "mushroom_1", "type": "mushroom", "tier": 1, "merge_target": "mushroom_2", "base_value": 2},
        {"id": "mushroom_2", "type": "mushroom", "tier": 2, "base_value": 4},
        {"id": "potion_1", "type": "potion", "tier": 1, "base_value": 20, "rarity": "uncommon"},
        {
            "id": "bush",
            "type": "generator",
            "tier": 1,
            "generator": {"output": "berry_1", "base_period": 10, "base_energy_cost": 2},
        },
        {
            "id": "log",
            "type": "generator",
            "tier": 1,
            "generator": {"output": "mushroom_1", "base_period": 20, "base_energy_cost": 10, "max_level": 3},
        },
    ],
    "recipes": [
        {
            "id": "tonic",
            "ingredients": [{"element": "berry_2", "quantity": 2}],
            "result": "potion_1",
            "base_success": 100,
            "crafting_duration": 5,
        },
        {
            "id": "stew",
            "ingredients": [
                {"element": "berry_1", "quantity": 1},
                {"element": "mushroom_1", "quantity": 1},
            ],
            "result": "potion_1",
            "result_quantity": 2,
            "base_success": 50,
            "crafting_duration": 12,
        },
        {
            "id": "elixir",
            "ingredients": [{"element": "potion_1", "quantity": 1}],
            "result": "berry_5",
            "base_success": 60,
            "required_level": 3,
            "has_puzzle": True,
            "crafting_duration": 30,
        },
    ],
    "achievements": [
        {"id": "first_merge", "kind": "merge", "stat": "merges", "required_value": 1, "rewards": {"coins": 10}},
        {"id": "ten_merges", "kind": "merge", "stat": "merges", "required_value": 10, "rewards": {"gems": 2}},
        {"id": "first_craft", "kind": "craft", "stat": "crafts", "required_value": 1, "rewards": {"essence": 3}},
        {"id": "level_two", "kind": "level", "required_value": 2, "rewards": {"gems": 1}},
    ],
}


@pytest.fixture
def catalog_data():
    return copy.deepcopy(SAMPLE_CATALOG)


@pytest.fixture
def catalog(catalog_data):
    return catalog_from_dict(catalog_data)


@pytest.fixture
def config():
    return GameConfig()


@pytest.fixture
def events():
    return EventQueue()


@pytest.fixture
def ledger(catalog, config, events):
    led = ProgressionLedger(catalog, config, events)
    led.unlock_recipes_for_level()
    return led


@pytest.fixture
def inventory():
    return Inventory()


@pytest.fixture
def grid(config):
    return Grid(config.grid_width, config.grid_height)


@pytest.fixture
def rng():
    return ScriptedRandom()


@pytest.fixture
def clock():
    return ManualClock()
