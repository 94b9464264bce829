from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union

import yaml

logger = logging.getLogger(__name__)


@dataclass
class GameConfig:
    """Central tuning knobs for the simulation core.

    - grid_width/grid_height: size of the merge board.
    - enable_chain_reactions: allows MergeEngine.chain_reaction to merge further.
    - *_xp: flat XP awards for merges, generator output and selling.
    - base_xp/xp_growth/max_level: exponential leveling curve.
    - coins_per_level/energy_per_level: level-up rewards.
    - energy_regen_per_minute: passive energy regeneration.
    """

    grid_width: int = 6
    grid_height: int = 6
    enable_chain_reactions: bool = True

    merge_xp: int = 10
    production_xp: int = 5
    sell_xp: int = 5
    high_tier_threshold: int = 5

    base_xp: int = 100
    xp_growth: float = 1.5
    max_level: int = 50
    coins_per_level: int = 50
    energy_per_level: int = 10

    starting_coins: int = 100
    starting_gems: int = 0
    starting_essence: int = 0
    starting_energy: int = 100
    max_energy: int = 100
    energy_regen_per_minute: float = 1.0
    energy_refill_cost: int = 10

    level_success_bonus: int = 2
    puzzle_success_bonus: int = 15

    def validate(self) -> None:
        if self.grid_width <= 0 or self.grid_height <= 0:
            raise ValueError("Grid width/height must be > 0")
        if self.base_xp <= 0:
            raise ValueError("base_xp must be > 0")
        # Leveling loop termination depends on a strictly growing curve
        if self.xp_growth <= 1.0:
            raise ValueError("xp_growth must be > 1.0")
        if self.max_level < 1:
            raise ValueError("max_level must be >= 1")
        if self.max_energy < 0 or not 0 <= self.starting_energy <= self.max_energy:
            raise ValueError("starting_energy must lie within [0, max_energy]")
        if min(self.starting_coins, self.starting_gems, self.starting_essence) < 0:
            raise ValueError("Starting currencies cannot be negative")
        if self.energy_regen_per_minute < 0:
            raise ValueError("energy_regen_per_minute cannot be negative")

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GameConfig":
        known = {f.name: f for f in fields(cls)}
        cfg = cls()
        for key, value in raw.items():
            if key not in known:
                logger.warning("Ignoring unknown config key %r", key)
                continue
            default = getattr(cfg, key)
            # Coerce to the type of the default value; bool before int
            if isinstance(default, bool):
                value = bool(value)
            elif isinstance(default, int):
                value = int(value)
            elif isinstance(default, float):
                value = float(value)
            setattr(cfg, key, value)
        cfg.validate()
        return cfg

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "GameConfig":
        """Load configuration from a YAML file. Missing fields fall back to defaults."""
        path = Path(path)
        if not path.exists():
            logger.warning("Config file %s not found; using defaults", path)
            return cls()
        with path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must contain a mapping at the top level")
        logger.debug("Loaded config overrides from %s: %s", path, sorted(raw))
        return cls.from_dict(raw)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Persist configuration to a YAML file."""
        with Path(path).open("w", encoding="utf-8") as f:
            yaml.safe_dump(asdict(self), f, sort_keys=True)
