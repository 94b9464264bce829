from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

from . import __version__
from .catalog.loader import load_catalog
from .clock import ManualClock
from .config import GameConfig
from .exceptions import CatalogError, GameValidationError
from .logging_config import configure_logging
from .rng import RandomSource
from .session import GameSession

logger = logging.getLogger(__name__)


def _cmd_validate(args: argparse.Namespace) -> int:
    root = Path(args.path)
    if root.is_dir():
        paths = sorted(p for p in root.rglob("*") if p.suffix.lower() in (".json", ".yaml", ".yml"))
    else:
        paths = [root]

    success = True
    for p in paths:
        try:
            catalog = load_catalog(p)
            print(f"OK: {p} ({len(catalog.elements)} elements, {len(catalog.recipes)} recipes)")
        except CatalogError as e:
            success = False
            print(f"INVALID: {p}\n{e.to_human()}\n")
        except FileNotFoundError as e:
            success = False
            print(f"ERROR: {e}")
    return 0 if success else 1


def _cmd_simulate(args: argparse.Namespace) -> int:
    if args.step <= 0:
        print("ERROR: --step must be > 0")
        return 2
    catalog = load_catalog(args.catalog)
    config = GameConfig.from_yaml(args.config) if args.config else GameConfig()
    clock = ManualClock()
    session = GameSession(catalog, config, RandomSource(args.seed), clock)
    session.new_game(g.id for g in catalog.generators())

    elapsed = 0.0
    while elapsed < args.seconds:
        clock.advance(args.step)
        elapsed += args.step
        report = session.tick()
        if report.produced:
            session.auto_merge()
        try:
            _craft_something(session)
        except GameValidationError as e:
            logger.debug("Craft attempt skipped: %s", e)
        session.drain_events()

    summary = session.summary()
    summary["seconds"] = elapsed
    summary["seed"] = args.seed
    print(json.dumps(summary, indent=2, sort_keys=True))
    return 0


def _craft_something(session: GameSession) -> None:
    """Bank the top merge result of each chain and start the first craftable recipe."""
    if session.crafting.job is not None:
        return
    for cell in list(session.grid.occupied_cells()):
        definition = cell.occupant.definition
        if not definition.is_generator and definition.is_terminal:
            session.merge.bank_element(cell)
    for recipe in session.crafting.craftable_recipes():
        session.crafting.begin_craft(recipe, now=session.now())
        return


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mergecraft", description="Merge-and-craft simulation core")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    v = sub.add_parser("validate", help="Validate catalog files")
    v.add_argument("path", help="Catalog file (.json/.yaml) or a directory to scan")
    v.set_defaults(func=_cmd_validate)

    s = sub.add_parser("simulate", help="Run a headless simulation and print a summary")
    s.add_argument("catalog", help="Catalog file (.json/.yaml)")
    s.add_argument("--seconds", type=float, default=600.0, help="Simulated seconds to run")
    s.add_argument("--step", type=float, default=1.0, help="Seconds per tick")
    s.add_argument("--seed", type=int, default=None, help="Random seed for a reproducible run")
    s.add_argument("--config", default=None, help="Optional YAML config overrides")
    s.set_defaults(func=_cmd_simulate)

    return p


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.WARNING)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
