from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from jsonschema import Draft202012Validator

from ..exceptions import CatalogError, InvariantViolationError
from .catalog import Catalog
from .curves import DEFAULT_COST_CURVE, DEFAULT_PERIOD_CURVE, InterpolationCurve
from .models import (
    AchievementDefinition,
    AchievementKind,
    ElementDefinition,
    ElementType,
    GeneratorSpec,
    Ingredient,
    Rarity,
    RecipeDefinition,
)

logger = logging.getLogger(__name__)

_CURVE = {
    "type": "array",
    "minItems": 1,
    "items": {
        "type": "array",
        "minItems": 2,
        "maxItems": 2,
        "prefixItems": [
            {"type": "number"},
            {"type": "number", "exclusiveMinimum": 0, "maximum": 1},
        ],
    },
}

CATALOG_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "mergecraft://catalog.schema.json",
    "type": "object",
    "required": ["elements"],
    "additionalProperties": False,
    "properties": {
        "version": {"type": "integer", "minimum": 1},
        "elements": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "type", "tier"],
                "additionalProperties": False,
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "type": {"enum": [t.value for t in ElementType]},
                    "tier": {"type": "integer", "minimum": 1},
                    "merge_target": {"type": ["string", "null"]},
                    "can_merge": {"type": "boolean"},
                    "base_value": {"type": "integer", "minimum": 0},
                    "rarity": {"enum": [r.value for r in Rarity]},
                    "generator": {
                        "type": "object",
                        "required": ["output"],
                        "additionalProperties": False,
                        "properties": {
                            "output": {"type": "string", "minLength": 1},
                            "base_period": {"type": "number", "exclusiveMinimum": 0},
                            "base_energy_cost": {"type": "integer", "minimum": 0},
                            "max_level": {"type": "integer", "minimum": 1},
                            "period_curve": _CURVE,
                            "cost_curve": _CURVE,
                            "upgrade_cost_multiplier": {"type": "integer", "minimum": 0},
                        },
                    },
                },
            },
        },
        "recipes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "ingredients", "result"],
                "additionalProperties": False,
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string"},
                    "ingredients": {
                        "type": "array",
                        "minItems": 1,
                        "items": {
                            "type": "object",
                            "required": ["element", "quantity"],
                            "additionalProperties": False,
                            "properties": {
                                "element": {"type": "string", "minLength": 1},
                                "quantity": {"type": "integer", "minimum": 1},
                            },
                        },
                    },
                    "result": {"type": "string", "minLength": 1},
                    "result_quantity": {"type": "integer", "minimum": 1},
                    "base_success": {"type": "integer", "minimum": 0, "maximum": 100},
                    "required_level": {"type": "integer", "minimum": 1},
                    "has_puzzle": {"type": "boolean"},
                    "crafting_duration": {"type": "number", "minimum": 0},
                },
            },
        },
        "achievements": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "kind", "required_value"],
                "additionalProperties": False,
                "properties": {
                    "id": {"type": "string", "minLength": 1},
                    "name": {"type": "string"},
                    "description": {"type": "string"},
                    "kind": {"enum": [k.value for k in AchievementKind]},
                    "stat": {"type": "string"},
                    "required_value": {"type": "integer", "minimum": 0},
                    "required_level": {"type": "integer", "minimum": 1},
                    "hidden": {"type": "boolean"},
                    "rewards": {
                        "type": "object",
                        "additionalProperties": False,
                        "properties": {
                            "coins": {"type": "integer", "minimum": 0},
                            "gems": {"type": "integer", "minimum": 0},
                            "essence": {"type": "integer", "minimum": 0},
                            "xp": {"type": "integer", "minimum": 0},
                        },
                    },
                },
            },
        },
    },
}


def validate_catalog_dict(data: Any) -> None:
    """Validate raw catalog data against the catalog JSON schema.

    Raises:
        CatalogError listing every schema violation.
    """
    validator = Draft202012Validator(CATALOG_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: list(e.path))
    if errors:
        for err in errors:
            logger.error("Catalog schema validation error at %s: %s", list(err.path), err.message)
        raise CatalogError("Catalog failed schema validation", errors)


def _curve(raw: Any, default: InterpolationCurve) -> InterpolationCurve:
    if raw is None:
        return default
    curve = InterpolationCurve.from_points(raw)
    if not curve.is_monotonic():
        raise ValueError(f"Curve {raw} is not monotonic")
    return curve


def _element(raw: Dict[str, Any]) -> ElementDefinition:
    gen_raw = raw.get("generator")
    generator = None
    if gen_raw is not None:
        generator = GeneratorSpec(
            output_id=gen_raw["output"],
            base_period=float(gen_raw.get("base_period", 30.0)),
            base_energy_cost=int(gen_raw.get("base_energy_cost", 5)),
            max_level=int(gen_raw.get("max_level", 5)),
            period_curve=_curve(gen_raw.get("period_curve"), DEFAULT_PERIOD_CURVE),
            cost_curve=_curve(gen_raw.get("cost_curve"), DEFAULT_COST_CURVE),
            upgrade_cost_multiplier=int(gen_raw.get("upgrade_cost_multiplier", 100)),
        )
    return ElementDefinition(
        id=raw["id"],
        name=raw.get("name", raw["id"]),
        description=raw.get("description", ""),
        type=ElementType(raw["type"]),
        tier=int(raw["tier"]),
        merge_target=raw.get("merge_target"),
        can_merge=bool(raw.get("can_merge", gen_raw is None)),
        base_value=int(raw.get("base_value", 0)),
        rarity=Rarity(raw.get("rarity", Rarity.COMMON.value)),
        generator=generator,
    )


def _recipe(raw: Dict[str, Any]) -> RecipeDefinition:
    return RecipeDefinition(
        id=raw["id"],
        name=raw.get("name", raw["id"]),
        ingredients=tuple(Ingredient(i["element"], int(i["quantity"])) for i in raw["ingredients"]),
        result_id=raw["result"],
        result_quantity=int(raw.get("result_quantity", 1)),
        base_success=int(raw.get("base_success", 100)),
        required_level=int(raw.get("required_level", 1)),
        has_puzzle=bool(raw.get("has_puzzle", False)),
        crafting_duration=float(raw.get("crafting_duration", 5.0)),
    )


def _achievement(raw: Dict[str, Any]) -> AchievementDefinition:
    rewards = raw.get("rewards", {})
    return AchievementDefinition(
        id=raw["id"],
        name=raw.get("name", raw["id"]),
        description=raw.get("description", ""),
        kind=AchievementKind(raw["kind"]),
        stat=raw.get("stat"),
        required_value=int(raw["required_value"]),
        required_level=int(raw.get("required_level", 1)),
        hidden=bool(raw.get("hidden", False)),
        coin_reward=int(rewards.get("coins", 0)),
        gem_reward=int(rewards.get("gems", 0)),
        essence_reward=int(rewards.get("essence", 0)),
        xp_reward=int(rewards.get("xp", 0)),
    )


def _check_references(catalog: Catalog) -> List[str]:
    problems: List[str] = []
    for e in catalog.elements:
        if e.merge_target is not None:
            target = catalog.find_element(e.merge_target)
            if target is None:
                problems.append(f"element {e.id}: unknown merge_target {e.merge_target}")
            elif target.type != e.type or target.tier != e.tier + 1:
                problems.append(
                    f"element {e.id}: merge_target {target.id} must be type {e.type.value} tier {e.tier + 1}"
                )
        if e.generator is not None and catalog.find_element(e.generator.output_id) is None:
            problems.append(f"generator {e.id}: unknown output {e.generator.output_id}")
    for r in catalog.recipes:
        for ing in r.ingredients:
            if catalog.find_element(ing.element_id) is None:
                problems.append(f"recipe {r.id}: unknown ingredient {ing.element_id}")
        if catalog.find_element(r.result_id) is None:
            problems.append(f"recipe {r.id}: unknown result {r.result_id}")
    return problems


def catalog_from_dict(data: Dict[str, Any]) -> Catalog:
    """Build a Catalog from raw data after schema and reference validation."""
    validate_catalog_dict(data)
    try:
        catalog = Catalog(
            elements=[_element(e) for e in data.get("elements", [])],
            recipes=[_recipe(r) for r in data.get("recipes", [])],
            achievements=[_achievement(a) for a in data.get("achievements", [])],
        )
    except (ValueError, InvariantViolationError) as e:
        raise CatalogError(f"Invalid catalog definition: {e}") from e
    problems = _check_references(catalog)
    if problems:
        for p in problems:
            logger.error("Catalog reference error: %s", p)
        raise CatalogError("Catalog has invalid references:\n  " + "\n  ".join(problems))
    return catalog


def load_catalog(path: Union[str, os.PathLike]) -> Catalog:
    """Load a catalog document from a ``.json``, ``.yaml`` or ``.yml`` file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Catalog file not found: {path}")
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise CatalogError(f"Failed to parse YAML catalog {path}: {e}") from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CatalogError(f"Failed to parse JSON catalog {path}: {e}") from e
    catalog = catalog_from_dict(data)
    logger.info("Loaded catalog from %s: %r", path, catalog)
    return catalog


__all__ = ["CATALOG_SCHEMA", "catalog_from_dict", "load_catalog", "validate_catalog_dict"]
