import pytest

from mergecraft.catalog import (
    Catalog,
    ElementDefinition,
    ElementType,
    GeneratorSpec,
    InterpolationCurve,
    Quality,
    Rarity,
    RecipeDefinition,
)
from mergecraft.catalog.models import Ingredient
from mergecraft.exceptions import InvariantViolationError, UnknownDefinitionError


def test_lookup_and_queries(catalog):
    berry = catalog.element("berry_1")
    assert berry.key == ("berry_1", 1)
    assert "berry_3" in catalog
    assert [e.id for e in catalog.elements_by_type(ElementType.MUSHROOM)] == ["mushroom_1", "mushroom_2"]
    assert {e.id for e in catalog.elements_by_tier(2)} == {"berry_2", "mushroom_2"}
    assert [g.id for g in catalog.generators()] == ["bush", "log"]
    assert [r.id for r in catalog.recipes_for_level(1)] == ["tonic", "stew"]
    assert [r.id for r in catalog.recipes_for_level(3)] == ["tonic", "stew", "elixir"]
    assert [a.id for a in catalog.achievements_for_stat("merges")] == ["first_merge", "ten_merges"]

    with pytest.raises(UnknownDefinitionError):
        catalog.element("nope")
    with pytest.raises(UnknownDefinitionError):
        catalog.recipe("nope")
    assert catalog.find_element("nope") is None


def test_merge_chain_and_depth(catalog):
    chain = catalog.merge_chain("berry_2")
    assert [e.id for e in chain] == ["berry_2", "berry_3", "berry_4", "berry_5"]
    assert catalog.max_tier_depth == 4
    assert catalog.merge_result(catalog.element("berry_1")).id == "berry_2"
    with pytest.raises(InvariantViolationError):
        catalog.merge_result(catalog.element("berry_5"))


def test_merge_chain_cycle_is_rejected():
    a = ElementDefinition(id="a", type=ElementType.TOOL, tier=1, merge_target="b")
    b = ElementDefinition(id="b", type=ElementType.TOOL, tier=2, merge_target="a")
    with pytest.raises(InvariantViolationError):
        Catalog([a, b])


def test_duplicate_ids_rejected():
    a = ElementDefinition(id="a", type=ElementType.TOOL, tier=1)
    with pytest.raises(ValueError):
        Catalog([a, a])


def test_can_merge_with_rules(catalog):
    b1 = catalog.element("berry_1")
    b2 = catalog.element("berry_2")
    m1 = catalog.element("mushroom_1")
    assert b1.can_merge_with(b1)
    assert not b1.can_merge_with(b2)
    assert not b1.can_merge_with(m1)
    # Terminal tier never merges
    top = catalog.element("berry_5")
    assert top.is_terminal
    assert not top.can_merge_with(top)
    # Generators do not merge by default
    bush = catalog.element("bush")
    assert bush.is_generator and not bush.can_merge_with(bush)


def test_sell_value_and_rarity(catalog):
    assert catalog.element("berry_1").sell_value() == 2 * 2
    assert catalog.element("berry_5").sell_value() == 13 * 6
    assert Rarity.COMMON.multiplier == 1
    assert Rarity.LEGENDARY.multiplier == 16


def test_quality_factors():
    assert Quality.NORMAL.success_factor == 1.0
    assert Quality.PERFECT.success_factor == 0.7
    assert Quality.GOOD.output_multiplier == 1.1
    assert Quality.PERFECT.output_multiplier == 1.5


def test_interpolation_curve_clamps_and_interpolates():
    curve = InterpolationCurve.from_points([[0, 1.0], [0.5, 0.8], [1, 0.4]])
    assert curve.evaluate(-1) == 1.0
    assert curve.evaluate(2) == 0.4
    assert curve.evaluate(0.25) == pytest.approx(0.9)
    assert curve.evaluate(0.75) == pytest.approx(0.6)
    assert curve.is_monotonic()
    with pytest.raises(ValueError):
        InterpolationCurve(((0.0, 1.0), (0.0, 2.0)))


def test_generator_spec_levels():
    spec = GeneratorSpec(output_id="x", base_period=30.0, base_energy_cost=10, max_level=5)
    assert spec.period_for_level(1) == pytest.approx(30.0)
    assert spec.period_for_level(5) == pytest.approx(15.0)
    assert spec.period_for_level(3) == pytest.approx(22.5)
    assert spec.cost_for_level(1) == 10
    assert spec.cost_for_level(5) == 7
    # Levels outside the range clamp
    assert spec.period_for_level(99) == pytest.approx(15.0)
    assert spec.upgrade_cost(1) == 200
    assert GeneratorSpec(output_id="x", max_level=1).period_for_level(1) == pytest.approx(30.0)


def test_recipe_validation_and_xp():
    with pytest.raises(ValueError):
        RecipeDefinition(id="r", ingredients=(Ingredient("a", 1), Ingredient("a", 2)), result_id="b")
    with pytest.raises(ValueError):
        RecipeDefinition(id="r", ingredients=(), result_id="b")
    with pytest.raises(ValueError):
        Ingredient("a", 0)
    short = RecipeDefinition(id="r", ingredients=(Ingredient("a", 1),), result_id="b", crafting_duration=2)
    long = RecipeDefinition(id="r", ingredients=(Ingredient("a", 1),), result_id="b", crafting_duration=30)
    assert short.craft_xp() == 10
    assert long.craft_xp() == 60
