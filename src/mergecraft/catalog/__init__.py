from .catalog import Catalog
from .curves import InterpolationCurve
from .loader import catalog_from_dict, load_catalog
from .models import (
    AchievementDefinition,
    AchievementKind,
    ElementDefinition,
    ElementType,
    GeneratorSpec,
    Ingredient,
    Quality,
    Rarity,
    RecipeDefinition,
)

__all__ = [
    "AchievementDefinition",
    "AchievementKind",
    "Catalog",
    "ElementDefinition",
    "ElementType",
    "GeneratorSpec",
    "Ingredient",
    "InterpolationCurve",
    "Quality",
    "Rarity",
    "RecipeDefinition",
    "catalog_from_dict",
    "load_catalog",
]
