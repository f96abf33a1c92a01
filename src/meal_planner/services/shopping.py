"""Shopping list expansion for imported meals."""

import logging
from dataclasses import dataclass
from typing import Protocol

from meal_planner.domain.meals import Meal, Recipe

_logger = logging.getLogger(__name__)

DEFAULT_PEOPLE_COUNT = 2


@dataclass(frozen=True)
class ShoppingItem:
    """Row of the shopping list."""

    id: int
    ingredient_id: int
    quantity: float
    unit: str
    recipe_name: str | None = None


class ShoppingListRepository(Protocol):
    """Persistence interface for the shopping list."""

    def find_item(self, ingredient_id: int, unit: str) -> ShoppingItem | None:
        """Return the list row for an ingredient and unit, if present."""

    def update_item(self, item_id: int, quantity: float, recipe_name: str) -> None:
        """Update quantity and source recipe names of a row."""

    def add_items(
        self, meal: Meal, recipe: Recipe, items: list[dict[str, object]]
    ) -> None:
        """Insert new rows for a meal's recipe."""


@dataclass
class ShoppingListService:
    """Adds a recipe's ingredients to the shopping list, scaled by servings."""

    repository: ShoppingListRepository

    def expand_ingredients(self, meal: Meal, recipe: Recipe) -> int:
        """Merge scaled ingredients into the list and return rows touched."""
        if not recipe.ingredients:
            return 0
        multiplier = servings_multiplier(meal, recipe)
        new_items: list[dict[str, object]] = []
        for ingredient in recipe.ingredients:
            quantity = ingredient.quantity * multiplier
            existing = self.repository.find_item(
                ingredient.ingredient_id, ingredient.unit
            )
            if existing is not None:
                recipe_names = (
                    f"{existing.recipe_name}, {recipe.title}"
                    if existing.recipe_name
                    else recipe.title
                )
                self.repository.update_item(
                    existing.id, existing.quantity + quantity, recipe_names
                )
                continue
            new_items.append(
                {
                    "ingredient_id": ingredient.ingredient_id,
                    "quantity": quantity,
                    "unit": ingredient.unit,
                }
            )
        if new_items:
            self.repository.add_items(meal, recipe, new_items)
        _logger.info(
            "Shopping list expanded: meal_id=%s recipe_id=%s items=%s",
            meal.id,
            recipe.id,
            len(recipe.ingredients),
        )
        return len(recipe.ingredients)


def servings_multiplier(meal: Meal, recipe: Recipe) -> float:
    """Scale factor from recipe servings to the people eating the meal."""
    people = len(meal.people) or DEFAULT_PEOPLE_COUNT
    servings = recipe.servings if recipe.servings and recipe.servings > 0 else 1
    return people / servings
