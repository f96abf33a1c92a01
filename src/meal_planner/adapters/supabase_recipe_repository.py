"""Supabase repository for the recipe catalog."""

from dataclasses import dataclass

from supabase import Client

from meal_planner.adapters.supabase_errors import translate_api_errors
from meal_planner.domain.meals import Recipe, RecipeIngredient
from meal_planner.services.meals import RecipeRepository

_COLUMNS = "id, title, servings, ingredients"


@dataclass
class SupabaseRecipeRepository(RecipeRepository):
    """Supabase-backed recipe catalog."""

    client: Client

    def list_recipes(self) -> list[Recipe]:
        """Return every recipe ordered by id."""
        with translate_api_errors("Failed to list recipes"):
            response = (
                self.client.table("recipes")
                .select(_COLUMNS)
                .order("id", desc=False)
                .execute()
            )
        return [_parse_recipe(row) for row in response.data or []]

    def get_recipe(self, recipe_id: int) -> Recipe | None:
        """Return a recipe by id."""
        with translate_api_errors("Failed to load recipe"):
            response = (
                self.client.table("recipes")
                .select(_COLUMNS)
                .eq("id", recipe_id)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_recipe(response.data[0])


def _parse_recipe(row: dict[str, object]) -> Recipe:
    ingredients = []
    for item in row.get("ingredients") or []:
        # Recipes written by the web client store camelCase keys.
        ingredient_id = item.get("ingredient_id", item.get("ingredientId"))
        if ingredient_id is None:
            continue
        ingredients.append(
            RecipeIngredient(
                ingredient_id=int(ingredient_id),
                quantity=float(item.get("quantity") or 0.0),
                unit=str(item.get("unit") or ""),
            )
        )
    return Recipe(
        id=int(row["id"]),
        title=str(row.get("title") or ""),
        servings=float(row.get("servings") or 2.0),
        ingredients=tuple(ingredients),
    )
