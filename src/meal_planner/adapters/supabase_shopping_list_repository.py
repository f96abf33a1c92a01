"""Supabase repository for the shopping list."""

from dataclasses import dataclass

from supabase import Client

from meal_planner.adapters.supabase_errors import translate_api_errors
from meal_planner.domain.meals import Meal, Recipe
from meal_planner.services.shopping import ShoppingItem, ShoppingListRepository


@dataclass
class SupabaseShoppingListRepository(ShoppingListRepository):
    """Supabase-backed shopping list."""

    client: Client

    def find_item(self, ingredient_id: int, unit: str) -> ShoppingItem | None:
        with translate_api_errors("Failed to read shopping list"):
            response = (
                self.client.table("shopping_list")
                .select("id, ingredient_id, quantity, unit, recipe_name")
                .eq("ingredient_id", ingredient_id)
                .eq("unit", unit)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        row = response.data[0]
        return ShoppingItem(
            id=int(row["id"]),
            ingredient_id=int(row["ingredient_id"]),
            quantity=float(row.get("quantity") or 0.0),
            unit=str(row.get("unit") or ""),
            recipe_name=row.get("recipe_name"),
        )

    def update_item(self, item_id: int, quantity: float, recipe_name: str) -> None:
        with translate_api_errors("Failed to update shopping list"):
            self.client.table("shopping_list").update(
                {
                    "quantity": quantity,
                    "recipe_name": recipe_name,
                    "is_recipe_item": True,
                }
            ).eq("id", item_id).execute()

    def add_items(
        self, meal: Meal, recipe: Recipe, items: list[dict[str, object]]
    ) -> None:
        """Insert unchecked rows attributed to a meal's recipe."""
        payload = [
            {
                **item,
                "checked": False,
                "meal_id": meal.id,
                "recipe_id": recipe.id,
                "recipe_name": recipe.title,
                "is_recipe_item": True,
            }
            for item in items
        ]
        if not payload:
            return
        with translate_api_errors("Failed to add shopping list items"):
            self.client.table("shopping_list").insert(payload).execute()
