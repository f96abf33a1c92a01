"""Meal persistence ports and slot-guarded meal creation."""

from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol

from meal_planner.domain.errors import DuplicateRecordError
from meal_planner.domain.meals import Meal, MealType, Recipe, SyncSource


class RecipeRepository(Protocol):
    """Read access to the recipe catalog."""

    def list_recipes(self) -> list[Recipe]:
        """Return every recipe in the catalog."""

    def get_recipe(self, recipe_id: int) -> Recipe | None:
        """Return a recipe by id, if present."""


class MealRepository(Protocol):
    """Persistence interface for planned meals."""

    def find_by_slot(self, meal_date: date, meal_type: MealType) -> Meal | None:
        """Return the meal occupying a slot, if any."""

    def find_by_external_id(self, external_event_id: str) -> Meal | None:
        """Return the meal linked to a remote event, if any."""

    def get_meal(self, meal_id: int) -> Meal | None:
        """Return a meal by id, if present."""

    def create_meal(  # noqa: PLR0913
        self,
        meal_date: date,
        meal_type: MealType,
        recipe_id: int,
        people: tuple[str, ...],
        external_event_id: str | None,
        last_synced_at: datetime | None,
        sync_source: SyncSource,
    ) -> Meal:
        """Create a meal row and return it."""

    def update_sync_link(
        self, meal_id: int, external_event_id: str, last_synced_at: datetime
    ) -> Meal:
        """Store the remote event id on a meal."""

    def delete_meal(self, meal_id: int) -> None:
        """Delete a meal row."""

    def list_unlinked_meals(self, start: date, end: date) -> list[Meal]:
        """Return meals in [start, end] without a remote event id."""


@dataclass(frozen=True)
class MealCreation:
    """Outcome of a guarded meal creation."""

    meal: Meal | None
    skipped_reason: str | None = None
    existing_meal: Meal | None = None

    @property
    def created(self) -> bool:
        return self.meal is not None


SLOT_OCCUPIED = "Meal already exists for this date and meal type"
ALREADY_LINKED = "Remote event is already linked to a meal"


@dataclass
class MealPlanService:
    """Creates remote-sourced meals without ever overwriting a slot."""

    meal_repository: MealRepository
    default_people: tuple[str, ...] = ()

    def link_remote_meal(
        self,
        meal_date: date,
        meal_type: MealType,
        recipe_id: int,
        external_event_id: str,
        people: tuple[str, ...] | None = None,
    ) -> MealCreation:
        """Create a meal for a remote event unless a guard says otherwise."""
        linked = self.meal_repository.find_by_external_id(external_event_id)
        if linked is not None:
            return MealCreation(
                meal=None, skipped_reason=ALREADY_LINKED, existing_meal=linked
            )
        occupant = self.meal_repository.find_by_slot(meal_date, meal_type)
        if occupant is not None:
            return MealCreation(
                meal=None, skipped_reason=SLOT_OCCUPIED, existing_meal=occupant
            )
        try:
            meal = self.meal_repository.create_meal(
                meal_date=meal_date,
                meal_type=meal_type,
                recipe_id=recipe_id,
                people=people if people else self.default_people,
                external_event_id=external_event_id,
                last_synced_at=datetime.now(tz=UTC),
                sync_source=SyncSource.FROM_REMOTE,
            )
        except DuplicateRecordError:
            # Lost a race with another writer; the store constraint held.
            linked = self.meal_repository.find_by_external_id(external_event_id)
            if linked is not None:
                return MealCreation(
                    meal=None, skipped_reason=ALREADY_LINKED, existing_meal=linked
                )
            return MealCreation(
                meal=None,
                skipped_reason=SLOT_OCCUPIED,
                existing_meal=self.meal_repository.find_by_slot(meal_date, meal_type),
            )
        return MealCreation(meal=meal)

    def get_meal(self, meal_id: int) -> Meal | None:
        """Return a meal by id."""
        return self.meal_repository.get_meal(meal_id)

    def unlinked_meals(self, start: date, end: date) -> list[Meal]:
        """Return meals in range that were never exported."""
        return [
            meal
            for meal in self.meal_repository.list_unlinked_meals(start, end)
            if meal.external_event_id is None
        ]

    def mark_exported(self, meal_id: int, external_event_id: str) -> Meal:
        """Record a successful export on the meal."""
        return self.meal_repository.update_sync_link(
            meal_id, external_event_id, datetime.now(tz=UTC)
        )

    def delete_meal(self, meal_id: int) -> None:
        self.meal_repository.delete_meal(meal_id)
