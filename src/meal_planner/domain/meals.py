"""Domain models for planned meals and the recipe catalog."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class MealType(Enum):
    """Meal slots that can be planned on a day."""

    BREAKFAST = "Breakfast"
    LUNCH = "Lunch"
    DINNER = "Dinner"

    @classmethod
    def from_label(cls, label: str) -> "MealType | None":
        """Return the meal type for a case-insensitive label."""
        cleaned = label.strip().lower()
        for member in cls:
            if member.value.lower() == cleaned:
                return member
        return None


class SyncSource(Enum):
    """Where a meal record originated."""

    LOCAL_ONLY = "meal_planner"
    FROM_REMOTE = "google_calendar"


@dataclass(frozen=True)
class RecipeIngredient:
    """Ingredient line of a recipe."""

    ingredient_id: int
    quantity: float
    unit: str


@dataclass(frozen=True)
class Recipe:
    """Recipe catalog entry."""

    id: int
    title: str
    servings: float = 2.0
    ingredients: tuple[RecipeIngredient, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Meal:
    """Planned meal occupying a single (date, meal type) slot."""

    id: int
    date: date
    meal_type: MealType
    recipe_id: int
    people: tuple[str, ...] = ()
    external_event_id: str | None = None
    last_synced_at: datetime | None = None
    sync_source: SyncSource = SyncSource.LOCAL_ONLY

    @property
    def is_linked(self) -> bool:
        """Whether the meal is tied to a remote calendar event."""
        return self.external_event_id is not None


@dataclass(frozen=True)
class MealEvent:
    """Meal extracted from a remote calendar event.

    ``date`` keeps the raw ``YYYY-MM-DD`` string of the event start so that
    malformed remote data can be reported by validation instead of failing
    during extraction.
    """

    external_event_id: str
    meal_type: MealType
    recipe_name: str
    date: str
    emphasis: bool
    original_title: str
    description: str | None = None
    html_link: str | None = None
    updated: str | None = None
