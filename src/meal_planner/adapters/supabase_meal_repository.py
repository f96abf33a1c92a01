"""Supabase repository for planned meals."""

from dataclasses import dataclass
from datetime import date, datetime

from supabase import Client

from meal_planner.adapters.supabase_errors import translate_api_errors
from meal_planner.domain.errors import PersistenceError
from meal_planner.domain.meals import Meal, MealType, SyncSource
from meal_planner.services.meals import MealRepository

_COLUMNS = (
    "id, date, meal_type, recipe_id, people, calendar_event_id, "
    "last_synced_at, sync_source"
)


@dataclass
class SupabaseMealRepository(MealRepository):
    """Supabase implementation for meals."""

    client: Client

    def find_by_slot(self, meal_date: date, meal_type: MealType) -> Meal | None:
        """Return the meal occupying a (date, meal type) slot."""
        with translate_api_errors("Failed to look up meal slot"):
            response = (
                self.client.table("meals")
                .select(_COLUMNS)
                .eq("date", meal_date.isoformat())
                .eq("meal_type", meal_type.value)
                .limit(1)
                .execute()
            )
        return _first(response.data)

    def find_by_external_id(self, external_event_id: str) -> Meal | None:
        """Return the meal linked to a calendar event."""
        with translate_api_errors("Failed to look up linked meal"):
            response = (
                self.client.table("meals")
                .select(_COLUMNS)
                .eq("calendar_event_id", external_event_id)
                .limit(1)
                .execute()
            )
        return _first(response.data)

    def get_meal(self, meal_id: int) -> Meal | None:
        with translate_api_errors("Failed to load meal"):
            response = (
                self.client.table("meals")
                .select(_COLUMNS)
                .eq("id", meal_id)
                .limit(1)
                .execute()
            )
        return _first(response.data)

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
        """Insert a meal row and return it."""
        with translate_api_errors("Failed to create meal"):
            response = (
                self.client.table("meals")
                .insert(
                    {
                        "date": meal_date.isoformat(),
                        "meal_type": meal_type.value,
                        "recipe_id": recipe_id,
                        "people": list(people),
                        "calendar_event_id": external_event_id,
                        "last_synced_at": last_synced_at.isoformat()
                        if last_synced_at
                        else None,
                        "sync_source": sync_source.value,
                    }
                )
                .execute()
            )
        if not response.data:
            raise PersistenceError("Failed to create meal")
        return _parse_meal(response.data[0])

    def update_sync_link(
        self, meal_id: int, external_event_id: str, last_synced_at: datetime
    ) -> Meal:
        """Store the calendar event id on a meal."""
        with translate_api_errors("Failed to link meal to calendar event"):
            response = (
                self.client.table("meals")
                .update(
                    {
                        "calendar_event_id": external_event_id,
                        "last_synced_at": last_synced_at.isoformat(),
                    }
                )
                .eq("id", meal_id)
                .execute()
            )
        if not response.data:
            raise PersistenceError(f"Meal {meal_id} was not updated")
        return _parse_meal(response.data[0])

    def delete_meal(self, meal_id: int) -> None:
        with translate_api_errors("Failed to delete meal"):
            self.client.table("meals").delete().eq("id", meal_id).execute()

    def list_unlinked_meals(self, start: date, end: date) -> list[Meal]:
        """Return meals in range that have no calendar event yet."""
        with translate_api_errors("Failed to list unsynced meals"):
            response = (
                self.client.table("meals")
                .select(_COLUMNS)
                .gte("date", start.isoformat())
                .lte("date", end.isoformat())
                .is_("calendar_event_id", "null")
                .order("date", desc=False)
                .execute()
            )
        return [_parse_meal(row) for row in response.data or []]


def _first(rows: list[dict[str, object]] | None) -> Meal | None:
    if not rows:
        return None
    return _parse_meal(rows[0])


def _parse_meal(row: dict[str, object]) -> Meal:
    last_synced_at = row.get("last_synced_at")
    return Meal(
        id=int(row["id"]),
        date=date.fromisoformat(str(row["date"])),
        meal_type=MealType(row["meal_type"]),
        recipe_id=int(row["recipe_id"]),
        people=tuple(row.get("people") or ()),
        external_event_id=row.get("calendar_event_id"),
        last_synced_at=datetime.fromisoformat(last_synced_at)
        if last_synced_at
        else None,
        sync_source=SyncSource(row.get("sync_source") or SyncSource.LOCAL_ONLY.value),
    )
