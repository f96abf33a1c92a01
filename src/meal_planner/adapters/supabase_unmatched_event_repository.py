"""Supabase repository for unmatched calendar events."""

from dataclasses import dataclass
from datetime import date, datetime

from supabase import Client

from meal_planner.adapters.supabase_errors import translate_api_errors
from meal_planner.domain.errors import PersistenceError
from meal_planner.domain.meals import MealEvent, MealType
from meal_planner.domain.sync import UnmatchedEvent, UnmatchedStatus
from meal_planner.services.unmatched_events import UnmatchedEventRepository

_COLUMNS = (
    "id, event_id, event_title, event_date, meal_type, recipe_name, status, "
    "created_at, resolved_at, resolved_recipe_id, notes"
)


@dataclass
class SupabaseUnmatchedEventRepository(UnmatchedEventRepository):
    """Supabase implementation for unmatched events."""

    client: Client

    def get(self, unmatched_id: int) -> UnmatchedEvent | None:
        with translate_api_errors("Failed to load unmatched event"):
            response = (
                self.client.table("unmatched_events")
                .select(_COLUMNS)
                .eq("id", unmatched_id)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_event(response.data[0])

    def get_by_external_id(self, external_event_id: str) -> UnmatchedEvent | None:
        with translate_api_errors("Failed to load unmatched event"):
            response = (
                self.client.table("unmatched_events")
                .select(_COLUMNS)
                .eq("event_id", external_event_id)
                .limit(1)
                .execute()
            )
        if not response.data:
            return None
        return _parse_event(response.data[0])

    def create(self, event: MealEvent, event_date: date) -> UnmatchedEvent:
        """Insert a pending row for a remote event."""
        with translate_api_errors("Failed to store unmatched event"):
            response = (
                self.client.table("unmatched_events")
                .insert(
                    {
                        "event_id": event.external_event_id,
                        "event_title": event.original_title,
                        "event_date": event_date.isoformat(),
                        "meal_type": event.meal_type.value,
                        "recipe_name": event.recipe_name,
                        "status": UnmatchedStatus.PENDING.value,
                    }
                )
                .execute()
            )
        if not response.data:
            raise PersistenceError("Failed to store unmatched event")
        return _parse_event(response.data[0])

    def list_pending(self) -> list[UnmatchedEvent]:
        """Return pending rows, latest event date first."""
        with translate_api_errors("Failed to list unmatched events"):
            response = (
                self.client.table("unmatched_events")
                .select(_COLUMNS)
                .eq("status", UnmatchedStatus.PENDING.value)
                .order("event_date", desc=True)
                .execute()
            )
        return [_parse_event(row) for row in response.data or []]

    def count_pending(self) -> int:
        with translate_api_errors("Failed to count unmatched events"):
            response = (
                self.client.table("unmatched_events")
                .select("id", count="exact")
                .eq("status", UnmatchedStatus.PENDING.value)
                .execute()
            )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])

    def mark_matched(
        self, unmatched_id: int, recipe_id: int, resolved_at: datetime
    ) -> UnmatchedEvent:
        """Close a pending row as matched to a recipe."""
        return self._close(
            unmatched_id,
            {
                "status": UnmatchedStatus.MATCHED.value,
                "resolved_recipe_id": recipe_id,
                "resolved_at": resolved_at.isoformat(),
            },
        )

    def mark_ignored(
        self, unmatched_id: int, notes: str | None, resolved_at: datetime
    ) -> UnmatchedEvent:
        """Close a pending row without a recipe."""
        return self._close(
            unmatched_id,
            {
                "status": UnmatchedStatus.IGNORED.value,
                "notes": notes,
                "resolved_at": resolved_at.isoformat(),
            },
        )

    def _close(self, unmatched_id: int, changes: dict[str, object]) -> UnmatchedEvent:
        # Only pending rows may transition, so a concurrent resolution is a no-op.
        with translate_api_errors("Failed to update unmatched event"):
            response = (
                self.client.table("unmatched_events")
                .update(changes)
                .eq("id", unmatched_id)
                .eq("status", UnmatchedStatus.PENDING.value)
                .execute()
            )
        if not response.data:
            raise PersistenceError(
                f"Unmatched event {unmatched_id} is no longer pending"
            )
        return _parse_event(response.data[0])


def _parse_event(row: dict[str, object]) -> UnmatchedEvent:
    resolved_at = row.get("resolved_at")
    resolved_recipe_id = row.get("resolved_recipe_id")
    return UnmatchedEvent(
        id=int(row["id"]),
        external_event_id=str(row["event_id"]),
        original_title=str(row.get("event_title") or ""),
        date=date.fromisoformat(str(row["event_date"])),
        meal_type=MealType(row["meal_type"]),
        extracted_recipe_name=str(row.get("recipe_name") or ""),
        status=UnmatchedStatus(row.get("status") or UnmatchedStatus.PENDING.value),
        created_at=datetime.fromisoformat(str(row["created_at"])),
        resolved_at=datetime.fromisoformat(str(resolved_at)) if resolved_at else None,
        resolved_recipe_id=int(resolved_recipe_id)
        if resolved_recipe_id is not None
        else None,
        notes=row.get("notes"),
    )
