"""Supabase repository for the sync audit log."""

from dataclasses import dataclass, replace
from datetime import datetime

from supabase import Client

from meal_planner.adapters.supabase_errors import translate_api_errors
from meal_planner.domain.errors import PersistenceError
from meal_planner.domain.sync import SyncDirection, SyncLogEntry, SyncStatus
from meal_planner.services.sync_log import SyncLogRepository

_COLUMNS = (
    "id, event_id, meal_id, sync_direction, sync_status, sync_time, "
    "error_message, metadata"
)


@dataclass
class SupabaseSyncLogRepository(SyncLogRepository):
    """Supabase-backed sync log."""

    client: Client

    def append(self, entry: SyncLogEntry) -> SyncLogEntry:
        """Insert a log row and return the entry with its id."""
        with translate_api_errors("Failed to write sync log"):
            response = (
                self.client.table("sync_log")
                .insert(
                    {
                        "event_id": entry.external_event_id,
                        "meal_id": entry.meal_id,
                        "sync_direction": entry.direction.value,
                        "sync_status": entry.status.value,
                        "sync_time": entry.timestamp.isoformat(),
                        "error_message": entry.error_message,
                        "metadata": entry.metadata,
                    }
                )
                .execute()
            )
        if not response.data:
            raise PersistenceError("Failed to write sync log")
        return replace(entry, id=int(response.data[0]["id"]))

    def list_recent(self, limit: int) -> list[SyncLogEntry]:
        """Return the newest entries first."""
        with translate_api_errors("Failed to read sync log"):
            response = (
                self.client.table("sync_log")
                .select(_COLUMNS)
                .order("sync_time", desc=True)
                .limit(limit)
                .execute()
            )
        return [_parse_entry(row) for row in response.data or []]


def _parse_entry(row: dict[str, object]) -> SyncLogEntry:
    return SyncLogEntry(
        id=int(row["id"]),
        external_event_id=str(row.get("event_id") or ""),
        meal_id=int(row["meal_id"]) if row.get("meal_id") is not None else None,
        direction=SyncDirection(row["sync_direction"]),
        status=SyncStatus(row["sync_status"]),
        timestamp=datetime.fromisoformat(str(row["sync_time"])),
        error_message=row.get("error_message"),
        metadata=row.get("metadata") or {},
    )
