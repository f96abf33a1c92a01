"""Append-only audit log of sync attempts."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from meal_planner.domain.sync import SyncDirection, SyncLogEntry, SyncStatus

_logger = logging.getLogger(__name__)


class SyncLogRepository(Protocol):
    """Persistence interface for sync log entries."""

    def append(self, entry: SyncLogEntry) -> SyncLogEntry:
        """Insert an entry and return it with its id."""

    def list_recent(self, limit: int) -> list[SyncLogEntry]:
        """Return the newest entries first."""


@dataclass
class SyncLogService:
    """Records every sync attempt without ever failing the caller."""

    repository: SyncLogRepository

    def record(  # noqa: PLR0913
        self,
        external_event_id: str,
        direction: SyncDirection,
        status: SyncStatus,
        meal_id: int | None = None,
        error_message: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> SyncLogEntry | None:
        """Append a log entry; failures are logged and return None."""
        entry = SyncLogEntry(
            id=None,
            external_event_id=external_event_id,
            meal_id=meal_id,
            direction=direction,
            status=status,
            timestamp=datetime.now(tz=UTC),
            error_message=error_message,
            metadata=metadata or {},
        )
        try:
            return self.repository.append(entry)
        except Exception:
            _logger.exception(
                "Failed to write sync log: event_id=%s status=%s",
                external_event_id,
                status.value,
            )
            return None

    def recent_activity(self, limit: int = 50) -> list[SyncLogEntry]:
        """Return recent sync activity, newest first."""
        return self.repository.list_recent(max(1, limit))
