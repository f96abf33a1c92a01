"""Domain models for calendar synchronization."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from meal_planner.domain.matching import ExactMatch, FuzzyMatch, PartialMatch
from meal_planner.domain.meals import Meal, MealEvent, MealType, Recipe


class SyncDirection(Enum):
    """Direction of a synchronization attempt."""

    TO_REMOTE = "to_google"
    FROM_REMOTE = "from_google"


class SyncStatus(Enum):
    """Outcome of a synchronization attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    CONFLICT = "conflict"


class UnmatchedStatus(Enum):
    """Resolution state of an unmatched event."""

    PENDING = "pending"
    MATCHED = "matched"
    IGNORED = "ignored"


@dataclass(frozen=True)
class SyncLogEntry:
    """Append-only audit record of one sync attempt."""

    id: int | None
    external_event_id: str
    meal_id: int | None
    direction: SyncDirection
    status: SyncStatus
    timestamp: datetime
    error_message: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class UnmatchedEvent:
    """Parsed remote event that no recipe matched."""

    id: int
    external_event_id: str
    original_title: str
    date: date
    meal_type: MealType
    extracted_recipe_name: str
    status: UnmatchedStatus
    created_at: datetime
    resolved_at: datetime | None = None
    resolved_recipe_id: int | None = None
    notes: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is UnmatchedStatus.PENDING


@dataclass(frozen=True)
class MatchedEvent:
    """Meal event paired with the recipe it matched."""

    event: MealEvent
    match: ExactMatch | FuzzyMatch | PartialMatch

    @property
    def recipe(self) -> Recipe:
        return self.match.recipe


@dataclass(frozen=True)
class ParseError:
    """Meal event that parsed but failed validation."""

    event: MealEvent
    errors: list[str]


@dataclass
class ImportPreview:
    """Remote meal events partitioned by match outcome."""

    matched: list[MatchedEvent] = field(default_factory=list)
    unmatched: list[MealEvent] = field(default_factory=list)
    parse_errors: list[ParseError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.matched) + len(self.unmatched) + len(self.parse_errors)


@dataclass(frozen=True)
class ItemFailure:
    """Item that could not be processed, with the reason."""

    external_event_id: str | None
    error: str
    meal_id: int | None = None


@dataclass(frozen=True)
class SkippedEvent:
    """Matched event that was not imported because of a duplicate guard."""

    event: MealEvent
    reason: str
    existing_meal_id: int | None = None


@dataclass
class CreateMealsResult:
    """Outcome of creating meals from matched events."""

    created: list[Meal] = field(default_factory=list)
    skipped: list[SkippedEvent] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)


@dataclass
class StoreUnmatchedResult:
    """Outcome of persisting unmatched events."""

    stored: list[UnmatchedEvent] = field(default_factory=list)
    existing: list[UnmatchedEvent] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)


@dataclass
class ExportResult:
    """Outcome of exporting unlinked meals."""

    exported: list[Meal] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)


@dataclass
class SyncReport:
    """Rollup of one full sync cycle."""

    trigger: str
    start_date: date
    end_date: date
    started_at: datetime
    finished_at: datetime | None = None
    preview: ImportPreview | None = None
    created: CreateMealsResult = field(default_factory=CreateMealsResult)
    unmatched: StoreUnmatchedResult = field(default_factory=StoreUnmatchedResult)
    export: ExportResult = field(default_factory=ExportResult)
    errors: list[str] = field(default_factory=list)

    def rollup(self) -> dict[str, int]:
        """Return counts surfaced to the UI after a cycle."""
        unmatched_count = len(self.preview.unmatched) if self.preview else 0
        parse_errors = len(self.preview.parse_errors) if self.preview else 0
        return {
            "created": len(self.created.created),
            "skipped": len(self.created.skipped),
            "unmatched": unmatched_count,
            "exported": len(self.export.exported),
            "failed": len(self.created.failed)
            + len(self.unmatched.failed)
            + len(self.export.failed)
            + parse_errors
            + len(self.errors),
        }


@dataclass(frozen=True)
class SyncStats:
    """Cumulative counters across cycles in this process."""

    total_syncs: int = 0
    successful_syncs: int = 0
    failed_syncs: int = 0
    meals_imported: int = 0
    unmatched_events: int = 0


@dataclass(frozen=True)
class SyncStatusSnapshot:
    """Observable state of the sync engine."""

    is_syncing: bool
    last_sync_at: datetime | None
    last_error: str | None
    stats: SyncStats
    last_rollup: dict[str, int] | None = None


@dataclass(frozen=True)
class CalendarInfo:
    """Calendar visible to the signed-in account."""

    id: str
    summary: str
    primary: bool = False
    access_role: str | None = None
    description: str | None = None
    background_color: str | None = None
