"""Two-way synchronization between planned meals and the remote calendar."""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from meal_planner.adapters.google_calendar_client import CalendarClient
from meal_planner.domain.errors import MissingCredentialsError
from meal_planner.domain.meals import Meal, MealEvent, MealType, Recipe
from meal_planner.domain.sync import (
    CreateMealsResult,
    ExportResult,
    ImportPreview,
    ItemFailure,
    MatchedEvent,
    ParseError,
    SkippedEvent,
    StoreUnmatchedResult,
    SyncDirection,
    SyncReport,
    SyncStats,
    SyncStatus,
    SyncStatusSnapshot,
)
from meal_planner.services.event_parser import (
    extract_meal_events,
    format_event_title,
    validate_meal_event,
)
from meal_planner.services.meals import MealPlanService, RecipeRepository
from meal_planner.services.recipe_matcher import RecipeMatcher
from meal_planner.services.shopping import ShoppingListService
from meal_planner.services.sync_log import SyncLogService
from meal_planner.services.unmatched_events import UnmatchedEventService

_logger = logging.getLogger(__name__)

BACKGROUND_TRIGGERS = frozenset({"startup", "scheduled"})
CYCLE_EVENT_ID = ""

StatusListener = Callable[[SyncStatusSnapshot], None]


class _Phase(Enum):
    IDLE = "idle"
    RUNNING = "running"


@dataclass
class SyncEngine:
    """Orchestrates import, matching, export and audit logging."""

    calendar_client: CalendarClient
    calendar_id: str
    recipe_repository: RecipeRepository
    meal_plan_service: MealPlanService
    unmatched_service: UnmatchedEventService
    sync_log_service: SyncLogService
    matcher: RecipeMatcher
    shopping_service: ShoppingListService | None = None
    app_base_url: str = ""
    past_days: int = 7
    future_days: int = 14
    timezone: str = "UTC"
    _phase: _Phase = field(default=_Phase.IDLE, init=False, repr=False)
    _phase_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )
    _listeners: list[StatusListener] = field(default_factory=list, init=False)
    _stats: SyncStats = field(default_factory=SyncStats, init=False)
    _last_sync_at: datetime | None = field(default=None, init=False)
    _last_error: str | None = field(default=None, init=False)
    _last_rollup: dict[str, int] | None = field(default=None, init=False)

    # Import direction

    async def import_from_remote(self, start: date, end: date) -> ImportPreview:
        """Fetch, parse, validate and match remote events without writing."""
        zone = ZoneInfo(self.timezone)
        # Bounds are local midnights; timeMax is exclusive, so end + 1 day.
        raw_events = await self.calendar_client.list_events(
            self.calendar_id,
            datetime.combine(start, time.min, zone).isoformat(),
            datetime.combine(end + timedelta(days=1), time.min, zone).isoformat(),
        )
        meal_events = [
            event
            for event in extract_meal_events(raw_events)
            if _starts_within(event, start, end)
        ]
        preview = ImportPreview()
        if not meal_events:
            return preview

        catalog = self.recipe_repository.list_recipes()
        for event in meal_events:
            validation = validate_meal_event(event)
            if not validation.valid:
                preview.parse_errors.append(ParseError(event, validation.errors))
                continue
            match = self.matcher.find_best_match(event.recipe_name, catalog)
            if match is None:
                preview.unmatched.append(event)
            else:
                preview.matched.append(MatchedEvent(event=event, match=match))
        _logger.info(
            "Import preview %s..%s: events=%s matched=%s unmatched=%s errors=%s",
            start,
            end,
            len(meal_events),
            len(preview.matched),
            len(preview.unmatched),
            len(preview.parse_errors),
        )
        return preview

    def create_meals_from_events(
        self, matched: list[MatchedEvent], add_to_shopping_list: bool = True
    ) -> CreateMealsResult:
        """Create meals for matched events, never touching occupied slots."""
        result = CreateMealsResult()
        for item in matched:
            event = item.event
            recipe = item.recipe
            try:
                creation = self.meal_plan_service.link_remote_meal(
                    meal_date=date.fromisoformat(event.date),
                    meal_type=event.meal_type,
                    recipe_id=recipe.id,
                    external_event_id=event.external_event_id,
                )
            except Exception as exc:
                _logger.warning(
                    "Failed to create meal for event %s: %s",
                    event.external_event_id,
                    exc,
                )
                result.failed.append(
                    ItemFailure(
                        external_event_id=event.external_event_id,
                        error=f"Failed to create meal: {exc}",
                    )
                )
                self.sync_log_service.record(
                    external_event_id=event.external_event_id,
                    direction=SyncDirection.FROM_REMOTE,
                    status=SyncStatus.FAILED,
                    error_message=str(exc),
                    metadata=_match_metadata(item),
                )
                continue

            if creation.meal is None:
                existing = creation.existing_meal
                existing_id = existing.id if existing else None
                result.skipped.append(
                    SkippedEvent(
                        event=event,
                        reason=creation.skipped_reason or "",
                        existing_meal_id=existing_id,
                    )
                )
                self.sync_log_service.record(
                    external_event_id=event.external_event_id,
                    direction=SyncDirection.FROM_REMOTE,
                    status=SyncStatus.CONFLICT,
                    meal_id=existing_id,
                    error_message=creation.skipped_reason,
                    metadata={**_match_metadata(item), "outcome": "skipped"},
                )
                continue

            meal = creation.meal
            result.created.append(meal)
            self.sync_log_service.record(
                external_event_id=event.external_event_id,
                direction=SyncDirection.FROM_REMOTE,
                status=SyncStatus.SUCCESS,
                meal_id=meal.id,
                metadata=_match_metadata(item),
            )
            if add_to_shopping_list and recipe.ingredients:
                self._expand_shopping_list(meal, recipe)
        return result

    def store_unmatched_events(
        self, unmatched: list[MealEvent]
    ) -> StoreUnmatchedResult:
        """Persist unmatched events once per remote event id."""
        return self.unmatched_service.store(unmatched)

    def _expand_shopping_list(self, meal: Meal, recipe: Recipe) -> None:
        if self.shopping_service is None:
            return
        try:
            self.shopping_service.expand_ingredients(meal, recipe)
        except Exception:
            _logger.exception(
                "Failed to add ingredients to shopping list: meal_id=%s", meal.id
            )

    def _record_parse_errors(self, parse_errors: list[ParseError]) -> None:
        for parse_error in parse_errors:
            self.sync_log_service.record(
                external_event_id=parse_error.event.external_event_id,
                direction=SyncDirection.FROM_REMOTE,
                status=SyncStatus.FAILED,
                error_message="; ".join(parse_error.errors),
                metadata={
                    "outcome": "validation_failed",
                    "original_title": parse_error.event.original_title,
                },
            )

    # Export direction

    async def export_unsynced_meals(self, start: date, end: date) -> ExportResult:
        """Create a remote event for every unlinked meal in range."""
        result = ExportResult()
        meals = self.meal_plan_service.unlinked_meals(start, end)
        if not meals:
            return result

        recipes = self.recipe_repository.list_recipes()
        catalog = {recipe.id: recipe for recipe in recipes}
        for meal in meals:
            recipe = catalog.get(meal.recipe_id)
            if recipe is None:
                self._export_failed(result, meal, f"Recipe {meal.recipe_id} not found")
                continue
            payload = build_event_payload(meal, recipe, self.app_base_url)
            try:
                created = await self.calendar_client.create_event(
                    self.calendar_id, payload
                )
            except MissingCredentialsError:
                raise
            except Exception as exc:
                self._export_failed(result, meal, f"Failed to create event: {exc}")
                continue

            remote_id = str(created["id"])
            try:
                linked = self.meal_plan_service.mark_exported(meal.id, remote_id)
            except Exception as exc:
                self._export_failed(
                    result,
                    meal,
                    f"Failed to store calendar event id: {exc}",
                    remote_event_id=remote_id,
                )
                await self._discard_orphan(remote_id)
                continue

            result.exported.append(linked)
            self.sync_log_service.record(
                external_event_id=remote_id,
                direction=SyncDirection.TO_REMOTE,
                status=SyncStatus.SUCCESS,
                meal_id=meal.id,
                metadata={"recipe_id": recipe.id, "summary": payload["summary"]},
            )
        _logger.info(
            "Export %s..%s: exported=%s failed=%s",
            start,
            end,
            len(result.exported),
            len(result.failed),
        )
        return result

    def _export_failed(
        self,
        result: ExportResult,
        meal: Meal,
        error: str,
        remote_event_id: str | None = None,
    ) -> None:
        _logger.warning("Export failed for meal %s: %s", meal.id, error)
        result.failed.append(
            ItemFailure(external_event_id=remote_event_id, error=error, meal_id=meal.id)
        )
        metadata: dict[str, object] = {"recipe_id": meal.recipe_id}
        if remote_event_id:
            metadata["remote_event_id"] = remote_event_id
        self.sync_log_service.record(
            external_event_id=remote_event_id or CYCLE_EVENT_ID,
            direction=SyncDirection.TO_REMOTE,
            status=SyncStatus.FAILED,
            meal_id=meal.id,
            error_message=error,
            metadata=metadata,
        )

    async def _discard_orphan(self, remote_event_id: str) -> None:
        try:
            await self.calendar_client.delete_event(self.calendar_id, remote_event_id)
        except Exception:
            _logger.exception("Failed to remove orphaned event %s", remote_event_id)

    async def delete_meal(self, meal_id: int) -> bool:
        """Delete a meal and best-effort delete its remote event."""
        meal = self.meal_plan_service.get_meal(meal_id)
        if meal is None:
            return False
        if meal.external_event_id:
            try:
                await self.calendar_client.delete_event(
                    self.calendar_id, meal.external_event_id
                )
            except Exception as exc:
                _logger.warning(
                    "Failed to delete calendar event %s: %s",
                    meal.external_event_id,
                    exc,
                )
                self.sync_log_service.record(
                    external_event_id=meal.external_event_id,
                    direction=SyncDirection.TO_REMOTE,
                    status=SyncStatus.FAILED,
                    meal_id=meal.id,
                    error_message=str(exc),
                    metadata={"action": "delete"},
                )
            else:
                self.sync_log_service.record(
                    external_event_id=meal.external_event_id,
                    direction=SyncDirection.TO_REMOTE,
                    status=SyncStatus.SUCCESS,
                    metadata={"action": "delete", "deleted_meal_id": meal.id},
                )
        self.meal_plan_service.delete_meal(meal.id)
        return True

    # Full cycle

    def sync_window(self, today: date | None = None) -> tuple[date, date]:
        """Return the date range covered by a sync cycle."""
        current = today or datetime.now(tz=ZoneInfo(self.timezone)).date()
        return (
            current - timedelta(days=self.past_days),
            current + timedelta(days=self.future_days),
        )

    async def perform_sync(self, trigger: str = "manual") -> SyncReport | None:
        """Run import then export over the sync window.

        Returns None without doing anything when another cycle is running.
        """
        start, end = self.sync_window()
        return await self._run_guarded(trigger, start, end, export=True)

    async def import_now(self, start: date, end: date) -> SyncReport | None:
        """User-initiated import over a date range, without export."""
        return await self._run_guarded("import", start, end, export=False)

    async def _run_guarded(
        self, trigger: str, start: date, end: date, export: bool
    ) -> SyncReport | None:
        if not self._try_begin():
            _logger.info("Sync already running, ignoring %s trigger", trigger)
            self.sync_log_service.record(
                external_event_id=CYCLE_EVENT_ID,
                direction=SyncDirection.FROM_REMOTE,
                status=SyncStatus.CONFLICT,
                error_message="Sync cycle already in progress",
                metadata={"scope": "cycle", "trigger": trigger},
            )
            return None
        report = SyncReport(
            trigger=trigger,
            start_date=start,
            end_date=end,
            started_at=datetime.now(tz=UTC),
        )
        try:
            self._publish()
            await self._run_cycle(report, export)
        except Exception as exc:
            self.sync_log_service.record(
                external_event_id=CYCLE_EVENT_ID,
                direction=SyncDirection.FROM_REMOTE,
                status=SyncStatus.FAILED,
                error_message=str(exc),
                metadata={"scope": "cycle", "trigger": trigger, "fatal": True},
            )
            self._finish(report, fatal=exc)
            raise
        else:
            self._finish(report, fatal=None)
            return report
        finally:
            with self._phase_lock:
                self._phase = _Phase.IDLE
            self._publish()

    async def _run_cycle(self, report: SyncReport, export: bool) -> None:
        try:
            preview = await self.import_from_remote(report.start_date, report.end_date)
        except MissingCredentialsError:
            raise
        except Exception as exc:
            _logger.warning("Import phase failed: %s", exc)
            report.errors.append(f"Import failed: {exc}")
            self.sync_log_service.record(
                external_event_id=CYCLE_EVENT_ID,
                direction=SyncDirection.FROM_REMOTE,
                status=SyncStatus.FAILED,
                error_message=str(exc),
                metadata={
                    "scope": "cycle",
                    "trigger": report.trigger,
                    "phase": "import",
                },
            )
        else:
            report.preview = preview
            self._record_parse_errors(preview.parse_errors)
            report.created = self.create_meals_from_events(preview.matched)
            report.unmatched = self.store_unmatched_events(preview.unmatched)

        if not export:
            return
        try:
            report.export = await self.export_unsynced_meals(
                report.start_date, report.end_date
            )
        except MissingCredentialsError:
            raise
        except Exception as exc:
            _logger.warning("Export phase failed: %s", exc)
            report.errors.append(f"Export failed: {exc}")
            self.sync_log_service.record(
                external_event_id=CYCLE_EVENT_ID,
                direction=SyncDirection.TO_REMOTE,
                status=SyncStatus.FAILED,
                error_message=str(exc),
                metadata={
                    "scope": "cycle",
                    "trigger": report.trigger,
                    "phase": "export",
                },
            )

    # Single-flight guard and status

    def _try_begin(self) -> bool:
        with self._phase_lock:
            if self._phase is _Phase.RUNNING:
                return False
            self._phase = _Phase.RUNNING
            return True

    def _finish(self, report: SyncReport, fatal: Exception | None) -> None:
        report.finished_at = datetime.now(tz=UTC)
        failed = fatal is not None or bool(report.errors)
        unmatched_count = len(report.preview.unmatched) if report.preview else 0
        self._stats = replace(
            self._stats,
            total_syncs=self._stats.total_syncs + 1,
            successful_syncs=self._stats.successful_syncs + (0 if failed else 1),
            failed_syncs=self._stats.failed_syncs + (1 if failed else 0),
            meals_imported=self._stats.meals_imported + len(report.created.created),
            unmatched_events=self._stats.unmatched_events + unmatched_count,
        )
        self._last_sync_at = report.finished_at
        self._last_rollup = report.rollup()
        if failed:
            detail = str(fatal) if fatal is not None else "; ".join(report.errors)
            self._last_error = _public_error(report.trigger, detail)
        else:
            self._last_error = None
        _logger.info(
            "Sync %s finished: %s%s",
            report.trigger,
            self._last_rollup,
            " (with errors)" if failed else "",
        )

    @property
    def is_syncing(self) -> bool:
        return self._phase is _Phase.RUNNING

    def status(self) -> SyncStatusSnapshot:
        """Return the current observable sync state."""
        return SyncStatusSnapshot(
            is_syncing=self.is_syncing,
            last_sync_at=self._last_sync_at,
            last_error=self._last_error,
            stats=self._stats,
            last_rollup=self._last_rollup,
        )

    def add_listener(self, listener: StatusListener) -> None:
        """Register a callback invoked on every status change."""
        self._listeners.append(listener)

    def reset_stats(self) -> None:
        """Reset cumulative cycle counters."""
        self._stats = SyncStats()
        self._publish()

    def _publish(self) -> None:
        snapshot = self.status()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _logger.exception("Sync status listener failed")


def build_event_payload(
    meal: Meal, recipe: Recipe, app_base_url: str
) -> dict[str, object]:
    """Build the all-day remote event for a meal."""
    description = ""
    if meal.people:
        description += f"For: {', '.join(meal.people)}\n\n"
    recipe_link = f"{app_base_url.rstrip('/')}/recipes/{recipe.id}"
    description += f"View recipe in meal planner:\n{recipe_link}"
    return {
        "summary": format_event_title(
            meal.meal_type, recipe.title, emphasis=meal.meal_type is MealType.LUNCH
        ),
        "description": description,
        # All-day events use an exclusive end date.
        "start": {"date": meal.date.isoformat()},
        "end": {"date": (meal.date + timedelta(days=1)).isoformat()},
    }


def _starts_within(event: MealEvent, start: date, end: date) -> bool:
    try:
        event_date = date.fromisoformat(event.date)
    except ValueError:
        # Malformed dates are reported by validation.
        return True
    return start <= event_date <= end


def _match_metadata(item: MatchedEvent) -> dict[str, object]:
    metadata: dict[str, object] = {
        "recipe_id": item.recipe.id,
        "match_type": item.match.match_type,
        "score": item.match.score,
        "original_title": item.event.original_title,
    }
    confidence = getattr(item.match, "confidence", None)
    if confidence is not None:
        metadata["confidence"] = confidence.value
    return metadata


def _public_error(trigger: str, detail: str) -> str:
    if trigger in BACKGROUND_TRIGGERS:
        return "Background sync failed; see sync activity for details"
    return detail
