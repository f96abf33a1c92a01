"""Holding area for remote meal events that matched no recipe."""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Protocol

from meal_planner.domain.errors import (
    DuplicateRecordError,
    RecipeNotFoundError,
    SlotOccupiedError,
    UnmatchedEventClosedError,
    UnmatchedEventNotFoundError,
)
from meal_planner.domain.matching import RecipeSuggestion
from meal_planner.domain.meals import Meal, MealEvent
from meal_planner.domain.sync import (
    ItemFailure,
    StoreUnmatchedResult,
    SyncDirection,
    SyncStatus,
    UnmatchedEvent,
)
from meal_planner.services.meals import MealPlanService, RecipeRepository
from meal_planner.services.recipe_matcher import RecipeMatcher
from meal_planner.services.shopping import ShoppingListService
from meal_planner.services.sync_log import SyncLogService

_logger = logging.getLogger(__name__)


class UnmatchedEventRepository(Protocol):
    """Persistence interface for unmatched events."""

    def get(self, unmatched_id: int) -> UnmatchedEvent | None:
        """Return an unmatched event by id, if present."""

    def get_by_external_id(self, external_event_id: str) -> UnmatchedEvent | None:
        """Return the unmatched event for a remote event id, if present."""

    def create(self, event: MealEvent, event_date: date) -> UnmatchedEvent:
        """Insert a pending unmatched event."""

    def list_pending(self) -> list[UnmatchedEvent]:
        """Return pending events, latest date first."""

    def count_pending(self) -> int:
        """Return the number of pending events."""

    def mark_matched(
        self, unmatched_id: int, recipe_id: int, resolved_at: datetime
    ) -> UnmatchedEvent:
        """Transition an event to matched."""

    def mark_ignored(
        self, unmatched_id: int, notes: str | None, resolved_at: datetime
    ) -> UnmatchedEvent:
        """Transition an event to ignored."""


@dataclass(frozen=True)
class ResolvedUnmatchedEvent:
    """Meal created by resolving an unmatched event."""

    meal: Meal
    unmatched_event: UnmatchedEvent


@dataclass
class UnmatchedEventService:
    """Stores unmatched events and drives their manual resolution."""

    repository: UnmatchedEventRepository
    recipe_repository: RecipeRepository
    meal_plan_service: MealPlanService
    sync_log_service: SyncLogService
    matcher: RecipeMatcher
    shopping_service: ShoppingListService | None = None

    def store(self, events: list[MealEvent]) -> StoreUnmatchedResult:
        """Insert events not seen before; existing rows are left untouched."""
        result = StoreUnmatchedResult()
        for event in events:
            try:
                existing = self.repository.get_by_external_id(event.external_event_id)
                if existing is not None:
                    result.existing.append(existing)
                    continue
                try:
                    stored = self.repository.create(
                        event, date.fromisoformat(event.date)
                    )
                except DuplicateRecordError:
                    concurrent = self.repository.get_by_external_id(
                        event.external_event_id
                    )
                    if concurrent is None:
                        raise
                    result.existing.append(concurrent)
                    continue
                result.stored.append(stored)
            except Exception as exc:
                _logger.warning(
                    "Failed to store unmatched event %s: %s",
                    event.external_event_id,
                    exc,
                )
                result.failed.append(
                    ItemFailure(
                        external_event_id=event.external_event_id, error=str(exc)
                    )
                )
        return result

    def pending(self) -> list[UnmatchedEvent]:
        """Return events awaiting a decision."""
        return self.repository.list_pending()

    def count_pending(self) -> int:
        """Return the number of events awaiting a decision."""
        return self.repository.count_pending()

    def suggestions(self, unmatched_id: int, limit: int = 5) -> list[RecipeSuggestion]:
        """Return catalog recipes resembling the extracted name."""
        event = self._require(unmatched_id)
        catalog = self.recipe_repository.list_recipes()
        return self.matcher.get_suggestions(
            event.extracted_recipe_name, catalog, limit=limit
        )

    def resolve(self, unmatched_id: int, recipe_id: int) -> ResolvedUnmatchedEvent:
        """Link a pending event to a recipe, creating its meal."""
        event = self._require(unmatched_id)
        if not event.is_pending:
            raise UnmatchedEventClosedError(
                f"Unmatched event {unmatched_id} is already {event.status.value}"
            )
        recipe = self.recipe_repository.get_recipe(recipe_id)
        if recipe is None:
            raise RecipeNotFoundError(f"Recipe {recipe_id} not found")

        creation = self.meal_plan_service.link_remote_meal(
            meal_date=event.date,
            meal_type=event.meal_type,
            recipe_id=recipe.id,
            external_event_id=event.external_event_id,
        )
        if creation.meal is None:
            existing_id = creation.existing_meal.id if creation.existing_meal else None
            self.sync_log_service.record(
                external_event_id=event.external_event_id,
                direction=SyncDirection.FROM_REMOTE,
                status=SyncStatus.CONFLICT,
                meal_id=existing_id,
                error_message=creation.skipped_reason,
                metadata={
                    "resolved_from_unmatched": True,
                    "unmatched_event_id": unmatched_id,
                    "recipe_id": recipe.id,
                },
            )
            raise SlotOccupiedError(creation.skipped_reason or "Slot occupied")

        meal = creation.meal
        try:
            updated = self.repository.mark_matched(
                unmatched_id, recipe.id, datetime.now(tz=UTC)
            )
        except Exception:
            # Undo the meal so a retry can create it again.
            self._discard_meal(meal)
            current = self.repository.get(unmatched_id)
            if current is not None and not current.is_pending:
                raise UnmatchedEventClosedError(
                    f"Unmatched event {unmatched_id} is already {current.status.value}"
                ) from None
            raise
        self.sync_log_service.record(
            external_event_id=event.external_event_id,
            direction=SyncDirection.FROM_REMOTE,
            status=SyncStatus.SUCCESS,
            meal_id=meal.id,
            metadata={
                "resolved_from_unmatched": True,
                "unmatched_event_id": unmatched_id,
                "recipe_id": recipe.id,
            },
        )
        if self.shopping_service is not None:
            try:
                self.shopping_service.expand_ingredients(meal, recipe)
            except Exception:
                _logger.exception(
                    "Failed to add ingredients to shopping list: meal_id=%s", meal.id
                )
        return ResolvedUnmatchedEvent(meal=meal, unmatched_event=updated)

    def ignore(self, unmatched_id: int, notes: str | None = None) -> UnmatchedEvent:
        """Dismiss a pending event without creating a meal."""
        event = self._require(unmatched_id)
        if not event.is_pending:
            raise UnmatchedEventClosedError(
                f"Unmatched event {unmatched_id} is already {event.status.value}"
            )
        return self.repository.mark_ignored(unmatched_id, notes, datetime.now(tz=UTC))

    def _discard_meal(self, meal: Meal) -> None:
        try:
            self.meal_plan_service.delete_meal(meal.id)
        except Exception:
            _logger.exception("Failed to remove meal %s after failed resolve", meal.id)

    def _require(self, unmatched_id: int) -> UnmatchedEvent:
        event = self.repository.get(unmatched_id)
        if event is None:
            raise UnmatchedEventNotFoundError(
                f"Unmatched event {unmatched_id} not found"
            )
        return event
