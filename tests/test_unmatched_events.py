"""Tests for the unmatched event store and its resolution."""

from datetime import date

import pytest

from meal_planner.domain.errors import (
    PersistenceError,
    RecipeNotFoundError,
    SlotOccupiedError,
    UnmatchedEventClosedError,
    UnmatchedEventNotFoundError,
)
from meal_planner.domain.meals import MealEvent, MealType, SyncSource
from meal_planner.domain.sync import SyncStatus, UnmatchedStatus
from meal_planner.services.unmatched_events import UnmatchedEventService


def _meal_event(event_id: str = "evt-9", day: str = "2025-11-14") -> MealEvent:
    return MealEvent(
        external_event_id=event_id,
        meal_type=MealType.DINNER,
        recipe_name="Chiken Cury",
        date=day,
        emphasis=False,
        original_title="Dinner: Chiken Cury",
    )


def test_store_is_idempotent(unmatched_service: UnmatchedEventService) -> None:
    first = unmatched_service.store([_meal_event()])
    second = unmatched_service.store([_meal_event()])

    assert len(first.stored) == 1
    assert second.stored == []
    assert second.existing[0].id == first.stored[0].id
    assert unmatched_service.count_pending() == 1


def test_store_keeps_existing_row_untouched(
    unmatched_service: UnmatchedEventService,
) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]
    unmatched_service.ignore(stored.id, notes="not a recipe")

    result = unmatched_service.store([_meal_event()])

    assert result.existing[0].status is UnmatchedStatus.IGNORED
    assert unmatched_service.count_pending() == 0


def test_store_reports_item_failures(
    unmatched_service: UnmatchedEventService, unmatched_repository
) -> None:
    unmatched_repository.failing_event_ids = {"evt-bad"}

    result = unmatched_service.store([_meal_event("evt-bad"), _meal_event("evt-ok")])

    assert [event.external_event_id for event in result.stored] == ["evt-ok"]
    assert result.failed[0].external_event_id == "evt-bad"


def test_pending_lists_latest_date_first(
    unmatched_service: UnmatchedEventService,
) -> None:
    unmatched_service.store(
        [_meal_event("a", "2025-11-10"), _meal_event("b", "2025-11-20")]
    )

    pending = unmatched_service.pending()

    assert [event.external_event_id for event in pending] == ["b", "a"]


def test_suggestions_rank_catalog_recipes(
    unmatched_service: UnmatchedEventService,
) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]

    suggestions = unmatched_service.suggestions(stored.id)

    assert suggestions[0].recipe.id == 1


def test_resolve_creates_meal_and_closes_event(
    unmatched_service: UnmatchedEventService,
    meal_repository,
    sync_log_repository,
    shopping_repository,
) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]

    resolved = unmatched_service.resolve(stored.id, recipe_id=1)

    assert resolved.meal.date == date(2025, 11, 14)
    assert resolved.meal.meal_type is MealType.DINNER
    assert resolved.meal.external_event_id == "evt-9"
    assert resolved.meal.sync_source is SyncSource.FROM_REMOTE
    assert resolved.unmatched_event.status is UnmatchedStatus.MATCHED
    assert resolved.unmatched_event.resolved_recipe_id == 1
    assert resolved.unmatched_event.resolved_at is not None
    assert len(meal_repository.meals) == 1
    entry = sync_log_repository.entries[-1]
    assert entry.status is SyncStatus.SUCCESS
    assert entry.metadata["resolved_from_unmatched"] is True
    assert len(shopping_repository.items) == 2


def test_resolve_twice_is_rejected(unmatched_service: UnmatchedEventService) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]
    unmatched_service.resolve(stored.id, recipe_id=1)

    with pytest.raises(UnmatchedEventClosedError):
        unmatched_service.resolve(stored.id, recipe_id=2)


def test_resolve_into_occupied_slot_keeps_event_pending(
    unmatched_service: UnmatchedEventService, meal_repository, sync_log_repository
) -> None:
    meal_repository.add(date(2025, 11, 14), MealType.DINNER, 3)
    stored = unmatched_service.store([_meal_event()]).stored[0]

    with pytest.raises(SlotOccupiedError):
        unmatched_service.resolve(stored.id, recipe_id=1)

    assert unmatched_service.pending()[0].id == stored.id
    assert sync_log_repository.entries[-1].status is SyncStatus.CONFLICT


def test_resolve_with_unknown_recipe(unmatched_service: UnmatchedEventService) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]

    with pytest.raises(RecipeNotFoundError):
        unmatched_service.resolve(stored.id, recipe_id=999)


def test_unknown_unmatched_event(unmatched_service: UnmatchedEventService) -> None:
    with pytest.raises(UnmatchedEventNotFoundError):
        unmatched_service.resolve(404, recipe_id=1)
    with pytest.raises(UnmatchedEventNotFoundError):
        unmatched_service.ignore(404)


def test_ignore_keeps_notes(unmatched_service: UnmatchedEventService) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]

    ignored = unmatched_service.ignore(stored.id, notes="eating out")

    assert ignored.status is UnmatchedStatus.IGNORED
    assert ignored.notes == "eating out"
    with pytest.raises(UnmatchedEventClosedError):
        unmatched_service.ignore(stored.id)


def test_failed_transition_removes_meal_and_allows_retry(
    unmatched_service: UnmatchedEventService, unmatched_repository, meal_repository
) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]
    unmatched_repository.failing_transitions = 1

    with pytest.raises(PersistenceError):
        unmatched_service.resolve(stored.id, recipe_id=1)

    assert meal_repository.meals == {}
    assert unmatched_service.pending()[0].id == stored.id

    resolved = unmatched_service.resolve(stored.id, recipe_id=1)

    assert resolved.unmatched_event.status is UnmatchedStatus.MATCHED
    assert list(meal_repository.meals.values()) == [resolved.meal]


def test_resolve_losing_to_concurrent_ignore(
    unmatched_service: UnmatchedEventService, unmatched_repository, meal_repository
) -> None:
    stored = unmatched_service.store([_meal_event()]).stored[0]
    original_mark_matched = unmatched_repository.mark_matched

    def ignored_first(event_id, recipe_id, at):  # type: ignore[no-untyped-def]
        unmatched_repository.mark_ignored(event_id, "dup", at)
        return original_mark_matched(event_id, recipe_id, at)

    unmatched_repository.mark_matched = ignored_first

    with pytest.raises(UnmatchedEventClosedError):
        unmatched_service.resolve(stored.id, recipe_id=1)

    assert meal_repository.meals == {}
    assert unmatched_repository.get(stored.id).status is UnmatchedStatus.IGNORED
