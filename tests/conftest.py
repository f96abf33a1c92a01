"""Shared test fixtures."""

from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime

import pytest

from meal_planner.adapters.google_calendar_client import CalendarClient
from meal_planner.config import Settings, parse_household_members
from meal_planner.containers import AppContainer
from meal_planner.domain.errors import (
    CalendarApiError,
    DuplicateRecordError,
    PersistenceError,
)
from meal_planner.domain.meals import (
    Meal,
    MealEvent,
    MealType,
    Recipe,
    RecipeIngredient,
    SyncSource,
)
from meal_planner.domain.sync import (
    CalendarInfo,
    SyncLogEntry,
    UnmatchedEvent,
    UnmatchedStatus,
)
from meal_planner.services.meals import (
    MealPlanService,
    MealRepository,
    RecipeRepository,
)
from meal_planner.services.recipe_matcher import RecipeMatcher
from meal_planner.services.scheduler import SyncScheduler
from meal_planner.services.shopping import (
    ShoppingItem,
    ShoppingListRepository,
    ShoppingListService,
)
from meal_planner.services.sync_engine import SyncEngine
from meal_planner.services.sync_log import SyncLogRepository, SyncLogService
from meal_planner.services.unmatched_events import (
    UnmatchedEventRepository,
    UnmatchedEventService,
)


def remote_event(
    event_id: str, summary: str, day: str, **extra: object
) -> dict[str, object]:
    """Build a raw all-day calendar event."""
    return {"id": event_id, "summary": summary, "start": {"date": day}, **extra}


def catalog() -> list[Recipe]:
    return [
        Recipe(
            id=1,
            title="Chicken Curry",
            servings=4,
            ingredients=(
                RecipeIngredient(ingredient_id=10, quantity=500, unit="g"),
                RecipeIngredient(ingredient_id=11, quantity=2, unit="tbsp"),
            ),
        ),
        Recipe(id=2, title="Spaghetti Bolognese", servings=2),
        Recipe(id=3, title="Pancakes", servings=2),
        Recipe(id=4, title="Caesar Salad", servings=2),
    ]


@dataclass
class InMemoryRecipeRepository(RecipeRepository):
    """In-memory recipe catalog for tests."""

    recipes: list[Recipe] = field(default_factory=catalog)
    list_calls: int = 0

    def list_recipes(self) -> list[Recipe]:
        self.list_calls += 1
        return list(self.recipes)

    def get_recipe(self, recipe_id: int) -> Recipe | None:
        for recipe in self.recipes:
            if recipe.id == recipe_id:
                return recipe
        return None


@dataclass
class InMemoryMealRepository(MealRepository):
    """In-memory meal store enforcing the slot and link unique constraints."""

    meals: dict[int, Meal] = field(default_factory=dict)
    next_id: int = 100
    failing_recipe_ids: set[int] = field(default_factory=set)
    fail_link: bool = False

    def add(  # type: ignore[no-untyped-def]
        self, meal_date: date, meal_type: MealType, recipe_id: int, **fields
    ) -> Meal:
        meal = Meal(
            id=self.next_id,
            date=meal_date,
            meal_type=meal_type,
            recipe_id=recipe_id,
            **fields,
        )
        self.meals[meal.id] = meal
        self.next_id += 1
        return meal

    def find_by_slot(self, meal_date: date, meal_type: MealType) -> Meal | None:
        for meal in self.meals.values():
            if meal.date == meal_date and meal.meal_type is meal_type:
                return meal
        return None

    def find_by_external_id(self, external_event_id: str) -> Meal | None:
        for meal in self.meals.values():
            if meal.external_event_id == external_event_id:
                return meal
        return None

    def get_meal(self, meal_id: int) -> Meal | None:
        return self.meals.get(meal_id)

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
        if recipe_id in self.failing_recipe_ids:
            raise PersistenceError("insert rejected")
        if self.find_by_slot(meal_date, meal_type) is not None:
            raise DuplicateRecordError("duplicate slot")
        if external_event_id and self.find_by_external_id(external_event_id):
            raise DuplicateRecordError("duplicate calendar event id")
        return self.add(
            meal_date,
            meal_type,
            recipe_id,
            people=people,
            external_event_id=external_event_id,
            last_synced_at=last_synced_at,
            sync_source=sync_source,
        )

    def update_sync_link(
        self, meal_id: int, external_event_id: str, last_synced_at: datetime
    ) -> Meal:
        if self.fail_link:
            raise PersistenceError("update rejected")
        updated = replace(
            self.meals[meal_id],
            external_event_id=external_event_id,
            last_synced_at=last_synced_at,
        )
        self.meals[meal_id] = updated
        return updated

    def delete_meal(self, meal_id: int) -> None:
        self.meals.pop(meal_id, None)

    def list_unlinked_meals(self, start: date, end: date) -> list[Meal]:
        return sorted(
            (
                meal
                for meal in self.meals.values()
                if start <= meal.date <= end and meal.external_event_id is None
            ),
            key=lambda meal: meal.date,
        )


@dataclass
class InMemoryShoppingListRepository(ShoppingListRepository):
    """In-memory shopping list for tests."""

    items: dict[int, ShoppingItem] = field(default_factory=dict)
    added: list[dict[str, object]] = field(default_factory=list)
    fail: bool = False

    def find_item(self, ingredient_id: int, unit: str) -> ShoppingItem | None:
        if self.fail:
            raise PersistenceError("shopping list unavailable")
        for item in self.items.values():
            if item.ingredient_id == ingredient_id and item.unit == unit:
                return item
        return None

    def update_item(self, item_id: int, quantity: float, recipe_name: str) -> None:
        self.items[item_id] = replace(
            self.items[item_id], quantity=quantity, recipe_name=recipe_name
        )

    def add_items(
        self, meal: Meal, recipe: Recipe, items: list[dict[str, object]]
    ) -> None:
        for item in items:
            item_id = len(self.items) + 1
            self.items[item_id] = ShoppingItem(
                id=item_id,
                ingredient_id=int(item["ingredient_id"]),
                quantity=float(item["quantity"]),
                unit=str(item["unit"]),
                recipe_name=recipe.title,
            )
            self.added.append({**item, "meal_id": meal.id})


@dataclass
class InMemorySyncLogRepository(SyncLogRepository):
    """In-memory sync log for tests."""

    entries: list[SyncLogEntry] = field(default_factory=list)
    fail: bool = False

    def append(self, entry: SyncLogEntry) -> SyncLogEntry:
        if self.fail:
            raise PersistenceError("sync log unavailable")
        stored = replace(entry, id=len(self.entries) + 1)
        self.entries.append(stored)
        return stored

    def list_recent(self, limit: int) -> list[SyncLogEntry]:
        return list(reversed(self.entries))[:limit]


@dataclass
class InMemoryUnmatchedEventRepository(UnmatchedEventRepository):
    """In-memory unmatched event store for tests."""

    events: dict[int, UnmatchedEvent] = field(default_factory=dict)
    failing_event_ids: set[str] = field(default_factory=set)
    failing_transitions: int = 0

    def get(self, unmatched_id: int) -> UnmatchedEvent | None:
        return self.events.get(unmatched_id)

    def get_by_external_id(self, external_event_id: str) -> UnmatchedEvent | None:
        for event in self.events.values():
            if event.external_event_id == external_event_id:
                return event
        return None

    def create(self, event: MealEvent, event_date: date) -> UnmatchedEvent:
        if event.external_event_id in self.failing_event_ids:
            raise PersistenceError("insert rejected")
        if self.get_by_external_id(event.external_event_id) is not None:
            raise DuplicateRecordError("duplicate event id")
        stored = UnmatchedEvent(
            id=len(self.events) + 1,
            external_event_id=event.external_event_id,
            original_title=event.original_title,
            date=event_date,
            meal_type=event.meal_type,
            extracted_recipe_name=event.recipe_name,
            status=UnmatchedStatus.PENDING,
            created_at=datetime.now(tz=UTC),
        )
        self.events[stored.id] = stored
        return stored

    def list_pending(self) -> list[UnmatchedEvent]:
        pending = [event for event in self.events.values() if event.is_pending]
        return sorted(pending, key=lambda event: event.date, reverse=True)

    def count_pending(self) -> int:
        return len(self.list_pending())

    def mark_matched(
        self, unmatched_id: int, recipe_id: int, resolved_at: datetime
    ) -> UnmatchedEvent:
        updated = replace(
            self._pending(unmatched_id),
            status=UnmatchedStatus.MATCHED,
            resolved_recipe_id=recipe_id,
            resolved_at=resolved_at,
        )
        self.events[unmatched_id] = updated
        return updated

    def mark_ignored(
        self, unmatched_id: int, notes: str | None, resolved_at: datetime
    ) -> UnmatchedEvent:
        updated = replace(
            self._pending(unmatched_id),
            status=UnmatchedStatus.IGNORED,
            notes=notes,
            resolved_at=resolved_at,
        )
        self.events[unmatched_id] = updated
        return updated

    def _pending(self, unmatched_id: int) -> UnmatchedEvent:
        if self.failing_transitions > 0:
            self.failing_transitions -= 1
            raise PersistenceError("update rejected")
        event = self.events[unmatched_id]
        if not event.is_pending:
            raise PersistenceError(f"Unmatched event {unmatched_id} is not pending")
        return event


@dataclass
class FakeCalendarClient(CalendarClient):
    """Fake calendar holding events in memory."""

    events: list[dict[str, object]] = field(default_factory=list)
    created: list[dict[str, object]] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    list_error: Exception | None = None
    create_error: Exception | None = None
    failing_summaries: set[str] = field(default_factory=set)
    list_calls: int = 0
    last_window: tuple[str, str] | None = None
    calendars: list[CalendarInfo] = field(
        default_factory=lambda: [
            CalendarInfo(
                id="primary-id", summary="Kit", primary=True, access_role="owner"
            )
        ]
    )
    has_calendar_access: bool = True
    closed: bool = False

    async def list_events(
        self, calendar_id: str, time_min: str, time_max: str
    ) -> list[dict[str, object]]:
        self.list_calls += 1
        self.last_window = (time_min, time_max)
        if self.list_error is not None:
            raise self.list_error
        return list(self.events)

    async def create_event(
        self, calendar_id: str, payload: dict[str, object]
    ) -> dict[str, object]:
        if self.create_error is not None:
            raise self.create_error
        if payload.get("summary") in self.failing_summaries:
            raise CalendarApiError("quota exceeded", 403)
        created = {"id": f"remote-{len(self.created) + 1}", **payload}
        self.created.append(created)
        return created

    async def delete_event(self, calendar_id: str, event_id: str) -> bool:
        self.deleted.append(event_id)
        return True

    async def list_calendars(self) -> list[CalendarInfo]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.calendars)

    async def has_access(self) -> bool:
        return self.has_calendar_access

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        google_access_token="google-token",
        app_base_url="https://meals.example.com",
        sync_enabled=False,
    )


@pytest.fixture
def recipe_repository() -> InMemoryRecipeRepository:
    return InMemoryRecipeRepository()


@pytest.fixture
def meal_repository() -> InMemoryMealRepository:
    return InMemoryMealRepository()


@pytest.fixture
def shopping_repository() -> InMemoryShoppingListRepository:
    return InMemoryShoppingListRepository()


@pytest.fixture
def sync_log_repository() -> InMemorySyncLogRepository:
    return InMemorySyncLogRepository()


@pytest.fixture
def unmatched_repository() -> InMemoryUnmatchedEventRepository:
    return InMemoryUnmatchedEventRepository()


@pytest.fixture
def calendar_client() -> FakeCalendarClient:
    return FakeCalendarClient()


@pytest.fixture
def meal_plan_service(
    settings: Settings, meal_repository: InMemoryMealRepository
) -> MealPlanService:
    return MealPlanService(
        meal_repository=meal_repository,
        default_people=parse_household_members(settings.household_members),
    )


@pytest.fixture
def sync_log_service(sync_log_repository: InMemorySyncLogRepository) -> SyncLogService:
    return SyncLogService(sync_log_repository)


@pytest.fixture
def shopping_service(
    shopping_repository: InMemoryShoppingListRepository,
) -> ShoppingListService:
    return ShoppingListService(shopping_repository)


@pytest.fixture
def unmatched_service(  # noqa: PLR0913
    unmatched_repository: InMemoryUnmatchedEventRepository,
    recipe_repository: InMemoryRecipeRepository,
    meal_plan_service: MealPlanService,
    sync_log_service: SyncLogService,
    shopping_service: ShoppingListService,
) -> UnmatchedEventService:
    return UnmatchedEventService(
        repository=unmatched_repository,
        recipe_repository=recipe_repository,
        meal_plan_service=meal_plan_service,
        sync_log_service=sync_log_service,
        matcher=RecipeMatcher(),
        shopping_service=shopping_service,
    )


@pytest.fixture
def sync_engine(  # noqa: PLR0913
    settings: Settings,
    calendar_client: FakeCalendarClient,
    recipe_repository: InMemoryRecipeRepository,
    meal_plan_service: MealPlanService,
    unmatched_service: UnmatchedEventService,
    sync_log_service: SyncLogService,
    shopping_service: ShoppingListService,
) -> SyncEngine:
    return SyncEngine(
        calendar_client=calendar_client,
        calendar_id=settings.google_calendar_id,
        recipe_repository=recipe_repository,
        meal_plan_service=meal_plan_service,
        unmatched_service=unmatched_service,
        sync_log_service=sync_log_service,
        matcher=RecipeMatcher(),
        shopping_service=shopping_service,
        app_base_url=settings.app_base_url,
        past_days=settings.sync_past_days,
        future_days=settings.sync_future_days,
        timezone=settings.timezone,
    )


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    calendar_client: FakeCalendarClient,
    meal_plan_service: MealPlanService,
    sync_log_service: SyncLogService,
    unmatched_service: UnmatchedEventService,
    sync_engine: SyncEngine,
) -> AppContainer:
    async def close_resources() -> None:
        await calendar_client.close()

    return AppContainer(
        settings=settings,
        calendar_client=calendar_client,
        meal_plan_service=meal_plan_service,
        sync_log_service=sync_log_service,
        unmatched_service=unmatched_service,
        sync_engine=sync_engine,
        scheduler=SyncScheduler(engine=sync_engine),
        close_resources=close_resources,
    )
