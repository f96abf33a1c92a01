"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meal_planner.adapters.google_calendar_client import (
    CalendarClient,
    HttpxGoogleCalendarClient,
)
from meal_planner.adapters.supabase_meal_repository import SupabaseMealRepository
from meal_planner.adapters.supabase_recipe_repository import SupabaseRecipeRepository
from meal_planner.adapters.supabase_shopping_list_repository import (
    SupabaseShoppingListRepository,
)
from meal_planner.adapters.supabase_sync_log_repository import (
    SupabaseSyncLogRepository,
)
from meal_planner.adapters.supabase_unmatched_event_repository import (
    SupabaseUnmatchedEventRepository,
)
from meal_planner.config import Settings, parse_household_members
from meal_planner.services.meals import MealPlanService
from meal_planner.services.recipe_matcher import RecipeMatcher
from meal_planner.services.scheduler import SyncScheduler
from meal_planner.services.shopping import ShoppingListService
from meal_planner.services.sync_engine import SyncEngine
from meal_planner.services.sync_log import SyncLogService
from meal_planner.services.unmatched_events import UnmatchedEventService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    calendar_client: CalendarClient
    meal_plan_service: MealPlanService
    sync_log_service: SyncLogService
    unmatched_service: UnmatchedEventService
    sync_engine: SyncEngine
    scheduler: SyncScheduler
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    recipe_repository = SupabaseRecipeRepository(supabase_client)
    meal_repository = SupabaseMealRepository(supabase_client)
    sync_log_repository = SupabaseSyncLogRepository(supabase_client)
    unmatched_repository = SupabaseUnmatchedEventRepository(supabase_client)
    shopping_repository = SupabaseShoppingListRepository(supabase_client)

    calendar_client = HttpxGoogleCalendarClient.create(
        access_token=resolved_settings.google_access_token,
        base_url=resolved_settings.google_calendar_base_url,
    )
    matcher = RecipeMatcher(
        fuzzy_threshold=resolved_settings.fuzzy_threshold,
        acceptance_threshold=resolved_settings.acceptance_threshold,
        suggestion_min_score=resolved_settings.suggestion_min_score,
    )
    meal_plan_service = MealPlanService(
        meal_repository=meal_repository,
        default_people=parse_household_members(resolved_settings.household_members),
    )
    sync_log_service = SyncLogService(sync_log_repository)
    shopping_service = ShoppingListService(shopping_repository)
    unmatched_service = UnmatchedEventService(
        repository=unmatched_repository,
        recipe_repository=recipe_repository,
        meal_plan_service=meal_plan_service,
        sync_log_service=sync_log_service,
        matcher=matcher,
        shopping_service=shopping_service,
    )
    sync_engine = SyncEngine(
        calendar_client=calendar_client,
        calendar_id=resolved_settings.google_calendar_id,
        recipe_repository=recipe_repository,
        meal_plan_service=meal_plan_service,
        unmatched_service=unmatched_service,
        sync_log_service=sync_log_service,
        matcher=matcher,
        shopping_service=shopping_service,
        app_base_url=resolved_settings.app_base_url,
        past_days=resolved_settings.sync_past_days,
        future_days=resolved_settings.sync_future_days,
        timezone=resolved_settings.timezone,
    )
    scheduler = SyncScheduler(
        engine=sync_engine,
        interval_seconds=resolved_settings.sync_interval_minutes * 60,
        initial_delay_seconds=resolved_settings.sync_initial_delay_seconds,
    )

    async def close_resources() -> None:
        await calendar_client.close()

    return AppContainer(
        settings=resolved_settings,
        calendar_client=calendar_client,
        meal_plan_service=meal_plan_service,
        sync_log_service=sync_log_service,
        unmatched_service=unmatched_service,
        sync_engine=sync_engine,
        scheduler=scheduler,
        close_resources=close_resources,
    )
