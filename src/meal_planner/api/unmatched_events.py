"""Endpoints for reviewing unmatched calendar events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder

from meal_planner.api.auth import require_admin
from meal_planner.api.models import (  # noqa: TC001
    IgnoreUnmatchedRequest,
    ResolveUnmatchedRequest,
)

if TYPE_CHECKING:
    from meal_planner.containers import AppContainer

router = APIRouter(
    prefix="/unmatched-events",
    tags=["unmatched-events"],
    dependencies=[Depends(require_admin)],
)


@router.get("")
async def list_pending(request: Request) -> dict[str, object]:
    """Return pending events, latest date first."""
    container: AppContainer = request.app.state.container
    return {"events": jsonable_encoder(container.unmatched_service.pending())}


@router.get("/count")
async def count_pending(request: Request) -> dict[str, int]:
    container: AppContainer = request.app.state.container
    return {"count": container.unmatched_service.count_pending()}


@router.get("/{unmatched_id}/suggestions")
async def suggestions(
    unmatched_id: int, request: Request, limit: int = 5
) -> dict[str, object]:
    """Return catalog recipes resembling the event's recipe name."""
    container: AppContainer = request.app.state.container
    results = container.unmatched_service.suggestions(unmatched_id, limit=limit)
    return {
        "suggestions": [
            {
                "recipe_id": suggestion.recipe.id,
                "title": suggestion.recipe.title,
                "score": suggestion.score,
            }
            for suggestion in results
        ]
    }


@router.post("/{unmatched_id}/resolve")
async def resolve(
    unmatched_id: int, body: ResolveUnmatchedRequest, request: Request
) -> dict[str, object]:
    """Link an event to a recipe and create its meal."""
    container: AppContainer = request.app.state.container
    resolved = container.unmatched_service.resolve(unmatched_id, body.recipe_id)
    return {
        "meal": jsonable_encoder(resolved.meal),
        "unmatched_event": jsonable_encoder(resolved.unmatched_event),
    }


@router.post("/{unmatched_id}/ignore")
async def ignore(
    unmatched_id: int,
    request: Request,
    body: IgnoreUnmatchedRequest | None = None,
) -> dict[str, object]:
    """Dismiss an event without creating a meal."""
    container: AppContainer = request.app.state.container
    notes = body.notes if body else None
    updated = container.unmatched_service.ignore(unmatched_id, notes=notes)
    return {"unmatched_event": jsonable_encoder(updated)}
