"""Calendar discovery endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder

from meal_planner.api.auth import require_admin

if TYPE_CHECKING:
    from meal_planner.containers import AppContainer

router = APIRouter(tags=["calendars"], dependencies=[Depends(require_admin)])


@router.get("/calendars")
async def list_calendars(request: Request) -> dict[str, object]:
    """List the calendars the configured account can see."""
    container: AppContainer = request.app.state.container
    calendars = await container.calendar_client.list_calendars()
    return {
        "selected_calendar_id": container.sync_engine.calendar_id,
        "calendars": jsonable_encoder(calendars),
    }
