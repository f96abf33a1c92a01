"""Sync control endpoints."""

from __future__ import annotations

from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder

from meal_planner.api.auth import require_admin
from meal_planner.api.models import ImportRequest  # noqa: TC001

if TYPE_CHECKING:
    from meal_planner.containers import AppContainer
    from meal_planner.domain.sync import ImportPreview, MatchedEvent, SyncReport

router = APIRouter(tags=["sync"], dependencies=[Depends(require_admin)])

_ALREADY_RUNNING = "Sync already in progress"


@router.get("/sync/status")
async def sync_status(request: Request) -> dict[str, object]:
    """Return engine status and whether the calendar token still works."""
    container: AppContainer = request.app.state.container
    snapshot = jsonable_encoder(container.sync_engine.status())
    snapshot["has_calendar_access"] = await container.calendar_client.has_access()
    return snapshot


@router.post("/sync")
async def sync_now(request: Request, background: bool = False) -> dict[str, object]:
    """Run a sync cycle now, or queue one when ``background`` is set."""
    container: AppContainer = request.app.state.container
    if background:
        queued = container.scheduler.trigger_manual()
        return {"status": "queued" if queued else "pending"}
    report = await container.sync_engine.perform_sync("manual")
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=_ALREADY_RUNNING
        )
    return _serialize_report(report)


@router.get("/sync/preview")
async def sync_preview(
    request: Request, start_date: date | None = None, end_date: date | None = None
) -> dict[str, object]:
    """Show how remote events would be imported, without writing."""
    container: AppContainer = request.app.state.container
    default_start, default_end = container.sync_engine.sync_window()
    preview = await container.sync_engine.import_from_remote(
        start_date or default_start, end_date or default_end
    )
    return _serialize_preview(preview)


@router.post("/sync/import")
async def import_range(body: ImportRequest, request: Request) -> dict[str, object]:
    """Import remote meal events for a date range."""
    container: AppContainer = request.app.state.container
    report = await container.sync_engine.import_now(body.start_date, body.end_date)
    if report is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=_ALREADY_RUNNING
        )
    return _serialize_report(report)


@router.get("/sync/activity")
async def sync_activity(request: Request, limit: int = 50) -> dict[str, object]:
    """Return recent sync log entries, newest first."""
    container: AppContainer = request.app.state.container
    entries = container.sync_log_service.recent_activity(limit)
    return {"entries": jsonable_encoder(entries)}


@router.delete("/meals/{meal_id}")
async def delete_meal(meal_id: int, request: Request) -> dict[str, object]:
    """Delete a meal and its calendar event."""
    container: AppContainer = request.app.state.container
    deleted = await container.sync_engine.delete_meal(meal_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Meal {meal_id} not found"
        )
    return {"status": "deleted", "meal_id": meal_id}


def _serialize_matched(item: MatchedEvent) -> dict[str, object]:
    return {
        "event": jsonable_encoder(item.event),
        "recipe": {"id": item.recipe.id, "title": item.recipe.title},
        "match_type": item.match.match_type,
        "score": item.match.score,
    }


def _serialize_preview(preview: ImportPreview) -> dict[str, object]:
    return {
        "matched": [_serialize_matched(item) for item in preview.matched],
        "unmatched": jsonable_encoder(preview.unmatched),
        "parse_errors": [
            {"event": jsonable_encoder(error.event), "errors": error.errors}
            for error in preview.parse_errors
        ],
        "total": preview.total,
    }


def _serialize_report(report: SyncReport) -> dict[str, object]:
    return {
        "trigger": report.trigger,
        "start_date": report.start_date.isoformat(),
        "end_date": report.end_date.isoformat(),
        "summary": report.rollup(),
        "created": jsonable_encoder(report.created.created),
        "skipped": [
            {
                "external_event_id": skipped.event.external_event_id,
                "reason": skipped.reason,
                "existing_meal_id": skipped.existing_meal_id,
            }
            for skipped in report.created.skipped
        ],
        "exported": jsonable_encoder(report.export.exported),
        "failures": jsonable_encoder(
            report.created.failed + report.unmatched.failed + report.export.failed
        ),
        "errors": report.errors,
    }
