"""API route definitions.

All endpoints return consistent APIResponse[T] structure with error codes.
Store errors raised by the repositories are turned into error responses by
the handler registered in ``main``.
"""
from datetime import date, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, Query, Request

from ..database import (
    BuildRepository,
    CalendarRepository,
    DataTransfer,
    PhotoRepository,
    PostContentRepository,
    RecordStore,
    TemplateRepository,
)
from ..database.records import BuildRecord, EventRecord, PhotoRecord, TemplateRecord
from ..sources import photos_from_media_items
from .schemas import (
    APIResponse,
    AssignRequest,
    BuildListResponse,
    BuildResponse,
    BulkAssignRequest,
    CountData,
    CountResponse,
    CreatedData,
    CreatedResponse,
    DeletedData,
    DeletedResponse,
    ErrorCode,
    EventListResponse,
    EventResponse,
    HealthResponse,
    ImportData,
    ImportResponse,
    PhotoListResponse,
    PhotoResponse,
    PostContentResponse,
    SnapshotResponse,
    StatsData,
    StatsResponse,
    TemplateListResponse,
    TemplateResponse,
    builds_to_data,
    events_to_data,
    photos_to_data,
    post_content_to_data,
    templates_to_data,
)

logger = structlog.get_logger()
router = APIRouter()


def get_store(request: Request) -> RecordStore:
    """Get the record store from app state."""
    return request.app.state.store


def get_builds(store: RecordStore = Depends(get_store)) -> BuildRepository:
    return BuildRepository(store)


def get_photos(store: RecordStore = Depends(get_store)) -> PhotoRepository:
    return PhotoRepository(store)


def get_templates(store: RecordStore = Depends(get_store)) -> TemplateRepository:
    return TemplateRepository(store)


def get_calendar(store: RecordStore = Depends(get_store)) -> CalendarRepository:
    return CalendarRepository(store)


def get_post_contents(store: RecordStore = Depends(get_store)) -> PostContentRepository:
    return PostContentRepository(store)


def get_transfer(store: RecordStore = Depends(get_store)) -> DataTransfer:
    return DataTransfer(store)


# =============================================================================
# Health Check
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(store: RecordStore = Depends(get_store)):
    """Check if the API is running and the store is open."""
    return APIResponse.ok(
        data={
            "status": "healthy",
            "schema_version": await store.schema_version(),
            "version": "0.1.0",
        }
    )


# =============================================================================
# Builds
# =============================================================================

@router.post("/builds", response_model=CreatedResponse)
async def create_build(
    payload: dict[str, Any] = Body(...),
    builds: BuildRepository = Depends(get_builds),
):
    """Create a build. Requires name, wood_type, style and start_date."""
    build_id = await builds.create(payload)
    return APIResponse.ok(data=CreatedData(id=build_id))


@router.get("/builds", response_model=BuildListResponse)
async def list_builds(
    q: str | None = Query(None, description="Search name, wood type, style and client"),
    wood_type: str | None = None,
    style: str | None = None,
    client_name: str | None = None,
    builds: BuildRepository = Depends(get_builds),
):
    """List builds, optionally searched and filtered.

    With both a search term and filters, only builds matching both are listed.
    """
    filtered = None
    if wood_type or style or client_name:
        filtered = await builds.filter(
            wood_type=wood_type, style=style, client_name=client_name
        )

    if q:
        results = await builds.search(q)
        if filtered is not None:
            matched = {b.id for b in filtered}
            results = [b for b in results if b.id in matched]
    elif filtered is not None:
        results = filtered
    else:
        results = await builds.get_all()
    return APIResponse.ok(data=builds_to_data(results), total=len(results))


@router.get("/builds/{build_id}", response_model=BuildResponse)
async def get_build(build_id: str, builds: BuildRepository = Depends(get_builds)):
    build = await builds.get_by_id(build_id)
    if not build:
        return APIResponse.fail(f"Build not found: {build_id}", ErrorCode.NOT_FOUND)
    return APIResponse.ok(data=BuildRecord.from_model(build))


@router.patch("/builds/{build_id}", response_model=BuildResponse)
async def update_build(
    build_id: str,
    payload: dict[str, Any] = Body(...),
    builds: BuildRepository = Depends(get_builds),
):
    build = await builds.update(build_id, **payload)
    return APIResponse.ok(data=BuildRecord.from_model(build))


@router.delete("/builds/{build_id}", response_model=DeletedResponse)
async def delete_build(build_id: str, builds: BuildRepository = Depends(get_builds)):
    """Delete a build. Its photos are kept and become unassigned."""
    deleted = await builds.delete(build_id)
    return APIResponse.ok(data=DeletedData(id=build_id, deleted=deleted))


@router.get("/builds/{build_id}/photos", response_model=PhotoListResponse)
async def get_build_photos(build_id: str, photos: PhotoRepository = Depends(get_photos)):
    results = await photos.get_by_build(build_id)
    return APIResponse.ok(data=photos_to_data(results), total=len(results))


# =============================================================================
# Photos
# =============================================================================

@router.post("/photos/batch", response_model=CountResponse)
async def add_photo_batch(
    payload: list[dict[str, Any]] = Body(...),
    photos: PhotoRepository = Depends(get_photos),
):
    """Add a batch of photo records supplied by the photo source."""
    count = await photos.add_batch(payload)
    return APIResponse.ok(data=CountData(count=count))


@router.post("/photos/media-items", response_model=PhotoListResponse)
async def add_media_items(
    payload: list[dict[str, Any]] = Body(...),
    photos: PhotoRepository = Depends(get_photos),
):
    """Convert picker media items to photos and add them as one batch."""
    converted = photos_from_media_items(payload)
    await photos.add_batch(converted)
    return APIResponse.ok(data=photos_to_data(converted), total=len(converted))


@router.get("/photos", response_model=PhotoListResponse)
async def list_photos(
    q: str | None = Query(None, description="Search filename and caption"),
    build_id: str | None = None,
    assigned: bool | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    posted: bool | None = None,
    photos: PhotoRepository = Depends(get_photos),
):
    """List photos, optionally searched and filtered (both must match)."""
    if (start is None) != (end is None):
        return APIResponse.fail(
            "Both start and end are required for a date range",
            ErrorCode.VALIDATION_ERROR
        )

    filtered = None
    if any(value is not None for value in (build_id, assigned, start, posted)):
        filtered = await photos.filter(
            build_id=build_id,
            is_assigned=assigned,
            date_range=(start, end) if start is not None else None,
            posted=posted,
        )

    if q:
        results = await photos.search(q)
        if filtered is not None:
            matched = {p.id for p in filtered}
            results = [p for p in results if p.id in matched]
    elif filtered is not None:
        results = filtered
    else:
        results = await photos.get_all()
    return APIResponse.ok(data=photos_to_data(results), total=len(results))


@router.get("/photos/unassigned", response_model=PhotoListResponse)
async def list_unassigned_photos(photos: PhotoRepository = Depends(get_photos)):
    results = await photos.get_unassigned()
    return APIResponse.ok(data=photos_to_data(results), total=len(results))


@router.post("/photos/bulk-assign", response_model=CountResponse)
async def bulk_assign_photos(
    request: BulkAssignRequest,
    photos: PhotoRepository = Depends(get_photos),
):
    """Assign several photos to a build; nothing changes if any fails."""
    logger.info("bulk_assign_request", build_id=request.build_id, count=len(request.photo_ids))
    count = await photos.bulk_assign(request.photo_ids, request.build_id)
    return APIResponse.ok(data=CountData(count=count))


@router.get("/photos/{photo_id}", response_model=PhotoResponse)
async def get_photo(photo_id: str, photos: PhotoRepository = Depends(get_photos)):
    photo = await photos.get_by_id(photo_id)
    if not photo:
        return APIResponse.fail(f"Photo not found: {photo_id}", ErrorCode.NOT_FOUND)
    return APIResponse.ok(data=PhotoRecord.from_model(photo))


@router.patch("/photos/{photo_id}", response_model=PhotoResponse)
async def update_photo(
    photo_id: str,
    payload: dict[str, Any] = Body(...),
    photos: PhotoRepository = Depends(get_photos),
):
    photo = await photos.update(photo_id, **payload)
    return APIResponse.ok(data=PhotoRecord.from_model(photo))


@router.delete("/photos/{photo_id}", response_model=DeletedResponse)
async def delete_photo(photo_id: str, photos: PhotoRepository = Depends(get_photos)):
    deleted = await photos.delete(photo_id)
    return APIResponse.ok(data=DeletedData(id=photo_id, deleted=deleted))


@router.post("/photos/{photo_id}/assign", response_model=PhotoResponse)
async def assign_photo(
    photo_id: str,
    request: AssignRequest,
    photos: PhotoRepository = Depends(get_photos),
):
    await photos.assign(photo_id, request.build_id)
    photo = await photos.get_by_id(photo_id)
    return APIResponse.ok(data=PhotoRecord.from_model(photo))


@router.post("/photos/{photo_id}/unassign", response_model=PhotoResponse)
async def unassign_photo(photo_id: str, photos: PhotoRepository = Depends(get_photos)):
    await photos.unassign(photo_id)
    photo = await photos.get_by_id(photo_id)
    return APIResponse.ok(data=PhotoRecord.from_model(photo))


# =============================================================================
# Templates
# =============================================================================

@router.post("/templates", response_model=CreatedResponse)
async def create_template(
    payload: dict[str, Any] = Body(...),
    templates: TemplateRepository = Depends(get_templates),
):
    template_id = await templates.create(payload)
    return APIResponse.ok(data=CreatedData(id=template_id))


@router.get("/templates", response_model=TemplateListResponse)
async def list_templates(
    stage: str | None = None,
    templates: TemplateRepository = Depends(get_templates),
):
    if stage:
        results = await templates.get_by_stage(stage)
    else:
        results = await templates.get_all()
    return APIResponse.ok(data=templates_to_data(results), total=len(results))


@router.get("/templates/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: str, templates: TemplateRepository = Depends(get_templates)):
    template = await templates.get_by_id(template_id)
    if not template:
        return APIResponse.fail(f"Template not found: {template_id}", ErrorCode.NOT_FOUND)
    return APIResponse.ok(data=TemplateRecord.from_model(template))


@router.patch("/templates/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    payload: dict[str, Any] = Body(...),
    templates: TemplateRepository = Depends(get_templates),
):
    template = await templates.update(template_id, **payload)
    return APIResponse.ok(data=TemplateRecord.from_model(template))


@router.delete("/templates/{template_id}", response_model=DeletedResponse)
async def delete_template(template_id: str, templates: TemplateRepository = Depends(get_templates)):
    deleted = await templates.delete(template_id)
    return APIResponse.ok(data=DeletedData(id=template_id, deleted=deleted))


# =============================================================================
# Calendar
# =============================================================================

@router.post("/calendar", response_model=CreatedResponse)
async def create_event(
    payload: dict[str, Any] = Body(...),
    calendar: CalendarRepository = Depends(get_calendar),
):
    event_id = await calendar.create(payload)
    return APIResponse.ok(data=CreatedData(id=event_id))


@router.get("/calendar", response_model=EventListResponse)
async def list_events(
    day: date | None = Query(None, description="Events on this local calendar day"),
    start: datetime | None = None,
    end: datetime | None = None,
    calendar: CalendarRepository = Depends(get_calendar),
):
    """List events for a day, a date range, or all events."""
    if (start is None) != (end is None):
        return APIResponse.fail(
            "Both start and end are required for a date range",
            ErrorCode.VALIDATION_ERROR
        )

    if day is not None:
        results = await calendar.get_by_date(day)
    elif start is not None:
        results = await calendar.get_by_date_range(start, end)
    else:
        results = await calendar.get_all()
    return APIResponse.ok(data=events_to_data(results), total=len(results))


@router.get("/calendar/{event_id}", response_model=EventResponse)
async def get_event(event_id: str, calendar: CalendarRepository = Depends(get_calendar)):
    event = await calendar.get_by_id(event_id)
    if not event:
        return APIResponse.fail(f"Event not found: {event_id}", ErrorCode.NOT_FOUND)
    return APIResponse.ok(data=EventRecord.from_model(event))


@router.patch("/calendar/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: str,
    payload: dict[str, Any] = Body(...),
    calendar: CalendarRepository = Depends(get_calendar),
):
    event = await calendar.update(event_id, **payload)
    return APIResponse.ok(data=EventRecord.from_model(event))


@router.delete("/calendar/{event_id}", response_model=DeletedResponse)
async def delete_event(event_id: str, calendar: CalendarRepository = Depends(get_calendar)):
    deleted = await calendar.delete(event_id)
    return APIResponse.ok(data=DeletedData(id=event_id, deleted=deleted))


# =============================================================================
# Post Contents
# =============================================================================

@router.put("/post-contents/{photo_id}", response_model=PostContentResponse)
async def save_post_content(
    photo_id: str,
    payload: dict[str, Any] = Body(...),
    post_contents: PostContentRepository = Depends(get_post_contents),
):
    content = await post_contents.save({**payload, "photo_id": photo_id})
    return APIResponse.ok(data=post_content_to_data(content))


@router.get("/post-contents/{photo_id}", response_model=PostContentResponse)
async def get_post_content(
    photo_id: str,
    post_contents: PostContentRepository = Depends(get_post_contents),
):
    content = await post_contents.get(photo_id)
    if not content:
        return APIResponse.fail(f"Post content not found: {photo_id}", ErrorCode.NOT_FOUND)
    return APIResponse.ok(data=post_content_to_data(content))


@router.delete("/post-contents/{photo_id}", response_model=DeletedResponse)
async def delete_post_content(
    photo_id: str,
    post_contents: PostContentRepository = Depends(get_post_contents),
):
    deleted = await post_contents.delete(photo_id)
    return APIResponse.ok(data=DeletedData(id=photo_id, deleted=deleted))


# =============================================================================
# Export / Import / Stats
# =============================================================================

@router.get("/data/export", response_model=SnapshotResponse)
async def export_data(transfer: DataTransfer = Depends(get_transfer)):
    snapshot = await transfer.export_all()
    return APIResponse.ok(data=snapshot.to_dict())


@router.post("/data/import", response_model=ImportResponse)
async def import_data(
    payload: dict[str, Any] = Body(...),
    transfer: DataTransfer = Depends(get_transfer),
):
    """Add every record of a snapshot; rejected as a whole on any error."""
    counts = await transfer.import_all(payload)
    return APIResponse.ok(data=ImportData(**counts))


@router.post("/data/clear", response_model=APIResponse[dict])
async def clear_data(transfer: DataTransfer = Depends(get_transfer)):
    await transfer.clear_all()
    return APIResponse.ok(data={"cleared": True})


@router.get("/data/stats", response_model=StatsResponse)
async def get_stats(transfer: DataTransfer = Depends(get_transfer)):
    stats = await transfer.get_stats()
    return APIResponse.ok(data=StatsData(**stats.to_dict()))
