"""Database repositories for CRUD operations.

``photos.build_id`` is the single stored link between a photo and its build.
A build's ``photos`` list is read back from it in assignment order, so the
two sides cannot drift apart. Operations that write more than one row run in
one ``RecordStore.transaction()``.
"""
import json
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import asdict
from datetime import date, datetime
from typing import Any

import aiosqlite
import structlog

from ..errors import ConsistencyError, NotFoundError, RecordValidationError
from ..utils.dates import day_bounds, from_db, to_db, utcnow
from .models import (
    Build,
    BuildContext,
    BuildStage,
    CalendarEvent,
    ContentTemplate,
    Photo,
    PhotoMetadata,
    PostContent,
)
from .records import (
    BuildCreate,
    BuildUpdate,
    EventCreate,
    EventRecord,
    EventUpdate,
    PhotoRecord,
    PhotoUpdate,
    PostContentRecord,
    TemplateCreate,
    TemplateUpdate,
    validate_changes,
    validate_record,
)
from .store import RecordStore

logger = structlog.get_logger()

BUILD_COLUMNS = (
    "id, name, wood_type, style, start_date, client_name, notes, created_at, updated_at"
)
PHOTO_COLUMNS = (
    "id, source_id, url, thumbnail, timestamp, filename, build_id, caption, "
    "scheduled_date, posted, metadata"
)
TEMPLATE_COLUMNS = "id, name, stage, template, variables"
EVENT_COLUMNS = "id, title, date, photo, build, content"
POST_CONTENT_COLUMNS = "photo_id, caption, hashtags, scheduled_date, build_context"

# Above this many builds, member photos are loaded with one unfiltered scan
# instead of an IN (...) list
MAX_IN_PARAMS = 500

TIMESTAMP_FIELDS = {"start_date", "timestamp", "scheduled_date", "date"}


def _merge_input(data: Mapping[str, Any] | None, fields: dict[str, Any]) -> dict[str, Any]:
    merged = dict(data or {})
    merged.update(fields)
    return merged


def _column_value(name: str, value: Any) -> Any:
    """Convert a validated field value to its stored form."""
    if name in TIMESTAMP_FIELDS:
        return to_db(value)
    if name == "metadata":
        return json.dumps(value) if value is not None else None
    if name == "variables":
        return json.dumps(list(value))
    if isinstance(value, BuildStage):
        return value.value
    return value


def _set_clause(columns: dict[str, Any]) -> tuple[str, list[Any]]:
    fields = ", ".join(f"{name} = ?" for name in columns)
    return fields, list(columns.values())


def _photo_id(item: Photo | Mapping[str, Any] | str) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, Mapping):
        return item["id"]
    return item.id


# =============================================================================
# Row conversion
# =============================================================================

def _row_to_build(row: tuple) -> Build:
    """Convert database row to Build object (without photos)."""
    return Build(
        id=row[0],
        name=row[1],
        wood_type=row[2],
        style=row[3],
        start_date=from_db(row[4]),
        client_name=row[5],
        notes=row[6],
        created_at=from_db(row[7]),
        updated_at=from_db(row[8]),
    )


def _row_to_photo(row: tuple) -> Photo:
    """Convert database row to Photo object."""
    return Photo(
        id=row[0],
        source_id=row[1],
        url=row[2],
        thumbnail=row[3],
        timestamp=from_db(row[4]),
        filename=row[5],
        build_id=row[6],
        caption=row[7],
        scheduled_date=from_db(row[8]),
        posted=bool(row[9]),
        metadata=PhotoMetadata(**json.loads(row[10])) if row[10] else None,
    )


def _row_to_template(row: tuple) -> ContentTemplate:
    return ContentTemplate(
        id=row[0],
        name=row[1],
        stage=BuildStage(row[2]),
        template=row[3],
        variables=json.loads(row[4]),
    )


def _row_to_event(row: tuple) -> CalendarEvent:
    return EventRecord.model_validate(
        {
            "id": row[0],
            "title": row[1],
            "date": row[2],
            "photo": json.loads(row[3]),
            "build": json.loads(row[4]),
            "content": json.loads(row[5]),
        }
    ).to_model()


def _row_to_post_content(row: tuple) -> PostContent:
    context = json.loads(row[4])
    return PostContent(
        photo_id=row[0],
        caption=row[1],
        hashtags=json.loads(row[2]),
        scheduled_date=from_db(row[3]),
        build_context=BuildContext(
            build_name=context["build_name"],
            wood_type=context["wood_type"],
            stage=BuildStage(context["stage"]),
        ),
    )


def photo_params(photo: Photo, position: int | None = None) -> tuple:
    """Parameters for inserting ``photo`` with the photo INSERT statement."""
    return (
        photo.id,
        photo.source_id,
        photo.url,
        photo.thumbnail,
        to_db(photo.timestamp),
        photo.filename,
        photo.build_id,
        position,
        photo.caption,
        to_db(photo.scheduled_date),
        photo.posted,
        json.dumps(asdict(photo.metadata)) if photo.metadata else None,
    )


INSERT_PHOTO_SQL = """
    INSERT INTO photos (
        id, source_id, url, thumbnail, timestamp, filename, build_id,
        build_position, caption, scheduled_date, posted, metadata
    )
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

INSERT_EVENT_SQL = """
    INSERT INTO calendar_events (id, title, date, photo_id, build_id, photo, build, content)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""


def event_params(event: EventRecord) -> tuple:
    """Parameters for inserting ``event`` with the event INSERT statement."""
    return (
        event.id,
        event.title,
        to_db(event.date),
        event.photo.id,
        event.build.id,
        event.photo.model_dump_json(),
        event.build.model_dump_json(),
        event.content.model_dump_json(),
    )


# =============================================================================
# Shared reads (run inside an open transaction or read block)
# =============================================================================

async def fetch_photos(
    db: aiosqlite.Connection,
    where: str = "",
    params: Iterable[Any] = (),
    order_by: str = "rowid",
) -> list[Photo]:
    """Select photos matching a WHERE clause."""
    cursor = await db.execute(
        f"SELECT {PHOTO_COLUMNS} FROM photos {where} ORDER BY {order_by}",
        tuple(params)
    )
    rows = await cursor.fetchall()
    return [_row_to_photo(row) for row in rows]


async def fetch_builds(
    db: aiosqlite.Connection,
    where: str = "",
    params: Iterable[Any] = (),
    order_by: str = "created_at DESC, rowid DESC",
) -> list[Build]:
    """Select builds matching a WHERE clause, with their photo lists."""
    cursor = await db.execute(
        f"SELECT {BUILD_COLUMNS} FROM builds {where} ORDER BY {order_by}",
        tuple(params)
    )
    rows = await cursor.fetchall()
    builds = [_row_to_build(row) for row in rows]
    await _load_build_photos(db, builds)
    return builds


async def _load_build_photos(db: aiosqlite.Connection, builds: list[Build]) -> None:
    """Fill each build's photo list from the photos pointing at it."""
    if not builds:
        return
    by_id = {build.id: build for build in builds}

    if len(by_id) > MAX_IN_PARAMS:
        photos = await fetch_photos(
            db, "WHERE build_id IS NOT NULL", order_by="build_position, rowid"
        )
    else:
        placeholders = ", ".join("?" for _ in by_id)
        photos = await fetch_photos(
            db,
            f"WHERE build_id IN ({placeholders})",
            by_id.keys(),
            order_by="build_position, rowid",
        )

    for photo in photos:
        build = by_id.get(photo.build_id)
        if build is not None:
            build.photos.append(photo)


async def fetch_templates(
    db: aiosqlite.Connection,
    where: str = "",
    params: Iterable[Any] = (),
) -> list[ContentTemplate]:
    cursor = await db.execute(
        f"SELECT {TEMPLATE_COLUMNS} FROM content_templates {where} ORDER BY rowid",
        tuple(params)
    )
    rows = await cursor.fetchall()
    return [_row_to_template(row) for row in rows]


async def fetch_events(
    db: aiosqlite.Connection,
    where: str = "",
    params: Iterable[Any] = (),
) -> list[CalendarEvent]:
    cursor = await db.execute(
        f"SELECT {EVENT_COLUMNS} FROM calendar_events {where} ORDER BY date, rowid",
        tuple(params)
    )
    rows = await cursor.fetchall()
    return [_row_to_event(row) for row in rows]


async def count_rows(db: aiosqlite.Connection, table: str, where: str = "") -> int:
    """Count rows in a table."""
    cursor = await db.execute(f"SELECT COUNT(*) FROM {table} {where}")
    row = await cursor.fetchone()
    return row[0] if row else 0


async def _exists(db: aiosqlite.Connection, table: str, record_id: str) -> bool:
    cursor = await db.execute(f"SELECT 1 FROM {table} WHERE id = ?", (record_id,))
    return await cursor.fetchone() is not None


# =============================================================================
# Assignment primitives (run inside an open transaction)
# =============================================================================

async def _touch_build(db: aiosqlite.Connection, build_id: str, now: datetime) -> None:
    await db.execute(
        "UPDATE builds SET updated_at = ? WHERE id = ?",
        (to_db(now), build_id)
    )


async def _current_build_id(db: aiosqlite.Connection, photo_id: str) -> str | None:
    cursor = await db.execute("SELECT build_id FROM photos WHERE id = ?", (photo_id,))
    row = await cursor.fetchone()
    if row is None:
        raise NotFoundError("photo", photo_id)
    return row[0]


async def _attach_photo(
    db: aiosqlite.Connection,
    photo_id: str,
    build_id: str,
    now: datetime,
) -> str | None:
    """Point a photo at a build, appending it to the end of the build's list.

    Returns the build the photo previously belonged to, if any.
    """
    former = await _current_build_id(db, photo_id)
    if not await _exists(db, "builds", build_id):
        raise ConsistencyError(
            f"Cannot assign photo {photo_id}: build {build_id} does not exist"
        )

    if former != build_id:
        await db.execute(
            """
            UPDATE photos SET
                build_id = ?,
                build_position = (
                    SELECT COALESCE(MAX(build_position), 0) + 1
                    FROM photos WHERE build_id = ?
                )
            WHERE id = ?
            """,
            (build_id, build_id, photo_id)
        )
        if former is not None:
            await _touch_build(db, former, now)

    await _touch_build(db, build_id, now)
    return former


async def _detach_photo(
    db: aiosqlite.Connection,
    photo_id: str,
    now: datetime,
) -> str | None:
    """Clear a photo's build link. Returns the former build id."""
    former = await _current_build_id(db, photo_id)
    if former is None:
        return None

    await db.execute(
        "UPDATE photos SET build_id = NULL, build_position = NULL WHERE id = ?",
        (photo_id,)
    )
    await _touch_build(db, former, now)
    return former


async def _replace_members(
    db: aiosqlite.Connection,
    build_id: str,
    photo_ids: list[str],
    now: datetime,
) -> None:
    """Make ``photo_ids`` (in order) the exact member list of a build."""
    ordered = list(dict.fromkeys(photo_ids))
    for photo_id in ordered:
        former = await _current_build_id(db, photo_id)
        if former is not None and former != build_id:
            await _touch_build(db, former, now)

    placeholders = ", ".join("?" for _ in ordered)
    keep = f"AND id NOT IN ({placeholders})" if ordered else ""
    await db.execute(
        f"UPDATE photos SET build_id = NULL, build_position = NULL "
        f"WHERE build_id = ? {keep}",
        (build_id, *ordered)
    )
    await db.executemany(
        "UPDATE photos SET build_id = ?, build_position = ? WHERE id = ?",
        [(build_id, position, photo_id) for position, photo_id in enumerate(ordered, 1)]
    )


# =============================================================================
# Repositories
# =============================================================================

class BuildRepository:
    """Repository for build records."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def create(self, data: Mapping[str, Any] | None = None, **fields) -> str:
        """Create a new build and return its id.

        Required: name, wood_type, style, start_date. Optional: client_name,
        notes.
        """
        build = validate_record(BuildCreate, _merge_input(data, fields))
        build_id = str(uuid.uuid4())
        now = to_db(utcnow())

        async with self.store.transaction() as db:
            await db.execute(
                """
                INSERT INTO builds (
                    id, name, wood_type, style, start_date, client_name, notes,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    build_id,
                    build.name,
                    build.wood_type,
                    build.style,
                    to_db(build.start_date),
                    build.client_name,
                    build.notes,
                    now,
                    now,
                )
            )

        logger.info("build_created", build_id=build_id, name=build.name)
        return build_id

    async def get_all(self) -> list[Build]:
        """Get all builds, most recently created first."""
        async with self.store.reading() as db:
            return await fetch_builds(db)

    async def get_by_id(self, build_id: str) -> Build | None:
        """Get build by ID."""
        async with self.store.reading() as db:
            builds = await fetch_builds(db, "WHERE id = ?", (build_id,))
        return builds[0] if builds else None

    async def update(self, build_id: str, /, **changes) -> Build:
        """Merge fields into a build and refresh its updated timestamp.

        ``photos`` is only touched when passed: the given photos (or ids)
        become the build's exact member list in that order, and former
        members not listed are detached.
        """
        photos = changes.pop("photos", None)
        columns = {
            name: _column_value(name, value)
            for name, value in validate_changes(BuildUpdate, changes).items()
        }
        now = utcnow()

        async with self.store.transaction() as db:
            if not await _exists(db, "builds", build_id):
                raise NotFoundError("build", build_id)

            columns["updated_at"] = to_db(now)
            fields, values = _set_clause(columns)
            await db.execute(
                f"UPDATE builds SET {fields} WHERE id = ?",
                values + [build_id]
            )

            if photos is not None:
                await _replace_members(db, build_id, [_photo_id(p) for p in photos], now)

            build = (await fetch_builds(db, "WHERE id = ?", (build_id,)))[0]

        logger.info(
            "build_updated",
            build_id=build_id,
            fields=sorted(name for name in columns if name != "updated_at"),
            photos_replaced=photos is not None,
        )
        return build

    async def delete(self, build_id: str) -> bool:
        """Delete a build, detaching (not deleting) its photos.

        Calendar events scheduled for the build are deleted with it.
        """
        async with self.store.transaction() as db:
            cursor = await db.execute(
                "UPDATE photos SET build_id = NULL, build_position = NULL WHERE build_id = ?",
                (build_id,)
            )
            detached = cursor.rowcount

            cursor = await db.execute(
                "DELETE FROM calendar_events WHERE build_id = ?",
                (build_id,)
            )
            events_removed = cursor.rowcount

            cursor = await db.execute("DELETE FROM builds WHERE id = ?", (build_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(
                "build_deleted",
                build_id=build_id,
                detached_photos=detached,
                events_removed=events_removed,
            )
        return deleted

    async def search(self, term: str) -> list[Build]:
        """Case-insensitive substring search over name, wood type, style and client."""
        needle = term.casefold()
        async with self.store.reading() as db:
            builds = await fetch_builds(db, order_by="rowid")

        return [
            build for build in builds
            if any(
                needle in value.casefold()
                for value in (build.name, build.wood_type, build.style, build.client_name)
                if value
            )
        ]

    async def filter(
        self,
        wood_type: str | None = None,
        style: str | None = None,
        client_name: str | None = None,
    ) -> list[Build]:
        """Exact-match filter; criteria left as None are ignored."""
        criteria = {"wood_type": wood_type, "style": style, "client_name": client_name}
        clauses = [f"{name} = ?" for name, value in criteria.items() if value is not None]
        params = [value for value in criteria.values() if value is not None]
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        async with self.store.reading() as db:
            return await fetch_builds(db, where, params, order_by="rowid")

    async def count(self) -> int:
        """Count total builds."""
        async with self.store.reading() as db:
            return await count_rows(db, "builds")


class PhotoRepository:
    """Repository for photo records and their build assignment."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def add_batch(self, photos: Iterable[Photo | Mapping[str, Any]]) -> int:
        """Insert photos from the photo source as one batch.

        Ids come from the source. Photos are stored unassigned; a duplicate
        id rejects the whole batch.
        """
        records = [validate_record(PhotoRecord, photo).to_model() for photo in photos]
        if not records:
            return 0

        for photo in records:
            photo.build_id = None

        async with self.store.transaction() as db:
            await db.executemany(INSERT_PHOTO_SQL, [photo_params(p) for p in records])

        logger.info("photos_added", count=len(records))
        return len(records)

    async def get_all(self) -> list[Photo]:
        """Get all photos, most recently taken first."""
        async with self.store.reading() as db:
            return await fetch_photos(db, order_by="timestamp DESC, rowid")

    async def get_by_id(self, photo_id: str) -> Photo | None:
        """Get photo by ID."""
        async with self.store.reading() as db:
            photos = await fetch_photos(db, "WHERE id = ?", (photo_id,))
        return photos[0] if photos else None

    async def get_by_build(self, build_id: str) -> list[Photo]:
        """Get the photos of a build in assignment order."""
        async with self.store.reading() as db:
            return await fetch_photos(
                db, "WHERE build_id = ?", (build_id,), order_by="build_position, rowid"
            )

    async def get_unassigned(self) -> list[Photo]:
        """Get photos that belong to no build."""
        async with self.store.reading() as db:
            return await fetch_photos(db, "WHERE build_id IS NULL")

    async def assign(self, photo_id: str, build_id: str) -> None:
        """Assign a photo to a build.

        A photo that belonged to another build moves. Raises NotFoundError
        for an unknown photo and ConsistencyError for an unknown build.
        """
        async with self.store.transaction() as db:
            former = await _attach_photo(db, photo_id, build_id, utcnow())

        logger.info("photo_assigned", photo_id=photo_id, build_id=build_id, former_build_id=former)

    async def unassign(self, photo_id: str) -> None:
        """Detach a photo from its build. A no-op for unassigned photos."""
        async with self.store.transaction() as db:
            former = await _detach_photo(db, photo_id, utcnow())

        if former is not None:
            logger.info("photo_unassigned", photo_id=photo_id, build_id=former)

    async def bulk_assign(self, photo_ids: Iterable[str], build_id: str) -> int:
        """Assign several photos to a build, all or nothing.

        Returns the number of photos now assigned to the build by this call.
        """
        ordered = list(dict.fromkeys(photo_ids))
        now = utcnow()

        async with self.store.transaction() as db:
            if not await _exists(db, "builds", build_id):
                raise ConsistencyError(
                    f"Cannot assign {len(ordered)} photos: build {build_id} does not exist"
                )
            for photo_id in ordered:
                await _attach_photo(db, photo_id, build_id, now)

        logger.info("photos_assigned", build_id=build_id, count=len(ordered))
        return len(ordered)

    async def update(self, photo_id: str, /, **changes) -> Photo:
        """Merge fields into a photo.

        A ``build_id`` change is applied with assign/unassign semantics.
        """
        payload = validate_changes(PhotoUpdate, changes)
        now = utcnow()

        async with self.store.transaction() as db:
            if not await _exists(db, "photos", photo_id):
                raise NotFoundError("photo", photo_id)

            if "build_id" in payload:
                build_id = payload.pop("build_id")
                if build_id is None:
                    await _detach_photo(db, photo_id, now)
                else:
                    await _attach_photo(db, photo_id, build_id, now)

            if payload:
                fields, values = _set_clause(
                    {name: _column_value(name, value) for name, value in payload.items()}
                )
                await db.execute(
                    f"UPDATE photos SET {fields} WHERE id = ?",
                    values + [photo_id]
                )

            photo = (await fetch_photos(db, "WHERE id = ?", (photo_id,)))[0]

        logger.info("photo_updated", photo_id=photo_id, fields=sorted(changes))
        return photo

    async def delete(self, photo_id: str) -> bool:
        """Delete a photo, removing it from its build first.

        The photo's post content and calendar events are deleted with it.
        """
        async with self.store.transaction() as db:
            cursor = await db.execute("SELECT build_id FROM photos WHERE id = ?", (photo_id,))
            row = await cursor.fetchone()
            if row is None:
                return False

            if row[0] is not None:
                await _detach_photo(db, photo_id, utcnow())

            cursor = await db.execute(
                "DELETE FROM calendar_events WHERE photo_id = ?",
                (photo_id,)
            )
            events_removed = cursor.rowcount
            await db.execute("DELETE FROM post_contents WHERE photo_id = ?", (photo_id,))
            await db.execute("DELETE FROM photos WHERE id = ?", (photo_id,))

        logger.info(
            "photo_deleted",
            photo_id=photo_id,
            build_id=row[0],
            events_removed=events_removed,
        )
        return True

    async def search(self, term: str) -> list[Photo]:
        """Case-insensitive substring search over filename and caption."""
        needle = term.casefold()
        async with self.store.reading() as db:
            photos = await fetch_photos(db)

        return [
            photo for photo in photos
            if needle in photo.filename.casefold()
            or (photo.caption is not None and needle in photo.caption.casefold())
        ]

    async def filter(
        self,
        build_id: str | None = None,
        is_assigned: bool | None = None,
        date_range: tuple[datetime | date, datetime | date] | None = None,
        posted: bool | None = None,
    ) -> list[Photo]:
        """Filter photos; criteria left as None are ignored.

        ``date_range`` bounds the capture timestamp, both ends inclusive.
        """
        clauses: list[str] = []
        params: list[Any] = []

        if build_id is not None:
            clauses.append("build_id = ?")
            params.append(build_id)
        if is_assigned is not None:
            clauses.append("build_id IS NOT NULL" if is_assigned else "build_id IS NULL")
        if date_range is not None:
            start, end = date_range
            clauses.append("timestamp BETWEEN ? AND ?")
            params.extend([to_db(start), to_db(end)])
        if posted is not None:
            clauses.append("posted = ?")
            params.append(posted)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self.store.reading() as db:
            return await fetch_photos(db, where, params)

    async def count(self) -> int:
        """Count total photos."""
        async with self.store.reading() as db:
            return await count_rows(db, "photos")

    async def count_assigned(self) -> int:
        """Count photos that belong to a build."""
        async with self.store.reading() as db:
            return await count_rows(db, "photos", "WHERE build_id IS NOT NULL")


class TemplateRepository:
    """Repository for content templates."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def create(self, data: Mapping[str, Any] | None = None, **fields) -> str:
        """Create a template and return its id."""
        template = validate_record(TemplateCreate, _merge_input(data, fields))
        template_id = str(uuid.uuid4())

        async with self.store.transaction() as db:
            await db.execute(
                f"INSERT INTO content_templates ({TEMPLATE_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (
                    template_id,
                    template.name,
                    template.stage.value,
                    template.template,
                    json.dumps(template.variables),
                )
            )

        logger.info("template_created", template_id=template_id, stage=template.stage.value)
        return template_id

    async def get_all(self) -> list[ContentTemplate]:
        async with self.store.reading() as db:
            return await fetch_templates(db)

    async def get_by_id(self, template_id: str) -> ContentTemplate | None:
        async with self.store.reading() as db:
            templates = await fetch_templates(db, "WHERE id = ?", (template_id,))
        return templates[0] if templates else None

    async def get_by_stage(self, stage: BuildStage | str) -> list[ContentTemplate]:
        """Get templates written for a build stage."""
        try:
            stage = BuildStage(stage)
        except ValueError as e:
            raise RecordValidationError(f"Unknown build stage: {stage}") from e

        async with self.store.reading() as db:
            return await fetch_templates(db, "WHERE stage = ?", (stage.value,))

    async def update(self, template_id: str, /, **changes) -> ContentTemplate:
        columns = {
            name: _column_value(name, value)
            for name, value in validate_changes(TemplateUpdate, changes).items()
        }

        async with self.store.transaction() as db:
            if not await _exists(db, "content_templates", template_id):
                raise NotFoundError("template", template_id)
            if columns:
                fields, values = _set_clause(columns)
                await db.execute(
                    f"UPDATE content_templates SET {fields} WHERE id = ?",
                    values + [template_id]
                )
            template = (await fetch_templates(db, "WHERE id = ?", (template_id,)))[0]

        logger.info("template_updated", template_id=template_id, fields=sorted(columns))
        return template

    async def delete(self, template_id: str) -> bool:
        async with self.store.transaction() as db:
            cursor = await db.execute(
                "DELETE FROM content_templates WHERE id = ?",
                (template_id,)
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("template_deleted", template_id=template_id)
        return deleted


class CalendarRepository:
    """Repository for scheduled calendar events.

    Events hold copies of their photo, build and post content. They are
    linked to the live photo and build by id and are deleted with either.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    async def create(self, data: Mapping[str, Any] | None = None, **fields) -> str:
        """Create an event and return its id."""
        event = validate_record(EventCreate, _merge_input(data, fields))
        record = EventRecord(id=str(uuid.uuid4()), **dict(event))

        async with self.store.transaction() as db:
            await self._check_references(db, record.photo.id, record.build.id)
            await db.execute(INSERT_EVENT_SQL, event_params(record))

        logger.info(
            "event_created",
            event_id=record.id,
            photo_id=record.photo.id,
            build_id=record.build.id,
        )
        return record.id

    async def get_all(self) -> list[CalendarEvent]:
        async with self.store.reading() as db:
            return await fetch_events(db)

    async def get_by_id(self, event_id: str) -> CalendarEvent | None:
        async with self.store.reading() as db:
            events = await fetch_events(db, "WHERE id = ?", (event_id,))
        return events[0] if events else None

    async def get_by_date_range(
        self,
        start: datetime | date,
        end: datetime | date,
    ) -> list[CalendarEvent]:
        """Get events dated between ``start`` and ``end``, both inclusive."""
        async with self.store.reading() as db:
            return await fetch_events(
                db, "WHERE date BETWEEN ? AND ?", (to_db(start), to_db(end))
            )

    async def get_by_date(self, day: datetime | date) -> list[CalendarEvent]:
        """Get events on a calendar day in local time."""
        start, end = day_bounds(day)
        return await self.get_by_date_range(start, end)

    async def update(self, event_id: str, /, **changes) -> CalendarEvent:
        update = validate_record(EventUpdate, changes)
        columns: dict[str, Any] = {}
        for name in update.model_fields_set:
            value = getattr(update, name)
            if name == "photo":
                columns["photo_id"] = value.id
                columns["photo"] = value.model_dump_json()
            elif name == "build":
                columns["build_id"] = value.id
                columns["build"] = value.model_dump_json()
            elif name == "content":
                columns["content"] = value.model_dump_json()
            else:
                columns[name] = _column_value(name, value)

        async with self.store.transaction() as db:
            if not await _exists(db, "calendar_events", event_id):
                raise NotFoundError("event", event_id)
            if "photo_id" in columns or "build_id" in columns:
                await self._check_references(db, columns.get("photo_id"), columns.get("build_id"))
            if columns:
                fields, values = _set_clause(columns)
                await db.execute(
                    f"UPDATE calendar_events SET {fields} WHERE id = ?",
                    values + [event_id]
                )
            event = (await fetch_events(db, "WHERE id = ?", (event_id,)))[0]

        logger.info("event_updated", event_id=event_id, fields=sorted(update.model_fields_set))
        return event

    async def delete(self, event_id: str) -> bool:
        async with self.store.transaction() as db:
            cursor = await db.execute(
                "DELETE FROM calendar_events WHERE id = ?",
                (event_id,)
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("event_deleted", event_id=event_id)
        return deleted

    async def count(self) -> int:
        """Count scheduled events."""
        async with self.store.reading() as db:
            return await count_rows(db, "calendar_events")

    async def _check_references(
        self,
        db: aiosqlite.Connection,
        photo_id: str | None,
        build_id: str | None,
    ) -> None:
        if photo_id is not None and not await _exists(db, "photos", photo_id):
            raise ConsistencyError(f"Event references unknown photo {photo_id}")
        if build_id is not None and not await _exists(db, "builds", build_id):
            raise ConsistencyError(f"Event references unknown build {build_id}")


class PostContentRepository:
    """Repository for post contents, one per photo."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def save(self, content: PostContent | Mapping[str, Any]) -> PostContent:
        """Save or replace the post content for a photo."""
        record = validate_record(PostContentRecord, content)

        async with self.store.transaction() as db:
            if not await _exists(db, "photos", record.photo_id):
                raise ConsistencyError(f"Post content references unknown photo {record.photo_id}")
            await db.execute(
                f"""
                INSERT INTO post_contents ({POST_CONTENT_COLUMNS})
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(photo_id) DO UPDATE SET
                    caption = excluded.caption,
                    hashtags = excluded.hashtags,
                    scheduled_date = excluded.scheduled_date,
                    build_context = excluded.build_context
                """,
                (
                    record.photo_id,
                    record.caption,
                    json.dumps(record.hashtags),
                    to_db(record.scheduled_date),
                    record.build_context.model_dump_json(),
                )
            )

        logger.info("post_content_saved", photo_id=record.photo_id)
        return record.to_model()

    async def get(self, photo_id: str) -> PostContent | None:
        async with self.store.reading() as db:
            cursor = await db.execute(
                f"SELECT {POST_CONTENT_COLUMNS} FROM post_contents WHERE photo_id = ?",
                (photo_id,)
            )
            row = await cursor.fetchone()
        return _row_to_post_content(row) if row else None

    async def get_scheduled(
        self,
        start: datetime | date,
        end: datetime | date,
    ) -> list[PostContent]:
        """Get post contents scheduled between ``start`` and ``end`` inclusive."""
        async with self.store.reading() as db:
            cursor = await db.execute(
                f"""
                SELECT {POST_CONTENT_COLUMNS} FROM post_contents
                WHERE scheduled_date BETWEEN ? AND ?
                ORDER BY scheduled_date
                """,
                (to_db(start), to_db(end))
            )
            rows = await cursor.fetchall()
        return [_row_to_post_content(row) for row in rows]

    async def delete(self, photo_id: str) -> bool:
        async with self.store.transaction() as db:
            cursor = await db.execute(
                "DELETE FROM post_contents WHERE photo_id = ?",
                (photo_id,)
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("post_content_deleted", photo_id=photo_id)
        return deleted
