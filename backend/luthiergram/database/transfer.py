"""Bulk export, import, clear and aggregate stats over the whole store."""
import asyncio
import json
from collections.abc import Mapping
from typing import Any

import structlog

from ..utils.dates import to_db, utcnow
from .models import StoreStats
from .records import Snapshot, validate_record
from .repository import (
    INSERT_EVENT_SQL,
    INSERT_PHOTO_SQL,
    count_rows,
    event_params,
    fetch_builds,
    fetch_events,
    fetch_photos,
    fetch_templates,
    photo_params,
)
from .store import RecordStore

logger = structlog.get_logger()

# Child tables first so foreign keys never point at a deleted row
CLEAR_ORDER = ("calendar_events", "post_contents", "photos", "content_templates", "builds")


class DataTransfer:
    """Snapshot export/import and store-wide statistics."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def export_all(self) -> Snapshot:
        """Export builds, photos, templates and events as one consistent snapshot."""
        async with self.store.reading() as db:
            builds, photos, templates, events = await asyncio.gather(
                fetch_builds(db),
                fetch_photos(db, order_by="timestamp DESC, rowid"),
                fetch_templates(db),
                fetch_events(db),
            )

        snapshot = Snapshot.from_models(builds, photos, templates, events)
        logger.info(
            "store_exported",
            builds=len(snapshot.builds),
            photos=len(snapshot.photos),
            templates=len(snapshot.templates),
            events=len(snapshot.events),
        )
        return snapshot

    async def import_all(self, snapshot: Snapshot | Mapping[str, Any]) -> dict[str, int]:
        """Add every record in a snapshot to the store, all or nothing.

        Records are added, not merged: an id already in the store, or a
        reference to a build or photo that exists in neither the store nor
        the snapshot, aborts the whole import. Each build's embedded photo
        list sets the assignment order of its photos.

        Returns:
            Number of records imported per kind.
        """
        if not isinstance(snapshot, Snapshot):
            snapshot = validate_record(Snapshot, snapshot)

        now = to_db(utcnow())
        positions = self._assignment_positions(snapshot)

        async with self.store.transaction() as db:
            await db.executemany(
                """
                INSERT INTO builds (
                    id, name, wood_type, style, start_date, client_name, notes,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        build.id,
                        build.name,
                        build.wood_type,
                        build.style,
                        to_db(build.start_date),
                        build.client_name,
                        build.notes,
                        to_db(build.created_at) or now,
                        to_db(build.updated_at) or now,
                    )
                    for build in snapshot.builds
                ]
            )

            for record in snapshot.photos:
                photo = record.to_model()
                position = positions.get(photo.id)
                if photo.build_id is not None and position is None:
                    # Build already in the store: append after its photos
                    cursor = await db.execute(
                        "SELECT COALESCE(MAX(build_position), 0) + 1 FROM photos WHERE build_id = ?",
                        (photo.build_id,)
                    )
                    position = (await cursor.fetchone())[0]
                await db.execute(INSERT_PHOTO_SQL, photo_params(photo, position))

            await db.executemany(
                "INSERT INTO content_templates (id, name, stage, template, variables) "
                "VALUES (?, ?, ?, ?, ?)",
                [
                    (t.id, t.name, t.stage.value, t.template, json.dumps(t.variables))
                    for t in snapshot.templates
                ]
            )

            await db.executemany(INSERT_EVENT_SQL, [event_params(e) for e in snapshot.events])

        counts = {
            "builds": len(snapshot.builds),
            "photos": len(snapshot.photos),
            "templates": len(snapshot.templates),
            "events": len(snapshot.events),
        }
        logger.info("store_imported", **counts)
        return counts

    async def clear_all(self) -> None:
        """Delete every record of every kind in one transaction."""
        async with self.store.transaction() as db:
            for table in CLEAR_ORDER:
                await db.execute(f"DELETE FROM {table}")

        logger.info("store_cleared")

    async def get_stats(self) -> StoreStats:
        """Count builds, photos (total and assigned) and scheduled events."""
        async with self.store.reading() as db:
            total_builds, total_photos, assigned_photos, scheduled_posts = await asyncio.gather(
                count_rows(db, "builds"),
                count_rows(db, "photos"),
                count_rows(db, "photos", "WHERE build_id IS NOT NULL"),
                count_rows(db, "calendar_events"),
            )

        return StoreStats(
            total_builds=total_builds,
            total_photos=total_photos,
            assigned_photos=assigned_photos,
            scheduled_posts=scheduled_posts,
        )

    @staticmethod
    def _assignment_positions(snapshot: Snapshot) -> dict[str, int]:
        """Position of each snapshot photo within its snapshot build.

        Photos listed in their build's embedded list come first in that
        order; other members of the build follow in snapshot order.
        """
        build_ids = {build.id for build in snapshot.builds}
        owner = {
            photo.id: photo.build_id
            for photo in snapshot.photos
            if photo.build_id in build_ids
        }

        positions: dict[str, int] = {}
        next_position: dict[str, int] = {}
        for build in snapshot.builds:
            position = 0
            for embedded in build.photos:
                if owner.get(embedded.id) == build.id and embedded.id not in positions:
                    position += 1
                    positions[embedded.id] = position
            next_position[build.id] = position

        for photo_id, build_id in owner.items():
            if photo_id not in positions:
                next_position[build_id] += 1
                positions[photo_id] = next_position[build_id]

        return positions
