"""Tests for export, import, clear and stats."""
import json
from datetime import datetime, timezone

import pytest

from luthiergram.database import Snapshot
from luthiergram.errors import ConsistencyError, RecordValidationError


@pytest.fixture
async def populated(build_repo, photo_repo, template_repo, calendar_repo, build_with_photos):
    """Store holding a build with photos, a template and one event."""
    await template_repo.create(name="Fret day", stage="Setup", template="Fretting {build_name}")
    build = await build_repo.get_by_id(build_with_photos)
    photo = await photo_repo.get_by_id("p2")
    await calendar_repo.create(
        title="Fret post",
        date=datetime(2024, 2, 1, 17, 0, tzinfo=timezone.utc),
        photo=photo,
        build=build,
        content={
            "photo_id": "p2",
            "caption": "Fretting",
            "hashtags": ["#frets"],
            "scheduled_date": datetime(2024, 2, 1, 17, 0, tzinfo=timezone.utc),
            "build_context": {"build_name": "Tele #1", "wood_type": "Maple", "stage": "Setup"},
        },
    )
    # Change the order so it differs from insertion order
    await build_repo.update(build_with_photos, photos=["p3", "p1", "p2"])
    return build_with_photos


def _by_id(records):
    return sorted(records, key=lambda r: r["id"])


class TestExport:
    async def test_export_is_json_ready(self, transfer, populated):
        snapshot = await transfer.export_all()

        data = json.loads(json.dumps(snapshot.to_dict()))
        assert set(data) == {"builds", "photos", "templates", "events"}
        assert len(data["builds"]) == 1
        assert len(data["photos"]) == 4
        assert len(data["templates"]) == 1
        assert len(data["events"]) == 1
        assert [p["id"] for p in data["builds"][0]["photos"]] == ["p3", "p1", "p2"]

    async def test_export_empty_store(self, transfer):
        snapshot = await transfer.export_all()

        assert snapshot.to_dict() == {"builds": [], "photos": [], "templates": [], "events": []}


class TestImport:
    async def test_round_trip(self, transfer, build_repo, populated):
        """export, clear, import gives back the same records."""
        exported = (await transfer.export_all()).to_dict()

        await transfer.clear_all()
        counts = await transfer.import_all(json.loads(json.dumps(exported)))

        assert counts == {"builds": 1, "photos": 4, "templates": 1, "events": 1}
        restored = (await transfer.export_all()).to_dict()
        for kind in ("builds", "photos", "templates", "events"):
            assert _by_id(restored[kind]) == _by_id(exported[kind])
        assert (await build_repo.get_by_id(populated)).photo_ids == ["p3", "p1", "p2"]

    async def test_import_accepts_snapshot(self, transfer, populated):
        snapshot = await transfer.export_all()
        await transfer.clear_all()

        await transfer.import_all(snapshot)

        assert (await transfer.get_stats()).total_photos == 4

    async def test_import_duplicate_changes_nothing(self, transfer, populated):
        """Importing records whose ids already exist fails as a whole."""
        exported = (await transfer.export_all()).to_dict()
        exported["templates"].append(
            {"id": "new-template", "name": "x", "stage": "Planning", "template": "t", "variables": []}
        )

        with pytest.raises(ConsistencyError):
            await transfer.import_all(exported)

        after = (await transfer.export_all()).to_dict()
        assert after == exported | {"templates": exported["templates"][:-1]}

    async def test_import_missing_field_writes_nothing(self, transfer):
        data = {
            "builds": [
                {
                    "id": "b1",
                    "name": "Tele",
                    "wood_type": "Maple",
                    "style": "Electric",
                    "start_date": "2024-01-01T00:00:00Z",
                }
            ],
            "photos": [{"id": "x", "source_id": "s", "url": "u", "thumbnail": "t"}],
        }

        with pytest.raises(RecordValidationError):
            await transfer.import_all(data)

        assert (await transfer.get_stats()).total_builds == 0

    async def test_import_dangling_build_reference(self, transfer):
        data = {
            "photos": [
                {
                    "id": "x",
                    "source_id": "s",
                    "url": "u",
                    "thumbnail": "t",
                    "timestamp": "2024-01-01T00:00:00Z",
                    "filename": "x.jpg",
                    "build_id": "missing-build",
                }
            ]
        }

        with pytest.raises(ConsistencyError):
            await transfer.import_all(data)

        assert (await transfer.get_stats()).total_photos == 0

    async def test_import_into_existing_build_appends(
        self, transfer, build_repo, build_with_photos
    ):
        """Imported photos for a build already in the store go after its photos."""
        await transfer.import_all(
            {
                "photos": [
                    {
                        "id": "extra",
                        "source_id": "s",
                        "url": "u",
                        "thumbnail": "t",
                        "timestamp": "2024-01-05T00:00:00Z",
                        "filename": "extra.jpg",
                        "build_id": build_with_photos,
                    }
                ]
            }
        )

        build = await build_repo.get_by_id(build_with_photos)
        assert build.photo_ids == ["p1", "p2", "p3", "extra"]

    async def test_import_empty_snapshot(self, transfer):
        assert await transfer.import_all({}) == {
            "builds": 0,
            "photos": 0,
            "templates": 0,
            "events": 0,
        }

    async def test_snapshot_ignores_unknown_keys(self):
        snapshot = Snapshot.model_validate({"builds": [], "settings": {"theme": "dark"}})

        assert snapshot.to_dict()["builds"] == []


class TestClearAndStats:
    async def test_stats(self, transfer, populated):
        stats = await transfer.get_stats()

        assert stats.total_builds == 1
        assert stats.total_photos == 4
        assert stats.assigned_photos == 3
        assert stats.unassigned_photos == 1
        assert stats.scheduled_posts == 1
        assert stats.to_dict()["unassigned_photos"] == 1

    async def test_clear_all(self, transfer, post_content_repo, populated):
        await post_content_repo.save(
            {
                "photo_id": "p1",
                "caption": "x",
                "hashtags": [],
                "scheduled_date": "2024-02-02T10:00:00Z",
                "build_context": {"build_name": "Tele #1", "wood_type": "Maple", "stage": "Setup"},
            }
        )

        await transfer.clear_all()

        stats = await transfer.get_stats()
        assert stats.to_dict() == {
            "total_builds": 0,
            "total_photos": 0,
            "assigned_photos": 0,
            "unassigned_photos": 0,
            "scheduled_posts": 0,
        }
        assert await post_content_repo.get("p1") is None
