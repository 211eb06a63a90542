"""Pytest configuration and fixtures"""
from datetime import datetime, timedelta, timezone

import pytest

from luthiergram.database import (
    BuildRepository,
    CalendarRepository,
    DataTransfer,
    Photo,
    PhotoMetadata,
    PhotoRepository,
    PostContentRepository,
    RecordStore,
    TemplateRepository,
)

BASE_TIME = datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
async def store(tmp_path):
    """Open a record store on a temporary database."""
    store = await RecordStore.open(tmp_path / "luthiergram.db")
    yield store
    await store.close()


@pytest.fixture
def build_repo(store):
    return BuildRepository(store)


@pytest.fixture
def photo_repo(store):
    return PhotoRepository(store)


@pytest.fixture
def template_repo(store):
    return TemplateRepository(store)


@pytest.fixture
def calendar_repo(store):
    return CalendarRepository(store)


@pytest.fixture
def post_content_repo(store):
    return PostContentRepository(store)


@pytest.fixture
def transfer(store):
    return DataTransfer(store)


@pytest.fixture
def make_photo():
    """Factory for photo records as the photo source would supply them."""

    def _make_photo(
        photo_id: str,
        filename: str | None = None,
        timestamp: datetime | None = None,
        caption: str | None = None,
        posted: bool = False,
    ) -> Photo:
        return Photo(
            id=photo_id,
            source_id=f"src-{photo_id}",
            url=f"https://photos.example.com/{photo_id}",
            thumbnail=f"https://photos.example.com/{photo_id}=w400-h400-c",
            timestamp=timestamp or BASE_TIME,
            filename=filename or f"{photo_id}.jpg",
            caption=caption,
            posted=posted,
            metadata=PhotoMetadata(width=4032, height=3024, camera_make="Apple"),
        )

    return _make_photo


@pytest.fixture
def build_data():
    """Valid build creation data."""
    return {
        "name": "Tele #1",
        "wood_type": "Maple",
        "style": "Electric",
        "start_date": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
async def build_with_photos(build_repo, photo_repo, build_data, make_photo):
    """A build with three assigned photos, plus one unassigned photo."""
    build_id = await build_repo.create(build_data)
    await photo_repo.add_batch(
        [
            make_photo("p1", timestamp=BASE_TIME),
            make_photo("p2", timestamp=BASE_TIME + timedelta(hours=1)),
            make_photo("p3", timestamp=BASE_TIME + timedelta(hours=2)),
            make_photo("loose", timestamp=BASE_TIME + timedelta(hours=3)),
        ]
    )
    await photo_repo.bulk_assign(["p1", "p2", "p3"], build_id)
    return build_id
