"""Tests for the record store handle and its transactions."""
import aiosqlite
import pytest

from luthiergram.database import SCHEMA_VERSION, BuildRepository, RecordStore
from luthiergram.errors import ConsistencyError


class TestRecordStore:
    async def test_open_creates_schema(self, tmp_path):
        """Opening a new path creates the database and records its version."""
        path = tmp_path / "nested" / "store.db"

        async with await RecordStore.open(path) as store:
            assert path.exists()
            assert await store.schema_version() == SCHEMA_VERSION

    async def test_reopen_keeps_records(self, tmp_path, build_data):
        path = tmp_path / "store.db"
        async with await RecordStore.open(path) as store:
            build_id = await BuildRepository(store).create(build_data)

        async with await RecordStore.open(path) as store:
            build = await BuildRepository(store).get_by_id(build_id)

        assert build.name == "Tele #1"

    async def test_close_twice(self, tmp_path):
        store = await RecordStore.open(tmp_path / "store.db")

        await store.close()
        await store.close()

    async def test_transaction_commits(self, store):
        async with store.transaction() as db:
            await db.execute(
                "INSERT INTO schema_info (key, value) VALUES (?, ?)", ("marker", "1")
            )

        async with store.reading() as db:
            cursor = await db.execute("SELECT value FROM schema_info WHERE key = 'marker'")
            assert await cursor.fetchone() == ("1",)

    async def test_transaction_rolls_back_on_error(self, store):
        """An exception in the body undoes every write made in it."""
        with pytest.raises(RuntimeError):
            async with store.transaction() as db:
                await db.execute(
                    "INSERT INTO schema_info (key, value) VALUES (?, ?)", ("marker", "1")
                )
                raise RuntimeError("boom")

        async with store.reading() as db:
            cursor = await db.execute("SELECT COUNT(*) FROM schema_info WHERE key = 'marker'")
            assert await cursor.fetchone() == (0,)

    async def test_integrity_error_becomes_consistency_error(self, store):
        with pytest.raises(ConsistencyError):
            async with store.transaction() as db:
                await db.execute(
                    "INSERT INTO schema_info (key, value) VALUES (?, ?)", ("marker", "1")
                )
                await db.execute(
                    "INSERT INTO schema_info (key, value) VALUES (?, ?)", ("marker", "2")
                )

        async with store.reading() as db:
            cursor = await db.execute("SELECT COUNT(*) FROM schema_info WHERE key = 'marker'")
            assert await cursor.fetchone() == (0,)

    async def test_foreign_keys_enforced(self, store):
        """A photo cannot point at a build that does not exist."""
        with pytest.raises(ConsistencyError):
            async with store.transaction() as db:
                await db.execute(
                    "INSERT INTO photos (id, source_id, url, thumbnail, timestamp, filename, build_id) "
                    "VALUES ('x', 's', 'u', 't', '2024-01-01T00:00:00.000000Z', 'x.jpg', 'nope')"
                )

    async def test_failed_commit_rolls_back(self, store, build_repo, build_data):
        """A COMMIT that fails is rolled back and the store stays usable."""
        connection = store.db

        class FailingCommit:
            def __getattr__(self, name):
                return getattr(connection, name)

            async def execute(self, sql, *args):
                if sql == "COMMIT":
                    raise aiosqlite.OperationalError("database is locked")
                return await connection.execute(sql, *args)

        store.db = FailingCommit()
        try:
            with pytest.raises(aiosqlite.OperationalError):
                async with store.transaction() as db:
                    await db.execute(
                        "INSERT INTO schema_info (key, value) VALUES (?, ?)", ("marker", "1")
                    )
        finally:
            store.db = connection

        assert not connection.in_transaction
        build_id = await build_repo.create(build_data)
        assert await build_repo.get_by_id(build_id) is not None
        async with store.reading() as db:
            cursor = await db.execute("SELECT COUNT(*) FROM schema_info WHERE key = 'marker'")
            assert await cursor.fetchone() == (0,)

    async def test_store_usable_after_rollback(self, store, build_repo, build_data):
        with pytest.raises(RuntimeError):
            async with store.transaction():
                raise RuntimeError("boom")

        build_id = await build_repo.create(build_data)
        assert await build_repo.get_by_id(build_id) is not None
