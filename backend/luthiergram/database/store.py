"""Record store handle with all-or-nothing transactions."""
import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
import structlog

from ..errors import ConsistencyError
from .schema import close_database, get_schema_version, init_database

logger = structlog.get_logger()


class RecordStore:
    """An open record store.

    The host application opens and closes the store; repositories hold a
    reference to it. All access goes through ``transaction()`` (writes) or
    ``reading()`` (reads), which serialize on one lock so a caller never
    observes a multi-record write half applied.
    """

    def __init__(self, db: aiosqlite.Connection, path: Path | None = None):
        self.db = db
        self.path = path
        self._lock = asyncio.Lock()
        self._closed = False

    @classmethod
    async def open(cls, db_path: str | Path) -> "RecordStore":
        """Open (creating if needed) the store at ``db_path``."""
        db = await init_database(db_path)
        return cls(db, Path(db_path))

    async def close(self) -> None:
        """Close the underlying connection. Safe to call twice."""
        if self._closed:
            return
        async with self._lock:
            await close_database(self.db)
            self._closed = True

    async def __aenter__(self) -> "RecordStore":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def schema_version(self) -> int | None:
        """Schema version recorded in the store."""
        async with self._lock:
            return await get_schema_version(self.db)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run the body as one atomic unit.

        Commits when the body returns. Any exception rolls back every write
        made in the body; integrity violations are re-raised as
        ``ConsistencyError``.
        """
        async with self._lock:
            await self.db.execute("BEGIN IMMEDIATE")
            try:
                yield self.db
            except aiosqlite.IntegrityError as e:
                await self._rollback(e)
                raise ConsistencyError(f"Integrity violation: {e}") from e
            except BaseException as e:
                await self._rollback(e)
                raise
            else:
                try:
                    await self.db.execute("COMMIT")
                except BaseException as e:
                    # A failed COMMIT leaves the transaction open
                    await self._rollback(e)
                    raise

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[aiosqlite.Connection]:
        """Read inside one deferred transaction for a point-in-time view."""
        async with self._lock:
            await self.db.execute("BEGIN")
            try:
                yield self.db
            finally:
                await self.db.execute("COMMIT")

    async def _rollback(self, error: BaseException) -> None:
        if self.db.in_transaction:
            await self.db.execute("ROLLBACK")
        logger.warning(
            "store_transaction_rolled_back",
            error_type=type(error).__name__,
            error=str(error),
        )
