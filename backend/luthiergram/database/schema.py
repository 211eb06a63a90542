"""SQLite database schema for the LuthierGram record store."""
from pathlib import Path

import aiosqlite
import structlog

logger = structlog.get_logger()

# Schema version for migrations
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Builds: one instrument project each
CREATE TABLE IF NOT EXISTS builds (
    id TEXT PRIMARY KEY,         -- UUID
    name TEXT NOT NULL,
    wood_type TEXT NOT NULL,
    style TEXT NOT NULL,
    start_date TEXT NOT NULL,
    client_name TEXT,
    notes TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- Photos: imported from the picker. build_id is the only stored link;
-- a build's photo list is read back through idx_photos_build.
CREATE TABLE IF NOT EXISTS photos (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,     -- Picker media item id
    url TEXT NOT NULL,
    thumbnail TEXT NOT NULL,
    timestamp TEXT NOT NULL,     -- Capture time
    filename TEXT NOT NULL,
    build_id TEXT REFERENCES builds(id),
    build_position INTEGER,      -- Assignment order within the build
    caption TEXT,
    scheduled_date TEXT,
    posted BOOLEAN NOT NULL DEFAULT FALSE,
    metadata JSON                -- Dimensions and camera info
);

-- Content templates: caption skeletons per build stage
CREATE TABLE IF NOT EXISTS content_templates (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    stage TEXT NOT NULL,
    template TEXT NOT NULL,
    variables JSON NOT NULL
);

-- Post contents: one generated post per photo
CREATE TABLE IF NOT EXISTS post_contents (
    photo_id TEXT PRIMARY KEY REFERENCES photos(id),
    caption TEXT NOT NULL,
    hashtags JSON NOT NULL,
    scheduled_date TEXT NOT NULL,
    build_context JSON NOT NULL
);

-- Calendar events: scheduled posts with embedded record copies
CREATE TABLE IF NOT EXISTS calendar_events (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL,
    photo_id TEXT NOT NULL REFERENCES photos(id),
    build_id TEXT NOT NULL REFERENCES builds(id),
    photo JSON NOT NULL,
    build JSON NOT NULL,
    content JSON NOT NULL
);

-- Schema metadata
CREATE TABLE IF NOT EXISTS schema_info (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Indexes for common queries
CREATE INDEX IF NOT EXISTS idx_builds_created_at ON builds(created_at);
CREATE INDEX IF NOT EXISTS idx_photos_build ON photos(build_id, build_position);
CREATE INDEX IF NOT EXISTS idx_photos_timestamp ON photos(timestamp);
CREATE INDEX IF NOT EXISTS idx_templates_stage ON content_templates(stage);
CREATE INDEX IF NOT EXISTS idx_post_contents_scheduled ON post_contents(scheduled_date);
CREATE INDEX IF NOT EXISTS idx_events_date ON calendar_events(date);
CREATE INDEX IF NOT EXISTS idx_events_photo ON calendar_events(photo_id);
CREATE INDEX IF NOT EXISTS idx_events_build ON calendar_events(build_id);
"""


async def init_database(db_path: str | Path) -> aiosqlite.Connection:
    """Initialize database with schema.

    The connection runs in autocommit mode; multi-statement writes are
    grouped explicitly by ``RecordStore.transaction()``.

    Args:
        db_path: Path to SQLite database file.

    Returns:
        Database connection.
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info("initializing_database", path=str(db_path))

    db = await aiosqlite.connect(str(db_path), isolation_level=None)

    # Enable foreign keys
    await db.execute("PRAGMA foreign_keys = ON")

    # Execute schema
    await db.executescript(SCHEMA_SQL)

    # Set schema version
    await db.execute(
        "INSERT OR REPLACE INTO schema_info (key, value) VALUES (?, ?)",
        ("version", str(SCHEMA_VERSION))
    )

    logger.info("database_initialized", path=str(db_path), version=SCHEMA_VERSION)

    return db


async def get_schema_version(db: aiosqlite.Connection) -> int | None:
    """Get current schema version from database."""
    try:
        cursor = await db.execute(
            "SELECT value FROM schema_info WHERE key = ?",
            ("version",)
        )
        row = await cursor.fetchone()
        return int(row[0]) if row else None
    except aiosqlite.OperationalError:
        return None


async def close_database(db: aiosqlite.Connection) -> None:
    """Close database connection."""
    await db.close()
    logger.info("database_closed")
