"""Database module for the LuthierGram record store."""
from .models import (
    Build,
    BuildContext,
    BuildStage,
    CalendarEvent,
    ContentTemplate,
    Photo,
    PhotoMetadata,
    PostContent,
    StoreStats,
)
from .records import Snapshot
from .repository import (
    BuildRepository,
    CalendarRepository,
    PhotoRepository,
    PostContentRepository,
    TemplateRepository,
)
from .schema import (
    SCHEMA_VERSION,
    close_database,
    get_schema_version,
    init_database,
)
from .store import RecordStore
from .transfer import DataTransfer

__all__ = [
    # Schema
    "SCHEMA_VERSION",
    "init_database",
    "close_database",
    "get_schema_version",
    # Store
    "RecordStore",
    # Models
    "Build",
    "BuildContext",
    "BuildStage",
    "CalendarEvent",
    "ContentTemplate",
    "Photo",
    "PhotoMetadata",
    "PostContent",
    "Snapshot",
    "StoreStats",
    # Repositories
    "BuildRepository",
    "PhotoRepository",
    "TemplateRepository",
    "CalendarRepository",
    "PostContentRepository",
    "DataTransfer",
]
