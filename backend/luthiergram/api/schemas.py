"""Pydantic schemas for API requests and responses.

All API responses follow a consistent structure:
{
    "success": true/false,
    "data": <response-specific data>,
    "error": "error message if failed",
    "meta": {"error_code": "CODE", "timestamp": "..."}
}
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from ..database import Build, CalendarEvent, ContentTemplate, Photo, PostContent
from ..database.records import (
    BuildRecord,
    EventRecord,
    PhotoRecord,
    PostContentRecord,
    TemplateRecord,
)
from ..errors import ConsistencyError, NotFoundError, RecordValidationError, StoreError


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONSISTENCY_VIOLATION = "CONSISTENCY_VIOLATION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def error_code_for(error: StoreError) -> tuple[ErrorCode, int]:
    """Map a store error to its API error code and HTTP status."""
    if isinstance(error, NotFoundError):
        return ErrorCode.NOT_FOUND, 404
    if isinstance(error, RecordValidationError):
        return ErrorCode.VALIDATION_ERROR, 422
    if isinstance(error, ConsistencyError):
        return ErrorCode.CONSISTENCY_VIOLATION, 409
    return ErrorCode.INTERNAL_ERROR, 500


# =============================================================================
# Response Meta
# =============================================================================

class ResponseMeta(BaseModel):
    """Metadata included in all API responses."""
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )
    error_code: ErrorCode | None = None
    total: int | None = None


# =============================================================================
# Generic API Response
# =============================================================================

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """Generic wrapper for all API responses.

    Usage:
        return APIResponse.ok(BuildRecord.from_model(build))
        return APIResponse.fail("Build not found", ErrorCode.NOT_FOUND)
    """
    success: bool
    data: T | None = None
    error: str | None = None
    meta: ResponseMeta = Field(default_factory=ResponseMeta)

    @classmethod
    def ok(cls, data: T, **meta_kwargs) -> "APIResponse[T]":
        """Create a successful response."""
        return cls(
            success=True,
            data=data,
            meta=ResponseMeta(**meta_kwargs)
        )

    @classmethod
    def fail(cls, error: str, error_code: ErrorCode = ErrorCode.INTERNAL_ERROR) -> "APIResponse[None]":
        """Create an error response."""
        return cls(
            success=False,
            error=error,
            meta=ResponseMeta(error_code=error_code)
        )


# =============================================================================
# Data Models (used in responses)
# =============================================================================

class CreatedData(BaseModel):
    """Id of a newly created record."""
    id: str


class CountData(BaseModel):
    """Number of records affected."""
    count: int


class DeletedData(BaseModel):
    """Whether a record was deleted."""
    id: str
    deleted: bool


class StatsData(BaseModel):
    """Store-wide counts."""
    total_builds: int
    total_photos: int
    assigned_photos: int
    unassigned_photos: int
    scheduled_posts: int


class ImportData(BaseModel):
    """Records imported per kind."""
    builds: int
    photos: int
    templates: int
    events: int


# =============================================================================
# Request Models
# =============================================================================

class AssignRequest(BaseModel):
    """Request to assign one photo to a build."""
    build_id: str


class BulkAssignRequest(BaseModel):
    """Request to assign several photos to a build."""
    photo_ids: list[str]
    build_id: str


# =============================================================================
# Response Type Aliases (for cleaner route signatures)
# =============================================================================

HealthResponse = APIResponse[dict]
CreatedResponse = APIResponse[CreatedData]
CountResponse = APIResponse[CountData]
DeletedResponse = APIResponse[DeletedData]
BuildResponse = APIResponse[BuildRecord]
BuildListResponse = APIResponse[list[BuildRecord]]
PhotoResponse = APIResponse[PhotoRecord]
PhotoListResponse = APIResponse[list[PhotoRecord]]
TemplateResponse = APIResponse[TemplateRecord]
TemplateListResponse = APIResponse[list[TemplateRecord]]
EventResponse = APIResponse[EventRecord]
EventListResponse = APIResponse[list[EventRecord]]
PostContentResponse = APIResponse[PostContentRecord]
StatsResponse = APIResponse[StatsData]
ImportResponse = APIResponse[ImportData]
SnapshotResponse = APIResponse[dict]


# =============================================================================
# Conversion Utilities
# =============================================================================

def builds_to_data(builds: list[Build]) -> list[BuildRecord]:
    return [BuildRecord.from_model(b) for b in builds]


def photos_to_data(photos: list[Photo]) -> list[PhotoRecord]:
    return [PhotoRecord.from_model(p) for p in photos]


def templates_to_data(templates: list[ContentTemplate]) -> list[TemplateRecord]:
    return [TemplateRecord.from_model(t) for t in templates]


def events_to_data(events: list[CalendarEvent]) -> list[EventRecord]:
    return [EventRecord.from_model(e) for e in events]


def post_content_to_data(content: PostContent) -> PostContentRecord:
    return PostContentRecord.from_model(content)
