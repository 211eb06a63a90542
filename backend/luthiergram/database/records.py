"""Pydantic schemas for record validation and the export format.

The store's dataclasses (``models``) are what repositories hand out. The
schemas here check caller-supplied data before it reaches SQL and define the
plain-data shape of snapshots and embedded record copies.
"""
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from typing import Annotated, Any, TypeVar

import structlog
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from ..errors import RecordValidationError
from ..utils.dates import to_utc
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

logger = structlog.get_logger()


def _coerce_datetime(value: Any) -> Any:
    if isinstance(value, (datetime, date, str)):
        return to_utc(value)
    return value


# Aware UTC datetime; naive values and bare dates are read as local time
Timestamp = Annotated[datetime, BeforeValidator(_coerce_datetime)]

M = TypeVar("M", bound=BaseModel)


def _plain(value: Any) -> Any:
    """Turn record dataclasses nested anywhere in `value` into dicts."""
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, Mapping):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def validate_record(model: type[M], data: Any) -> M:
    """Validate ``data`` against ``model``.

    Raises:
        RecordValidationError: listing every failing field.
    """
    try:
        return model.model_validate(_plain(data))
    except ValidationError as e:
        logger.warning("record_validation_failed", model=model.__name__, errors=e.error_count())
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'record'}: {err['msg']}"
            for err in e.errors()
        )
        raise RecordValidationError(
            f"Invalid {model.__name__}: {details}",
            errors=[{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
        ) from e


def validate_changes(model: type[BaseModel], changes: dict[str, Any]) -> dict[str, Any]:
    """Validate a partial update and return only the fields that were given."""
    return validate_record(model, changes).model_dump(exclude_unset=True)


# =============================================================================
# Stored records
# =============================================================================

class RecordModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PhotoMetadataRecord(RecordModel):
    width: int | None = None
    height: int | None = None
    camera_make: str | None = None
    camera_model: str | None = None
    focal_length: float | None = None
    aperture: float | None = None
    iso_equivalent: int | None = None
    exposure_time: str | None = None

    def to_model(self) -> PhotoMetadata:
        return PhotoMetadata(**self.model_dump())


class PhotoRecord(RecordModel):
    id: str = Field(min_length=1)
    source_id: str
    url: str
    thumbnail: str
    timestamp: Timestamp
    filename: str
    build_id: str | None = None
    caption: str | None = None
    scheduled_date: Timestamp | None = None
    posted: bool = False
    metadata: PhotoMetadataRecord | None = None

    @classmethod
    def from_model(cls, photo: Photo) -> "PhotoRecord":
        return cls.model_validate(asdict(photo))

    def to_model(self) -> Photo:
        return Photo(
            id=self.id,
            source_id=self.source_id,
            url=self.url,
            thumbnail=self.thumbnail,
            timestamp=self.timestamp,
            filename=self.filename,
            build_id=self.build_id,
            caption=self.caption,
            scheduled_date=self.scheduled_date,
            posted=self.posted,
            metadata=self.metadata.to_model() if self.metadata else None,
        )


class BuildRecord(RecordModel):
    id: str = Field(min_length=1)
    name: str
    wood_type: str
    style: str
    start_date: Timestamp
    client_name: str | None = None
    notes: str | None = None
    photos: list[PhotoRecord] = Field(default_factory=list)
    created_at: Timestamp | None = None
    updated_at: Timestamp | None = None

    @classmethod
    def from_model(cls, build: Build) -> "BuildRecord":
        return cls.model_validate(asdict(build))

    def to_model(self) -> Build:
        return Build(
            id=self.id,
            name=self.name,
            wood_type=self.wood_type,
            style=self.style,
            start_date=self.start_date,
            client_name=self.client_name,
            notes=self.notes,
            photos=[p.to_model() for p in self.photos],
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class TemplateRecord(RecordModel):
    id: str = Field(min_length=1)
    name: str
    stage: BuildStage
    template: str
    variables: list[str] = Field(default_factory=list)

    @classmethod
    def from_model(cls, template: ContentTemplate) -> "TemplateRecord":
        return cls.model_validate(asdict(template))

    def to_model(self) -> ContentTemplate:
        return ContentTemplate(
            id=self.id,
            name=self.name,
            stage=self.stage,
            template=self.template,
            variables=list(self.variables),
        )


class BuildContextRecord(RecordModel):
    build_name: str
    wood_type: str
    stage: BuildStage

    def to_model(self) -> BuildContext:
        return BuildContext(
            build_name=self.build_name,
            wood_type=self.wood_type,
            stage=self.stage,
        )


class PostContentRecord(RecordModel):
    photo_id: str = Field(min_length=1)
    caption: str
    hashtags: list[str] = Field(default_factory=list)
    scheduled_date: Timestamp
    build_context: BuildContextRecord

    @classmethod
    def from_model(cls, content: PostContent) -> "PostContentRecord":
        return cls.model_validate(asdict(content))

    def to_model(self) -> PostContent:
        return PostContent(
            photo_id=self.photo_id,
            caption=self.caption,
            hashtags=list(self.hashtags),
            scheduled_date=self.scheduled_date,
            build_context=self.build_context.to_model(),
        )


class EventRecord(RecordModel):
    id: str = Field(min_length=1)
    title: str = ""
    date: Timestamp
    photo: PhotoRecord
    build: BuildRecord
    content: PostContentRecord

    @classmethod
    def from_model(cls, event: CalendarEvent) -> "EventRecord":
        return cls.model_validate(asdict(event))

    def to_model(self) -> CalendarEvent:
        return CalendarEvent(
            id=self.id,
            title=self.title,
            date=self.date,
            photo=self.photo.to_model(),
            build=self.build.to_model(),
            content=self.content.to_model(),
        )


class Snapshot(RecordModel):
    """Point-in-time export of builds, photos, templates and events."""
    builds: list[BuildRecord] = Field(default_factory=list)
    photos: list[PhotoRecord] = Field(default_factory=list)
    templates: list[TemplateRecord] = Field(default_factory=list)
    events: list[EventRecord] = Field(default_factory=list)

    @classmethod
    def from_models(
        cls,
        builds: list[Build],
        photos: list[Photo],
        templates: list[ContentTemplate],
        events: list[CalendarEvent],
    ) -> "Snapshot":
        return cls(
            builds=[BuildRecord.from_model(b) for b in builds],
            photos=[PhotoRecord.from_model(p) for p in photos],
            templates=[TemplateRecord.from_model(t) for t in templates],
            events=[EventRecord.from_model(e) for e in events],
        )

    def to_dict(self) -> dict:
        """Plain JSON-ready data."""
        return self.model_dump(mode="json")


# =============================================================================
# Mutation inputs
# =============================================================================

class InputModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class BuildCreate(InputModel):
    name: str = Field(min_length=1)
    wood_type: str = Field(min_length=1)
    style: str = Field(min_length=1)
    start_date: Timestamp
    client_name: str | None = None
    notes: str | None = None


class BuildUpdate(InputModel):
    # Required columns may be changed but not cleared
    name: str = Field(default=None, min_length=1)
    wood_type: str = Field(default=None, min_length=1)
    style: str = Field(default=None, min_length=1)
    start_date: Timestamp = None
    client_name: str | None = None
    notes: str | None = None


class PhotoUpdate(InputModel):
    source_id: str = None
    url: str = None
    thumbnail: str = None
    timestamp: Timestamp = None
    filename: str = None
    build_id: str | None = None
    caption: str | None = None
    scheduled_date: Timestamp | None = None
    posted: bool = None
    metadata: PhotoMetadataRecord | None = None


class TemplateCreate(InputModel):
    name: str = Field(min_length=1)
    stage: BuildStage
    template: str
    variables: list[str] = Field(default_factory=list)


class TemplateUpdate(InputModel):
    name: str = Field(default=None, min_length=1)
    stage: BuildStage = None
    template: str = None
    variables: list[str] = None


class EventCreate(InputModel):
    title: str = ""
    date: Timestamp
    photo: PhotoRecord
    build: BuildRecord
    content: PostContentRecord


class EventUpdate(InputModel):
    title: str = None
    date: Timestamp = None
    photo: PhotoRecord = None
    build: BuildRecord = None
    content: PostContentRecord = None
