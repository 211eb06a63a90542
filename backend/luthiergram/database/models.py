"""Record types held by the store."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class BuildStage(str, Enum):
    """Stage of a build that a content template is written for."""
    PLANNING = "Planning"
    WOOD_SELECTION = "Wood Selection"
    ROUGH_SHAPING = "Rough Shaping"
    JOINERY = "Joinery"
    ASSEMBLY = "Assembly"
    FINISHING = "Finishing"
    SETUP = "Setup"
    COMPLETE = "Complete"


@dataclass
class PhotoMetadata:
    """Dimensions and camera information reported by the photo source."""
    width: int | None = None
    height: int | None = None
    camera_make: str | None = None
    camera_model: str | None = None
    focal_length: float | None = None
    aperture: float | None = None
    iso_equivalent: int | None = None
    exposure_time: str | None = None


@dataclass
class Photo:
    """Photo record."""
    id: str
    source_id: str
    url: str
    thumbnail: str
    timestamp: datetime
    filename: str
    build_id: str | None = None
    caption: str | None = None
    scheduled_date: datetime | None = None
    posted: bool = False
    metadata: PhotoMetadata | None = None

    @property
    def is_assigned(self) -> bool:
        return self.build_id is not None


@dataclass
class Build:
    """Build record.

    ``photos`` is assembled from the photos whose ``build_id`` points here,
    in assignment order. It is not stored on its own.
    """
    id: str
    name: str
    wood_type: str
    style: str
    start_date: datetime
    client_name: str | None = None
    notes: str | None = None
    photos: list[Photo] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def photo_ids(self) -> list[str]:
        return [p.id for p in self.photos]


@dataclass
class ContentTemplate:
    """Caption template for a build stage."""
    id: str
    name: str
    stage: BuildStage
    template: str
    variables: list[str] = field(default_factory=list)


@dataclass
class BuildContext:
    """Build details captured alongside a post."""
    build_name: str
    wood_type: str
    stage: BuildStage


@dataclass
class PostContent:
    """Post generated for a photo."""
    photo_id: str
    caption: str
    hashtags: list[str]
    scheduled_date: datetime
    build_context: BuildContext


@dataclass
class CalendarEvent:
    """Scheduled post.

    ``photo``, ``build`` and ``content`` are copies taken when the event was
    written.
    """
    id: str
    date: datetime
    photo: Photo
    build: Build
    content: PostContent
    title: str = ""


@dataclass
class StoreStats:
    """Aggregate record counts."""
    total_builds: int = 0
    total_photos: int = 0
    assigned_photos: int = 0
    scheduled_posts: int = 0

    @property
    def unassigned_photos(self) -> int:
        return self.total_photos - self.assigned_photos

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "total_builds": self.total_builds,
            "total_photos": self.total_photos,
            "assigned_photos": self.assigned_photos,
            "unassigned_photos": self.unassigned_photos,
            "scheduled_posts": self.scheduled_posts,
        }
