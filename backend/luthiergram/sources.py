"""Conversion of photo-picker media items into Photo records."""
import uuid
from collections.abc import Mapping
from typing import Any

from .config import THUMBNAIL_SUFFIX
from .database.models import Photo, PhotoMetadata
from .errors import RecordValidationError
from .utils.dates import to_utc


def _int_or_none(value: Any) -> int | None:
    return int(value) if value not in (None, "") else None


def photo_from_media_item(item: Mapping[str, Any]) -> Photo:
    """Build an unassigned, unposted Photo from a picker media item.

    The item carries ``id``, ``baseUrl``, ``filename`` and a
    ``mediaMetadata`` block with ``creationTime``, ``width``, ``height`` and
    an optional ``photo`` block of camera details. The picker's id becomes
    ``source_id``; the record gets a fresh id of its own.
    """
    try:
        media = item["mediaMetadata"]
        base_url = item["baseUrl"]
        camera = media.get("photo") or {}
        return Photo(
            id=str(uuid.uuid4()),
            source_id=item["id"],
            url=base_url,
            thumbnail=f"{base_url}{THUMBNAIL_SUFFIX}",
            timestamp=to_utc(media["creationTime"]),
            filename=item["filename"],
            posted=False,
            metadata=PhotoMetadata(
                width=_int_or_none(media.get("width")),
                height=_int_or_none(media.get("height")),
                camera_make=camera.get("cameraMake"),
                camera_model=camera.get("cameraModel"),
                focal_length=camera.get("focalLength"),
                aperture=camera.get("apertureFNumber"),
                iso_equivalent=_int_or_none(camera.get("isoEquivalent")),
                exposure_time=camera.get("exposureTime"),
            ),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RecordValidationError(f"Invalid media item: {e!r}") from e


def photos_from_media_items(items: list[Mapping[str, Any]]) -> list[Photo]:
    """Convert a picker batch, failing on the first malformed item."""
    return [photo_from_media_item(item) for item in items]
