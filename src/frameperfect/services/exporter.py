"""Keeper library export: one ZIP with the images and a ``manifest.json``."""

import io
import logging
import re
import zipfile
from collections.abc import Callable
from datetime import datetime, timezone
from enum import StrEnum

from frameperfect.exceptions import NoKeepersError
from frameperfect.schemas.export import ExportManifest, ManifestEntry
from frameperfect.schemas.frame import Frame
from frameperfect.utils.image import decode_data_url, split_data_url

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"

_WHITESPACE_RE = re.compile(r"\s+")
_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


class LibraryView(StrEnum):
    ALL = "all"
    ORIGINALS = "originals"
    ENHANCED = "enhanced"


def filter_library(frames: list[Frame], view: LibraryView | str) -> list[Frame]:
    view = LibraryView(view)
    if view == LibraryView.ORIGINALS:
        return [f for f in frames if not f.is_enhanced]
    if view == LibraryView.ENHANCED:
        return [f for f in frames if f.is_enhanced]
    return list(frames)


def frame_filename(index: int, frame: Frame) -> str:
    """``frame_{index}_{timestamp}s.<ext>`` with a 1-based index."""
    mime_type, _ = split_data_url(frame.display_image)
    ext = _EXTENSIONS.get(mime_type, "jpg")
    return f"frame_{index}_{frame.timestamp:.2f}s.{ext}"


def archive_filename(project_name: str) -> str:
    stem = _WHITESPACE_RE.sub("_", project_name.strip())
    return f"{stem}_library.zip"


def export_library(
    project_name: str,
    frames: list[Frame],
    on_progress: Callable[[float], None] | None = None,
) -> bytes:
    """Pack the keeper frames into a ZIP archive and return its bytes.

    Each keeper contributes its latest visible image; analyzed keepers also get
    a manifest entry. ``on_progress`` receives the cumulative percentage after
    each packed frame.

    Raises:
        NoKeepersError: no frame in ``frames`` is a keeper
    """
    keepers = [f for f in frames if f.is_keeper]
    if not keepers:
        raise NoKeepersError("No keeper frames to export")

    manifest = ExportManifest(
        project_name=project_name,
        export_date=datetime.now(timezone.utc).isoformat(),
    )

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
        for i, frame in enumerate(keepers, start=1):
            filename = frame_filename(i, frame)
            archive.writestr(filename, decode_data_url(frame.display_image))

            if frame.analysis:
                manifest.frames.append(
                    ManifestEntry(
                        filename=filename,
                        timestamp=frame.timestamp,
                        analysis=frame.analysis,
                    )
                )

            if on_progress:
                on_progress(i / len(keepers) * 100)

        archive.writestr(MANIFEST_NAME, manifest.model_dump_json(indent=2))

    logger.info(
        "Exported %d keeper frames (%d analyzed) for %s",
        len(keepers),
        len(manifest.frames),
        project_name,
    )
    return buffer.getvalue()
