"""Still-frame grabbing from local video files via ffmpeg.

Each grab is an independent ffmpeg invocation seeking to one timestamp and
writing a single JPEG to stdout, so a bad timestamp fails on its own without
affecting the rest of the scan.

Author: afu
"""

import asyncio
import logging
import subprocess
from pathlib import Path
from typing import Protocol, runtime_checkable

from frameperfect.config import Settings
from frameperfect.exceptions import MediaMetadataError, MediaSeekError
from frameperfect.utils.image import encode_data_url

logger = logging.getLogger(__name__)


@runtime_checkable
class FrameGrabber(Protocol):
    """Capability the pipeline needs from the media layer."""

    async def probe_duration(self, media_path: Path) -> float: ...

    async def grab(self, media_path: Path, timestamp: float) -> str: ...


class FfmpegFrameGrabber:
    """Grab JPEG stills with ffmpeg and read durations with ffprobe."""

    def __init__(self, settings: Settings) -> None:
        self._ffmpeg = settings.ffmpeg_binary
        self._ffprobe = settings.ffprobe_binary
        self._quality = settings.frame_quality

    async def probe_duration(self, media_path: Path) -> float:
        return await asyncio.to_thread(self._probe_duration, media_path)

    async def grab(self, media_path: Path, timestamp: float) -> str:
        jpeg = await asyncio.to_thread(self._grab, media_path, timestamp)
        return encode_data_url(jpeg, "image/jpeg")

    def _probe_duration(self, media_path: Path) -> float:
        cmd = [
            self._ffprobe, "-v", "quiet",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(media_path),
        ]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            raise MediaMetadataError(
                "ffprobe not found. Please install ffmpeg and ensure it is on PATH."
            )
        if result.returncode != 0:
            raise MediaMetadataError(
                f"ffprobe failed for {media_path.name} (code {result.returncode}): "
                f"{result.stderr.strip()}"
            )
        try:
            duration = float(result.stdout.strip())
        except ValueError:
            raise MediaMetadataError(
                f"Unreadable duration for {media_path.name}: {result.stdout.strip()!r}"
            )
        if duration <= 0:
            raise MediaMetadataError(f"Media {media_path.name} has no duration")
        logger.info("Media %s duration: %.2fs", media_path.name, duration)
        return duration

    def _grab(self, media_path: Path, timestamp: float) -> bytes:
        # -ss before -i: fast keyframe seek, then decode up to the exact time
        cmd = [
            self._ffmpeg, "-v", "error",
            "-ss", f"{timestamp:.3f}",
            "-i", str(media_path),
            "-frames:v", "1",
            "-q:v", str(self._quality),
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "pipe:1",
        ]
        try:
            result = subprocess.run(cmd, capture_output=True)
        except FileNotFoundError:
            raise MediaSeekError(
                "ffmpeg not found. Please install ffmpeg and ensure it is on PATH."
            )
        if result.returncode != 0 or not result.stdout:
            stderr = result.stderr.decode(errors="replace").strip()
            raise MediaSeekError(
                f"Frame grab at {timestamp:.2f}s failed (code {result.returncode}): {stderr}"
            )
        return result.stdout
