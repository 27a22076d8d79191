"""Project registry: owns the scan sessions and launches scan runs."""

import asyncio
import logging
import uuid
from pathlib import Path

from frameperfect.config import Settings
from frameperfect.exceptions import PipelineStateError, ProjectNotFoundError
from frameperfect.schemas.frame import now_ms
from frameperfect.schemas.pipeline import PipelineStage
from frameperfect.schemas.project import Project, ScanRange
from frameperfect.services.frame_grabber import FrameGrabber
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.persistence import PROJECTS, DurableStore
from frameperfect.services.pipeline import PipelineService
from frameperfect.services.session import ScanSession

logger = logging.getLogger(__name__)


class ProjectRegistry:
    def __init__(
        self,
        pipeline: PipelineService,
        frame_store: FrameStore,
        durable: DurableStore,
        grabber: FrameGrabber,
        settings: Settings,
    ) -> None:
        self._pipeline = pipeline
        self._frame_store = frame_store
        self._durable = durable
        self._grabber = grabber
        self._scan_timeout = settings.scan_timeout_seconds
        self._max_notifications = settings.max_notifications
        self._upload_dir = settings.upload_dir
        self._default_range = ScanRange(settings.default_scan_range)
        self._default_interval = settings.default_scan_interval
        self._sessions: dict[str, ScanSession] = {}
        frame_store.on_durable_error = self._on_durable_error

    @property
    def frame_store(self) -> FrameStore:
        return self._frame_store

    # -- restore from disk ---------------------------------------------------

    async def restore_from_disk(self) -> None:
        """Load persisted projects and their frames; every session starts idle."""
        for record in await self._durable.get_all(PROJECTS):
            project = Project.model_validate(record)
            if project.id in self._sessions:
                continue
            self._sessions[project.id] = ScanSession(project, self._max_notifications)
            await self._frame_store.restore(project.id)
            logger.info("Restored project %s (%s) from disk", project.id, project.name)

        logger.info("Total projects in memory: %d", len(self._sessions))

    # -- projects ------------------------------------------------------------

    async def save_media(self, filename: str, content: bytes) -> Path:
        """Write an uploaded video under the upload directory."""
        suffix = Path(filename).suffix.lower() or ".bin"
        dest = self._upload_dir / f"{uuid.uuid4().hex}{suffix}"
        await asyncio.to_thread(self._write_media, dest, content)
        logger.info("Saved upload %s as %s (%d bytes)", filename, dest.name, len(content))
        return dest

    @staticmethod
    def _write_media(dest: Path, content: bytes) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(content)

    async def create_project(
        self,
        name: str,
        media_path: Path,
        *,
        frame_naming_template: str | None = None,
        scan_range: ScanRange | None = None,
        scan_interval: float | None = None,
    ) -> ScanSession:
        """Bind a media file to a new project after probing its duration.

        Raises:
            MediaMetadataError: the media's duration cannot be read
        """
        duration = await self._grabber.probe_duration(media_path)
        project = Project(
            name=name.strip() or media_path.stem,
            media_path=str(media_path),
            duration=duration,
            scan_range=scan_range or self._default_range,
            scan_interval=scan_interval or self._default_interval,
            frame_naming_template=(frame_naming_template or "").strip() or None,
        )
        session = ScanSession(project, self._max_notifications)
        self._sessions[project.id] = session
        await self._save_project(project)
        session.notify("success", f"Project {project.name!r} created ({duration:.1f}s of video)")
        return session

    def get(self, project_id: str) -> ScanSession:
        session = self._sessions.get(project_id)
        if session is None:
            raise ProjectNotFoundError(f"Project {project_id} not found")
        return session

    def list_projects(self) -> list[Project]:
        projects = [s.project for s in self._sessions.values()]
        return sorted(projects, key=lambda p: p.last_modified, reverse=True)

    async def update_scan_settings(
        self,
        project_id: str,
        *,
        scan_range: ScanRange | None = None,
        scan_interval: float | None = None,
    ) -> Project:
        """Change range and interval; only allowed while no scan is running."""
        session = self.get(project_id)
        if session.status.stage not in (PipelineStage.IDLE, PipelineStage.COMPLETE):
            raise PipelineStateError("Scan settings are locked while a scan is running")

        changes: dict = {"last_modified": now_ms()}
        if scan_range is not None:
            changes["scan_range"] = ScanRange(scan_range)
        if scan_interval is not None:
            changes["scan_interval"] = scan_interval
        session.project = session.project.model_copy(update=changes)
        await self._save_project(session.project)
        return session.project

    async def set_categories(self, project_id: str, categories: list[str]) -> Project:
        session = self.get(project_id)
        merged = list(dict.fromkeys(c.strip() for c in categories if c.strip()))
        session.project = session.project.model_copy(
            update={"categories": merged, "last_modified": now_ms()}
        )
        await self._save_project(session.project)
        return session.project

    async def delete_project(self, project_id: str) -> int:
        """Drop a project with all its frames; uploaded media is removed too."""
        session = self.get(project_id)
        session.reset()
        del self._sessions[project_id]

        removed = await self._frame_store.delete_project(project_id)
        try:
            await self._durable.delete(PROJECTS, project_id)
        except Exception as e:
            logger.error("Failed to delete project %s from storage: %s", project_id, e)

        media = Path(session.project.media_path)
        if media.resolve().is_relative_to(self._upload_dir.resolve()):
            media.unlink(missing_ok=True)

        logger.info("Project %s deleted with %d frames", project_id, removed)
        return removed

    # -- scans ---------------------------------------------------------------

    def start_scan(self, project_id: str) -> int:
        """Begin a scan in the background and return its generation."""
        session = self.get(project_id)
        if not Path(session.project.media_path).is_file():
            raise PipelineStateError(f"Media of project {project_id} is not available")

        generation = session.begin_run()
        session.notify("info", "Scan started")
        session.run_task = asyncio.create_task(
            self._run_with_timeout(session, generation)
        )
        return generation

    async def reset_scan(self, project_id: str) -> ScanSession:
        """Return the pipeline to idle with an empty working set.

        Keepers of the abandoned scan are archived and stay in the library.
        """
        session = self.get(project_id)
        session.reset()
        await self._frame_store.release_project(project_id)
        session.notify("info", "Ready for a new scan")
        return session

    async def _run_with_timeout(self, session: ScanSession, generation: int) -> None:
        """Wrap a scan run with timeout protection."""
        try:
            await asyncio.wait_for(
                self._pipeline.run_scan(session, generation), timeout=self._scan_timeout
            )
        except asyncio.TimeoutError:
            if session.is_current(generation):
                session.reset()
                session.notify("error", f"Scan timed out after {self._scan_timeout}s")
                logger.error(
                    "Scan %d of project %s timed out after %ds",
                    generation, session.project.id, self._scan_timeout,
                )

    # -- internal ------------------------------------------------------------

    async def _save_project(self, project: Project) -> None:
        try:
            await self._durable.put(PROJECTS, project.id, project.model_dump(mode="json"))
        except Exception as e:
            message = f"Failed to persist project {project.id}: {e}"
            logger.error(message)
            self._on_durable_error(project.id, message)

    def _on_durable_error(self, project_id: str, message: str) -> None:
        session = self._sessions.get(project_id)
        if session is not None:
            session.notify("warning", message)
