"""In-memory frame collection with a best-effort durable mirror.

Every mutation is applied to memory first and then written through to the
durable store in the same call. A failed durable write is logged and
reported, never rolled back: memory is the source of truth for the session.
Writes to one frame are serialized by a per-frame lock so that, for example,
an analysis result and a keeper toggle arriving together cannot lose either
update.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from frameperfect.exceptions import (
    FrameBusyError,
    FrameNotFoundError,
    FrameStateError,
)
from frameperfect.schemas.frame import Frame
from frameperfect.services.persistence import FRAMES, DurableStore

logger = logging.getLogger(__name__)

# (project_id, message)
DurableErrorCallback = Callable[[str, str], None]

_IMMUTABLE_FIELDS = frozenset({"id", "project_id"})


class FrameStore:
    def __init__(
        self,
        durable: DurableStore,
        on_durable_error: DurableErrorCallback | None = None,
    ) -> None:
        self._durable = durable
        self._frames: dict[str, Frame] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._deleted: set[str] = set()
        self.on_durable_error = on_durable_error

    # -- queries -------------------------------------------------------------

    def find(self, frame_id: str) -> Frame | None:
        return self._frames.get(frame_id)

    def get(self, frame_id: str) -> Frame:
        frame = self._frames.get(frame_id)
        if frame is None:
            raise FrameNotFoundError(f"Frame {frame_id} not found")
        return frame

    def list_frames(self, project_id: str) -> list[Frame]:
        """Frames of one project, in insertion order."""
        return [f for f in self._frames.values() if f.project_id == project_id]

    def keepers(self, project_id: str) -> list[Frame]:
        return [f for f in self.list_frames(project_id) if f.is_keeper]

    async def all_keepers(self) -> list[Frame]:
        """Keeper frames across every project, including ones only on disk."""
        try:
            records = await self._durable.get_all_by(FRAMES, "is_keeper", True)
        except Exception as e:
            logger.error("Failed to read keeper frames from durable store: %s", e)
            records = []

        frames = [
            Frame.model_validate(r)
            for r in records
            if r.get("id") not in self._frames and r.get("id") not in self._deleted
        ]
        frames.extend(f for f in self._frames.values() if f.is_keeper)
        frames.sort(key=lambda f: f.created_at)
        return frames

    # -- create --------------------------------------------------------------

    async def add(self, frame: Frame) -> Frame:
        if frame.id in self._frames:
            raise FrameStateError(f"Frame {frame.id} already exists")
        self._check_invariants(None, frame)
        self._frames[frame.id] = frame
        await self._mirror(frame)
        return frame

    async def add_many(self, frames: list[Frame]) -> list[Frame]:
        """Insert frames and mirror them with a single atomic multi-put."""
        for frame in frames:
            if frame.id in self._frames:
                raise FrameStateError(f"Frame {frame.id} already exists")
            self._check_invariants(None, frame)
        for frame in frames:
            self._frames[frame.id] = frame
        if frames:
            await self._mirror_many(frames)
        return frames

    # -- update --------------------------------------------------------------

    async def mutate(
        self,
        frame_id: str,
        changes: Callable[[Frame], dict[str, Any]],
    ) -> Frame:
        """Apply ``changes(current)`` to the latest copy of a frame.

        The callable runs under the frame's lock, so it always sees the
        result of every earlier write. Fields absent from the returned dict
        are left untouched.
        """
        async with self._lock(frame_id):
            current = self.get(frame_id)
            update = changes(current)
            illegal = _IMMUTABLE_FIELDS.intersection(update)
            if illegal:
                raise FrameStateError(f"Cannot change {sorted(illegal)} of frame {frame_id}")
            updated = current.model_copy(update=update)
            self._check_invariants(current, updated)
            self._frames[frame_id] = updated
            await self._mirror(updated)
            return updated

    async def update(self, frame_id: str, **changes: Any) -> Frame:
        return await self.mutate(frame_id, lambda _: changes)

    async def toggle_keeper(self, frame_id: str) -> Frame:
        return await self.mutate(frame_id, lambda f: {"is_keeper": not f.is_keeper})

    async def set_categories(self, frame_id: str, categories: list[str]) -> Frame:
        cleaned: list[str] = []
        for category in categories:
            category = category.strip()
            if category and category not in cleaned:
                cleaned.append(category)
        return await self.update(frame_id, categories=cleaned)

    # -- processing flag -----------------------------------------------------

    async def begin_processing(self, frame_id: str) -> Frame:
        """Mark a frame as having one outstanding AI call."""

        def _mark(frame: Frame) -> dict[str, Any]:
            if frame.is_processing:
                raise FrameBusyError(f"Frame {frame_id} is already being processed")
            return {"is_processing": True}

        return await self.mutate(frame_id, _mark)

    async def end_processing(self, frame_id: str) -> None:
        """Clear the processing flag; a frame deleted meanwhile is ignored."""
        with contextlib.suppress(FrameNotFoundError):
            await self.update(frame_id, is_processing=False)

    @contextlib.asynccontextmanager
    async def processing(self, frame_id: str) -> AsyncIterator[Frame]:
        frame = await self.begin_processing(frame_id)
        try:
            yield frame
        finally:
            await self.end_processing(frame_id)

    # -- delete --------------------------------------------------------------

    async def delete(self, frame_id: str) -> None:
        async with self._lock(frame_id):
            frame = self.get(frame_id)
            del self._frames[frame_id]
            self._deleted.add(frame_id)
        self._locks.pop(frame_id, None)
        try:
            await self._durable.delete(FRAMES, frame_id)
        except Exception as e:
            self._report(frame.project_id, f"Failed to delete frame {frame_id} from storage: {e}")
        else:
            self._deleted.discard(frame_id)
        logger.info("Deleted frame %s", frame_id)

    async def delete_project(self, project_id: str) -> int:
        """Remove every frame of a project, in memory and on disk."""
        try:
            records = await self._durable.get_all_by(FRAMES, "project_id", project_id)
        except Exception as e:
            logger.error("Failed to list frames of project %s: %s", project_id, e)
            records = []

        ids = {r["id"] for r in records if "id" in r}
        ids.update(f.id for f in self.list_frames(project_id))
        for frame_id in ids:
            self._frames.pop(frame_id, None)
            self._locks.pop(frame_id, None)
            self._deleted.add(frame_id)

        try:
            await self._durable.delete_many(FRAMES, sorted(ids))
        except Exception as e:
            self._report(project_id, f"Failed to delete frames of project {project_id}: {e}")
        else:
            self._deleted.difference_update(ids)
        logger.info("Deleted %d frames of project %s", len(ids), project_id)
        return len(ids)

    async def release_project(self, project_id: str) -> int:
        """Empty a project's working set ahead of a new scan.

        Keepers are archived: they leave the project's frame list but stay in
        the library. Every other frame is deleted.
        """
        archived: list[Frame] = []
        discarded: list[str] = []
        for frame in self.list_frames(project_id):
            async with self._lock(frame.id):
                current = self._frames.pop(frame.id, None)
            self._locks.pop(frame.id, None)
            if current is None:
                continue
            if current.is_keeper:
                archived.append(
                    current.model_copy(update={"is_archived": True, "is_processing": False})
                )
            else:
                discarded.append(current.id)

        if archived:
            await self._mirror_many(archived)
        if discarded:
            self._deleted.update(discarded)
            try:
                await self._durable.delete_many(FRAMES, discarded)
            except Exception as e:
                self._report(project_id, f"Failed to delete frames of project {project_id}: {e}")
            else:
                self._deleted.difference_update(discarded)

        logger.info(
            "Released project %s: %d keepers archived, %d frames discarded",
            project_id, len(archived), len(discarded),
        )
        return len(archived) + len(discarded)

    # -- restore -------------------------------------------------------------

    async def restore(self, project_id: str) -> list[Frame]:
        """Load a project's frames from the durable store into memory.

        No AI call survives a restart, so stale processing flags are cleared.
        Archived keepers belong to an earlier scan and stay on disk only.
        """
        records = await self._durable.get_all_by(FRAMES, "project_id", project_id)
        restored: list[Frame] = []
        for record in sorted(records, key=lambda r: r.get("created_at", 0)):
            frame = Frame.model_validate(record)
            if frame.is_archived or frame.id in self._frames:
                continue
            if frame.is_processing:
                frame = frame.model_copy(update={"is_processing": False})
                await self._mirror(frame)
            self._frames[frame.id] = frame
            restored.append(frame)
        logger.info("Restored %d frames of project %s", len(restored), project_id)
        return restored

    # -- internal ------------------------------------------------------------

    def _lock(self, frame_id: str) -> asyncio.Lock:
        lock = self._locks.get(frame_id)
        if lock is None:
            lock = self._locks[frame_id] = asyncio.Lock()
        return lock

    @staticmethod
    def _check_invariants(before: Frame | None, after: Frame) -> None:
        if (after.enhanced_image is not None) != after.is_enhanced:
            raise FrameStateError(
                f"Frame {after.id}: enhanced image must be present iff is_enhanced"
            )
        if before is not None and not set(before.applied_enhancements) <= set(
            after.applied_enhancements
        ):
            raise FrameStateError(f"Frame {after.id}: applied enhancements cannot shrink")
        if before is not None and len(after.enhancement_history) < len(
            before.enhancement_history
        ):
            raise FrameStateError(f"Frame {after.id}: enhancement history is append-only")

    async def _mirror(self, frame: Frame) -> None:
        try:
            await self._durable.put(FRAMES, frame.id, frame.model_dump(mode="json"))
        except Exception as e:
            self._report(frame.project_id, f"Failed to persist frame {frame.id}: {e}")

    async def _mirror_many(self, frames: list[Frame]) -> None:
        try:
            await self._durable.put_many(
                FRAMES, {f.id: f.model_dump(mode="json") for f in frames}
            )
        except Exception as e:
            self._report(frames[0].project_id, f"Failed to persist {len(frames)} frames: {e}")

    def _report(self, project_id: str, message: str) -> None:
        logger.error(message)
        if self.on_durable_error:
            self.on_durable_error(project_id, message)
