"""Per-project scan session: pipeline status, run generation and notifications.

A session is the explicit context every pipeline operation receives. Each
scan run is tagged with the session's ``generation``; ``reset`` bumps it, so
results of calls that were still in flight when the user started over are
recognised as stale and discarded on arrival instead of being cancelled.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from typing import Any, Literal

from frameperfect.exceptions import PipelineStateError
from frameperfect.schemas.pipeline import Notification, PipelineStage, PipelineStatus
from frameperfect.schemas.project import Project

logger = logging.getLogger(__name__)

StatusObserver = Callable[[PipelineStatus], None]

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ScanSession:
    def __init__(self, project: Project, max_notifications: int = 50) -> None:
        self.project = project
        self.status = PipelineStatus()
        self.generation = 0
        self.notifications: deque[Notification] = deque(maxlen=max_notifications)
        self.run_task: asyncio.Task | None = None
        self._observers: list[StatusObserver] = []

    # -- observers -----------------------------------------------------------

    def subscribe(self, observer: StatusObserver) -> Callable[[], None]:
        """Register a status observer; returns a function that unsubscribes it."""
        self._observers.append(observer)
        return lambda: self._observers.remove(observer)

    # -- lifecycle -----------------------------------------------------------

    def begin_run(self) -> int:
        """Move ``idle -> sampling`` and return the new run's generation."""
        if self.status.stage != PipelineStage.IDLE:
            raise PipelineStateError(
                f"Cannot start a scan while the pipeline is {self.status.stage}; start a new scan first"
            )
        self.generation += 1
        self._set(PipelineStatus(stage=PipelineStage.SAMPLING))
        logger.info("Project %s scan %d started", self.project.id, self.generation)
        return self.generation

    def reset(self) -> None:
        """Return to ``idle`` from any stage, orphaning the in-flight run."""
        self.generation += 1
        self._set(PipelineStatus())
        logger.info("Project %s pipeline reset (generation %d)", self.project.id, self.generation)

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def publish(self, generation: int, **changes: Any) -> bool:
        """Apply a status change on behalf of run ``generation``.

        Returns False (and changes nothing) when that run has been superseded.
        """
        if not self.is_current(generation):
            return False
        self._set(self.status.model_copy(update=changes))
        return True

    # -- notifications -------------------------------------------------------

    def notify(
        self,
        level: Literal["info", "success", "warning", "error"],
        message: str,
    ) -> Notification:
        notification = Notification(level=level, message=message)
        self.notifications.append(notification)
        logger.log(_LOG_LEVELS[level], "[%s] %s", self.project.id, message)
        return notification

    # -- internal ------------------------------------------------------------

    def _set(self, status: PipelineStatus) -> None:
        self.status = status
        for observer in list(self._observers):
            try:
                observer(status)
            except Exception:
                logger.exception("Pipeline status observer failed")
