import base64
import itertools
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from frameperfect.config import Settings
from frameperfect.exceptions import MediaSeekError
from frameperfect.schemas.frame import Frame
from frameperfect.schemas.project import Project
from frameperfect.services.analysis import AnalysisClient
from frameperfect.services.categories import CategorySuggester
from frameperfect.services.enhancement import EnhancementClient
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.history import EnhancementHistoryManager
from frameperfect.services.persistence import MemoryStore
from frameperfect.services.pipeline import PipelineService
from frameperfect.services.projects import ProjectRegistry
from frameperfect.services.retry import RetryPolicy
from frameperfect.services.session import ScanSession

ANALYSIS = {
    "quality": "good",
    "quality_reason": "Sharp subject, balanced exposure",
    "people": ["woman in red coat"],
    "shot_type": "candid",
    "tags": ["street", "portrait"],
    "composition_score": 78,
    "technical_advice": ["Crop tighter on the subject"],
}


def image_url(tag: str) -> str:
    """A small, valid JPEG-typed data URL carrying ``tag`` as its bytes."""
    return "data:image/jpeg;base64," + base64.b64encode(tag.encode()).decode()


def make_frame(project_id: str = "p1", timestamp: float = 0.0, **kwargs) -> Frame:
    kwargs.setdefault("image", image_url(f"frame@{timestamp:.2f}"))
    return Frame(project_id=project_id, timestamp=timestamp, **kwargs)


class FakeGrabber:
    """Frame grabber double: fixed duration, optional failing timestamps."""

    def __init__(
        self,
        duration: float = 10.0,
        fail_at: set[float] | None = None,
        on_grab=None,
    ) -> None:
        self.duration = duration
        self.fail_at = fail_at or set()
        self.on_grab = on_grab
        self.grabbed: list[float] = []

    async def probe_duration(self, media_path: Path) -> float:
        return self.duration

    async def grab(self, media_path: Path, timestamp: float) -> str:
        self.grabbed.append(timestamp)
        if self.on_grab:
            self.on_grab(len(self.grabbed), timestamp)
        if timestamp in self.fail_at:
            raise MediaSeekError(f"cannot seek to {timestamp:.2f}s")
        return image_url(f"frame@{timestamp:.2f}")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        gateway_api_key="test-key",
        gemini_api_key="test-key",
        data_dir=tmp_path / "data",
        upload_dir=tmp_path / "uploads",
        clustering_delay_s=0.0,
        ai_retry_delay=0.0,
    )


@pytest.fixture
def durable() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def frame_store(durable: MemoryStore) -> FrameStore:
    return FrameStore(durable)


@pytest.fixture
def sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def retry(sleep: AsyncMock) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay=1.0, sleep=sleep)


@pytest.fixture
def mock_provider() -> MagicMock:
    """AI provider double covering analysis, enhancement and categories."""
    counter = itertools.count(1)
    provider = MagicMock()
    provider.analyze = AsyncMock(side_effect=lambda image: dict(ANALYSIS))
    provider.enhance = AsyncMock(
        side_effect=lambda image, instruction: image_url(f"enhanced-{next(counter)}")
    )
    provider.suggest_categories = AsyncMock(return_value=["Portrait", "Street"])
    return provider


@pytest.fixture
def grabber() -> FakeGrabber:
    return FakeGrabber()


@pytest.fixture
def media_file(tmp_path: Path) -> Path:
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"not-really-a-video")
    return path


@pytest.fixture
def project(media_file: Path) -> Project:
    return Project(name="Holiday", media_path=str(media_file), duration=10.0)


@pytest.fixture
def session(project: Project) -> ScanSession:
    return ScanSession(project, max_notifications=10)


@pytest.fixture
def history(
    frame_store: FrameStore, mock_provider: MagicMock, retry: RetryPolicy
) -> EnhancementHistoryManager:
    return EnhancementHistoryManager(
        frame_store, EnhancementClient(mock_provider, retry), max_batch_size=10
    )


@pytest.fixture
def pipeline(
    grabber: FakeGrabber,
    frame_store: FrameStore,
    mock_provider: MagicMock,
    retry: RetryPolicy,
    settings: Settings,
) -> PipelineService:
    return PipelineService(
        grabber=grabber,
        frame_store=frame_store,
        analysis_client=AnalysisClient(mock_provider, retry),
        settings=settings,
    )


@pytest.fixture
def registry(
    pipeline: PipelineService,
    frame_store: FrameStore,
    durable: MemoryStore,
    grabber: FakeGrabber,
    settings: Settings,
) -> ProjectRegistry:
    return ProjectRegistry(
        pipeline=pipeline,
        frame_store=frame_store,
        durable=durable,
        grabber=grabber,
        settings=settings,
    )


@pytest.fixture
def test_app(
    registry: ProjectRegistry,
    frame_store: FrameStore,
    history: EnhancementHistoryManager,
    mock_provider: MagicMock,
):
    """Create a test FastAPI app wired to in-memory services."""
    from fastapi import FastAPI

    from frameperfect.exceptions import FramePerfectError
    from frameperfect.main import frameperfect_error_handler
    from frameperfect.routers.frames import router as frames_router
    from frameperfect.routers.library import router as library_router
    from frameperfect.routers.projects import router as projects_router

    app = FastAPI()
    app.state.registry = registry
    app.state.frame_store = frame_store
    app.state.history = history
    app.state.suggester = CategorySuggester(mock_provider, sample_size=5)
    app.include_router(projects_router)
    app.include_router(frames_router)
    app.include_router(library_router)
    app.add_exception_handler(FramePerfectError, frameperfect_error_handler)
    return app


@pytest.fixture
def client(test_app) -> TestClient:
    return TestClient(test_app)
