import logging
from contextlib import asynccontextmanager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from frameperfect.config import settings
from frameperfect.exceptions import (
    BatchSizeExceededError,
    FrameBusyError,
    FrameNotEnhancedError,
    FrameNotFoundError,
    FramePerfectError,
    FrameStateError,
    MediaMetadataError,
    MediaSeekError,
    NoKeepersError,
    NoStyleSelectedError,
    PaymentRequiredError,
    PipelineStateError,
    ProjectNotFoundError,
    ProviderError,
    RateLimitedError,
)
from frameperfect.routers import frames, library, projects
from frameperfect.services.analysis import AnalysisClient
from frameperfect.services.categories import CategorySuggester
from frameperfect.services.enhancement import EnhancementClient
from frameperfect.services.frame_grabber import FfmpegFrameGrabber
from frameperfect.services.frame_store import FrameStore
from frameperfect.services.history import EnhancementHistoryManager
from frameperfect.services.persistence import JsonFileStore
from frameperfect.services.pipeline import PipelineService
from frameperfect.services.projects import ProjectRegistry
from frameperfect.services.providers import build_provider
from frameperfect.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

# Most specific first; the first isinstance match wins.
_STATUS_CODES: list[tuple[type[FramePerfectError], int]] = [
    (ProjectNotFoundError, 404),
    (FrameNotFoundError, 404),
    (NoStyleSelectedError, 422),
    (BatchSizeExceededError, 422),
    (MediaMetadataError, 422),
    (NoKeepersError, 409),
    (FrameNotEnhancedError, 409),
    (FrameBusyError, 409),
    (FrameStateError, 409),
    (PipelineStateError, 409),
    (RateLimitedError, 429),
    (PaymentRequiredError, 402),
    (MediaSeekError, 502),
    (ProviderError, 502),
]


def status_code_for(exc: FramePerfectError) -> int:
    for error_type, status_code in _STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services on startup, close the provider client on shutdown."""
    logger.info("Starting FramePerfect service ...")

    provider = build_provider(settings)
    try:
        retry = RetryPolicy.from_settings(settings)
        durable = JsonFileStore(settings.data_dir)
        grabber = FfmpegFrameGrabber(settings)

        app.state.frame_store = FrameStore(durable)
        app.state.history = EnhancementHistoryManager(
            app.state.frame_store,
            EnhancementClient(provider, retry),
            max_batch_size=settings.max_batch_size,
        )
        app.state.suggester = CategorySuggester(
            provider, sample_size=settings.category_sample_size
        )
        app.state.pipeline = PipelineService(
            grabber=grabber,
            frame_store=app.state.frame_store,
            analysis_client=AnalysisClient(provider, retry),
            settings=settings,
        )
        app.state.registry = ProjectRegistry(
            pipeline=app.state.pipeline,
            frame_store=app.state.frame_store,
            durable=durable,
            grabber=grabber,
            settings=settings,
        )
        await app.state.registry.restore_from_disk()

        logger.info("FramePerfect service ready.")
        yield
    finally:
        logger.info("Shutting down FramePerfect service ...")
        await provider.close()


app = FastAPI(
    title="FramePerfect",
    description="Video frame scanning, AI analysis and enhancement service",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(projects.router)
app.include_router(frames.router)
app.include_router(library.router)


@app.exception_handler(FramePerfectError)
async def frameperfect_error_handler(request: Request, exc: FramePerfectError):
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: [%s] %s", request.method, request.url.path, type(exc).__name__, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )
