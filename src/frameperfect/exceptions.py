class FramePerfectError(Exception):
    """Base exception for FramePerfect service."""


class MediaMetadataError(FramePerfectError):
    """Raised when the media duration cannot be read (e.g. ffprobe error)."""


class MediaSeekError(FramePerfectError):
    """Raised when a still frame cannot be grabbed at a timestamp."""


class ProviderError(FramePerfectError):
    """Raised when a remote AI provider call fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(ProviderError):
    """Provider answered 429; the only failure class that is retried."""


class PaymentRequiredError(ProviderError):
    """Provider answered 402 (credits exhausted)."""


class SchemaViolationError(ProviderError):
    """Provider payload did not match the expected schema."""


class NoStyleSelectedError(FramePerfectError):
    """Raised when an enhancement is requested with an empty style set."""


class NoKeepersError(FramePerfectError):
    """Raised when an export is requested but no frame is marked as keeper."""


class BatchSizeExceededError(FramePerfectError):
    """Raised when a batch enhancement exceeds the configured maximum."""


class FrameNotFoundError(FramePerfectError):
    """Raised when a frame id is unknown."""


class FrameNotEnhancedError(FramePerfectError):
    """Raised when save-as-new is requested on a frame without an enhancement."""


class FrameBusyError(FramePerfectError):
    """Raised when a frame already has an outstanding AI call."""


class FrameStateError(FramePerfectError):
    """Raised when an update would break a frame invariant."""


class ProjectNotFoundError(FramePerfectError):
    """Raised when a project id is unknown."""


class PipelineStateError(FramePerfectError):
    """Raised when a pipeline command is not valid in the current stage."""
