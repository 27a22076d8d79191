import logging

from pydantic import ValidationError

from frameperfect.exceptions import SchemaViolationError
from frameperfect.schemas.frame import Analysis
from frameperfect.services.providers import AnalysisProvider
from frameperfect.services.retry import RetryPolicy

logger = logging.getLogger(__name__)


class AnalysisClient:
    """Vision analysis of one frame image, behind the shared retry policy."""

    def __init__(self, provider: AnalysisProvider, retry: RetryPolicy) -> None:
        self._provider = provider
        self._retry = retry

    async def analyze(self, image: str) -> Analysis:
        """Return a fully-populated ``Analysis``.

        Raises:
            RateLimitedError: still rate limited after the last attempt
            SchemaViolationError: provider payload does not match ``Analysis``
            ProviderError: any other provider failure
        """

        async def _call() -> Analysis:
            raw = await self._provider.analyze(image)
            try:
                return Analysis.model_validate(raw)
            except ValidationError as e:
                raise SchemaViolationError(
                    f"analyze: malformed analysis ({e.error_count()} error(s))"
                ) from e

        analysis = await self._retry.call(_call, label="analyze")
        logger.debug(
            "Analysis: quality=%s score=%.0f", analysis.quality, analysis.composition_score
        )
        return analysis
