import logging

from frameperfect.schemas.frame import Frame
from frameperfect.services.providers import CategoryProvider

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 8


class CategorySuggester:
    """Ask the AI provider for library categories from a sample of frames.

    Suggestions are a convenience: any failure degrades to an empty list.
    """

    def __init__(self, provider: CategoryProvider, sample_size: int = 5) -> None:
        self._provider = provider
        self._sample_size = sample_size

    async def suggest(self, frames: list[Frame]) -> list[str]:
        sample = [
            {
                "image": frame.display_image,
                "analysis": frame.analysis.model_dump() if frame.analysis else None,
            }
            for frame in frames[: self._sample_size]
        ]
        if not sample:
            return []

        try:
            raw = await self._provider.suggest_categories(sample)
        except Exception as e:
            logger.warning("Category suggestion failed, returning none: %s", e)
            return []

        suggestions: list[str] = []
        for item in raw:
            label = str(item).strip()
            if label and label not in suggestions:
                suggestions.append(label)
        return suggestions[:MAX_SUGGESTIONS]
