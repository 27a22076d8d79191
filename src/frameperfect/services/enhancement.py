import logging
from collections.abc import Iterable

from frameperfect.exceptions import NoStyleSelectedError, SchemaViolationError
from frameperfect.schemas.frame import EnhancementStyle
from frameperfect.services.providers import EnhancementProvider
from frameperfect.services.retry import RetryPolicy

logger = logging.getLogger(__name__)

STYLE_PHRASES: dict[EnhancementStyle, str] = {
    EnhancementStyle.UNBLUR: "sharpen and remove blur",
    EnhancementStyle.CINEMATIC_LIGHTING: "apply cinematic lighting",
    EnhancementStyle.PORTRAIT_BOKEH: "add portrait bokeh effect",
    EnhancementStyle.REMOVE_BACKGROUND: "remove background",
    EnhancementStyle.COLOR_POP: "enhance colors with color pop",
    EnhancementStyle.HDR: "apply HDR enhancement",
    EnhancementStyle.ENHANCE_DETAIL: "enhance fine detail and texture",
    EnhancementStyle.UPSCALE: "upscale to a higher resolution",
    EnhancementStyle.DENOISE: "reduce noise and grain",
}


def normalize_styles(styles: Iterable[EnhancementStyle | str]) -> list[EnhancementStyle]:
    """Deduplicate a style selection into the canonical style order."""
    selected = {EnhancementStyle(s) for s in styles}
    return [style for style in EnhancementStyle if style in selected]


def build_instruction(styles: Iterable[EnhancementStyle | str]) -> str:
    """Compose the natural-language edit instruction for a style selection."""
    ordered = normalize_styles(styles)
    if not ordered:
        raise NoStyleSelectedError("Select at least one enhancement style")
    phrases = ", ".join(STYLE_PHRASES[style] for style in ordered)
    return (
        f"Enhance this image with the following improvements: {phrases}. "
        "Maintain the original composition and subject."
    )


class EnhancementClient:
    """Generative-image enhancement behind the shared retry policy."""

    def __init__(self, provider: EnhancementProvider, retry: RetryPolicy) -> None:
        self._provider = provider
        self._retry = retry

    async def enhance(self, image: str, styles: Iterable[EnhancementStyle | str]) -> str:
        """Return the enhanced image payload.

        Raises:
            NoStyleSelectedError: empty selection, raised before any network call
        """
        instruction = build_instruction(styles)

        async def _call() -> str:
            result = await self._provider.enhance(image, instruction)
            if not result:
                raise SchemaViolationError("enhance: provider returned an empty image")
            return result

        return await self._retry.call(_call, label="enhance")
