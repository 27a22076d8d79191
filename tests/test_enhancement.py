from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import image_url
from frameperfect.exceptions import NoStyleSelectedError, SchemaViolationError
from frameperfect.schemas.frame import EnhancementStyle
from frameperfect.services.enhancement import (
    STYLE_PHRASES,
    EnhancementClient,
    build_instruction,
    normalize_styles,
)


class TestInstruction:
    def test_every_style_has_a_phrase(self):
        assert set(STYLE_PHRASES) == set(EnhancementStyle)

    def test_styles_are_deduplicated_in_canonical_order(self):
        result = normalize_styles(["color_pop", EnhancementStyle.UNBLUR, "color_pop"])
        assert result == [EnhancementStyle.UNBLUR, EnhancementStyle.COLOR_POP]

    def test_instruction_lists_phrases(self):
        instruction = build_instruction(["hdr", "unblur"])
        assert instruction.startswith(
            "Enhance this image with the following improvements: "
            "sharpen and remove blur, apply HDR enhancement."
        )
        assert "Maintain the original composition" in instruction

    def test_empty_selection(self):
        with pytest.raises(NoStyleSelectedError):
            build_instruction([])

    def test_unknown_style(self):
        with pytest.raises(ValueError):
            normalize_styles(["sepia"])


class TestEnhancementClient:
    @pytest.mark.asyncio
    async def test_empty_selection_makes_no_call(self, mock_provider: MagicMock, retry):
        client = EnhancementClient(mock_provider, retry)

        with pytest.raises(NoStyleSelectedError):
            await client.enhance(image_url("frame"), [])
        mock_provider.enhance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_returns_provider_image(self, mock_provider: MagicMock, retry):
        client = EnhancementClient(mock_provider, retry)

        result = await client.enhance(image_url("frame"), ["denoise"])

        assert result == image_url("enhanced-1")
        image, instruction = mock_provider.enhance.await_args.args
        assert image == image_url("frame")
        assert "reduce noise and grain" in instruction

    @pytest.mark.asyncio
    async def test_empty_result_is_schema_violation(self, mock_provider: MagicMock, retry):
        mock_provider.enhance = AsyncMock(return_value="")
        with pytest.raises(SchemaViolationError):
            await EnhancementClient(mock_provider, retry).enhance(image_url("frame"), ["hdr"])
