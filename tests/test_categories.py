from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import ANALYSIS, make_frame
from frameperfect.exceptions import ProviderError
from frameperfect.schemas.frame import Analysis
from frameperfect.services.categories import CategorySuggester


@pytest.fixture
def frames():
    return [
        make_frame(timestamp=float(i), analysis=Analysis.model_validate(ANALYSIS))
        for i in range(7)
    ]


class TestSuggest:
    @pytest.mark.asyncio
    async def test_samples_first_frames(self, mock_provider: MagicMock, frames):
        suggester = CategorySuggester(mock_provider, sample_size=5)

        result = await suggester.suggest(frames)

        assert result == ["Portrait", "Street"]
        sample = mock_provider.suggest_categories.await_args.args[0]
        assert len(sample) == 5
        assert sample[0]["analysis"]["quality"] == "good"

    @pytest.mark.asyncio
    async def test_deduplicates_and_caps(self, mock_provider: MagicMock, frames):
        labels = ["A", " A ", "B", "", "C", "D", "E", "F", "G", "H", "I"]
        mock_provider.suggest_categories = AsyncMock(return_value=labels)

        result = await CategorySuggester(mock_provider).suggest(frames)

        assert result == ["A", "B", "C", "D", "E", "F", "G", "H"]

    @pytest.mark.asyncio
    async def test_failure_degrades_to_empty(self, mock_provider: MagicMock, frames):
        mock_provider.suggest_categories = AsyncMock(side_effect=ProviderError("boom"))
        assert await CategorySuggester(mock_provider).suggest(frames) == []

    @pytest.mark.asyncio
    async def test_no_frames_makes_no_call(self, mock_provider: MagicMock):
        assert await CategorySuggester(mock_provider).suggest([]) == []
        mock_provider.suggest_categories.assert_not_awaited()
