import json

import httpx
import pytest

from conftest import ANALYSIS, image_url
from frameperfect.exceptions import (
    PaymentRequiredError,
    ProviderError,
    RateLimitedError,
    SchemaViolationError,
)
from frameperfect.services.providers import (
    GatewayProvider,
    GeminiProvider,
    build_provider,
    describe_frames,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _chat_response(message: dict) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": message}]})


class TestGatewayProvider:
    @pytest.mark.asyncio
    async def test_analyze_reads_forced_tool_call(self, settings):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return _chat_response(
                {
                    "tool_calls": [
                        {"function": {"name": "analyze_frame", "arguments": json.dumps(ANALYSIS)}}
                    ]
                }
            )

        provider = GatewayProvider(settings, client=_client(handler))
        result = await provider.analyze(image_url("frame"))

        assert result == ANALYSIS
        request = seen[0]
        assert request.url.path.endswith("/chat/completions")
        assert request.headers["Authorization"] == "Bearer test-key"
        body = json.loads(request.content)
        assert body["tool_choice"]["function"]["name"] == "analyze_frame"
        assert body["messages"][0]["content"][1]["image_url"]["url"] == image_url("frame")

    @pytest.mark.asyncio
    async def test_analyze_without_tool_call_is_schema_violation(self, settings):
        provider = GatewayProvider(
            settings, client=_client(lambda r: _chat_response({"content": "hello"}))
        )
        with pytest.raises(SchemaViolationError):
            await provider.analyze(image_url("frame"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error",
        [(429, RateLimitedError), (402, PaymentRequiredError), (500, ProviderError)],
    )
    async def test_status_classification(self, settings, status, error):
        provider = GatewayProvider(
            settings, client=_client(lambda r: httpx.Response(status, text="nope"))
        )
        with pytest.raises(error) as exc_info:
            await provider.analyze(image_url("frame"))
        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_transport_error_becomes_provider_error(self, settings):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = GatewayProvider(settings, client=_client(handler))
        with pytest.raises(ProviderError):
            await provider.enhance(image_url("frame"), "sharpen")

    @pytest.mark.asyncio
    async def test_enhance_returns_first_image(self, settings):
        enhanced = image_url("enhanced")
        provider = GatewayProvider(
            settings,
            client=_client(
                lambda r: _chat_response({"images": [{"image_url": {"url": enhanced}}]})
            ),
        )
        assert await provider.enhance(image_url("frame"), "sharpen") == enhanced

    @pytest.mark.asyncio
    async def test_enhance_without_image_is_schema_violation(self, settings):
        provider = GatewayProvider(
            settings, client=_client(lambda r: _chat_response({"content": "sorry"}))
        )
        with pytest.raises(SchemaViolationError):
            await provider.enhance(image_url("frame"), "sharpen")

    @pytest.mark.asyncio
    async def test_categories_parse_fenced_json(self, settings):
        content = '```json\n["Portrait", "Landscape", "Portrait"]\n```'
        provider = GatewayProvider(
            settings, client=_client(lambda r: _chat_response({"content": content}))
        )
        result = await provider.suggest_categories([{"image": "x", "analysis": ANALYSIS}])
        assert result == ["Portrait", "Landscape"]


class TestGeminiProvider:
    @pytest.mark.asyncio
    async def test_analyze_sends_inline_image_and_schema(self, settings):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"candidates": [{"content": {"parts": [{"text": json.dumps(ANALYSIS)}]}}]},
            )

        provider = GeminiProvider(settings, client=_client(handler))
        result = await provider.analyze(image_url("frame"))

        assert result == ANALYSIS
        request = seen[0]
        assert request.url.path.endswith(f"/models/{settings.gemini_analysis_model}:generateContent")
        assert request.headers["x-goog-api-key"] == "test-key"
        body = json.loads(request.content)
        inline = body["contents"][0]["parts"][1]["inlineData"]
        assert inline["mimeType"] == "image/jpeg"
        assert "responseSchema" in body["generationConfig"]

    @pytest.mark.asyncio
    async def test_enhance_builds_data_url_from_inline_part(self, settings):
        response = {
            "candidates": [
                {"content": {"parts": [{"text": "done"}, {"inlineData": {"mimeType": "image/png", "data": "QUJD"}}]}}
            ]
        }
        provider = GeminiProvider(settings, client=_client(lambda r: httpx.Response(200, json=response)))
        assert await provider.enhance(image_url("frame"), "sharpen") == "data:image/png;base64,QUJD"

    @pytest.mark.asyncio
    async def test_missing_candidates_is_schema_violation(self, settings):
        provider = GeminiProvider(settings, client=_client(lambda r: httpx.Response(200, json={})))
        with pytest.raises(SchemaViolationError):
            await provider.enhance(image_url("frame"), "sharpen")


class TestBuildProvider:
    def test_selects_gemini(self, settings):
        settings.ai_provider = "gemini"
        assert isinstance(build_provider(settings), GeminiProvider)

    def test_defaults_to_gateway(self, settings):
        assert isinstance(build_provider(settings), GatewayProvider)

    def test_unknown_provider(self, settings):
        settings.ai_provider = "carrier-pigeon"
        with pytest.raises(ValueError):
            build_provider(settings)


def test_describe_frames_handles_missing_analysis():
    text = describe_frames([{"analysis": ANALYSIS}, {"analysis": None}])
    assert text.splitlines() == [
        "Frame 1: street, portrait, Quality: good, Shot: candid",
        "Frame 2: no tags, Quality: unknown, Shot: unknown",
    ]
