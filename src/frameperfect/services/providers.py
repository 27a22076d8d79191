"""Remote AI providers for frame analysis, enhancement and category suggestion.

Two interchangeable backends implement the same capabilities:

- ``GatewayProvider``: OpenAI-compatible ``/chat/completions`` gateway; analysis
  uses a forced tool call so the arguments arrive as structured JSON, and
  enhancement asks an image-output model for ``message.images``.
- ``GeminiProvider``: Google ``generateContent``; analysis uses
  ``responseSchema`` and enhancement reads the ``inlineData`` part.

Providers perform exactly one HTTP request per call and classify failures
(429 -> ``RateLimitedError``, 402 -> ``PaymentRequiredError``, anything else ->
``ProviderError``). Retries belong to the callers' ``RetryPolicy``.
"""

import json
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from frameperfect.config import Settings
from frameperfect.exceptions import (
    PaymentRequiredError,
    ProviderError,
    RateLimitedError,
    SchemaViolationError,
)
from frameperfect.utils.image import split_data_url
from frameperfect.utils.llm_parse import extract_json_object, parse_string_list

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = """\
Analyze this video frame as a potential photograph. Provide structured analysis including:
- Quality assessment (excellent/good/fair)
- Reason for quality rating
- People detected (list names/descriptions)
- Shot type (posed/candid/uncertain)
- Relevant tags
- Composition score (0-100)
- Technical advice for improvement

Return JSON with these exact fields: quality, quality_reason, people (array), \
shot_type, tags (array), composition_score (number), technical_advice (array)"""

ANALYSIS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "quality": {"type": "string", "enum": ["excellent", "good", "fair"]},
        "quality_reason": {"type": "string"},
        "people": {"type": "array", "items": {"type": "string"}},
        "shot_type": {"type": "string", "enum": ["posed", "candid", "uncertain"]},
        "tags": {"type": "array", "items": {"type": "string"}},
        "composition_score": {"type": "number"},
        "technical_advice": {"type": "array", "items": {"type": "string"}},
    },
    "required": [
        "quality",
        "quality_reason",
        "people",
        "shot_type",
        "tags",
        "composition_score",
        "technical_advice",
    ],
}

CATEGORY_SYSTEM_PROMPT = (
    "You are a helpful assistant that analyzes images and suggests organization "
    "categories. Always respond with valid JSON only."
)

CATEGORY_PROMPT = """\
Analyze these video frame descriptions and suggest 5-8 relevant category labels \
that would help organize them effectively.

Frame descriptions:
{descriptions}

Return categories that are:
- Specific but not too narrow (e.g., "Portrait", "Landscape", "Action", "Close-up", "Group Photo")
- Useful for organizing and filtering
- Based on content, composition, and subject matter
- Practical for a photo library

Return ONLY a JSON array of category strings, no other text."""


@runtime_checkable
class AnalysisProvider(Protocol):
    async def analyze(self, image: str) -> dict[str, Any]: ...


@runtime_checkable
class EnhancementProvider(Protocol):
    async def enhance(self, image: str, instruction: str) -> str: ...


@runtime_checkable
class CategoryProvider(Protocol):
    async def suggest_categories(self, frames: list[dict[str, Any]]) -> list[str]: ...


def describe_frames(frames: list[dict[str, Any]]) -> str:
    """One summary line per sampled frame, built from its analysis."""
    lines = []
    for idx, frame in enumerate(frames, start=1):
        analysis = frame.get("analysis") or {}
        tags = ", ".join(analysis.get("tags") or []) or "no tags"
        lines.append(
            f"Frame {idx}: {tags}, Quality: {analysis.get('quality') or 'unknown'}, "
            f"Shot: {analysis.get('shot_type') or 'unknown'}"
        )
    return "\n".join(lines)


def raise_for_status(response: httpx.Response, label: str) -> None:
    """Translate a non-2xx provider response into the error taxonomy."""
    if response.is_success:
        return
    status = response.status_code
    detail = response.text[:200]
    if status == 429:
        raise RateLimitedError(f"{label}: rate limit exceeded", status_code=status)
    if status == 402:
        raise PaymentRequiredError(f"{label}: payment required", status_code=status)
    raise ProviderError(f"{label}: API error {status}: {detail}", status_code=status)


class _HttpProvider:
    """Shared httpx client and request/response plumbing."""

    def __init__(self, timeout: float, client: httpx.AsyncClient | None = None) -> None:
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(connect=30.0, read=timeout, write=30.0, pool=30.0)
        )

    async def _post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str],
        label: str,
    ) -> dict[str, Any]:
        try:
            response = await self._client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(f"{label}: request failed: {e}") from e
        raise_for_status(response, label)
        try:
            data = response.json()
        except ValueError as e:
            raise SchemaViolationError(f"{label}: response is not JSON") from e
        if not isinstance(data, dict):
            raise SchemaViolationError(f"{label}: unexpected response shape")
        return data

    async def close(self) -> None:
        await self._client.aclose()


class GatewayProvider(_HttpProvider):
    """OpenAI-compatible chat completions gateway."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings.ai_timeout, client)
        self._base_url = settings.gateway_base_url.rstrip("/")
        self._api_key = settings.gateway_api_key
        self._analysis_model = settings.gateway_analysis_model
        self._image_model = settings.gateway_image_model
        self._analysis_temperature = settings.analysis_temperature
        self._category_temperature = settings.category_temperature

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _complete(self, payload: dict[str, Any], label: str) -> dict[str, Any]:
        data = await self._post_json(
            f"{self._base_url}/chat/completions", payload, self._headers, label
        )
        try:
            return data["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise SchemaViolationError(f"{label}: response has no message") from e

    async def analyze(self, image: str) -> dict[str, Any]:
        payload = {
            "model": self._analysis_model,
            "temperature": self._analysis_temperature,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": ANALYSIS_PROMPT},
                        {"type": "image_url", "image_url": {"url": image}},
                    ],
                }
            ],
            "tools": [
                {
                    "type": "function",
                    "function": {
                        "name": "analyze_frame",
                        "description": "Return structured frame analysis",
                        "parameters": ANALYSIS_SCHEMA,
                    },
                }
            ],
            "tool_choice": {"type": "function", "function": {"name": "analyze_frame"}},
        }
        message = await self._complete(payload, "analyze")
        try:
            arguments = message["tool_calls"][0]["function"]["arguments"]
            return json.loads(arguments) if isinstance(arguments, str) else arguments
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as e:
            raise SchemaViolationError("analyze: no analyze_frame tool call in response") from e

    async def enhance(self, image: str, instruction: str) -> str:
        payload = {
            "model": self._image_model,
            "modalities": ["image", "text"],
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": instruction},
                        {"type": "image_url", "image_url": {"url": image}},
                    ],
                }
            ],
        }
        message = await self._complete(payload, "enhance")
        try:
            url = message["images"][0]["image_url"]["url"]
        except (KeyError, IndexError, TypeError) as e:
            raise SchemaViolationError("enhance: response contains no image") from e
        if not isinstance(url, str) or not url:
            raise SchemaViolationError("enhance: empty image in response")
        return url

    async def suggest_categories(self, frames: list[dict[str, Any]]) -> list[str]:
        payload = {
            "model": self._analysis_model,
            "temperature": self._category_temperature,
            "messages": [
                {"role": "system", "content": CATEGORY_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": CATEGORY_PROMPT.format(descriptions=describe_frames(frames)),
                },
            ],
        }
        message = await self._complete(payload, "suggest-categories")
        return parse_string_list(message.get("content") or "[]")


class GeminiProvider(_HttpProvider):
    """Google Generative Language ``generateContent`` API."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        super().__init__(settings.ai_timeout, client)
        self._base_url = settings.gemini_base_url.rstrip("/")
        self._api_key = settings.gemini_api_key
        self._analysis_model = settings.gemini_analysis_model
        self._image_model = settings.gemini_image_model
        self._analysis_temperature = settings.analysis_temperature
        self._enhancement_temperature = settings.enhancement_temperature
        self._category_temperature = settings.category_temperature

    async def _generate(
        self, model: str, parts: list[dict[str, Any]], config: dict[str, Any], label: str
    ) -> list[dict[str, Any]]:
        data = await self._post_json(
            f"{self._base_url}/models/{model}:generateContent",
            {"contents": [{"parts": parts}], "generationConfig": config},
            {"x-goog-api-key": self._api_key},
            label,
        )
        try:
            return data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise SchemaViolationError(f"{label}: response has no candidate parts") from e

    @staticmethod
    def _inline(image: str) -> dict[str, Any]:
        mime_type, data = split_data_url(image)
        return {"inlineData": {"mimeType": mime_type, "data": data}}

    @staticmethod
    def _text_of(parts: list[dict[str, Any]]) -> str:
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))

    async def analyze(self, image: str) -> dict[str, Any]:
        parts = await self._generate(
            self._analysis_model,
            [{"text": ANALYSIS_PROMPT}, self._inline(image)],
            {
                "temperature": self._analysis_temperature,
                "responseSchema": ANALYSIS_SCHEMA,
                "responseMimeType": "application/json",
            },
            "analyze",
        )
        try:
            return json.loads(extract_json_object(self._text_of(parts)))
        except json.JSONDecodeError as e:
            raise SchemaViolationError("analyze: response text is not JSON") from e

    async def enhance(self, image: str, instruction: str) -> str:
        parts = await self._generate(
            self._image_model,
            [{"text": instruction}, self._inline(image)],
            {"temperature": self._enhancement_temperature},
            "enhance",
        )
        for part in parts:
            inline = part.get("inlineData") if isinstance(part, dict) else None
            if inline and inline.get("data"):
                return f"data:{inline.get('mimeType') or 'image/jpeg'};base64,{inline['data']}"
        raise SchemaViolationError("enhance: response contains no image")

    async def suggest_categories(self, frames: list[dict[str, Any]]) -> list[str]:
        prompt = CATEGORY_PROMPT.format(descriptions=describe_frames(frames))
        parts = await self._generate(
            self._analysis_model,
            [{"text": f"{CATEGORY_SYSTEM_PROMPT}\n\n{prompt}"}],
            {"temperature": self._category_temperature},
            "suggest-categories",
        )
        return parse_string_list(self._text_of(parts))


def build_provider(settings: Settings) -> GatewayProvider | GeminiProvider:
    """Instantiate the backend selected by ``settings.ai_provider``."""
    if settings.ai_provider == "gemini":
        logger.info("Using Gemini provider (%s)", settings.gemini_analysis_model)
        return GeminiProvider(settings)
    if settings.ai_provider != "gateway":
        raise ValueError(f"Unknown ai_provider: {settings.ai_provider!r}")
    logger.info("Using gateway provider (%s)", settings.gateway_base_url)
    return GatewayProvider(settings)
