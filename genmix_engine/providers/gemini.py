"""Gemini image generation boundary."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ..errors import RemoteGenerationError
from ..sources import ReferenceImage

DEFAULT_MODEL = "gemini-3-pro-image-preview"
IMAGE_SIZES = ("1K", "2K", "4K")


@dataclass(frozen=True)
class GeminiRequest:
    prompt: str
    reference: ReferenceImage | None = None
    image_size: str | None = None
    aspect_ratio: str | None = None


class Transport(Protocol):
    model: str

    async def send(self, request: GeminiRequest) -> list[Any]:
        ...


class GeminiTransport:
    """Streams one single-candidate request through ``google-genai``."""

    def __init__(self, api_key: str, model: str | None = None, client: Any | None = None) -> None:
        self.model = model or DEFAULT_MODEL
        self._client = client or genai.Client(api_key=api_key)

    async def send(self, request: GeminiRequest) -> list[Any]:
        contents = [types.Content(role="user", parts=build_parts(request))]
        config = build_content_config(request)
        chunks: list[Any] = []
        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=self.model,
                contents=contents,
                config=config,
            )
            async for chunk in stream:
                chunks.append(chunk)
        except genai_errors.APIError as exc:
            message = exc.message or str(exc)
            raise RemoteGenerationError(message, details=exc.details) from exc
        except (httpx.HTTPError, OSError) as exc:
            raise RemoteGenerationError(str(exc) or type(exc).__name__) from exc
        return chunks


def build_parts(request: GeminiRequest) -> list[types.Part]:
    parts: list[types.Part] = []
    if request.reference is not None:
        parts.append(
            types.Part(
                inline_data=types.Blob(
                    data=request.reference.data,
                    mime_type=request.reference.mime_type,
                )
            )
        )
    parts.append(types.Part(text=request.prompt))
    return parts


def build_content_config(request: GeminiRequest) -> types.GenerateContentConfig:
    # The image models reject candidate_count > 1; batches fan out instead.
    config_kwargs: dict[str, Any] = {
        "response_modalities": ["IMAGE", "TEXT"],
        "candidate_count": 1,
    }
    image_config: dict[str, Any] = {}
    if request.image_size:
        image_config["image_size"] = request.image_size
    if request.aspect_ratio:
        image_config["aspect_ratio"] = request.aspect_ratio
    if image_config:
        config_kwargs["image_config"] = types.ImageConfig(**image_config)
    return types.GenerateContentConfig(**config_kwargs)


def normalize_image_size(value: str | None) -> str | None:
    if not value:
        return None
    normalized = value.strip().upper()
    if normalized in IMAGE_SIZES:
        return normalized
    return value.strip()


def describe_request(request: GeminiRequest, model: str) -> Mapping[str, Any]:
    payload: dict[str, Any] = {
        "model": model,
        "prompt": request.prompt,
        "candidate_count": 1,
        "image_size": request.image_size,
        "aspect_ratio": request.aspect_ratio,
    }
    if request.reference is not None:
        payload["reference"] = {
            "source": request.reference.source,
            "mime_type": request.reference.mime_type,
            "byte_count": len(request.reference.data),
        }
    return payload
