from __future__ import annotations

import asyncio
import io
from typing import Any, Callable

import pytest
from PIL import Image

from genmix_engine.providers.gemini import GeminiRequest


def encode(image: Image.Image, fmt: str, **kwargs: Any) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()


def palette_image(colors: int, size: tuple[int, int] = (16, 16)) -> Image.Image:
    image = Image.new("P", size)
    palette: list[int] = []
    for idx in range(colors):
        palette.extend([(idx * 37) % 256, (idx * 73) % 256, (idx * 151) % 256])
    image.putpalette(palette)
    width, height = size
    for y in range(height):
        for x in range(width):
            image.putpixel((x, y), (y * width + x) % colors)
    return image


def image_chunk(data: bytes, mime_type: str = "image/png", text: str | None = None) -> dict[str, Any]:
    parts: list[dict[str, Any]] = []
    if text is not None:
        parts.append({"text": text})
    parts.append({"inline_data": {"mime_type": mime_type, "data": data}})
    return {"candidates": [{"content": {"parts": parts}}]}


class FakeTransport:
    """Stands in for the Gemini boundary; returns one PNG per call."""

    model = "fake-image-model"

    def __init__(self, text: str | None = None, delays: list[float] | None = None, fail_on: set[int] | None = None) -> None:
        self.requests: list[GeminiRequest] = []
        self.text = text
        self.delays = list(delays or [])
        self.fail_on = set(fail_on or ())

    async def send(self, request: GeminiRequest) -> list[Any]:
        index = len(self.requests)
        self.requests.append(request)
        if index < len(self.delays):
            await asyncio.sleep(self.delays[index])
        if index in self.fail_on:
            raise RuntimeError(f"request {index} failed")
        color = ((index * 40) % 256, 10, 200)
        data = encode(Image.new("RGB", (8, 8), color), "PNG")
        return [image_chunk(data, text=self.text)]


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    def _make(size: tuple[int, int] = (8, 8), color: tuple[int, int, int] = (255, 0, 0)) -> bytes:
        return encode(Image.new("RGB", size, color), "PNG")

    return _make


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
