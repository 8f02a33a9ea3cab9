"""Concurrent fan-out of single-candidate generation requests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Sequence

from .profiles import EncodingProfile
from .providers.gemini import GeminiRequest, Transport
from .providers.parsing import ImagePayload, ParsedResponse, iter_texts, parse_response


@dataclass(frozen=True)
class GenerationRequest:
    prompt: str
    reference: Any = None
    count: int = 1
    quality: str | None = None
    aspect_ratio: str | None = None
    image_size: str | None = None

    def __post_init__(self) -> None:
        if int(self.count) < 1:
            raise ValueError("count must be at least 1")


@dataclass(frozen=True)
class GenerationResult:
    prompt: str
    images: tuple[ImagePayload, ...] = ()
    text: str = ""
    raw: tuple[Any, ...] = ()
    reference_profile: EncodingProfile | None = None
    warnings: tuple[str, ...] = field(default=(), compare=False)


async def fan_out(transport: Transport, request: GeminiRequest, count: int) -> list[ParsedResponse]:
    """Run ``count`` identical requests; responses come back in request order."""
    if count < 1:
        raise ValueError("count must be at least 1")
    if count == 1:
        return [parse_response(await transport.send(request))]

    slots: list[ParsedResponse | None] = [None] * count

    async def _fill(index: int) -> None:
        slots[index] = parse_response(await transport.send(request))

    try:
        async with asyncio.TaskGroup() as group:
            for index in range(count):
                group.create_task(_fill(index))
    except BaseExceptionGroup as grouped:
        raise _first_error(grouped)
    return [slot for slot in slots if slot is not None]


def merge_responses(prompt: str, responses: Sequence[ParsedResponse]) -> GenerationResult:
    images: list[ImagePayload] = []
    for response in responses:
        images.extend(response.images)
    if len(responses) == 1:
        text = responses[0].text
    else:
        text = ""
        for chunk in iter_texts(responses):
            if chunk not in text:
                text += chunk + "\n"
    return GenerationResult(
        prompt=prompt,
        images=tuple(images),
        text=text,
        raw=tuple(response.raw for response in responses),
    )


def _first_error(grouped: BaseExceptionGroup) -> BaseException:
    first = grouped.exceptions[0]
    if isinstance(first, BaseExceptionGroup):
        return _first_error(first)
    return first
