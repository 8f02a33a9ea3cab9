"""Extract images and text from Gemini response envelopes."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class ImagePayload:
    data: bytes
    mime_type: str = "image/png"

    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode('ascii')}"


@dataclass(frozen=True)
class ParsedResponse:
    images: tuple[ImagePayload, ...] = ()
    text: str = ""
    raw: Any = None


def parse_response(envelope: Any) -> ParsedResponse:
    chunks = _as_chunks(envelope)
    images: list[ImagePayload] = []
    text_parts: list[str] = []
    for chunk in chunks:
        for candidate in _field(chunk, "candidates") or []:
            content = _field(candidate, "content")
            for part in _field(content, "parts") or []:
                text = _field(part, "text")
                if isinstance(text, str) and text:
                    text_parts.append(text)
                image = _image_from_part(part)
                if image is not None:
                    images.append(image)
    return ParsedResponse(images=tuple(images), text="".join(text_parts), raw=envelope)


def _as_chunks(envelope: Any) -> Sequence[Any]:
    if envelope is None:
        return []
    if isinstance(envelope, (list, tuple)):
        return list(envelope)
    return [envelope]


def _field(value: Any, name: str) -> Any:
    if value is None:
        return None
    camel = _camel(name)
    if isinstance(value, Mapping):
        if name in value:
            return value[name]
        return value.get(camel)
    found = getattr(value, name, None)
    if found is None and camel != name:
        found = getattr(value, camel, None)
    return found


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(word.title() for word in rest)


def _image_from_part(part: Any) -> ImagePayload | None:
    inline_data = _field(part, "inline_data")
    if inline_data is None:
        return None
    mime_type = _field(inline_data, "mime_type")
    if not isinstance(mime_type, str) or not mime_type.startswith("image/"):
        return None
    data = _field(inline_data, "data")
    blob = _coerce_bytes(data)
    if blob is None:
        return None
    return ImagePayload(data=blob, mime_type=mime_type)


def _coerce_bytes(data: Any) -> bytes | None:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str) and data:
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            return None
    return None


def iter_texts(responses: Iterable[ParsedResponse]) -> Iterable[str]:
    for response in responses:
        if response.text:
            yield response.text
