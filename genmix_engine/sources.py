"""Reference image ingestion."""

from __future__ import annotations

import asyncio
import base64
import binascii
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from .errors import InvalidReferenceFormat, ReferenceDownloadError, ReferenceReadError
from .inference import infer_profile
from .profiles import EncodingProfile

DEFAULT_MIME_TYPE = "image/png"
ALLOWED_MIME_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/gif",
        "image/webp",
        "image/heic",
        "image/heif",
    }
)
_MIME_BY_SUFFIX = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
_DATA_URI_PREFIX = "data:image/"
_DATA_URI_RE = re.compile(r"^data:(image/[^;]+);base64,(.+)$", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ReferenceImage:
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE
    source: str = "bytes"
    profile: EncodingProfile | None = None
    profile_error: str | None = None

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


def normalize_mime_type(value: str | None) -> str:
    if not value:
        return DEFAULT_MIME_TYPE
    lowered = value.split(";", 1)[0].strip().lower()
    if lowered == "image/jpg":
        lowered = "image/jpeg"
    if lowered in ALLOWED_MIME_TYPES:
        return lowered
    return DEFAULT_MIME_TYPE


def mime_type_for_suffix(suffix: str) -> str:
    return _MIME_BY_SUFFIX.get(str(suffix or "").strip().lower(), DEFAULT_MIME_TYPE)


async def resolve_reference(value: Any) -> ReferenceImage:
    """Normalize a path, URL, data URI or byte buffer into a ``ReferenceImage``."""
    if isinstance(value, ReferenceImage):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ReferenceImage(data=bytes(value), mime_type=DEFAULT_MIME_TYPE, source="bytes")
    if isinstance(value, str):
        if value.startswith(_DATA_URI_PREFIX):
            return parse_data_uri(value)
        if value.startswith(("http://", "https://")):
            data, content_type = await asyncio.to_thread(download_reference, value)
            return ReferenceImage(data=data, mime_type=normalize_mime_type(content_type), source="url")
        return await asyncio.to_thread(read_reference_file, value)
    if isinstance(value, os.PathLike):
        return await asyncio.to_thread(read_reference_file, value)
    raise InvalidReferenceFormat("Reference image must be a file path, URL, data URI, or bytes")


def parse_data_uri(value: str) -> ReferenceImage:
    match = _DATA_URI_RE.match(value)
    if not match:
        raise InvalidReferenceFormat("Invalid data URI format for reference image")
    try:
        data = base64.b64decode(_WHITESPACE_RE.sub("", match.group(2)), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidReferenceFormat("Invalid base64 payload in reference data URI") from exc
    if not data:
        raise InvalidReferenceFormat("Empty base64 payload in reference data URI")
    return ReferenceImage(data=data, mime_type=normalize_mime_type(match.group(1)), source="data_uri")


def download_reference(url: str) -> tuple[bytes, str | None]:
    req = Request(url, method="GET")
    try:
        with urlopen(req) as response:
            data = response.read()
            content_type = response.headers.get("Content-Type") if response.headers else None
    except HTTPError as exc:
        raise ReferenceDownloadError(
            f"Failed to download reference image from URL ({exc.code}): {exc.reason}"
        ) from exc
    except (URLError, OSError) as exc:
        raise ReferenceDownloadError(f"Failed to download reference image from URL: {exc}") from exc
    return data, content_type


def read_reference_file(value: str | os.PathLike[str]) -> ReferenceImage:
    path = Path(value).expanduser()
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ReferenceReadError(f"Failed to read reference image file: {exc}") from exc
    profile: EncodingProfile | None = None
    profile_error: str | None = None
    try:
        profile = infer_profile(data, file_size=len(data))
    except Exception as exc:
        profile_error = f"Could not extract reference metadata: {exc}"
    return ReferenceImage(
        data=data,
        mime_type=mime_type_for_suffix(path.suffix),
        source="path",
        profile=profile,
        profile_error=profile_error,
    )
