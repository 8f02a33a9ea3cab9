"""Remote generation boundary."""

from __future__ import annotations

from .gemini import DEFAULT_MODEL, GeminiRequest, GeminiTransport, Transport
from .parsing import ImagePayload, ParsedResponse, parse_response

__all__ = [
    "DEFAULT_MODEL",
    "GeminiRequest",
    "GeminiTransport",
    "Transport",
    "ImagePayload",
    "ParsedResponse",
    "parse_response",
]
