"""Core genmix engine orchestration."""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from pathlib import Path
from typing import Any

from .errors import MissingCredential
from .fanout import GenerationRequest, GenerationResult, fan_out, merge_responses
from .persistence import SaveOptions, SavedArtifact, save_images
from .profiles import EncodingOverride
from .providers.gemini import (
    GeminiRequest,
    GeminiTransport,
    Transport,
    describe_request,
    normalize_image_size,
)
from .runs.events import EventSink, NullEventWriter
from .sources import ReferenceImage, resolve_reference
from .utils import first_env

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")
MODEL_ENV_VAR = "GENMIX_IMAGE_MODEL"


class GenmixEngine:
    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        transport: Transport | None = None,
        events: EventSink | None = None,
    ) -> None:
        self.api_key = api_key or first_env(*API_KEY_ENV_VARS)
        if not self.api_key:
            raise MissingCredential(
                "API key is required. Pass api_key or set GEMINI_API_KEY (or GOOGLE_API_KEY)."
            )
        model_name = model or first_env(MODEL_ENV_VAR)
        self.transport = transport or GeminiTransport(self.api_key, model=model_name)
        self.model = model_name or self.transport.model
        self.events = events or NullEventWriter()

    async def generate(
        self,
        prompt: str,
        *,
        reference: Any = None,
        count: int = 1,
        quality: str | None = None,
        aspect_ratio: str | None = None,
        image_size: str | None = None,
    ) -> GenerationResult:
        request = GenerationRequest(
            prompt=prompt,
            reference=reference,
            count=count,
            quality=quality,
            aspect_ratio=aspect_ratio,
            image_size=image_size,
        )
        return await self.run(request)

    async def run(self, request: GenerationRequest) -> GenerationResult:
        warnings: list[str] = []
        resolved: ReferenceImage | None = None
        if request.reference is not None:
            resolved = await resolve_reference(request.reference)
            self.events.emit(
                "reference_resolved",
                source=resolved.source,
                mime_type=resolved.mime_type,
                byte_count=len(resolved.data),
                profile=resolved.profile,
            )
            if resolved.profile_error:
                warnings.append(resolved.profile_error)
                self.events.emit("reference_profile_failed", error=resolved.profile_error)

        remote_request = GeminiRequest(
            prompt=request.prompt,
            reference=resolved,
            image_size=normalize_image_size(request.quality or request.image_size),
            aspect_ratio=request.aspect_ratio,
        )
        self.events.emit(
            "generation_started",
            count=request.count,
            request=describe_request(remote_request, self.model),
        )
        started_at = time.monotonic()
        try:
            responses = await fan_out(self.transport, remote_request, request.count)
        except Exception as exc:
            self.events.emit("generation_failed", count=request.count, error=str(exc))
            raise
        result = merge_responses(request.prompt, responses)
        result = replace(
            result,
            reference_profile=resolved.profile if resolved is not None else None,
            warnings=tuple(warnings),
        )
        self.events.emit(
            "generation_completed",
            count=request.count,
            images=len(result.images),
            text_chars=len(result.text),
            elapsed_s=max(time.monotonic() - started_at, 0.0),
        )
        return result

    async def save(
        self,
        result: GenerationResult,
        *,
        directory: str | Path = ".",
        filename: str | None = None,
        extension: str = "jpg",
        override: EncodingOverride | None = None,
    ) -> list[SavedArtifact]:
        options = SaveOptions(directory=directory, filename=filename, extension=extension, override=override)
        if not result.images:
            self.events.emit("save_skipped", reason="No images to save.")
            return []
        saved = await asyncio.to_thread(save_images, result, options)
        for artifact in saved:
            self.events.emit(
                "artifact_saved",
                image_path=artifact.path,
                format=artifact.format,
                profile=artifact.profile,
            )
        return saved

    def generate_sync(self, prompt: str, **kwargs: Any) -> GenerationResult:
        return asyncio.run(self.generate(prompt, **kwargs))

    def save_sync(self, result: GenerationResult, **kwargs: Any) -> list[SavedArtifact]:
        return asyncio.run(self.save(result, **kwargs))
