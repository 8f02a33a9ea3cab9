"""Re-encode generated images and write them to disk."""

from __future__ import annotations

import hashlib
import io
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from PIL import Image

from .errors import PersistenceIOError, UnsupportedFormat
from .fanout import GenerationResult
from .profiles import (
    EncodingOverride,
    EncodingProfile,
    WriteSettings,
    canonical_format,
    settings_from_override,
    settings_from_profile,
)
from .providers.parsing import ImagePayload

SUPPORTED_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "avif", "tiff", "tif")
_PIL_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
    "tiff": "TIFF",
}
_RGB_ONLY_FORMATS = {"jpeg"}
_RGB_OR_RGBA_FORMATS = {"webp", "avif"}
_SLUG_WORDS = 5
_SLUG_MAX_CHARS = 40
_SLUG_RE = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class SaveOptions:
    directory: str | Path = "."
    filename: str | None = None
    extension: str = "jpg"
    override: EncodingOverride | None = None


@dataclass(frozen=True)
class SavedArtifact:
    path: Path
    format: str
    profile: EncodingProfile | EncodingOverride | None = None


def resolve_extension(options: SaveOptions) -> tuple[str, str]:
    """Return ``(file_extension, canonical_format)`` or raise ``UnsupportedFormat``."""
    requested = options.extension
    if options.override is not None and options.override.format:
        requested = options.override.format
    normalized = str(requested or "").strip().lower().lstrip(".")
    if normalized not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFormat(normalized, SUPPORTED_EXTENSIONS)
    file_extension = "jpg" if normalized == "jpeg" else normalized
    return file_extension, canonical_format(normalized) or normalized


def default_filename(prompt: str, index: int, *, clock: Callable[[], int] = time.time_ns) -> str:
    seed = f"{prompt}_{index}"
    salt = f"{clock()}-{uuid.uuid4().hex[:8]}"
    digest = hashlib.sha256(f"{seed}:{salt}".encode("utf-8")).hexdigest()[:12]
    slug = prompt_slug(prompt)
    return f"{slug}-{digest}" if slug else digest


def prompt_slug(prompt: str) -> str:
    words = [word for word in _SLUG_RE.split(str(prompt or "").lower()) if word]
    return "-".join(words[:_SLUG_WORDS])[:_SLUG_MAX_CHARS].strip("-")


def build_filenames(result: GenerationResult, stem: str | None, extension: str) -> list[str]:
    count = len(result.images)
    if stem:
        if count == 1:
            return [f"{stem}.{extension}"]
        return [f"{stem}_{index}.{extension}" for index in range(count)]
    return [f"{default_filename(result.prompt, index)}.{extension}" for index in range(count)]


def select_settings(
    target_format: str,
    override: EncodingOverride | None,
    inferred: EncodingProfile | None,
) -> tuple[WriteSettings, EncodingProfile | EncodingOverride | None]:
    if override is not None:
        return settings_from_override(override), override
    if inferred is not None and canonical_format(inferred.format) == target_format:
        return settings_from_profile(inferred), inferred
    return WriteSettings(), None


def save_images(result: GenerationResult, options: SaveOptions) -> list[SavedArtifact]:
    if not result.images:
        return []
    extension, target_format = resolve_extension(options)
    directory = Path(options.directory)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise PersistenceIOError(f"Could not create output directory {directory}: {exc}", path=directory) from exc

    settings, applied = select_settings(target_format, options.override, result.reference_profile)
    saved: list[SavedArtifact] = []
    for payload, name in zip(result.images, build_filenames(result, options.filename, extension)):
        output_path = directory / name
        try:
            encode_image(payload, output_path, target_format, settings)
        except Exception as exc:
            raise PersistenceIOError(f"Error saving image {name}: {exc}", path=output_path) from exc
        saved.append(SavedArtifact(path=output_path, format=target_format, profile=applied))
    return saved


def encode_image(payload: ImagePayload, output_path: Path, target_format: str, settings: WriteSettings) -> None:
    with Image.open(io.BytesIO(payload.data)) as source:
        source.load()
        image = source
        if settings.resize:
            image = image.resize(settings.resize)
        image = _coerce_mode(image, target_format)
        save_kwargs: dict[str, object] = {}
        if target_format == "jpeg":
            if settings.quality:
                save_kwargs["quality"] = int(settings.quality)
        elif target_format == "png":
            if settings.palette:
                image = _to_palette(image, settings)
            if settings.compression_level is not None:
                save_kwargs["compress_level"] = _clamp(settings.compression_level, 0, 9)
            if settings.effort is not None and settings.effort >= 7:
                save_kwargs["optimize"] = True
        elif target_format == "webp":
            if settings.quality:
                save_kwargs["quality"] = int(settings.quality)
            if settings.effort is not None:
                save_kwargs["method"] = _clamp(settings.effort, 0, 6)
        elif target_format == "avif":
            if settings.quality:
                save_kwargs["quality"] = int(settings.quality)
        image.save(output_path, format=_PIL_FORMATS[target_format], **save_kwargs)


def _coerce_mode(image: Image.Image, target_format: str) -> Image.Image:
    has_alpha = image.mode in {"RGBA", "LA", "PA"} or "transparency" in image.info
    if target_format in _RGB_ONLY_FORMATS:
        if image.mode not in {"RGB", "L"}:
            return image.convert("RGB")
        return image
    if target_format in _RGB_OR_RGBA_FORMATS or image.mode == "CMYK":
        wanted = "RGBA" if has_alpha else "RGB"
        if image.mode != wanted:
            return image.convert(wanted)
    return image


def _to_palette(image: Image.Image, settings: WriteSettings) -> Image.Image:
    colors = _clamp(settings.colors or 256, 2, 256)
    if image.mode in {"RGBA", "LA", "PA"} or "transparency" in image.info:
        return image.convert("RGBA").quantize(colors=colors, method=Image.Quantize.FASTOCTREE)
    rgb = image.convert("RGB")
    palette = rgb.quantize(colors=colors)
    dither = Image.Dither.FLOYDSTEINBERG if settings.dither else Image.Dither.NONE
    return rgb.quantize(palette=palette, dither=dither)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))
