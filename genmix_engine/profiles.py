"""Encoding profiles used when writing generated images to disk.

An ``EncodingProfile`` is inferred once from a reference image and describes
how that image was likely encoded. Each variant carries only the parameters
that make sense for its format, so a palette setting can never end up on a
JPEG profile.

``EncodingOverride`` is the caller-facing counterpart: a loose bag of optional
settings that always wins over an inferred profile.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class LossyProfile:
    width: int
    height: int
    quality: int = 90
    format: str = field(default="jpeg", init=False)
    kind: str = field(default="lossy", init=False)


@dataclass(frozen=True)
class LosslessPaletteProfile:
    width: int
    height: int
    colors: int
    quality: int = 90
    compression_level: int = 9
    effort: int = 9
    dither: float = 1.0
    format: str = field(default="png", init=False)
    kind: str = field(default="lossless_palette", init=False)


@dataclass(frozen=True)
class LosslessTrueColorProfile:
    width: int
    height: int
    compression_level: int = 9
    format: str = field(default="png", init=False)
    kind: str = field(default="lossless_truecolor", init=False)


@dataclass(frozen=True)
class NearLosslessProfile:
    width: int
    height: int
    quality: int = 80
    format: str = field(default="webp", init=False)
    kind: str = field(default="near_lossless", init=False)


EncodingProfile = Union[
    LossyProfile,
    LosslessPaletteProfile,
    LosslessTrueColorProfile,
    NearLosslessProfile,
]


@dataclass(frozen=True)
class EncodingOverride:
    format: str | None = None
    quality: int | None = None
    compression_level: int | None = None
    effort: int | None = None
    palette: bool = False
    colors: int | None = None
    width: int | None = None
    height: int | None = None


@dataclass(frozen=True)
class WriteSettings:
    """Flattened settings handed to the encoder for a single write."""

    quality: int | None = None
    compression_level: int | None = None
    effort: int | None = None
    palette: bool = False
    colors: int | None = None
    dither: float | None = None
    resize: tuple[int, int] | None = None


def canonical_format(value: str | None) -> str | None:
    if not value:
        return None
    lowered = value.strip().lower().lstrip(".")
    if lowered.startswith("image/"):
        lowered = lowered.split("/", 1)[1]
    if lowered in {"jpg", "jpeg"}:
        return "jpeg"
    if lowered in {"tif", "tiff"}:
        return "tiff"
    return lowered


def settings_from_override(override: EncodingOverride) -> WriteSettings:
    resize = None
    if override.width and override.height:
        resize = (int(override.width), int(override.height))
    return WriteSettings(
        quality=override.quality,
        compression_level=override.compression_level,
        effort=override.effort,
        palette=bool(override.palette),
        colors=override.colors,
        dither=1.0 if override.palette else None,
        resize=resize,
    )


def settings_from_profile(profile: EncodingProfile) -> WriteSettings:
    resize = (profile.width, profile.height) if profile.width and profile.height else None
    if isinstance(profile, LossyProfile):
        return WriteSettings(quality=profile.quality, resize=resize)
    if isinstance(profile, LosslessPaletteProfile):
        return WriteSettings(
            quality=profile.quality,
            compression_level=profile.compression_level,
            effort=profile.effort,
            palette=True,
            colors=profile.colors,
            dither=profile.dither,
            resize=resize,
        )
    if isinstance(profile, LosslessTrueColorProfile):
        return WriteSettings(compression_level=profile.compression_level, resize=resize)
    if isinstance(profile, NearLosslessProfile):
        return WriteSettings(quality=profile.quality, resize=resize)
    raise TypeError(f"Unknown encoding profile: {type(profile).__name__}")
