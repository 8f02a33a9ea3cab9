"""Best-effort inference of how a reference image was encoded."""

from __future__ import annotations

import io
import struct

from PIL import Image

from .profiles import (
    EncodingProfile,
    LosslessPaletteProfile,
    LosslessTrueColorProfile,
    LossyProfile,
    NearLosslessProfile,
)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# (upper bound on bytes per pixel, estimated quality)
JPEG_QUALITY_BUCKETS: tuple[tuple[float, int], ...] = (
    (0.5, 70),
    (1.0, 80),
)
JPEG_QUALITY_CEILING = 90


class UnsupportedProfileFormat(ValueError):
    pass


def infer_profile(data: bytes, *, file_size: int | None = None) -> EncodingProfile:
    size = len(data) if file_size is None else int(file_size)
    with Image.open(io.BytesIO(data)) as image:
        fmt = (image.format or "").lower()
        width, height = image.size
        if fmt == "jpeg":
            return LossyProfile(width=width, height=height, quality=estimate_jpeg_quality(size, width, height))
        if fmt == "png":
            if image.mode == "P":
                return LosslessPaletteProfile(width=width, height=height, colors=_palette_colors(image, data))
            return LosslessTrueColorProfile(width=width, height=height)
        if fmt == "webp":
            return NearLosslessProfile(width=width, height=height)
    raise UnsupportedProfileFormat(f"No encoding profile for format {fmt or 'unknown'}")


def estimate_jpeg_quality(file_size: int, width: int, height: int) -> int:
    pixels = width * height
    if pixels <= 0:
        return JPEG_QUALITY_CEILING
    bytes_per_pixel = file_size / pixels
    for limit, quality in JPEG_QUALITY_BUCKETS:
        if bytes_per_pixel < limit:
            return quality
    return JPEG_QUALITY_CEILING


def count_distinct_colors(image: Image.Image) -> int:
    mode = "RGBA" if "transparency" in image.info else "RGB"
    plane = image.convert(mode)
    width, height = plane.size
    colors = plane.getcolors(maxcolors=max(1, width * height))
    if colors is None:
        raise ValueError("Could not enumerate image colors")
    return len(colors)


def png_bit_depth(data: bytes) -> int:
    if not data.startswith(PNG_SIGNATURE) or len(data) < 26:
        raise ValueError("Not a PNG stream")
    chunk_type = data[12:16]
    if chunk_type != b"IHDR":
        raise ValueError("PNG stream does not start with IHDR")
    (bit_depth,) = struct.unpack(">B", data[24:25])
    return int(bit_depth)


def _palette_colors(image: Image.Image, data: bytes) -> int:
    try:
        return count_distinct_colors(image)
    except Exception:
        return 2 ** png_bit_depth(data)
