"""Genmix image generation engine."""

from .engine import GenmixEngine
from .errors import (
    GenmixError,
    InvalidReferenceFormat,
    MissingCredential,
    PersistenceIOError,
    ReferenceDownloadError,
    ReferenceReadError,
    RemoteGenerationError,
    UnsupportedFormat,
)
from .fanout import GenerationRequest, GenerationResult, ImagePayload
from .persistence import SaveOptions, SavedArtifact
from .profiles import (
    EncodingOverride,
    EncodingProfile,
    LosslessPaletteProfile,
    LosslessTrueColorProfile,
    LossyProfile,
    NearLosslessProfile,
)
from .sources import ReferenceImage

__all__ = [
    "GenmixEngine",
    "GenmixError",
    "InvalidReferenceFormat",
    "MissingCredential",
    "PersistenceIOError",
    "ReferenceDownloadError",
    "ReferenceReadError",
    "RemoteGenerationError",
    "UnsupportedFormat",
    "GenerationRequest",
    "GenerationResult",
    "ImagePayload",
    "SaveOptions",
    "SavedArtifact",
    "EncodingOverride",
    "EncodingProfile",
    "LosslessPaletteProfile",
    "LosslessTrueColorProfile",
    "LossyProfile",
    "NearLosslessProfile",
    "ReferenceImage",
]
