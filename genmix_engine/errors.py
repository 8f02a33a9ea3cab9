"""Error kinds raised by the generation pipeline."""

from __future__ import annotations


class GenmixError(RuntimeError):
    """Base class for pipeline failures surfaced to callers."""


class MissingCredential(GenmixError):
    pass


class InvalidReferenceFormat(GenmixError):
    pass


class ReferenceDownloadError(GenmixError):
    pass


class ReferenceReadError(GenmixError):
    pass


class RemoteGenerationError(GenmixError):
    def __init__(self, message: str, *, details: object | None = None) -> None:
        super().__init__(f"Gemini API error: {message}")
        self.remote_message = message
        self.details = details


class UnsupportedFormat(GenmixError):
    def __init__(self, extension: str, supported: tuple[str, ...]) -> None:
        super().__init__(
            f"Unsupported extension: {extension}. Supported formats: {', '.join(supported)}"
        )
        self.extension = extension


class PersistenceIOError(GenmixError):
    def __init__(self, message: str, *, path: object | None = None) -> None:
        super().__init__(message)
        self.path = path
