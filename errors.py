"""Error definitions for the translation pipeline."""
from dataclasses import dataclass


class TranslatorError(Exception):
    """Base exception for all custom errors."""


class SizeLimitExceeded(TranslatorError):
    """Raised before any remote call when an upload is over the size ceiling."""

    def __init__(self, size: int, limit: int, source: str = ""):
        self.size = size
        self.limit = limit
        self.source = source
        what = f"'{source}'" if source else "Combined upload"
        super().__init__(
            f"{what} is {size:,} bytes, which exceeds the {limit:,} byte limit."
        )


class UnsupportedFileType(TranslatorError):
    """Raised when a file is not a PDF, DOCX or image."""


class RemoteCallFailure(TranslatorError):
    """Raised when the remote model call fails after retries."""


class MalformedResponse(TranslatorError):
    """Raised when the remote model returns something that cannot be parsed."""


class NoImageGenerated(RemoteCallFailure):
    """Raised when an image generation call returns no image data."""


class RunInProgress(TranslatorError):
    """Raised when a new run is requested while another is in flight."""


class ConfigurationError(TranslatorError):
    """Raised when required settings are missing."""


@dataclass(frozen=True)
class FileWarning:
    """A soft failure tied to one file or work unit."""

    source: str
    message: str
