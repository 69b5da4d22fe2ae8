"""Translation layer - remote model calls and unit dispatch."""
from .dispatcher import (
    PLACEHOLDER_TEXT,
    DispatchResult,
    TranslationDispatcher,
    parse_translation_response,
)
from .gemini_client import ASPECT_RATIOS, GeminiClient

__all__ = [
    "ASPECT_RATIOS",
    "DispatchResult",
    "GeminiClient",
    "PLACEHOLDER_TEXT",
    "TranslationDispatcher",
    "parse_translation_response",
]
