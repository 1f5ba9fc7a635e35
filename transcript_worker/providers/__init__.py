"""Transcript providers: tiered Taddy clients and the Deepgram fallback."""

from .base import TranscriptProviderInterface, TranscriptProviderResult
from .deepgram_fallback import DeepgramFallbackService, FallbackResult
from .factory import create_fallback_service, create_provider
from .taddy import TaddyBusinessClient, TaddyFreeClient

__all__ = [
    "TranscriptProviderInterface",
    "TranscriptProviderResult",
    "TaddyFreeClient",
    "TaddyBusinessClient",
    "DeepgramFallbackService",
    "FallbackResult",
    "create_provider",
    "create_fallback_service",
]
