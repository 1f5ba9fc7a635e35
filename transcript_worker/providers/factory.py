"""Factories for transcript provider and fallback clients."""

import logging
from typing import Optional

import requests

from .base import TranscriptProviderInterface
from .deepgram_fallback import DeepgramFallbackService
from .taddy import TaddyBusinessClient, TaddyFreeClient

logger = logging.getLogger(__name__)

PROVIDER_TIERS = {
    "constrained": TaddyFreeClient,
    "full": TaddyBusinessClient,
}


def create_provider(
    tier: str, config, session: Optional[requests.Session] = None
) -> TranscriptProviderInterface:
    """
    Create the Taddy client for a provider tier.

    Parameters:
        tier (str): "constrained" (free tier) or "full" (business tier).
        config: A `Config` instance supplying Taddy credentials and endpoint.
        session (Optional[requests.Session]): Session to reuse, mainly for tests.

    Raises:
        ValueError: If the tier is unknown or Taddy credentials are missing.
    """
    client_class = PROVIDER_TIERS.get(tier)
    if client_class is None:
        raise ValueError(
            f"Unknown provider tier {tier!r}; expected one of {sorted(PROVIDER_TIERS)}"
        )
    if not config.has_taddy_credentials():
        raise ValueError("TADDY_API_KEY and TADDY_USER_ID are required")

    logger.info(f"Using Taddy {client_class.__name__} ({tier} tier)")
    return client_class(
        api_key=config.TADDY_API_KEY,
        user_id=config.TADDY_USER_ID,
        endpoint=config.TADDY_ENDPOINT,
        timeout=config.TADDY_TIMEOUT_SECONDS,
        session=session,
    )


def create_fallback_service(
    config, max_file_size_mb: int, session: Optional[requests.Session] = None
) -> Optional[DeepgramFallbackService]:
    """
    Create the Deepgram fallback service, or None when no API key is configured.
    """
    if not config.DEEPGRAM_API_KEY:
        logger.warning("DEEPGRAM_API_KEY not set - fallback transcription unavailable")
        return None
    return DeepgramFallbackService(
        api_key=config.DEEPGRAM_API_KEY,
        max_file_size_mb=max_file_size_mb,
        endpoint=config.DEEPGRAM_ENDPOINT,
        session=session,
    )
