"""Deepgram speech-to-text fallback for episodes the transcript provider cannot serve.

Audio is transcribed straight from the episode's enclosure URL. The file size
is checked with a HEAD request first so oversized audio is rejected before
anything billable is sent.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

import requests

from ..schemas import DeepgramResponse
from .errors import RATE_LIMITED, TIMEOUT, classify_error

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.deepgram.com/v1/listen"

# Deepgram nova-3 pay-as-you-go pricing, USD per audio minute
COST_PER_MINUTE_USD = 0.0043

RATE_LIMIT_MESSAGE = "Rate limit exceeded - too many concurrent requests"
TIMEOUT_MESSAGE = "Transcription timeout - file processing exceeded 10 minutes"


@dataclass
class FallbackResult:
    """Outcome of a fallback transcription. Never raised, always returned."""

    success: bool
    transcript: Optional[str] = None
    error: Optional[str] = None
    file_size_mb: Optional[float] = None
    processing_time_ms: int = 0


@dataclass
class _SizeCheck:
    ok: bool
    file_size_mb: Optional[float] = None
    error: Optional[str] = None


def estimate_cost_usd(processing_time_ms: int) -> float:
    """Rough cost estimate from processing time, used for logging only."""
    return round(processing_time_ms / 60000 * COST_PER_MINUTE_USD, 4)


class DeepgramFallbackService:
    """Transcribes remote audio files through the Deepgram prerecorded API.

    Example:
        service = DeepgramFallbackService(api_key=config.DEEPGRAM_API_KEY)
        result = service.transcribe_from_url(episode.episode_url)
        if result.success:
            print(result.transcript)
    """

    DEFAULT_OPTIONS = {
        "model": "nova-3",
        "smart_format": "true",
        "diarize": "true",
        "filler_words": "false",
    }
    USER_AGENT = "Listener-Podcast-App/1.0"
    HEAD_TIMEOUT = 30
    TRANSCRIBE_TIMEOUT = 600  # 10 minutes

    def __init__(
        self,
        api_key: str,
        max_file_size_mb: int = 500,
        endpoint: str = DEFAULT_ENDPOINT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the fallback service.

        Args:
            api_key: Deepgram API key
            max_file_size_mb: Largest audio file, in MB, that may be sent for transcription
            endpoint: Deepgram listen endpoint
            session: Optional requests session (tests inject a mock)

        Raises:
            ValueError: If no API key is given
        """
        if not api_key:
            raise ValueError("DEEPGRAM_API_KEY is required for fallback transcription")
        self.api_key = api_key
        self.max_file_size_mb = max_file_size_mb
        self.endpoint = endpoint
        self.options = dict(self.DEFAULT_OPTIONS)
        self._session = session or requests.Session()

        logger.info(
            f"Deepgram fallback initialized: model={self.options['model']}, "
            f"max_file_size={max_file_size_mb}MB"
        )

    def transcribe_from_url(self, audio_url: str) -> FallbackResult:
        """Transcribe the audio file at `audio_url`.

        Steps short-circuit on the first failure: URL validation, HEAD size
        check, size ceiling, transcription request, transcript extraction.
        Every outcome carries the elapsed processing time.

        Args:
            audio_url: Direct http(s) URL of the audio file

        Returns:
            FallbackResult describing success or the failure reason
        """
        start_time = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start_time) * 1000)

        if not self._is_valid_url(audio_url):
            error = f"Invalid URL format: {audio_url}"
            logger.warning(f"Deepgram URL validation failed: {error}")
            return FallbackResult(success=False, error=error, processing_time_ms=elapsed_ms())

        size_check = self._check_file_size(audio_url)
        if not size_check.ok:
            logger.warning(f"Deepgram file size check failed for {audio_url}: {size_check.error}")
            return FallbackResult(
                success=False,
                error=size_check.error,
                file_size_mb=size_check.file_size_mb,
                processing_time_ms=elapsed_ms(),
            )
        file_size_mb = size_check.file_size_mb

        try:
            response = self._session.post(
                self.endpoint,
                params=self.options,
                json={"url": audio_url},
                headers={
                    "Authorization": f"Token {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.TRANSCRIBE_TIMEOUT,
            )
        except requests.Timeout:
            logger.error(f"Deepgram request timed out for {audio_url}")
            return FallbackResult(
                success=False,
                error=TIMEOUT_MESSAGE,
                file_size_mb=file_size_mb,
                processing_time_ms=elapsed_ms(),
            )
        except requests.RequestException as e:
            logger.error(f"Deepgram request failed for {audio_url}: {e}")
            return FallbackResult(
                success=False,
                error=self._classify_failure(str(e)),
                file_size_mb=file_size_mb,
                processing_time_ms=elapsed_ms(),
            )

        if not response.ok:
            message = f"Deepgram API error: {response.status_code} {self._error_detail(response)}"
            logger.error(f"{message} ({audio_url})")
            return FallbackResult(
                success=False,
                error=self._classify_failure(message, response.status_code),
                file_size_mb=file_size_mb,
                processing_time_ms=elapsed_ms(),
            )

        try:
            transcript = DeepgramResponse.model_validate(response.json()).first_transcript()
        except ValueError as e:
            logger.error(f"Deepgram returned an unreadable response for {audio_url}: {e}")
            transcript = None

        if not transcript or not transcript.strip():
            logger.error(f"Deepgram response missing transcript for {audio_url}")
            return FallbackResult(
                success=False,
                error="No transcript returned from Deepgram",
                file_size_mb=file_size_mb,
                processing_time_ms=elapsed_ms(),
            )

        processing_time_ms = elapsed_ms()
        logger.info(
            f"Deepgram transcription successful: {audio_url} "
            f"({file_size_mb:.1f}MB, {len(transcript)} chars, {processing_time_ms}ms, "
            f"~${estimate_cost_usd(processing_time_ms):.4f})"
        )
        return FallbackResult(
            success=True,
            transcript=transcript,
            file_size_mb=file_size_mb,
            processing_time_ms=processing_time_ms,
        )

    @staticmethod
    def _is_valid_url(url: str) -> bool:
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    def _check_file_size(self, url: str) -> _SizeCheck:
        """Read Content-Length with a HEAD request and compare it to the ceiling."""
        logger.debug(f"Checking file size via HEAD request: {url}")
        try:
            response = self._session.head(
                url,
                headers={"User-Agent": self.USER_AGENT},
                allow_redirects=True,
                timeout=self.HEAD_TIMEOUT,
            )
        except requests.RequestException as e:
            return _SizeCheck(ok=False, error=f"HEAD request failed: {e}")

        if not response.ok:
            return _SizeCheck(
                ok=False,
                error=f"HEAD request failed: {response.status_code} {response.reason}",
            )

        content_length = response.headers.get("content-length")
        if not content_length:
            return _SizeCheck(
                ok=False, error="Missing Content-Length header - cannot verify file size"
            )

        try:
            size_bytes = int(content_length)
        except ValueError:
            size_bytes = 0
        if size_bytes <= 0:
            return _SizeCheck(ok=False, error=f"Invalid Content-Length header: {content_length}")

        file_size_mb = size_bytes / (1024 * 1024)
        if file_size_mb > self.max_file_size_mb:
            return _SizeCheck(
                ok=False,
                file_size_mb=file_size_mb,
                error=f"File size {file_size_mb:.1f}MB exceeds limit of {self.max_file_size_mb}MB",
            )

        return _SizeCheck(ok=True, file_size_mb=file_size_mb)

    @staticmethod
    def _error_detail(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason or "Unknown error"
        if not isinstance(body, dict):
            return str(body)[:200]
        return body.get("err_msg") or body.get("message") or str(body)[:200]

    @staticmethod
    def _classify_failure(message: str, status_code: Optional[int] = None) -> str:
        category = classify_error(message, status_code)
        if category == RATE_LIMITED:
            return RATE_LIMIT_MESSAGE
        if category == TIMEOUT:
            return TIMEOUT_MESSAGE
        return message
