"""Shared result type and interface for transcript providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..db.models import TranscriptStatus


def estimate_word_count(text: Optional[str]) -> int:
    """Count whitespace-separated words."""
    if not text:
        return 0
    return len(text.split())


@dataclass
class TranscriptProviderResult:
    """Outcome of a provider lookup.

    `kind` is one of the terminal statuses. `text` and `word_count` are only
    set for full/partial results; `message` carries the error or reason.
    """

    kind: TranscriptStatus
    text: Optional[str] = None
    word_count: Optional[int] = None
    message: Optional[str] = None
    credits_consumed: int = 0
    quota_exhausted: bool = False

    @classmethod
    def full(cls, text: str, word_count: Optional[int] = None, credits: int = 0) -> "TranscriptProviderResult":
        return cls(
            kind=TranscriptStatus.FULL,
            text=text,
            word_count=word_count if word_count else estimate_word_count(text),
            credits_consumed=credits,
        )

    @classmethod
    def partial(
        cls,
        text: str,
        word_count: Optional[int] = None,
        reason: Optional[str] = None,
        credits: int = 0,
    ) -> "TranscriptProviderResult":
        return cls(
            kind=TranscriptStatus.PARTIAL,
            text=text,
            word_count=word_count if word_count else estimate_word_count(text),
            message=reason,
            credits_consumed=credits,
        )

    @classmethod
    def processing(cls, credits: int = 0) -> "TranscriptProviderResult":
        return cls(kind=TranscriptStatus.PROCESSING, credits_consumed=credits)

    @classmethod
    def not_found(cls, credits: int = 0) -> "TranscriptProviderResult":
        return cls(kind=TranscriptStatus.NOT_FOUND, credits_consumed=credits)

    @classmethod
    def no_match(cls, credits: int = 0) -> "TranscriptProviderResult":
        return cls(kind=TranscriptStatus.NO_MATCH, credits_consumed=credits)

    @classmethod
    def no_transcript_found(cls, credits: int = 0) -> "TranscriptProviderResult":
        return cls(kind=TranscriptStatus.NO_TRANSCRIPT_FOUND, credits_consumed=credits)

    @classmethod
    def error(
        cls, message: str, credits: int = 0, quota_exhausted: bool = False
    ) -> "TranscriptProviderResult":
        return cls(
            kind=TranscriptStatus.ERROR,
            message=message,
            credits_consumed=credits,
            quota_exhausted=quota_exhausted,
        )


class TranscriptProviderInterface(ABC):
    """A transcript provider tier.

    Implementations return a `TranscriptProviderResult` for every
    provider-reported condition and never raise for them.
    """

    tier: str = ""

    @abstractmethod
    def fetch_transcript(self, feed_url: str, episode_guid: str) -> TranscriptProviderResult:
        """
        Look up the transcript for an episode.

        Parameters:
            feed_url (str): RSS feed URL of the episode's show.
            episode_guid (str): RSS GUID of the episode.

        Returns:
            TranscriptProviderResult: The classified outcome.
        """
        pass

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        """Check provider connectivity; returns a dict with at least `connected`."""
        pass
