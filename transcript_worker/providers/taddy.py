"""Taddy GraphQL transcript provider clients.

Two tiers share one GraphQL transport and one result shape:

- TaddyFreeClient (constrained tier): reads transcripts Taddy already has.
  Never triggers generation and consumes no credits.
- TaddyBusinessClient (full tier): requests the episode transcript, which may
  start on-demand generation. Each lookup consumes one credit.
"""

import logging
from abc import abstractmethod
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..schemas import TaddyEpisode, TaddySeries, TaddyTranscript, TaddyTranscriptItem
from .base import TranscriptProviderInterface, TranscriptProviderResult, estimate_word_count
from .errors import CREDITS_EXCEEDED, is_quota_exhausted

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.taddy.org/graphql"


class TaddyAPIError(Exception):
    """HTTP or GraphQL-level failure reported by the Taddy API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TaddyGraphQLClient:
    """Minimal GraphQL transport over a retrying requests session."""

    USER_AGENT = "TranscriptWorker/1.0"

    def __init__(
        self,
        api_key: str,
        user_id: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not api_key or not user_id:
            raise ValueError("Taddy API key and user ID are required")
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session or self._create_session()
        self._session.headers.update(
            {
                "Content-Type": "application/json",
                "User-Agent": self.USER_AGENT,
                "X-API-KEY": api_key,
                "X-USER-ID": user_id,
            }
        )

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic."""
        session = requests.Session()

        # 429 is not retried: quota errors must surface to the caller
        retry_strategy = Retry(
            total=2,
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def execute(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Execute a GraphQL query and return its `data` object.

        Raises:
            TaddyAPIError: On a non-2xx response or a GraphQL `errors` payload.
            requests.RequestException: On transport failures.
            ValueError: If the response body is not valid JSON.
        """
        response = self._session.post(
            self.endpoint,
            json={"query": query, "variables": variables or {}},
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise TaddyAPIError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        payload = response.json()
        errors = payload.get("errors") or []
        if errors:
            messages = []
            for error in errors:
                code = (error.get("extensions") or {}).get("code")
                message = error.get("message", "Unknown GraphQL error")
                messages.append(f"{code}: {message}" if code else message)
            raise TaddyAPIError("; ".join(messages))

        return payload.get("data") or {}


class _TaddyClientBase(TranscriptProviderInterface):
    """Shared lookups and error handling for both Taddy tiers."""

    CREDITS_PER_CALL = 0

    SERIES_QUERY = """
        query GetPodcastSeries($rssUrl: String!) {
          getPodcastSeries(rssUrl: $rssUrl) {
            uuid
            name
            rssUrl
          }
        }
    """

    def __init__(
        self,
        api_key: str,
        user_id: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.graphql = TaddyGraphQLClient(
            api_key=api_key,
            user_id=user_id,
            endpoint=endpoint,
            timeout=timeout,
            session=session,
        )

    def fetch_transcript(self, feed_url: str, episode_guid: str) -> TranscriptProviderResult:
        logger.debug(f"Taddy {self.tier} lookup: feed={feed_url} guid={episode_guid}")
        try:
            result = self._fetch(feed_url, episode_guid)
        except (TaddyAPIError, requests.RequestException, ValueError) as e:
            return self._error_result(e)

        logger.debug(
            f"Taddy {self.tier} lookup completed: {result.kind.value} "
            f"(words={result.word_count}, credits={result.credits_consumed})"
        )
        return result

    @abstractmethod
    def _fetch(self, feed_url: str, episode_guid: str) -> TranscriptProviderResult:
        """Run the tier-specific lookups; may raise transport or API errors."""
        pass

    def _error_result(self, error: Exception) -> TranscriptProviderResult:
        status_code = getattr(error, "status_code", None)
        response = getattr(error, "response", None)
        if status_code is None and response is not None:
            status_code = response.status_code

        message = str(error)
        if is_quota_exhausted(message, status_code):
            logger.warning(f"Taddy {self.tier} quota exhausted: {message}")
            return TranscriptProviderResult.error(
                CREDITS_EXCEEDED, credits=0, quota_exhausted=True
            )

        logger.error(f"Taddy {self.tier} lookup failed: {message}")
        return TranscriptProviderResult.error(message, credits=0)

    def _lookup_series(self, feed_url: str) -> Optional[TaddySeries]:
        data = self.graphql.execute(self.SERIES_QUERY, {"rssUrl": feed_url})
        series = data.get("getPodcastSeries")
        return TaddySeries.model_validate(series) if series else None


class TaddyFreeClient(_TaddyClientBase):
    """Constrained tier: pre-existing transcripts only, no credits consumed."""

    tier = "constrained"

    EPISODE_QUERY = """
        query GetPodcastEpisode($guid: String!, $seriesUuidForLookup: ID!) {
          getPodcastEpisode(guid: $guid, seriesUuidForLookup: $seriesUuidForLookup) {
            uuid
            name
            guid
            transcripts {
              text
              isPartial
              wordCount
              percentComplete
            }
          }
        }
    """

    HEALTH_QUERY = "query { __typename }"

    def _fetch(self, feed_url: str, episode_guid: str) -> TranscriptProviderResult:
        series = self._lookup_series(feed_url)
        if series is None:
            logger.debug(f"No Taddy series for feed {feed_url}")
            return TranscriptProviderResult.no_match()

        data = self.graphql.execute(
            self.EPISODE_QUERY,
            {"guid": episode_guid, "seriesUuidForLookup": series.uuid},
        )
        raw_episode = data.get("getPodcastEpisode")
        if not raw_episode:
            logger.debug(f"No Taddy episode for GUID {episode_guid} in series {series.uuid}")
            return TranscriptProviderResult.no_match()

        episode = TaddyEpisode.model_validate(raw_episode)
        transcript = self._best_transcript(episode.transcripts or [])
        if transcript is None:
            return TranscriptProviderResult.no_transcript_found()

        word_count = transcript.wordCount or estimate_word_count(transcript.text)
        if transcript.isPartial:
            reason = None
            if transcript.percentComplete is not None:
                reason = f"{transcript.percentComplete:.0f}% complete"
            return TranscriptProviderResult.partial(transcript.text, word_count, reason=reason)
        return TranscriptProviderResult.full(transcript.text, word_count)

    @staticmethod
    def _best_transcript(transcripts: List[TaddyTranscript]) -> Optional[TaddyTranscript]:
        """Prefer complete transcripts, then the larger word count."""
        usable = [t for t in transcripts if t.text and t.text.strip()]
        if not usable:
            return None
        return sorted(
            usable,
            key=lambda t: (t.isPartial, -(t.wordCount or estimate_word_count(t.text))),
        )[0]

    def health_check(self) -> Dict[str, Any]:
        try:
            self.graphql.execute(self.HEALTH_QUERY)
            return {"connected": True, "tier": self.tier}
        except (TaddyAPIError, requests.RequestException, ValueError) as e:
            logger.error(f"Taddy free health check failed: {e}")
            return {"connected": False, "tier": self.tier, "error": str(e)}


class TaddyBusinessClient(_TaddyClientBase):
    """Full tier: may trigger on-demand generation, one credit per lookup."""

    tier = "full"
    CREDITS_PER_CALL = 1

    EPISODE_QUERY = """
        query GetPodcastEpisode($podcastUuid: ID!, $episodeGuid: String!) {
          getPodcastEpisode(podcastSeriesUuid: $podcastUuid, episodeGuid: $episodeGuid) {
            uuid
            name
            guid
            taddyTranscribeStatus
          }
        }
    """

    TRANSCRIPT_QUERY = """
        query GetEpisodeTranscript($episodeUuid: ID!) {
          getEpisodeTranscript(episodeUuid: $episodeUuid) {
            id
            text
            speaker
            startTimecode
            endTimecode
          }
        }
    """

    HEALTH_QUERY = """
        query HealthCheck {
          me {
            id
            myDeveloperDetails {
              isBusinessPlan
              allowedOnDemandTranscriptsLimit
              currentOnDemandTranscriptsUsage
            }
          }
        }
    """

    def _fetch(self, feed_url: str, episode_guid: str) -> TranscriptProviderResult:
        credits = self.CREDITS_PER_CALL

        series = self._lookup_series(feed_url)
        if series is None:
            logger.debug(f"No Taddy series for feed {feed_url}")
            return TranscriptProviderResult.no_match(credits=credits)

        data = self.graphql.execute(
            self.EPISODE_QUERY,
            {"podcastUuid": series.uuid, "episodeGuid": episode_guid},
        )
        raw_episode = data.get("getPodcastEpisode")
        if not raw_episode:
            logger.debug(f"No Taddy episode for GUID {episode_guid} in series {series.uuid}")
            return TranscriptProviderResult.no_match(credits=credits)
        episode = TaddyEpisode.model_validate(raw_episode)

        data = self.graphql.execute(self.TRANSCRIPT_QUERY, {"episodeUuid": episode.uuid})
        items = [
            TaddyTranscriptItem.model_validate(item)
            for item in (data.get("getEpisodeTranscript") or [])
        ]

        if episode.taddyTranscribeStatus == "PROCESSING":
            return TranscriptProviderResult.processing(credits=credits)
        if episode.taddyTranscribeStatus == "FAILED":
            logger.debug(f"Taddy transcription failed for episode {episode.uuid}")
            return TranscriptProviderResult.not_found(credits=credits)

        text = self._assemble_text(items)
        if not text:
            return TranscriptProviderResult.not_found(credits=credits)
        return TranscriptProviderResult.full(text, estimate_word_count(text), credits=credits)

    @staticmethod
    def _assemble_text(items: List[TaddyTranscriptItem]) -> str:
        lines = []
        for item in items:
            if not item.text or not item.text.strip():
                continue
            if item.speaker and item.speaker.strip():
                lines.append(f"{item.speaker}: {item.text}")
            else:
                lines.append(item.text)
        return "\n".join(lines).strip()

    def health_check(self) -> Dict[str, Any]:
        try:
            data = self.graphql.execute(self.HEALTH_QUERY)
        except (TaddyAPIError, requests.RequestException, ValueError) as e:
            logger.error(f"Taddy business health check failed: {e}")
            return {
                "connected": False,
                "tier": self.tier,
                "is_business_plan": False,
                "error": str(e),
            }

        details = (data.get("me") or {}).get("myDeveloperDetails") or {}
        return {
            "connected": True,
            "tier": self.tier,
            "is_business_plan": bool(details.get("isBusinessPlan")),
            "transcript_limit": details.get("allowedOnDemandTranscriptsLimit"),
            "transcript_usage": details.get("currentOnDemandTranscriptsUsage"),
        }
