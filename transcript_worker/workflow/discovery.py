"""Candidate discovery for transcript runs."""

import logging
from datetime import UTC, datetime, timedelta
from typing import List, Optional

from ..db.models import Episode
from ..db.repository import TranscriptRepositoryInterface
from .config import TranscriptWorkerConfig

logger = logging.getLogger(__name__)


class EpisodeDiscovery:
    """Selects the episodes a run will process, newest first.

    Normal mode returns eligible episodes published within the lookback
    window that have no live transcript, capped at `max_requests`. Forced
    re-submission ignores both the window and existing records and returns
    the `force_resubmit_count` most recent eligible episodes (still capped
    at `max_requests`).
    """

    def __init__(self, repository: TranscriptRepositoryInterface, config: TranscriptWorkerConfig):
        self.repository = repository
        self.config = config

    def find_candidates(self, now: Optional[datetime] = None) -> List[Episode]:
        if self.config.force_resubmit:
            candidates = self.repository.fetch_candidate_episodes(
                limit=self.config.candidate_limit,
                include_transcribed=True,
            )
            logger.info(
                f"Forced re-submission: selected {len(candidates)} most recent episodes "
                f"(requested {self.config.force_resubmit_count})"
            )
            return candidates

        now = now or datetime.now(UTC)
        # pub_date is stored as naive UTC
        published_after = (now - timedelta(hours=self.config.lookback_hours)).replace(tzinfo=None)
        candidates = self.repository.fetch_candidate_episodes(
            limit=self.config.candidate_limit,
            published_after=published_after,
        )
        logger.info(
            f"Found {len(candidates)} episodes needing transcripts "
            f"(last {self.config.lookback_hours}h, cap {self.config.max_requests})"
        )
        return candidates
