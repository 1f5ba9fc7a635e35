"""Base classes for workflow workers.

Defines the interface and common data structures used by the transcript worker.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ...db.models import TranscriptStatus

logger = logging.getLogger(__name__)


@dataclass
class EpisodeOutcome:
    """Terminal result of one transcript attempt.

    Attributes:
        episode_id: Episode that was processed.
        status: Final status recorded for the episode.
        initial_status: Status first reported by the transcript provider.
        source: Where the transcript came from ("taddy" or "deepgram").
        word_count: Word count for full/partial transcripts.
        storage_path: Artifact path, empty when nothing was stored.
        fallback_attempted: Whether the fallback service was called.
        fallback_succeeded: Whether the fallback produced the transcript.
        error_details: Diagnostic detail recorded with the episode.
        elapsed_ms: Wall-clock time spent on the episode.
    """

    episode_id: str
    status: TranscriptStatus
    initial_status: Optional[TranscriptStatus] = None
    source: Optional[str] = None
    word_count: Optional[int] = None
    storage_path: str = ""
    fallback_attempted: bool = False
    fallback_succeeded: bool = False
    error_details: Optional[str] = None
    elapsed_ms: int = 0


@dataclass
class RunSummary:
    """Result of a transcript worker run.

    Attributes:
        job_id: Identifier logged with every line of the run.
        total_candidates: Episodes returned by discovery.
        skipped: Candidates never dispatched because the quota ran out.
        quota_exhausted: Whether the provider reported quota exhaustion.
        lock_acquired: Result of the run lock, or None when locking is disabled.
        elapsed_ms: Wall-clock duration of the run.
        results: Per-episode outcomes in completion order.
    """

    job_id: str = ""
    total_candidates: int = 0
    skipped: int = 0
    quota_exhausted: bool = False
    lock_acquired: Optional[bool] = None
    elapsed_ms: int = 0
    results: List[EpisodeOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        """Number of candidates that reached a terminal status."""
        return len(self.results)

    @property
    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in TranscriptStatus}
        for outcome in self.results:
            counts[outcome.status.value] += 1
        return counts

    def count(self, status: TranscriptStatus) -> int:
        return self.status_counts[TranscriptStatus(status).value]

    @property
    def fallback_attempts(self) -> int:
        return sum(1 for r in self.results if r.fallback_attempted)

    @property
    def fallback_successes(self) -> int:
        return sum(1 for r in self.results if r.fallback_succeeded)

    @property
    def fallback_failures(self) -> int:
        return self.fallback_attempts - self.fallback_successes

    @property
    def average_processing_ms(self) -> float:
        if not self.results:
            return 0.0
        return sum(r.elapsed_ms for r in self.results) / len(self.results)

    def to_dict(self) -> Dict[str, Any]:
        """Flat, JSON-serializable view of the summary."""
        results = []
        for outcome in self.results:
            item = asdict(outcome)
            item["status"] = outcome.status.value
            item["initial_status"] = outcome.initial_status.value if outcome.initial_status else None
            results.append(item)
        return {
            "job_id": self.job_id,
            "total_candidates": self.total_candidates,
            "processed": self.processed,
            "skipped": self.skipped,
            "status_counts": self.status_counts,
            "fallback_attempts": self.fallback_attempts,
            "fallback_successes": self.fallback_successes,
            "fallback_failures": self.fallback_failures,
            "quota_exhausted": self.quota_exhausted,
            "lock_acquired": self.lock_acquired,
            "elapsed_ms": self.elapsed_ms,
            "average_processing_ms": round(self.average_processing_ms, 1),
            "results": results,
        }


class WorkerInterface(ABC):
    """Abstract base class for workflow workers.

    A worker queries the database for pending items, processes them and
    reports a RunSummary.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for this worker."""
        pass

    @abstractmethod
    def run(self) -> RunSummary:
        """Process pending items once.

        Returns:
            RunSummary with per-status counts and per-item outcomes.
        """
        pass

    def log_summary(self, summary: RunSummary) -> None:
        """Log the result of a run.

        Args:
            summary: The RunSummary to log.
        """
        if summary.total_candidates == 0:
            logger.info(f"[{self.name}] No items to process")
        else:
            counts = ", ".join(
                f"{status}: {count}" for status, count in summary.status_counts.items() if count
            )
            logger.info(
                f"[{self.name}] Processed: {summary.processed}/{summary.total_candidates}, "
                f"Skipped: {summary.skipped} ({counts or 'no results'})"
            )
            if summary.fallback_attempts:
                logger.info(
                    f"[{self.name}] Fallback attempts: {summary.fallback_attempts}, "
                    f"Succeeded: {summary.fallback_successes}, Failed: {summary.fallback_failures}"
                )

        if summary.quota_exhausted:
            logger.warning(f"[{self.name}] Run stopped early: provider quota exhausted")

        for outcome in summary.results:
            if outcome.status == TranscriptStatus.ERROR and outcome.error_details:
                logger.error(f"[{self.name}] {outcome.episode_id}: {outcome.error_details}")

        logger.info(
            f"[{self.name}] Job {summary.job_id} finished in {summary.elapsed_ms}ms "
            f"(avg {summary.average_processing_ms:.0f}ms per episode)"
        )
