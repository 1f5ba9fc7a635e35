"""Transcript worker: discovers episodes and acquires their transcripts.

For each candidate the worker asks the configured Taddy tier for a
transcript, optionally falls back to Deepgram speech-to-text, and persists
the terminal result. Candidates are processed by a fixed-size thread pool
pulling from a shared queue. A provider quota error stops further dispatch
for the rest of the run; work already in flight finishes normally.
"""

import logging
import queue
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ...db.models import Episode, TranscriptSource, TranscriptStatus
from ...db.repository import TranscriptRepositoryInterface
from ...providers.base import (
    TranscriptProviderInterface,
    TranscriptProviderResult,
    estimate_word_count,
)
from ...providers.deepgram_fallback import DeepgramFallbackService
from ...storage import TranscriptStorageInterface
from ..config import TranscriptWorkerConfig
from ..discovery import EpisodeDiscovery
from ..persistence import PersistOutcome, TranscriptPersistence, join_details
from ..state import RunState
from .base import EpisodeOutcome, RunSummary, WorkerInterface

logger = logging.getLogger(__name__)

LOCK_NAME = "transcript_worker"


def new_job_id() -> str:
    return f"transcript-worker-{datetime.now(UTC).isoformat()}"


class TranscriptWorker(WorkerInterface):
    """Worker that fetches transcripts for recent episodes.

    Example:
        worker = TranscriptWorker(
            config=TranscriptWorkerConfig.from_env(),
            repository=repo,
            provider=create_provider("full", app_config),
            storage=create_storage(app_config),
            fallback_service=create_fallback_service(app_config, 500),
        )
        summary = worker.run()
    """

    def __init__(
        self,
        config: TranscriptWorkerConfig,
        repository: TranscriptRepositoryInterface,
        provider: TranscriptProviderInterface,
        storage: TranscriptStorageInterface,
        fallback_service: Optional[DeepgramFallbackService] = None,
        state: Optional[RunState] = None,
        lock_name: str = LOCK_NAME,
    ):
        """Initialize the transcript worker.

        Args:
            config: Validated run configuration.
            repository: Database repository for episodes, transcripts and locks.
            provider: Transcript provider for the configured tier.
            storage: Object storage for transcript artifacts.
            fallback_service: Deepgram fallback, or None to never fall back.
            state: Shared run state; a new one is created when omitted.
            lock_name: Name of the run lock.
        """
        self.config = config
        self.repository = repository
        self.provider = provider
        self.fallback_service = fallback_service
        self.state = state or RunState()
        self.lock_name = lock_name
        self.discovery = EpisodeDiscovery(repository, config)
        self.persistence = TranscriptPersistence(repository, storage)

        if config.enable_fallback and fallback_service is None:
            logger.warning("Fallback is enabled but no fallback service is configured")

    @property
    def name(self) -> str:
        """Human-readable name for this worker."""
        return "Transcript"

    def run(self, job_id: Optional[str] = None) -> RunSummary:
        """Run the worker once.

        Acquires the run lock (when enabled), discovers candidates, processes
        them through the worker pool and releases the lock on every exit path.
        Failing to get the lock is a no-op run, not an error.

        Args:
            job_id: Identifier for log correlation; generated when omitted.

        Returns:
            RunSummary for this run.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If the lock service is unreachable.
        """
        self.state.reset()
        summary = RunSummary(job_id=job_id or new_job_id())
        start_time = time.monotonic()

        mode = "forced re-submission" if self.config.force_resubmit else "normal"
        logger.info(
            f"[{summary.job_id}] Starting transcript worker ({mode} mode, "
            f"tier={self.config.tier}, concurrency={self.config.concurrency})"
        )
        logger.debug(f"[{summary.job_id}] Configuration: {self.config.config_summary()}")

        if self.config.use_advisory_lock:
            summary.lock_acquired = self.repository.try_acquire_lock(self.lock_name)
            if not summary.lock_acquired:
                logger.warning(
                    f"[{summary.job_id}] Lock {self.lock_name!r} is held by another run - skipping"
                )
                summary.elapsed_ms = int((time.monotonic() - start_time) * 1000)
                self.log_summary(summary)
                return summary

        try:
            candidates = self.discovery.find_candidates()
            summary.total_candidates = len(candidates)
            if candidates:
                summary.results = self._process_candidates(summary.job_id, candidates)
            summary.skipped = summary.total_candidates - summary.processed
        finally:
            if summary.lock_acquired:
                self._release_lock(summary.job_id)
            summary.quota_exhausted = self.state.quota_exhausted
            summary.elapsed_ms = int((time.monotonic() - start_time) * 1000)

        self.log_summary(summary)
        return summary

    def _release_lock(self, job_id: str) -> None:
        try:
            self.repository.release_lock(self.lock_name)
        except SQLAlchemyError:
            logger.exception(f"[{job_id}] Failed to release lock {self.lock_name!r}")

    def _process_candidates(self, job_id: str, candidates: List[Episode]) -> List[EpisodeOutcome]:
        """Fan candidates out to `concurrency` workers pulling from one queue."""
        pending: "queue.Queue[Episode]" = queue.Queue()
        for episode in candidates:
            pending.put(episode)

        pool_size = min(self.config.concurrency, len(candidates))
        results: List[EpisodeOutcome] = []
        with ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="transcript") as executor:
            futures = [
                executor.submit(self._worker_loop, job_id, pending) for _ in range(pool_size)
            ]
            for future in futures:
                results.extend(future.result())

        if self.state.quota_exhausted and not pending.empty():
            logger.warning(
                f"[{job_id}] Quota exhausted - {pending.qsize()} episodes were not dispatched"
            )
        return results

    def _worker_loop(self, job_id: str, pending: "queue.Queue[Episode]") -> List[EpisodeOutcome]:
        outcomes = []
        while not self.state.quota_exhausted:
            try:
                episode = pending.get_nowait()
            except queue.Empty:
                break
            outcomes.append(self._process_episode(job_id, episode))
        return outcomes

    def _process_episode(self, job_id: str, episode: Episode) -> EpisodeOutcome:
        """Run provider call, optional fallback and persistence for one episode.

        Never raises: unexpected failures are recorded as `error`.
        """
        start_time = time.monotonic()
        try:
            outcome = self._transcribe_episode(job_id, episode)
        except Exception as e:
            logger.exception(f"[{job_id}] Unexpected error processing episode {episode.id}")
            outcome = self._record_failure(job_id, episode, e)

        outcome.elapsed_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            f"[{job_id}] Episode {episode.id}: {outcome.status.value} "
            f"(words={outcome.word_count}, {outcome.elapsed_ms}ms, "
            f"path={outcome.storage_path or '-'})"
        )
        return outcome

    def _transcribe_episode(self, job_id: str, episode: Episode) -> EpisodeOutcome:
        result = self.provider.fetch_transcript(episode.show.rss_url, episode.guid)

        if result.quota_exhausted and self.state.mark_quota_exhausted():
            logger.warning(
                f"[{job_id}] Provider quota exhausted on episode {episode.id} - "
                f"no further episodes will be dispatched"
            )

        if self._is_fallback_eligible(result):
            if self.state.try_reserve_fallback(self.config.max_fallbacks_per_run):
                return self._attempt_fallback(job_id, episode, result)
            logger.warning(
                f"[{job_id}] Fallback budget of {self.config.max_fallbacks_per_run} "
                f"exhausted - keeping {result.kind.value} for episode {episode.id}"
            )

        persisted = self.persistence.persist(
            episode,
            status=result.kind,
            text=result.text,
            word_count=result.word_count,
            source=TranscriptSource.TADDY.value,
            error_details=result.message if result.kind == TranscriptStatus.ERROR else None,
            initial_status=result.kind,
            overwrite=self.config.force_resubmit,
        )
        return self._outcome(episode, result, persisted, TranscriptSource.TADDY.value)

    def _is_fallback_eligible(self, result: TranscriptProviderResult) -> bool:
        """Fallback applies to configured statuses only, and never to quota errors."""
        return (
            self.config.enable_fallback
            and self.fallback_service is not None
            and not result.quota_exhausted
            and result.kind.value in self.config.fallback_statuses
        )

    def _attempt_fallback(
        self, job_id: str, episode: Episode, result: TranscriptProviderResult
    ) -> EpisodeOutcome:
        logger.info(
            f"[{job_id}] Attempting Deepgram fallback for episode {episode.id} "
            f"(provider status: {result.kind.value})"
        )
        fallback = self.fallback_service.transcribe_from_url(episode.episode_url)

        if fallback.success:
            persisted = self.persistence.persist(
                episode,
                status=TranscriptStatus.FULL,
                text=fallback.transcript,
                word_count=estimate_word_count(fallback.transcript),
                source=TranscriptSource.DEEPGRAM.value,
                error_details=result.message,
                initial_status=result.kind,
                overwrite=self.config.force_resubmit,
            )
            stored = persisted.status == TranscriptStatus.FULL
            source = TranscriptSource.DEEPGRAM.value if stored else TranscriptSource.TADDY.value
            outcome = self._outcome(episode, result, persisted, source)
            outcome.fallback_attempted = True
            outcome.fallback_succeeded = stored
            return outcome

        logger.warning(
            f"[{job_id}] Deepgram fallback failed for episode {episode.id}: {fallback.error}"
        )
        provider_detail = f"Taddy: {result.message or result.kind.value}"
        persisted = self.persistence.persist(
            episode,
            status=result.kind,
            source=TranscriptSource.TADDY.value,
            error_details=join_details(provider_detail, f"Deepgram: {fallback.error}"),
            initial_status=result.kind,
            overwrite=self.config.force_resubmit,
        )
        outcome = self._outcome(episode, result, persisted, TranscriptSource.TADDY.value)
        outcome.fallback_attempted = True
        return outcome

    @staticmethod
    def _outcome(
        episode: Episode,
        result: TranscriptProviderResult,
        persisted: PersistOutcome,
        source: str,
    ) -> EpisodeOutcome:
        return EpisodeOutcome(
            episode_id=episode.id,
            status=persisted.status,
            initial_status=result.kind,
            source=source,
            word_count=persisted.word_count,
            storage_path=persisted.storage_path,
            error_details=persisted.error_details,
        )

    def _record_failure(self, job_id: str, episode: Episode, error: Exception) -> EpisodeOutcome:
        """Best-effort `error` record after an unexpected exception."""
        details = f"Unexpected error: {error}"
        try:
            self.persistence.persist(
                episode,
                status=TranscriptStatus.ERROR,
                source=TranscriptSource.TADDY.value,
                error_details=details,
                overwrite=self.config.force_resubmit,
            )
        except Exception:
            logger.exception(f"[{job_id}] Failed to record error for episode {episode.id}")
        return EpisodeOutcome(
            episode_id=episode.id,
            status=TranscriptStatus.ERROR,
            source=TranscriptSource.TADDY.value,
            error_details=details,
        )
