"""Persistence adapter: transcript artifact first, then the database record.

Without `overwrite`, an episode that already has a live record is left alone
before anything is written to storage. The check and the upsert are separate
statements, so two runs racing on one episode without the run lock can still
both write the artifact; the upsert keeps exactly one record either way.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..db.models import Episode, TranscriptStatus
from ..db.repository import TranscriptRepositoryInterface
from ..storage import (
    StorageError,
    TranscriptStorageInterface,
    build_storage_path,
    encode_transcript,
)

logger = logging.getLogger(__name__)


def join_details(*parts: Optional[str]) -> Optional[str]:
    """Join non-empty error detail fragments with '; '."""
    joined = "; ".join(p for p in parts if p)
    return joined or None


@dataclass
class PersistOutcome:
    """What was actually recorded for an episode."""

    status: TranscriptStatus
    storage_path: str = ""
    word_count: Optional[int] = None
    error_details: Optional[str] = None
    written: bool = True


class TranscriptPersistence:
    """Writes transcript artifacts and upserts transcript records.

    For full/partial results the gzipped artifact is written before the record
    that references it. If the write fails the record is stored as `error`
    with an empty path instead.
    """

    def __init__(
        self,
        repository: TranscriptRepositoryInterface,
        storage: TranscriptStorageInterface,
    ):
        self.repository = repository
        self.storage = storage

    def persist(
        self,
        episode: Episode,
        status: TranscriptStatus,
        text: Optional[str] = None,
        word_count: Optional[int] = None,
        source: Optional[str] = None,
        error_details: Optional[str] = None,
        initial_status: Optional[TranscriptStatus] = None,
        overwrite: bool = False,
    ) -> PersistOutcome:
        """
        Store the terminal result of a transcript attempt.

        Parameters:
            episode (Episode): The episode the result belongs to.
            status (TranscriptStatus): Final status of the attempt.
            text (Optional[str]): Transcript text, required for full/partial.
            word_count (Optional[int]): Word count for full/partial.
            source (Optional[str]): "taddy" or "deepgram".
            error_details (Optional[str]): Diagnostic detail to record.
            initial_status (Optional[TranscriptStatus]): The provider's first status.
            overwrite (bool): Replace an existing live record (forced re-submission).

        Returns:
            PersistOutcome: The status, path and word count actually recorded.
        """
        if not overwrite and self.repository.has_existing_transcript(episode.id):
            logger.info(f"Episode {episode.id} already has a transcript record; left unchanged")
            return PersistOutcome(status=status, written=False)

        storage_path = ""
        if status.has_artifact:
            storage_path = build_storage_path(episode.show_id, episode.id)
            try:
                if not text:
                    raise StorageError(storage_path, "no transcript text to store")
                data = encode_transcript(
                    episode_id=episode.id,
                    show_id=episode.show_id,
                    text=text,
                    source=source or "",
                )
                self.storage.write_compressed_text(storage_path, data)
            except StorageError as e:
                logger.error(f"Transcript storage failed for episode {episode.id}: {e}")
                error_details = join_details(error_details, f"Storage write failed: {e}")
                status = TranscriptStatus.ERROR
                storage_path = ""

        if not status.has_artifact:
            word_count = None

        written = self.repository.upsert_transcript(
            episode_id=episode.id,
            status=status,
            storage_path=storage_path,
            word_count=word_count,
            source=source,
            error_details=error_details,
            initial_status=initial_status or status,
            overwrite=overwrite,
        )
        if not written:
            logger.info(f"Episode {episode.id} already has a transcript record; left unchanged")

        return PersistOutcome(
            status=status,
            storage_path=storage_path,
            word_count=word_count,
            error_details=error_details,
            written=written,
        )
