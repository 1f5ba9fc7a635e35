"""Repository pattern implementation for transcript worker persistence.

Provides an abstract interface and SQLAlchemy implementation for the store
operations the transcript worker relies on: candidate discovery, transcript
upserts and run-level locking. Supports both SQLite (local development and
tests) and PostgreSQL (production).
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import create_engine, delete, func, select, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload, sessionmaker

from .models import Base, Episode, Show, Transcript, TranscriptStatus, WorkerLock

logger = logging.getLogger(__name__)

# Table locks older than this are treated as left behind by a dead run
DEFAULT_LOCK_TTL_SECONDS = 6 * 60 * 60


def _utcnow() -> datetime:
    # Columns are naive DateTime; store UTC without tzinfo.
    return datetime.now(UTC).replace(tzinfo=None)


class TranscriptRepositoryInterface(ABC):
    """Abstract interface for transcript worker persistence.

    Implementations must support both SQLite and PostgreSQL backends.
    """

    # --- Show / Episode Operations ---

    @abstractmethod
    def create_show(self, title: str, rss_url: Optional[str], **kwargs) -> Show:
        """
        Create and persist a show.

        Parameters:
            title (str): Display title of the show.
            rss_url (Optional[str]): RSS feed URL used for provider lookups.
            **kwargs: Additional Show attributes to set.

        Returns:
            Show: The persisted Show instance.
        """
        pass

    @abstractmethod
    def get_show(self, show_id: str) -> Optional[Show]:
        """Retrieve a show by its identifier, or `None` if it does not exist."""
        pass

    @abstractmethod
    def create_episode(
        self,
        show_id: str,
        episode_url: str,
        guid: Optional[str] = None,
        **kwargs,
    ) -> Episode:
        """
        Create and persist an episode for the given show.

        Parameters:
            show_id (str): ID of the owning show.
            episode_url (str): Direct audio URL of the episode.
            guid (Optional[str]): RSS GUID used to correlate with the transcript provider.
            **kwargs: Optional attributes such as `title`, `pub_date`, `duration_sec`.

        Returns:
            Episode: The newly created Episode instance.
        """
        pass

    @abstractmethod
    def get_episode(self, episode_id: str) -> Optional[Episode]:
        """Retrieve an episode (with its show loaded), or `None` if it does not exist."""
        pass

    @abstractmethod
    def fetch_candidate_episodes(
        self,
        limit: int,
        published_after: Optional[datetime] = None,
        include_transcribed: bool = False,
    ) -> List[Episode]:
        """
        Return episodes eligible for transcript acquisition, newest first.

        Eligible episodes have a non-empty GUID and belong to a show with a non-empty RSS URL.

        Parameters:
            limit (int): Maximum number of episodes to return.
            published_after (Optional[datetime]): If provided, only episodes published at or after this time.
            include_transcribed (bool): If False, episodes with a live transcript record are excluded.

        Returns:
            List[Episode]: Episodes ordered by `pub_date` descending with `show` loaded.
        """
        pass

    # --- Transcript Operations ---

    @abstractmethod
    def has_existing_transcript(self, episode_id: str) -> bool:
        """Return True if the episode has a live (not soft-deleted) transcript record."""
        pass

    @abstractmethod
    def upsert_transcript(
        self,
        episode_id: str,
        status: TranscriptStatus,
        storage_path: str = "",
        word_count: Optional[int] = None,
        source: Optional[str] = None,
        error_details: Optional[str] = None,
        initial_status: Optional[TranscriptStatus] = None,
        overwrite: bool = False,
    ) -> bool:
        """
        Insert a transcript record, or overwrite the existing one.

        A soft-deleted record is always revived. A live record is only replaced
        when `overwrite` is True; otherwise the write is skipped.

        Parameters:
            episode_id (str): Episode the record belongs to.
            status (TranscriptStatus): Final (current) status.
            storage_path (str): Artifact path, required for full/partial and empty otherwise.
            word_count (Optional[int]): Word count, required for full/partial and None otherwise.
            source (Optional[str]): "taddy" or "deepgram".
            error_details (Optional[str]): Diagnostic detail.
            initial_status (Optional[TranscriptStatus]): First status observed; defaults to `status`.
            overwrite (bool): Replace an existing live record.

        Returns:
            bool: True if the record was written, False if an existing live record was kept.

        Raises:
            ValueError: If the status, storage path and word count are inconsistent.
        """
        pass

    @abstractmethod
    def get_transcript(
        self, episode_id: str, include_deleted: bool = False
    ) -> Optional[Transcript]:
        """Retrieve the transcript record for an episode."""
        pass

    @abstractmethod
    def list_transcripts(
        self, status: Optional[TranscriptStatus] = None, limit: Optional[int] = None
    ) -> List[Transcript]:
        """List live transcript records, optionally filtered by current status."""
        pass

    @abstractmethod
    def soft_delete_transcript(self, episode_id: str) -> bool:
        """Mark the live transcript record of an episode as deleted."""
        pass

    @abstractmethod
    def get_transcript_stats(self) -> Dict[str, Any]:
        """Return counts of live transcript records per current status plus a total."""
        pass

    # --- Run Locking ---

    @abstractmethod
    def try_acquire_lock(self, name: str) -> bool:
        """
        Try to acquire a named run lock without blocking.

        Returns:
            bool: True if acquired, False if another holder has it.

        Raises:
            sqlalchemy.exc.SQLAlchemyError: If the lock service itself is unreachable.
        """
        pass

    @abstractmethod
    def release_lock(self, name: str) -> None:
        """Release a named run lock previously acquired by this repository."""
        pass

    # --- Connection Management ---

    @abstractmethod
    def close(self) -> None:
        """Dispose the engine and release database connections."""
        pass


class SQLAlchemyTranscriptRepository(TranscriptRepositoryInterface):
    """SQLAlchemy-based implementation of the transcript repository.

    Supports SQLite for local development and PostgreSQL for production.
    On PostgreSQL, run locks are session-level advisory locks held on a
    dedicated connection; elsewhere they are rows in `worker_locks`.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
        create_tables: bool = False,
        lock_ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS,
    ):
        """
        Initialize the repository and configure its SQLAlchemy engine and session factory.

        Parameters:
            database_url (str): SQLAlchemy-compatible database URL.
            pool_size (int): Connection pool size for non-SQLite databases.
            max_overflow (int): Maximum overflow connections for non-SQLite databases.
            echo (bool): If true, enable SQLAlchemy SQL statement logging.
            create_tables (bool): If true, create missing tables (development and tests).
            lock_ttl_seconds (int): Age after which a table lock row is considered stale and may be taken over.
        """
        self.database_url = database_url

        # SQLite doesn't support connection pooling
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=echo,
            )

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        if create_tables:
            Base.metadata.create_all(self.engine)

        self.lock_ttl_seconds = lock_ttl_seconds
        self._lock_connections: Dict[str, Connection] = {}
        self._lock_guard = threading.Lock()

        logger.info(f"Database initialized: {database_url.split('@')[-1] if '@' in database_url else database_url}")

    def _get_session(self) -> Session:
        """Obtain a new SQLAlchemy session bound to the repository's engine."""
        return self.SessionLocal()

    @property
    def _uses_advisory_locks(self) -> bool:
        return self.engine.dialect.name == "postgresql"

    # --- Show / Episode Operations ---

    def create_show(self, title: str, rss_url: Optional[str], **kwargs) -> Show:
        with self._get_session() as session:
            show = Show(title=title, rss_url=rss_url, **kwargs)
            session.add(show)
            session.commit()
            session.refresh(show)
            logger.info(f"Created show: {title} ({show.id})")
            return show

    def get_show(self, show_id: str) -> Optional[Show]:
        with self._get_session() as session:
            return session.get(Show, show_id)

    def create_episode(
        self,
        show_id: str,
        episode_url: str,
        guid: Optional[str] = None,
        **kwargs,
    ) -> Episode:
        with self._get_session() as session:
            episode = Episode(
                show_id=show_id,
                episode_url=episode_url,
                guid=guid,
                **kwargs,
            )
            session.add(episode)
            session.commit()
            session.refresh(episode)
            logger.debug(f"Created episode: {episode.title} ({episode.id})")
            return episode

    def get_episode(self, episode_id: str) -> Optional[Episode]:
        with self._get_session() as session:
            stmt = (
                select(Episode)
                .options(joinedload(Episode.show))
                .where(Episode.id == episode_id)
            )
            return session.scalars(stmt).unique().first()

    def fetch_candidate_episodes(
        self,
        limit: int,
        published_after: Optional[datetime] = None,
        include_transcribed: bool = False,
    ) -> List[Episode]:
        """
        Return eligible episodes newest first.

        Episodes need a non-empty GUID and a show with a non-empty RSS URL.
        Unless `include_transcribed` is set, episodes with a live transcript
        record are excluded in the same query.
        """
        with self._get_session() as session:
            stmt = (
                select(Episode)
                .join(Show, Episode.show_id == Show.id)
                .options(joinedload(Episode.show))
                .where(
                    Show.rss_url.isnot(None),
                    Show.rss_url != "",
                    Episode.guid.isnot(None),
                    Episode.guid != "",
                )
            )
            if published_after is not None:
                stmt = stmt.where(Episode.pub_date >= published_after)
            if not include_transcribed:
                live_transcripts = select(Transcript.episode_id).where(
                    Transcript.deleted_at.is_(None)
                )
                stmt = stmt.where(Episode.id.not_in(live_transcripts))
            stmt = stmt.order_by(Episode.pub_date.desc()).limit(limit)
            return list(session.scalars(stmt).unique().all())

    # --- Transcript Operations ---

    def has_existing_transcript(self, episode_id: str) -> bool:
        with self._get_session() as session:
            stmt = select(func.count(Transcript.id)).where(
                Transcript.episode_id == episode_id,
                Transcript.deleted_at.is_(None),
            )
            return (session.scalar(stmt) or 0) > 0

    @staticmethod
    def _check_record(
        status: TranscriptStatus, storage_path: str, word_count: Optional[int]
    ) -> None:
        """Enforce the status/artifact coupling before anything is written."""
        if status.has_artifact:
            if not storage_path:
                raise ValueError(f"Transcript status '{status.value}' requires a storage path")
            if word_count is None:
                raise ValueError(f"Transcript status '{status.value}' requires a word count")
        else:
            if storage_path:
                raise ValueError(
                    f"Transcript status '{status.value}' must not reference a storage path"
                )
            if word_count is not None:
                raise ValueError(
                    f"Transcript status '{status.value}' must not carry a word count"
                )

    @staticmethod
    def _apply_record(
        transcript: Transcript,
        status: TranscriptStatus,
        initial_status: TranscriptStatus,
        storage_path: str,
        word_count: Optional[int],
        source: Optional[str],
        error_details: Optional[str],
    ) -> None:
        transcript.initial_status = initial_status.value
        transcript.current_status = status.value
        transcript.storage_path = storage_path
        transcript.word_count = word_count
        transcript.source = source
        transcript.error_details = error_details
        transcript.deleted_at = None
        transcript.updated_at = _utcnow()

    def upsert_transcript(
        self,
        episode_id: str,
        status: TranscriptStatus,
        storage_path: str = "",
        word_count: Optional[int] = None,
        source: Optional[str] = None,
        error_details: Optional[str] = None,
        initial_status: Optional[TranscriptStatus] = None,
        overwrite: bool = False,
    ) -> bool:
        status = TranscriptStatus(status)
        initial_status = TranscriptStatus(initial_status or status)
        self._check_record(status, storage_path, word_count)

        with self._get_session() as session:
            stmt = select(Transcript).where(Transcript.episode_id == episode_id)
            existing = session.scalar(stmt)

            if existing is None:
                transcript = Transcript(episode_id=episode_id)
                self._apply_record(
                    transcript, status, initial_status, storage_path,
                    word_count, source, error_details,
                )
                session.add(transcript)
                try:
                    session.commit()
                    logger.debug(
                        f"Inserted transcript for episode {episode_id}: {status.value}"
                    )
                    return True
                except IntegrityError:
                    # Another writer inserted the row between our read and write
                    session.rollback()
                    existing = session.scalar(stmt)
                    if existing is None:
                        raise

            if existing.deleted_at is None and not overwrite:
                logger.debug(
                    f"Transcript already exists for episode {episode_id} - skipping"
                )
                return False

            self._apply_record(
                existing, status, initial_status, storage_path,
                word_count, source, error_details,
            )
            session.commit()
            logger.debug(
                f"Overwrote transcript for episode {episode_id}: {status.value}"
            )
            return True

    def get_transcript(
        self, episode_id: str, include_deleted: bool = False
    ) -> Optional[Transcript]:
        with self._get_session() as session:
            stmt = select(Transcript).where(Transcript.episode_id == episode_id)
            if not include_deleted:
                stmt = stmt.where(Transcript.deleted_at.is_(None))
            return session.scalar(stmt)

    def list_transcripts(
        self, status: Optional[TranscriptStatus] = None, limit: Optional[int] = None
    ) -> List[Transcript]:
        with self._get_session() as session:
            stmt = select(Transcript).where(Transcript.deleted_at.is_(None))
            if status is not None:
                stmt = stmt.where(
                    Transcript.current_status == TranscriptStatus(status).value
                )
            stmt = stmt.order_by(Transcript.updated_at.desc())
            if limit:
                stmt = stmt.limit(limit)
            return list(session.scalars(stmt).all())

    def soft_delete_transcript(self, episode_id: str) -> bool:
        with self._get_session() as session:
            stmt = select(Transcript).where(
                Transcript.episode_id == episode_id,
                Transcript.deleted_at.is_(None),
            )
            transcript = session.scalar(stmt)
            if transcript is None:
                return False
            transcript.deleted_at = _utcnow()
            session.commit()
            logger.info(f"Soft-deleted transcript for episode {episode_id}")
            return True

    def get_transcript_stats(self) -> Dict[str, Any]:
        with self._get_session() as session:
            stmt = (
                select(Transcript.current_status, func.count(Transcript.id))
                .where(Transcript.deleted_at.is_(None))
                .group_by(Transcript.current_status)
            )
            counts = {status.value: 0 for status in TranscriptStatus}
            for status, count in session.execute(stmt).all():
                counts[status] = count
            counts["total"] = sum(counts.values())
            return counts

    # --- Run Locking ---

    def try_acquire_lock(self, name: str) -> bool:
        if self._uses_advisory_locks:
            return self._try_advisory_lock(name)
        return self._try_table_lock(name)

    def release_lock(self, name: str) -> None:
        if self._uses_advisory_locks:
            self._release_advisory_lock(name)
        else:
            self._release_table_lock(name)

    def _try_advisory_lock(self, name: str) -> bool:
        with self._lock_guard:
            if name in self._lock_connections:
                return False

            # Session-level advisory locks belong to the connection that took
            # them, so the connection stays checked out until release.
            conn = self.engine.connect()
            try:
                acquired = bool(
                    conn.execute(
                        text("SELECT pg_try_advisory_lock(hashtext(:name))"),
                        {"name": name},
                    ).scalar()
                )
                conn.commit()
            except Exception:
                conn.close()
                raise

            if acquired:
                self._lock_connections[name] = conn
            else:
                conn.close()

            logger.debug(f"Advisory lock {name!r} {'acquired' if acquired else 'not acquired'}")
            return acquired

    def _release_advisory_lock(self, name: str) -> None:
        with self._lock_guard:
            conn = self._lock_connections.pop(name, None)
        if conn is None:
            logger.warning(f"Advisory lock {name!r} is not held by this repository")
            return
        try:
            conn.execute(
                text("SELECT pg_advisory_unlock(hashtext(:name))"), {"name": name}
            )
            conn.commit()
            logger.debug(f"Advisory lock {name!r} released")
        finally:
            conn.close()

    def _try_table_lock(self, name: str) -> bool:
        """Insert the lock row, first clearing a stale row in the same transaction.

        Unlike an advisory lock, a row is not freed when its holder dies, so a
        row older than `lock_ttl_seconds` is taken over.
        """
        now = _utcnow()
        cutoff = now - timedelta(seconds=self.lock_ttl_seconds)
        with self._get_session() as session:
            stale = session.execute(
                delete(WorkerLock).where(
                    WorkerLock.name == name,
                    WorkerLock.acquired_at < cutoff,
                )
            )
            session.add(WorkerLock(name=name, acquired_at=now))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.debug(f"Table lock {name!r} not acquired")
                return False
        if stale.rowcount:
            logger.warning(
                f"Took over stale table lock {name!r} "
                f"(held for more than {self.lock_ttl_seconds}s)"
            )
        logger.debug(f"Table lock {name!r} acquired")
        return True

    def _release_table_lock(self, name: str) -> None:
        with self._get_session() as session:
            lock = session.get(WorkerLock, name)
            if lock is None:
                logger.warning(f"Table lock {name!r} was not held")
                return
            session.delete(lock)
            session.commit()
        logger.debug(f"Table lock {name!r} released")

    # --- Connection Management ---

    def close(self) -> None:
        """
        Dispose the SQLAlchemy engine and release database connections and resources.

        Any advisory-lock connections still held are closed first, which also
        releases their locks on the server.
        """
        with self._lock_guard:
            held = list(self._lock_connections.values())
            self._lock_connections.clear()
        for conn in held:
            conn.close()
        self.engine.dispose()
        logger.info("Database connection closed")
