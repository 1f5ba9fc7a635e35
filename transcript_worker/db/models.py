"""SQLAlchemy ORM models for shows, episodes and transcript records."""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class TranscriptStatus(str, Enum):
    """Terminal outcome of a transcript attempt, as persisted."""

    FULL = "full"
    PARTIAL = "partial"
    PROCESSING = "processing"
    NOT_FOUND = "not_found"
    NO_MATCH = "no_match"
    NO_TRANSCRIPT_FOUND = "no_transcript_found"
    ERROR = "error"

    @property
    def has_artifact(self) -> bool:
        """Whether records with this status carry a stored transcript file."""
        return self in (TranscriptStatus.FULL, TranscriptStatus.PARTIAL)


class TranscriptSource(str, Enum):
    """Where a stored transcript came from."""

    TADDY = "taddy"
    DEEPGRAM = "deepgram"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Show(Base):
    """Podcast show. Episodes inherit the show's RSS URL for provider lookups."""

    __tablename__ = "podcast_shows"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    rss_url: Mapped[Optional[str]] = mapped_column(String(2048))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    episodes: Mapped[List["Episode"]] = relationship(
        "Episode", back_populates="show", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Show(id={self.id}, title={self.title!r})>"


class Episode(Base):
    """Podcast episode, created by feed ingestion and read-only to the worker."""

    __tablename__ = "podcast_episodes"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    show_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("podcast_shows.id", ondelete="CASCADE"), nullable=False
    )

    # Provider correlation GUID from the RSS item
    guid: Mapped[Optional[str]] = mapped_column(String(2048))

    title: Mapped[Optional[str]] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Direct audio URL (RSS enclosure), used by the Deepgram fallback
    episode_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    pub_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    duration_sec: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    show: Mapped["Show"] = relationship("Show", back_populates="episodes")

    __table_args__ = (
        Index("ix_podcast_episodes_show_id", "show_id"),
        Index("ix_podcast_episodes_pub_date", "pub_date"),
    )

    def __repr__(self) -> str:
        return f"<Episode(id={self.id}, title={self.title!r})>"


class Transcript(Base):
    """Transcript record, at most one live row per episode.

    `storage_path` is non-empty only for full/partial transcripts and is empty
    otherwise; `word_count` follows the same rule. Soft-deleted rows keep their
    episode_id and are revived by the next upsert.
    """

    __tablename__ = "transcripts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    episode_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("podcast_episodes.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )

    initial_status: Mapped[str] = mapped_column(String(32), nullable=False)
    current_status: Mapped[str] = mapped_column(String(32), nullable=False)
    storage_path: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    word_count: Mapped[Optional[int]] = mapped_column(Integer)
    source: Mapped[Optional[str]] = mapped_column(String(32))  # taddy, deepgram
    error_details: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    episode: Mapped["Episode"] = relationship("Episode")

    __table_args__ = (
        Index("ix_transcripts_current_status", "current_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transcript(episode_id={self.episode_id}, "
            f"status={self.current_status!r})>"
        )

    @property
    def status(self) -> str:
        """Current status of the record."""
        return self.current_status

    @property
    def is_live(self) -> bool:
        return self.deleted_at is None


class WorkerLock(Base):
    """Named run lock used where PostgreSQL advisory locks are unavailable."""

    __tablename__ = "worker_locks"

    name: Mapped[str] = mapped_column(String(128), primary_key=True)
    acquired_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<WorkerLock(name={self.name!r})>"
