"""Database module for transcript worker persistence.

Provides:
- SQLAlchemy ORM models (Show, Episode, Transcript, WorkerLock)
- Repository interface and implementation
- Factory functions for creating repositories
"""

from .factory import create_repository, create_repository_from_config
from .models import (
    Base,
    Episode,
    Show,
    Transcript,
    TranscriptSource,
    TranscriptStatus,
    WorkerLock,
)
from .repository import SQLAlchemyTranscriptRepository, TranscriptRepositoryInterface

__all__ = [
    "Base",
    "Show",
    "Episode",
    "Transcript",
    "TranscriptSource",
    "TranscriptStatus",
    "WorkerLock",
    "TranscriptRepositoryInterface",
    "SQLAlchemyTranscriptRepository",
    "create_repository",
    "create_repository_from_config",
]
