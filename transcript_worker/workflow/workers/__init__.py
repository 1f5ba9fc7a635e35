"""Workflow workers.

- TranscriptWorker: fetches transcripts for recent episodes, with Deepgram fallback
"""

from .base import EpisodeOutcome, RunSummary, WorkerInterface
from .transcript import TranscriptWorker

__all__ = [
    "EpisodeOutcome",
    "RunSummary",
    "TranscriptWorker",
    "WorkerInterface",
]
