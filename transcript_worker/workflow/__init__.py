"""Transcript acquisition workflow.

Run configuration, candidate discovery, persistence and the transcript
worker that ties them together.
"""

from .config import ConfigurationError, TranscriptWorkerConfig
from .runner import run_transcript_worker
from .state import RunState
from .workers.base import RunSummary, WorkerInterface
from .workers.transcript import TranscriptWorker

__all__ = [
    "ConfigurationError",
    "RunState",
    "RunSummary",
    "TranscriptWorker",
    "TranscriptWorkerConfig",
    "WorkerInterface",
    "run_transcript_worker",
]
