"""
Pytest configuration and fixtures for transcript worker tests.

This module runs before any test imports, setting up the test environment.
Worker-related environment variables are cleared so configuration defaults
are deterministic regardless of the machine the tests run on.
"""

import itertools
import os
import threading
from datetime import UTC, datetime, timedelta

import pytest

from transcript_worker.db.factory import create_repository
from transcript_worker.providers.base import (
    TranscriptProviderInterface,
    TranscriptProviderResult,
)
from transcript_worker.providers.deepgram_fallback import FallbackResult
from transcript_worker.storage import StorageError, TranscriptStorageInterface

_WORKER_ENV_VARS = [
    "TRANSCRIPT_WORKER_ENABLED",
    "TRANSCRIPT_WORKER_CRON",
    "TRANSCRIPT_TIER",
    "TRANSCRIPT_LOOKBACK",
    "TRANSCRIPT_MAX_REQUESTS",
    "TRANSCRIPT_CONCURRENCY",
    "TRANSCRIPT_ADVISORY_LOCK",
    "TRANSCRIPT_WORKER_L10",
    "TRANSCRIPT_WORKER_L10_COUNT",
    "DEEPGRAM_FALLBACK_ENABLED",
    "DISABLE_DEEPGRAM_FALLBACK",
    "DEEPGRAM_FALLBACK_STATUSES",
    "DEEPGRAM_MAX_FALLBACKS_PER_RUN",
    "DEEPGRAM_MAX_FILE_SIZE_MB",
    "DEEPGRAM_API_KEY",
    "TADDY_API_KEY",
    "TADDY_USER_ID",
    "TRANSCRIPT_STORAGE_BACKEND",
    "DATABASE_URL",
]

for _name in _WORKER_ENV_VARS:
    os.environ.pop(_name, None)


def utc_hours_ago(hours: float) -> datetime:
    """Naive UTC timestamp `hours` in the past, matching stored pub_date values."""
    return datetime.now(UTC).replace(tzinfo=None) - timedelta(hours=hours)


class MemoryStorage(TranscriptStorageInterface):
    """In-memory transcript storage; set `fail=True` to simulate write errors."""

    def __init__(self):
        self.objects = {}
        self.fail = False
        self._lock = threading.Lock()

    def write_compressed_text(self, path, data):
        if self.fail:
            raise StorageError(path, "simulated outage")
        with self._lock:
            self.objects[path] = data


class FakeProvider(TranscriptProviderInterface):
    """Returns canned results keyed by episode GUID and records every call."""

    tier = "full"

    def __init__(self):
        self.results = {}
        self.default = TranscriptProviderResult.not_found()
        self.calls = []
        self._lock = threading.Lock()

    def fetch_transcript(self, feed_url, episode_guid):
        with self._lock:
            self.calls.append(episode_guid)
        result = self.results.get(episode_guid, self.default)
        if isinstance(result, Exception):
            raise result
        return result

    def health_check(self):
        return {"connected": True, "tier": self.tier}


class FakeFallback:
    """Stand-in for DeepgramFallbackService that records requested URLs."""

    def __init__(self):
        self.result = FallbackResult(
            success=True,
            transcript="fallback words from the audio",
            file_size_mb=12.5,
            processing_time_ms=40,
        )
        self.calls = []
        self._lock = threading.Lock()

    def transcribe_from_url(self, audio_url):
        with self._lock:
            self.calls.append(audio_url)
        return self.result


@pytest.fixture
def repository(tmp_path):
    """
    Create a temporary SQLite-backed repository for tests.

    Yields a repository instance configured to use a SQLite file under the provided temporary path and closes the repository when the fixture is torn down.
    """
    db_path = tmp_path / "test.db"
    repo = create_repository(f"sqlite:///{db_path}", create_tables=True)
    yield repo
    repo.close()


@pytest.fixture
def show(repository):
    """A show with an RSS feed URL."""
    return repository.create_show(
        title="Test Show", rss_url="https://example.com/feed.xml"
    )


@pytest.fixture
def make_episode(repository, show):
    """
    Factory fixture creating episodes for the sample show.

    Each call creates an episode published `hours_ago` hours in the past with a
    unique GUID unless one is given explicitly (pass `guid=None` for none).
    """
    counter = itertools.count(1)
    unset = object()

    def _make(hours_ago=1.0, guid=unset, show_id=None, episode_url=None, title=None):
        n = next(counter)
        return repository.create_episode(
            show_id=show_id or show.id,
            episode_url=episode_url or f"https://cdn.example.com/audio/{n}.mp3",
            guid=f"guid-{n}" if guid is unset else guid,
            title=title or f"Episode {n}",
            pub_date=utc_hours_ago(hours_ago),
        )

    return _make


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def fallback():
    return FakeFallback()
