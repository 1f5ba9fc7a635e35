"""Tests for episode discovery in normal and forced re-submission modes."""

from transcript_worker.db.models import TranscriptStatus
from transcript_worker.workflow.config import TranscriptWorkerConfig
from transcript_worker.workflow.discovery import EpisodeDiscovery


def discover(repository, **config_values):
    values = {"max_requests": 15, "concurrency": 1}
    values.update(config_values)
    config = TranscriptWorkerConfig(**values).validate()
    return EpisodeDiscovery(repository, config).find_candidates()


class TestNormalMode:

    def test_outside_lookback_window_is_never_a_candidate(self, repository, make_episode):
        inside = make_episode(hours_ago=23)
        make_episode(hours_ago=25)
        make_episode(hours_ago=24 * 30)

        candidates = discover(repository, lookback_hours=24)

        assert [e.id for e in candidates] == [inside.id]

    def test_excludes_existing_records(self, repository, make_episode):
        done = make_episode(hours_ago=1)
        pending = make_episode(hours_ago=2)
        repository.upsert_transcript(done.id, TranscriptStatus.NO_MATCH)

        candidates = discover(repository)

        assert [e.id for e in candidates] == [pending.id]

    def test_capped_at_max_requests_newest_first(self, repository, make_episode):
        episodes = [make_episode(hours_ago=h) for h in (5, 1, 3, 2, 4)]

        candidates = discover(repository, max_requests=3)

        by_age = sorted(episodes, key=lambda e: e.pub_date, reverse=True)
        assert [e.id for e in candidates] == [e.id for e in by_age[:3]]

    def test_no_candidates(self, repository):
        assert discover(repository) == []


class TestForcedResubmission:

    def test_includes_transcribed_and_ignores_window(self, repository, make_episode):
        old = make_episode(hours_ago=24 * 10)
        recent = make_episode(hours_ago=1)
        repository.upsert_transcript(
            recent.id, TranscriptStatus.FULL, storage_path="s/r.jsonl.gz", word_count=5
        )

        candidates = discover(
            repository, lookback_hours=1, force_resubmit=True, force_resubmit_count=10
        )

        assert [e.id for e in candidates] == [recent.id, old.id]

    def test_selects_most_recent_count(self, repository, make_episode):
        episodes = [make_episode(hours_ago=h) for h in (1, 2, 3, 4)]

        candidates = discover(repository, force_resubmit=True, force_resubmit_count=2)

        assert [e.id for e in candidates] == [episodes[0].id, episodes[1].id]

    def test_count_is_capped_by_max_requests(self, repository, make_episode):
        for h in (1, 2, 3, 4):
            make_episode(hours_ago=h)

        candidates = discover(
            repository, max_requests=3, force_resubmit=True, force_resubmit_count=10
        )

        assert len(candidates) == 3

    def test_still_requires_guid_and_feed(self, repository, make_episode):
        make_episode(hours_ago=1, guid=None)
        eligible = make_episode(hours_ago=2)

        candidates = discover(repository, force_resubmit=True, force_resubmit_count=5)

        assert [e.id for e in candidates] == [eligible.id]
