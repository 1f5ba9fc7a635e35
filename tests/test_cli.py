"""Tests for the transcript worker CLI."""

import json
from unittest.mock import MagicMock, patch

import pytest

from transcript_worker import cli
from transcript_worker.workflow.workers.base import RunSummary


@pytest.fixture
def app_config():
    return MagicMock()


class TestParser:

    def test_run_arguments(self):
        args = cli.create_parser().parse_args(
            ["run", "--force-resubmit", "--count", "5", "--tier", "constrained", "--no-fallback"]
        )
        assert args.command == "run"
        assert args.force_resubmit is True
        assert args.count == 5
        assert args.tier == "constrained"
        assert args.no_fallback is True

    def test_run_defaults(self):
        args = cli.create_parser().parse_args(["run"])
        assert args.force_resubmit is False
        assert args.count is None
        assert args.tier is None
        assert args.no_fallback is False

    def test_rejects_unknown_tier(self):
        with pytest.raises(SystemExit):
            cli.create_parser().parse_args(["run", "--tier", "premium"])


class TestRunWorker:

    def test_prints_summary(self, app_config, monkeypatch, capsys):
        monkeypatch.setenv("TRANSCRIPT_CONCURRENCY", "2")
        args = cli.create_parser().parse_args(["run", "--no-fallback", "--tier", "constrained"])

        with patch.object(cli, "run_transcript_worker", return_value=RunSummary(job_id="job-1")) as run:
            assert cli.run_worker(args, app_config) == 0

        config = run.call_args[0][0]
        assert config.tier == "constrained"
        assert config.enable_fallback is False
        assert config.concurrency == 2
        assert json.loads(capsys.readouterr().out)["job_id"] == "job-1"

    def test_force_resubmit_override(self, app_config):
        args = cli.create_parser().parse_args(["run", "--force-resubmit", "--count", "3"])

        with patch.object(cli, "run_transcript_worker", return_value=RunSummary()) as run:
            cli.run_worker(args, app_config)

        config = run.call_args[0][0]
        assert config.force_resubmit is True
        assert config.candidate_limit == 3

    def test_disabled_worker_exits_cleanly(self, app_config, monkeypatch):
        monkeypatch.setenv("TRANSCRIPT_WORKER_ENABLED", "false")
        args = cli.create_parser().parse_args(["run"])

        with patch.object(cli, "run_transcript_worker") as run:
            assert cli.run_worker(args, app_config) == 0

        run.assert_not_called()

    def test_invalid_configuration_fails(self, app_config, monkeypatch):
        monkeypatch.setenv("TRANSCRIPT_CONCURRENCY", "0")
        args = cli.create_parser().parse_args(["run"])

        with patch.object(cli, "run_transcript_worker") as run:
            assert cli.run_worker(args, app_config) == 1

        run.assert_not_called()

    def test_out_of_range_count_fails(self, app_config):
        args = cli.create_parser().parse_args(["run", "--force-resubmit", "--count", "500"])
        assert cli.run_worker(args, app_config) == 1

    def test_missing_credentials_fail(self, app_config):
        args = cli.create_parser().parse_args(["run"])

        with patch.object(cli, "run_transcript_worker", side_effect=ValueError("TADDY_API_KEY and TADDY_USER_ID are required")):
            assert cli.run_worker(args, app_config) == 1


class TestHealth:

    def test_connected(self, app_config, capsys):
        provider = MagicMock()
        provider.health_check.return_value = {"connected": True, "tier": "full"}
        args = cli.create_parser().parse_args(["health"])

        with patch.object(cli, "create_provider", return_value=provider) as create:
            assert cli.check_health(args, app_config) == 0

        assert create.call_args[0][0] == "full"
        assert json.loads(capsys.readouterr().out)["connected"] is True

    def test_disconnected(self, app_config):
        provider = MagicMock()
        provider.health_check.return_value = {"connected": False, "error": "down"}
        args = cli.create_parser().parse_args(["health", "--tier", "constrained"])

        with patch.object(cli, "create_provider", return_value=provider):
            assert cli.check_health(args, app_config) == 1


def test_status_prints_counts(app_config, capsys):
    repository = MagicMock()
    repository.get_transcript_stats.return_value = {"full": 3, "error": 1, "total": 4}

    with patch.object(cli, "create_repository_from_config", return_value=repository):
        assert cli.show_status(None, app_config) == 0

    out = capsys.readouterr().out
    assert "full: 3" in out
    assert "Total: 4" in out
    repository.close.assert_called_once()


def test_main_without_command_exits_nonzero():
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])
    assert exc_info.value.code == 1
