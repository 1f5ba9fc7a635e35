"""Command-line interface for the transcript worker.

Provides commands for:
- Running the transcript worker once
- Viewing transcript status counts
- Checking transcript provider connectivity
"""

import json
import logging
import sys

from .argparse_shared import (
    add_force_resubmit_arguments,
    add_log_level_argument,
    add_no_fallback_argument,
    add_tier_argument,
    get_base_parser,
)
from .config import Config
from .db.factory import create_repository_from_config
from .providers.factory import create_provider
from .workflow.config import ConfigurationError, TranscriptWorkerConfig
from .workflow.runner import run_transcript_worker

logger = logging.getLogger(__name__)


def run_worker(args, config: Config) -> int:
    """
    Run the transcript worker once and print the run summary as JSON.

    Command-line overrides (`--tier`, `--force-resubmit`, `--count`, `--no-fallback`) are
    applied on top of the environment configuration before validation.

    Returns:
        int: Process exit code, 1 on configuration errors and 0 otherwise.
    """
    try:
        worker_config = TranscriptWorkerConfig.from_env().with_overrides(
            tier=args.tier,
            force_resubmit=True if args.force_resubmit else None,
            force_resubmit_count=args.count,
            enable_fallback=False if args.no_fallback else None,
        )
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    if not worker_config.enabled:
        logger.info("Transcript worker is disabled - nothing to do")
        return 0

    logger.info(f"Transcript worker configuration: {worker_config.config_summary()}")
    try:
        summary = run_transcript_worker(worker_config, app_config=config)
    except ValueError as e:
        # Missing credentials or an unknown storage backend
        logger.error(f"Cannot start transcript worker: {e}")
        return 1

    print(json.dumps(summary.to_dict(), indent=2, default=str))
    return 0


def show_status(args, config: Config) -> int:
    """Print transcript record counts per status."""
    repository = create_repository_from_config(config)
    try:
        stats = repository.get_transcript_stats()
    finally:
        repository.close()

    print("\nTranscript Status:")
    for status, count in stats.items():
        if status == "total":
            continue
        print(f"  {status}: {count}")
    print(f"  Total: {stats['total']}")
    return 0


def check_health(args, config: Config) -> int:
    """Check connectivity of the configured provider tier."""
    tier = args.tier or TranscriptWorkerConfig.from_env().tier
    try:
        provider = create_provider(tier, config)
    except ValueError as e:
        logger.error(str(e))
        return 1

    health = provider.health_check()
    print(json.dumps(health, indent=2))
    return 0 if health.get("connected") else 1


def create_parser():
    """Create the argument parser with run, status and health subcommands."""
    parser = get_base_parser()
    add_log_level_argument(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Fetch transcripts for recent episodes once",
    )
    add_force_resubmit_arguments(run_parser)
    add_tier_argument(run_parser)
    add_no_fallback_argument(run_parser)

    # status command
    subparsers.add_parser(
        "status",
        help="Show transcript counts by status",
    )

    # health command
    health_parser = subparsers.add_parser(
        "health",
        help="Check transcript provider connectivity",
    )
    add_tier_argument(health_parser)

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stdout,
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Load configuration
    try:
        config = Config(env_file=args.env_file)
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    # Route to appropriate command
    commands = {
        "run": run_worker,
        "status": show_status,
        "health": check_health,
    }

    command_func = commands.get(args.command)
    if command_func is None:
        parser.print_help()
        sys.exit(1)

    try:
        exit_code = command_func(args, config)
    except ConfigurationError as e:
        logger.error(str(e))
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
