import argparse

def get_base_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch and store podcast episode transcripts")
    parser.add_argument("-e", "--env-file", help="Path to a custom .env file", default=None)
    return parser

def add_log_level_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-l", "--log-level", help="Set log level (DEBUG, INFO, WARNING, ERROR)", default="INFO")

def add_force_resubmit_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--force-resubmit", action="store_true", help="Re-process the most recent episodes even if transcripts exist")
    parser.add_argument("--count", type=int, default=None, help="Number of recent episodes to re-process with --force-resubmit")

def add_tier_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--tier", choices=["constrained", "full"], default=None, help="Override the transcript provider tier")

def add_no_fallback_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--no-fallback", action="store_true", help="Disable Deepgram fallback transcription for this run")
