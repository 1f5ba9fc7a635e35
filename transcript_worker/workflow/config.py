"""Run configuration for the transcript worker.

`TranscriptWorkerConfig` is built from environment variables (or directly)
and validated once before any work starts. Invalid values raise
`ConfigurationError`, naming the offending field and its accepted range.
"""

import os
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, FrozenSet, Optional

from ..db.models import TranscriptStatus

TIERS = ("constrained", "full")

# Provider plan names accepted as tier aliases
TIER_ALIASES = {
    "free": "constrained",
    "business": "full",
}

DEFAULT_FALLBACK_STATUSES: FrozenSet[str] = frozenset(
    {
        TranscriptStatus.NO_MATCH.value,
        TranscriptStatus.NO_TRANSCRIPT_FOUND.value,
        TranscriptStatus.ERROR.value,
        TranscriptStatus.PROCESSING.value,
    }
)

# (name, min, max) per cron field
_CRON_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day of month", 1, 31),
    ("month", 1, 12),
    ("day of week", 0, 7),
)
_CRON_ITEM = re.compile(r"^(\*|\d+(?:-\d+)?)(?:/(\d+))?$")


class ConfigurationError(ValueError):
    """A run parameter is missing, malformed or out of range."""

    def __init__(self, field: str, message: str):
        super().__init__(f"Invalid configuration for {field}: {message}")
        self.field = field


def _get_int_env(name: str, field_name: str, default: int) -> int:
    """Parse an integer from an environment variable.

    Raises:
        ConfigurationError: If the value cannot be parsed as an integer.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            field_name, f"{name}='{raw}' is not a valid integer"
        )


def _is_valid_cron_field(value: str, min_val: int, max_val: int) -> bool:
    for item in value.split(","):
        match = _CRON_ITEM.match(item)
        if not match:
            return False
        base, step = match.groups()
        if step is not None and int(step) == 0:
            return False
        if base == "*":
            continue
        bounds = [int(part) for part in base.split("-")]
        if any(b < min_val or b > max_val for b in bounds):
            return False
        if len(bounds) == 2 and bounds[0] > bounds[1]:
            return False
    return True


def validate_cron_expression(expression: str) -> None:
    """Check a five-field cron expression syntactically.

    Raises:
        ConfigurationError: If the expression is malformed.
    """
    parts = (expression or "").split()
    if len(parts) != 5:
        raise ConfigurationError(
            "cron_schedule",
            f"'{expression}' must have exactly 5 whitespace-separated fields",
        )
    for part, (name, min_val, max_val) in zip(parts, _CRON_FIELDS):
        if not _is_valid_cron_field(part, min_val, max_val):
            raise ConfigurationError(
                "cron_schedule",
                f"'{part}' is not a valid {name} field (accepted range {min_val}-{max_val})",
            )


def _check_range(field_name: str, value: int, min_val: int, max_val: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(
            field_name, f"{value!r} must be an integer between {min_val} and {max_val}"
        )
    if value < min_val or value > max_val:
        raise ConfigurationError(
            field_name, f"{value} must be between {min_val} and {max_val}"
        )


@dataclass(frozen=True)
class TranscriptWorkerConfig:
    """Validated, immutable parameters for one transcript worker run.

    All settings can be overridden via environment variables.
    """

    enabled: bool = True
    cron_schedule: str = "0 1 * * *"
    tier: str = "full"

    # Discovery
    lookback_hours: int = 24
    max_requests: int = 15
    concurrency: int = 10
    use_advisory_lock: bool = True

    # Forced re-submission of the most recent episodes
    force_resubmit: bool = False
    force_resubmit_count: int = 10

    # Deepgram fallback
    enable_fallback: bool = True
    fallback_statuses: FrozenSet[str] = field(default=DEFAULT_FALLBACK_STATUSES)
    max_fallbacks_per_run: int = 50
    max_fallback_file_size_mb: int = 500

    @classmethod
    def from_env(cls) -> "TranscriptWorkerConfig":
        """Create and validate configuration from environment variables.

        Returns:
            TranscriptWorkerConfig instance with values from environment or defaults.

        Raises:
            ConfigurationError: If any environment variable has an invalid value.
        """
        tier = os.getenv("TRANSCRIPT_TIER", "full").strip().lower() or "full"
        tier = TIER_ALIASES.get(tier, tier)

        enable_fallback = os.getenv("DEEPGRAM_FALLBACK_ENABLED", "true").strip().lower() != "false"
        # Legacy kill switch
        if os.getenv("DISABLE_DEEPGRAM_FALLBACK", "").strip().lower() == "true":
            enable_fallback = False

        raw_statuses = os.getenv("DEEPGRAM_FALLBACK_STATUSES")
        if raw_statuses is None or raw_statuses.strip() == "":
            fallback_statuses = DEFAULT_FALLBACK_STATUSES
        else:
            fallback_statuses = frozenset(
                s.strip().lower() for s in raw_statuses.split(",") if s.strip()
            )

        config = cls(
            enabled=os.getenv("TRANSCRIPT_WORKER_ENABLED", "true").strip().lower() != "false",
            cron_schedule=os.getenv("TRANSCRIPT_WORKER_CRON") or "0 1 * * *",
            tier=tier,
            lookback_hours=_get_int_env("TRANSCRIPT_LOOKBACK", "lookback_hours", 24),
            max_requests=_get_int_env("TRANSCRIPT_MAX_REQUESTS", "max_requests", 15),
            concurrency=_get_int_env("TRANSCRIPT_CONCURRENCY", "concurrency", 10),
            use_advisory_lock=os.getenv("TRANSCRIPT_ADVISORY_LOCK", "true").strip().lower() != "false",
            force_resubmit=os.getenv("TRANSCRIPT_WORKER_L10", "false").strip().lower() == "true",
            force_resubmit_count=_get_int_env(
                "TRANSCRIPT_WORKER_L10_COUNT", "force_resubmit_count", 10
            ),
            enable_fallback=enable_fallback,
            fallback_statuses=fallback_statuses,
            max_fallbacks_per_run=_get_int_env(
                "DEEPGRAM_MAX_FALLBACKS_PER_RUN", "max_fallbacks_per_run", 50
            ),
            max_fallback_file_size_mb=_get_int_env(
                "DEEPGRAM_MAX_FILE_SIZE_MB", "max_fallback_file_size_mb", 500
            ),
        )
        config.validate()
        return config

    def validate(self) -> "TranscriptWorkerConfig":
        """Check every field and cross-field constraint.

        Returns:
            self, so calls can be chained.

        Raises:
            ConfigurationError: Naming the first offending field.
        """
        validate_cron_expression(self.cron_schedule)

        if self.tier not in TIERS:
            raise ConfigurationError(
                "tier", f"'{self.tier}' must be one of {', '.join(TIERS)}"
            )

        _check_range("lookback_hours", self.lookback_hours, 1, 168)
        _check_range("max_requests", self.max_requests, 1, 1000)
        _check_range("concurrency", self.concurrency, 1, 50)
        if self.concurrency > self.max_requests:
            raise ConfigurationError(
                "concurrency",
                f"{self.concurrency} must not exceed max_requests ({self.max_requests})",
            )

        _check_range("force_resubmit_count", self.force_resubmit_count, 1, 100)
        _check_range("max_fallbacks_per_run", self.max_fallbacks_per_run, 0, 1000)
        _check_range("max_fallback_file_size_mb", self.max_fallback_file_size_mb, 1, 2000)

        allowed = {status.value for status in TranscriptStatus}
        unknown = set(self.fallback_statuses) - allowed
        if unknown:
            raise ConfigurationError(
                "fallback_statuses",
                f"unknown status(es) {', '.join(sorted(unknown))}; "
                f"accepted values are {', '.join(sorted(allowed))}",
            )

        return self

    @property
    def candidate_limit(self) -> int:
        """Number of candidates discovery may return for this run."""
        if self.force_resubmit:
            return min(self.force_resubmit_count, self.max_requests)
        return self.max_requests

    def config_summary(self) -> Dict[str, Any]:
        """Flat dict of the configuration for logging."""
        summary = asdict(self)
        summary["fallback_statuses"] = sorted(self.fallback_statuses)
        return summary

    def with_overrides(
        self,
        tier: Optional[str] = None,
        force_resubmit: Optional[bool] = None,
        force_resubmit_count: Optional[int] = None,
        enable_fallback: Optional[bool] = None,
    ) -> "TranscriptWorkerConfig":
        """Return a validated copy with command-line overrides applied."""
        changes: Dict[str, Any] = {}
        if tier is not None:
            changes["tier"] = TIER_ALIASES.get(tier, tier)
        if force_resubmit is not None:
            changes["force_resubmit"] = force_resubmit
        if force_resubmit_count is not None:
            changes["force_resubmit_count"] = force_resubmit_count
        if enable_fallback is not None:
            changes["enable_fallback"] = enable_fallback
        return replace(self, **changes).validate()
