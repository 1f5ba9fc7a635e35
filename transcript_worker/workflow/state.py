"""Shared, mutex-guarded state for a single transcript worker run."""

import logging
import threading
from typing import Any, Dict

logger = logging.getLogger(__name__)


class RunState:
    """Quota circuit-breaker and fallback budget shared by all workers of a run.

    A fresh RunState is created for every run, or reset with `reset()` when a
    long-lived worker is reused. Nothing here is module-level.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._quota_exhausted = False
        self._fallbacks_used = 0

    def reset(self) -> None:
        with self._lock:
            self._quota_exhausted = False
            self._fallbacks_used = 0

    @property
    def quota_exhausted(self) -> bool:
        with self._lock:
            return self._quota_exhausted

    def mark_quota_exhausted(self) -> bool:
        """Trip the circuit-breaker. Returns True only for the first caller."""
        with self._lock:
            first = not self._quota_exhausted
            self._quota_exhausted = True
            return first

    @property
    def fallbacks_used(self) -> int:
        with self._lock:
            return self._fallbacks_used

    def try_reserve_fallback(self, max_fallbacks: int) -> bool:
        """Consume one fallback attempt if the budget allows it."""
        with self._lock:
            if self._fallbacks_used >= max_fallbacks:
                return False
            self._fallbacks_used += 1
            return True

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "quota_exhausted": self._quota_exhausted,
                "fallbacks_used": self._fallbacks_used,
            }
