"""Centralized classification of provider and fallback error messages.

Providers report failures as free-form messages and HTTP status codes. Every
caller classifies them through `classify_error` so the pattern list lives in
one place. Patterns are word-anchored regular expressions matched
case-insensitively, in table order; the first match wins. Bare status-code
digits are never matched on their own, since GUIDs and addresses echoed in
error bodies routinely contain them.
"""

import re
from typing import List, Optional, Pattern, Tuple

QUOTA_EXHAUSTED = "quota_exhausted"
RATE_LIMITED = "rate_limited"
TIMEOUT = "timeout"
SERVER_ERROR = "server_error"
UNKNOWN = "unknown"

# Provider account-wide quota sentinel, used as the error message of quota results
CREDITS_EXCEEDED = "CREDITS_EXCEEDED"

ERROR_PATTERNS: List[Tuple[Pattern[str], str]] = [
    (re.compile(r"\bcredits[_ ]exceeded\b", re.IGNORECASE), QUOTA_EXHAUSTED),
    (re.compile(r"\bquota exceeded\b", re.IGNORECASE), QUOTA_EXHAUSTED),
    (re.compile(r"\bhttp 429\b", re.IGNORECASE), RATE_LIMITED),
    (re.compile(r"\brate[ -]limit", re.IGNORECASE), RATE_LIMITED),
    (re.compile(r"\btoo many requests\b", re.IGNORECASE), RATE_LIMITED),
    (re.compile(r"\bhttp 504\b", re.IGNORECASE), TIMEOUT),
    (re.compile(r"\btimeout", re.IGNORECASE), TIMEOUT),
    (re.compile(r"\btimed out\b", re.IGNORECASE), TIMEOUT),
    (re.compile(r"\bhttp 50[023]\b", re.IGNORECASE), SERVER_ERROR),
    (re.compile(r"\binternal server error\b", re.IGNORECASE), SERVER_ERROR),
    (re.compile(r"\bbad gateway\b", re.IGNORECASE), SERVER_ERROR),
    (re.compile(r"\bservice unavailable\b", re.IGNORECASE), SERVER_ERROR),
]

STATUS_CODE_CATEGORIES = {
    429: RATE_LIMITED,
    504: TIMEOUT,
    408: TIMEOUT,
    500: SERVER_ERROR,
    502: SERVER_ERROR,
    503: SERVER_ERROR,
}


def classify_error(message: Optional[str], status_code: Optional[int] = None) -> str:
    """
    Classify an error by HTTP status code, then by message pattern.

    Parameters:
        message (Optional[str]): Error message reported by the provider or transport.
        status_code (Optional[int]): HTTP status code, if known.

    Returns:
        str: One of QUOTA_EXHAUSTED, RATE_LIMITED, TIMEOUT, SERVER_ERROR, UNKNOWN.
    """
    text = message or ""

    # Explicit credit exhaustion outranks the status code
    for pattern, category in ERROR_PATTERNS:
        if category == QUOTA_EXHAUSTED and pattern.search(text):
            return category

    if status_code in STATUS_CODE_CATEGORIES:
        return STATUS_CODE_CATEGORIES[status_code]

    for pattern, category in ERROR_PATTERNS:
        if pattern.search(text):
            return category
    return UNKNOWN


def is_quota_exhausted(message: Optional[str], status_code: Optional[int] = None) -> bool:
    """Whether a transcript provider error means the shared account quota is spent.

    Rate limiting counts as quota exhaustion for the transcript provider since
    its limits are account-wide.
    """
    return classify_error(message, status_code) in (QUOTA_EXHAUSTED, RATE_LIMITED)
