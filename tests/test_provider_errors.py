"""Tests for centralized provider error classification."""

import pytest

from transcript_worker.providers.errors import (
    QUOTA_EXHAUSTED,
    RATE_LIMITED,
    SERVER_ERROR,
    TIMEOUT,
    UNKNOWN,
    classify_error,
    is_quota_exhausted,
)


class TestClassifyError:

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("CREDITS_EXCEEDED: You have used all your credits", QUOTA_EXHAUSTED),
            ("Monthly credits exceeded", QUOTA_EXHAUSTED),
            ("Quota exceeded for this API key", QUOTA_EXHAUSTED),
            ("HTTP 429: slow down", RATE_LIMITED),
            ("Rate limit reached", RATE_LIMITED),
            ("Too Many Requests", RATE_LIMITED),
            ("HTTP 504: gateway", TIMEOUT),
            ("Read timed out", TIMEOUT),
            ("request timeout", TIMEOUT),
            ("HTTP 503: Service Unavailable", SERVER_ERROR),
            ("Bad Gateway", SERVER_ERROR),
            ("Episode GUID is malformed", UNKNOWN),
            ("", UNKNOWN),
            (None, UNKNOWN),
        ],
    )
    def test_message_patterns(self, message, expected):
        assert classify_error(message) == expected

    def test_status_code_takes_precedence_over_generic_text(self):
        assert classify_error("something went wrong", status_code=429) == RATE_LIMITED
        assert classify_error("something went wrong", status_code=504) == TIMEOUT
        assert classify_error("something went wrong", status_code=502) == SERVER_ERROR

    def test_credit_exhaustion_outranks_status_code(self):
        assert classify_error("CREDITS_EXCEEDED", status_code=500) == QUOTA_EXHAUSTED


class TestIsQuotaExhausted:

    @pytest.mark.parametrize(
        "message,status_code",
        [
            ("CREDITS_EXCEEDED", None),
            ("quota exceeded", None),
            ("rate limit", None),
            ("nothing in the text", 429),
        ],
    )
    def test_quota_conditions(self, message, status_code):
        assert is_quota_exhausted(message, status_code) is True

    @pytest.mark.parametrize(
        "message,status_code",
        [("Not found", 404), ("timeout", None), ("HTTP 500", 500)],
    )
    def test_other_failures(self, message, status_code):
        assert is_quota_exhausted(message, status_code) is False


class TestEmbeddedDigits:
    """Status-code digits inside identifiers or addresses are not status codes."""

    @pytest.mark.parametrize(
        "message,status_code",
        [
            ("HTTP 400: Invalid episode guid 'ep-14290'", 400),
            ("HTTP 400: invalid value 'a4290c1e'", 400),
            ("Connection aborted at 0x7f5042950040", None),
            ("Episode 1504 not in series 3500", None),
        ],
    )
    def test_not_quota(self, message, status_code):
        assert is_quota_exhausted(message, status_code) is False
        assert classify_error(message, status_code) == UNKNOWN

    def test_anchored_http_codes_still_match(self):
        assert classify_error("HTTP 429") == RATE_LIMITED
        assert classify_error("HTTP 502: upstream") == SERVER_ERROR
