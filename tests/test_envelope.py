"""Tests for gateway/envelope.py - Result envelopes and error taxonomy."""

from __future__ import annotations

import dataclasses
import logging
import re
from unittest.mock import patch

import pytest

from gateway.envelope import (
    Error,
    ErrorKind,
    ErrorWithFallback,
    Severity,
    Success,
    error,
    now_timestamp,
    success,
)


# ============================================================================
# Error Taxonomy
# ============================================================================
class TestErrorKind:
    """Tests for ErrorKind codes and severities."""

    @pytest.mark.parametrize(
        "kind, code",
        [
            (ErrorKind.PROVIDER_UNAVAILABLE, 1001),
            (ErrorKind.CONNECTION_FAILED, 1002),
            (ErrorKind.INVALID_RESPONSE_FORMAT, 1003),
            (ErrorKind.CONFIGURATION_MISSING, 1004),
            (ErrorKind.RATE_LIMITED, 1005),
            (ErrorKind.INVALID_INPUT, 1006),
            (ErrorKind.PROCESSING_FAILED, 1007),
            (ErrorKind.AUTHENTICATION_FAILED, 1009),
            (ErrorKind.ACCESS_FORBIDDEN, 1010),
            (ErrorKind.API_ERROR, 1011),
            (ErrorKind.SERVER_ERROR, 1012),
            (ErrorKind.MAX_RETRIES_EXCEEDED, 1013),
        ],
    )
    def test_codes_are_stable(self, kind, code):
        """Each kind maps to its fixed numeric code."""
        assert kind.code == code

    def test_codes_are_unique(self):
        """No two kinds share a code."""
        codes = [kind.code for kind in ErrorKind]
        assert len(codes) == len(set(codes))

    def test_code_1008_is_unassigned(self):
        """The legacy fallback code is not reused."""
        assert 1008 not in {kind.code for kind in ErrorKind}

    def test_every_kind_has_severity(self):
        """Every kind has a Severity."""
        for kind in ErrorKind:
            assert isinstance(kind.severity, Severity)

    def test_selected_severities(self):
        """Severities follow the taxonomy table."""
        assert ErrorKind.CONNECTION_FAILED.severity is Severity.HIGH
        assert ErrorKind.RATE_LIMITED.severity is Severity.MEDIUM
        assert ErrorKind.INVALID_INPUT.severity is Severity.LOW

    def test_kind_is_string_enum(self):
        """Kinds compare equal to their names."""
        assert ErrorKind.RATE_LIMITED == "RateLimited"


# ============================================================================
# Success
# ============================================================================
class TestSuccess:
    """Tests for Success envelopes."""

    def test_success_factory_stamps_meta(self):
        """success() records timestamp and source."""
        result = success({"x": 1}, source="openai", attempts=2)

        assert result.ok is True
        assert result.data == {"x": 1}
        assert result.meta["source"] == "openai"
        assert result.meta["attempts"] == 2
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", result.meta["timestamp"])

    def test_success_is_immutable(self):
        """Success fields cannot be reassigned."""
        result = success("data", source="x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.data = "other"  # type: ignore[misc]

    def test_meta_is_read_only(self):
        """Meta mapping rejects writes."""
        result = success("data", source="x")
        with pytest.raises(TypeError):
            result.meta["source"] = "y"  # type: ignore[index]

    def test_hashable_with_mapping_payload(self):
        """Success envelopes hash even when data and meta are mappings."""
        result = Success(data={"content": "hi"}, meta={"source": "x"})

        assert hash(result) == hash(Success(data={"content": "other"}, meta={"source": "y"}))
        assert len({result, result}) == 1

    def test_to_dict(self):
        """to_dict produces the wire structure."""
        result = Success(data=[1, 2], meta={"source": "s"})

        assert result.to_dict() == {"success": True, "data": [1, 2], "meta": {"source": "s"}}

    def test_to_dict_converts_nested_objects(self):
        """Objects exposing to_dict are converted."""

        class Payload:
            def to_dict(self):
                return {"content": "hi"}

        result = Success(data=Payload())

        assert result.to_dict()["data"] == {"content": "hi"}


# ============================================================================
# Error
# ============================================================================
class TestError:
    """Tests for Error envelopes."""

    def test_error_factory(self):
        """error() fills code, severity and context from the kind."""
        result = error(ErrorKind.RATE_LIMITED, "Slow down", provider="openai", retry_after=5.0)

        assert result.ok is False
        assert result.code == 1005
        assert result.kind is ErrorKind.RATE_LIMITED
        assert result.severity is Severity.MEDIUM
        assert result.context == {"provider": "openai", "retry_after": 5.0}
        assert result.fallback_used is False

    def test_context_is_read_only(self):
        """Context cannot be mutated after construction."""
        result = error(ErrorKind.API_ERROR, "bad", http_code=404)
        with pytest.raises(TypeError):
            result.context["http_code"] = 500  # type: ignore[index]

    def test_hashable_with_context(self):
        """Errors hash on their scalar fields, not on context."""
        result = error(ErrorKind.API_ERROR, "bad", http_code=404)
        same = Error(result.code, result.message, result.kind, result.severity, result.timestamp, {"x": [1]})

        assert hash(result) == hash(same)
        assert isinstance(hash(result.with_fallback({"content": "canned"})), int)

    def test_to_dict(self):
        """to_dict nests the error fields."""
        result = error(ErrorKind.INVALID_INPUT, "Missing messages", operation="chat")
        payload = result.to_dict()

        assert payload["success"] is False
        assert payload["error"]["code"] == 1006
        assert payload["error"]["kind"] == "InvalidInput"
        assert payload["error"]["severity"] == "low"
        assert payload["error"]["context"] == {"operation": "chat"}
        assert "fallback" not in payload

    @pytest.mark.parametrize(
        "kind, level",
        [
            (ErrorKind.SERVER_ERROR, logging.ERROR),
            (ErrorKind.API_ERROR, logging.WARNING),
            (ErrorKind.INVALID_INPUT, logging.INFO),
        ],
    )
    def test_logged_at_severity_level(self, kind, level):
        """Errors are logged at the level matching their severity."""
        with patch("gateway.envelope.logger") as mock_logger:
            error(kind, "boom", provider="p")

        logged_level, message = mock_logger.log.call_args[0]
        assert logged_level == level
        assert f"[{kind.value}:{kind.code}] boom" in message
        assert "provider=p" in message


class TestErrorWithFallback:
    """Tests for ErrorWithFallback."""

    def test_with_fallback_copies_error(self):
        """with_fallback keeps the error fields and adds the fallback."""
        base = error(ErrorKind.PROVIDER_UNAVAILABLE, "none", operation="chat")
        result = base.with_fallback({"content": "canned"})

        assert isinstance(result, ErrorWithFallback)
        assert isinstance(result, Error)
        assert result.ok is False
        assert result.fallback_used is True
        assert result.code == base.code
        assert result.timestamp == base.timestamp
        assert result.fallback == {"content": "canned"}

    def test_to_dict_includes_fallback(self):
        """to_dict marks the fallback as used."""
        result = error(ErrorKind.CONNECTION_FAILED, "down").with_fallback("cached")
        payload = result.to_dict()

        assert payload["error"]["fallback_used"] is True
        assert payload["fallback"] == "cached"


class TestNowTimestamp:
    """Tests for now_timestamp."""

    def test_format(self):
        """Timestamp uses Y-m-d H:M:S."""
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", now_timestamp())
