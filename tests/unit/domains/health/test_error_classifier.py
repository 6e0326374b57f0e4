"""Tests for provider error classification and failure guidance text."""

from __future__ import annotations

import pytest

from cardiolink.domains.health.connectors import (
    ProviderError,
    ProviderPermissionError,
    ProviderUnavailableError,
)
from cardiolink.domains.health.domain_logic.error_classifier import (
    describe_error,
    is_permission_error,
    is_unavailable_error,
)
from cardiolink.domains.health.domain_logic.messages import FAILURE_MESSAGES, user_message
from cardiolink.domains.health.domain_logic.models import Failure, FailureReason


class TestIsPermissionError:
    def test_typed_permission_error(self):
        assert is_permission_error(ProviderPermissionError("nope"))

    def test_typed_unavailable_is_not_permission(self):
        assert not is_permission_error(ProviderUnavailableError("permission denied to install"))

    @pytest.mark.parametrize("text", [
        "Permission denied for READ_HEART_RATE",
        "SecurityException: caller denied",
        "401 Unauthorized",
    ])
    def test_text_markers(self, text):
        assert is_permission_error(RuntimeError(text))

    def test_builtin_permission_error_by_type_name(self):
        assert is_permission_error(PermissionError())

    @pytest.mark.parametrize("exc", [
        ProviderError("timeout"),
        TimeoutError("read timed out"),
        ValueError("bad date"),
    ])
    def test_transient_errors(self, exc):
        assert not is_permission_error(exc)

    def test_is_unavailable_error(self):
        assert is_unavailable_error(ProviderUnavailableError("missing"))
        assert not is_unavailable_error(ProviderError("missing"))


class TestDescribeError:
    def test_provider_error_keeps_message(self):
        assert describe_error(ProviderError("socket closed")) == "socket closed"

    def test_other_errors_get_type_name(self):
        assert describe_error(KeyError("x")) == "KeyError: 'x'"

    def test_empty_message(self):
        assert describe_error(RuntimeError()) == "RuntimeError: no message"


class TestUserMessage:
    def test_every_reason_has_guidance(self):
        assert set(FAILURE_MESSAGES) == set(FailureReason)
        for message in FAILURE_MESSAGES.values():
            assert message.endswith(".")

    def test_known_reason_ignores_detail(self):
        failure = Failure(FailureReason.PERMISSIONS_REVOKED, "SecurityException: revoked")
        assert user_message(failure) == FAILURE_MESSAGES[FailureReason.PERMISSIONS_REVOKED]

    def test_unknown_passes_detail_through(self):
        message = user_message(Failure(FailureReason.UNKNOWN, "disk full"))
        assert message.startswith(FAILURE_MESSAGES[FailureReason.UNKNOWN])
        assert "disk full" in message

    def test_no_failure(self):
        assert user_message(None) == ""
