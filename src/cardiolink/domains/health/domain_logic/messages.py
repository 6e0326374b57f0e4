"""User-facing guidance text for each FailureReason.

The only module that turns a failure into natural language.
"""

from __future__ import annotations

from cardiolink.domains.health.domain_logic.models import Failure, FailureReason

FAILURE_MESSAGES: dict[FailureReason, str] = {
    FailureReason.PROVIDER_UNAVAILABLE: (
        "Health Connect is not installed. Please install it from the app store and try again."
    ),
    FailureReason.PERMISSIONS_NOT_GRANTED: (
        "Please grant health permissions in your device settings: Settings > Apps > Permissions."
    ),
    FailureReason.PERMISSIONS_REVOKED: (
        "Health permissions have been revoked. Please re-grant them in your device settings."
    ),
    FailureReason.NO_DATA_IN_RANGE: (
        "No health data found in the last 30 days. Make sure your fitness tracker is "
        "connected and syncing."
    ),
    FailureReason.DATA_ALL_ZERO: (
        "Your health provider is connected but only reports zero values. Try wearing your "
        "device or recording some health data."
    ),
    FailureReason.UNKNOWN: (
        "Unable to access health data. Please check your health provider settings and try again."
    ),
}


def user_message(failure: Failure | None) -> str:
    """Guidance for ``failure``; empty string when there is none."""
    if failure is None:
        return ""
    message = FAILURE_MESSAGES[failure.reason]
    if failure.reason is FailureReason.UNKNOWN and failure.detail:
        return f"{message} ({failure.detail})"
    return message
