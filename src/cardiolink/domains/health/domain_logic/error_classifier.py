"""Classification of provider exceptions into permission vs. transient failures.

Typed provider errors are trusted first. Providers that only surface text get
matched against a small marker list; this is a heuristic, kept in one place
so it can be tested on its own.
"""

from __future__ import annotations

from cardiolink.domains.health.connectors import (
    ProviderError,
    ProviderPermissionError,
    ProviderUnavailableError,
)

PERMISSION_MARKERS = ("permission", "denied", "unauthorized")


def is_permission_error(exc: BaseException) -> bool:
    """True if ``exc`` means the provider refused access."""
    if isinstance(exc, ProviderPermissionError):
        return True
    if isinstance(exc, ProviderUnavailableError):
        return False
    text = f"{type(exc).__name__}: {exc}".lower()
    return any(marker in text for marker in PERMISSION_MARKERS)


def is_unavailable_error(exc: BaseException) -> bool:
    return isinstance(exc, ProviderUnavailableError)


def describe_error(exc: BaseException) -> str:
    """Short, loggable description of a provider exception."""
    message = str(exc) or "no message"
    if isinstance(exc, ProviderError):
        return message
    return f"{type(exc).__name__}: {message}"
