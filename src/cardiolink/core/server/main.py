"""Run the CardioLink server: ``python -m cardiolink.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from cardiolink.core.config.settings import Settings, get_settings
from cardiolink.core.server.app import create_app

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _check_bind(settings: Settings) -> None:
    """Health readings leave the machine only when the operator opts in."""
    if _is_loopback_host(settings.cardiolink_host) or settings.cardiolink_allow_insecure_bind:
        return
    raise RuntimeError(
        f"CARDIOLINK_HOST={settings.cardiolink_host} is not a loopback address and the "
        "server has no authentication, so heart rate and activity data would be readable "
        "by anyone on the network. Bind to 127.0.0.1, or set "
        "CARDIOLINK_ALLOW_INSECURE_BIND=true if that exposure is intended."
    )


def run() -> None:
    """Serve the health tools over Streamable HTTP."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.cardiolink_log_level.upper(), logging.INFO))

    _check_bind(settings)
    if settings.cardiolink_allow_insecure_bind and not _is_loopback_host(settings.cardiolink_host):
        logger.warning("Serving health data on non-loopback host %s", settings.cardiolink_host)

    mcp = create_app()
    logger.info(
        "CardioLink listening on http://%s:%d (health source: %s)",
        settings.cardiolink_host,
        settings.cardiolink_port,
        settings.health_source,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.cardiolink_host,
        port=settings.cardiolink_port,
    )


if __name__ == "__main__":
    run()
