"""CardioLink health MCP server — application factory.

This module provides:
- create_app() for testability (integration tests create fresh server instances)
- Module-level `mcp` variable for FastMCP discovery
"""

from __future__ import annotations

import logging

from fastmcp import FastMCP

from cardiolink.core.config.settings import Settings, get_settings
from cardiolink.domains.health.connectors import HealthDataSource, RuntimePermissions
from cardiolink.domains.health.connectors.apple_health import AppleHealthDataSource
from cardiolink.domains.health.connectors.providers import (
    MockHealthDataSource,
    StaticRuntimePermissions,
)
from cardiolink.domains.health.domain_logic.health_service import HealthDataService
from cardiolink.domains.health.domain_logic.refresh import RefreshCoordinator
from cardiolink.domains.health.tools.health_data_tools import register_health_data_tools

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


def _create_source(settings: Settings) -> HealthDataSource:
    if settings.health_source == "apple_health":
        logger.info("Using Apple Health export at %s", settings.apple_health_export_path or "(unset)")
        return AppleHealthDataSource(settings.apple_health_export_path)
    if settings.health_source == "mock":
        logger.info("Using mock health data source")
        return MockHealthDataSource()
    raise ValueError(f"Unknown health source: {settings.health_source!r}")  # pragma: no cover


def create_app(
    *,
    health_source_override: HealthDataSource | None = None,
    runtime_permissions_override: RuntimePermissions | None = None,
) -> FastMCP:
    """Create and configure the CardioLink MCP server.

    This is the main application factory. It:
    1. Creates the FastMCP server instance
    2. Selects the health data source (mock or Apple Health export)
    3. Builds the health data service (gate, scanner, reconciler, classifier)
    4. Wraps it in a refresh coordinator for throttled, non-overlapping fetches
    5. Registers all tools
    """
    settings = get_settings()

    # --- Server instance ---
    server = FastMCP(
        "CardioLink Health",
        instructions=(
            "Health data reconciliation server. Reads heart rate, SpO2, sleep, "
            "activity and workout data from the configured health provider and "
            "returns one current value per metric, or a specific reason and "
            "guidance when no usable data is available."
        ),
    )

    # --- Health data pipeline ---
    source = health_source_override or _create_source(settings)
    runtime = runtime_permissions_override or StaticRuntimePermissions()
    service = HealthDataService.build(source, runtime, auto_diagnostics=settings.auto_diagnostics)
    # On-demand only: the server refreshes when a client calls health_snapshot.
    # start() is for embedding callers that want the periodic background refresh.
    coordinator = RefreshCoordinator(
        service,
        min_interval=settings.refresh_min_interval_seconds,
        period=settings.refresh_period_seconds,
    )

    # --- Register tools ---
    @server.tool
    def health_check() -> dict:
        """Check server health and return basic status information."""
        return {
            "status": "ok",
            "server": "CardioLink Health",
            "version": VERSION,
            "data_source": service.data_source,
            "initialized": service.is_initialized,
            "last_error": service.last_error,
        }

    register_health_data_tools(server, service, coordinator)
    logger.info("Health data tools registered (%s)", service.data_source)

    return server


# Module-level instance for FastMCP discovery.
# Lazy: only created when accessed (not when tests import create_app).
def __getattr__(name: str):
    if name == "mcp":
        global mcp  # noqa: PLW0603
        mcp = create_app()
        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
