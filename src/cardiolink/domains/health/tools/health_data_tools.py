"""MCP tools for reading the reconciled health snapshot and its diagnostics."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

from cardiolink.domains.health.domain_logic.messages import user_message

if TYPE_CHECKING:
    from cardiolink.domains.health.domain_logic.health_service import HealthDataService
    from cardiolink.domains.health.domain_logic.refresh import RefreshCoordinator

logger = logging.getLogger(__name__)


def register_health_data_tools(
    mcp: FastMCP,
    service: HealthDataService,
    coordinator: RefreshCoordinator,
) -> None:
    """Register health snapshot, diagnostic and permission tools on the MCP server."""

    @mcp.tool
    async def health_snapshot(ctx: Context, force_refresh: bool = False) -> str:
        """Get the latest value of every tracked health metric.

        Heart rate, SpO2 and sleep are the most recent non-zero readings;
        active energy, steps and distance are today's totals; workout is the
        most recent session. On failure, returns a reason and guidance text.

        Repeated calls within the refresh interval return the previous result
        unless force_refresh is set.

        Args:
            force_refresh: Bypass the refresh throttle.
        """
        start_time = time.monotonic()
        result = await coordinator.refresh(force=force_refresh)
        cached = result is None
        if result is None:
            result = coordinator.latest
        if result is None:
            return json.dumps({
                "status": "pending",
                "message": "A health data refresh is already running. Try again shortly.",
            })

        payload = result.to_dict()
        payload["data_source"] = service.data_source
        payload["cached"] = cached
        if not result.ok:
            payload["message"] = user_message(result.failure)
        payload["duration_ms"] = round((time.monotonic() - start_time) * 1000, 1)
        return json.dumps(payload, indent=2)

    @mcp.tool
    async def health_diagnostic(ctx: Context) -> str:
        """Run a step-by-step diagnostic of permissions, data windows and processing."""
        report = await service.get_diagnostic_report()
        return json.dumps(report.to_dict(), indent=2)

    @mcp.tool
    async def request_health_permissions(ctx: Context) -> str:
        """Prompt again for every runtime and provider permission."""
        state = await service.request_permissions()
        return json.dumps({
            "status": "ok" if state.granted else "incomplete",
            "permission_state": state.to_dict(),
            "last_error": service.last_error,
        }, indent=2)

    @mcp.tool
    async def has_health_data(ctx: Context) -> str:
        """Check whether the provider holds any readings from the last 7 days."""
        found = await service.has_any_data()
        return json.dumps({"status": "ok", "has_data": found})
