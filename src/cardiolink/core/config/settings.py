"""Application settings loaded from environment variables."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """CardioLink health server configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Loopback by default; health data should not be exposed to the LAN by accident.
    cardiolink_host: str = "127.0.0.1"
    cardiolink_port: int = 8001
    cardiolink_log_level: str = "info"
    # Binding to a non-loopback host also needs this set (there is no auth layer).
    cardiolink_allow_insecure_bind: bool = False

    # Health data source
    health_source: Literal["mock", "apple_health"] = "mock"
    apple_health_export_path: str = ""

    # Fetch behaviour
    auto_diagnostics: bool = True
    refresh_min_interval_seconds: float = 30.0
    refresh_period_seconds: float = 120.0


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
