"""Settings loader for the dice MCP server.

Values come from ``DICE_MCP_*`` environment variables or a local ``.env`` file;
CLI flags passed to ``run()`` override them.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


Transport = Literal["stdio", "sse", "streamable-http"]


class Settings(BaseSettings):
    # --- Server ---
    server_name: str = "dice-mcp-server"
    transport: Transport = "stdio"
    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    # Honour X-Forwarded-For and CF-Connecting-IP only behind a proxy that sets them.
    trust_forwarded_headers: bool = False

    # --- Logging ---
    log_level: str = "INFO"
    log_json: bool = False

    # --- Rate limiting ---
    # A limit of 0 disables that window.
    rate_limit_enabled: bool = False
    rate_limit_per_minute: int = Field(default=30, ge=0)
    rate_limit_per_hour: int = Field(default=500, ge=0)
    rate_limit_per_day: int = Field(default=2000, ge=0)

    # --- Roll history ---
    history_enabled: bool = False
    database_url: str = "sqlite:///./dice_history.sqlite3"
    history_max_entries: int = Field(default=100, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="DICE_MCP_",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )


def load_settings() -> Settings:
    return Settings()
