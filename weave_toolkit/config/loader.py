"""Configuration loading from environment and YAML files."""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from MCP_* environment variables."""

    # Authentication
    api_key: str = ""
    cors_origin: str = "*"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_dir: str = ""  # also write daily log files here when set

    # Capacity and timeouts (seconds, 0 disables)
    max_connections: int = 100
    tool_timeout: float = 0.0
    max_request_size: int = 1 << 20
    idle_timeout: int = 60
    shutdown_grace_period: float = 30.0

    # Tool categories
    tool_config_path: str = "config/tool-config.yaml"
    enabled_providers: list[str] = ["calculator", "text"]

    # Server info
    server_name: str = "weave-toolkit"
    server_version: str = "1.0.0"

    # Host and port
    host: str = "0.0.0.0"
    port: int = 8888

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def auth_enabled(self) -> bool:
        """Check if authentication is enabled."""
        return bool(self.api_key)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# =============================================================================
# Tool Category Configuration
# =============================================================================


class CategoryConfig(BaseModel):
    """Per-category policy. Timeouts are in seconds; 0 means none."""

    enabled: bool = False
    max_tools: int = Field(default=0, ge=0)
    rate_limit: int = Field(default=0, ge=0)  # calls per minute, 0 = unlimited
    timeout: float = Field(default=0.0, ge=0)


class GlobalToolConfig(BaseModel):
    max_concurrent_calls: int = Field(default=0, ge=0)
    default_timeout: float = Field(default=0.0, ge=0)
    enable_metrics: bool = False
    enable_tracing: bool = False


class ToolManagerConfig(BaseModel):
    """Contents of the tool configuration file."""

    model_config = ConfigDict(populate_by_name=True)

    categories: dict[str, CategoryConfig] = Field(default_factory=dict)
    global_: GlobalToolConfig = Field(default_factory=GlobalToolConfig, alias="global")


DEFAULT_TOOL_CONFIG: dict[str, Any] = {
    "categories": {
        "math": {"enabled": True, "max_tools": 10, "rate_limit": 0, "timeout": 10},
        "ai": {"enabled": False, "max_tools": 10, "rate_limit": 0, "timeout": 60},
        "system": {"enabled": False, "max_tools": 10, "rate_limit": 0, "timeout": 30},
        "utility": {"enabled": True, "max_tools": 10, "rate_limit": 0, "timeout": 30},
    },
    "global": {"max_concurrent_calls": 0, "default_timeout": 30},
}


def load_tool_config(config_path: str | Path | None = None) -> ToolManagerConfig:
    """
    Load the tool category configuration.

    The file is parsed as YAML, so JSON files work as well.

    Args:
        config_path: Path to the config file. If None, uses the configured
            location and then the repository default.

    Returns:
        Validated configuration; the built-in default if no file is found.
    """
    if config_path is None:
        possible_paths = [
            Path(get_settings().tool_config_path),
            Path(__file__).parent.parent.parent / "config" / "tool-config.yaml",
        ]
        for path in possible_paths:
            if path.exists():
                config_path = path
                break
        else:
            return ToolManagerConfig.model_validate(DEFAULT_TOOL_CONFIG)

    config_path = Path(config_path)
    if not config_path.exists():
        return ToolManagerConfig.model_validate(DEFAULT_TOOL_CONFIG)

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return ToolManagerConfig.model_validate(data)
