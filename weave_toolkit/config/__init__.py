"""Configuration loading and management."""

from weave_toolkit.config.loader import (
    CategoryConfig,
    GlobalToolConfig,
    Settings,
    ToolManagerConfig,
    get_settings,
    load_tool_config,
)

__all__ = [
    "CategoryConfig",
    "GlobalToolConfig",
    "Settings",
    "ToolManagerConfig",
    "get_settings",
    "load_tool_config",
]
