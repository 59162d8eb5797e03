"""Tests for settings and tool configuration loading."""

import json

from weave_toolkit.config.loader import (
    DEFAULT_TOOL_CONFIG,
    Settings,
    ToolManagerConfig,
    load_tool_config,
)


def test_settings_defaults(monkeypatch):
    monkeypatch.delenv("MCP_API_KEY", raising=False)
    settings = Settings(_env_file=None)
    assert settings.port == 8888
    assert settings.max_connections == 100
    assert settings.shutdown_grace_period == 30.0
    assert settings.enabled_providers == ["calculator", "text"]
    assert settings.auth_enabled is False


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("MCP_MAX_CONNECTIONS", "5")
    monkeypatch.setenv("MCP_TOOL_TIMEOUT", "2.5")
    monkeypatch.setenv("MCP_API_KEY", "k")

    settings = Settings(_env_file=None)
    assert settings.max_connections == 5
    assert settings.tool_timeout == 2.5
    assert settings.auth_enabled is True


def test_load_yaml(tmp_path):
    path = tmp_path / "tools.yaml"
    path.write_text(
        "categories:\n"
        "  math:\n"
        "    enabled: true\n"
        "    max_tools: 3\n"
        "    timeout: 4\n"
        "global:\n"
        "  max_concurrent_calls: 8\n"
    )

    config = load_tool_config(path)
    assert config.categories["math"].enabled is True
    assert config.categories["math"].max_tools == 3
    assert config.categories["math"].rate_limit == 0
    assert config.global_.max_concurrent_calls == 8


def test_load_json(tmp_path):
    path = tmp_path / "tools.json"
    path.write_text(json.dumps({"categories": {"ai": {"enabled": True, "rate_limit": 60}}}))

    config = load_tool_config(path)
    assert config.categories["ai"].rate_limit == 60
    assert config.global_.default_timeout == 0


def test_missing_file_uses_default(tmp_path):
    config = load_tool_config(tmp_path / "missing.yaml")
    assert config == ToolManagerConfig.model_validate(DEFAULT_TOOL_CONFIG)


def test_empty_file(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_tool_config(path).categories == {}


def test_repository_config():
    config = load_tool_config()
    assert config.categories["math"].enabled is True
    assert config.categories["utility"].enabled is True
    assert config.categories["ai"].enabled is False
