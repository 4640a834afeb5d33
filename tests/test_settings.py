"""Tests for configuration loading."""

import json

import pytest

from labelmaker.core.settings import DEFAULT_HOOK_EVENTS, Settings


def test_defaults():
    settings = Settings()
    assert settings.server.port == 8787
    assert settings.redis.max_connections == 10
    assert settings.redis.client_name == "labelmaker"
    assert settings.hooks.token_length == 20
    assert settings.github.events == DEFAULT_HOOK_EVENTS


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LABELMAKER_REDIS_URL", "redis://cache:6380")
    monkeypatch.setenv("LABELMAKER_HOOKS_MAX_TOKEN_ATTEMPTS", "3")
    settings = Settings()
    assert settings.redis.url == "redis://cache:6380"
    assert settings.hooks.max_token_attempts == 3


def test_yaml_file(tmp_path):
    config = tmp_path / "labelmaker.yaml"
    config.write_text(
        "server:\n"
        "  public_url: https://hooks.example.com/\n"
        "redis:\n"
        "  db: 2\n"
    )
    settings = Settings.from_file(config)
    assert settings.server.public_url == "https://hooks.example.com"
    assert settings.redis.db == 2


def test_json_file(tmp_path):
    config = tmp_path / "labelmaker.json"
    config.write_text(json.dumps({"hooks": {"secret_length": 40}}))
    assert Settings.from_file(config).hooks.secret_length == 40


def test_unsupported_file(tmp_path):
    config = tmp_path / "labelmaker.toml"
    config.write_text("")
    with pytest.raises(ValueError):
        Settings.from_file(config)
