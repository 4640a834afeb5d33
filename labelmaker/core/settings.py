"""
Centralized configuration management using Pydantic Settings.

This module provides a single source of truth for the registry's
configuration, with support for environment variables, .env files, and
YAML or JSON configuration files.
"""

from pathlib import Path
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field, validator
from pydantic.types import SecretStr
import yaml
import json


DEFAULT_HOOK_EVENTS = [
    "issue_comment",
    "issues",
    "pull_request_review_comment",
    "pull_request",
    "push",
    "status",
]


class RedisSettings(BaseSettings):
    """Durable store connection configuration."""

    url: str = Field("redis://localhost:6379", description="Redis connection URL")
    db: int = Field(0, description="Redis database number")

    # Pool sizing: when every connection is busy, callers wait up to
    # pool_timeout seconds for one to be released
    max_connections: int = Field(10, description="Max pooled connections")
    pool_timeout: float = Field(5.0, description="Seconds to wait for a free connection")

    socket_timeout: float = Field(5.0, description="Per-command socket timeout")
    socket_connect_timeout: float = Field(5.0, description="Connect timeout")
    health_check_interval: int = Field(30, description="Idle connection health check interval")
    client_name: str = Field("labelmaker", description="Name sent with CLIENT SETNAME")

    class Config:
        env_prefix = "LABELMAKER_REDIS_"
        extra = "ignore"


class GitHubSettings(BaseSettings):
    """GitHub API configuration."""

    api_url: str = Field("https://api.github.com", description="GitHub REST API base URL")
    client_id: Optional[str] = Field(None, description="OAuth application client id")
    client_secret: Optional[SecretStr] = Field(None, description="OAuth application secret")
    timeout_seconds: float = Field(10.0, description="Request timeout")
    events: List[str] = Field(
        default_factory=lambda: list(DEFAULT_HOOK_EVENTS),
        description="Events every registered hook subscribes to"
    )

    class Config:
        env_prefix = "LABELMAKER_GITHUB_"
        extra = "ignore"


class HookSettings(BaseSettings):
    """Hook minting and intake configuration."""

    token_length: int = Field(20, ge=1, description="Length of minted hook paths")
    secret_length: int = Field(32, ge=1, description="Length of minted HMAC secrets")
    max_token_attempts: int = Field(5, ge=1, description="Regenerations allowed on path collision")

    # Replay protection keyed on X-GitHub-Delivery
    reject_replayed_deliveries: bool = Field(True, description="Refuse repeated delivery ids")
    delivery_ttl_seconds: int = Field(86400, description="How long delivery ids are remembered")

    # Downstream dispatch
    queue_size: int = Field(1000, description="Max verified events waiting for handlers")
    workers: int = Field(4, description="Number of dispatch workers")

    class Config:
        env_prefix = "LABELMAKER_HOOKS_"
        extra = "ignore"


class ServerSettings(BaseSettings):
    """HTTP server configuration."""

    host: str = Field("0.0.0.0", description="Bind host")
    port: int = Field(8787, description="Bind port")
    public_url: str = Field(
        "http://localhost:8787",
        description="Externally reachable base URL GitHub posts callbacks to"
    )

    class Config:
        env_prefix = "LABELMAKER_SERVER_"
        extra = "ignore"

    @validator("public_url")
    def strip_trailing_slash(cls, v):
        """Callback URLs are built as public_url + /hooks/<token>."""
        return v.rstrip("/")


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    log_level: str = Field("INFO", description="Default log level")
    console_log_level: str = Field("INFO", description="Console log level")
    file_log_level: str = Field("DEBUG", description="File log level")

    log_format: str = Field("text", description="Log format: text, structured, json")
    log_dir: Optional[Path] = Field(None, description="Log directory; no file logging when unset")
    log_file_name: str = Field("labelmaker.log", description="Log file name")

    max_log_size_mb: int = Field(100, description="Max log file size in MB")
    backup_count: int = Field(5, description="Number of backup files to keep")

    class Config:
        env_prefix = "LABELMAKER_LOG_"
        extra = "ignore"


class Settings(BaseSettings):
    """Main settings class combining all configuration sections."""

    debug: bool = Field(False, description="Debug mode")

    redis: RedisSettings = Field(default_factory=RedisSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    hooks: HookSettings = Field(default_factory=HookSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "LABELMAKER_"
        extra = "ignore"

    @classmethod
    def from_file(cls, file_path: Path) -> "Settings":
        """Load settings from a YAML or JSON file."""
        if file_path.suffix in [".yaml", ".yml"]:
            with open(file_path, "r") as f:
                data = yaml.safe_load(f) or {}
        elif file_path.suffix == ".json":
            with open(file_path, "r") as f:
                data = json.load(f)
        else:
            raise ValueError(f"Unsupported config file format: {file_path.suffix}")

        return cls(**data)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(file_path: Optional[Path] = None) -> Settings:
    """Load settings from file or environment."""
    global _settings

    if file_path:
        _settings = Settings.from_file(file_path)
    else:
        config_locations = [
            Path(".labelmaker.yaml"),
            Path(".labelmaker.yml"),
            Path("config/labelmaker.yaml"),
            Path("config/labelmaker.yml"),
        ]

        for config_path in config_locations:
            if config_path.exists():
                _settings = Settings.from_file(config_path)
                break
        else:
            _settings = Settings()

    return _settings
