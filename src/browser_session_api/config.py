"""Configuration models for the browser session API."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import BrowserEngine


class ServerConfig(BaseModel):
    """Settings for the HTTP listener."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class BrowserConfig(BaseModel):
    """Defaults applied when launching browser engines."""

    default_engine: BrowserEngine = BrowserEngine.CHROMIUM
    headless: bool = True
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-dev-shm-usage",
            "--disable-gpu",
        ],
        description="Extra command line flags, only passed to chromium.",
    )
    viewport_width: Optional[int] = None
    viewport_height: Optional[int] = None
    action_timeout: Optional[float] = Field(
        default=None,
        description="Default timeout (in seconds) for engine operations.",
    )


class SessionConfig(BaseModel):
    """Lifecycle policy for registered sessions."""

    serialize_actions: bool = Field(
        default=True,
        description="Run actions against the same session one at a time.",
    )
    idle_timeout: Optional[float] = Field(
        default=None,
        description="Close sessions idle for this many seconds. Disabled when unset.",
    )
    reap_interval: float = Field(default=30.0)


class ScreenshotConfig(BaseModel):
    """Screenshot capture settings."""

    full_page: bool = True


class NotificationConfig(BaseModel):
    """Notification channel settings."""

    channel: str = Field(
        default="console",
        description="Comma separated channels: console, log or none.",
    )

    def channels(self) -> list[str]:
        return [item.strip().lower() for item in self.channel.split(",") if item.strip()]


class AppConfig(BaseSettings):
    """Top-level configuration for the service."""

    model_config = SettingsConfigDict(
        env_prefix="BROWSER_SESSION_API_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    screenshots: ScreenshotConfig = Field(default_factory=ScreenshotConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)

    @model_validator(mode="before")
    @classmethod
    def apply_plain_port(cls, data: Any) -> Any:
        """Honour a bare ``PORT`` variable when no prefixed port is configured."""

        port = os.environ.get("PORT")
        if not port or not isinstance(data, Mapping):
            return data
        server = data.get("server")
        if server is not None and (not isinstance(server, Mapping) or "port" in server):
            return data
        return {**data, "server": {**(server or {}), "port": port}}


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> AppConfig:
    """Load configuration from an optional YAML file, the environment and overrides."""

    data: dict[str, Any] = {}
    if path:
        import yaml

        data = yaml.safe_load(path.read_text()) or {}
    if overrides:
        _deep_update(data, overrides)
    settings_kwargs: dict[str, object] = {}
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file
    config = AppConfig(**data, **settings_kwargs)
    if not data:
        return config

    merged = config.model_dump(mode="python")
    _deep_update(merged, data)
    return AppConfig.model_validate(merged)


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> None:
    """Recursively merge ``updates`` into ``target`` in-place."""

    for key, value in updates.items():
        if (
            isinstance(value, Mapping)
            and isinstance(existing := target.get(key), Mapping)
        ):
            nested: dict[str, Any]
            if isinstance(existing, dict):
                nested = existing
            else:
                nested = dict(existing)
            _deep_update(nested, value)
            target[key] = nested
        else:
            target[key] = value
