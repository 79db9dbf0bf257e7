"""Factories for constructing components from configuration."""

from __future__ import annotations

from .actions.dispatcher import ActionDispatcher
from .browser.base import BrowserLauncher
from .browser.playwright_launcher import PlaywrightLauncher
from .config import AppConfig, BrowserConfig, NotificationConfig
from .notifications.base import (
    CompositeNotifier,
    ConsoleNotifier,
    LoggingNotifier,
    Notifier,
    NullNotifier,
)
from .sessions.registry import SessionRegistry


def build_launcher(config: BrowserConfig) -> BrowserLauncher:
    return PlaywrightLauncher(config)


def build_notifier(config: NotificationConfig) -> Notifier:
    """Build the notifier for a comma separated list of channels."""

    notifiers = [_build_channel(channel) for channel in config.channels()]
    notifiers = [notifier for notifier in notifiers if not isinstance(notifier, NullNotifier)]
    if not notifiers:
        return NullNotifier()
    if len(notifiers) == 1:
        return notifiers[0]
    return CompositeNotifier(notifiers)


def _build_channel(channel: str) -> Notifier:
    if channel == "console":
        return ConsoleNotifier()
    if channel == "log":
        return LoggingNotifier()
    if channel in {"none", "null", "off"}:
        return NullNotifier()
    raise ValueError(f"Unsupported notification channel: {channel}")


def build_registry(
    config: AppConfig,
    launcher: BrowserLauncher,
    notifier: Notifier,
) -> SessionRegistry:
    return SessionRegistry(
        launcher,
        notifier=notifier,
        default_engine=config.browser.default_engine,
        default_headless=config.browser.headless,
        action_timeout=config.browser.action_timeout,
    )


def build_dispatcher(config: AppConfig, registry: SessionRegistry) -> ActionDispatcher:
    return ActionDispatcher(
        registry,
        serialize_actions=config.sessions.serialize_actions,
        full_page_screenshots=config.screenshots.full_page,
    )
