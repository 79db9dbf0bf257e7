from __future__ import annotations

import asyncio

import pytest

from browser_session_api.browser.base import LaunchError
from browser_session_api.browser.playwright_launcher import PlaywrightLauncher
from browser_session_api.config import AppConfig, BrowserConfig, NotificationConfig
from browser_session_api.factory import build_dispatcher, build_notifier, build_registry
from browser_session_api.models import BrowserEngine
from browser_session_api.notifications.base import (
    CompositeNotifier,
    ConsoleNotifier,
    LoggingNotifier,
    NullNotifier,
)


class StubBrowserType:
    def __init__(self, name: str) -> None:
        self.name = name
        self.calls: list[dict[str, object]] = []

    async def launch(self, **kwargs: object) -> str:
        self.calls.append(kwargs)
        return f"{self.name}-browser"


class StubPlaywright:
    def __init__(self) -> None:
        self.chromium = StubBrowserType("chromium")
        self.firefox = StubBrowserType("firefox")
        self.webkit = StubBrowserType("webkit")
        self.stopped = False

    async def stop(self) -> None:
        self.stopped = True


def test_launch_passes_chromium_flags_only() -> None:
    launcher = PlaywrightLauncher(BrowserConfig(launch_args=["--no-sandbox"]))
    driver = StubPlaywright()
    launcher._playwright = driver  # type: ignore[assignment]

    async def scenario() -> None:
        assert await launcher.launch(BrowserEngine.CHROMIUM, True) == "chromium-browser"
        assert await launcher.launch(BrowserEngine.FIREFOX, False) == "firefox-browser"
        await launcher.stop()

    asyncio.run(scenario())

    assert driver.chromium.calls == [{"headless": True, "args": ["--no-sandbox"]}]
    assert driver.firefox.calls == [{"headless": False}]
    assert driver.stopped


def test_launch_requires_started_driver() -> None:
    launcher = PlaywrightLauncher()

    with pytest.raises(LaunchError):
        asyncio.run(launcher.launch(BrowserEngine.WEBKIT, True))


def test_context_options_use_viewport() -> None:
    assert PlaywrightLauncher(BrowserConfig()).context_options() == {}
    sized = PlaywrightLauncher(BrowserConfig(viewport_width=800, viewport_height=600))
    assert sized.context_options() == {"viewport": {"width": 800, "height": 600}}


def test_build_notifier_channels() -> None:
    assert isinstance(build_notifier(NotificationConfig(channel="console")), ConsoleNotifier)
    assert isinstance(build_notifier(NotificationConfig(channel="None")), NullNotifier)
    assert isinstance(build_notifier(NotificationConfig(channel="log")), LoggingNotifier)
    assert isinstance(build_notifier(NotificationConfig(channel="")), NullNotifier)
    assert isinstance(build_notifier(NotificationConfig(channel="none,log")), LoggingNotifier)
    fanned = build_notifier(NotificationConfig(channel="console,log"))
    assert isinstance(fanned, CompositeNotifier)
    with pytest.raises(ValueError):
        build_notifier(NotificationConfig(channel="console,pager"))


def test_build_registry_and_dispatcher_follow_config() -> None:
    config = AppConfig.model_validate(
        {
            "browser": {"default_engine": "webkit", "headless": False},
            "sessions": {"serialize_actions": False},
            "screenshots": {"full_page": False},
        }
    )
    launcher = PlaywrightLauncher(config.browser)
    registry = build_registry(config, launcher, NullNotifier())
    dispatcher = build_dispatcher(config, registry)

    assert registry._default_engine is BrowserEngine.WEBKIT
    assert registry._default_headless is False
    assert dispatcher._serialize is False
    assert dispatcher._full_page is False
