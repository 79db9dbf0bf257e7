"""Playwright-powered browser launcher."""

from __future__ import annotations

import logging
from typing import Any, Optional

from playwright.async_api import Browser, Playwright, async_playwright

from ..config import BrowserConfig
from ..models import BrowserEngine
from .base import BrowserLauncher, LaunchError

LOGGER = logging.getLogger(__name__)


class PlaywrightLauncher(BrowserLauncher):
    """Launch browsers through a shared Playwright driver."""

    def __init__(self, config: Optional[BrowserConfig] = None) -> None:
        self._config = config or BrowserConfig()
        self._playwright: Optional[Playwright] = None

    async def start(self) -> None:
        if self._playwright is not None:
            return
        LOGGER.debug("Starting Playwright driver")
        self._playwright = await async_playwright().start()

    async def stop(self) -> None:
        if self._playwright is None:
            return
        LOGGER.debug("Stopping Playwright driver")
        try:
            await self._playwright.stop()
        finally:
            self._playwright = None

    async def launch(self, engine: BrowserEngine, headless: bool) -> Browser:
        if self._playwright is None:
            raise LaunchError("Playwright driver is not started")
        launch_kwargs: dict[str, Any] = {"headless": headless}
        if engine is BrowserEngine.CHROMIUM and self._config.launch_args:
            launch_kwargs["args"] = list(self._config.launch_args)
        browser_type = getattr(self._playwright, engine.value)
        LOGGER.debug("Launching %s (headless=%s)", engine.value, headless)
        return await browser_type.launch(**launch_kwargs)

    def context_options(self) -> dict[str, Any]:
        if self._config.viewport_width and self._config.viewport_height:
            return {
                "viewport": {
                    "width": self._config.viewport_width,
                    "height": self._config.viewport_height,
                }
            }
        return {}
