"""Engine abstractions and the error taxonomy shared by the service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ..models import BrowserEngine


class BrowserSessionError(RuntimeError):
    """Base class for failures surfaced to API callers."""

    status_code = 500


class SessionNotFoundError(BrowserSessionError):
    """Raised when a session id is not registered."""

    status_code = 404

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class EngineOperationError(BrowserSessionError):
    """Raised when an underlying browser engine call fails."""


class LaunchError(BrowserSessionError):
    """Raised when a browser, context or page could not be created."""


class InvalidLocatorError(BrowserSessionError):
    """Raised when a locator value has an unsupported shape."""

    status_code = 400


class BrowserLauncher(ABC):
    """Interface for starting browser engine instances."""

    async def start(self) -> None:
        """Prepare the launcher before the first launch."""

    async def stop(self) -> None:
        """Release resources held by the launcher."""

    @abstractmethod
    async def launch(self, engine: BrowserEngine, headless: bool) -> Any:
        """Launch a new browser instance and return its handle."""

    def context_options(self) -> dict[str, Any]:
        """Keyword arguments for ``browser.new_context``."""

        return {}
