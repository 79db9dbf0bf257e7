"""Notification channels for session lifecycle events."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

from rich.console import Console

from ..models import EventLevel, SessionEvent

LOGGER = logging.getLogger(__name__)


class Notifier(ABC):
    """Interface for publishing session lifecycle events."""

    @abstractmethod
    def notify(self, event: SessionEvent) -> None:
        """Send a notification event."""


class NullNotifier(Notifier):
    """Notifier that discards every event."""

    def notify(self, event: SessionEvent) -> None:
        return None


class ConsoleNotifier(Notifier):
    """Print events to the console using Rich."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self._console = console or Console(stderr=True)

    def notify(self, event: SessionEvent) -> None:
        style = {
            "info": "cyan",
            "warning": "yellow",
            "error": "red",
        }.get(event.level.value, "white")
        self._console.print(
            f"[{event.level.value.upper()}] {event.message}", style=style, markup=False
        )
        if event.data:
            self._console.print(event.data, style="dim")


class LoggingNotifier(Notifier):
    """Forward events to the standard logging tree."""

    _LEVELS = {
        EventLevel.INFO: logging.INFO,
        EventLevel.WARNING: logging.WARNING,
        EventLevel.ERROR: logging.ERROR,
    }

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or LOGGER

    def notify(self, event: SessionEvent) -> None:
        self._logger.log(
            self._LEVELS.get(event.level, logging.INFO),
            "%s: %s %s",
            event.type,
            event.message,
            event.data,
        )


class CompositeNotifier(Notifier):
    """Send each session event to every configured channel, in order."""

    def __init__(self, notifiers: Iterable[Notifier]) -> None:
        self._notifiers = list(notifiers)

    def notify(self, event: SessionEvent) -> None:
        for notifier in self._notifiers:
            notifier.notify(event)
