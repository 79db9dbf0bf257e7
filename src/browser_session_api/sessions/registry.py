"""Registry of live browser sessions."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from playwright.async_api import Error

from ..browser.base import (
    BrowserLauncher,
    BrowserSessionError,
    EngineOperationError,
    LaunchError,
    SessionNotFoundError,
)
from ..models import BrowserEngine, EventLevel, SessionEvent
from ..notifications.base import Notifier, NullNotifier

LOGGER = logging.getLogger(__name__)


@dataclass
class Session:
    """A launched browser with its single context and page."""

    id: str
    engine: BrowserEngine
    headless: bool
    browser: Any
    context: Any
    page: Any
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_used: float = field(default_factory=time.monotonic)
    in_flight: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


class SessionRegistry:
    """Own the mapping from session id to live :class:`Session` records.

    Insertions and removals are guarded by a lock. A session is only inserted
    once its browser, context and page all exist, and only removed after the
    context and browser have been closed.
    """

    def __init__(
        self,
        launcher: BrowserLauncher,
        *,
        notifier: Optional[Notifier] = None,
        default_engine: BrowserEngine = BrowserEngine.CHROMIUM,
        default_headless: bool = True,
        action_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._launcher = launcher
        self._notifier = notifier or NullNotifier()
        self._default_engine = default_engine
        self._default_headless = default_headless
        self._action_timeout = action_timeout
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def sessions(self) -> list[Session]:
        return list(self._sessions.values())

    async def create(
        self,
        engine: Optional[str] = None,
        headless: Optional[bool] = None,
    ) -> Session:
        """Launch a browser, open a context and page, then register the session."""

        selected = BrowserEngine.parse(engine, self._default_engine)
        if engine is not None and selected.value != str(engine).strip().lower():
            LOGGER.warning("Unknown browser %r, falling back to %s", engine, selected.value)
        if headless is None:
            headless = self._default_headless
        session_id = uuid.uuid4().hex
        try:
            browser = await self._launcher.launch(selected, headless)
            context = await browser.new_context(**self._launcher.context_options())
            if self._action_timeout is not None:
                context.set_default_timeout(self._action_timeout * 1000)
            page = await context.new_page()
        except Error as exc:
            self._emit(
                "session_launch_failed",
                f"Failed to launch {selected.value}",
                {"browser": selected.value, "error": exc.message},
                level=EventLevel.ERROR,
            )
            raise LaunchError(f"Failed to launch {selected.value}: {exc.message}") from exc
        session = Session(
            id=session_id,
            engine=selected,
            headless=headless,
            browser=browser,
            context=context,
            page=page,
            last_used=self._clock(),
        )
        async with self._lock:
            self._sessions[session_id] = session
        LOGGER.info("Started %s session %s", selected.value, session_id)
        self._emit(
            "session_started",
            f"Started {selected.value} session {session_id}",
            {
                "session_id": session_id,
                "browser": selected.value,
                "headless": headless,
                "created_at": session.created_at.isoformat(),
            },
        )
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def touch(self, session: Session) -> None:
        session.last_used = self._clock()

    async def destroy(self, session_id: str) -> None:
        """Close the session's context and browser, then unregister it.

        The id stays registered when either close fails so that a retry can
        still reach it.
        """

        session = self.require(session_id)
        async with session.lock:
            if self._sessions.get(session_id) is not session:
                raise SessionNotFoundError(session_id)
            await self._close(session)
        self._closed(session, "closed")

    async def reap_idle(self, idle_timeout: float) -> list[str]:
        """Destroy sessions without activity for more than ``idle_timeout`` seconds.

        Sessions with an action in flight are never reaped, whether or not
        actions are serialized.
        """

        reaped: list[str] = []
        for session in self.sessions():
            if session.lock.locked() or not self._expired(session, idle_timeout):
                continue
            async with session.lock:
                # an action may have started while waiting for the lock
                if self._sessions.get(session.id) is not session:
                    continue
                if not self._expired(session, idle_timeout):
                    continue
                try:
                    await self._close(session)
                except BrowserSessionError:
                    LOGGER.exception("Failed to reap idle session %s", session.id)
                    continue
            self._closed(session, "reaped")
            reaped.append(session.id)
        return reaped

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            try:
                await self.destroy(session_id)
            except BrowserSessionError as exc:
                LOGGER.warning("Leaving session %s open on shutdown: %s", session_id, exc)

    def _expired(self, session: Session, idle_timeout: float) -> bool:
        if session.in_flight:
            return False
        return self._clock() - session.last_used > idle_timeout

    async def _close(self, session: Session) -> None:
        try:
            await session.context.close()
            await session.browser.close()
        except Error as exc:
            LOGGER.warning("Failed to close session %s: %s", session.id, exc.message)
            self._emit(
                "session_close_failed",
                f"Failed to close session {session.id}",
                {"session_id": session.id, "error": exc.message},
                level=EventLevel.ERROR,
            )
            raise EngineOperationError(exc.message) from exc
        async with self._lock:
            self._sessions.pop(session.id, None)

    def _closed(self, session: Session, reason: str) -> None:
        LOGGER.info("Session %s %s", session.id, reason)
        self._emit(
            f"session_{reason}",
            f"Session {session.id} {reason}",
            {"session_id": session.id},
            level=EventLevel.WARNING if reason == "reaped" else EventLevel.INFO,
        )

    def _emit(
        self,
        event_type: str,
        message: str,
        data: dict[str, Any],
        *,
        level: EventLevel = EventLevel.INFO,
    ) -> None:
        event = SessionEvent(type=event_type, message=message, level=level, data=data)
        self._notifier.notify(event)


async def reap_forever(registry: SessionRegistry, idle_timeout: float, interval: float) -> None:
    """Periodically close idle sessions until cancelled."""

    LOGGER.info("Reaping sessions idle for more than %ss every %ss", idle_timeout, interval)
    while True:
        await asyncio.sleep(interval)
        reaped = await registry.reap_idle(idle_timeout)
        if reaped:
            LOGGER.info("Reaped %d idle session(s)", len(reaped))
