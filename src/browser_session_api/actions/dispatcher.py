"""Dispatch browser actions against registered sessions."""

from __future__ import annotations

import base64
import contextlib
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Sequence, Union

from playwright.async_api import Error

from ..browser.base import EngineOperationError, InvalidLocatorError, SessionNotFoundError
from ..browser.locators import Locator, Selector, describe_locator, parse_locator, resolve_locator
from ..models import ElementInfo
from ..sessions.registry import Session, SessionRegistry

LOGGER = logging.getLogger(__name__)

ELEMENT_PROBE_JS = """
(selector) => {
    const element = document.querySelector(selector);
    if (!element) return null;
    const className = typeof element.className === 'string'
        ? element.className
        : element.getAttribute('class');
    return {
        tagName: element.tagName,
        id: element.id,
        name: element.getAttribute('name'),
        type: element.type === undefined ? null : String(element.type),
        role: element.getAttribute('role'),
        ariaLabel: element.getAttribute('aria-label'),
        className: className,
        placeholder: element.placeholder === undefined ? null : element.placeholder,
        value: element.value === undefined ? null : String(element.value),
    };
}
"""

PageOperation = Callable[[Any], Awaitable[Any]]


class ActionDispatcher:
    """Run one engine primitive per call and capture the resulting page.

    Every action looks up its session, resolves locators freshly against the
    session page, performs the primitive and returns a base64 screenshot.
    Nothing is rolled back when a later step fails.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        serialize_actions: bool = True,
        full_page_screenshots: bool = True,
    ) -> None:
        self._registry = registry
        self._serialize = serialize_actions
        self._full_page = full_page_screenshots

    # Public API --------------------------------------------------------------

    async def click(self, session_id: str, locator: object) -> str:
        target = parse_locator(locator)
        return await self._perform(
            session_id, "click", target, lambda page: resolve_locator(page, target).click()
        )

    async def fill(self, session_id: str, locator: object, value: str) -> str:
        target = parse_locator(locator)
        return await self._perform(
            session_id, "fill", target, lambda page: resolve_locator(page, target).fill(value)
        )

    async def hover(self, session_id: str, locator: object) -> str:
        target = parse_locator(locator)
        return await self._perform(
            session_id, "hover", target, lambda page: resolve_locator(page, target).hover()
        )

    async def focus(self, session_id: str, locator: object) -> str:
        target = parse_locator(locator)
        return await self._perform(
            session_id, "focus", target, lambda page: resolve_locator(page, target).focus()
        )

    async def goto(self, session_id: str, url: str) -> str:
        return await self._perform(session_id, "goto", None, lambda page: page.goto(url))

    async def type_text(
        self,
        session_id: str,
        locator: object,
        text: str,
        delay: Optional[float] = None,
    ) -> str:
        target = parse_locator(locator)
        return await self._perform(
            session_id,
            "type",
            target,
            lambda page: resolve_locator(page, target).press_sequentially(text, delay=delay or 0),
        )

    async def press(self, session_id: str, locator: object, key: str) -> str:
        target = parse_locator(locator)
        return await self._perform(
            session_id, "press", target, lambda page: resolve_locator(page, target).press(key)
        )

    async def check(self, session_id: str, locator: object, checked: bool = True) -> str:
        target = parse_locator(locator)
        return await self._perform(
            session_id,
            "check",
            target,
            lambda page: resolve_locator(page, target).set_checked(checked),
        )

    async def select(
        self,
        session_id: str,
        locator: object,
        value: Union[str, Sequence[str]],
    ) -> str:
        target = parse_locator(locator)
        option = value if isinstance(value, str) else list(value)
        return await self._perform(
            session_id,
            "select",
            target,
            lambda page: resolve_locator(page, target).select_option(option),
        )

    async def upload(
        self,
        session_id: str,
        locator: object,
        files: Union[str, Sequence[str]],
    ) -> str:
        target = parse_locator(locator)
        paths = files if isinstance(files, str) else list(files)
        return await self._perform(
            session_id,
            "upload",
            target,
            lambda page: resolve_locator(page, target).set_input_files(paths),
        )

    async def drag(self, session_id: str, source_locator: object, target_locator: object) -> str:
        source = parse_locator(source_locator)
        target = parse_locator(target_locator)

        async def _drag(page: Any) -> None:
            await resolve_locator(page, source).drag_to(resolve_locator(page, target))

        return await self._perform(session_id, "drag", source, _drag)

    async def debug(self, session_id: str, locator: object) -> Optional[ElementInfo]:
        """Describe the first element matching a selector string, or ``None``."""

        target = parse_locator(locator)
        if not isinstance(target, Selector):
            raise InvalidLocatorError("Debug only supports selector string locators")
        session = self._registry.require(session_id)
        LOGGER.info("Session %s: debug %s", session_id, target.value)
        async with self._guard(session):
            try:
                result = await session.page.evaluate(ELEMENT_PROBE_JS, target.value)
            except Error as exc:
                LOGGER.warning("Session %s: debug failed: %s", session_id, exc.message)
                raise EngineOperationError(exc.message) from exc
        if not result:
            return None
        return ElementInfo.model_validate(result)

    # Internals ---------------------------------------------------------------

    async def _perform(
        self,
        session_id: str,
        action: str,
        locator: Optional[Locator],
        operation: PageOperation,
    ) -> str:
        session = self._registry.require(session_id)
        if locator is None:
            LOGGER.info("Session %s: %s", session_id, action)
        else:
            LOGGER.info("Session %s: %s %s", session_id, action, describe_locator(locator))
        async with self._guard(session):
            try:
                await operation(session.page)
                screenshot = await session.page.screenshot(full_page=self._full_page, type="png")
            except (Error, OSError) as exc:
                message = _error_message(exc)
                LOGGER.warning("Session %s: %s failed: %s", session_id, action, message)
                raise EngineOperationError(message) from exc
        return base64.b64encode(screenshot).decode("ascii")

    @contextlib.asynccontextmanager
    async def _guard(self, session: Session) -> AsyncIterator[None]:
        # in_flight keeps the idle reaper away whether or not actions serialize
        session.in_flight += 1
        self._registry.touch(session)
        try:
            if not self._serialize:
                yield
                return
            async with session.lock:
                # the session may have been closed while waiting for the lock
                if self._registry.get(session.id) is not session:
                    raise SessionNotFoundError(session.id)
                yield
        finally:
            session.in_flight -= 1
            self._registry.touch(session)


def _error_message(exc: Exception) -> str:
    if isinstance(exc, Error):
        return exc.message
    return str(exc)
