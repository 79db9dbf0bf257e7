"""HTTP client for talking to a browser session API server."""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional, Union

import httpx

from .models import (
    DebugResponse,
    ElementInfo,
    HealthResponse,
    RoleNamePayload,
    ScreenshotResponse,
    SessionStartedResponse,
)

LocatorArg = Union[str, RoleNamePayload, Dict[str, str]]


class BrowserSessionAPIError(RuntimeError):
    """Raised when the server answers with an error response."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class BrowserSessionClient:
    """Wrapper around the session and action HTTP API."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def health(self) -> HealthResponse:
        async with self._client() as client:
            response = await client.get("/health")
        return HealthResponse.model_validate(_checked(response))

    async def start_session(
        self,
        *,
        browser: Optional[str] = None,
        headless: Optional[bool] = None,
    ) -> str:
        payload: Dict[str, Any] = {}
        if browser is not None:
            payload["browser"] = browser
        if headless is not None:
            payload["headless"] = headless
        data = await self._post("/session/start", payload)
        return SessionStartedResponse.model_validate(data).session_id

    async def close_session(self, session_id: str) -> None:
        await self._post("/session/close", {"sessionId": session_id})

    async def click(self, session_id: str, locator: LocatorArg) -> bytes:
        return await self._action("click", session_id, locator=_locator(locator))

    async def fill(self, session_id: str, locator: LocatorArg, value: str) -> bytes:
        return await self._action("fill", session_id, locator=_locator(locator), value=value)

    async def hover(self, session_id: str, locator: LocatorArg) -> bytes:
        return await self._action("hover", session_id, locator=_locator(locator))

    async def focus(self, session_id: str, locator: LocatorArg) -> bytes:
        return await self._action("focus", session_id, locator=_locator(locator))

    async def goto(self, session_id: str, url: str) -> bytes:
        return await self._action("goto", session_id, url=url)

    async def type_text(
        self,
        session_id: str,
        locator: LocatorArg,
        text: str,
        *,
        delay: Optional[float] = None,
    ) -> bytes:
        fields: Dict[str, Any] = {"locator": _locator(locator), "text": text}
        if delay is not None:
            fields["delay"] = delay
        return await self._action("type", session_id, **fields)

    async def press(self, session_id: str, locator: LocatorArg, key: str) -> bytes:
        return await self._action("press", session_id, locator=_locator(locator), key=key)

    async def check(self, session_id: str, locator: LocatorArg, checked: bool = True) -> bytes:
        return await self._action("check", session_id, locator=_locator(locator), checked=checked)

    async def select(
        self,
        session_id: str,
        locator: LocatorArg,
        value: Union[str, List[str]],
    ) -> bytes:
        return await self._action("select", session_id, locator=_locator(locator), value=value)

    async def upload(
        self,
        session_id: str,
        locator: LocatorArg,
        files: Union[str, List[str]],
    ) -> bytes:
        return await self._action("upload", session_id, locator=_locator(locator), files=files)

    async def drag(self, session_id: str, source: LocatorArg, target: LocatorArg) -> bytes:
        return await self._action(
            "drag",
            session_id,
            sourceLocator=_locator(source),
            targetLocator=_locator(target),
        )

    async def debug(self, session_id: str, selector: str) -> Optional[ElementInfo]:
        data = await self._post("/action/debug", {"sessionId": session_id, "locator": selector})
        return DebugResponse.model_validate(data).element_info

    async def _action(self, name: str, session_id: str, **fields: Any) -> bytes:
        payload = {"sessionId": session_id, **fields}
        data = await self._post(f"/action/{name}", payload)
        return _decode_screenshot(ScreenshotResponse.model_validate(data))

    async def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.post(path, json=payload)
        return _checked(response)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )


def _locator(value: LocatorArg) -> Union[str, Dict[str, str]]:
    if isinstance(value, RoleNamePayload):
        return {"role": value.role, "name": value.name}
    return value


def _checked(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        data = None
    if response.is_error:
        message = response.reason_phrase
        if isinstance(data, dict) and data.get("error"):
            message = str(data["error"])
        raise BrowserSessionAPIError(response.status_code, message)
    if not isinstance(data, dict):
        raise BrowserSessionAPIError(response.status_code, "Unexpected response body")
    return data


def _decode_screenshot(response: ScreenshotResponse) -> bytes:
    return base64.b64decode(response.screenshot)
