"""Shared models used across the browser session API."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BrowserEngine(str, enum.Enum):
    """Browser engines a session can be launched with."""

    CHROMIUM = "chromium"
    FIREFOX = "firefox"
    WEBKIT = "webkit"

    @classmethod
    def parse(cls, value: Optional[str], default: "BrowserEngine | None" = None) -> "BrowserEngine":
        """Return the engine named by ``value``, falling back instead of failing."""

        fallback = default or cls.CHROMIUM
        if value is None:
            return fallback
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.CHROMIUM


class ApiModel(BaseModel):
    """Base model speaking camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RoleNamePayload(ApiModel):
    """Locator identifying an element by accessibility role and accessible name."""

    role: str
    name: str


LocatorPayload = Union[str, RoleNamePayload]


# Requests --------------------------------------------------------------------


class StartSessionRequest(ApiModel):
    browser: Optional[str] = Field(default=None, description="chromium, firefox or webkit")
    headless: Optional[bool] = None


class SessionRequest(ApiModel):
    session_id: str


class LocatorRequest(SessionRequest):
    """Payload shared by click, hover and focus."""

    locator: LocatorPayload


class FillRequest(LocatorRequest):
    value: str


class SelectRequest(LocatorRequest):
    value: Union[str, list[str]]


class GotoRequest(SessionRequest):
    url: str


class TypeRequest(LocatorRequest):
    text: str
    delay: Optional[float] = Field(default=None, description="Milliseconds between key presses")


class PressRequest(LocatorRequest):
    key: str


class CheckRequest(LocatorRequest):
    checked: bool = True


class UploadRequest(LocatorRequest):
    files: Union[str, list[str]]


class DragRequest(SessionRequest):
    source_locator: LocatorPayload
    target_locator: LocatorPayload


class DebugRequest(SessionRequest):
    locator: str = Field(description="Selector string; role/name locators are not supported")


# Responses -------------------------------------------------------------------


class SessionStartedResponse(ApiModel):
    session_id: str


class StatusResponse(ApiModel):
    status: Literal["success"] = "success"


class ScreenshotResponse(StatusResponse):
    screenshot: str = Field(description="Base64 encoded PNG of the page after the action")


class ElementInfo(ApiModel):
    """Descriptor returned by the debug probe."""

    tag_name: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    type: Optional[str] = None
    role: Optional[str] = None
    aria_label: Optional[str] = None
    class_name: Optional[str] = None
    placeholder: Optional[str] = None
    value: Optional[str] = None


class DebugResponse(StatusResponse):
    element_info: Optional[ElementInfo] = None


class ErrorResponse(ApiModel):
    status: Literal["error"] = "error"
    error: str


class HealthResponse(ApiModel):
    status: str = "ok"
    sessions: int


# Events ----------------------------------------------------------------------


class EventLevel(str, enum.Enum):
    """Severity of session lifecycle events."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class SessionEvent(BaseModel):
    """Lifecycle event emitted by the session registry."""

    type: str
    message: str
    level: EventLevel = EventLevel.INFO
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
