"""HTTP service exposing browser sessions and actions."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..actions.dispatcher import ActionDispatcher
from ..browser.base import BrowserLauncher, BrowserSessionError
from ..config import AppConfig
from ..factory import build_dispatcher, build_launcher, build_notifier, build_registry
from ..models import (
    CheckRequest,
    DebugRequest,
    DebugResponse,
    DragRequest,
    ErrorResponse,
    FillRequest,
    GotoRequest,
    HealthResponse,
    LocatorRequest,
    PressRequest,
    ScreenshotResponse,
    SelectRequest,
    SessionRequest,
    SessionStartedResponse,
    StartSessionRequest,
    StatusResponse,
    TypeRequest,
    UploadRequest,
)
from ..notifications.base import Notifier
from ..sessions.registry import SessionRegistry, reap_forever

LOGGER = logging.getLogger(__name__)

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def error_response(
    status_code: int,
    message: str,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=message).model_dump(by_alias=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def handle_session_error(request: Request, exc: BrowserSessionError) -> JSONResponse:
    return error_response(exc.status_code, str(exc))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, format_validation_errors(exc.errors()))


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), headers=exc.headers)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    LOGGER.error("Unhandled error on %s: %r", request.url.path, exc)
    return error_response(500, str(exc) or exc.__class__.__name__)


def format_validation_errors(errors: Any) -> str:
    parts: list[str] = []
    for error in errors:
        location = [str(item) for item in error.get("loc", ()) if item != "body"]
        field = ".".join(location)
        message = error.get("msg", "invalid value")
        parts.append(f"{field}: {message}" if field else message)
    return "; ".join(parts) or "Invalid request"


class BrowserSessionApplication:
    """Wire the session registry and action dispatcher into a FastAPI app."""

    def __init__(
        self,
        config: AppConfig,
        launcher: BrowserLauncher,
        registry: SessionRegistry,
        dispatcher: ActionDispatcher,
    ) -> None:
        self._config = config
        self._launcher = launcher
        self._registry = registry
        self._dispatcher = dispatcher

    @contextlib.asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        await self._launcher.start()
        reaper: Optional[asyncio.Task[None]] = None
        idle_timeout = self._config.sessions.idle_timeout
        if idle_timeout:
            reaper = asyncio.create_task(
                reap_forever(self._registry, idle_timeout, self._config.sessions.reap_interval)
            )
        try:
            yield
        finally:
            if reaper is not None:
                reaper.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await reaper
            await self._registry.close_all()
            await self._launcher.stop()

    def create_app(self) -> FastAPI:
        app = FastAPI(title="Browser Session API", lifespan=self.lifespan)
        app.state.registry = self._registry
        app.state.dispatcher = self._dispatcher
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self._config.server.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        app.add_exception_handler(BrowserSessionError, handle_session_error)
        app.add_exception_handler(RequestValidationError, handle_validation_error)
        app.add_exception_handler(StarletteHTTPException, handle_http_error)
        app.add_exception_handler(Exception, handle_unexpected_error)

        @app.get("/health", response_model=HealthResponse)
        async def health() -> HealthResponse:
            return HealthResponse(sessions=len(self._registry))

        app.include_router(self._session_router())
        app.include_router(self._action_router())
        return app

    def _session_router(self) -> APIRouter:
        router = APIRouter(prefix="/session", responses=ERROR_RESPONSES)
        registry = self._registry

        @router.post("/start", response_model=SessionStartedResponse)
        async def start_session(
            payload: Optional[StartSessionRequest] = Body(default=None),
        ) -> SessionStartedResponse:
            payload = payload or StartSessionRequest()
            session = await registry.create(payload.browser, payload.headless)
            return SessionStartedResponse(session_id=session.id)

        @router.post("/close", response_model=StatusResponse)
        async def close_session(payload: SessionRequest) -> StatusResponse:
            await registry.destroy(payload.session_id)
            return StatusResponse()

        return router

    def _action_router(self) -> APIRouter:
        router = APIRouter(prefix="/action", responses=ERROR_RESPONSES)
        dispatcher = self._dispatcher

        @router.post("/click", response_model=ScreenshotResponse)
        async def click(payload: LocatorRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.click(payload.session_id, payload.locator)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/fill", response_model=ScreenshotResponse)
        async def fill(payload: FillRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.fill(payload.session_id, payload.locator, payload.value)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/hover", response_model=ScreenshotResponse)
        async def hover(payload: LocatorRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.hover(payload.session_id, payload.locator)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/goto", response_model=ScreenshotResponse)
        async def goto(payload: GotoRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.goto(payload.session_id, payload.url)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/type", response_model=ScreenshotResponse)
        async def type_text(payload: TypeRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.type_text(
                payload.session_id,
                payload.locator,
                payload.text,
                delay=payload.delay,
            )
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/press", response_model=ScreenshotResponse)
        async def press(payload: PressRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.press(payload.session_id, payload.locator, payload.key)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/check", response_model=ScreenshotResponse)
        async def check(payload: CheckRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.check(
                payload.session_id, payload.locator, checked=payload.checked
            )
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/select", response_model=ScreenshotResponse)
        async def select(payload: SelectRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.select(payload.session_id, payload.locator, payload.value)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/upload", response_model=ScreenshotResponse)
        async def upload(payload: UploadRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.upload(payload.session_id, payload.locator, payload.files)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/focus", response_model=ScreenshotResponse)
        async def focus(payload: LocatorRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.focus(payload.session_id, payload.locator)
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/drag", response_model=ScreenshotResponse)
        async def drag(payload: DragRequest) -> ScreenshotResponse:
            screenshot = await dispatcher.drag(
                payload.session_id, payload.source_locator, payload.target_locator
            )
            return ScreenshotResponse(screenshot=screenshot)

        @router.post("/debug", response_model=DebugResponse)
        async def debug(payload: DebugRequest) -> DebugResponse:
            element_info = await dispatcher.debug(payload.session_id, payload.locator)
            return DebugResponse(element_info=element_info)

        return router


def create_app(
    config: Optional[AppConfig] = None,
    *,
    launcher: Optional[BrowserLauncher] = None,
    notifier: Optional[Notifier] = None,
) -> FastAPI:
    """Build the FastAPI application from configuration."""

    config = config or AppConfig()
    launcher = launcher or build_launcher(config.browser)
    registry = build_registry(config, launcher, notifier or build_notifier(config.notifications))
    dispatcher = build_dispatcher(config, registry)
    return BrowserSessionApplication(config, launcher, registry, dispatcher).create_app()
