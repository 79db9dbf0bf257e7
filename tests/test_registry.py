from __future__ import annotations

import asyncio
from datetime import datetime

import pytest

from browser_session_api.browser.base import (
    EngineOperationError,
    LaunchError,
    SessionNotFoundError,
)
from browser_session_api.models import BrowserEngine, EventLevel, SessionEvent
from browser_session_api.notifications.base import Notifier
from browser_session_api.sessions.registry import SessionRegistry, reap_forever
from fakes import FakeLauncher


class StubNotifier(Notifier):
    def __init__(self) -> None:
        self.events: list[SessionEvent] = []

    def notify(self, event: SessionEvent) -> None:
        self.events.append(event)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_create_registers_session_with_fresh_ids(launcher: FakeLauncher) -> None:
    async def scenario() -> None:
        registry = SessionRegistry(launcher)
        ids = set()
        for engine in ("chromium", "firefox", "webkit"):
            session = await registry.create(engine, True)
            assert session.engine is BrowserEngine(engine)
            assert session.page is session.context.page
            ids.add(session.id)
        assert len(ids) == 3
        assert len(registry) == 3
        assert all(session_id in registry for session_id in ids)

    asyncio.run(scenario())


def test_unknown_engine_falls_back_to_chromium(launcher: FakeLauncher) -> None:
    async def scenario() -> None:
        registry = SessionRegistry(launcher, default_engine=BrowserEngine.FIREFOX)
        session = await registry.create("netscape", False)
        assert session.engine is BrowserEngine.CHROMIUM
        assert launcher.browsers[-1].engine is BrowserEngine.CHROMIUM
        assert launcher.browsers[-1].headless is False

        defaulted = await registry.create()
        assert defaulted.engine is BrowserEngine.FIREFOX
        assert defaulted.headless is True

        upper = await registry.create("WebKit")
        assert upper.engine is BrowserEngine.WEBKIT

    asyncio.run(scenario())


def test_create_applies_context_options_and_timeout() -> None:
    launcher = FakeLauncher()
    launcher.options = {"viewport": {"width": 800, "height": 600}}

    async def scenario() -> None:
        registry = SessionRegistry(launcher, action_timeout=2.5)
        session = await registry.create()
        assert session.context.options == {"viewport": {"width": 800, "height": 600}}
        assert session.context.default_timeout == 2500

    asyncio.run(scenario())


@pytest.mark.parametrize(
    "launcher",
    [FakeLauncher(fail_launch=True), FakeLauncher(fail_new_page=True)],
)
def test_failed_launch_registers_nothing(launcher: FakeLauncher) -> None:
    async def scenario() -> None:
        registry = SessionRegistry(launcher)
        with pytest.raises(LaunchError) as exc_info:
            await registry.create("chromium")
        assert "chromium" in str(exc_info.value)
        assert len(registry) == 0

    asyncio.run(scenario())


def test_destroy_closes_context_then_browser(launcher: FakeLauncher) -> None:
    notifier = StubNotifier()

    async def scenario() -> None:
        registry = SessionRegistry(launcher, notifier=notifier)
        session = await registry.create()
        await registry.destroy(session.id)
        assert session.browser.log == ["context.close", "browser.close"]
        assert registry.get(session.id) is None
        with pytest.raises(SessionNotFoundError):
            await registry.destroy(session.id)

    asyncio.run(scenario())
    assert [event.type for event in notifier.events] == ["session_started", "session_closed"]


def test_destroy_unknown_session() -> None:
    async def scenario() -> None:
        registry = SessionRegistry(FakeLauncher())
        with pytest.raises(SessionNotFoundError) as exc_info:
            await registry.destroy("never-created")
        assert exc_info.value.status_code == 404
        assert "never-created" in str(exc_info.value)

    asyncio.run(scenario())


def test_failed_close_keeps_session_for_retry(launcher: FakeLauncher) -> None:
    async def scenario() -> None:
        registry = SessionRegistry(launcher)
        session = await registry.create()
        session.browser.fail_close = True
        with pytest.raises(EngineOperationError):
            await registry.destroy(session.id)
        assert registry.get(session.id) is session

        session.browser.fail_close = False
        await registry.destroy(session.id)
        assert registry.get(session.id) is None

    asyncio.run(scenario())


def test_get_does_not_mutate(launcher: FakeLauncher) -> None:
    clock = FakeClock()

    async def scenario() -> None:
        registry = SessionRegistry(launcher, clock=clock)
        session = await registry.create()
        clock.now += 50
        assert registry.get(session.id) is session
        assert session.last_used == 1000.0
        assert registry.get("missing") is None

    asyncio.run(scenario())


def test_reap_idle_closes_only_expired_sessions(launcher: FakeLauncher) -> None:
    clock = FakeClock()
    notifier = StubNotifier()

    async def scenario() -> None:
        registry = SessionRegistry(launcher, notifier=notifier, clock=clock)
        stale = await registry.create()
        clock.now += 100
        fresh = await registry.create()
        clock.now += 30

        reaped = await registry.reap_idle(60)

        assert reaped == [stale.id]
        assert stale.id not in registry
        assert fresh.id in registry
        assert stale.browser.closed

    asyncio.run(scenario())
    assert notifier.events[-1].type == "session_reaped"


def test_reap_idle_keeps_sessions_that_fail_to_close(launcher: FakeLauncher) -> None:
    clock = FakeClock()

    async def scenario() -> None:
        registry = SessionRegistry(launcher, clock=clock)
        session = await registry.create()
        session.context.fail_close = True
        clock.now += 500
        assert await registry.reap_idle(60) == []
        assert session.id in registry

    asyncio.run(scenario())


def test_reap_forever_runs_until_cancelled(launcher: FakeLauncher) -> None:
    clock = FakeClock()

    async def scenario() -> None:
        registry = SessionRegistry(launcher, clock=clock)
        session = await registry.create()
        clock.now += 120
        task = asyncio.create_task(reap_forever(registry, 60, 0.01))
        for _ in range(100):
            if session.id not in registry:
                break
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert session.id not in registry

    asyncio.run(scenario())


def test_close_all(launcher: FakeLauncher) -> None:
    async def scenario() -> None:
        registry = SessionRegistry(launcher)
        first = await registry.create()
        second = await registry.create()
        second.browser.fail_close = True
        await registry.close_all()
        assert first.id not in registry
        assert second.id in registry

    asyncio.run(scenario())


def test_reap_idle_skips_sessions_with_actions_in_flight(launcher: FakeLauncher) -> None:
    clock = FakeClock()

    async def scenario() -> None:
        registry = SessionRegistry(launcher, clock=clock)
        session = await registry.create()
        session.in_flight = 1
        clock.now += 500
        assert await registry.reap_idle(60) == []
        assert session.id in registry

        session.in_flight = 0
        assert await registry.reap_idle(60) == [session.id]

    asyncio.run(scenario())


def test_lifecycle_events_carry_failures_and_creation_time() -> None:
    notifier = StubNotifier()

    async def scenario() -> None:
        registry = SessionRegistry(FakeLauncher(fail_launch=True), notifier=notifier)
        with pytest.raises(LaunchError):
            await registry.create("firefox")

        healthy = SessionRegistry(FakeLauncher(), notifier=notifier)
        session = await healthy.create()
        session.browser.fail_close = True
        with pytest.raises(EngineOperationError):
            await healthy.destroy(session.id)

    asyncio.run(scenario())
    failed_launch, started, failed_close = notifier.events
    assert failed_launch.type == "session_launch_failed"
    assert failed_launch.level is EventLevel.ERROR
    assert "Executable doesn't exist" in failed_launch.data["error"]
    assert datetime.fromisoformat(started.data["created_at"]) <= started.timestamp
    assert failed_close.type == "session_close_failed"
    assert failed_close.level is EventLevel.ERROR
