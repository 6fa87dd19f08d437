"""
Test configuration and shared fixtures.

FakeChannel stands in for the Socket.IO channel: it records emissions,
counts listeners per event and can answer requests on the next loop turn.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest


class FakeChannel:
    """In-memory duplex channel."""

    def __init__(self, connected: bool = True):
        self.connected = connected
        self.sid: Optional[str] = "sid-1"
        self.url: Optional[str] = None
        self.emitted: List[Tuple[str, Any]] = []
        self.connect_calls: List[str] = []
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}
        self._replies: Dict[str, List[Tuple[str, Any]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def total_listeners(self) -> int:
        return sum(len(h) for h in self._handlers.values())

    def reply(self, request_event: str, response_event: str, payload: Any) -> None:
        """Answer the next emission of ``request_event`` with ``payload``."""
        self._replies.setdefault(request_event, []).append((response_event, payload))

    def emit(self, event: str, data: Any = None) -> None:
        self.emitted.append((event, data))
        replies = self._replies.pop(event, [])
        if replies:
            loop = asyncio.get_running_loop()
            for response_event, payload in replies:
                loop.call_soon(self.fire, response_event, payload)

    def fire(self, event: str, *args: Any) -> None:
        for handler in list(self._handlers.get(event, [])):
            handler(*args)

    async def connect(self, url: str, **kwargs: Any) -> None:
        self.connect_calls.append(url)
        self.url = url
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False


@pytest.fixture
def fake_channel():
    """Connected fake channel."""
    return FakeChannel()


@pytest.fixture
def correlator(fake_channel):
    """Correlator with a short request timeout."""
    from protodice.sync.correlator import Correlator
    return Correlator(channel=fake_channel, base_url="http://test", request_timeout_ms=100)


@pytest.fixture
def scene():
    """Headless scene with a couple of loaded textures."""
    from protodice.render.scene import Scene
    return Scene(textures=("dice", "holder"))


@pytest.fixture
def orchestrator():
    from protodice.errors.recovery import RecoveryOrchestrator
    return RecoveryOrchestrator(settle_delay_seconds=0.01)


@pytest.fixture
def scheduler(orchestrator):
    """Scheduler with short timers and a recording reload handler."""
    from protodice.ui.scheduler import DisplayScheduler
    reloads = []
    sched = DisplayScheduler(
        orchestrator=orchestrator,
        cooldown_ms=50,
        readiness_poll_ms=20,
        reload_handler=lambda: reloads.append(True),
    )
    sched.reloads = reloads
    return sched


@pytest.fixture
def interceptor(scheduler, orchestrator):
    from protodice.errors.interceptor import FaultInterceptor
    interceptor = FaultInterceptor(scheduler=scheduler, orchestrator=orchestrator)
    yield interceptor
    interceptor.uninstall()
