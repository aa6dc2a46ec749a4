"""Pytest configuration and fixtures for test suite."""

import asyncio
import inspect
from typing import Any, Callable, Dict, List

import pytest

from agrilink.event_hub import EventHub
from agrilink.models.config_data import configData
from agrilink.models.events import Topic
from agrilink.services.telemetry_service import TelemetryService
from agrilink.transport import TransportError


class ManualHandle:
    def __init__(self, when: float, delay: float, callback: Callable[[], None]):
        self.when = when
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler driven by the test: time only moves on advance()."""

    def __init__(self):
        self.now = 0.0
        self.handles: List[ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(self.now + delay, delay, callback)
        self.handles.append(handle)
        return handle

    def pending(self) -> List[ManualHandle]:
        live = [h for h in self.handles if not h.cancelled and not h.fired]
        return sorted(live, key=lambda h: h.when)

    def delays_for(self, callback: Callable[[], None]) -> List[float]:
        """Delays of every call_later made for callback, cancelled ones included."""
        return [h.delay for h in self.handles if h.callback == callback]

    def run_next(self) -> ManualHandle:
        handle = self.pending()[0]
        self.now = handle.when
        handle.fired = True
        handle.callback()
        return handle

    def advance(self, seconds: float):
        target = self.now + seconds
        while True:
            due = [h for h in self.pending() if h.when <= target]
            if not due:
                break
            self.run_next()
        self.now = target


class FakeTransport:
    """
    In-memory stand-in for the Socket.IO handle.

    outcome decides what connect() does:
    - "connect": mark connected and fire the connect event
    - "error": raise TransportError
    - "connect_error": fire the connect_error event and return
    - "hang": never complete (until cancelled)

    close_yields makes disconnect() give up the loop that many times.
    """

    def __init__(self, outcome: str = "connect", close_yields: int = 0):
        self.outcome = outcome
        self.close_yields = close_yields
        self.connected = False
        self.handlers: Dict[str, Callable[..., Any]] = {}
        self.emitted: List[tuple] = []
        self.connect_calls: List[str] = []
        self.closed = False

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self.handlers[event] = handler

    def remove_all_handlers(self) -> None:
        self.handlers.clear()

    async def fire(self, event: str, *args):
        handler = self.handlers.get(event)
        if handler is None:
            return
        result = handler(*args)
        if inspect.isawaitable(result):
            await result

    async def connect(self, url: str) -> None:
        self.connect_calls.append(url)
        if self.outcome == "error":
            raise TransportError("Connection refused")
        if self.outcome == "connect_error":
            await self.fire("connect_error", "server unreachable")
            return
        if self.outcome == "hang":
            await asyncio.Event().wait()
        self.connected = True
        await self.fire("connect")

    async def emit(self, event: str, payload: Any) -> None:
        if self.outcome == "emit_error":
            raise TransportError(f"Cannot emit {event}")
        self.emitted.append((event, payload))

    async def disconnect(self) -> None:
        for _ in range(self.close_yields):
            await asyncio.sleep(0)
        self.connected = False
        self.closed = True


class TransportFactory:
    """Hands out FakeTransports; outcomes are consumed in order, the last one repeats."""

    def __init__(self, *outcomes: str, close_yields: int = 0):
        self.outcomes = list(outcomes) or ["connect"]
        self.close_yields = close_yields
        self.created: List[FakeTransport] = []

    def __call__(self) -> FakeTransport:
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        transport = FakeTransport(outcome, self.close_yields)
        self.created.append(transport)
        return transport

    @property
    def latest(self) -> FakeTransport:
        return self.created[-1]


class EventRecorder:
    """Subscribes to every topic and keeps what was published."""

    def __init__(self, hub: EventHub):
        self.events: List[tuple] = []
        for topic in Topic:
            hub.subscribe(topic, self._record)

    def _record(self, topic: Topic, payload: Any):
        self.events.append((topic, payload))

    def payloads(self, topic: Topic) -> List[Any]:
        return [payload for t, payload in self.events if t == topic]


@pytest.fixture
def hub():
    return EventHub()


@pytest.fixture
def events(hub):
    return EventRecorder(hub)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transport_factory():
    return TransportFactory("connect")


@pytest.fixture
def service(hub, scheduler, transport_factory):
    """TelemetryService with default config wired to fakes."""
    return TelemetryService(
        configData(),
        hub=hub,
        transport_factory=transport_factory,
        scheduler=scheduler,
    )


@pytest.fixture
def settle():
    """Let spawned tasks run to their next await point."""
    async def _settle(rounds: int = 20):
        for _ in range(rounds):
            await asyncio.sleep(0)
    return _settle
