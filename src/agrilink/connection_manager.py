import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from agrilink.event_hub import EventHub
from agrilink.models.config_data import connectionConfigData
from agrilink.models.events import Alert, ConnectionStatus, ErrorNotice, Topic
from agrilink.scheduler import Cancellable, LoopScheduler, Scheduler
from agrilink.transport import Transport, TransportError

logger = logging.getLogger(__name__)

# Disconnect reasons reported when this side closed the channel
LOCAL_DISCONNECT_REASONS = {"io client disconnect", "client disconnect"}


class ConnectionState(Enum):
    """Gateway connection states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"


@dataclass
class BackoffPolicy:
    """Capped exponential backoff without jitter."""
    base_delay: float = 5.0  # Delay before the first retry, in seconds
    cap_delay: float = 20.0  # Maximum delay in seconds
    multiplier: float = 1.5  # Multiply delay by this factor each retry

    def delay(self, attempt: int) -> float:
        """Delay before retry number `attempt` (1-based)."""
        return min(self.base_delay * self.multiplier ** (max(attempt, 1) - 1), self.cap_delay)


class ConnectionManager:
    """
    Owns the gateway transport and its lifecycle.

    connect() resolves to True once the channel is up and False when the
    attempt fails. Failed attempts are retried with capped backoff until
    max_attempts have failed, after which the manager stays FAILED until
    connect() is called again.
    """

    def __init__(
        self,
        hub: EventHub,
        transport_factory: Callable[[], Transport],
        config: Optional[connectionConfigData] = None,
        scheduler: Optional[Scheduler] = None,
        snapshot_request: Optional[Callable[[], Dict[str, Any]]] = None,
    ):
        config = config or connectionConfigData()
        self.hub = hub
        self.url = config.url
        self.max_attempts = config.max_attempts
        self.connect_timeout = config.connect_timeout
        self.backoff = BackoffPolicy(config.base_delay, config.cap_delay, config.backoff_multiplier)

        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempts = 0
        self.last_error: Optional[BaseException] = None

        self._transport_factory = transport_factory
        self._scheduler = scheduler or LoopScheduler()
        self._snapshot_request = snapshot_request
        self._transport: Optional[Transport] = None
        self._message_handlers: Dict[str, Callable[..., Any]] = {}
        self._pending: Optional[asyncio.Future] = None
        self._watchdog: Optional[Cancellable] = None
        self._retry: Optional[Cancellable] = None
        self._connect_task: Optional[asyncio.Task] = None
        self._retry_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()
        # Bumped by disconnect(); attempts started before it must not go on
        self._session = 0

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff.delay(attempt)

    def is_connected(self) -> bool:
        return (
            self.state == ConnectionState.CONNECTED
            and self._transport is not None
            and self._transport.connected
        )

    def add_message_handler(self, event: str, handler: Callable[..., Any]):
        """Register a handler for an inbound gateway event, kept across reconnects."""
        self._message_handlers[event] = handler
        if self._transport is not None:
            self._transport.on(event, handler)

    async def connect(self) -> bool:
        if self.state == ConnectionState.CONNECTED:
            return True
        if self._pending is not None and not self._pending.done():
            return await asyncio.shield(self._pending)

        if self.state in (ConnectionState.FAILED, ConnectionState.DISCONNECTED):
            self.reconnect_attempts = 0
        self._cancel_retry()
        return await self._attempt()

    async def disconnect(self):
        """Close the channel on purpose; no reconnection follows."""
        self._session += 1
        self._cancel_watchdog()
        self._cancel_retry()
        self._cancel_connect_task()
        self._cancel_retry_task()
        self.reconnect_attempts = 0
        self.state = ConnectionState.DISCONNECTED

        transport, self._transport = self._transport, None
        if transport is not None:
            transport.remove_all_handlers()
            await self._close(transport)

        logger.info("Disconnected from backend")
        self.hub.publish(Topic.CONNECTION, ConnectionStatus(connected=False))
        self._resolve(False)

    async def emit(self, event: str, payload: Any) -> bool:
        if not self.is_connected():
            logger.debug(f"Not connected, dropping outbound {event}")
            return False
        try:
            await self._transport.emit(event, payload)
            return True
        except TransportError as e:
            logger.warning(f"Failed to emit {event}: {e}")
            return False

    async def _attempt(self) -> bool:
        self._cancel_watchdog()
        if self.reconnect_attempts >= self.max_attempts:
            await self._fail()
            return False

        self.state = ConnectionState.CONNECTING if self.reconnect_attempts == 0 else ConnectionState.RECONNECTING
        logger.info(
            f"Attempting to connect to backend at {self.url} "
            f"(attempt {self.reconnect_attempts + 1}/{self.max_attempts})"
        )

        session = self._session
        await self._release_transport()
        if session != self._session:
            logger.debug("Connection attempt abandoned after a local disconnect")
            return False
        self._attach_transport()

        pending = asyncio.get_running_loop().create_future()
        self._pending = pending
        self._watchdog = self._scheduler.call_later(self.connect_timeout, self._on_watchdog)
        self._connect_task = asyncio.create_task(self._open(self._transport))
        return await pending

    async def _open(self, transport: Transport):
        try:
            await transport.connect(self.url)
        except TransportError as e:
            if transport is self._transport:
                logger.warning(f"Connection error: {e}")
                self._handle_connection_error(e)

    async def _release_transport(self):
        old, self._transport = self._transport, None
        if old is not None:
            old.remove_all_handlers()
            await self._close(old)

    def _attach_transport(self):
        transport = self._transport_factory()
        transport.on("connect", self._on_connect)
        transport.on("connect_error", self._on_connect_error)
        transport.on("disconnect", self._on_disconnect)
        transport.on("reconnect", self._on_reconnect)
        transport.on("reconnect_error", self._on_connect_error)
        for event, handler in self._message_handlers.items():
            transport.on(event, handler)
        self._transport = transport

    async def _close(self, transport: Transport):
        try:
            await transport.disconnect()
        except TransportError as e:
            logger.debug(f"Ignoring error while closing transport: {e}")

    async def _on_connect(self):
        self._cancel_watchdog()
        self.state = ConnectionState.CONNECTED
        self.reconnect_attempts = 0
        self.last_error = None
        logger.info(f"✓ Successfully connected to backend at {self.url}")

        self.hub.publish(Topic.CONNECTION, ConnectionStatus(connected=True))
        payload = self._snapshot_request() if self._snapshot_request else {}
        try:
            # Sent straight on the handle: the client may not report itself connected yet
            await self._transport.emit("requestInitialData", payload)
        except TransportError as e:
            logger.warning(f"Failed to request initial data: {e}")
        self.hub.publish(Topic.ALERT, Alert(message="Successfully connected to backend server", type="success"))
        self._resolve(True)

    def _on_connect_error(self, error: Any = None):
        if not isinstance(error, BaseException):
            error = TransportError(str(error) if error is not None else "Connection error")
        logger.warning(f"Connection error: {error}")
        self._handle_connection_error(error)

    def _on_disconnect(self, reason: Any = None):
        reason = reason or "transport close"
        logger.info(f"❌ Disconnected from backend: {reason}")
        self.hub.publish(Topic.CONNECTION, ConnectionStatus(connected=False))
        if reason in LOCAL_DISCONNECT_REASONS:
            self.state = ConnectionState.DISCONNECTED
            return
        self._handle_connection_error(ConnectionError(f"Server disconnected ({reason})"), notify=False)

    def _on_reconnect(self, attempt_number: Any = None):
        self._cancel_watchdog()
        self._cancel_retry()
        self.state = ConnectionState.CONNECTED
        self.reconnect_attempts = 0
        logger.info(f"🔄 Reconnected to backend after {attempt_number} attempts")
        self.hub.publish(Topic.CONNECTION, ConnectionStatus(connected=True))
        self.hub.publish(Topic.ALERT, Alert(message="Reconnected to backend server", type="success"))
        self._resolve(True)

    def _on_watchdog(self):
        self._watchdog = None
        if self.state == ConnectionState.CONNECTED:
            return
        logger.warning(f"Connection timeout reached after {self.connect_timeout:.0f}s")
        self._cancel_connect_task()
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.remove_all_handlers()
            self._spawn(self._close(transport))
        self._handle_connection_error(TimeoutError("Connection timeout"))

    def _handle_connection_error(self, error: BaseException, notify: bool = True):
        # One failure per attempt: later signals for the same attempt are ignored
        if self._retry is not None or self.state in (ConnectionState.FAILED, ConnectionState.DISCONNECTED):
            return

        self._cancel_watchdog()
        self.last_error = error
        self.state = ConnectionState.RECONNECTING
        if notify:
            self.hub.publish(Topic.CONNECTION, ConnectionStatus(connected=False))

        self.reconnect_attempts += 1
        delay = self.backoff_delay(self.reconnect_attempts)
        logger.info(
            f"🔄 Connection failed. Retrying in {delay:.1f}s... "
            f"({self.reconnect_attempts}/{self.max_attempts})"
        )
        self._retry = self._scheduler.call_later(delay, self._on_retry)
        self._resolve(False)

    def _on_retry(self):
        self._retry = None
        self._retry_task = self._spawn(self._attempt())

    async def _fail(self):
        self.state = ConnectionState.FAILED
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.remove_all_handlers()

        reason = self.last_error or "Unknown error"
        logger.error(f"❌ Max reconnection attempts ({self.max_attempts}) reached: {reason}")
        self.hub.publish(Topic.ERROR, ErrorNotice(
            message=f"Failed to connect to backend after {self.max_attempts} attempts: {reason}",
            details=f"Backend URL: {self.url}. Please check if the server is running and accessible.",
            attempts=self.reconnect_attempts,
            endpoint=self.url,
        ))
        self._resolve(False)
        if transport is not None:
            await self._close(transport)

    def _resolve(self, result: bool):
        pending, self._pending = self._pending, None
        if pending is not None and not pending.done():
            pending.set_result(result)

    def _cancel_watchdog(self):
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None

    def _cancel_retry(self):
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    def _cancel_connect_task(self):
        task, self._connect_task = self._connect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _cancel_retry_task(self):
        task, self._retry_task = self._retry_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _spawn(self, coro):
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
