"""
Real-time channel to the gateway backend.

The connection manager only needs connect / emit / on / disconnect, so any
object implementing the Transport protocol will do; SocketIOTransport is the
production implementation on top of python-socketio's asyncio client.
"""
import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

import socketio
from socketio import exceptions as sio_exceptions

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when the underlying channel cannot connect or send."""


class Transport(Protocol):
    @property
    def connected(self) -> bool: ...

    def on(self, event: str, handler: Callable[..., Any]) -> None: ...

    def remove_all_handlers(self) -> None: ...

    async def connect(self, url: str) -> None: ...

    async def emit(self, event: str, payload: Any) -> None: ...

    async def disconnect(self) -> None: ...


class SocketIOTransport:
    """
    One Socket.IO client handle.

    Reconnection is left to the ConnectionManager, so the client's own retry
    loop is disabled. Handlers go through a local table, which lets the
    manager detach every handler at once before the handle is dropped.
    """

    def __init__(self, transports: Optional[List[str]] = None, wait_timeout: float = 15.0):
        self._client = socketio.AsyncClient(reconnection=False, logger=False)
        self._transports = transports or ["websocket", "polling"]
        self._wait_timeout = wait_timeout
        self._handlers: Dict[str, Callable[..., Any]] = {}
        self._registered: set = set()

    @property
    def connected(self) -> bool:
        return self._client.connected

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._handlers[event] = handler
        if event not in self._registered:
            self._client.on(event, self._proxy(event))
            self._registered.add(event)

    def remove_all_handlers(self) -> None:
        self._handlers.clear()

    def _proxy(self, event: str):
        async def proxy(*args):
            handler = self._handlers.get(event)
            if handler is None:
                return
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        return proxy

    async def connect(self, url: str) -> None:
        logger.debug(f"Opening Socket.IO connection to {url} via {self._transports}")
        try:
            await self._client.connect(url, transports=self._transports, wait_timeout=self._wait_timeout)
        except sio_exceptions.ConnectionError as e:
            raise TransportError(str(e) or "Connection refused") from e

    async def emit(self, event: str, payload: Any) -> None:
        try:
            await self._client.emit(event, payload)
        except sio_exceptions.SocketIOError as e:
            raise TransportError(f"Cannot emit {event}: {e}") from e

    async def disconnect(self) -> None:
        await self._client.disconnect()
