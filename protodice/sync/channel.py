"""
sync/channel.py - Duplex channel contract and the Socket.IO adapter

The correlator only needs a connected flag, per-handler subscription and
emission. socketio.AsyncClient keeps a single handler per event, so the
adapter multiplexes: one dispatcher is registered with the client and
fans out to every subscribed handler.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable
import asyncio
import inspect
import logging

import socketio
from socketio import exceptions as socketio_exceptions

from ..errors.taxonomy import ChannelError

logger = logging.getLogger("sync.channel")


@runtime_checkable
class Channel(Protocol):
    """Event-based duplex channel observed by the correlator."""

    @property
    def connected(self) -> bool:
        ...

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        ...

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        ...

    def emit(self, event: str, data: Any = None) -> Any:
        """May return an awaitable; the correlator awaits it if so."""
        ...


class SocketIOChannel:
    """
    Channel implementation over python-socketio's AsyncClient.

    Args:
        client: Existing client to wrap (one is created if omitted)
        reconnection_attempts: Client-side reconnection attempts
        reconnection_delay_ms: Initial reconnection delay
        reconnection_delay_max_ms: Reconnection delay ceiling
        randomization_factor: Jitter applied to reconnection delays
    """

    def __init__(
        self,
        client: Optional[socketio.AsyncClient] = None,
        reconnection_attempts: int = 15,
        reconnection_delay_ms: int = 300,
        reconnection_delay_max_ms: int = 8000,
        randomization_factor: float = 0.5,
    ):
        self.client = client or socketio.AsyncClient(
            reconnection=True,
            reconnection_attempts=reconnection_attempts,
            reconnection_delay=reconnection_delay_ms / 1000,
            reconnection_delay_max=reconnection_delay_max_ms / 1000,
            randomization_factor=randomization_factor,
        )
        self._handlers: Dict[str, List[Callable[..., Any]]] = {}
        self._dispatchers: Dict[str, Callable[..., Any]] = {}
        self.url: Optional[str] = None

    @property
    def connected(self) -> bool:
        return bool(self.client.connected)

    @property
    def sid(self) -> Optional[str]:
        return self.client.sid

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        if event not in self._dispatchers:
            dispatcher = self._make_dispatcher(event)
            self._dispatchers[event] = dispatcher
            self.client.on(event, dispatcher)
        self._handlers.setdefault(event, []).append(handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def _make_dispatcher(self, event: str) -> Callable[..., Any]:
        def dispatch(*args: Any) -> None:
            for handler in list(self._handlers.get(event, [])):
                try:
                    result = handler(*args)
                    if inspect.isawaitable(result):
                        asyncio.ensure_future(result)
                except Exception as e:
                    logger.warning(f"Handler for '{event}' failed: {e}")
        return dispatch

    async def emit(self, event: str, data: Any = None) -> None:
        await self.client.emit(event, data)

    async def connect(
        self,
        url: str,
        wait_timeout_ms: int = 15000,
        transports: Optional[Sequence[str]] = None,
    ) -> None:
        """Connect to ``url``; failures surface as ChannelError."""
        self.url = url
        try:
            await self.client.connect(
                url,
                transports=list(transports) if transports else None,
                wait_timeout=wait_timeout_ms / 1000,
            )
        except socketio_exceptions.ConnectionError as e:
            raise ChannelError(f"Connection to {url} failed: {e}", operation="connect") from e
        logger.info(f"Connected to {url} (sid={self.sid})")

    async def disconnect(self) -> None:
        if self.client.connected:
            await self.client.disconnect()
