"""
sync/connection.py - Socket connection health

Tracks reconnection attempts, enters maintenance mode once the retry
budget is spent, flags server resets (a new session id after a stable
connection) and runs the health-check recovery loop.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional
import asyncio
import logging

import httpx

logger = logging.getLogger("sync.connection")


DELIBERATE_DISCONNECTS = ("io server disconnect", "io client namespace disconnect")


@dataclass
class ConnectionStatus:
    connected: bool = False
    maintenance_mode: bool = False
    connection_retries: int = 0
    recovery_attempts: int = 0
    max_recovery_attempts: int = 5
    server_reset_detected: bool = False
    last_session_id: Optional[str] = None

    @property
    def can_recover(self) -> bool:
        return self.recovery_attempts < self.max_recovery_attempts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connected": self.connected,
            "maintenance_mode": self.maintenance_mode,
            "connection_retries": self.connection_retries,
            "recovery_attempts": self.recovery_attempts,
            "max_recovery_attempts": self.max_recovery_attempts,
            "can_recover": self.can_recover,
            "server_reset_detected": self.server_reset_detected,
            "last_session_id": self.last_session_id,
        }


class ConnectionMonitor:
    """
    Observes a channel's connection lifecycle.

    Args:
        channel: Channel exposing on/off, connected, sid and connect(url)
        base_url: Server base URL for /health
        http_client: Optional shared httpx client
        max_connection_retries: Connect errors before maintenance mode
        health_check_timeout_ms: Timeout for a single /health call
        max_recovery_attempts: Health checks per recovery run
        recovery_wait_ms: Pause between failed health checks
    """

    def __init__(
        self,
        channel: Any,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        max_connection_retries: int = 15,
        health_check_timeout_ms: int = 5000,
        max_recovery_attempts: int = 5,
        recovery_wait_ms: int = 3000,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.channel = channel
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client
        self.max_connection_retries = max_connection_retries
        self.health_check_timeout_seconds = health_check_timeout_ms / 1000
        self.max_recovery_attempts = max_recovery_attempts
        self.recovery_wait_seconds = recovery_wait_ms / 1000
        self._sleep = sleep

        self.connection_retries = 0
        self.maintenance_mode = False
        self.server_reset_detected = False
        self.last_session_id: Optional[str] = None
        self.recovery_attempts = 0

        self._on_server_reset: List[Callable[[Optional[str], Optional[str]], Any]] = []
        self._on_maintenance: List[Callable[[], Any]] = []
        self._attached = False

    # =========================================================================
    # CHANNEL EVENTS
    # =========================================================================

    def attach(self) -> None:
        if self._attached:
            return
        self.channel.on("connect", self.on_connect)
        self.channel.on("connect_error", self.on_connect_error)
        self.channel.on("disconnect", self.on_disconnect)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self.channel.off("connect", self.on_connect)
        self.channel.off("connect_error", self.on_connect_error)
        self.channel.off("disconnect", self.on_disconnect)
        self._attached = False

    def on_server_reset(self, callback: Callable[[Optional[str], Optional[str]], Any]) -> None:
        self._on_server_reset.append(callback)

    def on_maintenance(self, callback: Callable[[], Any]) -> None:
        self._on_maintenance.append(callback)

    def on_connect(self, *args: Any) -> None:
        sid = getattr(self.channel, "sid", None)
        retries_before = self.connection_retries
        self.connection_retries = 0
        self.maintenance_mode = False

        if self.last_session_id and sid and self.last_session_id != sid:
            if retries_before < 2 and not self.server_reset_detected:
                logger.warning(f"Server reset detected (previous sid={self.last_session_id}, new sid={sid})")
                self.server_reset_detected = True
                self._notify(self._on_server_reset, self.last_session_id, sid)
            else:
                logger.debug(f"New session id after reconnect: {self.last_session_id} -> {sid}")

        self.last_session_id = sid
        logger.info(f"Connected (sid={sid})")

    def on_connect_error(self, data: Any = None, *args: Any) -> None:
        message = str(data.get("message", data)) if isinstance(data, dict) else str(data)
        self.connection_retries += 1

        if "Session ID unknown" in message:
            logger.info(f"Session expired, reconnecting (retry {self.connection_retries})")
        elif "transport error" in message or "xhr poll error" in message:
            logger.info(f"Transport error, reconnecting (retry {self.connection_retries})")
        else:
            logger.warning(
                f"connect_error: {message} "
                f"(retry {self.connection_retries} of {self.max_connection_retries})"
            )

        if self.connection_retries >= self.max_connection_retries and not self.maintenance_mode:
            logger.error(
                f"Connection failed after {self.max_connection_retries} retries, entering maintenance mode"
            )
            self.maintenance_mode = True
            self._notify(self._on_maintenance)

    def on_disconnect(self, reason: Any = None, *args: Any) -> None:
        logger.info(f"Disconnected: {reason}")
        if reason in DELIBERATE_DISCONNECTS:
            self.maintenance_mode = False

    def _notify(self, callbacks: List[Callable[..., Any]], *args: Any) -> None:
        for callback in list(callbacks):
            try:
                callback(*args)
            except Exception as e:
                logger.warning(f"Connection callback failed: {e}")

    # =========================================================================
    # STATE
    # =========================================================================

    def reset_connection_state(self) -> None:
        self.connection_retries = 0
        self.maintenance_mode = False
        self.server_reset_detected = False
        logger.info("Connection state reset")

    def clear_server_reset(self) -> None:
        self.server_reset_detected = False

    def reset_recovery_state(self) -> None:
        self.recovery_attempts = 0
        self.reset_connection_state()

    def status(self) -> ConnectionStatus:
        return ConnectionStatus(
            connected=bool(getattr(self.channel, "connected", False)),
            maintenance_mode=self.maintenance_mode,
            connection_retries=self.connection_retries,
            recovery_attempts=self.recovery_attempts,
            max_recovery_attempts=self.max_recovery_attempts,
            server_reset_detected=self.server_reset_detected,
            last_session_id=self.last_session_id,
        )

    # =========================================================================
    # HEALTH & RECOVERY
    # =========================================================================

    async def perform_health_check(self) -> bool:
        url = f"{self.base_url}/health"
        try:
            if self.http_client is not None:
                response = await self.http_client.get(url, timeout=self.health_check_timeout_seconds)
            else:
                async with httpx.AsyncClient(timeout=self.health_check_timeout_seconds) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Health check error: {e}")
            return False

        if not response.is_success:
            logger.warning(f"Health check failed with status {response.status_code}")
            return False

        try:
            data = response.json()
        except ValueError:
            data = {}
        logger.info(f"Health check successful (uptime={data.get('uptime') if isinstance(data, dict) else None})")
        return True

    async def attempt_recovery(self) -> bool:
        """
        Poll /health until it succeeds or the attempt budget runs out.

        On success the connection state is reset and the channel reconnects.
        """
        if self.maintenance_mode and self.recovery_attempts >= self.max_recovery_attempts:
            logger.error("Max recovery attempts reached, service unavailable")
            return False

        while not await self.perform_health_check():
            self.recovery_attempts += 1
            logger.warning(
                f"Server unhealthy, recovery attempt {self.recovery_attempts} of {self.max_recovery_attempts}"
            )
            if self.recovery_attempts >= self.max_recovery_attempts:
                return False
            await self._sleep(self.recovery_wait_seconds)

        logger.info("Server recovered, resetting connection state")
        self.reset_connection_state()
        self.recovery_attempts = 0
        await self._reconnect()
        return True

    async def _reconnect(self) -> None:
        if getattr(self.channel, "connected", False):
            return
        url = getattr(self.channel, "url", None) or self.base_url
        try:
            await self.channel.connect(url)
        except Exception as e:
            logger.warning(f"Reconnect after recovery failed: {e}")
