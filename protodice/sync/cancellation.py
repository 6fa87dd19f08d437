"""
sync/cancellation.py - Cooperative cancellation token for HTTP calls
"""

from __future__ import annotations
from typing import Callable, List, Optional
import asyncio
import logging

logger = logging.getLogger("sync.cancellation")


class CancellationToken:
    """
    One-shot cancellation signal.

    Cancelling never interrupts a transport; it only tells the waiter to
    stop caring about the result.
    """

    def __init__(self, reason: str = ""):
        self.reason = reason
        self._event: Optional[asyncio.Event] = None
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "") -> bool:
        """Fire the token. Returns False if it had already fired."""
        if self._cancelled:
            return False
        self._cancelled = True
        if reason:
            self.reason = reason
        if self._event is not None:
            self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning(f"Cancellation callback failed: {e}")
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    async def wait(self) -> None:
        """Suspend until the token fires."""
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()
