"""
ui/scheduler.py - Display scheduler for intercepted faults

Bounded FIFO queue in front of a single on-screen panel:
- never more than one panel visible
- new faults queue while a panel is showing
- a cooldown after each dismissal before the next panel appears
- readiness polling while the host is not ready (faults are never
  dropped for that reason; only the queue cap drops them)

All deferred work is scheduled on the running asyncio loop.
"""

from __future__ import annotations
from collections import deque
from typing import Any, Callable, Deque, List, Optional, Set, TYPE_CHECKING
from enum import Enum
import asyncio
import logging
import os
import sys
import time

from ..errors.taxonomy import FaultEntry
from .panel import FaultPanel

if TYPE_CHECKING:
    from ..errors.recovery import RecoveryOrchestrator, RecoveryResult

logger = logging.getLogger("ui.scheduler")


class PresentationState(Enum):
    EMPTY = "empty"
    QUEUED = "queued"
    SHOWING = "showing"
    COOLING_DOWN = "cooling_down"


def restart_process() -> None:
    """Replace the current process with a fresh interpreter running the same argv."""
    logger.warning("Restarting process on user request")
    os.execv(sys.executable, [sys.executable] + sys.argv)


class DisplayScheduler:
    """
    Decides when and whether an intercepted fault is shown.
    """

    def __init__(
        self,
        orchestrator: Optional["RecoveryOrchestrator"] = None,
        queue_cap: int = 25,
        cooldown_ms: int = 600,
        readiness_poll_ms: int = 200,
        message_cap: int = 300,
        details_cap: int = 1000,
        reload_handler: Optional[Callable[[], Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.orchestrator = orchestrator
        self.cooldown_seconds = cooldown_ms / 1000
        self.readiness_poll_seconds = readiness_poll_ms / 1000
        self.message_cap = message_cap
        self.details_cap = details_cap
        self.reload_handler = reload_handler or restart_process
        self._clock = clock

        self._queue: Deque[FaultEntry] = deque(maxlen=queue_cap)
        self._host: Any = None
        self._panel: Optional[FaultPanel] = None
        self._current: Optional[FaultEntry] = None
        self._cooldown_until = 0.0
        self._timer: Optional[asyncio.TimerHandle] = None
        self._recovering = False
        self._tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # OBSERVABLE STATE
    # =========================================================================

    @property
    def state(self) -> PresentationState:
        if self._panel is not None:
            return PresentationState.SHOWING
        if self._clock() < self._cooldown_until:
            return PresentationState.COOLING_DOWN
        if self._queue:
            return PresentationState.QUEUED
        return PresentationState.EMPTY

    @property
    def pending(self) -> List[FaultEntry]:
        return list(self._queue)

    @property
    def current(self) -> Optional[FaultEntry]:
        return self._current

    @property
    def surface(self) -> Any:
        return self._panel.root if self._panel is not None else None

    @property
    def panel(self) -> Optional[FaultPanel]:
        return self._panel

    @property
    def host(self) -> Any:
        return self._host

    @property
    def queue_cap(self) -> int:
        return self._queue.maxlen or 0

    # =========================================================================
    # HOST BINDING
    # =========================================================================

    def bind_host(self, host: Any) -> None:
        """Bind a render host; its shutdown/destroy events hide the panel and unbind."""
        if host is self._host:
            self.attempt_display()
            return
        if self._host is not None:
            self.unbind_host()

        self._host = host
        if host is not None:
            events = host.events
            events.once("shutdown", self._on_host_gone)
            events.once("destroy", self._on_host_gone)
            logger.debug("Render host bound")
        self.attempt_display()

    def unbind_host(self) -> None:
        host = self._host
        if host is None:
            return
        try:
            host.events.off("shutdown", self._on_host_gone)
            host.events.off("destroy", self._on_host_gone)
        except Exception as e:
            logger.warning(f"Failed to detach host listeners: {e}")
        self.hide()
        self._host = None
        logger.debug("Render host unbound")

    def _on_host_gone(self, *args: Any) -> None:
        self.unbind_host()

    # =========================================================================
    # QUEUE
    # =========================================================================

    def enqueue(self, entry: FaultEntry) -> None:
        if len(self._queue) == self._queue.maxlen:
            logger.debug(f"Presentation queue full, dropping {self._queue[0].entry_id}")
        self._queue.append(entry)
        self.attempt_display()

    def attempt_display(self) -> None:
        if not self._queue:
            return
        host = self._host
        if host is None:
            return
        if not self._host_ready(host):
            self._schedule_attempt(self.readiness_poll_seconds)
            return
        if self._panel is not None:
            return

        remaining = self._cooldown_until - self._clock()
        if remaining > 0:
            self._schedule_attempt(remaining)
            return

        self._show(self._queue.popleft())

    def request_update(self) -> None:
        """
        Collapse the queue to its newest entry and show it in the visible panel.

        Without a visible panel this is a plain display attempt.
        """
        if self._panel is None:
            self.attempt_display()
            return
        if not self._queue:
            return
        latest = self._queue.pop()
        self._queue.clear()
        self._current = latest
        self._panel.update(latest)

    def clear(self) -> None:
        self._queue.clear()

    def _host_ready(self, host: Any) -> bool:
        try:
            return bool(host.is_ready())
        except Exception:
            return False

    def _schedule_attempt(self, delay_seconds: float) -> None:
        if self._timer is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, display attempt deferred until next trigger")
            return
        self._timer = loop.call_later(max(0.0, delay_seconds), self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.attempt_display()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # =========================================================================
    # PRESENTATION
    # =========================================================================

    def _show(self, entry: FaultEntry) -> None:
        try:
            panel = FaultPanel(
                self._host,
                entry,
                actions={
                    "recover": self._on_recover,
                    "details": self._on_details,
                    "reload": self._on_reload,
                    "close": self._on_close,
                },
                message_cap=self.message_cap,
                details_cap=self.details_cap,
            ).build()
        except Exception as e:
            logger.warning(f"Failed to present fault {entry.entry_id}: {e}")
            # keep it at the front for the next readiness poll
            self._queue.appendleft(entry)
            self._schedule_attempt(self.readiness_poll_seconds)
            return
        self._panel = panel
        self._current = entry

    def dismiss(self) -> None:
        """Remove the visible panel and start the cooldown."""
        if self._panel is None:
            return
        self._destroy_panel()
        self._cooldown_until = self._clock() + self.cooldown_seconds
        if self._queue:
            self._schedule_attempt(self.cooldown_seconds)

    def hide(self) -> None:
        """Remove the visible panel without starting a cooldown."""
        self._cancel_timer()
        self._destroy_panel()

    def _destroy_panel(self) -> None:
        panel = self._panel
        self._panel = None
        self._current = None
        if panel is None:
            return
        try:
            panel.destroy()
        except Exception as e:
            logger.warning(f"Failed to destroy fault panel: {e}")

    # =========================================================================
    # ACTIONS
    # =========================================================================

    def _on_close(self) -> None:
        self.dismiss()

    def _on_details(self) -> Optional[str]:
        if self._panel is None:
            return None
        return self._panel.show_details()

    def _on_reload(self) -> None:
        self.dismiss()
        self.reload_handler()

    def _on_recover(self) -> Optional[asyncio.Task]:
        if self._recovering:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Recovery requested without a running loop")
            return None
        self._recovering = True
        task = loop.create_task(self.recover())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def recover(self) -> Optional["RecoveryResult"]:
        """Run recovery for the visible fault, then dismiss whatever the outcome."""
        self._recovering = True
        entry = self._current
        result = None
        try:
            if self.orchestrator is not None:
                result = await self.orchestrator.attempt_recovery(
                    self._host, entry, exclude=self.surface,
                )
        except Exception as e:
            logger.warning(f"Recovery raised: {e}")
        finally:
            self._recovering = False
            self.dismiss()
        return result
