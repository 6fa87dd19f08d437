"""
errors/interceptor.py - Process-wide fault interception

Catches faults nothing else handled, from three sources:
- sys.excepthook (uncaught synchronous exceptions)
- threading.excepthook (exceptions escaping worker threads)
- the asyncio loop exception handler (unobserved task exceptions)

Every fault goes through observe(): benign filter, kind, history, optional
scene repair, then the display scheduler.
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Mapping, Optional, TYPE_CHECKING
import asyncio
import logging
import sys
import threading
import traceback

from .classifier import FaultClassifier, describe
from .history import FaultHistory
from .taxonomy import FaultEntry

if TYPE_CHECKING:
    from .recovery import RecoveryOrchestrator
    from ..ui.scheduler import DisplayScheduler

logger = logging.getLogger("errors.interceptor")


ASYNC_PREFIX = "Unhandled async: "


class FaultInterceptor:
    """
    Routes uncaught faults into history and the display scheduler.

    Install at most once per process; ``uninstall`` restores the hooks that
    were present before.
    """

    def __init__(
        self,
        classifier: Optional[FaultClassifier] = None,
        history: Optional[FaultHistory] = None,
        scheduler: Optional["DisplayScheduler"] = None,
        orchestrator: Optional["RecoveryOrchestrator"] = None,
    ):
        self.classifier = classifier or FaultClassifier()
        self.history = history if history is not None else FaultHistory()
        self.scheduler = scheduler
        self.orchestrator = orchestrator

        self._installed = False
        self._previous_excepthook: Optional[Callable[..., Any]] = None
        self._previous_thread_excepthook: Optional[Callable[..., Any]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._previous_loop_handler: Optional[Callable[..., Any]] = None

    @property
    def installed(self) -> bool:
        return self._installed

    # =========================================================================
    # OBSERVE
    # =========================================================================

    def observe(
        self,
        raw: Any,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Optional[FaultEntry]:
        """
        Classify and record a fault.

        Returns the recorded entry, or None when the fault is benign or the
        interceptor failed internally.
        """
        try:
            return self._process(raw, metadata)
        except Exception as e:
            logger.warning(f"Interceptor failed while observing a fault: {e}")
            return None

    def _process(
        self,
        raw: Any,
        metadata: Optional[Mapping[str, Any]] = None,
        prefix: str = "",
    ) -> Optional[FaultEntry]:
        if self.classifier.is_benign(raw):
            return None

        message, _ = describe(raw)
        message = f"{prefix}{message or 'Unknown error'}"

        entry = FaultEntry(
            message=message,
            kind=self.classifier.kind_of(raw),
            stack_trace=_format_stack(raw),
            metadata=dict(metadata or {}),
        )
        self.history.append(entry)
        logger.error(f"[{entry.kind.value}] {entry.message}")

        if self.orchestrator is not None and self.classifier.suggests_missing_resource(entry.message):
            host = self.scheduler.host if self.scheduler is not None else None
            if host is not None:
                exclude = self.scheduler.surface if self.scheduler is not None else None
                self.orchestrator.schedule_graph_repair(host, exclude=exclude)

        if self.scheduler is not None:
            self.scheduler.enqueue(entry)

        return entry

    # =========================================================================
    # HOOKS
    # =========================================================================

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        """
        Install the process hooks.

        Returns False if already installed. Without ``loop``, the running
        loop (if any) gets the asyncio handler.
        """
        if self._installed:
            return False

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        self._previous_thread_excepthook = threading.excepthook
        threading.excepthook = self._thread_excepthook

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is not None:
            self._loop = loop
            self._previous_loop_handler = loop.get_exception_handler()
            loop.set_exception_handler(self._loop_exception_handler)

        self._installed = True
        logger.info("Fault interceptor installed")
        return True

    def uninstall(self) -> None:
        if not self._installed:
            return

        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        if threading.excepthook == self._thread_excepthook:
            threading.excepthook = self._previous_thread_excepthook or threading.__excepthook__
        if self._loop is not None and not self._loop.is_closed():
            self._loop.set_exception_handler(self._previous_loop_handler)

        self._previous_excepthook = None
        self._previous_thread_excepthook = None
        self._previous_loop_handler = None
        self._loop = None
        self._installed = False
        logger.info("Fault interceptor uninstalled")

    def _excepthook(self, exc_type, exc_value, exc_tb) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            self._call_previous_excepthook(exc_type, exc_value, exc_tb)
            return
        try:
            self._process(exc_value, {"source": "sync"})
        except Exception as e:
            logger.warning(f"Interceptor failed in excepthook: {e}")
            self._call_previous_excepthook(exc_type, exc_value, exc_tb)

    def _call_previous_excepthook(self, exc_type, exc_value, exc_tb) -> None:
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc_value, exc_tb)

    def _thread_excepthook(self, args: Any) -> None:
        if issubclass(args.exc_type, SystemExit):
            self._call_previous_thread_excepthook(args)
            return
        metadata = {"source": "thread"}
        if args.thread is not None:
            metadata["thread"] = args.thread.name

        # scheduler and panel belong to the loop thread
        loop = self._loop
        if loop is not None and loop.is_running() and not loop.is_closed():
            loop.call_soon_threadsafe(self._record_thread_fault, args, metadata)
        else:
            self._record_thread_fault(args, metadata)

    def _record_thread_fault(self, args: Any, metadata: Dict[str, Any]) -> None:
        try:
            self._process(args.exc_value, metadata)
        except Exception as e:
            logger.warning(f"Interceptor failed in thread excepthook: {e}")
            self._call_previous_thread_excepthook(args)

    def _call_previous_thread_excepthook(self, args: Any) -> None:
        previous = self._previous_thread_excepthook or threading.__excepthook__
        previous(args)

    def _loop_exception_handler(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        raw = context.get("exception")
        if raw is None:
            raw = context.get("message") or "Unhandled async rejection"
        try:
            self._process(raw, {"source": "async"}, prefix=ASYNC_PREFIX)
        except Exception as e:
            logger.warning(f"Interceptor failed in loop exception handler: {e}")
            if self._previous_loop_handler is not None:
                self._previous_loop_handler(loop, context)
            else:
                loop.default_exception_handler(context)


def _format_stack(raw: Any) -> Optional[str]:
    if not isinstance(raw, BaseException) or raw.__traceback__ is None:
        return None
    return "".join(traceback.format_exception(type(raw), raw, raw.__traceback__)).rstrip()
