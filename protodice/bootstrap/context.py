"""
bootstrap/context.py - Process-wide resilience context

One explicit object owns the fault history, classifier, orchestrator,
scheduler and interceptor (and optionally the correlator and the
connection monitor). Build it once
at process start with create_context(); tests build their own.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional
import asyncio
import logging

from ..errors.classifier import FaultClassifier
from ..errors.history import FaultHistory
from ..errors.interceptor import FaultInterceptor
from ..errors.recovery import RecoveryOrchestrator
from ..sync.connection import ConnectionMonitor
from ..sync.correlator import Correlator
from ..sync.leaderboard import LeaderboardLoader
from ..ui.scheduler import DisplayScheduler
from .config import ProtoDiceConfig, get_config

logger = logging.getLogger("bootstrap.context")


@dataclass
class ResilienceContext:
    config: ProtoDiceConfig
    history: FaultHistory
    classifier: FaultClassifier
    orchestrator: RecoveryOrchestrator
    scheduler: DisplayScheduler
    interceptor: FaultInterceptor
    correlator: Optional[Correlator] = None
    monitor: Optional[ConnectionMonitor] = None

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> bool:
        return self.interceptor.install(loop)

    def bind_host(self, host: Any) -> None:
        self.scheduler.bind_host(host)

    def leaderboard_loader(self, **kwargs: Any) -> LeaderboardLoader:
        if self.correlator is None:
            raise RuntimeError("Context has no correlator")
        kwargs.setdefault("retry_delay_ms", self.config.leaderboard.retry_delay_ms)
        kwargs.setdefault("max_retries", self.config.leaderboard.max_retries)
        return LeaderboardLoader(self.correlator, **kwargs)

    def reset(self) -> None:
        """Clear history and the presentation queue."""
        self.history.clear()
        self.scheduler.hide()
        self.scheduler.clear()

    async def close(self) -> None:
        self.interceptor.uninstall()
        self.scheduler.unbind_host()
        if self.monitor is not None:
            self.monitor.detach()
        if self.correlator is not None:
            await self.correlator.aclose()
        logger.info("Resilience context closed")


def create_context(
    config: Optional[ProtoDiceConfig] = None,
    channel: Any = None,
    with_correlator: bool = True,
) -> ResilienceContext:
    """Wire every component from ``config`` (the global config if omitted)."""
    config = config or get_config()

    rules = config.fault_rules
    if rules.rules_file:
        classifier = FaultClassifier.from_rules_file(rules.rules_file, rules.resource_probe_pattern)
    else:
        classifier = FaultClassifier(resource_probe=rules.resource_probe_pattern)

    history = FaultHistory()
    orchestrator = RecoveryOrchestrator(
        settle_delay_seconds=config.recovery.settle_delay_ms / 1000,
        default_tile_size=config.recovery.default_tile_size,
        placeholder_ratio=config.recovery.placeholder_ratio,
    )
    scheduler = DisplayScheduler(
        orchestrator=orchestrator,
        queue_cap=config.display.queue_cap,
        cooldown_ms=config.display.cooldown_ms,
        readiness_poll_ms=config.display.readiness_poll_ms,
        message_cap=config.display.message_cap,
        details_cap=config.display.details_cap,
    )
    interceptor = FaultInterceptor(
        classifier=classifier,
        history=history,
        scheduler=scheduler,
        orchestrator=orchestrator,
    )

    correlator = None
    if with_correlator:
        correlator = Correlator(
            channel=channel,
            base_url=config.server.base_url,
            request_timeout_ms=config.channel.request_timeout_ms,
            error_events=config.channel.error_events,
            http_timeout_seconds=config.channel.http_timeout_seconds,
        )

    monitor = None
    if channel is not None:
        monitor = ConnectionMonitor(
            channel=channel,
            base_url=config.server.base_url,
            max_connection_retries=config.channel.max_connection_retries,
            health_check_timeout_ms=config.recovery.health_check_timeout_ms,
            max_recovery_attempts=config.recovery.max_recovery_attempts,
            recovery_wait_ms=config.recovery.recovery_wait_ms,
        )

    logger.debug("Resilience context created")
    return ResilienceContext(
        config=config,
        history=history,
        classifier=classifier,
        orchestrator=orchestrator,
        scheduler=scheduler,
        interceptor=interceptor,
        correlator=correlator,
        monitor=monitor,
    )
