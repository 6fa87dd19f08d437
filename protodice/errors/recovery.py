"""
errors/recovery.py - Best-effort recovery of the live scene

A recovery attempt runs four steps in order:
1. the registered custom repair handler (if any)
2. the generic graph-repair heuristic
3. re-enabling host input
4. a short settle delay

Each step is isolated: a failure is logged and recorded, and the next
step still runs. Recovery promises forward progress, never success.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from enum import Enum
import asyncio
import inspect
import logging
import math

from .taxonomy import FaultEntry

logger = logging.getLogger("errors.recovery")


RecoveryHandler = Callable[[], Union[None, Awaitable[None]]]


class RecoveryStep(Enum):
    """Steps of a recovery attempt, in execution order."""
    CUSTOM_HANDLER = "custom_handler"
    GRAPH_REPAIR = "graph_repair"
    INPUT_REENABLE = "input_reenable"
    SETTLE = "settle"


@dataclass
class StepOutcome:
    step: RecoveryStep
    success: bool = True
    skipped: bool = False
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step.value,
            "success": self.success,
            "skipped": self.skipped,
            "message": self.message,
        }


@dataclass
class GraphRepairReport:
    """What the heuristic pass changed."""

    scanned: int = 0
    destroyed: int = 0
    placeholders: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanned": self.scanned,
            "destroyed": self.destroyed,
            "placeholders": self.placeholders,
            "errors": list(self.errors),
        }


@dataclass
class RecoveryResult:
    """Result of one recovery attempt."""

    entry: Optional[FaultEntry] = None
    steps: List[StepOutcome] = field(default_factory=list)
    repair: Optional[GraphRepairReport] = None

    @property
    def success(self) -> bool:
        return all(s.success for s in self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry.entry_id if self.entry else None,
            "success": self.success,
            "steps": [s.to_dict() for s in self.steps],
            "repair": self.repair.to_dict() if self.repair else None,
        }


@dataclass
class RecoverySession:
    """Lives for the duration of one attempt_recovery call."""

    entry: Optional[FaultEntry]
    handler: Optional[RecoveryHandler]
    result: RecoveryResult = field(default_factory=RecoveryResult)


class RecoveryOrchestrator:
    """
    Runs the custom repair callback and the generic scene heuristics.
    """

    def __init__(
        self,
        settle_delay_seconds: float = 0.25,
        default_tile_size: int = 48,
        placeholder_ratio: float = 0.8,
        placeholder_depth: int = 5000,
    ):
        self.settle_delay_seconds = settle_delay_seconds
        self.default_tile_size = default_tile_size
        self.placeholder_ratio = placeholder_ratio
        self.placeholder_depth = placeholder_depth

        self._handler: Optional[RecoveryHandler] = None

    @property
    def handler(self) -> Optional[RecoveryHandler]:
        return self._handler

    def register_handler(self, handler: RecoveryHandler) -> None:
        """Register the scene-specific repair callback. Replaces any previous one."""
        if not callable(handler):
            raise TypeError("Recovery handler must be callable")
        self._handler = handler

    def clear_handler(self) -> None:
        self._handler = None

    # =========================================================================
    # FULL ATTEMPT
    # =========================================================================

    async def attempt_recovery(
        self,
        host: Any,
        entry: Optional[FaultEntry] = None,
        exclude: Any = None,
    ) -> RecoveryResult:
        """
        Attempt to recover the scene after a fault.

        Args:
            host: Render host to repair (may be None)
            entry: The fault that prompted recovery
            exclude: Node (usually the fault panel) that must survive the repair pass
        """
        session = RecoverySession(entry=entry, handler=self._handler)
        session.result.entry = entry
        logger.info(f"Recovery started (entry={entry.entry_id if entry else None})")

        session.result.steps.append(await self._run_custom_handler(session))

        try:
            report = self.repair_graph(host, exclude=exclude)
            session.result.repair = report
            session.result.steps.append(StepOutcome(
                step=RecoveryStep.GRAPH_REPAIR,
                success=not report.errors,
                message=f"destroyed={report.destroyed} placeholders={report.placeholders}",
            ))
        except Exception as e:
            logger.warning(f"Graph repair failed: {e}")
            session.result.steps.append(StepOutcome(RecoveryStep.GRAPH_REPAIR, success=False, message=str(e)))

        session.result.steps.append(self._reenable_input(host))

        try:
            await asyncio.sleep(self.settle_delay_seconds)
            session.result.steps.append(StepOutcome(RecoveryStep.SETTLE))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            session.result.steps.append(StepOutcome(RecoveryStep.SETTLE, success=False, message=str(e)))

        logger.info(f"Recovery finished (success={session.result.success})")
        return session.result

    async def _run_custom_handler(self, session: RecoverySession) -> StepOutcome:
        if session.handler is None:
            return StepOutcome(RecoveryStep.CUSTOM_HANDLER, skipped=True, message="No handler registered")
        try:
            result = session.handler()
            if inspect.isawaitable(result):
                await result
            return StepOutcome(RecoveryStep.CUSTOM_HANDLER)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Custom recovery handler failed: {e}")
            return StepOutcome(RecoveryStep.CUSTOM_HANDLER, success=False, message=str(e))

    def _reenable_input(self, host: Any) -> StepOutcome:
        if host is None:
            return StepOutcome(RecoveryStep.INPUT_REENABLE, skipped=True, message="No host bound")
        try:
            if not host.input_enabled:
                logger.info("Re-enabling host input")
            host.input_enabled = True
            return StepOutcome(RecoveryStep.INPUT_REENABLE)
        except Exception as e:
            logger.warning(f"Failed to re-enable input: {e}")
            return StepOutcome(RecoveryStep.INPUT_REENABLE, success=False, message=str(e))

    # =========================================================================
    # GRAPH REPAIR
    # =========================================================================

    def schedule_graph_repair(self, host: Any, exclude: Any = None) -> bool:
        """
        Queue a repair pass on the running loop without waiting for it.

        Returns False when no loop is running and the pass ran inline.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            self._guarded_repair(host, exclude)
            return False

        loop.call_soon(self._guarded_repair, host, exclude)
        return True

    def _guarded_repair(self, host: Any, exclude: Any) -> None:
        try:
            self.repair_graph(host, exclude=exclude)
        except Exception as e:
            logger.warning(f"Scheduled graph repair failed: {e}")

    def repair_graph(self, host: Any, exclude: Any = None) -> GraphRepairReport:
        """
        Destroy nodes whose backing resource is gone and give visual-less
        board entities a placeholder.
        """
        report = GraphRepairReport()
        if host is None:
            logger.warning("No host for graph repair")
            return report

        self._destroy_invalid_nodes(host, exclude, report)
        self._ensure_entity_visuals(host, report)

        if report.destroyed or report.placeholders:
            logger.info(
                f"Graph repair: scanned={report.scanned} destroyed={report.destroyed} "
                f"placeholders={report.placeholders}"
            )
        return report

    def _destroy_invalid_nodes(self, host: Any, exclude: Any, report: GraphRepairReport) -> None:
        try:
            nodes = list(host.children())
        except Exception as e:
            report.errors.append(f"child scan failed: {e}")
            return

        for node in nodes:
            if node is None:
                continue
            report.scanned += 1
            if exclude is not None and (node is exclude or _contains(exclude, node)):
                continue
            try:
                valid = node.has_backing_resource()
            except Exception:
                valid = False
            if valid:
                continue
            try:
                node.destroy()
                report.destroyed += 1
            except Exception as e:
                report.errors.append(f"destroy failed for {getattr(node, 'name', '?')}: {e}")

    def _ensure_entity_visuals(self, host: Any, report: GraphRepairReport) -> None:
        for collection_name in ("units", "holders"):
            for entity in list(getattr(host, collection_name, None) or []):
                try:
                    if self._ensure_placeholder(host, entity):
                        report.placeholders += 1
                except Exception as e:
                    report.errors.append(f"{collection_name} placeholder failed: {e}")

        grid = getattr(host, "grid", None) or []
        for row, cells in enumerate(grid):
            for col, cell in enumerate(cells or []):
                if cell is None or cell.unit is None:
                    continue
                if cell.sprite is not None and not _is_gone(cell.sprite):
                    continue
                unit_sprite = getattr(cell.unit, "sprite", None)
                if unit_sprite is not None and not _is_gone(unit_sprite):
                    cell.sprite = unit_sprite
                    continue
                try:
                    xy = host.tile_xy(row, col)
                    if xy is None:
                        if self._ensure_placeholder(host, cell.unit):
                            report.placeholders += 1
                        cell.sprite = cell.unit.sprite
                        continue
                    rect = self._placeholder(host, xy[0], xy[1] + (host.unit_y_offset or 0), 0xAAAAAA)
                    cell.sprite = rect
                    cell.unit.sprite = rect
                    report.placeholders += 1
                except Exception as e:
                    report.errors.append(f"grid cell ({row}, {col}) placeholder failed: {e}")

    def _ensure_placeholder(self, host: Any, entity: Any, fallback_x: float = 100, fallback_y: float = 100) -> bool:
        if entity is None:
            return False
        sprite = getattr(entity, "sprite", None)
        if sprite is not None and not _is_gone(sprite):
            return False

        x, y = fallback_x, fallback_y
        position = getattr(entity, "position", None)
        if position is not None:
            xy = host.tile_xy(position[0], position[1])
            if xy is not None:
                x = xy[0]
                y = xy[1] + (host.unit_y_offset or 0)
        elif getattr(entity, "owner", None) is not None:
            # holder area
            x = 50 if getattr(host, "current_player", 0) == 0 else 1100
            y = 200

        entity.sprite = self._placeholder(host, x, y, 0x999999)
        return True

    def _placeholder(self, host: Any, x: float, y: float, fill: int) -> Any:
        size = self.placeholder_size(getattr(host, "tile_size", None))
        rect = host.add_rectangle(x, y, size, size, fill)
        rect.set_depth(self.placeholder_depth)
        rect.set_interactive()
        return rect

    def placeholder_size(self, tile_size: Optional[int] = None) -> int:
        return max(12, math.floor((tile_size or self.default_tile_size) * self.placeholder_ratio))


def _is_gone(node: Any) -> bool:
    try:
        return not node.has_backing_resource()
    except Exception:
        return True


def _contains(container: Any, node: Any) -> bool:
    contains = getattr(container, "contains", None)
    if contains is None:
        return False
    try:
        return bool(contains(node))
    except Exception:
        return False
