"""
tests/unit/test_scene_recovery.py - Recovery orchestrator tests
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest

from protodice.errors.recovery import RecoveryOrchestrator, RecoveryStep
from protodice.errors.taxonomy import FaultEntry
from protodice.render.scene import BoardEntity, GridCell, Scene, ShapeNode


# =============================================================================
# GRAPH REPAIR
# =============================================================================

class TestGraphRepair:
    """Test the heuristic scene-graph pass."""

    def test_destroys_nodes_without_backing(self, scene, orchestrator):
        """Sprites whose texture vanished are destroyed; others survive."""
        good = scene.add_sprite(0, 0, "dice")
        bad = scene.add_sprite(0, 0, "gone")
        text = scene.add_text(0, 0, "score")

        report = orchestrator.repair_graph(scene)

        assert report.scanned == 3
        assert report.destroyed == 1
        assert bad.destroyed
        assert not good.destroyed
        assert not text.destroyed

    def test_excluded_surface_survives(self, scene, orchestrator):
        """The fault panel root is never touched, even if its children look invalid."""
        broken = scene.add_sprite(0, 0, "missing")
        panel = scene.add_container([broken])

        orchestrator.repair_graph(scene, exclude=panel)

        assert not panel.destroyed
        assert not broken.destroyed

    def test_unit_placeholder_at_tile(self, orchestrator):
        """A unit without a visual gets a placeholder at its tile centre plus offset."""
        scene = Scene(tile_size=48, unit_y_offset=-6)
        unit = BoardEntity(name="knight", position=(2, 3))
        scene.units.append(unit)

        report = orchestrator.repair_graph(scene)

        assert report.placeholders == 1
        assert isinstance(unit.sprite, ShapeNode)
        assert (unit.sprite.x, unit.sprite.y) == (3 * 48 + 24, 2 * 48 + 24 - 6)
        assert unit.sprite.width == 38  # floor(48 * 0.8)
        assert unit.sprite.interactive

    def test_unit_with_destroyed_sprite_replaced(self, scene, orchestrator):
        old = scene.add_sprite(0, 0, "dice")
        unit = BoardEntity(position=(0, 0), sprite=old)
        scene.units.append(unit)
        old.destroy()

        orchestrator.repair_graph(scene)

        assert unit.sprite is not old
        assert unit.has_visual

    def test_holder_fallback_position(self, orchestrator):
        """Holders without a tile go to the side of the current player."""
        scene = Scene()
        left = BoardEntity(owner=0)
        scene.holders.append(left)
        orchestrator.repair_graph(scene)
        assert (left.sprite.x, left.sprite.y) == (50, 200)

        scene = Scene()
        scene.current_player = 1
        right = BoardEntity(owner=1)
        scene.holders.append(right)
        orchestrator.repair_graph(scene)
        assert (right.sprite.x, right.sprite.y) == (1100, 200)

    def test_default_position(self, orchestrator):
        scene = Scene()
        stray = BoardEntity()
        scene.units.append(stray)
        orchestrator.repair_graph(scene)
        assert (stray.sprite.x, stray.sprite.y) == (100, 100)

    def test_grid_cells(self, orchestrator):
        """Occupied grid cells with a missing sprite get one shared with the unit."""
        scene = Scene(tile_size=40)
        unit = BoardEntity(name="archer")
        empty = GridCell()
        occupied = GridCell(unit=unit)
        scene.grid = [[empty, occupied]]

        report = orchestrator.repair_graph(scene)

        assert report.placeholders == 1
        assert occupied.sprite is unit.sprite
        assert (occupied.sprite.x, occupied.sprite.y) == (40 + 20, 20)
        assert empty.sprite is None

    def test_intact_entities_untouched(self, scene, orchestrator):
        sprite = scene.add_sprite(0, 0, "dice")
        unit = BoardEntity(position=(0, 0), sprite=sprite)
        scene.units.append(unit)

        report = orchestrator.repair_graph(scene)

        assert report.placeholders == 0
        assert unit.sprite is sprite

    def test_no_host(self, orchestrator):
        report = orchestrator.repair_graph(None)
        assert report.scanned == 0

    @pytest.mark.parametrize("tile_size,expected", [(48, 38), (10, 12), (None, 38), (100, 80)])
    def test_placeholder_size(self, orchestrator, tile_size, expected):
        assert orchestrator.placeholder_size(tile_size) == expected

    def test_failing_node_recorded(self, scene, orchestrator):
        """A node that fails to destroy is reported, and the pass continues."""
        bad = scene.add_sprite(0, 0, "gone")
        bad.destroy = Mock(side_effect=RuntimeError("stuck"))
        also_bad = scene.add_sprite(0, 0, "gone-too")

        report = orchestrator.repair_graph(scene)

        assert len(report.errors) == 1
        assert also_bad.destroyed


class TestScheduledRepair:
    @pytest.mark.asyncio
    async def test_runs_on_next_loop_turn(self, scene, orchestrator):
        bad = scene.add_sprite(0, 0, "gone")

        assert orchestrator.schedule_graph_repair(scene) is True
        assert not bad.destroyed

        await asyncio.sleep(0)
        assert bad.destroyed

    def test_runs_inline_without_loop(self, scene, orchestrator):
        bad = scene.add_sprite(0, 0, "gone")
        assert orchestrator.schedule_graph_repair(scene) is False
        assert bad.destroyed


# =============================================================================
# FULL ATTEMPT
# =============================================================================

class TestAttemptRecovery:
    """Test the four-step recovery attempt."""

    @pytest.mark.asyncio
    async def test_step_order(self, scene, orchestrator):
        handler = Mock()
        orchestrator.register_handler(handler)
        scene.input_enabled = False

        result = await orchestrator.attempt_recovery(scene, FaultEntry(message="boom"))

        handler.assert_called_once()
        assert [s.step for s in result.steps] == [
            RecoveryStep.CUSTOM_HANDLER,
            RecoveryStep.GRAPH_REPAIR,
            RecoveryStep.INPUT_REENABLE,
            RecoveryStep.SETTLE,
        ]
        assert result.success
        assert scene.input_enabled

    @pytest.mark.asyncio
    async def test_async_handler_awaited(self, scene, orchestrator):
        handler = AsyncMock()
        orchestrator.register_handler(handler)

        await orchestrator.attempt_recovery(scene)

        handler.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_latest_handler_wins(self, scene, orchestrator):
        first = Mock()
        second = Mock()
        orchestrator.register_handler(first)
        orchestrator.register_handler(second)

        await orchestrator.attempt_recovery(scene)

        first.assert_not_called()
        second.assert_called_once()

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_recovery(self, scene, orchestrator):
        """Handler failure is recorded; repair and input re-enable still run."""
        orchestrator.register_handler(Mock(side_effect=RuntimeError("handler broke")))
        bad = scene.add_sprite(0, 0, "gone")
        scene.input_enabled = False

        result = await orchestrator.attempt_recovery(scene)

        assert not result.success
        assert result.steps[0].success is False
        assert "handler broke" in result.steps[0].message
        assert bad.destroyed
        assert scene.input_enabled

    @pytest.mark.asyncio
    async def test_no_handler_skipped(self, scene, orchestrator):
        result = await orchestrator.attempt_recovery(scene)
        assert result.steps[0].skipped
        assert result.success

    @pytest.mark.asyncio
    async def test_without_host(self, orchestrator):
        """Recovery with no host still completes."""
        result = await orchestrator.attempt_recovery(None)
        assert result.steps[2].skipped
        assert result.to_dict()["entry_id"] is None

    def test_handler_must_be_callable(self, orchestrator):
        with pytest.raises(TypeError):
            orchestrator.register_handler("not callable")

    def test_defaults(self):
        orchestrator = RecoveryOrchestrator()
        assert orchestrator.settle_delay_seconds == 0.25
        assert orchestrator.placeholder_size() == 38
