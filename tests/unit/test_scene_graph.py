"""
tests/unit/test_scene_graph.py - Headless scene graph tests
"""

from unittest.mock import Mock

from protodice.render.host import NodeKind, RenderHost
from protodice.render.scene import Scene


class TestSceneBasics:
    """Test Scene as a render host."""

    def test_satisfies_host_protocol(self, scene):
        assert isinstance(scene, RenderHost)

    def test_ready_flags(self, scene):
        """is_ready needs both booted and active."""
        assert scene.is_ready()
        scene.booted = False
        assert not scene.is_ready()
        scene.booted = True
        scene.active = False
        assert not scene.is_ready()

    def test_tile_xy_centres_on_tile(self):
        scene = Scene(tile_size=48, grid_origin=(100, 50))
        assert scene.tile_xy(0, 0) == (124, 74)
        assert scene.tile_xy(1, 2) == (100 + 2 * 48 + 24, 50 + 48 + 24)
        assert scene.tile_xy(-1, 0) is None


class TestNodes:
    """Test node variants and backing resources."""

    def test_node_kinds(self, scene):
        assert scene.add_sprite(0, 0, "dice").kind == NodeKind.SPRITE
        assert scene.add_rectangle(0, 0, 10, 10).kind == NodeKind.SHAPE
        assert scene.add_text(0, 0, "hi").kind == NodeKind.TEXT
        assert scene.add_container().kind == NodeKind.CONTAINER

    def test_sprite_backing_follows_texture(self, scene):
        """A sprite loses its backing when its texture is removed."""
        sprite = scene.add_sprite(0, 0, "dice")
        assert sprite.has_backing_resource()

        scene.resources.remove("dice")

        assert not sprite.has_backing_resource()
        assert not sprite.destroyed

    def test_destroy_detaches(self, scene):
        rect = scene.add_rectangle(0, 0, 10, 10)
        rect.destroy()
        assert rect.destroyed
        assert rect not in scene.children()
        assert not rect.has_backing_resource()

    def test_container_reparents_children(self, scene):
        """Adding to a container removes the node from the top level."""
        text = scene.add_text(0, 0, "hello")
        container = scene.add_container([text])

        assert text not in scene.children()
        assert container.contains(text)
        assert container.get_by_name("missing") is None

    def test_container_destroy_cascades(self, scene):
        text = scene.add_text(0, 0, "hello")
        container = scene.add_container([text])

        container.destroy()

        assert text.destroyed
        assert scene.children() == []

    def test_press_respects_input_flag(self, scene):
        """Presses are ignored while host input is disabled."""
        handler = Mock(return_value="pressed")
        button = scene.add_text(0, 0, "OK").set_interactive(handler)

        scene.input_enabled = False
        assert button.press() is None
        handler.assert_not_called()

        scene.input_enabled = True
        assert button.press() == "pressed"


class TestSceneEvents:
    """Test lifecycle events."""

    def test_once_fires_once(self, scene):
        handler = Mock()
        scene.events.once("shutdown", handler)

        scene.shutdown()
        scene.shutdown()

        handler.assert_called_once()
        assert scene.events.listener_count("shutdown") == 0

    def test_off(self, scene):
        handler = Mock()
        scene.events.on("destroy", handler)
        assert scene.events.off("destroy", handler) is True
        scene.destroy()
        handler.assert_not_called()

    def test_failing_handler_does_not_stop_others(self, scene):
        good = Mock()
        scene.events.on("shutdown", Mock(side_effect=RuntimeError("boom")))
        scene.events.on("shutdown", good)

        scene.shutdown()

        good.assert_called_once()
