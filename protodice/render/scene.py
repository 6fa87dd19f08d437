"""
render/scene.py - Headless scene graph

A small in-memory implementation of the render host contract. It keeps
just enough state for the resilience subsystem to run without a graphics
engine: a flat list of top-level nodes, containers, a texture registry,
lifecycle events and the board collections the repair heuristic scans.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Set, Tuple
import logging

from .host import NodeKind

logger = logging.getLogger("render.scene")


# =============================================================================
# RESOURCES & EVENTS
# =============================================================================

class ResourceRegistry:
    """Texture/atlas keys currently loaded."""

    def __init__(self, keys: Sequence[str] = ()):
        self._keys: Set[str] = set(keys)

    def add(self, key: str) -> None:
        self._keys.add(key)

    def remove(self, key: str) -> bool:
        if key in self._keys:
            self._keys.discard(key)
            return True
        return False

    def exists(self, key: str) -> bool:
        return key in self._keys


class SceneEvents:
    """Minimal emitter for scene lifecycle events."""

    def __init__(self):
        self._handlers: Dict[str, List[Tuple[Callable[..., Any], bool]]] = {}

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        self._handlers.setdefault(event, []).append((handler, False))

    def once(self, event: str, handler: Callable[..., Any]) -> None:
        self._handlers.setdefault(event, []).append((handler, True))

    def off(self, event: str, handler: Callable[..., Any]) -> bool:
        entries = self._handlers.get(event, [])
        for i, (h, _) in enumerate(entries):
            if h == handler:
                del entries[i]
                return True
        return False

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        entries = list(self._handlers.get(event, []))
        self._handlers[event] = [e for e in self._handlers.get(event, []) if not e[1]]
        for handler, _ in entries:
            try:
                handler(*args)
            except Exception as e:
                logger.warning(f"Handler for '{event}' failed: {e}")


# =============================================================================
# NODES
# =============================================================================

class RenderNode:
    """Base node. Subclasses set ``kind`` and refine ``has_backing_resource``."""

    kind: ClassVar[NodeKind]

    def __init__(self, scene: "Scene", x: float = 0, y: float = 0, name: str = ""):
        self.scene: Optional[Scene] = scene
        self.x = x
        self.y = y
        self.name = name
        self.depth = 0
        self.alpha = 1.0
        self.interactive = False
        self.parent: Optional[ContainerNode] = None
        self._on_press: Optional[Callable[[], Any]] = None

    @property
    def destroyed(self) -> bool:
        return self.scene is None

    def set_depth(self, depth: int) -> "RenderNode":
        self.depth = depth
        return self

    def set_interactive(self, on_press: Optional[Callable[[], Any]] = None) -> "RenderNode":
        self.interactive = True
        if on_press is not None:
            self._on_press = on_press
        return self

    def press(self) -> Any:
        """Deliver a pointer press, as the engine would."""
        if self.destroyed or not self.interactive or self._on_press is None:
            return None
        if self.scene is not None and not self.scene.input_enabled:
            return None
        return self._on_press()

    def has_backing_resource(self) -> bool:
        return self.scene is not None

    def destroy(self) -> None:
        if self.scene is None:
            return
        scene = self.scene
        if self.parent is not None:
            self.parent.remove(self)
        else:
            scene._detach(self)
        self._on_press = None
        self.scene = None


class SpriteNode(RenderNode):
    kind = NodeKind.SPRITE

    def __init__(self, scene: "Scene", x: float, y: float, texture_key: str, name: str = ""):
        super().__init__(scene, x, y, name)
        self.texture_key = texture_key

    def has_backing_resource(self) -> bool:
        if self.scene is None:
            return False
        return self.scene.resources.exists(self.texture_key)


class ShapeNode(RenderNode):
    kind = NodeKind.SHAPE

    def __init__(
        self,
        scene: "Scene",
        x: float,
        y: float,
        width: float,
        height: float,
        fill: int = 0x000000,
        alpha: float = 1.0,
        name: str = "",
    ):
        super().__init__(scene, x, y, name)
        self.width = width
        self.height = height
        self.fill = fill
        self.alpha = alpha
        self.stroke: Optional[Tuple[int, int]] = None

    def set_stroke(self, width: int, color: int) -> "ShapeNode":
        self.stroke = (width, color)
        return self


class TextNode(RenderNode):
    kind = NodeKind.TEXT

    def __init__(
        self,
        scene: "Scene",
        x: float,
        y: float,
        text: str,
        color: str = "#ffffff",
        size: int = 16,
        name: str = "",
    ):
        super().__init__(scene, x, y, name)
        self.text = text
        self.color = color
        self.size = size

    def set_text(self, text: str) -> "TextNode":
        self.text = text
        return self


class ContainerNode(RenderNode):
    kind = NodeKind.CONTAINER

    def __init__(self, scene: "Scene", name: str = ""):
        super().__init__(scene, 0, 0, name)
        self.children: List[RenderNode] = []

    def add(self, node: RenderNode) -> "ContainerNode":
        if node.parent is not None:
            node.parent.remove(node)
        elif node.scene is not None:
            node.scene._detach(node)
        node.parent = self
        self.children.append(node)
        return self

    def remove(self, node: RenderNode) -> None:
        if node in self.children:
            self.children.remove(node)
            node.parent = None

    def get_by_name(self, name: str) -> Optional[RenderNode]:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def contains(self, node: Any) -> bool:
        for child in self.children:
            if child is node:
                return True
            if isinstance(child, ContainerNode) and child.contains(node):
                return True
        return False

    def destroy(self) -> None:
        for child in list(self.children):
            child.destroy()
        super().destroy()


# =============================================================================
# BOARD ENTITIES
# =============================================================================

@dataclass
class BoardEntity:
    """A unit or holder whose visual may go missing."""

    name: str = ""
    position: Optional[Tuple[int, int]] = None  # (row, col)
    sprite: Optional[RenderNode] = None
    owner: Optional[int] = None

    @property
    def has_visual(self) -> bool:
        return self.sprite is not None and not self.sprite.destroyed


@dataclass
class GridCell:
    unit: Optional[BoardEntity] = None
    sprite: Optional[RenderNode] = None


# =============================================================================
# SCENE
# =============================================================================

class Scene:
    """
    Headless render host.

    ``booted`` and ``active`` mirror the engine flags the scheduler polls
    before it presents anything.
    """

    def __init__(
        self,
        key: str = "main",
        width: int = 1200,
        height: int = 700,
        tile_size: int = 48,
        unit_y_offset: float = 0,
        grid_origin: Tuple[float, float] = (0, 0),
        textures: Sequence[str] = (),
    ):
        self.key = key
        self._width = width
        self._height = height
        self.tile_size = tile_size
        self.unit_y_offset = unit_y_offset
        self.grid_origin = grid_origin
        self.current_player = 0

        self.booted = True
        self.active = True
        self.input_enabled = True

        self._resources = ResourceRegistry(textures)
        self._events = SceneEvents()
        self._children: List[RenderNode] = []

        self.units: List[BoardEntity] = []
        self.holders: List[BoardEntity] = []
        self.grid: List[List[Optional[GridCell]]] = []

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def events(self) -> SceneEvents:
        return self._events

    @property
    def resources(self) -> ResourceRegistry:
        return self._resources

    def is_ready(self) -> bool:
        return self.booted and self.active

    def children(self) -> List[RenderNode]:
        return list(self._children)

    def _attach(self, node: RenderNode) -> RenderNode:
        self._children.append(node)
        return node

    def _detach(self, node: RenderNode) -> None:
        if node in self._children:
            self._children.remove(node)

    # ---- object creation ----

    def add_sprite(self, x: float, y: float, texture_key: str, name: str = "") -> SpriteNode:
        return self._attach(SpriteNode(self, x, y, texture_key, name))

    def add_rectangle(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        fill: int = 0x000000,
        alpha: float = 1.0,
    ) -> ShapeNode:
        return self._attach(ShapeNode(self, x, y, width, height, fill, alpha))

    def add_text(self, x: float, y: float, text: str, color: str = "#ffffff", size: int = 16) -> TextNode:
        return self._attach(TextNode(self, x, y, text, color, size))

    def add_container(self, children: Sequence[RenderNode] = ()) -> ContainerNode:
        container = ContainerNode(self)
        self._attach(container)
        for child in children:
            if child is not None:
                container.add(child)
        return container

    # ---- board geometry ----

    def tile_xy(self, row: int, col: int) -> Optional[Tuple[float, float]]:
        if row < 0 or col < 0:
            return None
        ox, oy = self.grid_origin
        half = self.tile_size / 2
        return (ox + col * self.tile_size + half, oy + row * self.tile_size + half)

    # ---- lifecycle ----

    def shutdown(self) -> None:
        self.active = False
        self._events.emit("shutdown")

    def destroy(self) -> None:
        self.active = False
        self._events.emit("destroy")
        for node in list(self._children):
            node.destroy()
