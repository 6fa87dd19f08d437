"""
render/ - Render host contract and headless scene graph
"""

from .host import (
    NodeKind,
    RenderNodeProtocol,
    RenderHost,
)

from .scene import (
    ResourceRegistry,
    SceneEvents,
    RenderNode,
    SpriteNode,
    ShapeNode,
    TextNode,
    ContainerNode,
    BoardEntity,
    GridCell,
    Scene,
)

__all__ = [
    "NodeKind",
    "RenderNodeProtocol",
    "RenderHost",
    "ResourceRegistry",
    "SceneEvents",
    "RenderNode",
    "SpriteNode",
    "ShapeNode",
    "TextNode",
    "ContainerNode",
    "BoardEntity",
    "GridCell",
    "Scene",
]
