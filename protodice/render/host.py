"""
render/host.py - Render host contract

The resilience subsystem never draws anything itself. It consumes a host
through this narrow surface: object creation for panels/text/shapes, an
input flag, the shutdown/destroy lifecycle events, and a resource
existence query. Engine adapters implement it; render.scene ships a
headless implementation.
"""

from __future__ import annotations

from enum import Enum
from typing import (
    Any,
    Callable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)


class NodeKind(Enum):
    """Tag carried by every render node variant."""
    SPRITE = "sprite"
    SHAPE = "shape"
    TEXT = "text"
    CONTAINER = "container"


@runtime_checkable
class RenderNodeProtocol(Protocol):
    """Capability every node exposes to the repair heuristic."""

    kind: NodeKind
    name: str

    def has_backing_resource(self) -> bool:
        """False when the node was destroyed or its resource is gone."""
        ...

    def destroy(self) -> None:
        ...


@runtime_checkable
class ResourceRegistryProtocol(Protocol):
    def exists(self, key: str) -> bool:
        ...


@runtime_checkable
class HostEventsProtocol(Protocol):
    def on(self, event: str, handler: Callable[..., Any]) -> None:
        ...

    def once(self, event: str, handler: Callable[..., Any]) -> None:
        ...

    def off(self, event: str, handler: Callable[..., Any]) -> bool:
        ...


@runtime_checkable
class RenderHost(Protocol):
    """
    What the scheduler and orchestrator need from a scene.

    Entity collections (``units``, ``holders``, ``grid``) may be empty for
    hosts that carry no board.
    """

    input_enabled: bool
    tile_size: int
    unit_y_offset: float
    current_player: int
    units: List[Any]
    holders: List[Any]
    grid: List[List[Any]]

    @property
    def events(self) -> HostEventsProtocol:
        ...

    @property
    def resources(self) -> ResourceRegistryProtocol:
        ...

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def is_ready(self) -> bool:
        ...

    def children(self) -> List[RenderNodeProtocol]:
        ...

    def add_rectangle(
        self,
        x: float,
        y: float,
        width: float,
        height: float,
        fill: int = 0x000000,
        alpha: float = 1.0,
    ) -> Any:
        ...

    def add_text(self, x: float, y: float, text: str, color: str = "#ffffff", size: int = 16) -> Any:
        ...

    def add_container(self, children: Sequence[Any]) -> Any:
        ...

    def tile_xy(self, row: int, col: int) -> Optional[Tuple[float, float]]:
        ...
