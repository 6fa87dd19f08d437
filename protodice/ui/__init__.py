"""
ui/ - Fault presentation

The display scheduler and the panel it puts on the render host.
"""

from .panel import (
    PanelStyle,
    KIND_STYLES,
    FaultPanel,
    style_for,
    truncate,
)

from .scheduler import (
    PresentationState,
    DisplayScheduler,
    restart_process,
)

__all__ = [
    "PanelStyle",
    "KIND_STYLES",
    "FaultPanel",
    "style_for",
    "truncate",
    "PresentationState",
    "DisplayScheduler",
    "restart_process",
]
