"""
ui/panel.py - The on-screen fault panel

Builds a blocker, a framed panel, title/body text and four action
buttons on a render host, and keeps references so the scheduler can
update the text in place or tear the whole surface down.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import logging

from ..errors.taxonomy import FaultEntry, FaultKind

logger = logging.getLogger("ui.panel")


@dataclass(frozen=True)
class PanelStyle:
    title: str
    color: int
    hex: str


KIND_STYLES: Dict[FaultKind, PanelStyle] = {
    FaultKind.SYNTAX: PanelStyle("Syntax Error", 0xFF6666, "#ff6666"),
    FaultKind.TYPE: PanelStyle("Type Error", 0xFF9966, "#ff9966"),
    FaultKind.REFERENCE: PanelStyle("Reference Error", 0xFFCC66, "#ffcc66"),
    FaultKind.RANGE: PanelStyle("Range Error", 0xFFCC99, "#ffcc99"),
    FaultKind.GENERIC: PanelStyle("Error", 0xFFCC66, "#ffcc66"),
}

PANEL_MAX_WIDTH = 900
PANEL_HEIGHT = 260
PANEL_FILL = 0x1B1B1B
BLOCKER_ALPHA = 0.45
BASE_DEPTH = 10000

TITLE_NAME = "fault_title"
BODY_NAME = "fault_body"

# (action, label, x offset from centre, color)
BUTTONS = (
    ("recover", "Recover", -220, "#66ff66"),
    ("details", "Show Details", -80, "#ffff66"),
    ("reload", "Reload", 80, "#ffcc66"),
    ("close", "Close", 220, "#ff6666"),
)


def style_for(kind: Optional[FaultKind]) -> PanelStyle:
    return KIND_STYLES.get(kind, KIND_STYLES[FaultKind.GENERIC])


def truncate(text: Optional[str], limit: int) -> str:
    """Cap ``text`` at ``limit`` characters, ending in '...' when cut."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)] + "..."


class FaultPanel:
    """
    One visible fault surface.

    Actions are plain callables supplied by the scheduler; the panel only
    wires them to the buttons.
    """

    def __init__(
        self,
        host: Any,
        entry: FaultEntry,
        actions: Dict[str, Callable[[], Any]],
        message_cap: int = 300,
        details_cap: int = 1000,
    ):
        self.host = host
        self.entry = entry
        self.actions = actions
        self.message_cap = message_cap
        self.details_cap = details_cap

        self.root: Any = None
        self.title_text: Any = None
        self.body_text: Any = None
        self.buttons: Dict[str, Any] = {}
        self.showing_details = False

    def build(self) -> "FaultPanel":
        """
        Create the panel nodes on the host.

        On failure every node created so far is destroyed before the error
        propagates, so a half-built panel never blocks input.
        """
        nodes: List[Any] = []
        try:
            self._build(nodes)
        except Exception:
            self._discard(nodes)
            raise
        return self

    def _discard(self, nodes: List[Any]) -> None:
        for node in reversed(nodes):
            try:
                node.destroy()
            except Exception as e:
                logger.warning(f"Failed to discard panel node: {e}")
        self.root = None
        self.title_text = None
        self.body_text = None
        self.buttons = {}

    def _build(self, nodes: List[Any]) -> None:
        host = self.host
        style = style_for(self.entry.kind)

        cx = host.width / 2
        cy = host.height / 2
        width = min(PANEL_MAX_WIDTH, host.width - 80)
        height = PANEL_HEIGHT

        blocker = host.add_rectangle(cx, cy, host.width, host.height, 0x000000, BLOCKER_ALPHA)
        nodes.append(blocker)
        blocker.set_depth(BASE_DEPTH)
        blocker.set_interactive()

        frame = host.add_rectangle(cx, cy, width, height, PANEL_FILL)
        nodes.append(frame)
        frame.set_depth(BASE_DEPTH + 1)
        frame.set_stroke(3, style.color)

        self.title_text = host.add_text(cx, cy - height / 2 + 24, style.title, color=style.hex, size=24)
        nodes.append(self.title_text)
        self.title_text.name = TITLE_NAME
        self.title_text.set_depth(BASE_DEPTH + 2)

        self.body_text = host.add_text(cx, cy - 8, truncate(self.entry.message, self.message_cap))
        nodes.append(self.body_text)
        self.body_text.name = BODY_NAME
        self.body_text.set_depth(BASE_DEPTH + 2)

        button_y = cy + height / 2 - 36
        for action, label, offset, color in BUTTONS:
            button = host.add_text(cx + offset, button_y, label, color=color, size=18)
            nodes.append(button)
            button.name = f"button_{action}"
            button.set_depth(BASE_DEPTH + 2)
            button.set_interactive(self._press_handler(action))
            self.buttons[action] = button

        self.root = host.add_container(list(nodes))
        nodes.append(self.root)
        self.root.set_depth(BASE_DEPTH)

    def _press_handler(self, action: str) -> Callable[[], Any]:
        def on_press() -> Any:
            callback = self.actions.get(action)
            if callback is None:
                return None
            try:
                return callback()
            except Exception as e:
                logger.warning(f"Panel action '{action}' failed: {e}")
                return None
        return on_press

    def update(self, entry: FaultEntry) -> None:
        """Replace the visible title and body in place."""
        self.entry = entry
        self.showing_details = False
        style = style_for(entry.kind)
        if self.title_text is not None:
            self.title_text.set_text(style.title)
            self.title_text.color = style.hex
        if self.body_text is not None:
            self.body_text.set_text(truncate(entry.message, self.message_cap))

    def show_details(self) -> str:
        details = truncate(self.entry.details, self.details_cap)
        logger.info(f"Fault details [{self.entry.entry_id}]:\n{self.entry.details}")
        if self.body_text is not None:
            self.body_text.set_text(details)
        self.showing_details = True
        return details

    def destroy(self) -> None:
        if self.root is not None:
            self.root.destroy()
        self.root = None
        self.title_text = None
        self.body_text = None
        self.buttons = {}
