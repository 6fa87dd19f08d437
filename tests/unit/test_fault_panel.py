"""
tests/unit/test_fault_panel.py - Fault panel tests
"""

from unittest.mock import Mock

import pytest

from protodice.errors.taxonomy import FaultEntry, FaultKind
from protodice.ui.panel import FaultPanel, KIND_STYLES, style_for, truncate


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("short", 300) == "short"

    def test_long_text_ellipsis_terminated(self):
        text = truncate("x" * 400, 300)
        assert len(text) == 300
        assert text.endswith("...")

    def test_empty(self):
        assert truncate(None, 10) == ""
        assert truncate("", 10) == ""


class TestStyles:
    @pytest.mark.parametrize("kind,title", [
        (FaultKind.SYNTAX, "Syntax Error"),
        (FaultKind.TYPE, "Type Error"),
        (FaultKind.REFERENCE, "Reference Error"),
        (FaultKind.RANGE, "Range Error"),
        (FaultKind.GENERIC, "Error"),
    ])
    def test_titles(self, kind, title):
        assert style_for(kind).title == title

    def test_colors(self):
        assert KIND_STYLES[FaultKind.SYNTAX].color == 0xFF6666
        assert KIND_STYLES[FaultKind.TYPE].hex == "#ff9966"


class TestFaultPanel:
    """Test building and driving the panel on a headless scene."""

    def _panel(self, scene, entry, **actions):
        return FaultPanel(scene, entry, actions=actions).build()

    def test_build(self, scene):
        panel = self._panel(scene, FaultEntry(message="boom", kind=FaultKind.TYPE))

        assert scene.children() == [panel.root]
        assert panel.title_text.text == "Type Error"
        assert panel.title_text.color == "#ff9966"
        assert panel.body_text.text == "boom"
        assert set(panel.buttons) == {"recover", "details", "reload", "close"}

    def test_panel_width_capped(self, scene):
        panel = self._panel(scene, FaultEntry(message="boom"))
        frame = panel.root.children[1]
        assert frame.width == 900
        assert frame.height == 260
        assert frame.stroke == (3, KIND_STYLES[FaultKind.GENERIC].color)

    def test_message_truncated(self, scene):
        panel = self._panel(scene, FaultEntry(message="m" * 500))
        assert len(panel.body_text.text) == 300
        assert panel.body_text.text.endswith("...")

    def test_buttons_call_actions(self, scene):
        close = Mock()
        panel = self._panel(scene, FaultEntry(message="boom"), close=close)

        panel.buttons["close"].press()

        close.assert_called_once()

    def test_failing_action_contained(self, scene):
        panel = self._panel(scene, FaultEntry(message="boom"), reload=Mock(side_effect=OSError("no exec")))
        assert panel.buttons["reload"].press() is None

    def test_show_details(self, scene):
        """Details show message and stack, capped at 1000 characters."""
        entry = FaultEntry(message="boom", stack_trace="frame\n" * 400)
        panel = self._panel(scene, entry)

        details = panel.show_details()

        assert details.startswith("boom\n\nframe")
        assert len(details) == 1000
        assert panel.body_text.text == details
        assert panel.showing_details

    def test_update_in_place(self, scene):
        panel = self._panel(scene, FaultEntry(message="first", kind=FaultKind.TYPE))
        root = panel.root

        panel.update(FaultEntry(message="second", kind=FaultKind.RANGE))

        assert panel.root is root
        assert panel.title_text.text == "Range Error"
        assert panel.body_text.text == "second"

    def test_destroy(self, scene):
        panel = self._panel(scene, FaultEntry(message="boom"))
        root = panel.root

        panel.destroy()

        assert root.destroyed
        assert scene.children() == []
        assert panel.root is None

    def test_failed_build_removes_created_nodes(self, scene):
        """Nodes created before a build failure do not stay on the scene."""
        scene.add_container = Mock(side_effect=RuntimeError("renderer gone"))
        panel = FaultPanel(scene, FaultEntry(message="boom"), actions={})

        with pytest.raises(RuntimeError):
            panel.build()

        assert scene.children() == []
        assert panel.root is None
        assert panel.buttons == {}
