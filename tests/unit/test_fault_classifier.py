"""
tests/unit/test_fault_classifier.py - Fault taxonomy and benign filter tests
"""

import json

import pytest

from protodice.errors.classifier import (
    BenignRule,
    DEFAULT_BENIGN_RULES,
    FaultClassifier,
    describe,
)
from protodice.errors.taxonomy import (
    ChannelUnavailableError,
    FaultEntry,
    FaultKind,
    HttpStatusError,
    RequestCancelled,
    RequestTimeout,
)


# =============================================================================
# TAXONOMY
# =============================================================================

class TestFaultEntry:
    """Test FaultEntry dataclass."""

    def test_defaults(self):
        """Entries get an id, timestamp and generic kind."""
        entry = FaultEntry(message="boom")
        assert entry.kind == FaultKind.GENERIC
        assert entry.entry_id
        assert entry.timestamp_ms > 0
        assert entry.stack_trace is None

    def test_entries_are_frozen(self):
        """Entries cannot be mutated."""
        entry = FaultEntry(message="boom")
        with pytest.raises(Exception):
            entry.message = "changed"

    def test_metadata_is_read_only(self):
        """Recorded metadata cannot be changed after creation."""
        source = {"source": "sync"}
        entry = FaultEntry(message="boom", metadata=source)

        with pytest.raises(TypeError):
            entry.metadata["source"] = "tampered"

        source["source"] = "changed"
        assert entry.metadata["source"] == "sync"

    def test_details_include_stack(self):
        """details joins message and stack trace."""
        entry = FaultEntry(message="boom", stack_trace="Traceback ...")
        assert entry.details == "boom\n\nTraceback ..."
        assert FaultEntry(message="boom").details == "boom"

    def test_to_dict(self):
        entry = FaultEntry(message="boom", kind=FaultKind.TYPE, metadata={"source": "sync"})
        d = entry.to_dict()
        assert d["kind"] == "type"
        assert d["metadata"] == {"source": "sync"}


class TestRequestErrors:
    """Test correlator failure types."""

    def test_timeout_carries_operation(self):
        error = RequestTimeout("lobby-data-refresh", 5.0)
        assert error.operation == "lobby-data-refresh"
        assert error.timeout_seconds == 5.0
        assert "lobby-data-refresh" in str(error)

    def test_channel_unavailable_message(self):
        error = ChannelUnavailableError(operation="ranking")
        assert error.message == "Socket not connected"

    def test_http_status_recoverability(self):
        """Server errors are recoverable, client errors are not."""
        assert HttpStatusError(503).recoverable is True
        assert HttpStatusError(404, "Not Found").recoverable is False
        assert str(HttpStatusError(404, "Not Found")) == "HTTP 404: Not Found"

    def test_cancelled_not_recoverable(self):
        assert RequestCancelled("GET /x").recoverable is False


# =============================================================================
# BENIGN FILTER
# =============================================================================

class TestBenignFilter:
    """Test the default benign rule table."""

    @pytest.fixture
    def classifier(self):
        return FaultClassifier()

    @pytest.mark.parametrize("message", [
        "Unable to decode audio data",
        "The audio element has no supported sources",
        "NotAllowedError: play() failed because the user didn't interact",
        "The play() request was interrupted by a call to pause()",
        "Failed to load assets/dice.png",
        "GET /img/board.json 404",
        "asset/music not found",
    ])
    def test_known_noise_is_benign(self, classifier, message):
        """Known environment noise is benign."""
        assert classifier.is_benign(Exception(message))

    @pytest.mark.parametrize("message", [
        "Cannot read properties of undefined (reading 'x')",
        "list index out of range",
        "Failed to load user profile",
        "dice.png rendered upside down",
    ])
    def test_real_faults_are_not_benign(self, classifier, message):
        assert not classifier.is_benign(Exception(message))

    def test_error_name_rules(self, classifier):
        """EncodingError/NotSupportedError only count when about audio."""

        class EncodingError(Exception):
            pass

        class NotSupportedError(Exception):
            pass

        assert classifier.is_benign(EncodingError("audio stream corrupt"))
        assert classifier.is_benign(NotSupportedError("audio codec"))
        assert not classifier.is_benign(EncodingError("utf-8 text corrupt"))

    def test_benign_rule_reports_name(self, classifier):
        rule = classifier.benign_rule(Exception("Unable to decode audio data"))
        assert rule is not None
        assert rule.name == "audio_decode"

    def test_plain_strings_are_classified(self, classifier):
        assert classifier.is_benign("failed to load because no supported source was found")
        assert not classifier.is_benign(None)

    def test_classification_is_deterministic(self, classifier):
        """Same input, same verdict."""
        error = Exception("Failed to load assets/tile.png")
        assert [classifier.is_benign(error) for _ in range(5)] == [True] * 5

    def test_custom_rules_replace_defaults(self):
        classifier = FaultClassifier(rules=[BenignRule("ws", groups=(("websocket closed",),))])
        assert classifier.is_benign(Exception("WebSocket closed by peer"))
        assert not classifier.is_benign(Exception("Unable to decode audio data"))


class TestKindMapping:
    """Test exception class to kind mapping."""

    @pytest.mark.parametrize("error,kind", [
        (SyntaxError("bad"), FaultKind.SYNTAX),
        (TypeError("bad"), FaultKind.TYPE),
        (AttributeError("bad"), FaultKind.TYPE),
        (NameError("bad"), FaultKind.REFERENCE),
        (UnboundLocalError("bad"), FaultKind.REFERENCE),
        (IndexError("bad"), FaultKind.RANGE),
        (RecursionError("bad"), FaultKind.RANGE),
        (ValueError("bad"), FaultKind.GENERIC),
        (KeyError("bad"), FaultKind.GENERIC),
    ])
    def test_kind_of(self, error, kind):
        assert FaultClassifier().kind_of(error) == kind

    def test_non_exception_is_generic(self):
        assert FaultClassifier().kind_of("just a string") == FaultKind.GENERIC

    def test_describe(self):
        assert describe(ValueError("bad value")) == ("bad value", "ValueError")
        assert describe(ValueError()) == ("ValueError", "ValueError")
        assert describe(42) == ("42", "")


class TestResourceProbe:
    def test_probe_matches_resource_words(self):
        classifier = FaultClassifier()
        assert classifier.suggests_missing_resource("'NoneType' object has no attribute 'texture'")
        assert classifier.suggests_missing_resource("Frame missing in atlas")
        assert not classifier.suggests_missing_resource("division by zero")


class TestRulesFile:
    """Test loading the rule table from JSON."""

    def test_load_list(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps([
            {"name": "quota", "groups": [["Quota Exceeded"]]},
        ]))

        classifier = FaultClassifier.from_rules_file(str(path))

        assert [r.name for r in classifier.rules] == ["quota"]
        assert classifier.is_benign(Exception("quota exceeded for storage"))

    def test_load_object(self, tmp_path):
        path = tmp_path / "rules.json"
        path.write_text(json.dumps({"rules": [r.to_dict() for r in DEFAULT_BENIGN_RULES]}))

        classifier = FaultClassifier.from_rules_file(str(path))

        assert len(classifier.rules) == len(DEFAULT_BENIGN_RULES)
        assert classifier.is_benign(Exception("Failed to load assets/dice.png"))

    def test_missing_file_uses_defaults(self, tmp_path):
        classifier = FaultClassifier.from_rules_file(str(tmp_path / "nope.json"))
        assert classifier.rules == DEFAULT_BENIGN_RULES
