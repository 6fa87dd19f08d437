"""
errors/classifier.py - Benign fault filter and kind mapping

The benign table is data, not logic: rules can be replaced wholesale or
loaded from a JSON file without touching the interceptor or scheduler.
Classification is pure; the same input always yields the same verdict.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Pattern, Sequence, Tuple, Type
from pathlib import Path
import json
import logging
import re

from .taxonomy import FaultKind

logger = logging.getLogger("errors.classifier")


@dataclass(frozen=True)
class BenignRule:
    """
    A single benign-noise rule.

    The rule matches when every group has at least one substring present
    in the lowercased message and, if set, the exception type name
    matches ``error_name``.
    """

    name: str
    groups: Tuple[Tuple[str, ...], ...] = ()
    error_name: Optional[str] = None

    def matches(self, message: str, error_name: str = "") -> bool:
        if self.error_name and not re.search(self.error_name, error_name, re.IGNORECASE):
            return False
        if not self.groups:
            return bool(self.error_name)
        return all(any(s in message for s in group) for group in self.groups)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "groups": [list(g) for g in self.groups],
            "error_name": self.error_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BenignRule":
        groups = tuple(
            tuple(str(s).lower() for s in group)
            for group in data.get("groups", [])
        )
        return cls(
            name=data.get("name", "unnamed"),
            groups=groups,
            error_name=data.get("error_name"),
        )


ASSET_EXTENSIONS = (
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".json", ".atlas", ".xml",
    ".fnt", ".ttf", ".woff", ".woff2", ".mp3", ".ogg", ".wav", ".m4a",
)

ASSET_FAILURE_WORDS = ("failed to load", "load failed", "not found", "404")


DEFAULT_BENIGN_RULES: Tuple[BenignRule, ...] = (
    BenignRule("audio_decode", groups=(("unable to decode audio data", "decode audio data"),)),
    BenignRule(
        "audio_no_source",
        groups=((
            "the audio element has no supported sources",
            "failed to load because no supported source was found",
            "the element has no supported sources",
        ),),
    ),
    BenignRule("autoplay_not_allowed", groups=(("notallowederror",), ("play()",))),
    BenignRule(
        "autoplay_interrupted",
        groups=((
            "play() failed because the user didn",
            "the play() request was interrupted",
        ),),
    ),
    BenignRule("audio_encoding", groups=(("audio",),), error_name="encodingerror"),
    BenignRule("audio_not_supported", groups=(("audio",),), error_name="notsupportederror"),
    BenignRule(
        "asset_missing",
        groups=(ASSET_EXTENSIONS + ("assets/", "asset/"), ASSET_FAILURE_WORDS),
    ),
)

DEFAULT_RESOURCE_PROBE = r"sprite|texture|frame|parse|null|undefined|nonetype"


# Ordered: first isinstance match wins
KIND_TABLE: Tuple[Tuple[Type[BaseException], FaultKind], ...] = (
    (SyntaxError, FaultKind.SYNTAX),
    (TypeError, FaultKind.TYPE),
    (AttributeError, FaultKind.TYPE),
    (NameError, FaultKind.REFERENCE),
    (IndexError, FaultKind.RANGE),
    (OverflowError, FaultKind.RANGE),
    (RecursionError, FaultKind.RANGE),
)


def describe(raw: Any) -> Tuple[str, str]:
    """Return (message, error type name) for an exception or arbitrary value."""
    if isinstance(raw, BaseException):
        message = str(raw) or type(raw).__name__
        return message, type(raw).__name__
    if raw is None:
        return "", ""
    return str(raw), ""


class FaultClassifier:
    """
    Decides whether raw errors are benign and which kind they belong to.
    """

    def __init__(
        self,
        rules: Optional[Sequence[BenignRule]] = None,
        resource_probe: str = DEFAULT_RESOURCE_PROBE,
    ):
        self._rules: Tuple[BenignRule, ...] = tuple(
            DEFAULT_BENIGN_RULES if rules is None else rules
        )
        self._probe: Pattern[str] = re.compile(resource_probe, re.IGNORECASE)

    @property
    def rules(self) -> Tuple[BenignRule, ...]:
        return self._rules

    def benign_rule(self, raw: Any) -> Optional[BenignRule]:
        """Return the first rule matching ``raw``, or None."""
        message, error_name = describe(raw)
        if not message and not error_name:
            return None
        lowered = message.lower()
        for rule in self._rules:
            if rule.matches(lowered, error_name):
                return rule
        return None

    def is_benign(self, raw: Any) -> bool:
        return self.benign_rule(raw) is not None

    def kind_of(self, raw: Any) -> FaultKind:
        if not isinstance(raw, BaseException):
            return FaultKind.GENERIC
        for exc_type, kind in KIND_TABLE:
            if isinstance(raw, exc_type):
                return kind
        return FaultKind.GENERIC

    def suggests_missing_resource(self, message: str) -> bool:
        """True when the message hints at a missing renderable resource."""
        return bool(self._probe.search(message or ""))

    @classmethod
    def from_rules_file(cls, filepath: str, resource_probe: str = DEFAULT_RESOURCE_PROBE) -> "FaultClassifier":
        """
        Load a rule table from JSON.

        The file holds either a list of rule objects or ``{"rules": [...]}``.
        A missing file falls back to the default table.
        """
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Rules file not found: {filepath}, using defaults")
            return cls(resource_probe=resource_probe)

        with open(path) as f:
            data = json.load(f)

        raw_rules: Iterable[Dict[str, Any]] = data.get("rules", []) if isinstance(data, dict) else data
        rules: List[BenignRule] = [BenignRule.from_dict(r) for r in raw_rules]
        logger.info(f"Loaded {len(rules)} benign rule(s) from {filepath}")
        return cls(rules=rules, resource_probe=resource_probe)
