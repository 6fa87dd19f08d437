"""
errors/history.py - Unbounded fault history and diagnostic reports
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
import uuid

from .taxonomy import FaultEntry, FaultKind


@dataclass
class FaultReport:
    """Aggregated view over the recorded faults."""

    report_id: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    total_faults: int = 0
    by_kind: Dict[str, int] = field(default_factory=dict)
    by_source: Dict[str, int] = field(default_factory=dict)

    latest: Optional[FaultEntry] = None
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "report_id": self.report_id,
            "total_faults": self.total_faults,
            "by_kind": self.by_kind,
            "by_source": self.by_source,
            "latest": self.latest.to_dict() if self.latest else None,
            "summary": self.summary,
        }


class FaultHistory:
    """
    Append-only record of every non-benign fault seen by the interceptor.

    Never trimmed; the presentation queue is the bounded view.
    """

    def __init__(self):
        self._entries: List[FaultEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, entry: FaultEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> List[FaultEntry]:
        """Copy of the recorded entries, oldest first."""
        return list(self._entries)

    def get_by_kind(self, kind: FaultKind) -> List[FaultEntry]:
        return [e for e in self._entries if e.kind == kind]

    def get_by_source(self, source: str) -> List[FaultEntry]:
        return [e for e in self._entries if e.metadata.get("source") == source]

    def generate_report(self) -> FaultReport:
        report = FaultReport(
            report_id=str(uuid.uuid4())[:8],
            total_faults=len(self._entries),
        )

        for kind in FaultKind:
            count = sum(1 for e in self._entries if e.kind == kind)
            if count > 0:
                report.by_kind[kind.value] = count

        for entry in self._entries:
            source = str(entry.metadata.get("source", "direct"))
            report.by_source[source] = report.by_source.get(source, 0) + 1

        if self._entries:
            report.latest = self._entries[-1]
            report.summary = f"{report.total_faults} fault(s) recorded"
        else:
            report.summary = "No faults recorded"

        return report

    def clear(self) -> None:
        self._entries.clear()
