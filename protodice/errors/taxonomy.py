"""
errors/taxonomy.py - Fault and request failure classification

Two families live here:
- FaultKind / FaultEntry: what the interceptor records for uncaught faults
- RequestError and subclasses: typed failures raised by the correlator
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from enum import Enum
from types import MappingProxyType
import time
import uuid


class FaultKind(Enum):
    """Runtime category of an intercepted fault."""
    SYNTAX = "syntax"
    TYPE = "type"
    REFERENCE = "reference"
    RANGE = "range"
    GENERIC = "error"


@dataclass(frozen=True)
class FaultEntry:
    """Immutable record of a single non-benign fault."""

    message: str
    kind: FaultKind = FaultKind.GENERIC
    stack_trace: Optional[str] = None
    timestamp_ms: int = field(default_factory=lambda: int(time.time() * 1000))
    metadata: Mapping[str, Any] = field(default_factory=dict)
    entry_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    def __post_init__(self):
        # read-only view over a private copy
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata or {})))

    @property
    def details(self) -> str:
        """Full message followed by the stack trace, if any."""
        if self.stack_trace:
            return f"{self.message}\n\n{self.stack_trace}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry_id": self.entry_id,
            "message": self.message,
            "kind": self.kind.value,
            "stack_trace": self.stack_trace,
            "timestamp_ms": self.timestamp_ms,
            "metadata": dict(self.metadata),
        }


# =============================================================================
# REQUEST FAILURES
# =============================================================================

class RequestError(Exception):
    """Base exception for correlator operations."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.recoverable = recoverable

    def __str__(self) -> str:
        if self.operation:
            return f"{self.message} [operation={self.operation}]"
        return self.message


class RequestTimeout(RequestError):
    """No matching response arrived before the deadline."""

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            f"Request timed out after {timeout_seconds}s",
            operation=operation,
        )
        self.timeout_seconds = timeout_seconds


class ChannelError(RequestError):
    """The duplex channel reported an error or failed to carry the request."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        event: Optional[str] = None,
        payload: Any = None,
    ):
        super().__init__(message, operation=operation)
        self.event = event
        self.payload = payload


class ChannelUnavailableError(ChannelError):
    """Raised before any emission when the channel is absent or disconnected."""

    def __init__(self, operation: str = ""):
        super().__init__("Socket not connected", operation=operation)


class HttpStatusError(RequestError):
    """An HTTP call completed with a non-2xx status."""

    def __init__(self, status_code: int, reason: str = "", operation: str = ""):
        message = f"HTTP {status_code}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, operation=operation, recoverable=status_code >= 500)
        self.status_code = status_code
        self.reason = reason


class RequestCancelled(RequestError):
    """The caller's cancellation token fired before the result arrived."""

    def __init__(self, operation: str = ""):
        super().__init__("Request cancelled", operation=operation, recoverable=False)


class InvalidRequestError(RequestError):
    """Request preconditions were not met (bad key, unknown topic)."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message, operation=operation, recoverable=False)
