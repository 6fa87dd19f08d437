"""
errors/ - Fault taxonomy, interception & recovery

Request failures raised by the correlator, the process-wide fault
interceptor and the scene recovery orchestrator.
"""

from .taxonomy import (
    FaultKind,
    FaultEntry,
    RequestError,
    RequestTimeout,
    ChannelError,
    ChannelUnavailableError,
    HttpStatusError,
    RequestCancelled,
    InvalidRequestError,
)

from .classifier import (
    BenignRule,
    FaultClassifier,
    DEFAULT_BENIGN_RULES,
    DEFAULT_RESOURCE_PROBE,
)

from .history import (
    FaultReport,
    FaultHistory,
)

from .recovery import (
    RecoveryStep,
    StepOutcome,
    GraphRepairReport,
    RecoveryResult,
    RecoveryOrchestrator,
)

from .interceptor import FaultInterceptor

__all__ = [
    # Taxonomy
    "FaultKind",
    "FaultEntry",
    "RequestError",
    "RequestTimeout",
    "ChannelError",
    "ChannelUnavailableError",
    "HttpStatusError",
    "RequestCancelled",
    "InvalidRequestError",
    # Classifier
    "BenignRule",
    "FaultClassifier",
    "DEFAULT_BENIGN_RULES",
    "DEFAULT_RESOURCE_PROBE",
    # History
    "FaultReport",
    "FaultHistory",
    # Recovery
    "RecoveryStep",
    "StepOutcome",
    "GraphRepairReport",
    "RecoveryResult",
    "RecoveryOrchestrator",
    # Interceptor
    "FaultInterceptor",
]
