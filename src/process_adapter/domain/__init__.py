"""Process Adapter Domain Package."""

from .command_gate import (
    GateDecision,
    GateRule,
    GatePolicy,
    GateResult,
    CommandGate,
    OVERRIDE_TOKEN,
    BLOCKED_RULES,
    DESTRUCTIVE_RULES,
)

from .guidance import (
    blocked_command_help,
    override_required_message,
    rejection_message,
)

from .output_buffer import OutputAggregator

from .process_handle import (
    ProcessHandle,
    build_environment,
)

from .session_registry import (
    SessionRegistry,
    LiveSession,
    CompletedSession,
    StartResult,
    INVALID_PROCESS_ID,
)

from .state_classifier import (
    ProcessState,
    ProcessStateAnalysis,
    StateClassifier,
    HeuristicStateClassifier,
    format_state_message,
)

from .process_tools import (
    ProcessTools,
    StartProcessRequest,
    StartProcessResult,
    ErrorKind,
)

__all__ = [
    "GateDecision",
    "GateRule",
    "GatePolicy",
    "GateResult",
    "CommandGate",
    "OVERRIDE_TOKEN",
    "BLOCKED_RULES",
    "DESTRUCTIVE_RULES",
    "blocked_command_help",
    "override_required_message",
    "rejection_message",
    "OutputAggregator",
    "ProcessHandle",
    "build_environment",
    "SessionRegistry",
    "LiveSession",
    "CompletedSession",
    "StartResult",
    "INVALID_PROCESS_ID",
    "ProcessState",
    "ProcessStateAnalysis",
    "StateClassifier",
    "HeuristicStateClassifier",
    "format_state_message",
    "ProcessTools",
    "StartProcessRequest",
    "StartProcessResult",
    "ErrorKind",
]
