"""
Process Adapter - Process Tools

The tool-facing boundary: takes already-validated requests, drives the
session registry, and shapes plain result values for the transport layer.
Nothing here raises for rejected commands, spawn failures or unknown ids.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, asdict

from .guidance import rejection_message
from .session_registry import SessionRegistry, INVALID_PROCESS_ID
from .state_classifier import (
    StateClassifier,
    HeuristicStateClassifier,
    format_state_message,
)

logger = logging.getLogger("process-adapter.tools")

DEFAULT_TIMEOUT_MS = 30000


class ErrorKind(str, Enum):
    """Why a start request produced no process."""
    GATE_REJECTION = "gate_rejection"
    SPAWN_FAILURE = "spawn_failure"


@dataclass
class StartProcessRequest:
    """Decoded start request."""
    command: str
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    shell: Optional[str] = None


@dataclass
class StartProcessResult:
    """Caller-facing result of a start request."""
    process_id: int
    initial_output: str = ""
    status_hint: str = ""
    still_running: bool = False
    exit_code: Optional[int] = None
    is_error: bool = False
    error_kind: Optional[ErrorKind] = None
    text: str = ""


class ProcessTools:
    """Start, poll, feed and stop processes on behalf of a remote caller."""

    def __init__(
        self,
        registry: SessionRegistry,
        state_classifier: Optional[StateClassifier] = None,
    ):
        self.registry = registry
        self.state_classifier = state_classifier or HeuristicStateClassifier()

    async def start_process(self, request: StartProcessRequest) -> StartProcessResult:
        result = await self.registry.start(
            request.command,
            request.timeout_ms,
            shell=request.shell,
        )

        if result.rejection is not None:
            logger.info(f"Start rejected by gate ({result.rejection.decision.value}): {request.command}")
            text = rejection_message(result.rejection, self.registry.gate.override_token)
            return StartProcessResult(
                process_id=INVALID_PROCESS_ID,
                is_error=True,
                error_kind=ErrorKind.GATE_REJECTION,
                text=text,
            )

        if not result.started:
            return StartProcessResult(
                process_id=INVALID_PROCESS_ID,
                is_error=True,
                error_kind=ErrorKind.SPAWN_FAILURE,
                text=result.error or "Error: The command could not be executed.",
            )

        analysis = self.state_classifier.classify(
            result.initial_output,
            result.process_id,
            still_running=result.still_running,
        )

        # A completion phrase from a live process is not an exit
        if analysis.is_waiting_for_input:
            status_hint = format_state_message(analysis, result.process_id)
        elif not result.still_running:
            status_hint = f"Process finished with exit code {result.exit_code}."
        else:
            status_hint = "Process is running. Use read_output to get more output."

        text = (
            f"Process started with PID {result.process_id}\n"
            f"Initial output:\n{result.initial_output}\n{status_hint}"
        )

        return StartProcessResult(
            process_id=result.process_id,
            initial_output=result.initial_output,
            status_hint=status_hint,
            still_running=result.still_running,
            exit_code=result.exit_code,
            text=text,
        )

    def read_output(self, process_id: int) -> Optional[str]:
        return self.registry.drain_output(process_id)

    async def write_input(self, process_id: int, text: str) -> bool:
        return await self.registry.send_input(process_id, text)

    def terminate(self, process_id: int) -> bool:
        return self.registry.force_terminate(process_id)

    def list_sessions(self) -> List[Dict[str, Any]]:
        return self.registry.list_active()

    def list_completed(self) -> List[Dict[str, Any]]:
        """Completed sessions as plain dicts."""
        sessions = []
        for record in self.registry.list_completed():
            data = asdict(record)
            data["started_at"] = record.started_at.isoformat()
            data["ended_at"] = record.ended_at.isoformat()
            data["runtime_seconds"] = record.runtime_seconds
            sessions.append(data)
        return sessions
