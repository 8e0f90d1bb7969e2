"""
Process Adapter - Process State Classifier

Heuristic guess at what a process is doing, based on the tail of its output.
The result only shapes the status hint attached to a start response; the
session registry never consults it.
"""

import re
from enum import Enum
from typing import Dict, List, Optional, Protocol
from dataclasses import dataclass


class ProcessState(Enum):
    """Best guess at a process's state."""
    WAITING_FOR_INPUT = "waiting_for_input"
    FINISHED = "finished"
    STILL_BUSY = "still_busy"


@dataclass
class ProcessStateAnalysis:
    """Result of classifying a process's output."""
    state: ProcessState
    matched_prompt: Optional[str] = None
    last_line: str = ""

    @property
    def is_waiting_for_input(self) -> bool:
        return self.state == ProcessState.WAITING_FOR_INPUT

    @property
    def is_finished(self) -> bool:
        return self.state == ProcessState.FINISHED


# Prompts matched against the last line of output
INPUT_PROMPT_PATTERNS: Dict[str, List[str]] = {
    "python": [r"^>>>\s?$", r"^\.\.\.\s?$"],
    "ipython": [r"^In \[\d+\]:\s?$"],
    "node": [r"^>\s?$"],
    "pdb": [r"^\(Pdb\)\s?$", r"^ipdb>\s?$"],
    "sql": [r"^(mysql|sqlite|mariadb)>\s?$", r"^\w+[=-]?[#>]\s?$"],
    "shell": [r"^[\w.-]+@[\w.-]+:[^\s]*[$#]\s?$", r"^(bash|sh|zsh)(-[\d.]+)?[$#]\s?$"],
    "confirm": [r"\[y/n\]", r"\(y/n\)", r"\byes/no\b", r"\[Y/n\]\s?$", r"\[y/N\]\s?$"],
    "password": [r"password( for [\w.-]+)?:\s?$", r"passphrase.*:\s?$"],
    "continue": [r"press (enter|return|any key)", r"continue\?\s?$"],
}

# Trailing-line phrases that mean the work is done
COMPLETION_PATTERNS: List[str] = [
    r"\bprocess (exited|finished|completed)\b",
    r"\bexit(ed)? (with )?(code|status) -?\d+",
    r"^(done|finished|completed)[.!]?$",
]


class StateClassifier(Protocol):
    """Pluggable strategy for guessing a process's state."""

    def classify(
        self,
        output: str,
        process_id: int,
        still_running: Optional[bool] = None,
    ) -> ProcessStateAnalysis:
        ...


class HeuristicStateClassifier:
    """Classifies by matching the trailing output line against prompt tables."""

    def __init__(
        self,
        prompt_patterns: Optional[Dict[str, List[str]]] = None,
        completion_patterns: Optional[List[str]] = None,
    ):
        prompts = prompt_patterns if prompt_patterns is not None else INPUT_PROMPT_PATTERNS
        self._prompts = [
            (tag, re.compile(p, re.IGNORECASE if tag in ("confirm", "password", "continue") else 0))
            for tag, patterns in prompts.items()
            for p in patterns
        ]
        completions = completion_patterns if completion_patterns is not None else COMPLETION_PATTERNS
        self._completions = [re.compile(p, re.IGNORECASE) for p in completions]

    def classify(
        self,
        output: str,
        process_id: int,
        still_running: Optional[bool] = None,
    ) -> ProcessStateAnalysis:
        lines = output.splitlines()
        last_line = lines[-1] if lines else ""

        if still_running is False:
            return ProcessStateAnalysis(ProcessState.FINISHED, last_line=last_line)

        if last_line.strip():
            for tag, pattern in self._prompts:
                if pattern.search(last_line):
                    return ProcessStateAnalysis(
                        ProcessState.WAITING_FOR_INPUT,
                        matched_prompt=tag,
                        last_line=last_line,
                    )
            stripped = last_line.strip()
            for pattern in self._completions:
                if pattern.search(stripped):
                    return ProcessStateAnalysis(ProcessState.FINISHED, last_line=last_line)

        return ProcessStateAnalysis(ProcessState.STILL_BUSY, last_line=last_line)


def format_state_message(analysis: ProcessStateAnalysis, process_id: int) -> str:
    """Render the status hint for a start response."""
    if analysis.is_waiting_for_input:
        return (
            f"Process {process_id} is waiting for input "
            f"(detected {analysis.matched_prompt} prompt: {analysis.last_line.strip()!r}). "
            "Use write_input to respond."
        )
    if analysis.is_finished:
        return f"Process {process_id} has finished."
    return f"Process {process_id} is still busy."
