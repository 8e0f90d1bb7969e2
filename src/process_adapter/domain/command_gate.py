"""
Process Adapter - Command Gate

Classifies a raw command string before it is executed. Commands are matched
against two ordered rule tables:

- BLOCKED_RULES: categorically disallowed, no override can unblock them
- DESTRUCTIVE_RULES: permitted only when the override token is present

Matching is textual (regular expressions over the raw command), not a shell
parse. Obfuscated commands can slip through and benign commands containing a
matching substring are rejected.
"""

import re
import json
import logging
from enum import Enum
from typing import List, Optional
from dataclasses import dataclass, field

logger = logging.getLogger("process-adapter.gate")


OVERRIDE_TOKEN = "--i-have-explicit-permission-from-user"


class GateDecision(Enum):
    """Outcome of classifying a command."""
    ALLOWED = "allowed"
    BLOCKED = "blocked"
    REQUIRES_OVERRIDE = "requires_override"


@dataclass(frozen=True)
class GateRule:
    """A tagged pattern in one of the gate tables."""
    tag: str
    pattern: str
    reason: str


# Always blocked - the override token does not apply
BLOCKED_RULES: List[GateRule] = [
    GateRule("sed", r"\bsed\b", "sed edits files in place and is not allowed"),
    GateRule("sudo", r"(^\s*|[;&|(]\s*)(sudo|su)\b", "Privilege escalation is not allowed"),
    GateRule("mkfs", r"\bmkfs(\.\w+)?\b", "Formatting filesystems is not allowed"),
    GateRule("fdisk", r"\b(fdisk|sfdisk|parted)\b", "Partitioning disks is not allowed"),
    GateRule("power", r"(^\s*|[;&|(]\s*)(shutdown|reboot|halt|poweroff)\b", "Host power control is not allowed"),
    GateRule("dd-device", r"\bdd\b.*\bof=/dev/", "Raw writes to block devices are not allowed"),
    GateRule("fork-bomb", r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:", "Fork bomb"),
    GateRule("rm-root", r"\brm\s+([^\s;&|]+\s+)*/\*?(\s|$|[;&|])", "Deleting the filesystem root is not allowed"),
]

# Destructive - allowed only with the override token
DESTRUCTIVE_RULES: List[GateRule] = [
    GateRule("rm-recursive", r"\brm\s+(-\S+\s+)*(-[a-zA-Z]*[rR][a-zA-Z]*|--recursive)\b", "Recursive deletion"),
    GateRule("rm-wildcard", r"\brm\s+.*\*", "Wildcard deletion"),
    GateRule("find-delete", r"\bfind\s+.*-delete\b", "Bulk deletion with find -delete"),
    GateRule("find-exec-rm", r"\bfind\s+.*-exec\s+rm\b", "Bulk deletion with find -exec rm"),
    GateRule("git-force-push", r"\bgit\s+push\b.*\s(--force|--force-with-lease|-f)\b", "Forced push rewrites remote history"),
    GateRule("git-force-pull", r"\bgit\s+pull\b.*\s(--force|-f)\b", "Forced pull overwrites local history"),
    GateRule("git-reset-hard", r"\bgit\s+reset\b.*\s--hard\b", "Hard reset discards local changes"),
    GateRule("git-clean", r"\bgit\s+clean\b.*\s(-[a-zA-Z]*f[a-zA-Z]*|--force)\b", "git clean deletes untracked files"),
]


@dataclass
class GatePolicy:
    """Operator-supplied additions to the default gate tables."""
    version: str = "1.0"
    blocked_patterns: List[str] = field(default_factory=list)
    destructive_patterns: List[str] = field(default_factory=list)
    override_token: str = OVERRIDE_TOKEN

    @classmethod
    def load(cls, path: str) -> "GatePolicy":
        """Load a policy from a JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls(
            version=data.get("version", "1.0"),
            blocked_patterns=data.get("blocked_patterns", []),
            destructive_patterns=data.get("destructive_patterns", []),
            override_token=data.get("override_token", OVERRIDE_TOKEN),
        )


@dataclass
class GateResult:
    """Result of command classification.

    ``command`` is the text to execute: the input with the override token
    stripped out.
    """
    decision: GateDecision
    command: str
    reason: Optional[str] = None
    tag: Optional[str] = None
    matched_pattern: Optional[str] = None

    @property
    def is_allowed(self) -> bool:
        return self.decision == GateDecision.ALLOWED


class CommandGate:
    """Classifies commands as allowed, blocked, or override-required."""

    def __init__(self, policy: Optional[GatePolicy] = None):
        self.policy = policy or GatePolicy()
        self.override_token = self.policy.override_token

        blocked = list(BLOCKED_RULES) + [
            GateRule("policy", p, "Command matches a blocked policy pattern")
            for p in self.policy.blocked_patterns
        ]
        destructive = list(DESTRUCTIVE_RULES) + [
            GateRule("policy", p, "Command matches a destructive policy pattern")
            for p in self.policy.destructive_patterns
        ]

        # Compile once per gate
        self._blocked = [(rule, re.compile(rule.pattern)) for rule in blocked]
        self._destructive = [(rule, re.compile(rule.pattern)) for rule in destructive]
        self._token = re.compile(r"(^|\s+)" + re.escape(self.override_token) + r"(?=\s|$)")

    def has_override(self, command: str) -> bool:
        """Check whether the override token appears as a standalone word."""
        return self._token.search(command) is not None

    def strip_override(self, command: str) -> str:
        """Remove every standalone occurrence of the override token."""
        return self._token.sub("", command).strip()

    def classify(self, command: str) -> GateResult:
        """Classify a raw command string.

        Args:
            command: Command text as it would be handed to the shell

        Returns:
            GateResult with the decision and the text to execute
        """
        # 1. Unconditional block list, override token irrelevant
        for rule, pattern in self._blocked:
            if pattern.search(command):
                logger.info(f"Blocked command ({rule.tag}): {command}")
                return GateResult(
                    decision=GateDecision.BLOCKED,
                    command=command,
                    reason=rule.reason,
                    tag=rule.tag,
                    matched_pattern=rule.pattern,
                )

        has_override = self.has_override(command)
        clean = self.strip_override(command)

        # 2. Destructive patterns need the override token
        for rule, pattern in self._destructive:
            if pattern.search(clean):
                if has_override:
                    logger.warning(f"Destructive command allowed by override ({rule.tag}): {clean}")
                    return GateResult(
                        decision=GateDecision.ALLOWED,
                        command=clean,
                        reason=rule.reason,
                        tag=rule.tag,
                        matched_pattern=rule.pattern,
                    )
                logger.info(f"Destructive command requires override ({rule.tag}): {command}")
                return GateResult(
                    decision=GateDecision.REQUIRES_OVERRIDE,
                    command=command,
                    reason=rule.reason,
                    tag=rule.tag,
                    matched_pattern=rule.pattern,
                )

        return GateResult(decision=GateDecision.ALLOWED, command=clean)
