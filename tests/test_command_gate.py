"""Tests for the CommandGate."""

import json

import pytest
from process_adapter.domain import (
    CommandGate,
    GateDecision,
    GatePolicy,
    OVERRIDE_TOKEN,
    BLOCKED_RULES,
    DESTRUCTIVE_RULES,
)


class TestCommandGate:
    """Test command classification logic."""

    @pytest.fixture
    def gate(self):
        """Create a gate with the default rules."""
        return CommandGate()

    # ========================================================================
    # Allowed Commands
    # ========================================================================

    @pytest.mark.parametrize("command", [
        "ls -la",
        "cat file.txt",
        "git status",
        "git push origin main",
        "rm file.txt",
        "python3 -c 'print(1)'",
        "find . -name '*.py'",
    ])
    def test_ordinary_commands_are_allowed(self, gate, command):
        result = gate.classify(command)
        assert result.decision == GateDecision.ALLOWED
        assert result.command == command

    # ========================================================================
    # Destructive Commands
    # ========================================================================

    @pytest.mark.parametrize("command,tag", [
        ("rm -rf /tmp/x", "rm-recursive"),
        ("rm -r build", "rm-recursive"),
        ("rm -f -R build", "rm-recursive"),
        ("rm *.log", "rm-wildcard"),
        ("find . -name '*.pyc' -delete", "find-delete"),
        ("find /tmp -type f -exec rm {} \\;", "find-exec-rm"),
        ("git push --force origin main", "git-force-push"),
        ("git push -f", "git-force-push"),
        ("git push --force-with-lease", "git-force-push"),
        ("git pull --force", "git-force-pull"),
        ("git reset --hard HEAD~1", "git-reset-hard"),
        ("git clean -fdx", "git-clean"),
    ])
    def test_destructive_without_token_requires_override(self, gate, command, tag):
        result = gate.classify(command)
        assert result.decision == GateDecision.REQUIRES_OVERRIDE
        assert result.tag == tag
        assert not result.is_allowed

    def test_destructive_with_token_is_allowed_and_stripped(self, gate):
        result = gate.classify(f"rm -rf /tmp/x {OVERRIDE_TOKEN}")
        assert result.decision == GateDecision.ALLOWED
        assert result.command == "rm -rf /tmp/x"
        assert result.tag == "rm-recursive"

    def test_token_in_the_middle_is_stripped(self, gate):
        result = gate.classify(f"rm {OVERRIDE_TOKEN} -rf /tmp/x")
        assert result.decision == GateDecision.ALLOWED
        assert result.command == "rm -rf /tmp/x"

    def test_token_stripped_from_plain_commands(self, gate):
        result = gate.classify(f"echo hi {OVERRIDE_TOKEN}")
        assert result.decision == GateDecision.ALLOWED
        assert result.command == "echo hi"

    def test_token_glued_to_other_text_does_not_count(self, gate):
        result = gate.classify(f"rm -rf /tmp/x;{OVERRIDE_TOKEN}")
        assert result.decision == GateDecision.REQUIRES_OVERRIDE

    # ========================================================================
    # Blocklist (Always Denied)
    # ========================================================================

    @pytest.mark.parametrize("command,tag", [
        ("sed -i 's/a/b/' file.txt", "sed"),
        ("cat file | sed -n 1p", "sed"),
        ("sudo apt install foo", "sudo"),
        ("ls && sudo rm x", "sudo"),
        ("mkfs.ext4 /dev/sda1", "mkfs"),
        ("shutdown -h now", "power"),
        ("dd if=/dev/zero of=/dev/sda", "dd-device"),
        (":(){ :|:& };:", "fork-bomb"),
        ("rm -rf /", "rm-root"),
        ("rm -rf /*", "rm-root"),
        ("rm -rf /;ls", "rm-root"),
        ("rm -rf / && ls", "rm-root"),
    ])
    def test_blocklist(self, gate, command, tag):
        result = gate.classify(command)
        assert result.decision == GateDecision.BLOCKED
        assert result.tag == tag

    @pytest.mark.parametrize("command", [
        f"sed -i 's/a/b/' file.txt {OVERRIDE_TOKEN}",
        f"rm -rf / {OVERRIDE_TOKEN}",
        f"sudo {OVERRIDE_TOKEN} ls",
    ])
    def test_override_token_cannot_unblock(self, gate, command):
        result = gate.classify(command)
        assert result.decision == GateDecision.BLOCKED

    @pytest.mark.parametrize("command,decision", [
        ("rm old.log && ls /", GateDecision.ALLOWED),
        ("rm old.log; cd /", GateDecision.ALLOWED),
        ("rm -rf build && ls /", GateDecision.REQUIRES_OVERRIDE),
    ])
    def test_root_path_in_a_later_command_is_not_rm_root(self, gate, command, decision):
        result = gate.classify(command)
        assert result.decision == decision
        assert result.tag != "rm-root"

    def test_substring_false_positive_is_accepted(self, gate):
        # Textual matching: "sed" as a word anywhere is enough
        result = gate.classify("echo sed is blocked")
        assert result.decision == GateDecision.BLOCKED

    def test_rules_carry_reasons(self):
        for rule in BLOCKED_RULES + DESTRUCTIVE_RULES:
            assert rule.tag
            assert rule.reason


class TestGatePolicy:
    """Test policy loading and extra rules."""

    def test_policy_adds_rules(self, tmp_path):
        policy_data = {
            "version": "1.0",
            "blocked_patterns": [r"\bnc\b"],
            "destructive_patterns": [r"\bdropdb\b"],
        }

        policy_path = tmp_path / "policy.json"
        policy_path.write_text(json.dumps(policy_data))

        gate = CommandGate(policy=GatePolicy.load(str(policy_path)))

        assert gate.classify("nc -l 8080").decision == GateDecision.BLOCKED
        assert gate.classify("dropdb prod").decision == GateDecision.REQUIRES_OVERRIDE
        assert gate.classify(f"dropdb prod {OVERRIDE_TOKEN}").command == "dropdb prod"

    def test_policy_replaces_override_token(self, tmp_path):
        policy_path = tmp_path / "policy.json"
        policy_path.write_text(json.dumps({"override_token": "--yes-really"}))

        gate = CommandGate(policy=GatePolicy.load(str(policy_path)))

        result = gate.classify("rm -rf build --yes-really")
        assert result.decision == GateDecision.ALLOWED
        assert result.command == "rm -rf build"
        assert gate.classify(f"rm -rf build {OVERRIDE_TOKEN}").decision == GateDecision.REQUIRES_OVERRIDE
