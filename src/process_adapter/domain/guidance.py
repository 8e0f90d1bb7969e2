"""
Process Adapter - Rejection Guidance

Human-readable text returned with gate rejections, telling the calling agent
what to do instead of retrying the same command.
"""

from .command_gate import GateDecision, GateResult


def override_required_message(command: str, override_token: str) -> str:
    """Text for a destructive command submitted without the override token."""
    return (
        "DESTRUCTIVE OPERATION BLOCKED\n\n"
        f"Command: {command}\n\n"
        "This command requires explicit permission.\n"
        "To execute, you MUST:\n"
        "1. Ask the user what specifically they want changed or deleted\n"
        "2. Show them what will be affected\n"
        "3. Get explicit confirmation\n"
        f"4. Add the flag: {override_token}\n\n"
        f"Example: rm {override_token} -rf /path/to/delete"
    )


def blocked_command_help(command: str, tag: str = "") -> str:
    """Text for a command on the unconditional block list."""
    full_command = command.strip()
    base_command = full_command.split(" ")[0].lower() if full_command else ""

    if tag == "sed":
        if " -i" in full_command or "s/" in full_command:
            why = "sed -i edits files in place and can silently corrupt them."
            instead = (
                "- Use the file editing tool for surgical replacements\n"
                "- Search for the pattern first, then edit each occurrence"
            )
        else:
            why = "sed is blocked to prevent accidental file corruption."
            instead = (
                "- For line ranges use the file reading tool with an offset and length\n"
                "- For quick previews run head or tail\n"
                "- For data processing write a small script and run it"
            )
        return (
            "SED COMMAND BLOCKED\n\n"
            f"You tried: {command}\n\n"
            f"Why blocked: {why}\n\n"
            f"What to use instead:\n{instead}"
        )

    if tag == "sudo":
        return (
            "SUDO COMMAND BLOCKED\n\n"
            "The command needs elevated privileges:\n"
            f"    {command}\n\n"
            "What to do:\n"
            "1. Show the command above to the user\n"
            "2. If they approve, they can run it in their own terminal\n"
            "3. Ask them for the result so you can continue"
        )

    if tag == "rm-root":
        return (
            "RM COMMAND BLOCKED\n\n"
            f"You tried: {command}\n\n"
            "Why blocked: deleting the filesystem root is never permitted, "
            "with or without explicit permission.\n\n"
            "Ask the user which specific paths should be removed."
        )

    if base_command in ("chmod", "chown") or tag in ("mkfs", "fdisk", "power", "dd-device"):
        return (
            f"{(base_command or tag).upper()} COMMAND BLOCKED\n\n"
            f"You tried: {command}\n\n"
            "Why blocked: this changes system state outside the project.\n\n"
            f"Tell the user: \"You need to run: {command}\" and let them decide."
        )

    return (
        f"COMMAND BLOCKED: {base_command}\n\n"
        f"You tried: {command}\n\n"
        "Why blocked: this command is on the block list.\n\n"
        "What to do:\n"
        "1. Check whether a safer alternative exists\n"
        "2. Ask the user whether they want to run it manually"
    )


def rejection_message(result: GateResult, override_token: str) -> str:
    """Pick the guidance text matching a gate result."""
    if result.decision == GateDecision.REQUIRES_OVERRIDE:
        return override_required_message(result.command, override_token)
    return blocked_command_help(result.command, result.tag or "")
