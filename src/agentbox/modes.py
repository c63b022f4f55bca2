"""Launch modes.

Exactly one mode is active per launch. It decides the git metadata mount
access, the commit-permission flag in the container environment, and how
strict the in-container git policy is.
"""

from __future__ import annotations

from enum import Enum

from agentbox.errors import ConfigurationError


class Mode(str, Enum):
    """Launch-time policy selector."""

    PATCH = "patch"  # Agent edits files, humans commit
    YOLO = "yolo"  # Agent may commit locally
    LOCKDOWN = "lockdown"  # Patch semantics on the hardened image

    def __str__(self) -> str:
        return self.value


def parse_mode(value: str | Mode) -> Mode:
    """
    Parse a mode name.

    Args:
        value: Mode name (case-insensitive) or Mode instance

    Returns:
        The matching Mode

    Raises:
        ConfigurationError: If the name is not a known mode
    """
    if isinstance(value, Mode):
        return value
    try:
        return Mode(value.strip().lower())
    except ValueError:
        valid = ", ".join(m.value for m in Mode)
        raise ConfigurationError(f"Unknown mode: {value!r} (expected one of: {valid})") from None
