"""Git command policy for agent sandboxes.

Classifies a git subcommand under a launch mode:

- network egress (push) is blocked in every mode
- network reads (fetch, pull, clone) are blocked in every mode unless the
  deployment allows them; the choice never depends on mode
- history-mutating commands are blocked unless the mode allows commits
- everything else, including unknown subcommands, passes through
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from agentbox.modes import Mode


class CommandClass(str, Enum):
    """Policy category of a git subcommand."""

    NETWORK_EGRESS = "network_egress"
    NETWORK_READ = "network_read"
    HISTORY = "history"
    INSPECTION = "inspection"


NETWORK_EGRESS_COMMANDS = frozenset(["push"])
NETWORK_READ_COMMANDS = frozenset(["fetch", "pull", "clone"])
HISTORY_COMMANDS = frozenset(["commit", "merge", "rebase", "cherry-pick", "reset", "stash", "tag"])

# Modes in which history-mutating commands run
_HISTORY_ALLOWED: dict[Mode, bool] = {
    Mode.PATCH: False,
    Mode.YOLO: True,
    Mode.LOCKDOWN: False,
}

_MESSAGE_PREFIX = "agentbox"


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of classifying one git invocation."""

    allowed: bool
    subcommand: str | None
    message: str | None = None

    @classmethod
    def allow(cls, subcommand: str | None) -> PolicyDecision:
        return cls(allowed=True, subcommand=subcommand)

    @classmethod
    def deny(cls, subcommand: str | None, message: str) -> PolicyDecision:
        return cls(allowed=False, subcommand=subcommand, message=message)


def command_class(subcommand: str) -> CommandClass:
    """Return the policy category of a subcommand."""
    if subcommand in NETWORK_EGRESS_COMMANDS:
        return CommandClass.NETWORK_EGRESS
    if subcommand in NETWORK_READ_COMMANDS:
        return CommandClass.NETWORK_READ
    if subcommand in HISTORY_COMMANDS:
        return CommandClass.HISTORY
    return CommandClass.INSPECTION


class GitCommandPolicy:
    """
    Stateless classifier for git subcommands.

    Attributes:
        block_network_reads: Whether fetch/pull/clone are denied. Applies
            identically in every mode.
    """

    def __init__(self, block_network_reads: bool = True) -> None:
        self.block_network_reads = block_network_reads

    def decide(self, subcommand: str | None, mode: Mode) -> PolicyDecision:
        """
        Decide whether ``git <subcommand>`` may run under ``mode``.

        Args:
            subcommand: Git subcommand name, or None for bare ``git``/``git --version``
            mode: Active launch mode

        Returns:
            PolicyDecision; denials carry a message naming the subcommand
        """
        if subcommand is None:
            return PolicyDecision.allow(None)

        category = command_class(subcommand)

        if category == CommandClass.NETWORK_EGRESS:
            return PolicyDecision.deny(
                subcommand,
                f"{_MESSAGE_PREFIX}: 'git {subcommand}' is blocked in all modes. "
                "The sandbox has no network access to remotes; "
                "your changes stay on the host for a human to publish.",
            )

        if category == CommandClass.NETWORK_READ and self.block_network_reads:
            return PolicyDecision.deny(
                subcommand,
                f"{_MESSAGE_PREFIX}: 'git {subcommand}' is blocked in all modes. "
                "Remote access is disabled in this sandbox; work with the refs already present.",
            )

        if category == CommandClass.HISTORY and not _HISTORY_ALLOWED[mode]:
            return PolicyDecision.deny(
                subcommand,
                f"{_MESSAGE_PREFIX}: 'git {subcommand}' is blocked in {mode.value} mode. "
                "History changes are not permitted; leave your edits in the "
                "working tree for review.",
            )

        return PolicyDecision.allow(subcommand)


def classify_git_command(
    subcommand: str | None,
    mode: Mode,
    block_network_reads: bool = True,
) -> PolicyDecision:
    """Classify a subcommand with a one-off policy."""
    return GitCommandPolicy(block_network_reads=block_network_reads).decide(subcommand, mode)
