"""Container environment for a launch.

Git is locked to local transports and stripped of global configuration;
the only mode-dependent variable is the commit-permission flag.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from agentbox import __version__
from agentbox.git.guard import MODE_ENV, NETWORK_READS_ENV
from agentbox.modes import Mode

logger = logging.getLogger(__name__)

# Commit permission advertised to the container per mode
_ALLOW_COMMIT: dict[Mode, str] = {
    Mode.PATCH: "0",
    Mode.YOLO: "1",
    Mode.LOCKDOWN: "0",
}


@dataclass(frozen=True)
class EnvVar:
    """
    One container environment variable.

    A ``value`` of None is a tombstone: the variable must be absent in the
    container. Backends pass tombstones explicitly (e.g. ``docker -e NAME``)
    instead of dropping them, so a value from the backend's own environment
    cannot leak through.
    """

    name: str
    value: str | None

    @property
    def is_tombstone(self) -> bool:
        return self.value is None

    @classmethod
    def tombstone(cls, name: str) -> EnvVar:
        return cls(name, None)


def git_lockdown_env() -> list[EnvVar]:
    """Variables that keep git local, non-interactive, and lock-free."""
    return [
        EnvVar("GIT_ALLOW_PROTOCOL", "file"),  # no http(s)/ssh/git transports
        EnvVar("GIT_TERMINAL_PROMPT", "0"),
        EnvVar("GIT_CONFIG_GLOBAL", "/dev/null"),  # drops inherited credential helpers
        EnvVar("GIT_OPTIONAL_LOCKS", "0"),  # .git may be mounted read-only
        EnvVar.tombstone("SSH_AUTH_SOCK"),
    ]


def build_env_plan(
    mode: Mode,
    uid: int | None = None,
    gid: int | None = None,
    block_network_reads: bool = True,
) -> tuple[EnvVar, ...]:
    """
    Build the environment for a launch.

    Args:
        mode: Launch mode
        uid: Host user id for privilege dropping (default: current user)
        gid: Host group id (default: current group)
        block_network_reads: Git policy setting forwarded to the guard

    Returns:
        Tuple of EnvVar in a stable order
    """
    env = git_lockdown_env()
    env.extend(
        [
            EnvVar("AGENT_ALLOW_COMMIT", _ALLOW_COMMIT[mode]),
            EnvVar(MODE_ENV, mode.value),
            EnvVar(NETWORK_READS_ENV, "1" if block_network_reads else "0"),
            EnvVar("HOST_UID", str(os.getuid() if uid is None else uid)),
            EnvVar("HOST_GID", str(os.getgid() if gid is None else gid)),
            EnvVar("AGENTBOX", "1"),
            EnvVar("AGENTBOX_VERSION", __version__),
        ]
    )
    logger.debug(f"Environment built for mode {mode.value} ({len(env)} variables)")
    return tuple(env)


def env_to_dict(env: tuple[EnvVar, ...]) -> dict[str, str | None]:
    """Map names to values, with None for tombstones."""
    return {var.name: var.value for var in env}
