"""Credential exposure checks for mount sources.

Every host path that will be mounted is checked before anything reaches a
container backend. The first violation aborts the launch.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from agentbox.errors import SecurityViolationError

logger = logging.getLogger(__name__)

DEFAULT_SSH_DIR = "~/.ssh"
DEFAULT_CREDENTIAL_FILE = ".git-credentials"
DEFAULT_SCAN_DEPTH = 3


@dataclass(frozen=True)
class SecurityViolation:
    """A candidate mount path that would expose credentials."""

    path: str
    reason: str

    def to_error(self) -> SecurityViolationError:
        return SecurityViolationError(self.path, self.reason)


def exposes_ssh_dir(path: Path, ssh_dir: Path) -> bool:
    """True if ``path`` is, is inside, or is an ancestor of ``ssh_dir``."""
    return path == ssh_dir or path.is_relative_to(ssh_dir) or ssh_dir.is_relative_to(path)


def contains_credential_file(
    path: Path,
    filename: str = DEFAULT_CREDENTIAL_FILE,
    max_depth: int = DEFAULT_SCAN_DEPTH,
) -> Path | None:
    """
    Look for a credential store file under ``path``.

    Depth 1 means files directly inside ``path``; the scan descends at most
    ``max_depth`` levels and does not follow directory symlinks.

    Args:
        path: Directory to scan
        filename: Credential store file name
        max_depth: Maximum directory depth to inspect

    Returns:
        Path of the first credential file found, or None
    """
    pending: list[tuple[Path, int]] = [(path, 1)]
    while pending:
        directory, depth = pending.pop()
        if depth > max_depth:
            continue
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as e:
            logger.debug(f"Skipping unreadable directory during credential scan: {directory} ({e})")
            continue
        for entry in entries:
            if entry.name == filename and entry.is_file(follow_symlinks=True):
                return Path(entry.path)
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                pending.append((Path(entry.path), depth + 1))
    return None


def find_violation(
    candidate_paths: Iterable[str | Path],
    ssh_dir: str | Path = DEFAULT_SSH_DIR,
    credential_file: str = DEFAULT_CREDENTIAL_FILE,
    max_depth: int = DEFAULT_SCAN_DEPTH,
) -> SecurityViolation | None:
    """
    Return the first candidate path that would expose credentials.

    Args:
        candidate_paths: Host paths that will be mounted
        ssh_dir: SSH credential directory to protect
        credential_file: Name of the git credential store file
        max_depth: Depth bound for the credential file scan

    Returns:
        SecurityViolation for the first offending path, or None
    """
    ssh = Path(os.path.expanduser(str(ssh_dir))).resolve()

    for candidate in candidate_paths:
        resolved = Path(os.path.expanduser(str(candidate))).resolve()

        if exposes_ssh_dir(resolved, ssh):
            return SecurityViolation(str(resolved), f"expose {ssh}")

        if resolved.is_file() and resolved.name == credential_file:
            return SecurityViolation(str(resolved), f"expose {credential_file}")

        if resolved.is_dir():
            # The top level is always checked, whatever the scan depth
            direct = resolved / credential_file
            if direct.is_file():
                return SecurityViolation(str(resolved), f"expose {credential_file} ({direct})")

            found = contains_credential_file(resolved, credential_file, max_depth)
            if found is not None:
                logger.debug(f"Credential file found: {found}")
                return SecurityViolation(str(resolved), f"expose {credential_file} ({found})")

    return None


def validate_security(
    candidate_paths: Iterable[str | Path],
    ssh_dir: str | Path = DEFAULT_SSH_DIR,
    credential_file: str = DEFAULT_CREDENTIAL_FILE,
    max_depth: int = DEFAULT_SCAN_DEPTH,
) -> None:
    """
    Refuse mounts that would expose SSH keys or git credentials.

    Raises:
        SecurityViolationError: Naming the first offending path
    """
    violation = find_violation(candidate_paths, ssh_dir, credential_file, max_depth)
    if violation is not None:
        raise violation.to_error()
    logger.debug("Security validation passed")
