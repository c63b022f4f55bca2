"""
Git topology resolution.

Maps a working directory to the git metadata directory that controls it:

- Standard: ``path/.git`` is a directory
- Worktree: ``path/.git`` points into ``<main>/.git/worktrees/<name>``;
  the metadata directory is the main repository's ``.git``
- Submodule: ``path/.git`` points into ``<parent>/.git/modules/<name>``;
  the metadata directory is the submodule's own database
- Separate: ``path/.git`` points anywhere else (``--separate-git-dir``)

Pure filesystem reads, no git subprocesses.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from agentbox.errors import GitPointerError, NotAGitRepositoryError

logger = logging.getLogger(__name__)

GITDIR_PREFIX = "gitdir:"


class GitKind(str, Enum):
    """How a working directory is linked to its metadata."""

    STANDARD = "standard"
    WORKTREE = "worktree"
    SUBMODULE = "submodule"
    SEPARATE = "separate"


@dataclass(frozen=True)
class GitLocation:
    """Resolved git metadata location for a working directory."""

    working_dir: Path
    metadata_dir: Path
    kind: GitKind

    @property
    def is_embedded(self) -> bool:
        """True when the metadata lives at ``working_dir/.git``."""
        return self.metadata_dir == self.working_dir / ".git"

    @property
    def main_repo_dir(self) -> Path:
        """Working directory of the repository that owns the metadata.

        For worktrees this is the main checkout (metadata dir with its
        trailing ``.git`` trimmed). Submodule and separate databases have no
        enclosing checkout of their own, so the working dir is returned.
        """
        if self.kind == GitKind.WORKTREE and self.metadata_dir.name == ".git":
            return self.metadata_dir.parent
        return self.working_dir


def read_gitdir_pointer(git_file: Path) -> str:
    """
    Read the target of a ``.git`` pointer file.

    Args:
        git_file: Path to the ``.git`` file

    Returns:
        The raw target string after ``gitdir:``

    Raises:
        GitPointerError: If the file is unreadable or its first line is not
            ``gitdir: <target>``
    """
    working_dir = str(git_file.parent)
    try:
        with open(git_file, encoding="utf-8") as f:
            first_line = f.readline()
    except (OSError, UnicodeDecodeError) as e:
        raise GitPointerError(working_dir, f"unreadable .git file: {e}") from e

    line = first_line.rstrip("\r\n")
    if not line.startswith(GITDIR_PREFIX):
        raise GitPointerError(working_dir, "malformed .git file, expected 'gitdir: <path>'")

    target = line[len(GITDIR_PREFIX) :].strip()
    if not target:
        raise GitPointerError(working_dir, "empty gitdir in .git file")
    return target


def _last_segment_index(parts: tuple[str, ...], segment: str) -> int | None:
    """Index of the last directory component equal to ``segment``.

    The final component is excluded: ``worktrees`` or ``modules`` only
    counts when something is nested beneath it.
    """
    for i in range(len(parts) - 2, -1, -1):
        if parts[i] == segment:
            return i
    return None


def classify_gitdir(target: Path) -> tuple[Path, GitKind]:
    """
    Classify a normalized, absolute gitdir pointer target.

    Args:
        target: Absolute gitdir path with ``..`` segments already collapsed

    Returns:
        Tuple of (metadata_dir, kind)
    """
    parts = target.parts

    # The innermost marker decides: /home/worktrees/p/.git/modules/sub is a
    # submodule, /p/.git/modules/sub/worktrees/wt is a worktree of one.
    wt_index = _last_segment_index(parts, "worktrees")
    mod_index = _last_segment_index(parts, "modules")

    if wt_index is not None and (mod_index is None or wt_index > mod_index):
        return Path(*parts[:wt_index]), GitKind.WORKTREE

    if mod_index is not None:
        return target, GitKind.SUBMODULE

    return target, GitKind.SEPARATE


def resolve_git_location(path: str | Path) -> GitLocation:
    """
    Resolve the git metadata directory controlling ``path``.

    Args:
        path: Working directory of a repository, worktree, or submodule

    Returns:
        GitLocation describing the working and metadata directories

    Raises:
        NotAGitRepositoryError: If ``path`` has no ``.git`` entry
        GitPointerError: If ``path/.git`` is a malformed pointer file
    """
    working_dir = Path(os.path.abspath(os.path.expanduser(str(path))))
    dot_git = working_dir / ".git"

    if dot_git.is_dir():
        return GitLocation(working_dir, dot_git, GitKind.STANDARD)

    if not dot_git.is_file():
        raise NotAGitRepositoryError(str(working_dir))

    raw_target = read_gitdir_pointer(dot_git)
    # Collapse ".." before segment matching so a relative pointer such as
    # ../../repo/.git/worktrees/x is classified on its real components.
    target = Path(os.path.normpath(working_dir / raw_target))
    metadata_dir, kind = classify_gitdir(target)

    logger.debug(f"Resolved {working_dir} -> {metadata_dir} ({kind.value})")
    return GitLocation(working_dir, metadata_dir, kind)


def find_git_location(path: str | Path) -> GitLocation | None:
    """
    Resolve git metadata, degrading to None for non-repositories.

    Malformed pointer files are logged as warnings rather than raised, since
    a directory without usable git metadata is still a valid mount.

    Args:
        path: Directory to resolve

    Returns:
        GitLocation, or None if the path is not a usable git repository
    """
    try:
        return resolve_git_location(path)
    except GitPointerError as e:
        logger.warning(f"Ignoring git metadata: {e}")
        return None
    except NotAGitRepositoryError:
        return None
