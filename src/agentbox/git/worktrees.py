"""Agent worktree allocation.

Creates a uniquely named linked worktree (and branch) beside a repository so
several agents can work on copies of it at once:

    <parent>/<repo>-agents/wt-<suffix>   on branch agent/<token>

Worktrees are created and never removed here; they persist as ordinary git
worktrees until the user runs ``git worktree remove``.
"""

from __future__ import annotations

import logging
import random
import re
import subprocess  # nosec B404 - subprocess needed for git worktree operations
import time
from dataclasses import dataclass
from pathlib import Path

from agentbox.errors import AgentboxError, ConfigurationError
from agentbox.git.topology import resolve_git_location

logger = logging.getLogger(__name__)

AGENTS_DIR_SUFFIX = "-agents"
WORKTREE_PREFIX = "wt-"
DEFAULT_BRANCH_PREFIX = "agent/"
MAX_ID_ATTEMPTS = 16

_CHECKED_OUT_RE = re.compile(r"is already (?:checked out|used by worktree) at '([^']+)'")
_BRANCH_EXISTS_RE = re.compile(r"a branch named '([^']+)' already exists")


class WorktreeError(AgentboxError):
    """Base exception for worktree allocation failures."""

    pass


class WorktreePathExistsError(WorktreeError):
    """Raised when the computed worktree path is already taken."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Worktree path already exists: {path}")


class BranchCheckedOutError(WorktreeError):
    """Raised when the branch is already checked out in another worktree."""

    def __init__(self, branch: str, location: str | None = None):
        self.branch = branch
        self.location = location
        where = f" at {location}" if location else " in another worktree"
        super().__init__(
            f"Branch '{branch}' is already checked out{where}. "
            "Reuse that worktree or pick a different branch."
        )


class BranchExistsError(WorktreeError):
    """Raised when git finds the branch already exists (another agent created it first)."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(
            f"Branch '{branch}' already exists. Another agent may have created it; "
            "retry to draw a new name or pass it with --branch to attach to it."
        )


class InvalidRefError(WorktreeError):
    """Raised when the starting ref or branch name is not valid."""

    def __init__(self, ref: str, detail: str):
        self.ref = ref
        super().__init__(f"Invalid ref '{ref}': {detail}")


class WorktreeCreationError(WorktreeError):
    """Raised when git fails to create the worktree for any other reason."""

    pass


@dataclass
class GitOperationResult:
    """Result of a git operation."""

    success: bool
    message: str
    output: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class WorktreeRecord:
    """A worktree created for an agent."""

    base_path: Path
    short_id: str
    branch: str
    worktree_path: Path

    def to_dict(self) -> dict[str, str]:
        return {
            "base_path": str(self.base_path),
            "short_id": self.short_id,
            "branch": self.branch,
            "worktree_path": str(self.worktree_path),
        }


class WorktreeGitManager:
    """
    Thin wrapper over ``git worktree`` for one repository.

    Each method runs a single git command and reports the outcome as a
    GitOperationResult; interpreting failures is left to the caller.
    """

    def __init__(self, repo_path: str | Path):
        """
        Initialize with repository path.

        Args:
            repo_path: Path to the repository worktrees are added to

        Raises:
            ValueError: If the repository path does not exist
        """
        self.repo_path = Path(repo_path)
        if not self.repo_path.exists():
            raise ValueError(f"Repository path does not exist: {repo_path}")

    def _run_git(
        self,
        args: list[str],
        cwd: str | Path | None = None,
        timeout: int = 60,
    ) -> subprocess.CompletedProcess[str]:
        """
        Run a git command.

        Args:
            args: Git command arguments (without 'git' prefix)
            cwd: Working directory (defaults to repo_path)
            timeout: Command timeout in seconds

        Returns:
            CompletedProcess with stdout/stderr
        """
        if cwd is None:
            cwd = self.repo_path

        cmd = ["git"] + args
        logger.debug(f"Running: {' '.join(cmd)} in {cwd}")

        try:
            return subprocess.run(  # nosec B603 B607 - cmd built from hardcoded git arguments
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(f"Git command timed out: {' '.join(cmd)}")
            raise

    def branch_exists(self, branch: str) -> bool:
        """Check whether ``refs/heads/<branch>`` exists."""
        result = self._run_git(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], timeout=10)
        return result.returncode == 0

    def add_worktree(
        self,
        worktree_path: str | Path,
        branch: str,
        create_branch: bool = True,
        start_point: str | None = None,
    ) -> GitOperationResult:
        """
        Add a linked worktree.

        With ``create_branch`` the branch is created by the same
        ``git worktree add -b`` call, so git either creates both the branch
        and the worktree or neither.

        Args:
            worktree_path: Directory for the new worktree (must not exist)
            branch: Branch to check out or create
            create_branch: Create ``branch`` instead of attaching to it
            start_point: Ref the new branch starts from (default: HEAD)

        Returns:
            GitOperationResult with success status and message
        """
        worktree_path = Path(worktree_path)

        if worktree_path.exists():
            return GitOperationResult(
                success=False,
                message=f"Path already exists: {worktree_path}",
            )

        if create_branch:
            args = ["worktree", "add", "-b", branch, str(worktree_path)]
            if start_point:
                args.append(start_point)
        else:
            args = ["worktree", "add", str(worktree_path), branch]

        try:
            result = self._run_git(args, timeout=120)
        except subprocess.TimeoutExpired:
            return GitOperationResult(
                success=False,
                message="Git worktree add timed out",
            )

        if result.returncode == 0:
            return GitOperationResult(
                success=True,
                message=f"Created worktree at {worktree_path}",
                output=result.stdout,
            )
        return GitOperationResult(
            success=False,
            message=f"Failed to create worktree: {result.stderr.strip()}",
            error=result.stderr,
        )


def generate_short_id() -> str:
    """Generate a 4 hex digit token from the clock mixed with a random value."""
    return f"{(int(time.time()) + random.randrange(65536)) % 65536:04x}"


def agents_dir_for(repo_path: Path) -> Path:
    """Return the ``<repo>-agents`` sibling directory of a repository."""
    return repo_path.parent / f"{repo_path.name}{AGENTS_DIR_SUFFIX}"


def worktree_suffix(branch: str) -> str:
    """Worktree directory suffix for an explicit branch: its last path segment."""
    suffix = branch.rstrip("/").rsplit("/", 1)[-1]
    if not suffix or suffix in (".", ".."):
        raise ConfigurationError(f"Cannot derive a worktree name from branch '{branch}'")
    return suffix


def _remove_if_empty(directory: Path) -> None:
    """Remove a directory this call created, unless another agent has used it since."""
    try:
        directory.rmdir()
        logger.debug(f"Removed empty agents directory: {directory}")
    except OSError as e:
        logger.debug(f"Keeping agents directory {directory}: {e}")


def _raise_for_failure(result: GitOperationResult, branch: str, worktree_path: Path, start: str) -> None:
    """Translate a failed ``git worktree add`` into a named error."""
    stderr = result.error or result.message

    match = _CHECKED_OUT_RE.search(stderr)
    if match:
        raise BranchCheckedOutError(branch, match.group(1))
    match = _BRANCH_EXISTS_RE.search(stderr)
    if match:
        raise BranchExistsError(match.group(1))
    if "already exists" in stderr and str(worktree_path) in stderr:
        raise WorktreePathExistsError(worktree_path)
    if "invalid reference" in stderr or "not a valid" in stderr:
        raise InvalidRefError(start, stderr.strip())
    raise WorktreeCreationError(result.message)


def create_agent_worktree(
    repo_path: str | Path,
    branch: str | None = None,
    from_ref: str | None = None,
) -> WorktreeRecord:
    """
    Create a linked worktree and branch for an agent.

    Without ``branch`` a fresh token is drawn until neither the worktree
    directory nor ``agent/<token>`` exists. With ``branch`` the directory is
    named after its last segment and an existing directory is an error.

    Args:
        repo_path: Repository, worktree, or submodule to branch from
        branch: Branch to create or attach to (default: agent/<token>)
        from_ref: Start point for a new branch (default: HEAD)

    Returns:
        WorktreeRecord describing the new worktree

    Raises:
        NotAGitRepositoryError: If repo_path is not a git repository
        WorktreePathExistsError: If the worktree directory is already taken
        BranchCheckedOutError: If the branch is checked out elsewhere
        BranchExistsError: If another process created the branch first
        InvalidRefError: If from_ref or the branch name is rejected by git
        WorktreeCreationError: For any other git failure
    """
    location = resolve_git_location(repo_path)
    base_path = location.working_dir
    manager = WorktreeGitManager(base_path)
    agents_dir = agents_dir_for(base_path)

    if branch:
        short_id = generate_short_id()
        worktree_path = agents_dir / f"{WORKTREE_PREFIX}{worktree_suffix(branch)}"
        if worktree_path.exists():
            raise WorktreePathExistsError(worktree_path)
    else:
        for _ in range(MAX_ID_ATTEMPTS):
            short_id = generate_short_id()
            worktree_path = agents_dir / f"{WORKTREE_PREFIX}{short_id}"
            candidate_branch = f"{DEFAULT_BRANCH_PREFIX}{short_id}"
            if worktree_path.exists() or manager.branch_exists(candidate_branch):
                logger.debug(f"Token {short_id} already in use, drawing another")
                continue
            branch = candidate_branch
            break
        else:
            raise WorktreePathExistsError(worktree_path)

    branch_exists = manager.branch_exists(branch)
    if branch_exists and from_ref:
        logger.warning(f"Branch '{branch}' already exists, ignoring --from {from_ref}")

    created_agents_dir = not agents_dir.is_dir()
    if created_agents_dir:
        agents_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created agents directory: {agents_dir}")

    logger.info(f"Creating worktree at: {worktree_path}")
    logger.info(f"Branch: {branch}")

    result = manager.add_worktree(
        worktree_path,
        branch,
        create_branch=not branch_exists,
        start_point=None if branch_exists else from_ref,
    )
    if not result.success:
        if created_agents_dir:
            _remove_if_empty(agents_dir)
        _raise_for_failure(result, branch, worktree_path, from_ref or branch)

    return WorktreeRecord(
        base_path=base_path,
        short_id=short_id,
        branch=branch,
        worktree_path=worktree_path,
    )
