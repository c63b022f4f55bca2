"""Git topology, command policy, and worktree management."""

from agentbox.git.policy import GitCommandPolicy, PolicyDecision, classify_git_command
from agentbox.git.topology import GitKind, GitLocation, find_git_location, resolve_git_location
from agentbox.git.worktrees import WorktreeRecord, create_agent_worktree

__all__ = [
    "GitCommandPolicy",
    "GitKind",
    "GitLocation",
    "PolicyDecision",
    "WorktreeRecord",
    "classify_git_command",
    "create_agent_worktree",
    "find_git_location",
    "resolve_git_location",
]
