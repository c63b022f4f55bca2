"""agentbox - sandboxed development containers for AI coding agents.

Resolves git topology, composes mounts and environment for a launch mode,
refuses launches that would expose credentials, enforces a git command
policy inside the container, and allocates per-agent worktrees.
"""

__version__ = "1.0.0"
