"""Exception hierarchy shared by the launch engine."""


class AgentboxError(Exception):
    """Base exception for agentbox errors."""

    pass


class ConfigurationError(AgentboxError, ValueError):
    """Raised for a missing or invalid project path, mode, or config value."""

    pass


class SecurityViolationError(AgentboxError):
    """Raised when a mount would expose credentials to the sandbox."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"SECURITY: Refusing to mount path that would {reason}: {path}")


class NotAGitRepositoryError(AgentboxError):
    """Raised when a path has no usable git metadata."""

    def __init__(self, path: str, reason: str = "no .git"):
        self.path = path
        self.reason = reason
        super().__init__(f"Not a git repository ({reason}): {path}")


class GitPointerError(NotAGitRepositoryError):
    """Raised when a .git pointer file is malformed or unreadable."""

    pass
