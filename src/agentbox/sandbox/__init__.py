"""Mount, environment, and security planning for sandboxed launches.

``agentbox.sandbox.launch`` composes these into a LaunchSpec; it is not
re-exported here because it depends on the configuration models.
"""

from agentbox.sandbox.env import EnvVar, build_env_plan
from agentbox.sandbox.mounts import Access, MountEntry, MountPlanBuilder, build_mount_plan, parse_volume_spec
from agentbox.sandbox.security import find_violation, validate_security

__all__ = [
    "Access",
    "EnvVar",
    "MountEntry",
    "MountPlanBuilder",
    "build_env_plan",
    "build_mount_plan",
    "find_violation",
    "parse_volume_spec",
    "validate_security",
]
