"""
Launch orchestration.

Runs the configuration pipeline for one launch and freezes the result:

    worktree (optional) -> mounts -> environment -> security -> LaunchSpec

The spec is handed to a LaunchBackend (docker, pyxis, ...), which lives
outside this package. A launch either produces a complete spec or raises
before anything is handed over.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from agentbox.config.app import AgentboxConfig
from agentbox.errors import AgentboxError
from agentbox.git.worktrees import WorktreeRecord, create_agent_worktree
from agentbox.modes import Mode, parse_mode
from agentbox.sandbox.env import EnvVar, build_env_plan, env_to_dict
from agentbox.sandbox.mounts import MountEntry, MountPlanBuilder, parse_volume_spec
from agentbox.sandbox.security import validate_security

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaunchSpec:
    """Everything a backend needs to start the container."""

    project_path: Path
    mode: Mode
    mounts: tuple[MountEntry, ...]
    env: tuple[EnvVar, ...]
    image: str | None = None
    worktree: WorktreeRecord | None = None

    @property
    def mount_sources(self) -> list[str]:
        return [m.source for m in self.mounts]

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_path": str(self.project_path),
            "mode": self.mode.value,
            "image": self.image,
            "mounts": [m.to_dict() for m in self.mounts],
            "env": env_to_dict(self.env),
            "worktree": self.worktree.to_dict() if self.worktree else None,
        }


class LaunchBackend(Protocol):
    """Container runtime that starts a prepared launch."""

    def launch(self, spec: LaunchSpec) -> int:
        """Start the container and return its exit status."""
        ...


def select_image(mode: Mode, config: AgentboxConfig, override: str | None = None) -> str | None:
    """Pick the container image: explicit override, else the configured one for the mode."""
    if override:
        return override
    return config.image_for_mode(mode)


def _existing_sources(tools: Iterable[str], volumes: Iterable[str]) -> list[str]:
    """Host paths of declared tools and volumes that exist (missing ones are skipped later)."""
    sources: list[str] = []
    for tool in tools:
        if os.path.isdir(os.path.expanduser(tool)):
            sources.append(tool)
    for volume in volumes:
        source = parse_volume_spec(volume).source
        if os.path.exists(os.path.expanduser(source)):
            sources.append(source)
    return sources


def prepare_launch(
    config: AgentboxConfig,
    project_path: str | Path | None = None,
    mode: Mode | str | None = None,
    tools: Iterable[str] = (),
    volumes: Iterable[str] = (),
    worktree: bool = False,
    branch: str | None = None,
    from_ref: str | None = None,
    image: str | None = None,
    share_uv_cache: bool | None = None,
) -> LaunchSpec:
    """
    Build the launch specification for one agent session.

    Tools and volumes given here are added to those in the configuration.
    A ``branch`` implies ``worktree``.

    Args:
        config: Loaded configuration
        project_path: Project directory (default: current directory)
        mode: Launch mode (default: config.default_mode)
        tools: Extra tooling repositories
        volumes: Extra volume specs
        worktree: Create an agent worktree and launch in it
        branch: Branch for the worktree
        from_ref: Start point for a new worktree branch
        image: Explicit container image
        share_uv_cache: Override config.mounts.share_uv_cache

    Returns:
        Frozen LaunchSpec

    Raises:
        ConfigurationError: Missing project, unknown mode, or invalid volume spec
        SecurityViolationError: A mount source would expose credentials
        NotAGitRepositoryError: Worktree requested for a non-git project
        WorktreeError: Worktree creation failed
    """
    launch_mode = parse_mode(mode) if mode is not None else config.default_mode
    project = Path(os.path.expanduser(str(project_path))) if project_path else Path.cwd()
    all_tools = [*config.tools, *tools]
    all_volumes = [*config.volumes, *volumes]
    security = config.security

    # Checked before a worktree exists so a rejected launch leaves nothing behind
    validate_security(
        [project, *_existing_sources(all_tools, all_volumes)],
        ssh_dir=security.ssh_dir,
        credential_file=security.credential_file,
        max_depth=security.scan_depth,
    )

    record: WorktreeRecord | None = None
    if worktree or branch:
        record = create_agent_worktree(project, branch=branch, from_ref=from_ref)
        logger.info(f"Launching in worktree {record.worktree_path} (branch {record.branch})")
        project = record.worktree_path

    builder = MountPlanBuilder()
    project = builder.add_project(project, launch_mode)
    for tool in all_tools:
        builder.add_tooling(tool)
    for volume in all_volumes:
        builder.add_volume(volume)

    mounts_cfg = config.mounts
    if mounts_cfg.user_identity:
        builder.add_user_identity()
    builder.add_config_dirs(mounts_cfg.agent_config_dirs)
    use_uv_cache = mounts_cfg.share_uv_cache if share_uv_cache is None else share_uv_cache
    if use_uv_cache:
        builder.add_uv_cache(mounts_cfg.uv_cache_dir)

    mounts = builder.build()
    env = build_env_plan(launch_mode, block_network_reads=config.git_policy.block_network_reads)

    validate_security(
        [m.source for m in mounts],
        ssh_dir=security.ssh_dir,
        credential_file=security.credential_file,
        max_depth=security.scan_depth,
    )

    spec = LaunchSpec(
        project_path=project,
        mode=launch_mode,
        mounts=mounts,
        env=env,
        image=select_image(launch_mode, config, image),
        worktree=record,
    )
    logger.debug(f"Launch prepared: {len(mounts)} mounts, {len(env)} env vars, image={spec.image}")
    return spec


@dataclass
class LaunchOrchestrator:
    """
    Prepares launches from a configuration and hands them to a backend.

    Example:
        orchestrator = LaunchOrchestrator(load_config(), backend=DockerBackend())
        spec = orchestrator.prepare(project_path="~/src/app", mode="yolo")
        exit_code = orchestrator.launch(spec)
    """

    config: AgentboxConfig = field(default_factory=AgentboxConfig)
    backend: LaunchBackend | None = None

    def prepare(self, **kwargs: Any) -> LaunchSpec:
        """Build a LaunchSpec; see prepare_launch for the arguments."""
        return prepare_launch(self.config, **kwargs)

    def launch(self, spec: LaunchSpec) -> int:
        """
        Hand a prepared spec to the backend.

        Raises:
            AgentboxError: If no backend is configured
        """
        if self.backend is None:
            raise AgentboxError("No launch backend configured")
        logger.info(f"Launching {spec.project_path} in {spec.mode.value} mode")
        return self.backend.launch(spec)

    def run(self, **kwargs: Any) -> int:
        """Prepare and launch in one step."""
        return self.launch(self.prepare(**kwargs))
