"""
Mount plan construction.

Mounts are described backend-agnostically as (source, destination, access)
entries; the docker or pyxis launcher renders them. Most mounts are mirror
mounts (destination == source) so paths are identical on the host and in
the container.

Layout of a plan, in order:
1. Project mirror (rw) and, depending on mode, its git metadata
2. Tooling repos (rw) with their git metadata (always ro)
3. Auxiliary volumes from config and the command line
4. Optional identity files, agent config dirs, and the uv cache
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from agentbox.errors import ConfigurationError
from agentbox.git.topology import find_git_location
from agentbox.modes import Mode

logger = logging.getLogger(__name__)


class Access(str, Enum):
    """Mount access flag."""

    READ_WRITE = "rw"
    READ_ONLY = "ro"

    def __str__(self) -> str:
        return self.value


# Access of the project's git metadata per mode
_PROJECT_GIT_ACCESS: dict[Mode, Access] = {
    Mode.PATCH: Access.READ_ONLY,
    Mode.YOLO: Access.READ_WRITE,
    Mode.LOCKDOWN: Access.READ_ONLY,
}

IDENTITY_FILES = ("/etc/passwd", "/etc/group")


@dataclass(frozen=True)
class MountEntry:
    """One filesystem mount."""

    source: str
    destination: str
    access: Access = Access.READ_WRITE

    @property
    def is_mirror(self) -> bool:
        return self.source == self.destination

    @property
    def read_only(self) -> bool:
        return self.access == Access.READ_ONLY

    def to_spec(self) -> str:
        """Render as ``src:dst:flags``."""
        return f"{self.source}:{self.destination}:{self.access.value}"

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "destination": self.destination, "access": self.access.value}


@dataclass(frozen=True)
class VolumeSpec:
    """Parsed auxiliary volume declaration."""

    source: str
    destination: str | None
    access: Access

    @property
    def is_mirror(self) -> bool:
        return self.destination is None


def resolve_host_path(path: str | Path) -> Path:
    """Expand ``~`` and return the absolute, symlink-free form of a host path."""
    return Path(os.path.expanduser(str(path))).resolve()


def parse_volume_spec(spec: str) -> VolumeSpec:
    """
    Parse a volume declaration.

    Accepted forms:
        /host/path                     mirror, rw
        /host/path:ro                  mirror, explicit flag
        /host/path:/container/path     rw at a different destination
        /host/path:/container/path:ro  explicit destination and flag

    Args:
        spec: Volume specification string

    Returns:
        VolumeSpec with destination None for mirror mounts

    Raises:
        ConfigurationError: For an empty source, a relative destination, or
            more than three fields
    """
    parts = spec.split(":")
    if len(parts) > 3:
        raise ConfigurationError(f"Invalid volume spec (too many ':' fields): {spec}")

    source = parts[0].strip()
    if not source:
        raise ConfigurationError(f"Invalid volume spec (empty source): {spec!r}")

    destination: str | None = None
    flags = "rw"
    if len(parts) == 2:
        # src:flags or src:dst, told apart by the literal flag names
        if parts[1] in ("ro", "rw"):
            flags = parts[1]
        else:
            destination = parts[1]
    elif len(parts) == 3:
        destination, flags = parts[1], parts[2]

    if flags not in ("ro", "rw"):
        logger.warning(f"Invalid mount flags '{flags}' for volume {spec}, using 'rw'")
        flags = "rw"

    if destination is not None and not os.path.isabs(destination):
        raise ConfigurationError(f"Volume destination must be an absolute path: {spec}")

    return VolumeSpec(source=source, destination=destination, access=Access(flags))


class MountPlanBuilder:
    """
    Accumulates mount entries for a single launch.

    A builder is scoped to one launch; ``build()`` returns an immutable
    tuple and the builder is not reused afterwards.
    """

    def __init__(self) -> None:
        self._entries: list[MountEntry] = []

    def _add(self, entry: MountEntry) -> None:
        for i, existing in enumerate(self._entries):
            if existing.destination != entry.destination:
                continue
            if existing.access == entry.access:
                return
            # Same destination, conflicting access: read-only wins
            logger.warning(
                f"Conflicting access for mount {entry.destination} "
                f"({existing.access.value} vs {entry.access.value}), using ro"
            )
            if entry.read_only:
                self._entries[i] = entry
            return
        self._entries.append(entry)
        logger.debug(f"Mount added: {entry.source} -> {entry.destination} ({entry.access.value})")

    def add_mirror(self, path: str | Path, access: Access = Access.READ_WRITE) -> None:
        """Mirror-mount an already resolved path."""
        self._add(MountEntry(str(path), str(path), access))

    def add_project(self, project_path: str | Path, mode: Mode) -> Path:
        """
        Mount the project directory and its git metadata.

        The project is always read-write. Its git metadata is mounted as a
        separate, more specific entry whenever its access differs from the
        project mirror (patch/lockdown) or it lives outside the project
        (worktrees, submodules, separate git dirs).

        Args:
            project_path: Project working directory
            mode: Launch mode

        Returns:
            The resolved project path

        Raises:
            ConfigurationError: If the project directory does not exist
        """
        raw = Path(os.path.expanduser(str(project_path)))
        if not raw.is_dir():
            raise ConfigurationError(f"Project directory does not exist or is not a directory: {project_path}")
        project = raw.resolve()

        self.add_mirror(project, Access.READ_WRITE)

        location = find_git_location(project)
        if location is None:
            logger.warning(f"Project has no .git: {project}")
            return project

        git_access = _PROJECT_GIT_ACCESS[mode]
        if git_access == Access.READ_ONLY or not location.is_embedded:
            self.add_mirror(location.metadata_dir, git_access)

        if git_access == Access.READ_ONLY:
            logger.info(f"Git directory mounted read-only (mode: {mode.value}): {location.metadata_dir}")
        else:
            logger.info(f"Git directory is writable (mode: {mode.value}): {location.metadata_dir}")
        return project

    def add_tooling(self, tool_path: str | Path) -> None:
        """
        Mount a tooling repository.

        The working tree is read-write; its git metadata is read-only in
        every mode so tooling repos can never be committed to.
        """
        raw = Path(os.path.expanduser(str(tool_path)))
        if not raw.is_dir():
            logger.warning(f"Configured tooling directory not found, skipping: {tool_path}")
            return
        tool = raw.resolve()

        self.add_mirror(tool, Access.READ_WRITE)

        location = find_git_location(tool)
        if location is None:
            logger.warning(f"Tooling directory has no .git: {tool}")
            return
        self.add_mirror(location.metadata_dir, Access.READ_ONLY)
        logger.debug(f"Tooling git directory mounted read-only: {location.metadata_dir}")

    def add_volume(self, spec: str | VolumeSpec) -> None:
        """Mount an auxiliary volume; missing sources are skipped with a warning."""
        volume = parse_volume_spec(spec) if isinstance(spec, str) else spec

        raw = Path(os.path.expanduser(volume.source))
        if not raw.exists():
            logger.warning(f"Volume source does not exist, skipping: {volume.source}")
            return
        source = str(raw.resolve())
        destination = source if volume.destination is None else volume.destination

        self._add(MountEntry(source, destination, volume.access))

    def add_user_identity(self, files: Sequence[str] = IDENTITY_FILES) -> None:
        """Mount passwd/group read-only so the container can name the host UID/GID."""
        for path in files:
            if os.path.isfile(path):
                self._add(MountEntry(path, path, Access.READ_ONLY))
            else:
                logger.warning(f"{path} not found, skipping identity mount")

    def add_config_dirs(self, paths: Iterable[str | Path]) -> None:
        """Mirror-mount agent config directories that exist on the host."""
        for path in paths:
            raw = Path(os.path.expanduser(str(path)))
            if raw.is_dir():
                self.add_mirror(raw.resolve(), Access.READ_WRITE)
            else:
                logger.debug(f"Config directory not present, skipping: {path}")

    def add_uv_cache(self, path: str | Path) -> None:
        """Share the host uv cache (experimental)."""
        logger.warning(f"[EXPERIMENTAL] Mounting uv cache ({path})")
        raw = Path(os.path.expanduser(str(path)))
        if raw.is_dir():
            self.add_mirror(raw.resolve(), Access.READ_WRITE)
        else:
            logger.warning(f"UV cache directory does not exist: {path}")

    def build(self) -> tuple[MountEntry, ...]:
        """Return the accumulated mounts."""
        return tuple(self._entries)


def build_mount_plan(
    project_path: str | Path,
    mode: Mode,
    tooling_paths: Iterable[str | Path] = (),
    aux_volumes: Iterable[str] = (),
) -> tuple[MountEntry, ...]:
    """
    Build the core mount plan for a launch.

    Args:
        project_path: Project working directory (must exist)
        mode: Launch mode
        tooling_paths: Tooling repositories to mount
        aux_volumes: Volume specs (see parse_volume_spec)

    Returns:
        Tuple of MountEntry in mount order

    Raises:
        ConfigurationError: If the project is missing or a volume spec is invalid
    """
    builder = MountPlanBuilder()
    builder.add_project(project_path, mode)
    for tool in tooling_paths:
        builder.add_tooling(tool)
    for volume in aux_volumes:
        builder.add_volume(volume)
    return builder.build()
