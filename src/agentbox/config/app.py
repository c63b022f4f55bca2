"""
Configuration management for agentbox.

Provides YAML-based configuration with CLI overrides,
configuration hierarchy (CLI > YAML > Defaults), and validation.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

from agentbox.errors import ConfigurationError
from agentbox.modes import Mode
from agentbox.sandbox.security import DEFAULT_CREDENTIAL_FILE, DEFAULT_SCAN_DEPTH, DEFAULT_SSH_DIR

MAX_SCAN_DEPTH = 8


def get_agentbox_home() -> Path:
    """Return the agentbox home directory (``$AGENTBOX_DIR`` or ``~/.agentbox``)."""
    return Path(os.environ.get("AGENTBOX_DIR") or "~/.agentbox").expanduser()


def default_config_path() -> Path:
    return get_agentbox_home() / "config.yaml"


class ImageSettings(BaseModel):
    """Container images per mode."""

    standard: str | None = Field(
        default=None,
        description="Image used for patch and yolo launches",
    )
    secure: str | None = Field(
        default=None,
        description="Hardened image used for lockdown launches",
    )


class MountSettings(BaseModel):
    """Optional host mounts added to every launch."""

    user_identity: bool = Field(
        default=True,
        description="Mount /etc/passwd and /etc/group read-only for UID/GID resolution",
    )
    agent_config_dirs: list[str] = Field(
        default_factory=lambda: ["~/.codex", "~/.claude", "~/.config/marimo"],
        description="Agent config directories mirror-mounted read-write when present",
    )
    share_uv_cache: bool = Field(
        default=True,
        description="Share the host uv cache with the container (experimental)",
    )
    uv_cache_dir: str = Field(
        default="~/.local/share/uv",
        description="Host uv cache directory",
    )


class SecuritySettings(BaseModel):
    """Credential exposure checks."""

    ssh_dir: str = Field(
        default=DEFAULT_SSH_DIR,
        description="SSH directory that must never be mounted",
    )
    credential_file: str = Field(
        default=DEFAULT_CREDENTIAL_FILE,
        description="Git credential store file name to scan for",
    )
    scan_depth: int = Field(
        default=DEFAULT_SCAN_DEPTH,
        description="Directory depth scanned for credential files (the top level is always checked)",
    )

    @field_validator("scan_depth")
    @classmethod
    def validate_scan_depth(cls, v: int) -> int:
        """Keep the credential scan bounded."""
        if not 0 <= v <= MAX_SCAN_DEPTH:
            raise ValueError(f"scan_depth must be between 0 and {MAX_SCAN_DEPTH}")
        return v

    @field_validator("credential_file")
    @classmethod
    def validate_credential_file(cls, v: str) -> str:
        """Require a bare file name."""
        if not v or "/" in v:
            raise ValueError("credential_file must be a file name, not a path")
        return v


class GitPolicySettings(BaseModel):
    """In-container git command policy."""

    block_network_reads: bool = Field(
        default=True,
        description="Block git fetch/pull/clone in every mode (push is always blocked)",
    )


class LoggingSettings(BaseModel):
    """Logging configuration."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Log level",
    )


class AgentboxConfig(BaseModel):
    """
    Main configuration for agentbox.

    Configuration is loaded with the following priority:
    1. CLI arguments (highest)
    2. YAML file (~/.agentbox/config.yaml)
    3. Defaults (lowest)
    """

    default_mode: Mode = Field(
        default=Mode.PATCH,
        description="Mode used when none is given on the command line",
    )
    tools: list[str] = Field(
        default_factory=list,
        description="Tooling repositories mounted on every launch",
    )
    volumes: list[str] = Field(
        default_factory=list,
        description="Volume specs (path, path:ro, path:dest, path:dest:ro) mounted on every launch",
    )
    images: ImageSettings = Field(
        default_factory=ImageSettings,
        description="Container images",
    )
    mounts: MountSettings = Field(
        default_factory=MountSettings,
        description="Optional host mounts",
    )
    security: SecuritySettings = Field(
        default_factory=SecuritySettings,
        description="Credential exposure checks",
    )
    git_policy: GitPolicySettings = Field(
        default_factory=GitPolicySettings,
        description="In-container git command policy",
    )
    logging: LoggingSettings = Field(
        default_factory=LoggingSettings,
        description="Logging configuration",
    )

    @field_validator("default_mode", mode="before")
    @classmethod
    def normalize_mode(cls, v: Any) -> Any:
        """Accept mode names in any case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    def image_for_mode(self, mode: Mode) -> str | None:
        """Return the configured image for a mode."""
        if mode == Mode.LOCKDOWN:
            return self.images.secure
        return self.images.standard


def load_yaml(config_file: str | Path) -> dict[str, Any]:
    """
    Load YAML or JSON configuration file.

    Args:
        config_file: Path to YAML or JSON configuration file

    Returns:
        Dictionary with parsed YAML/JSON content

    Raises:
        ConfigurationError: If YAML/JSON is invalid or file format is wrong
    """
    config_path = Path(config_file).expanduser()

    if not config_path.exists():
        return {}

    # Validate file extension matches format
    file_ext = config_path.suffix.lower()
    if file_ext not in [".yaml", ".yml", ".json"]:
        raise ConfigurationError(
            f"Config file must have .yaml, .yml, or .json extension, got: {file_ext}\n"
            f"File: {config_path}"
        )

    try:
        with open(config_path) as f:
            content = f.read()

        if file_ext == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            data = yaml.safe_load(content)

    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in config file: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping at top level: {config_path}")
    return data


def apply_cli_overrides(
    config_dict: dict[str, Any],
    cli_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Apply CLI argument overrides to config dictionary.

    Args:
        config_dict: Configuration dictionary
        cli_overrides: Dictionary of CLI overrides; dotted keys address
            nested settings (``git_policy.block_network_reads``)

    Returns:
        Configuration dictionary with CLI overrides applied
    """
    if cli_overrides is None:
        return config_dict

    for key, value in cli_overrides.items():
        if "." in key:
            parts = key.split(".")
            current = config_dict
            for part in parts[:-1]:
                if part not in current:
                    current[part] = {}
                current = current[part]
            current[parts[-1]] = value
        else:
            config_dict[key] = value

    return config_dict


def generate_default_config(config_file: str | Path) -> None:
    """
    Generate default configuration file from Pydantic model defaults.

    Args:
        config_file: Path where to create the config file
    """
    config_path = Path(config_file).expanduser()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    default_config = AgentboxConfig().model_dump(mode="json", exclude_none=True)

    with open(config_path, "w") as f:
        yaml.safe_dump(default_config, f, default_flow_style=False, sort_keys=False)

    config_path.chmod(0o600)


def load_config(
    config_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
    create_default: bool = False,
) -> AgentboxConfig:
    """
    Load configuration with hierarchy: CLI > YAML > Defaults.

    Args:
        config_file: Path to YAML config file (default: ~/.agentbox/config.yaml)
        cli_overrides: Dictionary of CLI argument overrides
        create_default: Create default config file if it doesn't exist

    Returns:
        Validated AgentboxConfig instance

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config_path = Path(config_file).expanduser() if config_file else default_config_path()

    if create_default and not config_path.exists():
        generate_default_config(config_path)

    config_dict = load_yaml(config_path)
    config_dict = apply_cli_overrides(config_dict, cli_overrides)

    try:
        return AgentboxConfig(**config_dict)
    except Exception as e:
        raise ConfigurationError(
            f"Configuration validation failed: {e}\n"
            f"Please check your configuration file at {config_path}"
        ) from e
