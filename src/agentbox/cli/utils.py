"""
Shared utilities for CLI commands.
"""

import logging

import click

from agentbox.config.app import AgentboxConfig
from agentbox.git.worktrees import WorktreeRecord


def setup_logging(verbose: bool = False, level: str = "info") -> None:
    """
    Configure logging for CLI.

    Args:
        verbose: If True, enable DEBUG level logging
        level: Configured level name used when not verbose
    """
    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_config(ctx: click.Context) -> AgentboxConfig:
    """Return the configuration loaded by the root group."""
    obj = ctx.find_object(dict) or {}
    config = obj.get("config")
    if config is None:
        config = AgentboxConfig()
    return config


def echo_worktree_hints(record: WorktreeRecord) -> None:
    """Print review and cleanup commands for a new worktree."""
    click.echo(f"Created worktree: {record.worktree_path}")
    click.echo(f"  Branch: {record.branch}")
    click.echo("")
    click.echo("Review changes:")
    click.echo(f"  git -C {record.worktree_path} diff")
    click.echo("Remove when done:")
    click.echo(f"  git -C {record.base_path} worktree remove {record.worktree_path}")
