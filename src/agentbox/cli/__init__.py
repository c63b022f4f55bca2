"""
agentbox CLI entry point.
"""

import click

from agentbox import __version__
from agentbox.config.app import load_config
from agentbox.errors import AgentboxError

from .git import check_git
from .plan import plan
from .utils import setup_logging
from .worktrees import worktree


@click.group()
@click.version_option(__version__, prog_name="agentbox")
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to custom configuration file",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config: str | None, debug: bool) -> None:
    """agentbox - Sandboxed containers for AI coding agents."""
    ctx.ensure_object(dict)
    try:
        loaded = load_config(config)
    except AgentboxError as e:
        raise click.ClickException(str(e)) from e
    setup_logging(debug, loaded.logging.level)
    ctx.obj["config"] = loaded


# Register commands
cli.add_command(plan)
cli.add_command(worktree)
cli.add_command(check_git)
