"""
Git policy CLI command.
"""

import click

from agentbox.git.guard import DENIED_EXIT_CODE
from agentbox.git.policy import GitCommandPolicy, command_class
from agentbox.modes import Mode, parse_mode

from .utils import get_config


@click.command("check-git")
@click.argument("subcommand")
@click.option(
    "--mode",
    "mode_name",
    type=click.Choice([m.value for m in Mode], case_sensitive=False),
    help="Mode to evaluate (default: configured default mode)",
)
@click.pass_context
def check_git(ctx: click.Context, subcommand: str, mode_name: str | None) -> None:
    """Show whether 'git SUBCOMMAND' is allowed inside the sandbox.

    Exits with status 77 when the command would be blocked.
    """
    config = get_config(ctx)
    mode = parse_mode(mode_name) if mode_name else config.default_mode

    policy = GitCommandPolicy(block_network_reads=config.git_policy.block_network_reads)
    decision = policy.decide(subcommand, mode)
    if decision.allowed:
        click.echo(f"allow: git {subcommand} ({command_class(subcommand).value}, {mode.value} mode)")
        return

    click.echo(f"deny: {decision.message}")
    ctx.exit(DENIED_EXIT_CODE)
