"""
Worktree CLI command.
"""

import json

import click

from agentbox.errors import AgentboxError
from agentbox.git.worktrees import create_agent_worktree

from .utils import echo_worktree_hints


@click.command("worktree")
@click.argument("repo", default=".", type=click.Path(file_okay=False))
@click.option("--branch", "-b", help="Branch to create or attach (default: agent/<id>)")
@click.option("--from", "from_ref", help="Start point for a new branch (default: HEAD)")
@click.option("--json", "json_format", is_flag=True, help="Output as JSON")
def worktree(repo: str, branch: str | None, from_ref: str | None, json_format: bool) -> None:
    """Create an agent worktree beside REPO.

    Examples:

        agentbox worktree

        agentbox worktree ~/src/app --branch feature/login --from main
    """
    try:
        record = create_agent_worktree(repo, branch=branch, from_ref=from_ref)
    except AgentboxError as e:
        raise click.ClickException(str(e)) from e

    if json_format:
        click.echo(json.dumps(record.to_dict(), indent=2))
        return

    echo_worktree_hints(record)
