"""
Launch planning CLI command.
"""

import json

import click

from agentbox.errors import AgentboxError, ConfigurationError
from agentbox.modes import Mode
from agentbox.sandbox.launch import LaunchSpec, prepare_launch

from .utils import echo_worktree_hints, get_config

_MODE_CHOICES = [m.value for m in Mode]


def resolve_mode_option(mode_name: str | None, mode_flag: str | None) -> str | None:
    """Merge --mode with the --patch/--yolo/--lockdown shortcuts."""
    if mode_name and mode_flag and mode_name.lower() != mode_flag:
        raise ConfigurationError(f"Conflicting modes: --mode {mode_name} and --{mode_flag}")
    return mode_flag or mode_name


def format_spec(spec: LaunchSpec) -> str:
    """Render a LaunchSpec for humans."""
    lines = [
        f"Project: {spec.project_path}",
        f"Mode:    {spec.mode.value}",
        f"Image:   {spec.image or '(backend default)'}",
        "",
        "Mounts:",
    ]
    lines.extend(f"  {mount.to_spec()}" for mount in spec.mounts)
    lines.append("")
    lines.append("Environment:")
    for var in spec.env:
        lines.append(f"  {var.name} (unset)" if var.is_tombstone else f"  {var.name}={var.value}")
    return "\n".join(lines)


@click.command("plan")
@click.option("--proj", "project", type=click.Path(), help="Project directory (default: current directory)")
@click.option(
    "--mode",
    "mode_name",
    type=click.Choice(_MODE_CHOICES, case_sensitive=False),
    help="Launch mode (default: configured default mode)",
)
@click.option("--patch", "mode_flag", flag_value="patch", help="Shortcut for --mode patch")
@click.option("--yolo", "mode_flag", flag_value="yolo", help="Shortcut for --mode yolo")
@click.option("--lockdown", "mode_flag", flag_value="lockdown", help="Shortcut for --mode lockdown")
@click.option("--tools", "tools", multiple=True, help="Tooling repository to mount (repeatable)")
@click.option("--volume", "-v", "volumes", multiple=True, help="Volume spec path[:dest][:ro|rw] (repeatable)")
@click.option("--worktree", "use_worktree", is_flag=True, help="Create an agent worktree and launch in it")
@click.option("--branch", "-b", help="Worktree branch (implies --worktree)")
@click.option("--from", "from_ref", help="Start point for a new worktree branch")
@click.option("--image", help="Container image (overrides configured images)")
@click.option("--no-uv-cache", is_flag=True, help="Do not share the host uv cache")
@click.option("--json", "json_format", is_flag=True, help="Output as JSON")
@click.pass_context
def plan(
    ctx: click.Context,
    project: str | None,
    mode_name: str | None,
    mode_flag: str | None,
    tools: tuple[str, ...],
    volumes: tuple[str, ...],
    use_worktree: bool,
    branch: str | None,
    from_ref: str | None,
    image: str | None,
    no_uv_cache: bool,
    json_format: bool,
) -> None:
    """Build and print the launch specification for a sandbox.

    Runs every check a real launch runs (mount planning, credential
    scanning, worktree creation) and prints the result instead of
    starting a container.

    Examples:

        agentbox plan --yolo --tools ~/src/shared-tools

        agentbox plan --proj ~/src/app --worktree --branch feature/x --json
    """
    config = get_config(ctx)

    try:
        spec = prepare_launch(
            config,
            project_path=project,
            mode=resolve_mode_option(mode_name, mode_flag),
            tools=tools,
            volumes=volumes,
            worktree=use_worktree,
            branch=branch,
            from_ref=from_ref,
            image=image,
            share_uv_cache=False if no_uv_cache else None,
        )
    except AgentboxError as e:
        raise click.ClickException(str(e)) from e

    if json_format:
        click.echo(json.dumps(spec.to_dict(), indent=2))
        return

    if spec.worktree is not None:
        echo_worktree_hints(spec.worktree)
        click.echo("")
    click.echo(format_spec(spec))
