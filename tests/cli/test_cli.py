"""Tests for the agentbox CLI."""

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner
from conftest import requires_git

from agentbox.cli import cli
from agentbox.cli.plan import resolve_mode_option
from agentbox.errors import ConfigurationError

pytestmark = [pytest.mark.unit, pytest.mark.cli]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, ssh_dir: Path) -> Path:
    """Config file with host-dependent mounts disabled."""
    path = tmp_path / "agentbox.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "security": {"ssh_dir": str(ssh_dir)},
                "mounts": {"user_identity": False, "agent_config_dirs": [], "share_uv_cache": False},
                "images": {"standard": "agentbox:latest", "secure": "agentbox:secure"},
            }
        )
    )
    return path


class TestResolveModeOption:
    """Tests for resolve_mode_option."""

    def test_flag_or_option(self):
        """Either form selects the mode."""
        assert resolve_mode_option("yolo", None) == "yolo"
        assert resolve_mode_option(None, "lockdown") == "lockdown"
        assert resolve_mode_option(None, None) is None

    def test_conflict(self):
        """Conflicting forms are rejected."""
        with pytest.raises(ConfigurationError, match="Conflicting"):
            resolve_mode_option("patch", "yolo")


class TestCliGroup:
    """Tests for the root command group."""

    def test_help(self, runner):
        """Help lists the commands."""
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("plan", "worktree", "check-git"):
            assert command in result.output

    def test_invalid_config_file(self, runner, tmp_path: Path):
        """A bad config file is reported as a CLI error."""
        bad = tmp_path / "bad.yaml"
        bad.write_text("security:\n  scan_depth: 99\n")

        result = runner.invoke(cli, ["--config", str(bad), "check-git", "status"])

        assert result.exit_code == 1
        assert "Configuration validation failed" in result.output


class TestPlanCommand:
    """Tests for agentbox plan."""

    def test_text_output(self, runner, config_file: Path, standard_repo: Path):
        """The plan prints mounts and environment."""
        result = runner.invoke(cli, ["--config", str(config_file), "plan", "--proj", str(standard_repo), "--patch"])

        assert result.exit_code == 0, result.output
        assert f"Project: {standard_repo.resolve()}" in result.output
        assert f"{(standard_repo / '.git').resolve()}:{(standard_repo / '.git').resolve()}:ro" in result.output
        assert "SSH_AUTH_SOCK (unset)" in result.output
        assert "Image:   agentbox:latest" in result.output

    def test_json_output(self, runner, config_file: Path, standard_repo: Path):
        """--json prints the launch spec as JSON."""
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "plan", "--proj", str(standard_repo), "--lockdown", "--json"],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["mode"] == "lockdown"
        assert data["image"] == "agentbox:secure"
        assert data["env"]["AGENT_ALLOW_COMMIT"] == "0"

    def test_mode_option(self, runner, config_file: Path, standard_repo: Path):
        """--mode is accepted case-insensitively."""
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "plan", "--proj", str(standard_repo), "--mode", "YOLO", "--json"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["env"]["AGENT_ALLOW_COMMIT"] == "1"

    def test_conflicting_modes(self, runner, config_file: Path, standard_repo: Path):
        """--mode and a different shortcut flag conflict."""
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "plan", "--proj", str(standard_repo), "--mode", "patch", "--yolo"],
        )

        assert result.exit_code == 1
        assert "Conflicting modes" in result.output

    def test_security_violation(self, runner, config_file: Path, standard_repo: Path, ssh_dir: Path):
        """Mounting the SSH directory fails with the path named."""
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "plan", "--proj", str(standard_repo), "-v", str(ssh_dir)],
        )

        assert result.exit_code == 1
        assert "SECURITY" in result.output
        assert str(ssh_dir.resolve()) in result.output

    def test_missing_project(self, runner, config_file: Path, tmp_path: Path):
        """A missing project is reported as a CLI error."""
        result = runner.invoke(cli, ["--config", str(config_file), "plan", "--proj", str(tmp_path / "nope")])

        assert result.exit_code == 1
        assert "does not exist" in result.output

    @requires_git
    @pytest.mark.integration
    def test_worktree_hints(self, runner, config_file: Path, git_repo: Path):
        """Planning with --worktree prints review and cleanup hints."""
        result = runner.invoke(
            cli, ["--config", str(config_file), "plan", "--proj", str(git_repo), "--worktree"]
        )

        assert result.exit_code == 0, result.output
        assert "Created worktree:" in result.output
        assert "worktree remove" in result.output


class TestCheckGitCommand:
    """Tests for agentbox check-git."""

    def test_allowed(self, runner):
        """Allowed subcommands exit 0."""
        result = runner.invoke(cli, ["check-git", "status"])

        assert result.exit_code == 0
        assert result.output.startswith("allow: git status")

    def test_denied(self, runner):
        """Denied subcommands exit 77 with the policy message."""
        result = runner.invoke(cli, ["check-git", "push", "--mode", "yolo"])

        assert result.exit_code == 77
        assert "'git push' is blocked" in result.output

    def test_mode_changes_decision(self, runner):
        """commit depends on the mode."""
        assert runner.invoke(cli, ["check-git", "commit", "--mode", "patch"]).exit_code == 77
        assert runner.invoke(cli, ["check-git", "commit", "--mode", "yolo"]).exit_code == 0

    def test_network_reads_from_config(self, runner, tmp_path: Path):
        """fetch follows git_policy.block_network_reads."""
        path = tmp_path / "config.yaml"
        path.write_text("git_policy:\n  block_network_reads: false\n")

        result = runner.invoke(cli, ["--config", str(path), "check-git", "fetch"])

        assert result.exit_code == 0


class TestWorktreeCommand:
    """Tests for agentbox worktree."""

    def test_not_a_repository(self, runner, tmp_path: Path):
        """Non-git directories are reported as errors."""
        result = runner.invoke(cli, ["worktree", str(tmp_path)])

        assert result.exit_code == 1
        assert "Not a git repository" in result.output

    @requires_git
    @pytest.mark.integration
    def test_creates_worktree_json(self, runner, git_repo: Path):
        """--json prints the worktree record."""
        result = runner.invoke(cli, ["worktree", str(git_repo), "--branch", "feature/x", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["branch"] == "feature/x"
        assert data["worktree_path"].endswith("project-agents/wt-x")
        assert Path(data["worktree_path"]).is_dir()
