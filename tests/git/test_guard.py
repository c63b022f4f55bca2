"""Tests for agentbox.git.guard."""

import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from agentbox.git.guard import (
    DENIED_EXIT_CODE,
    GIT_NOT_FOUND_EXIT_CODE,
    env_config_keys,
    evaluate,
    find_real_git,
    main,
    mode_from_env,
    parse_invocation,
    policy_from_env,
)
from agentbox.modes import Mode

pytestmark = pytest.mark.unit


def make_executable(path: Path) -> Path:
    path.write_text("#!/bin/sh\nexit 0\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


class TestParseInvocation:
    """Tests for parse_invocation."""

    def test_plain_subcommand(self):
        """The first non-option argument is the subcommand."""
        assert parse_invocation(["status", "--short"]).subcommand == "status"

    def test_skips_options_with_values(self):
        """-C and -c values are not mistaken for the subcommand."""
        invocation = parse_invocation(["-C", "/repo", "-c", "core.pager=cat", "push", "origin"])

        assert invocation.subcommand == "push"
        assert invocation.config_keys == ["core.pager"]

    def test_joined_forms(self):
        """--git-dir=... and -ckey=value are single arguments."""
        invocation = parse_invocation(["--git-dir=/x/.git", "-ccolor.ui=never", "commit"])

        assert invocation.subcommand == "commit"
        assert invocation.config_keys == ["color.ui"]

    def test_no_subcommand(self):
        """Option-only calls have no subcommand."""
        assert parse_invocation(["--version"]).subcommand is None
        assert parse_invocation([]).subcommand is None

    def test_double_dash(self):
        """The argument after -- is the subcommand."""
        assert parse_invocation(["--no-pager", "--", "log"]).subcommand == "log"

    def test_alias_definitions(self):
        """alias.* config keys are reported case-insensitively."""
        invocation = parse_invocation(["-c", "Alias.p=push", "--config-env=alias.q=X", "p"])

        assert invocation.alias_definitions == ["Alias.p", "alias.q"]


class TestEnvironment:
    """Tests for reading mode and policy from the environment."""

    def test_mode_from_env(self):
        """A valid AGENTBOX_MODE is honoured."""
        assert mode_from_env({"AGENTBOX_MODE": "yolo"}) == Mode.YOLO

    def test_missing_mode_is_lockdown(self):
        """A missing mode falls back to lockdown."""
        assert mode_from_env({}) == Mode.LOCKDOWN

    def test_unknown_mode_is_lockdown(self):
        """An unknown mode falls back to lockdown."""
        assert mode_from_env({"AGENTBOX_MODE": "root"}) == Mode.LOCKDOWN

    def test_network_reads_blocked_unless_zero(self):
        """Only an explicit 0 allows network reads."""
        assert policy_from_env({}).block_network_reads is True
        assert policy_from_env({"AGENTBOX_BLOCK_NETWORK_READS": "1"}).block_network_reads is True
        assert policy_from_env({"AGENTBOX_BLOCK_NETWORK_READS": "0"}).block_network_reads is False


class TestEvaluate:
    """Tests for evaluate."""

    def test_commit_in_yolo(self):
        """commit is allowed when the environment says yolo."""
        assert evaluate(["commit", "-m", "x"], {"AGENTBOX_MODE": "yolo"}).allowed is True

    def test_commit_without_mode(self):
        """commit is denied when the mode is missing."""
        assert evaluate(["commit"], {}).allowed is False

    def test_alias_definition_denied(self):
        """Command-line aliases are denied even for allowed subcommands."""
        decision = evaluate(["-c", "alias.st=push", "st"], {"AGENTBOX_MODE": "yolo"})

        assert decision.allowed is False
        assert "alias" in decision.message

    def test_alias_from_config_count_denied(self):
        """Aliases injected with GIT_CONFIG_COUNT/KEY/VALUE are denied."""
        environ = {
            "AGENTBOX_MODE": "patch",
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "alias.c",
            "GIT_CONFIG_VALUE_0": "commit",
        }

        decision = evaluate(["c", "-m", "x"], environ)

        assert decision.allowed is False
        assert "alias.c" in decision.message

    def test_alias_from_config_parameters_denied(self):
        """Aliases injected with GIT_CONFIG_PARAMETERS are denied."""
        environ = {"AGENTBOX_MODE": "yolo", "GIT_CONFIG_PARAMETERS": "'core.pager'='cat' 'alias.p'='push'"}

        assert evaluate(["p"], environ).allowed is False

    def test_non_alias_env_config_allowed(self):
        """Other environment config keys do not block allowed commands."""
        environ = {"AGENTBOX_MODE": "patch", "GIT_CONFIG_COUNT": "1", "GIT_CONFIG_KEY_0": "core.pager"}

        assert evaluate(["status"], environ).allowed is True


class TestEnvConfigKeys:
    """Tests for env_config_keys."""

    def test_collects_both_sources(self):
        """Keys from GIT_CONFIG_COUNT and GIT_CONFIG_PARAMETERS are combined."""
        environ = {
            "GIT_CONFIG_COUNT": "2",
            "GIT_CONFIG_KEY_0": "user.name",
            "GIT_CONFIG_KEY_1": "alias.x",
            "GIT_CONFIG_PARAMETERS": "'color.ui=never'",
        }

        assert env_config_keys(environ) == ["user.name", "alias.x", "color.ui"]

    def test_bogus_count(self):
        """A non-numeric count contributes no keys."""
        assert env_config_keys({"GIT_CONFIG_COUNT": "many"}) == []


class TestFindRealGit:
    """Tests for find_real_git."""

    def test_explicit_env(self, tmp_path: Path):
        """AGENTBOX_REAL_GIT wins when executable."""
        real = make_executable(tmp_path / "git-real")

        assert find_real_git({"AGENTBOX_REAL_GIT": str(real)}, "/wrapper/git") == str(real)

    def test_explicit_env_not_executable(self, tmp_path: Path):
        """A non-executable AGENTBOX_REAL_GIT is not used."""
        path = tmp_path / "git-real"
        path.write_text("")

        assert find_real_git({"AGENTBOX_REAL_GIT": str(path)}, "/wrapper/git") is None

    def test_path_search_skips_self(self, tmp_path: Path):
        """The wrapper's own location is skipped during PATH search."""
        wrapper_dir = tmp_path / "wrapper"
        real_dir = tmp_path / "real"
        wrapper_dir.mkdir()
        real_dir.mkdir()
        wrapper = make_executable(wrapper_dir / "git")
        real = make_executable(real_dir / "git")
        environ = {"PATH": os.pathsep.join([str(wrapper_dir), str(real_dir)])}

        assert find_real_git(environ, str(wrapper)) == str(real)

    def test_not_found(self, tmp_path: Path):
        """None is returned when no other git exists."""
        assert find_real_git({"PATH": str(tmp_path)}, "/wrapper/git") is None


class TestMain:
    """Tests for the guard entry point."""

    def test_denied_exit_code(self, monkeypatch, capsys):
        """Denied calls print the message to stderr and return 77."""
        monkeypatch.setenv("AGENTBOX_MODE", "patch")

        with patch("os.execv") as mock_execv:
            code = main(["push", "origin", "main"])

        assert code == DENIED_EXIT_CODE
        assert "'git push' is blocked" in capsys.readouterr().err
        mock_execv.assert_not_called()

    def test_allowed_execs_real_git(self, monkeypatch, tmp_path: Path):
        """Allowed calls replace the process with the real git and unchanged arguments."""
        real = make_executable(tmp_path / "git-real")
        monkeypatch.setenv("AGENTBOX_MODE", "patch")
        monkeypatch.setenv("AGENTBOX_REAL_GIT", str(real))

        with patch("os.execv") as mock_execv:
            main(["-C", "/repo", "status", "--short"])

        mock_execv.assert_called_once_with(str(real), [str(real), "-C", "/repo", "status", "--short"])

    def test_missing_real_git(self, monkeypatch, tmp_path: Path, capsys):
        """A missing real git returns 127."""
        monkeypatch.setenv("AGENTBOX_MODE", "patch")
        monkeypatch.delenv("AGENTBOX_REAL_GIT", raising=False)
        monkeypatch.setenv("PATH", str(tmp_path))

        assert main(["status"]) == GIT_NOT_FOUND_EXIT_CODE
        assert "real git" in capsys.readouterr().err
