"""Pytest configuration and shared fixtures for agentbox tests."""

import shutil
import subprocess
from pathlib import Path

import pytest

from agentbox.config.app import AgentboxConfig

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


@pytest.fixture(autouse=True)
def isolated_agentbox_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep tests away from the user's ~/.agentbox."""
    home = tmp_path / ".agentbox-home"
    monkeypatch.setenv("AGENTBOX_DIR", str(home))
    return home


@pytest.fixture
def ssh_dir(tmp_path: Path) -> Path:
    """A fake SSH directory outside every test project."""
    path = tmp_path / "home" / ".ssh"
    path.mkdir(parents=True)
    (path / "id_ed25519").write_text("not a real key\n")
    return path


@pytest.fixture
def config(ssh_dir: Path) -> AgentboxConfig:
    """Configuration with host-dependent mounts disabled."""
    return AgentboxConfig(
        security={"ssh_dir": str(ssh_dir)},
        mounts={"user_identity": False, "agent_config_dirs": [], "share_uv_cache": False},
    )


@pytest.fixture
def standard_repo(tmp_path: Path) -> Path:
    """Directory with a .git directory (no real git objects)."""
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    return repo


@pytest.fixture
def linked_worktree(tmp_path: Path) -> tuple[Path, Path]:
    """Main repo plus a checkout whose .git points into .git/worktrees/<name>."""
    main = tmp_path / "main"
    admin = main / ".git" / "worktrees" / "feature"
    admin.mkdir(parents=True)
    checkout = tmp_path / "main-agents" / "wt-feature"
    checkout.mkdir(parents=True)
    (checkout / ".git").write_text(f"gitdir: {admin}\n")
    return main, checkout


def run_git(repo: Path, *args: str) -> subprocess.CompletedProcess[str]:
    """Run git in a test repository, failing the test on error."""
    return subprocess.run(
        [
            "git",
            "-c",
            "user.name=agentbox",
            "-c",
            "user.email=agentbox@example.com",
            "-c",
            "commit.gpgsign=false",
            *args,
        ],
        cwd=repo,
        capture_output=True,
        text=True,
        check=True,
    )


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A real git repository with one commit."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "project"
    repo.mkdir()
    run_git(repo, "init", "-q")
    (repo / "README.md").write_text("# project\n")
    run_git(repo, "add", "README.md")
    run_git(repo, "commit", "-q", "-m", "initial")
    return repo
