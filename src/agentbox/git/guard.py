"""
Git stand-in for sandboxed containers.

Installed ahead of the real git on PATH inside the image. Every invocation
is classified by GitCommandPolicy under the mode found in AGENTBOX_MODE;
allowed invocations replace this process with the real git so arguments,
stdio and exit status pass through untouched. Denied invocations print the
policy message to stderr and exit with DENIED_EXIT_CODE.

Arguments are never parsed with a CLI framework here: git's own option
grammar has to reach the real binary verbatim.
"""

from __future__ import annotations

import os
import shlex
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from agentbox.git.policy import GitCommandPolicy, PolicyDecision
from agentbox.modes import Mode

MODE_ENV = "AGENTBOX_MODE"
NETWORK_READS_ENV = "AGENTBOX_BLOCK_NETWORK_READS"
REAL_GIT_ENV = "AGENTBOX_REAL_GIT"

DENIED_EXIT_CODE = 77  # EX_NOPERM
GIT_NOT_FOUND_EXIT_CODE = 127

# Global options whose value is the following argument when not given as --opt=value
_OPTIONS_WITH_VALUE = frozenset(
    [
        "-C",
        "-c",
        "--git-dir",
        "--work-tree",
        "--namespace",
        "--config-env",
        "--super-prefix",
        "--attr-source",
        "--list-cmds",
    ]
)


@dataclass
class GitInvocation:
    """Subcommand and command-line config overrides of one git call."""

    subcommand: str | None
    config_keys: list[str] = field(default_factory=list)

    @property
    def alias_definitions(self) -> list[str]:
        return [key for key in self.config_keys if key.lower().startswith("alias.")]


def _config_key(assignment: str) -> str:
    return assignment.split("=", 1)[0]


def parse_invocation(args: Sequence[str]) -> GitInvocation:
    """
    Locate the subcommand after git's global options.

    Args:
        args: Arguments after the program name

    Returns:
        GitInvocation; subcommand is None for ``git``, ``git --version``
        and similar option-only calls
    """
    config_keys: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]

        if arg == "--":
            i += 1
            break

        if not arg.startswith("-"):
            return GitInvocation(subcommand=arg, config_keys=config_keys)

        if arg in _OPTIONS_WITH_VALUE:
            value = args[i + 1] if i + 1 < len(args) else ""
            if arg in ("-c", "--config-env"):
                config_keys.append(_config_key(value))
            i += 2
            continue

        if arg.startswith("--config-env="):
            config_keys.append(_config_key(arg[len("--config-env=") :]))
        elif arg.startswith("-c") and len(arg) > 2:
            config_keys.append(_config_key(arg[2:]))

        i += 1

    subcommand = args[i] if i < len(args) else None
    return GitInvocation(subcommand=subcommand, config_keys=config_keys)


def mode_from_env(environ: Mapping[str, str]) -> Mode:
    """Read the launch mode, treating a missing or unknown value as lockdown."""
    raw = environ.get(MODE_ENV, "")
    try:
        return Mode(raw.strip().lower())
    except ValueError:
        return Mode.LOCKDOWN


def policy_from_env(environ: Mapping[str, str]) -> GitCommandPolicy:
    """Build the policy from the container environment."""
    return GitCommandPolicy(block_network_reads=environ.get(NETWORK_READS_ENV, "1") != "0")


def env_config_keys(environ: Mapping[str, str]) -> list[str]:
    """
    Config keys injected through the environment.

    Covers ``GIT_CONFIG_COUNT``/``GIT_CONFIG_KEY_<n>`` and the
    ``GIT_CONFIG_PARAMETERS`` list git itself uses to pass ``-c`` to
    subprocesses.
    """
    keys: list[str] = []
    try:
        count = int(environ.get("GIT_CONFIG_COUNT", "0") or "0")
    except ValueError:
        count = 0
    for n in range(max(count, 0)):
        key = environ.get(f"GIT_CONFIG_KEY_{n}")
        if key:
            keys.append(key)

    parameters = environ.get("GIT_CONFIG_PARAMETERS", "")
    if parameters:
        try:
            entries = shlex.split(parameters)
        except ValueError:
            entries = parameters.split()
        keys.extend(_config_key(entry) for entry in entries if entry)
    return keys


def evaluate(args: Sequence[str], environ: Mapping[str, str]) -> PolicyDecision:
    """
    Classify one git invocation.

    Args:
        args: Arguments after the program name
        environ: Container environment

    Returns:
        PolicyDecision for the invocation
    """
    invocation = parse_invocation(args)
    invocation.config_keys.extend(env_config_keys(environ))
    if invocation.alias_definitions:
        return PolicyDecision.deny(
            invocation.subcommand,
            "agentbox: defining git aliases on the command line or through GIT_CONFIG_* "
            f"is blocked ({', '.join(invocation.alias_definitions)}). Call the subcommand directly.",
        )
    return policy_from_env(environ).decide(invocation.subcommand, mode_from_env(environ))


def find_real_git(environ: Mapping[str, str], self_path: str) -> str | None:
    """
    Locate the git binary this wrapper stands in for.

    Args:
        environ: Environment providing AGENTBOX_REAL_GIT or PATH
        self_path: Path of the running wrapper, skipped during PATH search

    Returns:
        Absolute path of the real git, or None if not found
    """
    explicit = environ.get(REAL_GIT_ENV)
    if explicit:
        return explicit if os.access(explicit, os.X_OK) else None

    own = os.path.realpath(self_path)
    for directory in environ.get("PATH", "").split(os.pathsep):
        if not directory:
            continue
        candidate = os.path.join(directory, "git")
        if not (os.path.isfile(candidate) and os.access(candidate, os.X_OK)):
            continue
        if os.path.realpath(candidate) == own:
            continue
        return candidate
    return None


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``agentbox-git`` console script."""
    args = list(sys.argv[1:] if argv is None else argv)

    decision = evaluate(args, os.environ)
    if not decision.allowed:
        print(decision.message, file=sys.stderr)
        return DENIED_EXIT_CODE

    real_git = find_real_git(os.environ, sys.argv[0])
    if real_git is None:
        print("agentbox: could not locate the real git binary", file=sys.stderr)
        return GIT_NOT_FOUND_EXIT_CODE

    os.execv(real_git, [real_git, *args])
    return 0  # not reached


if __name__ == "__main__":
    sys.exit(main())
