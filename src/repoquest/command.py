"""Run command lines inside the user's shell environment."""

from __future__ import annotations

import functools
import logging
import os
import shlex
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    command: str
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class CommandError(RuntimeError):
    """Raised when a command exits with a non-zero status."""

    def __init__(self, result: CommandResult):
        super().__init__(
            f"`{result.command}` failed with exit code {result.returncode}, "
            f"stderr:\n{result.stderr_text}"
        )
        self.result = result


def parse_env(output: str) -> dict[str, str]:
    """Parse `env` output into a mapping.

    Lines without a ``=`` are skipped; values may themselves contain ``=``.
    """
    env: dict[str, str] = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep and key:
            env[key] = value
    return env


@functools.lru_cache(maxsize=None)
def user_env() -> dict[str, str]:
    """Snapshot of the environment the user's login shell would provide.

    Credential helpers and SSH agents configured in shell profiles only
    show up here, not in ``os.environ`` of a GUI-launched process. The
    snapshot is taken once per process.
    """
    if os.name != "posix":
        return {}

    shell = os.environ.get("SHELL") or "sh"
    try:
        output = subprocess.run(
            [shell, "-c", "env"],
            capture_output=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        logger.warning("Could not capture shell environment from %s: %s", shell, e)
        return {}

    return parse_env(output.stdout.decode("utf-8", errors="replace"))


def run_command(
    command_line: str,
    cwd: Path,
    *,
    stdin: bytes | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = False,
) -> CommandResult:
    """Run a shell-style command line in ``cwd``.

    Args:
        command_line: Command and arguments, split with shell quoting rules.
        cwd: Working directory for the process.
        stdin: Bytes written to the process's standard input before it is closed.
        env: Extra variables layered over the captured user environment.
        check: Raise CommandError on a non-zero exit.

    Returns:
        CommandResult with the exit status and captured output.
    """
    args = shlex.split(command_line)
    if not args:
        raise ValueError("Empty command line")

    merged = os.environ.copy()
    merged.update(user_env())
    if env:
        merged.update(env)

    logger.debug("run: %s (cwd=%s)", command_line, cwd)
    process = subprocess.run(
        args,
        cwd=str(cwd),
        env=merged,
        input=stdin if stdin is not None else None,
        stdin=None if stdin is not None else subprocess.DEVNULL,
        capture_output=True,
        check=False,
    )
    result = CommandResult(
        command=command_line,
        returncode=process.returncode,
        stdout=process.stdout,
        stderr=process.stderr,
    )
    if check and not result.ok:
        raise CommandError(result)
    return result
