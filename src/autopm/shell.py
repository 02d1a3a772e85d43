"""Subprocess execution shared by the ``gh`` adapter and git helpers.

A runner takes the full argv and returns stdout. Command failures surface as
``subprocess.CalledProcessError`` (with combined output in ``.output``) so the
caller can classify them against its own backend's messages. Timeouts and a
missing executable are translated here because they mean the same thing for
every tool.
"""

from __future__ import annotations

import subprocess  # nosec B404 - subprocess is required for gh/git invocation
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from .errors import ConfigurationError, TransientError

DEFAULT_TIMEOUT = 30.0


class CommandRunner(Protocol):
    def __call__(self, cmd: Sequence[str]) -> str: ...


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    try:
        proc = subprocess.run(  # nosec B603 - argv list, no shell
            list(cmd),
            cwd=cwd,
            env=dict(env) if env is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Executable not found: {cmd[0]} (is it installed and on PATH?)") from exc
    except subprocess.TimeoutExpired as exc:
        raise TransientError(f"Command timed out after {timeout:.0f}s: {' '.join(cmd[:3])}") from exc
    if proc.returncode != 0:
        raise subprocess.CalledProcessError(
            proc.returncode, list(cmd), output=(proc.stdout or "") + (proc.stderr or "")
        )
    return proc.stdout


class SubprocessRunner:
    """Default :class:`CommandRunner` bound to a working directory and env."""

    def __init__(
        self,
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.cwd = cwd
        self.env = env
        self.timeout = timeout

    def __call__(self, cmd: Sequence[str]) -> str:
        return run_command(cmd, cwd=self.cwd, env=self.env, timeout=self.timeout)


__all__ = ["CommandRunner", "DEFAULT_TIMEOUT", "SubprocessRunner", "run_command"]
