"""Local git operations used for branch handling around issue transitions."""

from __future__ import annotations

import subprocess  # nosec B404
from pathlib import Path

from .errors import ConfigurationError, ProviderCommandError, TransientError
from .shell import CommandRunner, SubprocessRunner


class GitCommandError(ProviderCommandError):
    pass


class GitClient:
    def __init__(
        self,
        *,
        cwd: str | Path | None = None,
        runner: CommandRunner | None = None,
        remote: str = "origin",
    ) -> None:
        self.remote = remote
        self._runner: CommandRunner = runner or SubprocessRunner(cwd=cwd)

    def _run(self, *args: str) -> str:
        cmd = ["git", *args]
        try:
            return self._runner(cmd)
        except subprocess.CalledProcessError as exc:
            output = (exc.output or "").strip()
            raise GitCommandError(f"git {' '.join(args)} failed: {output}") from exc

    def remote_url(self) -> str | None:
        try:
            url = self._run("remote", "get-url", self.remote).strip()
        except (GitCommandError, ConfigurationError, TransientError):
            return None
        return url or None

    def branch_exists(self, name: str) -> bool:
        try:
            self._run("rev-parse", "--verify", "--quiet", f"refs/heads/{name}")
        except (GitCommandError, ConfigurationError, TransientError):
            return False
        return True

    def create_branch(self, name: str, *, push: bool = True) -> None:
        self._run("checkout", "-b", name)
        if push:
            self._run("push", "-u", self.remote, name)

    def delete_branch(self, name: str) -> list[str]:
        """Delete ``name`` locally (merged only) and on the remote.

        Returns the locations deleted. Raises :class:`GitCommandError` when
        neither deletion succeeded.
        """
        deleted: list[str] = []
        errors: list[str] = []
        try:
            self._run("branch", "-d", name)
            deleted.append("local")
        except GitCommandError as exc:
            errors.append(str(exc))
        try:
            self._run("push", self.remote, "--delete", name)
            deleted.append("remote")
        except GitCommandError as exc:
            errors.append(str(exc))
        if not deleted:
            raise GitCommandError("; ".join(errors))
        return deleted


__all__ = ["GitClient", "GitCommandError"]
