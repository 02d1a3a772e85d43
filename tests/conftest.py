"""Pytest configuration for autopm tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`), and provides the
fakes shared by the adapter tests. Nothing here talks to GitHub, Azure DevOps
or git: runners and HTTP sessions are injected through constructors.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

py_path = os.environ.get("PYTHONPATH", "")
parts = [p for p in py_path.split(os.pathsep) if p]
if str(SRC) not in parts:
    parts.insert(0, str(SRC))
    os.environ["PYTHONPATH"] = os.pathsep.join(parts)

import autopm.logging as autopm_logging  # noqa: E402


class FakeRunner:
    """Command runner that answers from a scripted table.

    ``responses`` maps a prefix tuple (e.g. ``("gh", "issue", "view")``) to a
    string or an exception instance. The longest matching prefix wins.
    Unmatched commands return an empty string.
    """

    def __init__(self, responses: dict[tuple[str, ...], Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []

    def __call__(self, cmd: list[str]) -> str:
        normalized = [Path(cmd[0]).name, *cmd[1:]]
        self.calls.append(normalized)
        best: tuple[str, ...] | None = None
        for prefix in self.responses:
            if tuple(normalized[: len(prefix)]) == prefix and (
                best is None or len(prefix) > len(best)
            ):
                best = prefix
        if best is None:
            return ""
        value = self.responses[best]
        if isinstance(value, BaseException):
            raise value
        return str(value)

    def commands(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]


def failure(output: str, returncode: int = 1) -> subprocess.CalledProcessError:
    return subprocess.CalledProcessError(returncode, ["fake"], output=output)


@dataclass
class DummyResponse:
    status_code: int
    payload: Any

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if payload is None:
            return ""
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        if isinstance(payload, Exception):
            return "<html>not json</html>"
        return str(payload)


class DummySession:
    def __init__(self, responses: list[Any]):
        self._responses = list(responses)
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> DummyResponse:
        self.request_log.append(
            (method, url, {"headers": headers, "json": json, "params": params, "timeout": timeout})
        )
        if not self._responses:
            raise AssertionError("No response queued for request")
        item = self._responses.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    def methods(self) -> list[str]:
        return [m for m, _, _ in self.request_log]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in (
        "AUTOPM_PROVIDER",
        "AUTOPM_CONFIG",
        "AUTOPM_USE_REAL_API",
        "AUTOPM_HISTORY",
        "AUTOPM_HISTORY_PATH",
        "AUTOPM_QUIET",
        "AZURE_DEVOPS_ORG",
        "AZURE_DEVOPS_PROJECT",
        "AZURE_DEVOPS_USER",
        "NO_COLOR",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_logger():
    yield
    # handlers bind sys.stderr at construction; drop the one built under capture
    autopm_logging._GLOBAL = None
