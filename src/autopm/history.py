"""Append-only history of completed issue transitions (opt-in)."""

from __future__ import annotations

import json
import time
from collections import deque
from pathlib import Path
from typing import Any

from .config import AutopmConfig
from .logging import get_logger
from .models import ActionResult


def record(
    cfg: AutopmConfig,
    command: str,
    provider: str,
    result: ActionResult,
) -> bool:
    """Append one JSON line for a finished ``close``/``start``.

    Returns ``True`` when an entry was written. Write failures are logged and
    swallowed; they never change the command outcome.
    """
    if not cfg.history_enabled:
        return False
    payload: dict[str, Any] = {
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "command": command,
        "provider": provider,
        "summary": result.summary,
        "dry_run": result.dry_run,
    }
    path = Path(cfg.history_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(payload, separators=(",", ":"), default=str) + "\n")
    except OSError as exc:
        get_logger().warning(f"history write failed: {exc}", path=str(path))
        return False
    return True


def read_history(path: str | Path, limit: int = 20) -> list[dict[str, Any]]:
    """Return the ``limit`` most recent entries, oldest first.

    Lines that are not valid JSON objects are skipped.
    """
    p = Path(path)
    if limit <= 0 or not p.exists():
        return []
    entries: deque[dict[str, Any]] = deque(maxlen=limit)
    with p.open(encoding="utf-8", errors="replace") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(item, dict):
                entries.append(item)
    return list(entries)


__all__ = ["read_history", "record"]
