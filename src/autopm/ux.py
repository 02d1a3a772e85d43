"""Terminal output helpers for the autopm CLI - no external dependencies."""

from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import TextIO

from .models import ActionResult


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"


def _supports_color(stream: TextIO | None = None) -> bool:
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False
    return os.environ.get("TERM") != "dumb"


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    """Apply color to text if the terminal supports it."""
    if not _supports_color(stream):
        return text
    prefix = (Colors.BOLD if bold else "") + color
    return f"{prefix}{text}{Colors.RESET}"


def print_success(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize("✓", Colors.GREEN, bold=True, stream=stream) + " " + message, file=stream)


def print_error(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stderr
    print(colorize("✗", Colors.RED, bold=True, stream=stream) + " " + message, file=stream)


def print_warning(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize("⚠", Colors.YELLOW, bold=True, stream=stream) + " " + message, file=stream)


def print_info(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize("ℹ", Colors.BLUE, bold=True, stream=stream) + " " + message, file=stream)


def print_header(message: str, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(colorize(message, Colors.CYAN, bold=True, stream=stream), file=stream)


def print_summary_box(
    title: str, items: Sequence[tuple[str, object]], stream: TextIO | None = None
) -> None:
    """Print a boxed list of key/value pairs. ``None`` values are skipped."""
    stream = stream or sys.stdout
    rows = [(k, v) for k, v in items if v is not None]
    width = max((len(k) for k, _ in rows), default=0)

    print(colorize(f"\n{title}", Colors.CYAN, bold=True, stream=stream), file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)
    for key, value in rows:
        text = str(value)
        if text.lower() in ("true", "yes", "present"):
            text = colorize(text, Colors.GREEN, stream=stream)
        elif text.lower() in ("false", "no", "missing"):
            text = colorize(text, Colors.DIM, stream=stream)
        print(f"  {key.ljust(width)}  {text}", file=stream)
    print(colorize("─" * 60, Colors.DIM, stream=stream), file=stream)


def print_operation_status(
    operation: str, status: str, details: str = "", stream: TextIO | None = None
) -> None:
    """Print one step status line.

    Args:
        operation: Step name (e.g. "branch", "comment")
        status: "ok", "failed" or "skipped"
        details: Optional extra text shown dimmed
        stream: Output stream
    """
    stream = stream or sys.stdout
    low = status.lower()
    if low in ("success", "ok", "passed"):
        icon = colorize("✓", Colors.GREEN, bold=True, stream=stream)
        status_colored = colorize(status, Colors.GREEN, stream=stream)
    elif low in ("failed", "error"):
        icon = colorize("✗", Colors.RED, bold=True, stream=stream)
        status_colored = colorize(status, Colors.RED, bold=True, stream=stream)
    elif low in ("skipped", "unchanged"):
        icon = colorize("○", Colors.YELLOW, stream=stream)
        status_colored = colorize(status, Colors.YELLOW, stream=stream)
    else:
        icon = colorize("•", Colors.BLUE, stream=stream)
        status_colored = status

    message = f"{icon} {colorize(operation, Colors.BOLD, stream=stream)}: {status_colored}"
    if details:
        message += f" {colorize(f'({details})', Colors.DIM, stream=stream)}"
    print(message, file=stream)


def print_action_result(title: str, result: ActionResult, stream: TextIO | None = None) -> None:
    """Human rendering of a close/start result: action log, warnings, summary."""
    stream = stream or sys.stdout
    print_header(title + (" (dry run)" if result.dry_run else ""), stream=stream)
    for action in result.actions:
        print_success(action, stream=stream)
    for outcome in result.warnings:
        print_operation_status(outcome.step, "skipped", outcome.detail, stream=stream)
    print_summary_box("Summary", list(result.summary.items()), stream=stream)


__all__ = [
    "Colors",
    "colorize",
    "print_action_result",
    "print_error",
    "print_header",
    "print_info",
    "print_operation_status",
    "print_success",
    "print_summary_box",
    "print_warning",
]
