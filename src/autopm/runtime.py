"""Runtime helpers for autopm CLI orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol

from .config import AutopmConfig, load_config
from .errors import AutopmError, classify_error
from .logging import StructuredLogger, configure_logging, get_logger
from .ux import print_error


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def prepare_config(
    args: Any, *, loader: Callable[..., AutopmConfig] = load_config
) -> AutopmConfig:
    """Load configuration for the parsed namespace and apply CLI overrides."""
    if not hasattr(args, "config"):
        raise AttributeError("Command namespace is missing 'config' attribute")
    cfg = loader(
        args.config,
        provider_override=getattr(args, "provider", None),
        dry_run=getattr(args, "dry_run", False),
    )
    setup_logging(args, cfg)
    return cfg


def setup_logging(args: Any, cfg: AutopmConfig | None = None) -> StructuredLogger:
    """Flags win over the config file; ``--quiet`` caps output at errors."""
    json_logging = bool(getattr(args, "log_json", False)) or bool(cfg and cfg.logging_json)
    level = getattr(args, "log_level", None) or (cfg.logging_level if cfg else "WARNING")
    if getattr(args, "quiet", False):
        level = "ERROR"
    return configure_logging(json_logging=json_logging, level=level)


def execute_command(handler: _HandlerCallable, command: str) -> int:
    """Run a command handler and turn autopm failures into exit codes.

    Only :class:`~autopm.errors.AutopmError` is handled: the redacted message is
    printed and logged, and the class exit code returned. Anything else
    propagates.
    """
    start = time.monotonic()
    try:
        result = handler()
    except AutopmError as exc:
        info = classify_error(exc)
        print_error(f"{command}: {info.message}")
        get_logger().log_error(
            f"{command} failed",
            error=info.message,
            category=info.category,
            error_type=info.original_type,
            exit_code=info.exit_code,
        )
        return info.exit_code
    exit_code = int(result) if result is not None else 0
    get_logger().log_performance(command, (time.monotonic() - start) * 1000, exit_code=exit_code)
    return exit_code


__all__ = ["execute_command", "prepare_config", "setup_logging"]
