"""autopm CLI.

Subcommands:
  issue:show   -> fetch one issue / work item and print it
  issue:close  -> close it, then comment, record resolution, delete branch
  issue:start  -> mark it in progress, assign, branch, comment
  config:show  -> print the resolved configuration
  auth:check   -> report credential status for the active provider
  history:show -> print recent entries of the transition history

The ``issue:*`` commands also accept dashed aliases (``issue-show`` ...).
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any

from . import __version__, history
from .config import CONFIG_DEFAULT, AutopmConfig
from .env_auth import create_env_auth_manager
from .models import ActionResult, ShowResult
from .providers import CloseOptions, StartOptions
from .router import ProviderRouter
from .runtime import execute_command, prepare_config, setup_logging
from .ux import print_action_result, print_info, print_summary_box, print_warning

_MAX_HELP_WIDTH = 100
_ID_HELP = "Issue number or work item id (e.g. 42 or #42)"
_JSON_HELP = "Print machine-readable JSON instead of text"


class _HelpFormatter(argparse.HelpFormatter):
    def __init__(self, prog: str) -> None:
        super().__init__(prog, max_help_position=30, width=_MAX_HELP_WIDTH)


class _FormatterArgumentParser(argparse.ArgumentParser):
    def __init__(self, *args: Any, **kwargs: Any) -> None:
        kwargs.setdefault("formatter_class", _HelpFormatter)
        super().__init__(*args, **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    p = _FormatterArgumentParser(
        prog="autopm", description="Issue and work item operations for GitHub and Azure DevOps"
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument(
        "--config",
        default=None,
        help=f"Configuration file (default: $AUTOPM_CONFIG or {CONFIG_DEFAULT})",
    )
    p.add_argument("--provider", help="Override the active provider (env: AUTOPM_PROVIDER)")
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Read from the provider but only print mutating calls",
    )
    p.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress informational output (env: AUTOPM_QUIET=1)",
    )
    p.add_argument("--log-json", action="store_true", help="Emit log records as JSON")
    p.add_argument(
        "--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], type=str.upper
    )
    sub = p.add_subparsers(
        dest="cmd",
        required=True,
        parser_class=_FormatterArgumentParser,
        metavar="<command>",
    )

    pshow = sub.add_parser("issue:show", aliases=["issue-show"], help="Show an issue")
    pshow.add_argument("issue_id", help=_ID_HELP)
    pshow.add_argument("--json", action="store_true", help=_JSON_HELP)

    pclose = sub.add_parser("issue:close", aliases=["issue-close"], help="Close an issue")
    pclose.add_argument("issue_id", help=_ID_HELP)
    pclose.add_argument("--comment", help="Comment to post after closing")
    pclose.add_argument("--resolution", help="Resolution (e.g. fixed, duplicate, wontfix)")
    pclose.add_argument(
        "--no-branch-delete",
        dest="delete_branch",
        action="store_false",
        help="Keep the feature branch",
    )
    pclose.add_argument("--json", action="store_true", help=_JSON_HELP)

    pstart = sub.add_parser("issue:start", aliases=["issue-start"], help="Start work on an issue")
    pstart.add_argument("issue_id", help=_ID_HELP)
    pstart.add_argument("--comment", help="Comment to post (default: start notice with branch)")
    pstart.add_argument("--assign", action="store_true", help="Assign to yourself even if assigned")
    pstart.add_argument("--sprint", help="Milestone (GitHub) or iteration path (Azure DevOps)")
    pstart.add_argument("--branch", dest="branch_name", help="Branch name to create")
    pstart.add_argument(
        "--no-branch",
        dest="create_branch",
        action="store_false",
        help="Do not create a feature branch",
    )
    pstart.add_argument("--json", action="store_true", help=_JSON_HELP)

    sub.add_parser("config:show", help="Print the resolved configuration")
    sub.add_parser("auth:check", help="Check credentials for the active provider")

    phist = sub.add_parser("history:show", help="Show recent close/start history")
    phist.add_argument("--limit", type=int, default=20)
    phist.add_argument("--json", action="store_true", help=_JSON_HELP)
    return p


_CANONICAL = {
    "issue-show": "issue:show",
    "issue-close": "issue:close",
    "issue-start": "issue:start",
}


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _cmd_show(cfg: AutopmConfig, args: argparse.Namespace) -> int:
    result = ProviderRouter(cfg).execute("issue:show", args.issue_id)
    assert isinstance(result, ShowResult)  # nosec B101
    if args.json:
        _print_json(result.to_dict())
    else:
        print(result.formatted)
    return 0


def _report_action(
    cfg: AutopmConfig, args: argparse.Namespace, command: str, result: ActionResult
) -> None:
    history.record(cfg, command, cfg.provider, result)
    if args.json:
        _print_json(result.to_dict())
        return
    if args.quiet:
        for outcome in result.warnings:
            print_warning(f"{outcome.step}: {outcome.detail}", stream=sys.stderr)
        return
    print_action_result(f"{command} #{result.summary.get('id', args.issue_id)}", result)


def _cmd_close(cfg: AutopmConfig, args: argparse.Namespace) -> int:
    options = CloseOptions(
        comment=args.comment,
        resolution=args.resolution,
        delete_branch=args.delete_branch,
    )
    result = ProviderRouter(cfg).execute("issue:close", args.issue_id, options)
    assert isinstance(result, ActionResult)  # nosec B101
    _report_action(cfg, args, "issue:close", result)
    return 0


def _cmd_start(cfg: AutopmConfig, args: argparse.Namespace) -> int:
    options = StartOptions(
        comment=args.comment,
        assign=args.assign,
        sprint=args.sprint,
        create_branch=args.create_branch,
        branch_name=args.branch_name,
    )
    result = ProviderRouter(cfg).execute("issue:start", args.issue_id, options)
    assert isinstance(result, ActionResult)  # nosec B101
    _report_action(cfg, args, "issue:start", result)
    return 0


def _cmd_config_show(cfg: AutopmConfig) -> int:
    auth = create_env_auth_manager()
    payload = cfg.describe()
    payload["tokens"] = {
        name: "present" if auth.get_token(name) else "missing" for name in ("github", "azure")
    }
    _print_json(payload)
    return 0


def _cmd_auth_check(cfg: AutopmConfig, args: argparse.Namespace) -> int:
    auth = create_env_auth_manager()
    status = auth.status(cfg.provider)
    if not args.quiet:
        print_summary_box(
            "Authentication",
            [
                ("provider", status["provider"]),
                ("token", "present" if status["token_present"] else "missing"),
                ("variables", ", ".join(status["token_variables"]) or "-"),
                ("dotenv file", status["dotenv_file"]),
                ("ci", status["ci"]),
            ],
        )
        for tip in status["recommendations"]:
            print_info(tip)
    if cfg.provider in ("github", "azure") and not status["token_present"]:
        return 1
    return 0


def _cmd_history_show(cfg: AutopmConfig, args: argparse.Namespace) -> int:
    entries = history.read_history(cfg.history_path, args.limit)
    if args.json:
        _print_json(entries)
        return 0
    if not entries:
        print_info(f"No history recorded at {cfg.history_path}")
        return 0
    for entry in entries:
        summary = entry.get("summary") or {}
        flag = " [dry run]" if entry.get("dry_run") else ""
        print(
            f"{entry.get('timestamp', '?')}  {entry.get('command', '?'):<12} "
            f"{entry.get('provider', '?'):<7} #{summary.get('id', '?')} "
            f"{summary.get('status', '')}{flag}"
        )
    return 0


def _build_handlers(args: argparse.Namespace) -> dict[str, Any]:
    def with_config(fn: Any) -> Any:
        return lambda: fn(prepare_config(args), args)

    return {
        "issue:show": with_config(_cmd_show),
        "issue:close": with_config(_cmd_close),
        "issue:start": with_config(_cmd_start),
        "config:show": lambda: _cmd_config_show(prepare_config(args)),
        "auth:check": with_config(_cmd_auth_check),
        "history:show": with_config(_cmd_history_show),
    }


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not args.quiet and os.environ.get("AUTOPM_QUIET") == "1":
        args.quiet = True
    setup_logging(args)
    command = _CANONICAL.get(args.cmd, args.cmd)
    handler = _build_handlers(args).get(command)
    if handler is None:  # pragma: no cover - argparse enforces valid choices
        parser.print_help()
        return 1
    return execute_command(handler, command)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
