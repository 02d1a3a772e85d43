"""GitHub Issues adapter.

All remote calls go through the GitHub CLI (``gh``), scoped with ``-R
owner/repo``. The token found in the environment is handed to ``gh`` through
``GH_TOKEN`` so the adapter never depends on a prior ``gh auth login``.

Dry-run mode still performs reads (``gh issue view``) but prints every
mutating command with a ``DRY-RUN`` prefix instead of executing it.
"""

from __future__ import annotations

import json
import os
import re
import shutil
import subprocess  # nosec B404 - subprocess is required for GitHub CLI invocation
import sys
from collections.abc import Callable, Iterable
from typing import Any

from ..config import AutopmConfig
from ..env_auth import EnvironmentAuthManager
from ..errors import MalformedResponseError, NotFoundError, classify_failure
from ..formatter import DisplayConfig, format_issue
from ..git import GitClient
from ..mapping import (
    extract_child_references,
    extract_parent_reference,
    map_labels_to_type,
    map_state,
)
from ..models import ActionResult, NormalizedIssue, NormalizedState, ShowResult
from ..shell import CommandRunner, SubprocessRunner
from .base import (
    IN_PROGRESS_TAG,
    CloseOptions,
    IssueProvider,
    StartOptions,
    parse_issue_id,
    utc_timestamp,
)

VIEW_FIELDS = (
    "number,title,body,state,stateReason,labels,assignees,author,"
    "createdAt,updatedAt,url,milestone"
)
IN_REVIEW_TAG = "in-review"
NOT_PLANNED_RESOLUTIONS = frozenset({"duplicate", "wontfix", "won't fix", "invalid", "not_planned", "not planned"})
_PRIORITY_LABEL = re.compile(r"^(?:priority[:/ -]?|p)(\d)$", re.IGNORECASE)


class GhCli:
    """Thin wrapper around ``gh`` invocations for one repository."""

    def __init__(
        self,
        repo: str,
        *,
        runner: CommandRunner,
        dry_run: bool = False,
    ) -> None:
        self.repo = repo
        self.dry_run = dry_run
        self._runner = runner
        self._gh = shutil.which("gh") or "gh"

    def _cmd(self, *parts: str) -> list[str]:
        return [self._gh, *parts, "-R", self.repo]

    def _invoke(self, cmd: list[str]) -> str:
        try:
            return self._runner(cmd)
        except subprocess.CalledProcessError as exc:
            output = (exc.output or "").strip()
            cls = classify_failure(output)
            raise cls(f"gh {' '.join(cmd[1:4])} failed: {output or f'exit {exc.returncode}'}") from exc

    def read(self, *parts: str) -> str:
        return self._invoke(self._cmd(*parts))

    def mutate(self, *parts: str) -> str:
        cmd = self._cmd(*parts)
        if self.dry_run:
            print("DRY-RUN", " ".join(["gh", *cmd[1:]]), file=sys.stderr)
            return ""
        return self._invoke(cmd)


def _names(entries: Any, *keys: str) -> list[str]:
    out: list[str] = []
    if not isinstance(entries, list):
        return out
    for entry in entries:
        if isinstance(entry, str):
            out.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        for key in keys:
            value = entry.get(key)
            if isinstance(value, str) and value:
                out.append(value)
                break
    return out


def _priority_from_labels(labels: Iterable[str]) -> int | None:
    for label in labels:
        match = _PRIORITY_LABEL.match(label.strip())
        if match:
            return int(match.group(1))
    return None


def normalize_github_issue(data: dict[str, Any]) -> NormalizedIssue:
    """Map ``gh issue view --json`` output into a :class:`NormalizedIssue`."""
    number = data.get("number")
    title = data.get("title")
    raw_state = data.get("state")
    if not isinstance(number, int) or not isinstance(title, str) or not isinstance(raw_state, str):
        raise MalformedResponseError(
            "GitHub issue payload missing required fields (number, title, state)"
        )
    labels = _names(data.get("labels"), "name")
    label_keys = {lbl.lower() for lbl in labels}
    reason = str(data.get("stateReason") or "")

    state: NormalizedState = map_state(raw_state)
    if state == "closed" and reason.upper() == "NOT_PLANNED":
        state = "cancelled"
    elif state == "open" and IN_REVIEW_TAG in label_keys:
        state = "in_review"
    elif state == "open" and IN_PROGRESS_TAG in label_keys:
        state = "in_progress"

    issue_type = map_labels_to_type(labels)
    body = data.get("body") if isinstance(data.get("body"), str) else None
    assignees = _names(data.get("assignees"), "name", "login")
    author = _names([data.get("author")], "login", "name")
    milestone = data.get("milestone")
    return NormalizedIssue(
        id=number,
        type=issue_type,
        title=title,
        state=state,
        url=str(data.get("url") or ""),
        description=body,
        assignee=", ".join(assignees) or None,
        creator=author[0] if author else None,
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        tags=labels,
        parent=extract_parent_reference(body),
        children=extract_child_references(body),
        provider="github",
        provider_type="Issue" if issue_type == "issue" else issue_type.title(),
        provider_state=raw_state,
        priority=_priority_from_labels(labels),
        iteration=milestone.get("title") if isinstance(milestone, dict) else None,
    )


class GitHubProvider(IssueProvider):
    name = "github"
    branch_kind = "issue"

    def __init__(
        self,
        repo: str,
        *,
        token: str | None,
        dry_run: bool = False,
        runner: CommandRunner | None = None,
        git: GitClient | None = None,
    ) -> None:
        super().__init__(dry_run=dry_run)
        self.repo = repo
        self._token = token
        if runner is None:
            env = dict(os.environ)
            if token:
                env["GH_TOKEN"] = token
            runner = SubprocessRunner(env=env)
        self.gh = GhCli(repo, runner=runner, dry_run=dry_run)
        self.git = git or GitClient()
        self.display = DisplayConfig(repository=repo)

    @classmethod
    def from_config(cls, config: AutopmConfig, auth: EnvironmentAuthManager) -> GitHubProvider:
        settings = config.require_github()
        return cls(
            settings.repository or "",
            token=auth.get_github_token(),
            dry_run=config.dry_run,
        )

    def _authenticate(self) -> None:
        self.require_token(self._token, ("GITHUB_TOKEN", "GH_TOKEN"))

    def _git_mutation(self, description: str, fn: Callable[[], None]) -> None:
        if self.dry_run:
            print(f"DRY-RUN git {description}", file=sys.stderr)
            return
        fn()

    # ---- operations ----------------------------------------------------
    def show(self, issue_id: int | str) -> ShowResult:
        number = parse_issue_id(issue_id)
        self._authenticate()
        self.logger.debug(f"gh issue view {number}", provider=self.name, repo=self.repo)
        try:
            out = self.gh.read("issue", "view", str(number), "--json", VIEW_FIELDS)
        except NotFoundError as exc:
            raise NotFoundError(f"GitHub issue #{number} not found in {self.repo}") from exc
        try:
            data = json.loads(out)
        except json.JSONDecodeError as exc:
            raise MalformedResponseError(f"GitHub issue #{number}: response is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedResponseError(f"GitHub issue #{number}: unexpected response shape")
        issue = normalize_github_issue(data)
        self.logger.log_issue_action("show", self.name, number, repo=self.repo)
        return ShowResult(issue=issue, formatted=format_issue(issue, self.display))

    def close(self, issue_id: int | str, options: CloseOptions | None = None) -> ActionResult:
        options = options or CloseOptions()
        number = parse_issue_id(issue_id)
        issue = self.show(number).issue
        self.check_closable(issue)

        rec = self.recorder(number)
        resolution = (options.resolution or "").strip() or None
        reason = (
            "not planned"
            if resolution and resolution.lower() in NOT_PLANNED_RESOLUTIONS
            else "completed"
        )
        rec.core(
            "close",
            lambda: self.gh.mutate("issue", "close", str(number), "--reason", reason),
            f"Closed issue #{number}",
        )
        if options.comment:
            comment = options.comment
            rec.best_effort(
                "comment",
                lambda: self.gh.mutate("issue", "comment", str(number), "--body", comment),
                "Added comment",
            )
        if resolution:
            rec.best_effort(
                "resolution",
                lambda: self.gh.mutate(
                    "issue", "edit", str(number), "--add-label", f"resolution:{resolution}"
                ),
                f"Added resolution: {resolution}",
            )
        if options.delete_branch:
            branch = self.branch_name(number)
            rec.best_effort("branch_delete", lambda: self._delete_branch(branch))

        rec.result.summary = {
            "id": number,
            "status": "closed",
            "resolution": resolution or "completed",
            "url": issue.url,
            "timestamp": utc_timestamp(),
        }
        self.logger.log_issue_action(
            "close", self.name, number, dry_run=self.dry_run, resolution=resolution
        )
        return rec.result

    def _delete_branch(self, branch: str) -> str:
        if self.dry_run:
            print(f"DRY-RUN git branch -d {branch}", file=sys.stderr)
            print(f"DRY-RUN git push {self.git.remote} --delete {branch}", file=sys.stderr)
            return f"Deleted branch {branch}"
        locations = self.git.delete_branch(branch)
        return f"Deleted branch {branch} ({', '.join(locations)})"

    def start(self, issue_id: int | str, options: StartOptions | None = None) -> ActionResult:
        options = options or StartOptions()
        number = parse_issue_id(issue_id)
        issue = self.show(number).issue
        self.check_startable(issue)

        rec = self.recorder(number)
        rec.core(
            "transition",
            lambda: self.gh.mutate("issue", "edit", str(number), "--add-label", IN_PROGRESS_TAG),
            f"Marked issue #{number} as in progress (label: {IN_PROGRESS_TAG})",
        )

        assignee = issue.assignee
        if options.assign or not issue.assignee:
            if rec.best_effort(
                "assign",
                lambda: self.gh.mutate("issue", "edit", str(number), "--add-assignee", "@me"),
                "Assigned to @me",
            ):
                assignee = "@me"

        branch: str | None = None
        if options.create_branch:
            candidate = options.branch_name or self.branch_name(number)
            branch = self.start_branch(
                rec,
                candidate,
                lambda: self._git_mutation(
                    f"checkout -b {candidate}", lambda: self.git.create_branch(candidate)
                ),
            )

        body = options.comment or self.default_start_comment(branch)
        rec.best_effort(
            "comment",
            lambda: self.gh.mutate("issue", "comment", str(number), "--body", body),
            "Added comment",
        )

        if options.sprint:
            sprint = options.sprint
            rec.best_effort(
                "sprint",
                lambda: self.gh.mutate("issue", "edit", str(number), "--milestone", sprint),
                f"Moved to milestone: {sprint}",
            )

        rec.result.summary = {
            "id": number,
            "status": "in_progress",
            "branch": branch,
            "assignee": assignee,
            "sprint": options.sprint,
            "url": issue.url,
            "timestamp": utc_timestamp(),
        }
        self.logger.log_issue_action("start", self.name, number, dry_run=self.dry_run, branch=branch)
        return rec.result


__all__ = ["GhCli", "GitHubProvider", "normalize_github_issue"]
