"""Azure DevOps work item adapter (REST, Basic auth with a PAT)."""

from __future__ import annotations

import html
import re
import sys
from collections.abc import Callable
from typing import Any

from ..azure_rest import AzureDevOpsClient
from ..config import AutopmConfig
from ..env_auth import EnvironmentAuthManager
from ..errors import NotFoundError, ProviderCommandError
from ..formatter import DisplayConfig, format_issue
from ..git import GitClient
from ..mapping import extract_id_from_relation_url, map_state, map_type, provider_state_for
from ..models import ActionResult, IssueMetrics, NormalizedIssue, ShowResult
from .base import (
    IN_PROGRESS_TAG,
    CloseOptions,
    IssueProvider,
    StartOptions,
    parse_issue_id,
    utc_timestamp,
)

PARENT_LINK = "System.LinkTypes.Hierarchy-Reverse"
CHILD_LINK = "System.LinkTypes.Hierarchy-Forward"

_BLOCK_TAGS = re.compile(r"<\s*(?:br\s*/?|/p|/div|/li|/h\d)\s*>", re.IGNORECASE)
_LIST_ITEM = re.compile(r"<\s*li[^>]*>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")


def html_to_text(value: str | None) -> str | None:
    """Azure stores descriptions as HTML; reduce them to readable text."""
    if not value:
        return None
    text = _BLOCK_TAGS.sub("\n", value)
    text = _LIST_ITEM.sub("- ", text)
    text = html.unescape(_ANY_TAG.sub("", text))
    lines = [line.rstrip() for line in text.splitlines()]
    cleaned = "\n".join(lines).strip()
    return cleaned or None


def split_tags(value: Any) -> list[str]:
    if not isinstance(value, str):
        return []
    return [tag.strip() for tag in value.split(";") if tag.strip()]


def _identity(value: Any) -> str | None:
    if isinstance(value, dict):
        for key in ("displayName", "uniqueName"):
            name = value.get(key)
            if isinstance(name, str) and name:
                return name
        return None
    if isinstance(value, str) and value:
        return value
    return None


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value) if value is not None else 0
    except (TypeError, ValueError):
        return 0


def normalize_work_item(data: dict[str, Any], *, fallback_url: str = "") -> NormalizedIssue:
    """Map a work item REST payload (``$expand=relations``) to a NormalizedIssue."""
    fields: dict[str, Any] = data.get("fields") or {}
    work_item_id = int(data["id"])
    raw_type = fields.get("System.WorkItemType")
    raw_state = fields.get("System.State")

    parent: int | None = None
    children: list[int] = []
    for relation in data.get("relations") or []:
        if not isinstance(relation, dict):
            continue
        target = extract_id_from_relation_url(relation.get("url"))
        if target is None:
            continue
        if relation.get("rel") == PARENT_LINK and parent is None:
            parent = target
        elif relation.get("rel") == CHILD_LINK and target not in children:
            children.append(target)
    if parent is None and fields.get("System.Parent") is not None:
        try:
            parent = int(fields["System.Parent"])
        except (TypeError, ValueError):
            parent = None

    links = data.get("_links") or {}
    href = links.get("html", {}).get("href") if isinstance(links.get("html"), dict) else None
    priority = fields.get("Microsoft.VSTS.Common.Priority")

    return NormalizedIssue(
        id=work_item_id,
        type=map_type(raw_type),
        title=str(fields.get("System.Title") or ""),
        state=map_state(raw_state),
        url=href or fallback_url,
        description=html_to_text(fields.get("System.Description")),
        assignee=_identity(fields.get("System.AssignedTo")),
        creator=_identity(fields.get("System.CreatedBy")),
        created_at=fields.get("System.CreatedDate"),
        updated_at=fields.get("System.ChangedDate"),
        tags=split_tags(fields.get("System.Tags")),
        parent=parent,
        children=children,
        metrics=IssueMetrics(
            story_points=_number(fields.get("Microsoft.VSTS.Scheduling.StoryPoints")),
            effort=_number(fields.get("Microsoft.VSTS.Scheduling.Effort")),
            remaining_work=_number(fields.get("Microsoft.VSTS.Scheduling.RemainingWork")),
            completed_work=_number(fields.get("Microsoft.VSTS.Scheduling.CompletedWork")),
        ),
        provider="azure",
        provider_type=raw_type if isinstance(raw_type, str) else None,
        provider_state=raw_state if isinstance(raw_state, str) else None,
        priority=int(priority) if isinstance(priority, (int, float)) else None,
        iteration=fields.get("System.IterationPath"),
        area=fields.get("System.AreaPath"),
    )


class AzureDevOpsProvider(IssueProvider):
    name = "azure"
    branch_kind = "task"
    token_variables = ("AZURE_DEVOPS_TOKEN", "AZURE_DEVOPS_PAT")

    def __init__(
        self,
        organization: str,
        project: str,
        *,
        token: str | None,
        dry_run: bool = False,
        close_state: str = "Closed",
        active_state: str = "Active",
        user: str | None = None,
        base_url: str = "https://dev.azure.com",
        client: AzureDevOpsClient | None = None,
        git: GitClient | None = None,
    ) -> None:
        super().__init__(dry_run=dry_run)
        self.organization = organization
        self.project = project
        self._token = token
        self.close_state = close_state
        self.active_state = active_state
        self.user = user
        self._client = client
        if self._client is None and token:
            self._client = AzureDevOpsClient(
                token=token, organization=organization, project=project, base_url=base_url
            )
        self.git = git or GitClient()
        self.display = DisplayConfig(organization=organization, project=project)

    @classmethod
    def from_config(
        cls, config: AutopmConfig, auth: EnvironmentAuthManager
    ) -> AzureDevOpsProvider:
        settings = config.require_azure()
        return cls(
            settings.organization or "",
            settings.project or "",
            token=auth.get_azure_token(),
            dry_run=config.dry_run,
            close_state=settings.close_state,
            active_state=settings.active_state,
            user=settings.user,
            base_url=settings.api_url,
        )

    @property
    def client(self) -> AzureDevOpsClient:
        self.require_token(self._token, self.token_variables)
        if self._client is None:  # pragma: no cover - built in __init__ whenever a token exists
            raise ProviderCommandError("Azure DevOps client not initialised")
        return self._client

    def _mutate(self, description: str, fn: Callable[[], Any]) -> None:
        if self.dry_run:
            print(f"DRY-RUN REST {description}", file=sys.stderr)
            return
        fn()

    def _patch(self, work_item_id: int, fields: dict[str, Any]) -> None:
        desc = ", ".join(f"{k}={v}" for k, v in fields.items())
        self._mutate(
            f"PATCH workitems/{work_item_id} {desc}",
            lambda: self.client.update_work_item(work_item_id, fields),
        )

    def _comment(self, work_item_id: int, text: str) -> None:
        self._mutate(
            f"POST workItems/{work_item_id}/comments",
            lambda: self.client.add_comment(work_item_id, text),
        )

    def _add_tag(self, work_item_id: int, current: list[str], tag: str) -> None:
        if tag.lower() in (t.lower() for t in current):
            return
        self._patch(work_item_id, {"System.Tags": "; ".join([*current, tag])})

    # ---- operations ----------------------------------------------------
    def _fetch(self, work_item_id: int) -> NormalizedIssue:
        client = self.client
        self.logger.debug(
            f"GET workitems/{work_item_id}", provider=self.name, project=self.project
        )
        try:
            data = client.get_work_item(work_item_id)
        except NotFoundError as exc:
            raise NotFoundError(
                f"Azure DevOps work item {work_item_id} not found in "
                f"{self.organization}/{self.project}"
            ) from exc
        return normalize_work_item(data, fallback_url=client.web_url(work_item_id))

    def show(self, issue_id: int | str) -> ShowResult:
        work_item_id = parse_issue_id(issue_id)
        issue = self._fetch(work_item_id)
        self.logger.log_issue_action("show", self.name, work_item_id, project=self.project)
        return ShowResult(issue=issue, formatted=format_issue(issue, self.display))

    def close(self, issue_id: int | str, options: CloseOptions | None = None) -> ActionResult:
        options = options or CloseOptions()
        work_item_id = parse_issue_id(issue_id)
        issue = self._fetch(work_item_id)
        self.check_closable(issue)

        rec = self.recorder(work_item_id)
        target = provider_state_for("azure", "closed", close_state=self.close_state)
        label = issue.provider_type or "Work item"
        rec.core(
            "close",
            lambda: self._patch(work_item_id, {"System.State": target}),
            f"Closed {label.lower()} #{work_item_id} (state: {target})",
        )
        if options.comment:
            comment = options.comment
            rec.best_effort(
                "comment", lambda: self._comment(work_item_id, comment), "Added comment"
            )
        resolution = (options.resolution or "").strip() or None
        if resolution:
            rec.best_effort(
                "resolution",
                lambda: self._add_tag(work_item_id, issue.tags, f"resolution:{resolution}"),
                f"Added resolution: {resolution}",
            )
        if options.delete_branch:
            branch = self.branch_name(work_item_id)
            rec.best_effort("branch_delete", lambda: self._delete_branch(branch))

        rec.result.summary = {
            "id": work_item_id,
            "status": "closed",
            "resolution": resolution or "completed",
            "url": issue.url,
            "timestamp": utc_timestamp(),
        }
        self.logger.log_issue_action(
            "close", self.name, work_item_id, dry_run=self.dry_run, resolution=resolution
        )
        return rec.result

    def _delete_branch(self, branch: str) -> str:
        if self.dry_run:
            print(f"DRY-RUN git branch -d {branch}", file=sys.stderr)
            print(f"DRY-RUN git push {self.git.remote} --delete {branch}", file=sys.stderr)
            return f"Deleted branch {branch}"
        locations = self.git.delete_branch(branch)
        return f"Deleted branch {branch} ({', '.join(locations)})"

    def _iteration_path(self, sprint: str) -> str:
        sprint = sprint.strip().strip("\\")
        if sprint.lower().startswith(self.project.lower() + "\\"):
            return sprint
        return f"{self.project}\\{sprint}"

    def start(self, issue_id: int | str, options: StartOptions | None = None) -> ActionResult:
        options = options or StartOptions()
        work_item_id = parse_issue_id(issue_id)
        issue = self._fetch(work_item_id)
        self.check_startable(issue)

        rec = self.recorder(work_item_id)
        target = provider_state_for("azure", "in_progress", active_state=self.active_state)
        rec.core(
            "transition",
            lambda: self._patch(work_item_id, {"System.State": target}),
            f"Set state to {target}",
        )

        assigned: list[str] = []
        if options.assign or not issue.assignee:

            def _assign() -> str:
                user = self.user or self.client.current_user()
                if not user:
                    raise ProviderCommandError("could not determine the current Azure DevOps user")
                self._patch(work_item_id, {"System.AssignedTo": user})
                assigned.append(user)
                return f"Assigned to {user}"

            rec.best_effort("assign", _assign)
        assignee = assigned[0] if assigned else issue.assignee

        rec.best_effort(
            "tag",
            lambda: self._add_tag(work_item_id, issue.tags, IN_PROGRESS_TAG),
            f"Added tag: {IN_PROGRESS_TAG}",
        )

        if options.sprint:
            path = self._iteration_path(options.sprint)
            rec.best_effort(
                "sprint",
                lambda: self._patch(work_item_id, {"System.IterationPath": path}),
                f"Moved to iteration: {path}",
            )

        branch: str | None = None
        if options.create_branch:
            candidate = options.branch_name or self.branch_name(work_item_id)
            branch = self.start_branch(rec, candidate, lambda: self._create_branch(candidate))

        body = options.comment or self.default_start_comment(branch)
        rec.best_effort("comment", lambda: self._comment(work_item_id, body), "Added comment")

        rec.result.summary = {
            "id": work_item_id,
            "status": "in_progress",
            "branch": branch,
            "assignee": assignee,
            "sprint": options.sprint,
            "url": issue.url,
            "timestamp": utc_timestamp(),
        }
        self.logger.log_issue_action(
            "start", self.name, work_item_id, dry_run=self.dry_run, branch=branch
        )
        return rec.result

    def _create_branch(self, branch: str) -> None:
        if self.dry_run:
            print(f"DRY-RUN git checkout -b {branch}", file=sys.stderr)
            return
        self.git.create_branch(branch)


__all__ = ["AzureDevOpsProvider", "html_to_text", "normalize_work_item", "split_tags"]
