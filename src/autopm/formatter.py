"""Terminal rendering of a normalized issue.

``format_issue`` is pure: the same issue and display config always produce
the same text, and missing optional fields degrade to placeholders.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import IssueMetrics, NormalizedIssue

UNASSIGNED = "Unassigned"
NO_DESCRIPTION = "_No description provided_"
NOT_SET = "Not set"


@dataclass(frozen=True)
class DisplayConfig:
    organization: str | None = None
    project: str | None = None
    repository: str | None = None  # owner/repo


def fallback_url(issue: NormalizedIssue, display: DisplayConfig) -> str:
    if issue.provider == "azure":
        org = display.organization or "organization"
        project = display.project or "project"
        return f"https://dev.azure.com/{org}/{project}/_workitems/edit/{issue.id}"
    repo = display.repository or "owner/repo"
    return f"https://github.com/{repo}/issues/{issue.id}"


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _metric_lines(metrics: IssueMetrics) -> list[str]:
    rows = (
        ("Story Points", metrics.story_points),
        ("Effort", metrics.effort),
        ("Remaining Work", metrics.remaining_work),
        ("Completed Work", metrics.completed_work),
    )
    return [f"- {label}: {_number(value)}" for label, value in rows if value]


def _ref(value: int) -> str:
    return f"#{value}"


def format_issue(issue: NormalizedIssue, display: DisplayConfig | None = None) -> str:
    display = display or DisplayConfig()
    label = issue.provider_type or issue.type.replace("_", " ").title()
    title = issue.title or "(untitled)"
    lines: list[str] = [f"# {label} #{issue.id}: {title}", ""]

    status = issue.state
    if issue.provider_state and issue.provider_state.lower() != issue.state:
        status = f"{issue.state} ({issue.provider_state})"
    lines.append(f"**Status:** {status}")
    lines.append(f"**Assigned to:** {issue.assignee or UNASSIGNED}")
    lines.append(f"**Priority:** {issue.priority if issue.priority is not None else NOT_SET}")
    if issue.iteration:
        lines.append(f"**Iteration:** {issue.iteration}")
    if issue.area:
        lines.append(f"**Area:** {issue.area}")
    if issue.tags:
        lines.append(f"**Tags:** {', '.join(issue.tags)}")

    if issue.metrics.any():
        lines.extend(["", "## Metrics", *_metric_lines(issue.metrics)])

    if issue.parent is not None or issue.children:
        lines.extend(["", "## Relationships"])
        if issue.parent is not None:
            lines.append(f"- Parent: {_ref(issue.parent)}")
        if issue.children:
            lines.append(f"- Children: {', '.join(_ref(c) for c in issue.children)}")

    description = (issue.description or "").strip()
    lines.extend(["", "## Description", description or NO_DESCRIPTION])

    lines.extend(["", "---"])
    stamps = []
    if issue.created_at:
        stamps.append(f"Created: {issue.created_at}")
    if issue.updated_at:
        stamps.append(f"Updated: {issue.updated_at}")
    if issue.creator:
        stamps.append(f"By: {issue.creator}")
    if stamps:
        lines.append(" | ".join(stamps))
    lines.append(f"View: {issue.url or fallback_url(issue, display)}")
    return "\n".join(lines) + "\n"


__all__ = ["DisplayConfig", "NO_DESCRIPTION", "UNASSIGNED", "fallback_url", "format_issue"]
