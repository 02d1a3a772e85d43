from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

NormalizedState = Literal["open", "in_progress", "in_review", "closed", "cancelled"]
NormalizedType = Literal["issue", "bug", "task", "epic", "feature"]

NORMALIZED_STATES: tuple[NormalizedState, ...] = (
    "open",
    "in_progress",
    "in_review",
    "closed",
    "cancelled",
)
NORMALIZED_TYPES: tuple[NormalizedType, ...] = ("issue", "bug", "task", "epic", "feature")
TERMINAL_STATES: frozenset[str] = frozenset({"closed", "cancelled"})


@dataclass
class IssueMetrics:
    story_points: float = 0
    effort: float = 0
    remaining_work: float = 0
    completed_work: float = 0

    def any(self) -> bool:
        return any((self.story_points, self.effort, self.remaining_work, self.completed_work))


@dataclass
class NormalizedIssue:
    """Provider-neutral read model built fresh on every ``show`` call.

    ``parent`` and ``children`` are ids only; nothing here owns or loads the
    referenced items.
    """

    id: int
    type: NormalizedType
    title: str
    state: NormalizedState
    url: str
    description: str | None = None
    assignee: str | None = None
    creator: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    tags: list[str] = field(default_factory=list)
    parent: int | None = None
    children: list[int] = field(default_factory=list)
    metrics: IssueMetrics = field(default_factory=IssueMetrics)
    provider: str = "github"
    provider_type: str | None = None
    provider_state: str | None = None
    priority: int | None = None
    iteration: str | None = None
    area: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "state": self.state,
            "assignee": self.assignee,
            "creator": self.creator,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "tags": list(self.tags),
            "parent": self.parent,
            "children": list(self.children),
            "metrics": asdict(self.metrics),
            "url": self.url,
            "provider": self.provider,
            "providerType": self.provider_type,
            "providerState": self.provider_state,
            "priority": self.priority,
            "iteration": self.iteration,
            "area": self.area,
        }


@dataclass
class ShowResult:
    issue: NormalizedIssue
    formatted: str

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.issue.to_dict(), "formatted": self.formatted}


@dataclass
class StepOutcome:
    """Result of one sub-step of a mutating command."""

    step: str
    ok: bool
    detail: str = ""
    required: bool = False


@dataclass
class ActionResult:
    actions: list[str] = field(default_factory=list)
    summary: dict[str, Any] = field(default_factory=dict)
    outcomes: list[StepOutcome] = field(default_factory=list)
    dry_run: bool = False

    @property
    def warnings(self) -> list[StepOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "actions": list(self.actions),
            "summary": dict(self.summary),
            "outcomes": [asdict(o) for o in self.outcomes],
            "dry_run": self.dry_run,
        }


__all__ = [
    "ActionResult",
    "IssueMetrics",
    "NORMALIZED_STATES",
    "NORMALIZED_TYPES",
    "NormalizedIssue",
    "NormalizedState",
    "NormalizedType",
    "ShowResult",
    "StepOutcome",
    "TERMINAL_STATES",
]
