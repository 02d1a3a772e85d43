"""Provider-neutral issue operations.

Every adapter implements :class:`IssueProvider`. ``close`` and ``start``
share one shape: a pre-flight read, a mandatory core transition, then a series
of best-effort steps. Best-effort failures are captured as
:class:`~autopm.models.StepOutcome` entries instead of aborting the command;
a failure in the core transition propagates unchanged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from ..errors import (
    AuthenticationError,
    AutopmError,
    InvalidIdError,
    InvalidStateTransitionError,
)
from ..git import GitClient
from ..logging import get_logger
from ..models import ActionResult, NormalizedIssue, ShowResult, StepOutcome

IN_PROGRESS_TAG = "in-progress"
DRY_RUN_PREFIX = "[DRY-RUN] "


@dataclass
class CloseOptions:
    comment: str | None = None
    resolution: str | None = None
    delete_branch: bool = True


@dataclass
class StartOptions:
    comment: str | None = None
    assign: bool = False
    sprint: str | None = None
    create_branch: bool = True
    branch_name: str | None = None


def parse_issue_id(value: Any) -> int:
    """Coerce a CLI/user supplied id (``42`` or ``#42``) to a positive int."""
    text = str(value).strip().lstrip("#") if value is not None else ""
    if not text.isdigit() or int(text) <= 0:
        raise InvalidIdError(f"Issue id must be a positive integer, got {value!r}")
    return int(text)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class BranchExistsError(AutopmError):
    """The feature branch is already there; reported as a skipped step."""

    category = "git.branch_exists"


class StepRecorder:
    """Collects actions and outcomes for a single mutating command."""

    def __init__(self, provider: str, issue_id: int, *, dry_run: bool = False) -> None:
        self.provider = provider
        self.issue_id = issue_id
        self.dry_run = dry_run
        self.result = ActionResult(dry_run=dry_run)
        self._logger = get_logger()

    def _describe(self, action: str) -> str:
        return f"{DRY_RUN_PREFIX}{action}" if self.dry_run else action

    def core(self, step: str, fn: Callable[[], Any], action: str) -> None:
        """Run the mandatory transition. Errors propagate."""
        fn()
        self.result.outcomes.append(StepOutcome(step, True, required=True))
        self.result.actions.append(self._describe(action))

    def best_effort(
        self, step: str, fn: Callable[[], str | None], action: str | None = None
    ) -> bool:
        """Run an optional step, recording (not raising) any autopm failure.

        When ``action`` is omitted the string returned by ``fn`` is logged instead.
        """
        try:
            produced = fn()
        except AutopmError as exc:
            self.result.outcomes.append(StepOutcome(step, False, str(exc)))
            self._logger.warning(
                f"{step} skipped for {self.provider} #{self.issue_id}: {exc}",
                step=step,
                provider=self.provider,
                issue_id=self.issue_id,
            )
            return False
        text = action if action is not None else produced
        self.result.outcomes.append(StepOutcome(step, True, text or ""))
        if text:
            self.result.actions.append(self._describe(text))
        return True


class IssueProvider(ABC):
    """Shared interface of the GitHub and Azure DevOps adapters."""

    name: str = ""
    branch_kind: str = "issue"
    git: GitClient

    def __init__(self, *, dry_run: bool = False) -> None:
        self.dry_run = dry_run
        self.logger = get_logger()

    # ---- interface ---------------------------------------------------
    @abstractmethod
    def show(self, issue_id: int | str) -> ShowResult: ...

    @abstractmethod
    def close(self, issue_id: int | str, options: CloseOptions | None = None) -> ActionResult: ...

    @abstractmethod
    def start(self, issue_id: int | str, options: StartOptions | None = None) -> ActionResult: ...

    # ---- shared helpers ------------------------------------------------
    def branch_name(self, issue_id: int) -> str:
        return f"feature/{self.branch_kind}-{issue_id}"

    def require_token(self, token: str | None, variables: tuple[str, ...]) -> str:
        if not token:
            raise AuthenticationError(
                f"{self.name} credentials missing: set {' or '.join(variables)}"
            )
        return token

    def check_startable(self, issue: NormalizedIssue) -> None:
        if issue.is_terminal:
            raise InvalidStateTransitionError(
                f"Cannot start {self.name} #{issue.id}: it is already {issue.state}"
                + (f" ({issue.provider_state})" if issue.provider_state else "")
            )

    def check_closable(self, issue: NormalizedIssue) -> None:
        if issue.is_terminal:
            raise InvalidStateTransitionError(
                f"Cannot close {self.name} #{issue.id}: it is already {issue.state}"
                + (f" ({issue.provider_state})" if issue.provider_state else "")
            )

    def recorder(self, issue_id: int) -> StepRecorder:
        return StepRecorder(self.name, issue_id, dry_run=self.dry_run)

    def start_branch(
        self, rec: StepRecorder, candidate: str, create: Callable[[], None]
    ) -> str | None:
        """Create ``candidate`` as a best-effort step.

        Returns the branch to mention in the start comment: the new branch, an
        existing one of the same name, or ``None`` when creation failed.
        """
        existing: list[str] = []

        def _create() -> None:
            if self.git.branch_exists(candidate):
                existing.append(candidate)
                raise BranchExistsError(f"Branch {candidate} already exists")
            create()

        if rec.best_effort("branch", _create, f"Created branch {candidate}") or existing:
            return candidate
        return None

    def default_start_comment(self, branch: str | None) -> str:
        text = f"Work started at {utc_timestamp()}"
        if branch:
            text += f"\nBranch: {branch}"
        return text


__all__ = [
    "BranchExistsError",
    "CloseOptions",
    "DRY_RUN_PREFIX",
    "IN_PROGRESS_TAG",
    "IssueProvider",
    "StartOptions",
    "StepRecorder",
    "parse_issue_id",
    "utc_timestamp",
]
