import json

import pytest
from conftest import FakeRunner, failure

from autopm.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    InvalidIdError,
    InvalidStateTransitionError,
    MalformedResponseError,
    NotFoundError,
)
from autopm.git import GitClient
from autopm.providers import CloseOptions, GitHubProvider, StartOptions
from autopm.providers.github import normalize_github_issue

REPO = "acme/widgets"
MUTATING = ("close", "edit", "comment")


def _issue(**overrides):
    payload = {
        "number": 42,
        "title": "Fix login",
        "body": "Login fails on Safari.\n\nPart of #7\n- [ ] #43",
        "state": "OPEN",
        "stateReason": "",
        "labels": [{"name": "bug"}, {"name": "priority:1"}],
        "assignees": [],
        "author": {"login": "octocat"},
        "createdAt": "2024-03-01T10:00:00Z",
        "updatedAt": "2024-03-02T10:00:00Z",
        "url": "https://github.com/acme/widgets/issues/42",
        "milestone": {"title": "Sprint 3"},
    }
    payload.update(overrides)
    return json.dumps(payload)


def _provider(responses=None, *, git_responses=None, token="ghp_test", dry_run=False):
    runner = FakeRunner({("gh", "issue", "view"): _issue(), **(responses or {})})
    git_runner = FakeRunner(git_responses or {("git", "rev-parse"): failure("")})
    provider = GitHubProvider(
        REPO,
        token=token,
        dry_run=dry_run,
        runner=runner,
        git=GitClient(runner=git_runner),
    )
    return provider, runner, git_runner


def _mutations(runner):
    return [c for c in runner.calls if c[1] == "issue" and c[2] in MUTATING]


def test_show_normalizes_and_formats():
    provider, runner, _ = _provider()
    result = provider.show("#42")

    issue = result.issue
    assert issue.id == 42
    assert issue.type == "bug"
    assert issue.state == "open"
    assert issue.provider == "github"
    assert issue.priority == 1
    assert issue.iteration == "Sprint 3"
    assert issue.parent == 7
    assert issue.children == [43]
    assert issue.creator == "octocat"
    assert "# Bug #42: Fix login" in result.formatted
    assert "Unassigned" in result.formatted
    assert runner.calls[0][:4] == ["gh", "issue", "view", "42"]
    assert runner.calls[0][-2:] == ["-R", REPO]


def test_close_with_duplicate_resolution():
    provider, runner, git_runner = _provider()
    result = provider.close(42, CloseOptions(resolution="duplicate"))

    assert result.actions[0] == "Closed issue #42"
    assert "Added resolution: duplicate" in result.actions
    assert any(a.startswith("Deleted branch feature/issue-42") for a in result.actions)
    assert result.summary["status"] == "closed"
    assert result.summary["resolution"] == "duplicate"
    assert result.summary["id"] == 42
    assert result.warnings == []

    close_cmd = runner.commands("gh", "issue", "close")[0]
    assert close_cmd[close_cmd.index("--reason") + 1] == "not planned"
    label_cmd = runner.commands("gh", "issue", "edit")[0]
    assert "resolution:duplicate" in label_cmd
    assert ["git", "branch", "-d", "feature/issue-42"] in git_runner.calls


def test_close_with_comment_completes():
    provider, runner, _ = _provider()
    result = provider.close(42, CloseOptions(comment="Shipped in 1.2", delete_branch=False))

    assert result.actions == ["Closed issue #42", "Added comment"]
    assert result.summary["resolution"] == "completed"
    close_cmd = runner.commands("gh", "issue", "close")[0]
    assert close_cmd[close_cmd.index("--reason") + 1] == "completed"
    comment = runner.commands("gh", "issue", "comment")[0]
    assert "Shipped in 1.2" in comment


def test_close_missing_issue_raises_not_found_without_mutation():
    provider, runner, git_runner = _provider(
        {
            ("gh", "issue", "view"): failure(
                "GraphQL: Could not resolve to an issue or pull request with the number of 999. (repository.issue)"
            )
        }
    )
    with pytest.raises(NotFoundError, match="#999"):
        provider.close(999, CloseOptions(resolution="fixed"))
    assert _mutations(runner) == []
    assert git_runner.calls == []


def test_close_already_closed_is_invalid_transition():
    provider, runner, _ = _provider({("gh", "issue", "view"): _issue(state="CLOSED")})
    with pytest.raises(InvalidStateTransitionError):
        provider.close(42)
    assert _mutations(runner) == []


def test_start_on_closed_issue_makes_no_mutating_call():
    provider, runner, git_runner = _provider(
        {("gh", "issue", "view"): _issue(state="CLOSED", stateReason="COMPLETED")}
    )
    with pytest.raises(InvalidStateTransitionError, match="already closed"):
        provider.start(42)
    assert _mutations(runner) == []
    assert not [c for c in git_runner.calls if c[1] in ("checkout", "push")]


def test_missing_token_fails_before_any_call():
    provider, runner, _ = _provider(token=None)
    with pytest.raises(AuthenticationError, match="GITHUB_TOKEN"):
        provider.show(42)
    assert runner.calls == []


def test_invalid_id_fails_before_any_call():
    provider, runner, _ = _provider()
    for bad in ("abc", "0", "-3", ""):
        with pytest.raises(InvalidIdError):
            provider.show(bad)
    assert runner.calls == []


def test_start_assigns_branches_comments_and_sets_milestone():
    provider, runner, git_runner = _provider()
    result = provider.start(42, StartOptions(sprint="Sprint 4"))

    assert result.actions[0].startswith("Marked issue #42 as in progress")
    assert "Assigned to @me" in result.actions
    assert "Created branch feature/issue-42" in result.actions
    assert "Added comment" in result.actions
    assert "Moved to milestone: Sprint 4" in result.actions
    assert result.summary["status"] == "in_progress"
    assert result.summary["branch"] == "feature/issue-42"
    assert result.summary["assignee"] == "@me"

    edits = runner.commands("gh", "issue", "edit")
    assert any("in-progress" in c for c in edits)
    assert any("@me" in c for c in edits)
    assert any("Sprint 4" in c for c in edits)
    comment = runner.commands("gh", "issue", "comment")[0]
    assert "feature/issue-42" in comment[comment.index("--body") + 1]
    assert ["git", "checkout", "-b", "feature/issue-42"] in git_runner.calls


def test_start_keeps_existing_assignee_and_branch():
    provider, runner, _ = _provider(
        {("gh", "issue", "view"): _issue(assignees=[{"login": "dev1"}])},
        git_responses={("git", "rev-parse"): "abc"},
    )
    result = provider.start(42, StartOptions(comment="On it"))

    assert not any("@me" in c for c in runner.commands("gh", "issue", "edit"))
    assert result.summary["assignee"] == "dev1"
    assert result.summary["branch"] == "feature/issue-42"
    skipped = [o for o in result.warnings if o.step == "branch"]
    assert skipped and "already exists" in skipped[0].detail


def test_start_without_git_still_reports_core_transition():
    provider, runner, _ = _provider(
        git_responses={("git",): ConfigurationError("Executable not found: git")}
    )
    result = provider.start(42)

    assert result.actions[0].startswith("Marked issue #42 as in progress")
    assert any("in-progress" in c for c in runner.commands("gh", "issue", "edit"))
    assert result.summary["branch"] is None
    failed = [o for o in result.warnings if o.step == "branch"]
    assert failed and "Executable not found" in failed[0].detail
    assert "Added comment" in result.actions


def test_best_effort_failure_is_reported_not_raised():
    provider, _, _ = _provider(
        {("gh", "issue", "comment"): failure("HTTP 403: Resource not accessible by integration")}
    )
    result = provider.close(42, CloseOptions(comment="bye", delete_branch=False))

    assert result.actions == ["Closed issue #42"]
    assert [o.step for o in result.warnings] == ["comment"]
    assert result.summary["status"] == "closed"


def test_core_transition_failure_propagates():
    provider, _, _ = _provider({("gh", "issue", "close"): failure("HTTP 403: forbidden")})
    with pytest.raises(AuthorizationError):
        provider.close(42)


def test_dry_run_reads_but_does_not_mutate(capsys):
    provider, runner, git_runner = _provider(dry_run=True)
    result = provider.close(42, CloseOptions(resolution="fixed"))

    assert result.dry_run is True
    assert _mutations(runner) == []
    assert runner.commands("gh", "issue", "view")
    assert git_runner.calls == []
    assert result.actions[0] == "[DRY-RUN] Closed issue #42"
    assert all(a.startswith("[DRY-RUN] ") for a in result.actions)
    err = capsys.readouterr().err
    assert "DRY-RUN gh issue close 42" in err
    assert "DRY-RUN git branch -d feature/issue-42" in err


def test_malformed_view_output():
    provider, _, _ = _provider({("gh", "issue", "view"): "not json"})
    with pytest.raises(MalformedResponseError):
        provider.show(42)
    provider, _, _ = _provider({("gh", "issue", "view"): json.dumps({"number": 42})})
    with pytest.raises(MalformedResponseError):
        provider.show(42)


def test_normalize_states_from_reason_and_labels():
    cancelled = normalize_github_issue(json.loads(_issue(state="CLOSED", stateReason="NOT_PLANNED")))
    assert cancelled.state == "cancelled"
    assert cancelled.provider_state == "CLOSED"

    progress = normalize_github_issue(json.loads(_issue(labels=[{"name": "in-progress"}])))
    assert progress.state == "in_progress"
    assert progress.type == "issue"
    assert progress.provider_type == "Issue"

    review = normalize_github_issue(json.loads(_issue(labels=["in-review", "epic"])))
    assert review.state == "in_review"
    assert review.type == "epic"
