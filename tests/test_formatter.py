from autopm.formatter import NO_DESCRIPTION, UNASSIGNED, DisplayConfig, format_issue
from autopm.models import IssueMetrics, NormalizedIssue


def _minimal(**overrides):
    data = dict(id=7, type="issue", title="Minimal", state="open", url="")
    data.update(overrides)
    return NormalizedIssue(**data)


def test_minimal_issue_uses_placeholders():
    text = format_issue(_minimal())

    assert "#7" in text
    assert UNASSIGNED in text
    assert NO_DESCRIPTION in text
    assert "**Priority:** Not set" in text
    assert "## Metrics" not in text
    assert "## Relationships" not in text
    assert "View: https://github.com/owner/repo/issues/7" in text


def test_full_azure_issue_rendering():
    issue = _minimal(
        id=123,
        type="issue",
        title="Checkout flow",
        state="in_progress",
        url="https://dev.azure.com/acme/Shop/_workitems/edit/123",
        description="Body text",
        assignee="Jane Doe",
        creator="John Roe",
        created_at="2024-01-01T00:00:00Z",
        updated_at="2024-01-02T00:00:00Z",
        tags=["backend", "api"],
        parent=100,
        children=[124, 125],
        metrics=IssueMetrics(story_points=5, remaining_work=2.5),
        provider="azure",
        provider_type="User Story",
        provider_state="Active",
        priority=2,
        iteration="Shop\\Sprint 4",
        area="Shop\\Payments",
    )

    text = format_issue(issue)

    assert text.startswith("# User Story #123: Checkout flow\n")
    assert "**Status:** in_progress (Active)" in text
    assert "**Assigned to:** Jane Doe" in text
    assert "**Priority:** 2" in text
    assert "**Iteration:** Shop\\Sprint 4" in text
    assert "**Tags:** backend, api" in text
    assert "- Story Points: 5" in text
    assert "- Remaining Work: 2.5" in text
    assert "Effort" not in text
    assert "- Parent: #100" in text
    assert "- Children: #124, #125" in text
    assert "Created: 2024-01-01T00:00:00Z | Updated: 2024-01-02T00:00:00Z | By: John Roe" in text
    assert text.rstrip().endswith("View: https://dev.azure.com/acme/Shop/_workitems/edit/123")


def test_status_parenthetical_hidden_when_equal():
    text = format_issue(_minimal(provider_state="OPEN"))
    assert "**Status:** open\n" in text


def test_fallback_url_uses_display_config():
    issue = _minimal(provider="azure")
    text = format_issue(issue, DisplayConfig(organization="acme", project="Shop"))
    assert "View: https://dev.azure.com/acme/Shop/_workitems/edit/7" in text


def test_format_is_deterministic():
    issue = _minimal(tags=["a"], description="x")
    assert format_issue(issue) == format_issue(issue)
