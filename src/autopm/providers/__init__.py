"""Issue provider adapters (GitHub Issues, Azure DevOps work items)."""

from __future__ import annotations

from .azure import AzureDevOpsProvider
from .base import CloseOptions, IssueProvider, StartOptions, StepRecorder, parse_issue_id
from .github import GitHubProvider

__all__ = [
    "AzureDevOpsProvider",
    "CloseOptions",
    "GitHubProvider",
    "IssueProvider",
    "StartOptions",
    "StepRecorder",
    "parse_issue_id",
]
