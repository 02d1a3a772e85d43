"""Translation between provider vocabularies and the normalized vocabulary.

All functions here are pure. Unknown provider values never raise: states
fall back to ``open`` and types to ``issue`` so that an unexpected process
template or label scheme degrades display instead of crashing it.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import NormalizedState, NormalizedType

DEFAULT_STATE: NormalizedState = "open"
DEFAULT_TYPE: NormalizedType = "issue"

# Azure Agile / Scrum / Basic / CMMI process states plus GitHub issue states.
_STATE_MAP: dict[str, NormalizedState] = {
    "new": "open",
    "to do": "open",
    "todo": "open",
    "proposed": "open",
    "approved": "open",
    "open": "open",
    "reopened": "open",
    "active": "in_progress",
    "in progress": "in_progress",
    "in_progress": "in_progress",
    "committed": "in_progress",
    "doing": "in_progress",
    "resolved": "in_review",
    "in review": "in_review",
    "in_review": "in_review",
    "review": "in_review",
    "closed": "closed",
    "done": "closed",
    "completed": "closed",
    "removed": "cancelled",
    "cut": "cancelled",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "not planned": "cancelled",
    "not_planned": "cancelled",
}

_TYPE_MAP: dict[str, NormalizedType] = {
    "issue": "issue",
    "user story": "issue",
    "product backlog item": "issue",
    "requirement": "issue",
    "bug": "bug",
    "task": "task",
    "epic": "epic",
    "feature": "feature",
}

# label checks run in this order; first match wins
_LABEL_TYPES: tuple[tuple[str, NormalizedType], ...] = (
    ("epic", "epic"),
    ("feature", "feature"),
    ("bug", "bug"),
    ("task", "task"),
)

# Target provider states for the mutating commands.
AZURE_CLOSE_STATE = "Closed"
AZURE_ACTIVE_STATE = "Active"
_GITHUB_STATES: dict[str, str] = {
    "open": "open",
    "in_progress": "open",
    "in_review": "open",
    "closed": "closed",
    "cancelled": "closed",
}

_RELATION_ID = re.compile(r"/workitems/(\d+)/?(?:[?#].*)?$", re.IGNORECASE)
_PARENT_REF = re.compile(
    r"^\s*(?:parent|part of(?: epic)?)\s*:?\s*#(\d+)\b", re.IGNORECASE | re.MULTILINE
)
_CHILD_REF = re.compile(r"^\s*[-*]\s*\[[ xX]\]\s*#(\d+)\b", re.MULTILINE)


def _key(value: str | None) -> str:
    return " ".join((value or "").strip().lower().split())


def map_state(provider_state: str | None) -> NormalizedState:
    return _STATE_MAP.get(_key(provider_state), DEFAULT_STATE)


def map_type(provider_type: str | None) -> NormalizedType:
    return _TYPE_MAP.get(_key(provider_type), DEFAULT_TYPE)


def map_labels_to_type(labels: Iterable[str]) -> NormalizedType:
    keys = {_key(lbl) for lbl in labels}
    for label, normalized in _LABEL_TYPES:
        if label in keys or f"type:{label}" in keys:
            return normalized
    return DEFAULT_TYPE


def extract_id_from_relation_url(url: str | None) -> int | None:
    """Return the trailing work item id of a relation URL, or None.

    ``None`` means "no related item"; callers must not treat it as a failure.
    """
    if not url or not isinstance(url, str):
        return None
    match = _RELATION_ID.search(url.strip())
    if not match:
        return None
    return int(match.group(1))


def extract_parent_reference(body: str | None) -> int | None:
    """Parse ``Parent: #N`` / ``Part of #N`` / ``Part of Epic #N`` references."""
    if not body:
        return None
    match = _PARENT_REF.search(body)
    return int(match.group(1)) if match else None


def extract_child_references(body: str | None) -> list[int]:
    """Parse task-list entries (``- [ ] #N``) in order, without duplicates."""
    if not body:
        return []
    seen: list[int] = []
    for raw in _CHILD_REF.findall(body):
        number = int(raw)
        if number not in seen:
            seen.append(number)
    return seen


def provider_state_for(
    provider: str,
    normalized: NormalizedState,
    *,
    close_state: str = AZURE_CLOSE_STATE,
    active_state: str = AZURE_ACTIVE_STATE,
) -> str:
    """Reverse lookup: the provider state written for a normalized target."""
    if provider == "github":
        return _GITHUB_STATES[normalized]
    if normalized in ("closed", "cancelled"):
        return close_state if normalized == "closed" else "Removed"
    if normalized == "in_progress":
        return active_state
    if normalized == "in_review":
        return "Resolved"
    return "New"


__all__ = [
    "AZURE_ACTIVE_STATE",
    "AZURE_CLOSE_STATE",
    "DEFAULT_STATE",
    "DEFAULT_TYPE",
    "extract_child_references",
    "extract_id_from_relation_url",
    "extract_parent_reference",
    "map_labels_to_type",
    "map_state",
    "map_type",
    "provider_state_for",
]
