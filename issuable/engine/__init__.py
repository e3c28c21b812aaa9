"""Query, label, vote and lifecycle logic shared by every issuable model."""

from issuable.engine.assignees import (
    AssigneeCacheInvalidator,
    AssigneeCountCache,
    assignee_counts,
    default_invalidator,
)
from issuable.engine.query import IssuableQuery, resolve_sort
from issuable.engine.service import IssuableService

__all__ = [
    "AssigneeCacheInvalidator",
    "AssigneeCountCache",
    "IssuableQuery",
    "IssuableService",
    "assignee_counts",
    "default_invalidator",
    "resolve_sort",
]
