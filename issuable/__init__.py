"""Issuable query and consistency engine.

Shared behaviour for issues and merge requests:
- Composable filtering and sorting (text, labels, assignee, milestone, votes)
- Idempotent label attach/detach
- opened/reopened/closed lifecycle
- Assignee counter invalidation after ownership changes
- SQLAlchemy ORM with sync and async sessions
"""
