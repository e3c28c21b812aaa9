"""Read-only helpers used by display and permission code."""

import re
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import inspect


def _utc_date(value: datetime) -> date:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date()


def _utc_today() -> date:
    return datetime.now(tz=timezone.utc).date()


def is_today(issuable, today: Optional[date] = None) -> bool:
    """Created on the current UTC day."""
    return _utc_date(issuable.created_at) == (today or _utc_today())


def is_new_today(issuable, today: Optional[date] = None) -> bool:
    """Created today (UTC) and never updated since."""
    return is_today(issuable, today) and issuable.created_at == issuable.updated_at


def is_assigned(issuable) -> bool:
    return issuable.assignee_id is not None


def is_being_reassigned(issuable) -> bool:
    """The assignee was changed in memory and not yet flushed."""
    return inspect(issuable).attrs.assignee_id.history.has_changes()


def author_name(issuable):
    return issuable.author.name


def author_email(issuable):
    return issuable.author.email


def assignee_name(issuable):
    return issuable.assignee.name if issuable.assignee is not None else None


def assignee_email(issuable):
    return issuable.assignee.email if issuable.assignee is not None else None


def card_attributes(issuable) -> dict:
    return {
        "Author": author_name(issuable),
        "Assignee": assignee_name(issuable),
    }


def to_ability_name(issuable) -> str:
    """``MergeRequest`` -> ``merge_request``."""
    name = issuable if isinstance(issuable, type) else type(issuable)
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name.__name__).lower()


def can_move(issuable, *args) -> bool:
    return False
