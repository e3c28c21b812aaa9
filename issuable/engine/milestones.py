"""Ordering by milestone due date with undated issuables always last."""

from issuable.database.models import Milestone

MILESTONE_SORTS = ("milestone_due_asc", "milestone_due_desc")


def references_milestone(sort) -> bool:
    return sort in MILESTONE_SORTS


def join_milestones(stmt, model):
    return stmt.outerjoin(Milestone, model.milestone_id == Milestone.id)


def order_clauses(descending: bool = False):
    """ORDER BY terms: no milestone, then undated milestone, then the date."""
    due_date = Milestone.due_date.desc() if descending else Milestone.due_date.asc()
    return [
        Milestone.id.is_(None),
        Milestone.due_date.is_(None),
        due_date,
    ]


def sort_key(issuable, descending: bool = False):
    """In-memory equivalent of ``order_clauses`` for loaded issuables.

    Ties fall back to the newest issuable first, matching the SQL tie-break.
    """
    milestone = issuable.milestone
    if milestone is None:
        return (1, 1, 0, -issuable.id)
    if milestone.due_date is None:
        return (0, 1, 0, -issuable.id)
    ordinal = milestone.due_date.toordinal()
    return (0, 0, -ordinal if descending else ordinal, -issuable.id)
