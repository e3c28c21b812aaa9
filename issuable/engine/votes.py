"""Vote tallies derived from award notes."""

from sqlalchemy import and_, distinct, func, select

from issuable.database.models import Note

UPVOTE = "thumbsup"
DOWNVOTE = "thumbsdown"


def _notes_of(issuable):
    return and_(
        Note.noteable_type == type(issuable).polymorphic_name(),
        Note.noteable_id == issuable.id,
    )


def tally(session, issuable, award_name: str) -> int:
    """Count award notes on ``issuable`` named exactly ``award_name``."""
    stmt = select(func.count(Note.id)).where(
        _notes_of(issuable),
        Note.is_award.is_(True),
        Note.note == award_name,
    )
    return session.scalar(stmt) or 0


def upvotes(session, issuable) -> int:
    return tally(session, issuable, UPVOTE)


def downvotes(session, issuable) -> int:
    return tally(session, issuable, DOWNVOTE)


def user_notes_count(session, issuable) -> int:
    """Ordinary comments: neither awards nor system notes."""
    stmt = select(func.count(Note.id)).where(
        _notes_of(issuable),
        Note.is_award.is_(False),
        Note.system.is_(False),
    )
    return session.scalar(stmt) or 0


def award_join_condition(model, award_name: str):
    return and_(
        Note.noteable_id == model.id,
        Note.noteable_type == model.polymorphic_name(),
        Note.is_award.is_(True),
        Note.note == award_name,
    )


def vote_count_column():
    # DISTINCT keeps the count right when other joins (labels) fan rows out
    return func.count(distinct(Note.id))


def order_votes_desc(stmt, model, award_name: str):
    """Order ``stmt`` by the number of ``award_name`` awards, highest first.

    Outer join, so issuables without any award stay in the result with a
    count of zero and sort last. Returns ``(stmt, order_by_clauses)``; the
    caller adds ``GROUP BY`` on the issuable id.
    """
    stmt = stmt.outerjoin(Note, award_join_condition(model, award_name))
    return stmt, [vote_count_column().desc()]
