"""Compose filters and orderings over issuables into one SELECT.

``IssuableQuery`` wraps an immutable ``IssuableFilter``; each scope method
returns a new query with one more field set, and every set field is ANDed
into the statement. Nothing runs until ``all``/``ids`` is called with a
session, so queries can be built once and resolved concurrently.

    IssuableQuery(Issue).opened().with_label(["bug", "ui"]).sort("upvotes_desc").all(session)
"""

import logging

from sqlalchemy import select

from issuable.database.models import Milestone, Project
from issuable.engine import labels, milestones, votes
from issuable.schemas import ANY, NONE, IssuableFilter, IssuableState

logger = logging.getLogger(__name__)

DEFAULT_SORT = "recent"

VOTE_SORTS = {
    "upvotes_desc": votes.UPVOTE,
    "downvotes_desc": votes.DOWNVOTE,
}

# sort key -> (column name, descending)
FIELD_SORTS = {
    "recent": ("id", True),
    "id_desc": ("id", True),
    "id_asc": ("id", False),
    "created_desc": ("created_at", True),
    "created_asc": ("created_at", False),
    "updated_desc": ("updated_at", True),
    "updated_asc": ("updated_at", False),
    "title_desc": ("title", True),
    "title_asc": ("title", False),
}


def resolve_sort(key) -> str:
    """Normalise a requested sort key; unknown keys fall back to ``recent``."""
    if not key:
        return DEFAULT_SORT
    key = str(key)
    if key in milestones.MILESTONE_SORTS or key in VOTE_SORTS or key in FIELD_SORTS:
        return key
    logger.debug(f"Unknown sort {key!r}, using {DEFAULT_SORT}", extra={"sort": key})
    return DEFAULT_SORT


def like_pattern(query: str) -> str:
    """``%query%`` with LIKE wildcards in ``query`` matched literally."""
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _id_of(user_or_id):
    return getattr(user_or_id, "id", user_or_id)


def _ids_of(values) -> frozenset:
    if isinstance(values, (int, str)) or hasattr(values, "id"):
        values = [values]
    return frozenset(_id_of(value) for value in values)


class IssuableQuery:
    def __init__(self, model, filter: IssuableFilter = None):
        self.model = model
        self.filter = filter if filter is not None else IssuableFilter()

    def __repr__(self):
        return f"<IssuableQuery({self.model.__name__}, {self.filter!r})>"

    def _narrow(self, **changes) -> "IssuableQuery":
        return IssuableQuery(self.model, self.filter.model_copy(update=changes))

    # Scopes

    def authored(self, user):
        return self._narrow(author_id=_id_of(user))

    def assigned_to(self, user):
        return self._narrow(assignee_id=_id_of(user))

    def assigned(self):
        return self._narrow(assignee_id=ANY)

    def unassigned(self):
        return self._narrow(assignee_id=NONE)

    def of_projects(self, ids):
        return self._narrow(project_ids=_ids_of(ids))

    def of_milestones(self, ids):
        return self._narrow(milestone_ids=_ids_of(ids))

    def with_milestone(self, title: str):
        return self._narrow(milestone_title=title)

    def opened(self):
        return self._narrow(states=frozenset({IssuableState.OPENED, IssuableState.REOPENED}))

    def only_opened(self):
        return self._narrow(states=frozenset({IssuableState.OPENED}))

    def only_reopened(self):
        return self._narrow(states=frozenset({IssuableState.REOPENED}))

    def closed(self):
        return self._narrow(states=frozenset({IssuableState.CLOSED}))

    def without_label(self):
        return self._narrow(label_names=NONE)

    def with_label(self, titles, sort=None):
        if isinstance(titles, str):
            titles = [titles]
        query = self._narrow(label_names=frozenset(titles))
        return query.sort(sort) if sort is not None else query

    def non_archived(self):
        return self._narrow(non_archived=True)

    def search(self, query: str):
        """Case-insensitive substring match on the title."""
        return self._narrow(search=query, in_description=False)

    def full_search(self, query: str):
        """Case-insensitive substring match on the title or the description."""
        return self._narrow(search=query, in_description=True)

    def recent(self):
        return self._narrow(sort=DEFAULT_SORT)

    def sort(self, key):
        return self._narrow(sort=key)

    # Resolution

    @property
    def resolved_sort(self) -> str:
        return resolve_sort(self.filter.sort)

    def _text_clause(self, query: str, in_description: bool):
        pattern = like_pattern(query)
        clause = self.model.title.ilike(pattern, escape="\\")
        if in_description:
            clause = clause | self.model.description.ilike(pattern, escape="\\")
        return clause

    def _field_order(self, sort: str) -> list:
        column_name, descending = FIELD_SORTS[sort]
        column = getattr(self.model, column_name)
        return [column.desc() if descending else column.asc()]

    def statement(self, *columns):
        """Build the SELECT for this query.

        Selects whole issuables unless ``columns`` are given. Issuables that
        are soft-deleted never match.
        """
        model, f = self.model, self.filter
        sort = self.resolved_sort

        stmt = select(*(columns or (model,))).where(model.deleted_at.is_(None))
        group_by = []
        having = None

        if f.search:
            stmt = stmt.where(self._text_clause(f.search, f.in_description))

        if f.label_names == NONE:
            stmt = labels.filter_without_label(stmt, model)
        elif f.label_names:
            titles = {name.strip() for name in f.label_names if name.strip()}
            if titles:
                stmt, having = labels.filter_with_label(stmt, model, titles)

        if f.assignee_id == NONE:
            stmt = stmt.where(model.assignee_id.is_(None))
        elif f.assignee_id == ANY:
            stmt = stmt.where(model.assignee_id.is_not(None))
        elif f.assignee_id is not None:
            stmt = stmt.where(model.assignee_id == f.assignee_id)

        if f.author_id is not None:
            stmt = stmt.where(model.author_id == f.author_id)
        if f.milestone_ids:
            stmt = stmt.where(model.milestone_id.in_(sorted(f.milestone_ids)))
        if f.project_ids:
            stmt = stmt.where(model.project_id.in_(sorted(f.project_ids)))
        if f.states:
            stmt = stmt.where(model.state.in_(sorted(state.value for state in f.states)))

        if f.non_archived:
            stmt = stmt.join(Project, model.project_id == Project.id).where(
                Project.archived.is_(False)
            )

        if milestones.references_milestone(sort) or f.milestone_title is not None:
            stmt = milestones.join_milestones(stmt, model)
            if f.milestone_title is not None:
                stmt = stmt.where(Milestone.title == f.milestone_title)

        if milestones.references_milestone(sort):
            order = milestones.order_clauses(descending=sort == "milestone_due_desc")
        elif sort in VOTE_SORTS:
            stmt, order = votes.order_votes_desc(stmt, model, VOTE_SORTS[sort])
            group_by = labels.grouping_columns(model, sort)
        else:
            order = self._field_order(sort)

        if having is not None:
            group_by = labels.grouping_columns(model, sort)
            stmt = stmt.having(having)
        if group_by:
            stmt = stmt.group_by(*group_by)

        if sort not in ("recent", "id_desc", "id_asc"):
            order.append(model.id.desc())

        return stmt.order_by(*order)

    def all(self, session) -> list:
        """Matching issuables, in order."""
        return list(session.scalars(self.statement()))

    def ids(self, session) -> list[int]:
        return list(session.scalars(self.statement(self.model.id)))

    async def all_async(self, session) -> list:
        result = await session.execute(self.statement())
        return list(result.scalars().all())

