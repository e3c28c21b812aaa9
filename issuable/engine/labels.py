"""Label matching and attach/detach for issuables.

Labels belong to a project and are shared by every issuable in it, so
detaching never deletes the label itself.
"""

import logging

from sqlalchemy import and_, delete, distinct, func, select
from sqlalchemy.exc import IntegrityError

from issuable.database.models import Label, LabelLink, Milestone
from issuable.engine.milestones import references_milestone
from issuable.errors import ConcurrencyConflict
from issuable.schemas import NONE

logger = logging.getLogger(__name__)

LABEL_CREATE_ATTEMPTS = 3


def matches(label_titles, required) -> bool:
    """In-memory label filter.

    ``required`` of ``None`` or an empty collection does not filter, ``"none"``
    matches only unlabelled issuables, anything else needs every name present.
    """
    if required == NONE:
        return not label_titles
    if not required:
        return True
    return set(required) <= set(label_titles)


def _links_of(issuable):
    return and_(
        LabelLink.target_type == type(issuable).polymorphic_name(),
        LabelLink.target_id == issuable.id,
    )


def link_join_condition(model):
    return and_(
        LabelLink.target_type == model.polymorphic_name(),
        LabelLink.target_id == model.id,
    )


def label_names(session, issuable) -> list[str]:
    """Titles of the attached labels, alphabetically."""
    stmt = (
        select(Label.title)
        .join(LabelLink, LabelLink.label_id == Label.id)
        .where(_links_of(issuable))
        .order_by(Label.title.asc())
    )
    return list(session.scalars(stmt))


def _find_label(session, project_id: int, title: str):
    return session.scalars(
        select(Label).where(Label.project_id == project_id, Label.title == title)
    ).first()


def _create_label(session, project_id: int, title: str) -> Label:
    label = Label(project_id=project_id, title=title, color=Label.DEFAULT_COLOR)
    try:
        # SAVEPOINT so a lost race only rolls back this insert
        with session.begin_nested():
            session.add(label)
    except IntegrityError as exc:
        raise ConcurrencyConflict(f"label {title!r} already exists in project {project_id}") from exc
    return label


def find_or_create_label(session, project_id: int, title: str) -> Label:
    """Return the project's label called ``title``, creating it if needed.

    Another writer may create the same label between our lookup and insert;
    the unique constraint rejects the second insert and we read theirs. If
    the label still cannot be read after ``LABEL_CREATE_ATTEMPTS`` tries the
    store's ``IntegrityError`` is raised.
    """
    error = None
    for attempt in range(1, LABEL_CREATE_ATTEMPTS + 1):
        label = _find_label(session, project_id, title)
        if label is not None:
            return label

        try:
            label = _create_label(session, project_id, title)
        except ConcurrencyConflict as conflict:
            logger.info(
                f"Label {title!r} created concurrently, looking it up again",
                extra={"project_id": project_id, "label": title, "attempt": attempt},
            )
            error = conflict.__cause__
            continue

        logger.info(
            f"Created label {title!r}",
            extra={"project_id": project_id, "label_id": label.id},
        )
        return label

    raise error


def _is_attached(session, issuable, label) -> bool:
    link_id = session.scalar(
        select(LabelLink.id).where(_links_of(issuable), LabelLink.label_id == label.id)
    )
    return link_id is not None


def attach(session, issuable, label) -> bool:
    """Link ``label`` to ``issuable`` unless it already is. Returns True if linked."""
    if _is_attached(session, issuable, label):
        return False

    link = LabelLink(
        label_id=label.id,
        target_type=type(issuable).polymorphic_name(),
        target_id=issuable.id,
    )
    try:
        with session.begin_nested():
            session.add(link)
    except IntegrityError:
        # Another writer linked the same label first
        logger.info(
            f"Label {label.title!r} already attached to {type(issuable).__name__} {issuable.id}",
            extra={"issuable_id": issuable.id, "label_id": label.id},
        )
        return False
    return True


def add_labels_by_names(session, issuable, names) -> list[Label]:
    """Attach labels by title, creating missing project labels.

    Names are stripped and blanks skipped; attaching a name that is already
    attached does nothing. Does not commit.
    """
    if issuable.id is None:
        session.flush()

    attached = []
    seen = set()
    for name in names:
        title = name.strip()
        if not title or title in seen:
            continue
        seen.add(title)

        label = find_or_create_label(session, issuable.project_id, title)
        attach(session, issuable, label)
        attached.append(label)

    return attached


def remove_labels(session, issuable) -> int:
    """Detach every label from ``issuable``. Returns the number of links removed."""
    result = session.execute(
        delete(LabelLink).where(_links_of(issuable)).execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def grouping_columns(model, sort=None) -> list:
    """GROUP BY columns for aggregated issuable queries.

    Milestone columns are included when the ordering uses them, since
    PostgreSQL rejects ORDER BY on columns that are neither grouped nor
    aggregated.
    """
    columns = [model.id]
    if references_milestone(sort):
        columns.extend([Milestone.id, Milestone.due_date])
    return columns


def filter_with_label(stmt, model, titles):
    """Join labels and restrict to ``titles``.

    Returns ``(stmt, having)``: for more than one title ``having`` is the
    clause requiring all of them and the caller must group the statement.
    """
    titles = sorted(titles)
    stmt = stmt.join(LabelLink, link_join_condition(model)).join(
        Label, LabelLink.label_id == Label.id
    )
    if len(titles) == 1:
        return stmt.where(Label.title == titles[0]), None

    stmt = stmt.where(Label.title.in_(titles))
    return stmt, func.count(distinct(Label.title)) == len(titles)


def filter_without_label(stmt, model):
    stmt = stmt.outerjoin(LabelLink, link_join_condition(model))
    return stmt.where(LabelLink.id.is_(None))
