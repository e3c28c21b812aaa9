"""Mutation path for issuables.

Every write that can move an assignee's counters goes through here so the
invalidator runs exactly once, after the commit.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from issuable.database.models import Milestone, Project, User
from issuable.engine import labels, state, votes
from issuable.engine.assignees import default_invalidator
from issuable.errors import NotFoundError, ValidationError
from issuable.schemas import IssuableState

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "assignee_id", "milestone_id", "updated_by_id")


class IssuableService:
    """Create, update and transition issuables of one model through a sync Session."""

    def __init__(self, session, model, invalidator=None):
        self.session = session
        self.model = model
        self.invalidator = invalidator or default_invalidator

    def get(self, issuable_id: int):
        issuable = self.session.scalars(
            select(self.model).where(
                self.model.id == issuable_id,
                self.model.deleted_at.is_(None),
            )
        ).first()
        if issuable is None:
            raise NotFoundError(self.model.__name__, issuable_id)
        return issuable

    def _require(self, model, identifier):
        if identifier is not None and self.session.get(model, identifier) is None:
            raise NotFoundError(model.__name__, identifier)

    def _commit(self, issuable, action: str):
        issuable_id = issuable.id
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            logger.error(
                f"Failed to {action} {self.model.__name__} {issuable_id}",
                extra={"issuable_id": issuable_id, "action": action},
                exc_info=True,
            )
            raise

    def create(self, title, project_id, author_id, description=None,
               assignee_id=None, milestone_id=None, label_names=()):
        if author_id is None:
            raise ValidationError("author", "can't be blank")
        if self.session.get(User, author_id) is None:
            raise ValidationError("author", "does not exist")
        self._require(Project, project_id)
        self._require(User, assignee_id)
        self._require(Milestone, milestone_id)

        issuable = self.model(
            title=title,
            description=description,
            project_id=project_id,
            author_id=author_id,
            assignee_id=assignee_id,
            milestone_id=milestone_id,
            state=IssuableState.OPENED.value,
        )
        self.session.add(issuable)
        try:
            self.session.flush()
            if label_names:
                labels.add_labels_by_names(self.session, issuable, label_names)
        except SQLAlchemyError:
            self.session.rollback()
            raise
        self._commit(issuable, "create")

        logger.info(
            f"Created {self.model.__name__} {issuable.id}",
            extra={"issuable_id": issuable.id, "project_id": project_id},
        )
        if issuable.assignee_id is not None:
            self.invalidator.assignee_changed(None, issuable.assignee_id)
        return issuable

    def update(self, issuable, changes: dict):
        """Apply ``changes`` (a subset of ``UPDATABLE_FIELDS``) and commit.

        An explicit ``assignee_id`` of ``None`` unassigns.
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not updatable")
        if "assignee_id" in changes:
            self._require(User, changes["assignee_id"])
        if "milestone_id" in changes:
            self._require(Milestone, changes["milestone_id"])

        previous_assignee_id = issuable.assignee_id
        try:
            for field, value in changes.items():
                setattr(issuable, field, value)
        except ValidationError:
            self.session.rollback()
            raise
        self._commit(issuable, "update")

        if issuable.assignee_id != previous_assignee_id:
            self.invalidator.assignee_changed(previous_assignee_id, issuable.assignee_id)
        return issuable

    def _transition(self, issuable, event: str) -> bool:
        if not state.fire(issuable, event):
            return False
        self._commit(issuable, event)

        logger.info(
            f"{self.model.__name__} {issuable.id} is now {issuable.state}",
            extra={"issuable_id": issuable.id, "event": event},
        )
        self.invalidator.state_changed(issuable.assignee_id)
        return True

    def close(self, issuable) -> bool:
        return self._transition(issuable, "close")

    def reopen(self, issuable) -> bool:
        return self._transition(issuable, "reopen")

    def add_labels_by_names(self, issuable, names) -> list[str]:
        labels.add_labels_by_names(self.session, issuable, names)
        self._commit(issuable, "label")
        return labels.label_names(self.session, issuable)

    def remove_labels(self, issuable) -> int:
        removed = labels.remove_labels(self.session, issuable)
        self._commit(issuable, "unlabel")
        return removed

    def label_names(self, issuable) -> list[str]:
        return labels.label_names(self.session, issuable)

    def votes(self, issuable) -> dict:
        return {
            "upvotes": votes.upvotes(self.session, issuable),
            "downvotes": votes.downvotes(self.session, issuable),
            "user_notes_count": votes.user_notes_count(self.session, issuable),
        }
