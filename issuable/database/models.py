from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import declared_attr, relationship, validates

from issuable.database.config import Base, LABEL_DEFAULT_COLOR
from issuable.errors import ValidationError

TITLE_MAX_LENGTH = 255


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    username = Column(String(255), nullable=False, unique=True)
    email = Column(String(255), nullable=True)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    archived = Column(Boolean, nullable=False, default=False)


class Milestone(Base):
    __tablename__ = "milestones"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    due_date = Column(Date, nullable=True)


class Label(Base):
    """A project-scoped label; titles are unique within a project."""

    __tablename__ = "labels"
    __table_args__ = (
        UniqueConstraint("project_id", "title", name="uq_labels_project_title"),
    )

    DEFAULT_COLOR = LABEL_DEFAULT_COLOR

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    color = Column(String(7), nullable=False, default=LABEL_DEFAULT_COLOR)


class LabelLink(Base):
    """Attaches a label to any issuable, keyed by (target_type, target_id)."""

    __tablename__ = "label_links"
    __table_args__ = (
        UniqueConstraint("label_id", "target_type", "target_id", name="uq_label_links_target"),
        Index("ix_label_links_target", "target_type", "target_id"),
    )

    id = Column(Integer, primary_key=True)
    label_id = Column(Integer, ForeignKey("labels.id", ondelete="CASCADE"), nullable=False)
    target_type = Column(String(40), nullable=False)
    target_id = Column(Integer, nullable=False)


class Note(Base):
    """A comment or award reaction attached to any issuable.

    Award notes carry the reaction name (``thumbsup``, ``thumbsdown``...) in
    ``note``; system notes are generated by the application.
    """

    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_noteable", "noteable_type", "noteable_id"),
    )

    id = Column(Integer, primary_key=True)
    noteable_type = Column(String(40), nullable=False)
    noteable_id = Column(Integer, nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    note = Column(Text, nullable=False, default="")
    is_award = Column(Boolean, nullable=False, default=False)
    system = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utc_now)


class IssuableMixin:
    """Columns and relationships shared by every issuable table."""

    id = Column(Integer, primary_key=True)
    title = Column(String(TITLE_MAX_LENGTH), nullable=False)
    description = Column(Text, nullable=True)
    state = Column(String(20), nullable=False, default="opened")
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, onupdate=_utc_now)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @declared_attr
    def project_id(cls):
        return Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def author_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=False)

    @declared_attr
    def assignee_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    @declared_attr
    def updated_by_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True)

    @declared_attr
    def milestone_id(cls):
        return Column(Integer, ForeignKey("milestones.id", ondelete="SET NULL"), nullable=True, index=True)

    @declared_attr
    def project(cls):
        return relationship("Project")

    @declared_attr
    def author(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.author_id")

    @declared_attr
    def assignee(cls):
        return relationship("User", foreign_keys=f"{cls.__name__}.assignee_id")

    @declared_attr
    def milestone(cls):
        return relationship("Milestone")

    @validates("title")
    def validate_title(self, key, value):
        # Surrounding whitespace never counts towards the title
        title = value.strip() if isinstance(value, str) else value
        if not title:
            raise ValidationError("title", "can't be blank")
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError("title", f"is too long (maximum is {TITLE_MAX_LENGTH} characters)")
        return title

    @classmethod
    def polymorphic_name(cls) -> str:
        """Value stored in ``label_links.target_type`` and ``notes.noteable_type``."""
        return cls.__name__

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id}, title={self.title!r}, state={self.state!r})>"


@event.listens_for(IssuableMixin, "before_insert", propagate=True)
def _stamp_timestamps(mapper, connection, target):
    # A freshly created issuable has never been updated
    if target.created_at is None:
        target.created_at = _utc_now()
    if target.updated_at is None:
        target.updated_at = target.created_at


class Issue(IssuableMixin, Base):
    __tablename__ = "issues"


class MergeRequest(IssuableMixin, Base):
    __tablename__ = "merge_requests"

    source_branch = Column(String(255), nullable=True)
    target_branch = Column(String(255), nullable=True)

