from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from issuable.database.models import TITLE_MAX_LENGTH

# Sentinels accepted by the label and assignee filters
NONE = "none"
ANY = "any"


def _strip(value):
    # Length limits apply to the title as stored, without surrounding whitespace
    return value.strip() if isinstance(value, str) else value


class IssuableState(str, Enum):
    OPENED = "opened"
    REOPENED = "reopened"
    CLOSED = "closed"


class IssuableFilter(BaseModel):
    """Filter and sort request resolved by ``IssuableQuery``.

    Every supplied field narrows the result; fields left as ``None`` do not
    filter at all.
    """

    model_config = ConfigDict(frozen=True)

    search: Optional[str] = None
    in_description: bool = False
    label_names: Union[Literal["none"], frozenset[str], None] = None
    assignee_id: Union[int, Literal["none", "any"], None] = None
    author_id: Optional[int] = None
    milestone_ids: Optional[frozenset[int]] = None
    milestone_title: Optional[str] = None
    project_ids: Optional[frozenset[int]] = None
    states: Optional[frozenset[IssuableState]] = None
    non_archived: bool = False
    sort: Optional[str] = None

    @field_validator("label_names", mode="before")
    @classmethod
    def split_label_names(cls, value):
        # "bug,ui" from a query string becomes {"bug", "ui"}
        if isinstance(value, str) and value != NONE:
            return frozenset(name.strip() for name in value.split(",") if name.strip())
        return value


class IssuableCreate(BaseModel):
    title: str = Field(min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    project_id: int
    author_id: int
    assignee_id: Optional[int] = None
    milestone_id: Optional[int] = None
    label_names: list[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return _strip(value)


class IssuableUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = None
    assignee_id: Optional[int] = None
    milestone_id: Optional[int] = None
    updated_by_id: Optional[int] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return _strip(value)


class LabelsPayload(BaseModel):
    names: list[str]


class IssuableResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    state: IssuableState
    project_id: int
    author_id: int
    assignee_id: Optional[int] = None
    milestone_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class VotesResponse(BaseModel):
    upvotes: int
    downvotes: int
    user_notes_count: int
