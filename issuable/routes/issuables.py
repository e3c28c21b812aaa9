from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from issuable.database.config import get_db
from issuable.engine import IssuableQuery, IssuableService
from issuable.errors import NotFoundError, ValidationError
from issuable.schemas import (
    ANY,
    NONE,
    IssuableCreate,
    IssuableFilter,
    IssuableResponse,
    IssuableState,
    IssuableUpdate,
    LabelsPayload,
    VotesResponse,
)


async def _run(db: AsyncSession, model, operation, *args):
    """Run ``operation(service, *args)`` on the sync side of ``db``."""

    def call(session):
        return operation(IssuableService(session, model), *args)

    try:
        return await db.run_sync(call)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"field": exc.field, "message": exc.message},
        ) from exc


def _parse_assignee(value: Optional[str]):
    if value is None or value in (NONE, ANY):
        return value
    if value.isdigit():
        return int(value)
    raise HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"field": "assignee_id", "message": "must be an id, 'none' or 'any'"},
    )


def build_router(model, prefix: str, tag: str) -> APIRouter:
    """CRUD, lifecycle, label and vote endpoints for one issuable model."""
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.get("/", response_model=list[IssuableResponse])
    async def list_issuables(
        search: Optional[str] = None,
        in_description: bool = False,
        labels: Optional[str] = None,
        assignee_id: Optional[str] = None,
        author_id: Optional[int] = None,
        milestone_id: Optional[list[int]] = Query(None),
        milestone_title: Optional[str] = None,
        project_id: Optional[list[int]] = Query(None),
        state: Optional[list[IssuableState]] = Query(None),
        non_archived: bool = False,
        sort: Optional[str] = None,
        db: AsyncSession = Depends(get_db),
    ):
        """List issuables matching every supplied filter, in ``sort`` order."""
        issuable_filter = IssuableFilter(
            search=search,
            in_description=in_description,
            label_names=labels,
            assignee_id=_parse_assignee(assignee_id),
            author_id=author_id,
            milestone_ids=milestone_id,
            milestone_title=milestone_title,
            project_ids=project_id,
            states=state,
            non_archived=non_archived,
            sort=sort,
        )
        return await IssuableQuery(model, issuable_filter).all_async(db)

    @router.get("/{issuable_id}", response_model=IssuableResponse, status_code=status.HTTP_200_OK)
    async def get_issuable(issuable_id: int, db: AsyncSession = Depends(get_db)):
        return await _run(db, model, IssuableService.get, issuable_id)

    @router.post("/", response_model=IssuableResponse, status_code=status.HTTP_201_CREATED)
    async def create_issuable(payload: IssuableCreate, db: AsyncSession = Depends(get_db)):
        def create(service):
            return service.create(**payload.model_dump())

        return await _run(db, model, create)

    @router.put("/{issuable_id}", response_model=IssuableResponse, status_code=status.HTTP_200_OK)
    async def update_issuable(
        issuable_id: int, payload: IssuableUpdate, db: AsyncSession = Depends(get_db)
    ):
        """Update the fields present in the body; ``"assignee_id": null`` unassigns."""

        def update(service):
            issuable = service.get(issuable_id)
            return service.update(issuable, payload.model_dump(exclude_unset=True))

        return await _run(db, model, update)

    @router.post("/{issuable_id}/close", response_model=IssuableResponse)
    async def close_issuable(issuable_id: int, db: AsyncSession = Depends(get_db)):
        def close(service):
            issuable = service.get(issuable_id)
            service.close(issuable)
            return issuable

        return await _run(db, model, close)

    @router.post("/{issuable_id}/reopen", response_model=IssuableResponse)
    async def reopen_issuable(issuable_id: int, db: AsyncSession = Depends(get_db)):
        def reopen(service):
            issuable = service.get(issuable_id)
            service.reopen(issuable)
            return issuable

        return await _run(db, model, reopen)

    @router.get("/{issuable_id}/labels", response_model=list[str])
    async def list_labels(issuable_id: int, db: AsyncSession = Depends(get_db)):
        def label_names(service):
            return service.label_names(service.get(issuable_id))

        return await _run(db, model, label_names)

    @router.post("/{issuable_id}/labels", response_model=list[str])
    async def add_labels(
        issuable_id: int, payload: LabelsPayload, db: AsyncSession = Depends(get_db)
    ):
        """Attach labels by name, creating missing project labels."""

        def add(service):
            return service.add_labels_by_names(service.get(issuable_id), payload.names)

        return await _run(db, model, add)

    @router.delete("/{issuable_id}/labels", status_code=status.HTTP_204_NO_CONTENT)
    async def remove_labels(issuable_id: int, db: AsyncSession = Depends(get_db)):
        def remove(service):
            service.remove_labels(service.get(issuable_id))

        await _run(db, model, remove)

    @router.get("/{issuable_id}/votes", response_model=VotesResponse)
    async def get_votes(issuable_id: int, db: AsyncSession = Depends(get_db)):
        def votes(service):
            return service.votes(service.get(issuable_id))

        return await _run(db, model, votes)

    return router
