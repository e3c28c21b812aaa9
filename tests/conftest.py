import os

# The database settings are read at import time; keep tests off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SYNC_DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta, timezone  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from issuable.database.config import Base, get_db  # noqa: E402
from issuable.database.models import Issue, Milestone, Note, Project, User  # noqa: E402
from issuable.engine import AssigneeCacheInvalidator, AssigneeCountCache, IssuableService, assignee_counts  # noqa: E402
from issuable.routes import issues_router, merge_requests_router  # noqa: E402

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _enable_savepoints(sync_engine):
    # pysqlite defers BEGIN, which breaks SAVEPOINT; emit it ourselves
    @event.listens_for(sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture(autouse=True)
def clear_assignee_counts():
    assignee_counts.clear()
    yield
    assignee_counts.clear()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_savepoints(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def users(session):
    alice = User(name="Alice", username="alice")
    bob = User(name="Bob", username="bob")
    carol = User(name="Carol", username="carol")
    session.add_all([alice, bob, carol])
    session.commit()
    return alice, bob, carol


@pytest.fixture
def author(users):
    return users[0]


@pytest.fixture
def project(session):
    project = Project(name="web")
    session.add(project)
    session.commit()
    return project


@pytest.fixture
def cache():
    return AssigneeCountCache()


@pytest.fixture
def invalidator(cache):
    return MagicMock(wraps=AssigneeCacheInvalidator(cache))


@pytest.fixture
def service(session, invalidator):
    return IssuableService(session, Issue, invalidator=invalidator)


@pytest.fixture
def make_issue(session, project, author):
    """Insert an issue directly, bypassing the service.

    Each call is created one minute after the previous one.
    """
    counter = {"n": 0}

    def make(title="Issue", model=Issue, **attrs):
        counter["n"] += 1
        attrs.setdefault("project_id", project.id)
        attrs.setdefault("author_id", author.id)
        attrs.setdefault("state", "opened")
        attrs.setdefault("created_at", BASE_TIME + timedelta(minutes=counter["n"]))
        issuable = model(title=title, **attrs)
        session.add(issuable)
        session.commit()
        return issuable

    return make


@pytest.fixture
def make_milestone(session, project):
    def make(title="v1", due_date=None):
        milestone = Milestone(project_id=project.id, title=title, due_date=due_date)
        session.add(milestone)
        session.commit()
        return milestone

    return make


@pytest.fixture
def award(session, author):
    def add(issuable, name, count=1):
        notes = [
            Note(
                noteable_type=type(issuable).polymorphic_name(),
                noteable_id=issuable.id,
                author_id=author.id,
                note=name,
                is_award=True,
            )
            for _ in range(count)
        ]
        session.add_all(notes)
        session.commit()
        return notes

    return add


@pytest.fixture
def client():
    async_engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    _enable_savepoints(async_engine.sync_engine)
    session_factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    ready = {"done": False}

    async def override_get_db():
        if not ready["done"]:
            async with async_engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            async with session_factory() as session:
                session.add_all([
                    User(id=1, name="Alice", username="alice"),
                    User(id=2, name="Bob", username="bob"),
                    Project(id=1, name="web"),
                ])
                await session.commit()
            ready["done"] = True

        async with session_factory() as session:
            yield session

    app = FastAPI()
    app.include_router(issues_router)
    app.include_router(merge_requests_router)
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client
