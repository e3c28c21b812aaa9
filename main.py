import logging

from dotenv import load_dotenv

# Load environment variables from .env file before the database settings are read
load_dotenv()

from contextlib import asynccontextmanager  # noqa: E402

from fastapi import FastAPI  # noqa: E402

from issuable.database.config import engine, Base  # noqa: E402
from issuable.routes import issues_router, merge_requests_router  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    # Shutdown: Dispose of the engine
    await engine.dispose()

app = FastAPI(lifespan=lifespan)

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s | %(name)s | %(message)s",
)

app.include_router(issues_router)
app.include_router(merge_requests_router)
