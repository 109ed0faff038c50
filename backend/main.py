"""FastAPI application entry point and composition root."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from backend.api.flashcard_router import router as flashcard_router
from backend.api.session_router import router as session_router
from backend.api.stats_router import router as stats_router
from backend.config import settings
from backend.database import async_session, engine
from backend.models import Base
from backend.persistence import SnapshotWriter, load_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables, load the store and wire its snapshot writer."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session() as db:
        store = await load_store(db, settings.snapshot_key)
    app.state.store = store
    app.state.writer = SnapshotWriter(store, settings.snapshot_key)
    yield
    async with async_session() as db:
        await app.state.writer.flush(db)
    app.state.writer.close()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    description="SM-2 flashcard scheduling for the LeeCo study extension",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=r"chrome-extension://.*|http://localhost(:\d+)?",
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(flashcard_router)
app.include_router(session_router)
app.include_router(stats_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Check database connectivity and return status."""
    async with async_session() as session:
        await session.execute(text("SELECT 1"))
    return {"status": "ok"}
