"""FastAPI dependencies for the application-owned store and its writer."""

from fastapi import Request

from backend.persistence import SnapshotWriter
from backend.srs.store import FlashcardStore


def get_store(request: Request) -> FlashcardStore:
    """Return the store composed in the application lifespan."""
    return request.app.state.store


def get_writer(request: Request) -> SnapshotWriter:
    return request.app.state.writer
