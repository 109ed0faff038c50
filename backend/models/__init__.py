"""SQLAlchemy ORM models for the flashcard database."""

from backend.models.base import Base
from backend.models.snapshot import StoreSnapshot

__all__ = ["Base", "StoreSnapshot"]
