"""Key-value blob table holding serialized flashcard stores."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin


class StoreSnapshot(Base, TimestampMixin):
    """The whole store, serialized to JSON and rewritten on every save."""

    __tablename__ = "store_snapshots"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)  # JSON document
