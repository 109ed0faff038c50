"""Pydantic schemas for API request/response models."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from backend.srs.flashcard import Flashcard
from backend.srs.session import ReviewSession
from backend.srs.store import FlashcardStats

# --- Flashcards ---


class FlashcardResponse(BaseModel):
    """A flashcard with its scheduling state."""

    id: str
    front: str
    back: str
    type: str
    difficulty: str
    tags: list[str]
    source_note_id: str | None = None
    source_platform: str | None = None
    source_url: str | None = None
    created_at: datetime
    last_reviewed: datetime | None = None
    next_review_date: datetime
    review_count: int
    correct_count: int
    interval_days: int
    ease_factor: float

    @classmethod
    def from_card(cls, card: Flashcard) -> "FlashcardResponse":
        return cls(
            id=card.id,
            front=card.front,
            back=card.back,
            type=card.card_type.value,
            difficulty=card.difficulty.value,
            tags=list(card.tags),
            source_note_id=card.source_note_id,
            source_platform=card.source_platform.value if card.source_platform else None,
            source_url=card.source_url,
            created_at=card.created_at,
            last_reviewed=card.last_reviewed,
            next_review_date=card.next_review_date,
            review_count=card.review_count,
            correct_count=card.correct_count,
            interval_days=card.interval_days,
            ease_factor=card.ease_factor,
        )


class FlashcardUpdateRequest(BaseModel):
    """Partial update of author fields; omitted fields are left alone."""

    front: str | None = None
    back: str | None = None
    type: str | None = None
    difficulty: str | None = None
    tags: list[str] | None = None
    source_note_id: str | None = None
    source_platform: str | None = None
    source_url: str | None = None

    def changes(self) -> dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        if "type" in data:
            data["card_type"] = data.pop("type")
        return data


class GenerateRequest(BaseModel):
    """Request to generate flashcards from a passage of text."""

    content: str
    count: int | None = Field(default=None, ge=1)
    tags: list[str] = Field(default_factory=list)
    source_platform: str | None = None
    source_url: str | None = None
    source_note_id: str | None = None


class ImportRequest(BaseModel):
    data: dict[str, Any]
    mode: Literal["merge", "replace"] = "merge"


class ImportResponse(BaseModel):
    imported: int
    removed: int
    errors: list[str]
    message: str


# --- Session ---


class SessionStartRequest(BaseModel):
    """Start a session over explicit cards, due cards for some tags, or all due cards."""

    card_ids: list[str] | None = None
    tags: list[str] | None = None


class SessionResponse(BaseModel):
    """The session record plus cursor state."""

    session_id: str
    started_at: datetime
    completed_at: datetime | None = None
    total_cards: int
    current_card_index: int
    flashcards_reviewed: int
    correct_answers: int
    average_response_time_ms: float

    @classmethod
    def from_session(
        cls,
        session: ReviewSession,
        total_cards: int = 0,
        current_card_index: int = 0,
    ) -> "SessionResponse":
        return cls(
            session_id=session.id,
            started_at=session.started_at,
            completed_at=session.completed_at,
            total_cards=total_cards,
            current_card_index=current_card_index,
            flashcards_reviewed=session.flashcards_reviewed,
            correct_answers=session.correct_answers,
            average_response_time_ms=session.average_response_time_ms,
        )


class CurrentCardResponse(BaseModel):
    """The card under the session cursor. ``card`` is null for a deleted card."""

    card_id: str
    index: int
    total_cards: int
    card: FlashcardResponse | None = None


class ReviewRequest(BaseModel):
    quality: int = Field(ge=0, le=5)  # 0=blackout ... 5=perfect
    response_time_ms: int | None = Field(default=None, ge=0)


# --- Stats ---


class StatsResponse(BaseModel):
    """Collection-wide statistics."""

    total: int
    due_today: int
    reviewed_today: int
    mastered_cards: int  # review_count >= 5 and ease >= 2.5
    average_ease_factor: float

    @classmethod
    def from_stats(cls, stats: FlashcardStats) -> "StatsResponse":
        return cls(
            total=stats.total,
            due_today=stats.due_today,
            reviewed_today=stats.reviewed_today,
            mastered_cards=stats.mastered_cards,
            average_ease_factor=stats.average_ease_factor,
        )
