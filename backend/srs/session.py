"""Review session records.

A session groups the cards chosen for one sitting. The store owns the
active session, its card-id snapshot and the cursor; this module only
holds the record and its reporting counters.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class ReviewSession:
    """Aggregate record for one review sitting."""

    id: str
    started_at: datetime
    completed_at: datetime | None = None
    flashcards_reviewed: int = 0
    correct_answers: int = 0
    average_response_time_ms: float = 0.0
    total_response_time_ms: int = 0
    timed_reviews: int = 0

    @classmethod
    def start(cls, now: datetime) -> ReviewSession:
        return cls(id=f"session_{int(now.timestamp() * 1000)}", started_at=now)

    @property
    def is_active(self) -> bool:
        return self.completed_at is None

    @property
    def accuracy(self) -> float:
        """Session accuracy as a fraction (1.0 before any review)."""
        if not self.flashcards_reviewed:
            return 1.0
        return self.correct_answers / self.flashcards_reviewed

    def record_review(self, passed: bool, response_time_ms: int | None = None) -> None:
        """Update running counters after a card in this session is reviewed."""
        self.flashcards_reviewed += 1
        if passed:
            self.correct_answers += 1
        if response_time_ms is not None:
            self.timed_reviews += 1
            self.total_response_time_ms += response_time_ms
            self.average_response_time_ms = self.total_response_time_ms / self.timed_reviews

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "flashcards_reviewed": self.flashcards_reviewed,
            "correct_answers": self.correct_answers,
            "average_response_time_ms": self.average_response_time_ms,
            "total_response_time_ms": self.total_response_time_ms,
            "timed_reviews": self.timed_reviews,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReviewSession:
        completed = data.get("completed_at")
        return cls(
            id=data["id"],
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(completed) if completed else None,
            flashcards_reviewed=data.get("flashcards_reviewed", 0),
            correct_answers=data.get("correct_answers", 0),
            average_response_time_ms=data.get("average_response_time_ms", 0.0),
            total_response_time_ms=data.get("total_response_time_ms", 0),
            timed_reviews=data.get("timed_reviews", 0),
        )
