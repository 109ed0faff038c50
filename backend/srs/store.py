"""Flashcard store: the collection, SM-2 reviews and the review session.

The store is a plain object owned by whoever composes the application
(the FastAPI lifespan or a CLI command) and handed to collaborators. It is
synchronous and single-writer: every operation runs to completion and
replaces the affected state in one step. Persistence and AI generation are
async collaborators that call into it before or after their own I/O.

After each mutation the store notifies subscribed listeners with a
``StoreEvent`` so a collaborator can snapshot the whole state; the store
itself never touches storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from backend.config import local_midnight, utcnow
from backend.srs.flashcard import CardSpec, Flashcard, card_spec_from_payload
from backend.srs.session import ReviewSession
from backend.srs.sm2 import (
    DEFAULT_EASE_FACTOR,
    ScheduleResult,
    calculate_next_review,
    is_passing,
    validate_quality,
)

logger = logging.getLogger(__name__)

# Fields callers may change through update_flashcard. Scheduling state
# (counters, ease, interval, review dates) only changes through reviews.
EDITABLE_FIELDS = frozenset(
    {
        "front",
        "back",
        "card_type",
        "difficulty",
        "tags",
        "source_note_id",
        "source_platform",
        "source_url",
    }
)

MASTERY_MIN_REVIEWS = 5
MASTERY_MIN_EASE = 2.5

SNAPSHOT_VERSION = 1


@dataclass(frozen=True)
class StoreEvent:
    """Change notification emitted after every mutation."""

    kind: str  # added, updated, deleted, reviewed, session_started, navigated, session_ended
    card_ids: tuple[str, ...] = ()


Listener = Callable[[StoreEvent], None]


@dataclass(frozen=True)
class FlashcardStats:
    """On-demand statistics over the whole collection."""

    total: int
    due_today: int
    reviewed_today: int
    mastered_cards: int
    average_ease_factor: float


class FlashcardStore:
    """Owns the flashcard collection and the (single) review session."""

    def __init__(self, flashcards: Iterable[Flashcard] = ()) -> None:
        self._flashcards: list[Flashcard] = list(flashcards)  # newest first
        self._session: ReviewSession | None = None
        self._session_cards: tuple[str, ...] = ()
        self._cursor = 0
        self._listeners: list[Listener] = []

    # --- Notifications ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: str, card_ids: Iterable[str] = ()) -> None:
        event = StoreEvent(kind=kind, card_ids=tuple(card_ids))
        for listener in list(self._listeners):
            listener(event)

    # --- Read access ---

    @property
    def flashcards(self) -> tuple[Flashcard, ...]:
        return tuple(self._flashcards)

    def __len__(self) -> int:
        return len(self._flashcards)

    def get_flashcard(self, card_id: str) -> Flashcard | None:
        index = self._index_of(card_id)
        return self._flashcards[index] if index is not None else None

    def _index_of(self, card_id: str) -> int | None:
        for i, card in enumerate(self._flashcards):
            if card.id == card_id:
                return i
        return None

    # --- CRUD ---

    def add_flashcard(self, spec: CardSpec | dict[str, Any], now: datetime | None = None) -> Flashcard:
        """Create one card, due immediately, at the front of the collection."""
        card = Flashcard.create(card_spec_from_payload(spec), now or utcnow())
        self._flashcards.insert(0, card)
        logger.debug("Added card %s", card.id)
        self._notify("added", [card.id])
        return card

    def add_flashcards(
        self,
        specs: Iterable[CardSpec | dict[str, Any]],
        now: datetime | None = None,
    ) -> list[Flashcard]:
        """Create several cards in one update, prepended in input order.

        Every spec is validated before any card is added.
        """
        now = now or utcnow()
        cards = [Flashcard.create(card_spec_from_payload(spec), now) for spec in specs]
        if not cards:
            return []
        self._flashcards[:0] = cards
        logger.info("Added %d cards", len(cards))
        self._notify("added", [card.id for card in cards])
        return cards

    def update_flashcard(self, card_id: str, **changes: Any) -> Flashcard | None:
        """Apply a partial update of author fields. No-op for unknown ids.

        Raises:
            TypeError: If a field outside EDITABLE_FIELDS is named.
            InvalidCardPayloadError: If a new value doesn't validate.
        """
        rejected = set(changes) - EDITABLE_FIELDS
        if rejected:
            raise TypeError(f"Cannot update field(s): {', '.join(sorted(rejected))}")

        index = self._index_of(card_id)
        if index is None:
            logger.debug("Update skipped, no card %s", card_id)
            return None

        card = self._flashcards[index]
        current = {name: getattr(card, name) for name in EDITABLE_FIELDS}
        spec = card_spec_from_payload({**current, **changes})
        updated = card.with_changes(**{name: getattr(spec, name) for name in EDITABLE_FIELDS})
        self._flashcards[index] = updated
        self._notify("updated", [card_id])
        return updated

    def delete_flashcard(self, card_id: str) -> bool:
        """Remove a card. Returns False (and does nothing) for unknown ids.

        The active session's id snapshot is left untouched, so a deleted
        card leaves a dangling id there; ``current_card`` returns None for it.
        """
        index = self._index_of(card_id)
        if index is None:
            return False
        del self._flashcards[index]
        self._notify("deleted", [card_id])
        return True

    # --- Reviews ---

    def review_flashcard(
        self,
        card_id: str,
        quality: int,
        now: datetime | None = None,
        response_time_ms: int | None = None,
    ) -> Flashcard | None:
        """Apply an SM-2 review to a card. No-op for unknown ids.

        Args:
            card_id: The card being reviewed.
            quality: Recall quality, 0-5.
            now: When the review happened (defaults to utcnow).
            response_time_ms: Optional answer time, fed to session stats.

        Returns:
            The updated card, or None if no card has that id.

        Raises:
            InvalidQualityError: If quality is not an integer in [0, 5].
        """
        validate_quality(quality)
        now = now or utcnow()

        index = self._index_of(card_id)
        if index is None:
            logger.debug("Review skipped, no card %s", card_id)
            return None

        card = self._flashcards[index]
        result: ScheduleResult = calculate_next_review(
            quality, card.review_count, card.interval_days, card.ease_factor, now=now
        )
        passed = is_passing(quality)
        updated = card.with_changes(
            last_reviewed=now,
            next_review_date=result.next_review_date,
            review_count=card.review_count + 1,
            correct_count=card.correct_count + 1 if passed else card.correct_count,
            interval_days=result.interval_days,
            ease_factor=result.ease_factor,
        )
        self._flashcards[index] = updated

        if self._session is not None and card_id in self._session_cards:
            self._session.record_review(passed, response_time_ms)

        logger.debug(
            "Reviewed %s: q=%d interval %d->%d ease %.2f->%.2f",
            card_id,
            quality,
            card.interval_days,
            updated.interval_days,
            card.ease_factor,
            updated.ease_factor,
        )
        self._notify("reviewed", [card_id])
        return updated

    # --- Review session ---

    @property
    def current_session(self) -> ReviewSession | None:
        return self._session

    @property
    def session_cards(self) -> tuple[str, ...]:
        return self._session_cards

    @property
    def current_card_index(self) -> int:
        return self._cursor

    @property
    def current_card_id(self) -> str | None:
        if not self._session_cards:
            return None
        return self._session_cards[self._cursor]

    def current_card(self) -> Flashcard | None:
        """The card under the cursor, or None when idle or the card was deleted."""
        card_id = self.current_card_id
        return self.get_flashcard(card_id) if card_id is not None else None

    def start_review_session(
        self,
        card_ids: Iterable[str] | None = None,
        now: datetime | None = None,
    ) -> ReviewSession:
        """Start a session over the given cards, or over all due cards.

        Explicit ids that don't match a card are dropped; order is kept.
        An empty selection still starts a session. Starting while another
        session is active discards that session's cursor and record.
        """
        now = now or utcnow()
        if card_ids is None:
            selected = [card.id for card in self.get_due_cards(now)]
        else:
            known = {card.id for card in self._flashcards}
            selected = [card_id for card_id in card_ids if card_id in known]

        if self._session is not None:
            logger.info("Discarding active session %s", self._session.id)

        self._session = ReviewSession.start(now)
        self._session_cards = tuple(selected)
        self._cursor = 0
        logger.info("Started session %s: %d cards", self._session.id, len(selected))
        self._notify("session_started", selected)
        return self._session

    def next_card(self) -> int:
        """Advance the cursor, clamped to the last card. Returns the cursor."""
        return self._move_cursor(1)

    def previous_card(self) -> int:
        """Move the cursor back, clamped to the first card. Returns the cursor."""
        return self._move_cursor(-1)

    def _move_cursor(self, step: int) -> int:
        if not self._session_cards:
            return self._cursor
        target = max(0, min(self._cursor + step, len(self._session_cards) - 1))
        if target != self._cursor:
            self._cursor = target
            self._notify("navigated", [self._session_cards[target]])
        return self._cursor

    def end_review_session(self, now: datetime | None = None) -> ReviewSession | None:
        """Stamp the session complete and clear the snapshot and cursor.

        Returns the completed record, or None if no session was active.
        """
        session = self._session
        if session is None:
            return None
        session.completed_at = now or utcnow()
        self._session = None
        self._session_cards = ()
        self._cursor = 0
        logger.info(
            "Ended session %s: %d reviewed, %d correct",
            session.id,
            session.flashcards_reviewed,
            session.correct_answers,
        )
        self._notify("session_ended")
        return session

    # --- Filtering ---

    def get_due_cards(self, now: datetime | None = None) -> list[Flashcard]:
        now = now or utcnow()
        return [card for card in self._flashcards if card.is_due(now)]

    def get_cards_by_tag(self, tags: Iterable[str]) -> list[Flashcard]:
        """Cards carrying at least one of the given tags."""
        wanted = set(tags)
        return [card for card in self._flashcards if wanted.intersection(card.tags)]

    def get_cards_with_all_tags(self, tags: Iterable[str]) -> list[Flashcard]:
        """Cards carrying every given tag. No tags selects the whole collection."""
        wanted = set(tags)
        return [card for card in self._flashcards if wanted.issubset(card.tags)]

    def due_card_ids_for_tags(self, tags: Iterable[str], now: datetime | None = None) -> list[str]:
        """Ids of due cards matching any of the tags, for tag-scoped sessions."""
        now = now or utcnow()
        return [card.id for card in self.get_cards_by_tag(tags) if card.is_due(now)]

    def all_tags(self) -> list[str]:
        return sorted({tag for card in self._flashcards for tag in card.tags})

    # --- Statistics ---

    def get_stats(self, now: datetime | None = None, tz_name: str | None = None) -> FlashcardStats:
        now = now or utcnow()
        today = local_midnight(now, tz_name)
        cards = self._flashcards

        if cards:
            average_ease = sum(card.ease_factor for card in cards) / len(cards)
        else:
            average_ease = DEFAULT_EASE_FACTOR

        return FlashcardStats(
            total=len(cards),
            due_today=sum(1 for card in cards if card.is_due(now)),
            reviewed_today=sum(
                1 for card in cards if card.last_reviewed is not None and card.last_reviewed >= today
            ),
            mastered_cards=sum(
                1
                for card in cards
                if card.review_count >= MASTERY_MIN_REVIEWS and card.ease_factor >= MASTERY_MIN_EASE
            ),
            average_ease_factor=round(average_ease, 2),
        )

    # --- Snapshot ---

    def to_dict(self) -> dict[str, Any]:
        """Serialize the whole collection and session state."""
        return {
            "version": SNAPSHOT_VERSION,
            "flashcards": [card.to_dict() for card in self._flashcards],
            "current_session": self._session.to_dict() if self._session else None,
            "session_cards": list(self._session_cards),
            "current_card_index": self._cursor,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlashcardStore:
        store = cls(Flashcard.from_dict(item) for item in data.get("flashcards", []))
        session = data.get("current_session")
        if session:
            store._session = ReviewSession.from_dict(session)
            store._session_cards = tuple(data.get("session_cards", []))
            last = max(0, len(store._session_cards) - 1)
            store._cursor = max(0, min(int(data.get("current_card_index", 0)), last))
        return store
