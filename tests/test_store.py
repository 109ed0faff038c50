"""Tests for flashcard CRUD, reviews, notifications and snapshots."""

from datetime import datetime, timedelta

import pytest

from backend.srs.flashcard import CardType, Difficulty, InvalidCardPayloadError
from backend.srs.sm2 import InvalidQualityError
from backend.srs.store import FlashcardStore, StoreEvent

NOW = datetime(2024, 3, 10, 12, 0, 0)


def _payload(front: str = "What is binary search?", **overrides: object) -> dict:
    payload = {
        "front": front,
        "back": "Halving a sorted range each step",
        "type": "concept",
        "difficulty": "easy",
        "tags": ["algorithms", "search"],
    }
    payload.update(overrides)
    return payload


# --- Creation ---


class TestCreate:
    def setup_method(self) -> None:
        self.store = FlashcardStore()

    def test_new_card_defaults(self) -> None:
        card = self.store.add_flashcard(_payload(), now=NOW)
        assert card.review_count == 0
        assert card.correct_count == 0
        assert card.interval_days == 0
        assert card.ease_factor == 2.5
        assert card.last_reviewed is None
        assert card.created_at == NOW
        assert card.next_review_date <= NOW
        assert card.card_type is CardType.CONCEPT
        assert card.difficulty is Difficulty.EASY
        assert card.tags == ("algorithms", "search")

    def test_new_card_is_due_immediately(self) -> None:
        card = self.store.add_flashcard(_payload())
        assert card in self.store.get_due_cards()

    def test_newest_first(self) -> None:
        first = self.store.add_flashcard(_payload("one"))
        second = self.store.add_flashcard(_payload("two"))
        assert [c.id for c in self.store.flashcards] == [second.id, first.id]

    def test_ids_are_unique(self) -> None:
        cards = self.store.add_flashcards([_payload(str(i)) for i in range(50)], now=NOW)
        assert len({c.id for c in cards}) == 50

    def test_batch_prepends_in_input_order(self) -> None:
        existing = self.store.add_flashcard(_payload("existing"))
        batch = self.store.add_flashcards([_payload("b1"), _payload("b2"), _payload("b3")])
        fronts = [c.front for c in self.store.flashcards]
        assert fronts == ["b1", "b2", "b3", "existing"]
        assert [c.front for c in batch] == ["b1", "b2", "b3"]
        assert self.store.get_flashcard(existing.id) == existing

    def test_batch_rejected_as_a_whole(self) -> None:
        with pytest.raises(InvalidCardPayloadError):
            self.store.add_flashcards([_payload("ok"), {"front": "missing back"}])
        assert len(self.store) == 0

    def test_empty_batch(self) -> None:
        assert self.store.add_flashcards([]) == []

    def test_empty_front_is_accepted(self) -> None:
        card = self.store.add_flashcard(_payload(front=""))
        assert card.front == ""


# --- Update / delete ---


class TestUpdateDelete:
    def setup_method(self) -> None:
        self.store = FlashcardStore()
        self.card = self.store.add_flashcard(_payload(), now=NOW)

    def test_update_author_fields(self) -> None:
        updated = self.store.update_flashcard(
            self.card.id, front="New front", difficulty="hard", tags=["dp", "dp", " arrays "]
        )
        assert updated is not None
        assert updated.front == "New front"
        assert updated.back == self.card.back
        assert updated.difficulty is Difficulty.HARD
        assert updated.tags == ("dp", "arrays")
        assert updated.id == self.card.id
        assert updated.created_at == self.card.created_at
        assert self.store.get_flashcard(self.card.id) == updated

    def test_update_unknown_id_is_noop(self) -> None:
        assert self.store.update_flashcard("missing", front="x") is None
        assert self.store.flashcards == (self.card,)

    @pytest.mark.parametrize(
        "field", ["id", "created_at", "review_count", "correct_count", "ease_factor", "next_review_date"]
    )
    def test_update_cannot_touch_identity_or_schedule(self, field: str) -> None:
        with pytest.raises(TypeError):
            self.store.update_flashcard(self.card.id, **{field: 1})

    def test_update_validates_values(self) -> None:
        with pytest.raises(InvalidCardPayloadError):
            self.store.update_flashcard(self.card.id, front=None)
        assert self.store.get_flashcard(self.card.id) == self.card

    def test_delete(self) -> None:
        assert self.store.delete_flashcard(self.card.id)
        assert self.store.get_flashcard(self.card.id) is None
        assert len(self.store) == 0

    def test_delete_unknown_id_is_noop(self) -> None:
        assert not self.store.delete_flashcard("missing")
        assert len(self.store) == 1

    def test_records_are_read_only(self) -> None:
        with pytest.raises(AttributeError):
            self.card.front = "mutated"  # type: ignore[misc]


# --- Reviews ---


class TestReview:
    def setup_method(self) -> None:
        self.store = FlashcardStore()
        self.card = self.store.add_flashcard(_payload(), now=NOW)

    def test_review_scenarios(self) -> None:
        # First review, quality 3
        card = self.store.review_flashcard(self.card.id, 3, now=NOW)
        assert card is not None
        assert card.review_count == 1
        assert card.correct_count == 1
        assert card.interval_days == 1
        assert card.ease_factor == pytest.approx(2.36)
        assert card.last_reviewed == NOW
        assert card.next_review_date == NOW + timedelta(days=1)

        # Second review
        later = NOW + timedelta(days=1)
        card = self.store.review_flashcard(self.card.id, 3, now=later)
        assert card.interval_days == 6

        # Third review multiplies the previous interval by the new ease
        card = self.store.review_flashcard(self.card.id, 3, now=later + timedelta(days=6))
        assert card.interval_days == round(6 * card.ease_factor)
        assert card.interval_days == 12

    def test_failure_resets_interval_and_lowers_ease(self) -> None:
        for day in range(4):
            self.store.review_flashcard(self.card.id, 5, now=NOW + timedelta(days=day))
        before = self.store.get_flashcard(self.card.id)
        assert before.interval_days > 1

        after = self.store.review_flashcard(self.card.id, 1, now=NOW + timedelta(days=30))
        assert after.interval_days == 1
        assert after.ease_factor < before.ease_factor
        assert after.review_count == before.review_count + 1
        assert after.correct_count == before.correct_count

    def test_invariants_hold_over_many_reviews(self) -> None:
        qualities = [0, 5, 3, 1, 4, 2, 5, 5, 0, 0, 0, 0, 3, 4, 5, 1, 2, 3] * 3
        for i, quality in enumerate(qualities):
            card = self.store.review_flashcard(self.card.id, quality, now=NOW + timedelta(days=i))
            assert card.ease_factor >= 1.3
            assert card.correct_count <= card.review_count
            assert card.interval_days >= 1
        assert card.review_count == len(qualities)
        assert card.correct_count == sum(1 for q in qualities if q >= 3)

    def test_review_unknown_id_is_noop(self) -> None:
        assert self.store.review_flashcard("missing", 4) is None

    def test_invalid_quality_leaves_card_untouched(self) -> None:
        with pytest.raises(InvalidQualityError):
            self.store.review_flashcard(self.card.id, 6)
        assert self.store.get_flashcard(self.card.id) == self.card

    def test_review_keeps_collection_order(self) -> None:
        other = self.store.add_flashcard(_payload("other"))
        self.store.review_flashcard(self.card.id, 4, now=NOW)
        assert [c.id for c in self.store.flashcards] == [other.id, self.card.id]


# --- Notifications ---


class TestNotifications:
    def setup_method(self) -> None:
        self.store = FlashcardStore()
        self.events: list[StoreEvent] = []
        self.unsubscribe = self.store.subscribe(self.events.append)

    def test_every_mutation_notifies(self) -> None:
        card = self.store.add_flashcard(_payload())
        (other,) = self.store.add_flashcards([_payload("b")])
        self.store.update_flashcard(card.id, back="changed")
        self.store.review_flashcard(card.id, 4)
        self.store.start_review_session([card.id, other.id])
        self.store.next_card()
        self.store.end_review_session()
        self.store.delete_flashcard(card.id)
        kinds = [e.kind for e in self.events]
        assert kinds == [
            "added",
            "added",
            "updated",
            "reviewed",
            "session_started",
            "navigated",
            "session_ended",
            "deleted",
        ]
        assert self.events[0].card_ids == (card.id,)

    def test_noops_do_not_notify(self) -> None:
        self.store.update_flashcard("missing", front="x")
        self.store.delete_flashcard("missing")
        self.store.review_flashcard("missing", 3)
        self.store.next_card()
        self.store.end_review_session()
        assert self.events == []

    def test_unsubscribe(self) -> None:
        self.unsubscribe()
        self.store.add_flashcard(_payload())
        assert self.events == []


# --- Snapshot ---


def test_snapshot_restores_cards_and_session() -> None:
    store = FlashcardStore()
    cards = store.add_flashcards([_payload("a"), _payload("b", sourceUrl="https://leetcode.com/x")], now=NOW)
    store.review_flashcard(cards[0].id, 5, now=NOW)
    store.start_review_session([cards[1].id, cards[0].id], now=NOW)
    store.next_card()
    store.review_flashcard(cards[0].id, 2, now=NOW, response_time_ms=1200)

    restored = FlashcardStore.from_dict(store.to_dict())

    assert restored.flashcards == store.flashcards
    assert restored.session_cards == (cards[1].id, cards[0].id)
    assert restored.current_card_index == 1
    assert restored.current_session == store.current_session
