"""Flashcard records and the validated boundary for incoming card payloads.

Cards arrive from the AI generator, the HTTP API, the CLI and import files
as loosely shaped mappings. ``card_spec_from_payload`` is the one place
where such a mapping becomes a typed ``CardSpec``; the store only ever
builds ``Flashcard`` records from specs.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from backend.srs.sm2 import DEFAULT_EASE_FACTOR

logger = logging.getLogger(__name__)


class CardType(Enum):
    """What kind of knowledge a card captures. Labels only."""

    CONCEPT = "concept"
    DEFINITION = "definition"
    CODE = "code"
    PROBLEM = "problem"
    FACT = "fact"


class Difficulty(Enum):
    """Author-assigned difficulty label, independent of SM-2 quality."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class SourcePlatform(Enum):
    LEETCODE = "leetcode"
    YOUTUBE = "youtube"
    GENERAL = "general"


class InvalidCardPayloadError(ValueError):
    """Raised when a payload can't be turned into a CardSpec."""


def _coerce_enum(enum_cls: type[Enum], value: Any, default: Enum | None, field: str) -> Enum | None:
    if value is None or isinstance(value, enum_cls):
        return value if value is not None else default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown %s %r, using %s", field, value, default.value if default else None)
        return default


def normalize_tags(value: Any) -> tuple[str, ...]:
    """Strip, drop empties and de-duplicate tags, keeping first-seen order.

    Accepts a list, tuple or set of strings, or a single comma-separated
    string.

    Raises:
        ValueError: For any other value (numbers, mappings...).
    """
    if value is None:
        return ()
    if isinstance(value, str):
        value = value.split(",")
    elif not isinstance(value, (list, tuple, set, frozenset)):
        raise ValueError(f"tags must be a list or a comma-separated string, got {type(value).__name__}")
    tags: list[str] = []
    for raw in value:
        tag = str(raw).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tuple(tags)


class CardSpec(BaseModel):
    """The author-supplied fields of a new flashcard.

    Accepts snake_case or camelCase keys. ``front`` and ``back`` are
    required strings (empty strings are allowed; rejecting them is a UI
    decision). Unknown ``type``/``difficulty`` values fall back to
    concept/medium.
    """

    model_config = ConfigDict(frozen=True)

    front: str
    back: str
    card_type: CardType = Field(
        default=CardType.CONCEPT,
        validation_alias=AliasChoices("card_type", "type", "cardType"),
    )
    difficulty: Difficulty = Difficulty.MEDIUM
    tags: tuple[str, ...] = ()
    source_note_id: str | None = Field(
        default=None, validation_alias=AliasChoices("source_note_id", "sourceNoteId")
    )
    source_platform: SourcePlatform | None = Field(
        default=None, validation_alias=AliasChoices("source_platform", "sourcePlatform")
    )
    source_url: str | None = Field(
        default=None, validation_alias=AliasChoices("source_url", "sourceUrl")
    )

    @field_validator("card_type", mode="before")
    @classmethod
    def _coerce_card_type(cls, value: Any) -> Any:
        return _coerce_enum(CardType, value, CardType.CONCEPT, "card type")

    @field_validator("difficulty", mode="before")
    @classmethod
    def _coerce_difficulty(cls, value: Any) -> Any:
        return _coerce_enum(Difficulty, value, Difficulty.MEDIUM, "difficulty")

    @field_validator("source_platform", mode="before")
    @classmethod
    def _coerce_platform(cls, value: Any) -> Any:
        return _coerce_enum(SourcePlatform, value, None, "source platform")

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> tuple[str, ...]:
        return normalize_tags(value)


def card_spec_from_payload(payload: Mapping[str, Any]) -> CardSpec:
    """Map an untyped payload onto a CardSpec.

    Raises:
        InvalidCardPayloadError: If the payload is not a mapping or a
            required field is missing or not a string.
    """
    if isinstance(payload, CardSpec):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidCardPayloadError(
            f"Card payload must be a mapping, got {type(payload).__name__}"
        )
    try:
        return CardSpec.model_validate(dict(payload))
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "payload"
        raise InvalidCardPayloadError(f"Invalid card payload ({location}): {first['msg']}") from exc


def new_card_id(now: datetime) -> str:
    return f"card_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _format_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Flashcard:
    """A single card plus its SM-2 scheduling state.

    Instances are immutable; the store swaps in updated copies so callers
    only ever hold read-only views.
    """

    id: str
    front: str
    back: str
    card_type: CardType
    difficulty: Difficulty
    tags: tuple[str, ...]
    created_at: datetime
    next_review_date: datetime  # Due at or after this instant
    source_note_id: str | None = None
    source_platform: SourcePlatform | None = None
    source_url: str | None = None
    last_reviewed: datetime | None = None
    review_count: int = 0
    correct_count: int = 0  # Reviews with quality >= 3
    interval_days: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR

    @classmethod
    def create(cls, spec: CardSpec, now: datetime) -> Flashcard:
        """Build a fresh, immediately-due card from a spec."""
        return cls(
            id=new_card_id(now),
            front=spec.front,
            back=spec.back,
            card_type=spec.card_type,
            difficulty=spec.difficulty,
            tags=spec.tags,
            source_note_id=spec.source_note_id,
            source_platform=spec.source_platform,
            source_url=spec.source_url,
            created_at=now,
            next_review_date=now,
        )

    def is_due(self, now: datetime) -> bool:
        return self.next_review_date <= now

    @property
    def accuracy(self) -> float | None:
        """Fraction of passing reviews, or None before the first review."""
        return self.correct_count / self.review_count if self.review_count else None

    def with_changes(self, **changes: Any) -> Flashcard:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "front": self.front,
            "back": self.back,
            "type": self.card_type.value,
            "difficulty": self.difficulty.value,
            "tags": list(self.tags),
            "source_note_id": self.source_note_id,
            "source_platform": self.source_platform.value if self.source_platform else None,
            "source_url": self.source_url,
            "created_at": _format_dt(self.created_at),
            "last_reviewed": _format_dt(self.last_reviewed),
            "next_review_date": _format_dt(self.next_review_date),
            "review_count": self.review_count,
            "correct_count": self.correct_count,
            "interval_days": self.interval_days,
            "ease_factor": self.ease_factor,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Flashcard:
        """Rebuild a card (scheduling state included) from ``to_dict`` output."""
        spec = card_spec_from_payload(data)
        return cls(
            id=data["id"],
            front=spec.front,
            back=spec.back,
            card_type=spec.card_type,
            difficulty=spec.difficulty,
            tags=spec.tags,
            source_note_id=spec.source_note_id,
            source_platform=spec.source_platform,
            source_url=spec.source_url,
            created_at=_parse_dt(data["created_at"]),
            last_reviewed=_parse_dt(data.get("last_reviewed")),
            next_review_date=_parse_dt(data["next_review_date"]),
            review_count=int(data.get("review_count", 0)),
            correct_count=int(data.get("correct_count", 0)),
            interval_days=int(data.get("interval_days", 0)),
            ease_factor=float(data.get("ease_factor", DEFAULT_EASE_FACTOR)),
        )
