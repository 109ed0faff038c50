"""SM-2 spaced repetition scheduling.

The classic SuperMemo-2 curve used by the flashcard store.
Reference: https://super-memory.com/english/ol/sm2.htm

Key concepts:
- Quality (q): Self-graded recall from 0 (blackout) to 5 (perfect).
  A review "passes" when q >= 3.
- Ease factor (EF): Multiplier for interval growth, floored at 1.3.
- Interval: Days until the card is due again. The first two passing
  reviews bootstrap to 1 and 6 days, after which the interval grows
  geometrically by EF. Any failure resets it to 1 day.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from backend.config import utcnow

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3

FIRST_INTERVAL_DAYS = 1
SECOND_INTERVAL_DAYS = 6
FAILED_INTERVAL_DAYS = 1


class InvalidQualityError(ValueError):
    """Raised when a review quality is not an integer in [0, 5]."""


@dataclass(frozen=True)
class ScheduleResult:
    """The outcome of one SM-2 computation."""

    interval_days: int
    ease_factor: float
    next_review_date: datetime


def validate_quality(quality: int) -> int:
    """Return ``quality`` unchanged, or raise if it's outside [0, 5]."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidQualityError(f"Quality must be an integer, got {quality!r}")
    if not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidQualityError(
            f"Quality must be between {MIN_QUALITY} and {MAX_QUALITY}, got {quality}"
        )
    return quality


def is_passing(quality: int) -> bool:
    return quality >= PASSING_QUALITY


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def update_ease_factor(ease_factor: float, quality: int) -> float:
    """EF' = max(1.3, EF + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)))"""
    miss = MAX_QUALITY - quality
    return max(MIN_EASE_FACTOR, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def calculate_next_review(
    quality: int,
    review_count: int,
    interval_days: int,
    ease_factor: float,
    now: datetime | None = None,
) -> ScheduleResult:
    """Compute the next interval, ease factor and due date for a review.

    Pure: identical inputs always give identical outputs.

    Args:
        quality: Recall quality, 0-5.
        review_count: Reviews completed before this one.
        interval_days: The card's current interval.
        ease_factor: The card's current ease factor.
        now: When the review happened (defaults to utcnow).

    Returns:
        ScheduleResult with the updated interval, ease and due date.

    Raises:
        InvalidQualityError: If quality is not an integer in [0, 5].
    """
    validate_quality(quality)
    now = now or utcnow()

    new_ease = update_ease_factor(ease_factor, quality)

    if not is_passing(quality):
        new_interval = FAILED_INTERVAL_DAYS
    elif review_count == 0:
        new_interval = FIRST_INTERVAL_DAYS
    elif review_count == 1:
        new_interval = SECOND_INTERVAL_DAYS
    else:
        # Previous interval times the *updated* ease factor
        new_interval = _round_half_up(interval_days * new_ease)

    return ScheduleResult(
        interval_days=new_interval,
        ease_factor=new_ease,
        next_review_date=now + timedelta(days=new_interval),
    )
