"""
Card data model for the spaced-repetition engine.

A Card carries its display strings and its scheduling state:
- Ease Factor: growth multiplier for review intervals (2.5 default, min 1.3)
- Interval: whole days until next review (0 while in the learning phase)
- Repetition: consecutive graduations (0 = learning phase)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Literal

from ..errors import InvalidRating


def utc_now() -> datetime:
    """Default clock: the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Ratings
# =============================================================================


class Rating(IntEnum):
    """
    Learner's answer quality.

    Values follow the SM-2 0-5 quality scale used by the browser deck,
    so snapshots and keyboard shortcuts stay interchangeable.
    """

    AGAIN = 0
    HARD = 2
    GOOD = 4
    EASY = 5

    @classmethod
    def parse(cls, value: Any) -> Rating:
        """
        Coerce a rating name or SM-2 value into a Rating.

        Raises:
            InvalidRating: for anything outside the four ratings
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise InvalidRating(value) from None
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise InvalidRating(value) from None
        raise InvalidRating(value)

    @property
    def label(self) -> str:
        return self.name.capitalize()


# =============================================================================
# Card
# =============================================================================


@dataclass
class Card:
    """A single vocabulary flashcard."""

    id: str  # Normalized lemma, unique within the store
    word: str
    translation: str
    source_language: str
    next_review_date: datetime
    added_at: datetime

    context: str | None = None
    context_translation: str | None = None

    ease_factor: float = 2.5
    interval: int = 0  # Days; 0 while learning
    repetition: int = 0  # Consecutive graduations
    last_reviewed_at: datetime | None = None

    def __post_init__(self) -> None:
        self.next_review_date = ensure_utc(self.next_review_date)
        self.added_at = ensure_utc(self.added_at)
        if self.last_reviewed_at is not None:
            self.last_reviewed_at = ensure_utc(self.last_reviewed_at)

    @property
    def is_learning(self) -> bool:
        """True until the card completes a graduating review."""
        return self.repetition == 0

    def is_due(self, now: datetime) -> bool:
        """Due when now >= next_review_date (inclusive)."""
        return ensure_utc(now) >= self.next_review_date


@dataclass(frozen=True)
class IntervalPreview:
    """Interval a rating would produce, for button labels."""

    value: int
    unit: Literal["min", "day"]
