"""
SM-2 Spaced Repetition Scheduler with Learning Steps.

Cards move through two phases:

Learning phase (repetition == 0): short fixed steps, not yet graduated.
    Again -> 1 min,  Hard -> 5 min,  Good -> graduate (1 day),  Easy -> graduate (5 days)

Review phase (repetition >= 1): day-based intervals that grow with the ease factor.
    Again -> lapse back to learning (1 min), ease -0.20
    Hard  -> interval * 1.2, ease -0.15
    Good  -> interval * ease
    Easy  -> interval * ease * 1.3, ease +0.15

The ease factor never drops below 1.3; review intervals are capped at
SM2Config.maximum_interval_days.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from loguru import logger

from .models import Card, IntervalPreview, Rating, ensure_utc

# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True)
class SM2Config:
    """Configuration for the SM-2 scheduler."""

    initial_ease: float = 2.5
    minimum_ease: float = 1.3

    # Learning steps (minutes)
    again_step_minutes: int = 1
    hard_step_minutes: int = 5

    # Graduating intervals (days)
    good_graduation_days: int = 1
    easy_graduation_days: int = 5

    # Ease adjustments
    lapse_ease_penalty: float = 0.20
    hard_ease_penalty: float = 0.15
    easy_ease_bonus: float = 0.15

    # Interval multipliers
    hard_multiplier: float = 1.2
    easy_multiplier: float = 1.3

    # Upper bound for review intervals (days), keeps due dates representable
    maximum_interval_days: int = 36500


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


# =============================================================================
# Scheduler
# =============================================================================


class SM2Scheduler:
    """
    Pure SM-2 scheduling: (card, rating, now) -> updated card.

    The scheduler is total over the four ratings and never touches storage.
    """

    def __init__(self, config: SM2Config | None = None):
        self.config = config or SM2Config()

    def new_card(
        self,
        card_id: str,
        word: str,
        translation: str,
        source_language: str,
        now: datetime,
        context: str | None = None,
        context_translation: str | None = None,
    ) -> Card:
        """Create a fresh learning-phase card that is due immediately."""
        now = ensure_utc(now)
        return Card(
            id=card_id,
            word=word,
            translation=translation,
            source_language=source_language,
            context=context,
            context_translation=context_translation,
            ease_factor=self.config.initial_ease,
            interval=0,
            repetition=0,
            next_review_date=now,
            added_at=now,
            last_reviewed_at=None,
        )

    def schedule(self, card: Card, rating: Rating, now: datetime) -> Card:
        """
        Calculate the next review state of a card.

        Args:
            card: Current card state
            rating: Learner's rating
            now: Time of the review

        Returns:
            A new Card; the input card is left untouched
        """
        rating = Rating.parse(rating)
        now = ensure_utc(now)

        if card.is_learning:
            updated = self._schedule_learning(card, rating, now)
        else:
            updated = self._schedule_review(card, rating, now)

        logger.debug(
            "Scheduled {} ({}): rep={} interval={}d ease={:.2f} next={}",
            card.id,
            rating.label,
            updated.repetition,
            updated.interval,
            updated.ease_factor,
            updated.next_review_date.isoformat(),
        )
        return updated

    def _schedule_learning(self, card: Card, rating: Rating, now: datetime) -> Card:
        cfg = self.config

        if rating == Rating.AGAIN:
            return replace(
                card,
                interval=0,
                next_review_date=now + timedelta(minutes=cfg.again_step_minutes),
                last_reviewed_at=now,
            )
        if rating == Rating.HARD:
            return replace(
                card,
                interval=0,
                next_review_date=now + timedelta(minutes=cfg.hard_step_minutes),
                last_reviewed_at=now,
            )
        if rating == Rating.GOOD:
            return replace(
                card,
                repetition=1,
                interval=cfg.good_graduation_days,
                next_review_date=now + timedelta(days=cfg.good_graduation_days),
                last_reviewed_at=now,
            )
        # Easy
        return replace(
            card,
            repetition=1,
            interval=cfg.easy_graduation_days,
            ease_factor=self._clamp_ease(card.ease_factor + cfg.easy_ease_bonus),
            next_review_date=now + timedelta(days=cfg.easy_graduation_days),
            last_reviewed_at=now,
        )

    def _schedule_review(self, card: Card, rating: Rating, now: datetime) -> Card:
        cfg = self.config
        ease = card.ease_factor
        repetition = card.repetition

        if rating == Rating.AGAIN:
            # Lapse: back to the learning phase
            return replace(
                card,
                repetition=0,
                interval=0,
                ease_factor=self._clamp_ease(ease - cfg.lapse_ease_penalty),
                next_review_date=now + timedelta(minutes=cfg.again_step_minutes),
                last_reviewed_at=now,
            )

        if rating == Rating.HARD:
            interval = round_half_up(card.interval * cfg.hard_multiplier)
            ease = self._clamp_ease(ease - cfg.hard_ease_penalty)
        elif rating == Rating.GOOD:
            interval = round_half_up(card.interval * ease)
            repetition += 1
        else:
            interval = round_half_up(card.interval * ease * cfg.easy_multiplier)
            ease = self._clamp_ease(ease + cfg.easy_ease_bonus)
            repetition += 1

        # A graduated card always moves at least one day forward
        interval = min(max(1, interval), cfg.maximum_interval_days)

        return replace(
            card,
            repetition=repetition,
            interval=interval,
            ease_factor=ease,
            next_review_date=now + timedelta(days=interval),
            last_reviewed_at=now,
        )

    def _clamp_ease(self, ease: float) -> float:
        return max(self.config.minimum_ease, ease)

    # =========================================================================
    # Previews
    # =========================================================================

    def preview(self, card: Card, rating: Rating, now: datetime | None = None) -> IntervalPreview:
        """
        Preview the interval a rating would produce.

        Used for rating button labels ("1m", "5m", "1d", "5d").
        """
        rating = Rating.parse(rating)
        cfg = self.config

        if card.is_learning:
            steps = {
                Rating.AGAIN: IntervalPreview(cfg.again_step_minutes, "min"),
                Rating.HARD: IntervalPreview(cfg.hard_step_minutes, "min"),
                Rating.GOOD: IntervalPreview(cfg.good_graduation_days, "day"),
                Rating.EASY: IntervalPreview(cfg.easy_graduation_days, "day"),
            }
            return steps[rating]

        if rating == Rating.AGAIN:
            return IntervalPreview(cfg.again_step_minutes, "min")

        updated = self.schedule(card, rating, now or card.next_review_date)
        return IntervalPreview(updated.interval, "day")

    def previews(self, card: Card) -> dict[Rating, IntervalPreview]:
        """Preview every rating for a card."""
        return {rating: self.preview(card, rating) for rating in Rating}


def format_interval(preview: IntervalPreview) -> str:
    """
    Format an interval preview as a short label.

    Examples: 1m, 5m, 1d, 12d, 3mo, 1.2y
    """
    if preview.unit == "min":
        return f"{preview.value}m"

    days = preview.value
    if days < 30:
        return f"{days}d"
    if days < 365:
        return f"{round_half_up(days / 30)}mo"
    return f"{days / 365:.1f}y"
