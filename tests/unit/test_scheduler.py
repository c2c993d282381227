"""
Unit tests for SM2Scheduler.

Covers learning steps, graduated SM-2 updates, the ease floor and
interval previews.
"""

import random
from datetime import timedelta

import pytest

from lexideck.errors import InvalidRating
from lexideck.srs.models import IntervalPreview, Rating
from lexideck.srs.scheduler import SM2Config, SM2Scheduler, format_interval, round_half_up


# ============================================================================
# Learning Phase
# ============================================================================


class TestLearningPhase:
    """Cards with repetition == 0."""

    def test_good_graduates_to_one_day(self, scheduler, make_card, now):
        card = make_card()

        updated = scheduler.schedule(card, Rating.GOOD, now)

        assert updated.repetition == 1
        assert updated.interval == 1
        assert updated.next_review_date == now + timedelta(days=1)
        assert updated.ease_factor == 2.5
        assert updated.last_reviewed_at == now

    def test_again_stays_learning_for_one_minute(self, scheduler, make_card, now):
        updated = scheduler.schedule(make_card(), Rating.AGAIN, now)

        assert updated.repetition == 0
        assert updated.interval == 0
        assert updated.next_review_date == now + timedelta(minutes=1)
        assert updated.ease_factor == 2.5

    def test_hard_stays_learning_for_five_minutes(self, scheduler, make_card, now):
        updated = scheduler.schedule(make_card(), Rating.HARD, now)

        assert updated.repetition == 0
        assert updated.interval == 0
        assert updated.next_review_date == now + timedelta(minutes=5)

    def test_easy_graduates_to_five_days_with_bonus(self, scheduler, make_card, now):
        updated = scheduler.schedule(make_card(), Rating.EASY, now)

        assert updated.repetition == 1
        assert updated.interval == 5
        assert updated.next_review_date == now + timedelta(days=5)
        assert updated.ease_factor == pytest.approx(2.65)

    def test_input_card_is_not_mutated(self, scheduler, make_card, now):
        card = make_card()

        scheduler.schedule(card, Rating.EASY, now)

        assert card.repetition == 0
        assert card.interval == 0
        assert card.ease_factor == 2.5
        assert card.last_reviewed_at is None


# ============================================================================
# Review Phase
# ============================================================================


class TestReviewPhase:
    """Cards with repetition >= 1."""

    @pytest.fixture
    def graduated(self, make_card):
        return make_card(repetition=2, interval=6, ease_factor=2.5)

    def test_good_multiplies_by_ease(self, scheduler, graduated, now):
        updated = scheduler.schedule(graduated, Rating.GOOD, now)

        assert updated.interval == 15
        assert updated.repetition == 3
        assert updated.ease_factor == 2.5
        assert updated.next_review_date == now + timedelta(days=15)

    def test_again_lapses_to_learning(self, scheduler, graduated, now):
        updated = scheduler.schedule(graduated, Rating.AGAIN, now)

        assert updated.repetition == 0
        assert updated.interval == 0
        assert updated.ease_factor == pytest.approx(2.3)
        assert updated.next_review_date == now + timedelta(minutes=1)

    def test_hard_grows_slowly_and_keeps_repetition(self, scheduler, graduated, now):
        updated = scheduler.schedule(graduated, Rating.HARD, now)

        assert updated.interval == 7  # round(6 * 1.2)
        assert updated.repetition == 2
        assert updated.ease_factor == pytest.approx(2.35)
        assert updated.next_review_date == now + timedelta(days=7)

    def test_easy_uses_bonus_multiplier(self, scheduler, graduated, now):
        updated = scheduler.schedule(graduated, Rating.EASY, now)

        assert updated.interval == 20  # round(6 * 2.5 * 1.3) = round(19.5)
        assert updated.repetition == 3
        assert updated.ease_factor == pytest.approx(2.65)

    def test_lapse_then_relearn_regraduates_at_one_day(self, scheduler, graduated, now):
        lapsed = scheduler.schedule(graduated, Rating.AGAIN, now)
        relearned = scheduler.schedule(lapsed, Rating.GOOD, now + timedelta(minutes=1))

        assert relearned.repetition == 1
        assert relearned.interval == 1
        assert relearned.ease_factor == pytest.approx(2.3)


# ============================================================================
# Ease Floor
# ============================================================================


class TestEaseFloor:
    """Ease factor never drops below 1.3."""

    def test_hard_floors_at_minimum(self, scheduler, make_card, now):
        card = make_card(repetition=3, interval=10, ease_factor=1.35)

        assert scheduler.schedule(card, Rating.HARD, now).ease_factor == 1.3

    def test_lapse_floors_at_minimum(self, scheduler, make_card, now):
        card = make_card(repetition=3, interval=10, ease_factor=1.3)

        assert scheduler.schedule(card, Rating.AGAIN, now).ease_factor == 1.3

    def test_random_rating_sequences_respect_floor(self, scheduler, make_card, now):
        rng = random.Random(1234)

        for _ in range(50):
            card = make_card()
            t = now
            for _ in range(40):
                previous = card
                card = scheduler.schedule(card, rng.choice(list(Rating)), t)
                assert card.ease_factor >= 1.3
                assert card.next_review_date > t
                if previous.repetition >= 1 and card.repetition == 0:
                    assert card.interval == 0
                t = card.next_review_date


class TestIntervalCap:
    """Review intervals stay within maximum_interval_days."""

    @pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
    def test_huge_interval_is_capped(self, scheduler, make_card, now, rating):
        card = make_card(repetition=9, interval=10**6, ease_factor=2.5)

        updated = scheduler.schedule(card, rating, now)

        assert updated.interval == 36500
        assert updated.next_review_date == now + timedelta(days=36500)

    def test_previews_of_huge_interval(self, scheduler, make_card):
        card = make_card(repetition=9, interval=10**6, ease_factor=2.5)

        previews = scheduler.previews(card)

        assert previews[Rating.GOOD].value == 36500
        assert format_interval(previews[Rating.EASY]) == "100.0y"

    def test_custom_cap(self, make_card, now):
        scheduler = SM2Scheduler(SM2Config(maximum_interval_days=30))
        card = make_card(repetition=2, interval=20, ease_factor=2.5)

        assert scheduler.schedule(card, Rating.GOOD, now).interval == 30


class TestEasePrecision:
    """Ease adjustments keep full precision."""

    def test_imported_ease_is_not_rounded(self, scheduler, make_card, now):
        card = make_card(repetition=2, interval=6, ease_factor=2.333)

        updated = scheduler.schedule(card, Rating.EASY, now)

        assert updated.ease_factor == pytest.approx(2.483)


# ============================================================================
# Ratings
# ============================================================================


class TestRatingParsing:
    """Rating coercion."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("again", Rating.AGAIN),
            ("Hard", Rating.HARD),
            (" GOOD ", Rating.GOOD),
            (5, Rating.EASY),
            (Rating.GOOD, Rating.GOOD),
        ],
    )
    def test_parse_accepts_names_and_values(self, value, expected):
        assert Rating.parse(value) == expected

    @pytest.mark.parametrize("value", ["perfect", 3, 1, None, True, 4.0])
    def test_parse_rejects_everything_else(self, value):
        with pytest.raises(InvalidRating):
            Rating.parse(value)

    def test_schedule_rejects_invalid_rating(self, scheduler, make_card, now):
        with pytest.raises(InvalidRating):
            scheduler.schedule(make_card(), 3, now)


# ============================================================================
# Previews
# ============================================================================


class TestPreview:
    """Interval previews for rating buttons."""

    def test_learning_steps(self, scheduler, make_card):
        previews = scheduler.previews(make_card())

        assert [format_interval(previews[r]) for r in Rating] == ["1m", "5m", "1d", "5d"]

    def test_review_phase_previews_compute_intervals(self, scheduler, make_card):
        card = make_card(repetition=2, interval=6, ease_factor=2.5)

        assert scheduler.preview(card, Rating.AGAIN) == IntervalPreview(1, "min")
        assert scheduler.preview(card, Rating.HARD) == IntervalPreview(7, "day")
        assert scheduler.preview(card, Rating.GOOD) == IntervalPreview(15, "day")
        assert scheduler.preview(card, Rating.EASY) == IntervalPreview(20, "day")

    @pytest.mark.parametrize(
        "preview, label",
        [
            (IntervalPreview(1, "min"), "1m"),
            (IntervalPreview(1, "day"), "1d"),
            (IntervalPreview(29, "day"), "29d"),
            (IntervalPreview(30, "day"), "1mo"),
            (IntervalPreview(45, "day"), "2mo"),
            (IntervalPreview(400, "day"), "1.1y"),
        ],
    )
    def test_format_interval(self, preview, label):
        assert format_interval(preview) == label


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(7.2) == 7
    assert round_half_up(0.49) == 0


def test_custom_config_changes_steps(make_card, now):
    scheduler = SM2Scheduler(SM2Config(again_step_minutes=10))

    updated = scheduler.schedule(make_card(), Rating.AGAIN, now)

    assert updated.next_review_date == now + timedelta(minutes=10)
