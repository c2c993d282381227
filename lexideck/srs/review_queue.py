"""
Review Queue: in-session state machine.

A session works two clocks at once:
- queue: due cards from the store, ordered oldest-due first (calendar clock)
- learning_buffer: cards rated into the learning phase this session,
  each waiting until its minute-scale step elapses (wall clock)

States: IDLE (not started) -> ACTIVE (cards remain) -> DONE (both empty).
"""

from __future__ import annotations

import itertools
import math
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loguru import logger

from ..errors import CardNotFound
from .models import Card, Rating, ensure_utc
from .scheduler import SM2Scheduler

# =============================================================================
# Session Types
# =============================================================================


class SessionState(Enum):
    """Lifecycle of a review session."""

    IDLE = "idle"
    ACTIVE = "active"
    DONE = "done"


@dataclass
class LearningEntry:
    """A card waiting in the learning buffer."""

    card: Card
    ready_at: datetime
    seq: int  # Tie-break for equal ready times


@dataclass(frozen=True)
class WaitingCountdown:
    """Returned when only not-yet-ready learning cards remain."""

    ready_at: datetime
    seconds_left: int
    waiting: int  # Cards in the learning buffer


# =============================================================================
# Review Queue
# =============================================================================


class ReviewQueue:
    """
    Orders due cards through a review session.

    Ratings that keep a card in (or send it back to) the learning phase move
    it into the learning buffer; every other rating removes it from the
    session. Ready learning cards are shown ahead of untouched queue cards,
    but the queue itself is never reordered mid-session.
    """

    def __init__(self, scheduler: SM2Scheduler | None = None, learning_first: bool = True):
        """
        Initialize an idle review queue.

        Args:
            scheduler: SM2Scheduler (creates default if None)
            learning_first: Show ready learning cards before queue cards
        """
        self.scheduler = scheduler or SM2Scheduler()
        self.learning_first = learning_first

        self.queue: deque[Card] = deque()
        self.learning_buffer: list[LearningEntry] = []
        self.reviewed_count = 0
        self.session_size = 0

        self._started = False
        self._seq = itertools.count()

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> SessionState:
        if not self._started:
            return SessionState.IDLE
        if self.queue or self.learning_buffer:
            return SessionState.ACTIVE
        return SessionState.DONE

    @property
    def is_done(self) -> bool:
        return self.state == SessionState.DONE

    @property
    def remaining(self) -> int:
        """Cards still in the working set (queue + learning buffer)."""
        return len(self.queue) + len(self.learning_buffer)

    def __contains__(self, card_id: object) -> bool:
        return any(c.id == card_id for c in self.queue) or any(
            e.card.id == card_id for e in self.learning_buffer
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def start(self, due_cards: Iterable[Card], now: datetime) -> None:
        """
        Start the session with the cards due at `now`.

        Cards are ordered by ascending next_review_date; ties keep the
        order they were given in (store insertion order).
        """
        if self._started:
            raise RuntimeError("Review session already started")

        seen: set[str] = set()
        unique: list[Card] = []
        for card in due_cards:
            if card.id not in seen:
                seen.add(card.id)
                unique.append(card)

        # sorted() is stable, which keeps store order on ties
        self.queue = deque(sorted(unique, key=lambda c: c.next_review_date))
        self.learning_buffer = []
        self.reviewed_count = 0
        self.session_size = len(self.queue)
        self._started = True

        logger.info(
            "Review session started at {}: {} cards", ensure_utc(now).isoformat(), self.session_size
        )

    def current_card(self, now: datetime) -> Card | WaitingCountdown | None:
        """
        Get the card to show at `now`.

        Returns:
            Card to show, WaitingCountdown if only learning cards remain
            and none is ready yet, or None when the session is idle or done
        """
        if not self._started:
            return None

        now = ensure_utc(now)
        ready = self._next_ready(now)

        if ready is not None and (self.learning_first or not self.queue):
            return ready.card
        if self.queue:
            return self.queue[0]
        if self.learning_buffer:
            nearest = min(e.ready_at for e in self.learning_buffer)
            seconds = max(1, math.ceil((nearest - now).total_seconds()))
            return WaitingCountdown(
                ready_at=nearest, seconds_left=seconds, waiting=len(self.learning_buffer)
            )
        return None

    def evaluate(self, card_id: str, rating: Rating, now: datetime) -> Card:
        """
        Compute the rated card without changing the session.

        Raises:
            InvalidRating: rating outside the four ratings
            CardNotFound: card is not in this session's working set
        """
        rating = Rating.parse(rating)
        card = self._find(card_id)
        return self.scheduler.schedule(card, rating, now)

    def commit(self, updated: Card) -> None:
        """
        Apply a rated card to the session.

        Learning-phase cards go to the learning buffer keyed by their new
        next_review_date; graduated and successful review cards leave.
        """
        self._take(updated.id)
        self.reviewed_count += 1

        if updated.is_learning:
            self.learning_buffer.append(
                LearningEntry(card=updated, ready_at=updated.next_review_date, seq=next(self._seq))
            )
            logger.debug("Requeued {} until {}", updated.id, updated.next_review_date.isoformat())
        else:
            logger.debug("{} left the session (interval={}d)", updated.id, updated.interval)

        if self.is_done:
            logger.info("Review session done: {} reviews", self.reviewed_count)

    def rate(self, card_id: str, rating: Rating, now: datetime) -> Card:
        """Rate a card and apply the transition. Returns the updated card."""
        updated = self.evaluate(card_id, rating, now)
        self.commit(updated)
        return updated

    def discard(self, card_id: str) -> bool:
        """Drop a card from the working set without counting a review."""
        try:
            self._take(card_id)
        except CardNotFound:
            return False
        return True

    # =========================================================================
    # Internals
    # =========================================================================

    def _next_ready(self, now: datetime) -> LearningEntry | None:
        ready = [e for e in self.learning_buffer if e.ready_at <= now]
        if not ready:
            return None
        return min(ready, key=lambda e: (e.ready_at, e.seq))

    def _find(self, card_id: str) -> Card:
        for card in self.queue:
            if card.id == card_id:
                return card
        for entry in self.learning_buffer:
            if entry.card.id == card_id:
                return entry.card
        raise CardNotFound(card_id)

    def _take(self, card_id: str) -> Card:
        for card in self.queue:
            if card.id == card_id:
                self.queue.remove(card)
                return card
        for i, entry in enumerate(self.learning_buffer):
            if entry.card.id == card_id:
                return self.learning_buffer.pop(i).card
        raise CardNotFound(card_id)
