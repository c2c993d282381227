"""
Deck: learner-facing operations over store, scheduler and review queue.

Flow:
    add_word -> store.upsert (new card due now)
    start_review -> ReviewQueue over store.due_as_of(now)
    session.rate -> scheduler -> store.upsert -> queue transition

A rating is committed to the session only after the store acknowledged
the write, so a failed write leaves the session exactly as it was.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from loguru import logger

from ..errors import CardNotFound, InvalidWord, NoCurrentCard
from .card_store import CardStore
from .models import Card, IntervalPreview, Rating, ensure_utc, utc_now
from .review_queue import ReviewQueue, SessionState, WaitingCountdown
from .scheduler import SM2Scheduler
from .script import CardSides, card_sides, identity_text, normalize_card_id
from .snapshot import CardRecord

Clock = Callable[[], datetime]


@dataclass(frozen=True)
class AddResult:
    """Outcome of add_word."""

    added: bool  # False when the word was already in the deck
    card: Card


@dataclass(frozen=True)
class DeckStats:
    """Deck size breakdown for badges and the stats screen."""

    total: int
    due: int
    learning: int
    graduated: int


# =============================================================================
# Review Session Handle
# =============================================================================


class ReviewSession:
    """
    Handle on one review session.

    Sessions are plain objects: dropping one discards it. Cards already
    rated stay persisted; unrated cards are simply due again next time.
    """

    def __init__(self, deck: Deck, queue: ReviewQueue):
        self.deck = deck
        self.queue = queue
        self._closed = False

    @property
    def state(self) -> SessionState:
        if self._closed:
            return SessionState.DONE
        return self.queue.state

    @property
    def is_done(self) -> bool:
        return self.state == SessionState.DONE

    @property
    def reviewed_count(self) -> int:
        return self.queue.reviewed_count

    @property
    def remaining(self) -> int:
        return 0 if self._closed else self.queue.remaining

    @property
    def size(self) -> int:
        """Number of due cards the session started with."""
        return self.queue.session_size

    def current(self, now: datetime | None = None) -> Card | WaitingCountdown | None:
        """Card to show, a countdown while learning cards wait, or None when done."""
        if self._closed:
            return None
        return self.queue.current_card(self.deck.now(now))

    def current_card(self, now: datetime | None = None) -> Card:
        """
        Get the card to show, or raise.

        Raises:
            NoCurrentCard: when waiting on learning cards or done
        """
        current = self.current(now)
        if not isinstance(current, Card):
            raise NoCurrentCard("No card is ready in this session")
        return current

    async def rate(self, rating: Rating | str | int, now: datetime | None = None) -> Card:
        """Rate the current card. Returns the updated card."""
        return await self.deck.rate_current(self, rating, now)

    async def remove_current(self, now: datetime | None = None) -> Card:
        """Delete the current card from the deck and drop it from the session."""
        card = self.current_card(now)
        try:
            await self.deck.remove_card(card.id)
        except CardNotFound:
            self.queue.discard(card.id)
            raise
        self.queue.discard(card.id)
        return card

    def sides(self, card: Card) -> CardSides:
        return card_sides(card)

    def previews(self, card: Card) -> dict[Rating, IntervalPreview]:
        return self.deck.scheduler.previews(card)

    def close(self) -> None:
        """Discard the session. Persisted ratings are unaffected."""
        if not self._closed:
            logger.info(
                "Review session closed: {} reviews, {} cards left",
                self.queue.reviewed_count,
                self.queue.remaining,
            )
        self._closed = True


# =============================================================================
# Deck Facade
# =============================================================================


class Deck:
    """
    Composes a CardStore, an SM2Scheduler and review sessions.

    The deck holds no session state of its own; every session is an
    explicit ReviewSession object, so several can exist side by side.
    """

    def __init__(
        self,
        store: CardStore,
        scheduler: SM2Scheduler | None = None,
        clock: Clock | None = None,
        default_language: str = "ru",
    ):
        """
        Initialize the deck.

        Args:
            store: Card persistence
            scheduler: SM2Scheduler (creates default if None)
            clock: Zero-argument callable returning the current time
            default_language: Language tag for cards added without one
        """
        self.store = store
        self.scheduler = scheduler or SM2Scheduler()
        self.clock = clock or utc_now
        self.default_language = default_language

    def now(self, now: datetime | None = None) -> datetime:
        return ensure_utc(now) if now is not None else ensure_utc(self.clock())

    # =========================================================================
    # Cards
    # =========================================================================

    def card_id_for(self, word: str, translation: str = "", source_language: str | None = None) -> str:
        """Compute the identity a word/translation pair is stored under."""
        language = source_language or self.default_language
        return normalize_card_id(identity_text(word, translation, language))

    async def add_word(
        self,
        word: str,
        translation: str,
        source_language: str | None = None,
        context: str | None = None,
        context_translation: str | None = None,
        now: datetime | None = None,
    ) -> AddResult:
        """
        Add a word to the deck unless its identity is already present.

        Raises:
            InvalidWord: if the word normalizes to an empty identity
        """
        word = word.strip()
        translation = translation.strip()
        language = source_language or self.default_language
        card_id = self.card_id_for(word, translation, language)
        if not card_id:
            raise InvalidWord(f"Cannot derive a card identity from {word!r}")

        existing = await self.store.get(card_id)
        if existing is not None:
            logger.debug("Word {!r} already in deck as {}", word, card_id)
            return AddResult(added=False, card=existing)

        card = self.scheduler.new_card(
            card_id=card_id,
            word=word,
            translation=translation,
            source_language=language,
            now=self.now(now),
            context=context or None,
            context_translation=context_translation or None,
        )
        await self.store.upsert(card)
        logger.info("Added {} to deck", card_id)
        return AddResult(added=True, card=card)

    async def is_in_deck(self, word: str, translation: str = "", source_language: str | None = None) -> bool:
        card_id = self.card_id_for(word, translation, source_language)
        return bool(card_id) and await self.store.get(card_id) is not None

    async def get_card(self, card_id: str) -> Card:
        card = await self.store.get(card_id)
        if card is None:
            raise CardNotFound(card_id)
        return card

    async def remove_card(self, card_id: str) -> None:
        """
        Remove a card from the deck.

        Raises:
            CardNotFound: if no card has this identity
        """
        await self.store.remove(card_id)
        logger.info("Removed {} from deck", card_id)

    async def reset_card(self, card_id: str, now: datetime | None = None) -> Card:
        """Send a card back to the learning phase, due now."""
        card = await self.get_card(card_id)
        reset = replace(
            card,
            ease_factor=self.scheduler.config.initial_ease,
            interval=0,
            repetition=0,
            next_review_date=self.now(now),
        )
        await self.store.upsert(reset)
        logger.info("Reset {}", card_id)
        return reset

    # =========================================================================
    # Counts
    # =========================================================================

    async def due_count(self, now: datetime | None = None) -> int:
        return len(await self.store.due_as_of(self.now(now)))

    async def total_count(self) -> int:
        return len(await self.store.all())

    async def stats(self, now: datetime | None = None) -> DeckStats:
        now = self.now(now)
        cards = await self.store.all()
        learning = sum(1 for c in cards if c.is_learning)
        return DeckStats(
            total=len(cards),
            due=sum(1 for c in cards if c.is_due(now)),
            learning=learning,
            graduated=len(cards) - learning,
        )

    # =========================================================================
    # Review
    # =========================================================================

    async def start_review(self, now: datetime | None = None) -> ReviewSession:
        """Start a review session over every card due at `now`."""
        now = self.now(now)
        queue = ReviewQueue(self.scheduler)
        queue.start(await self.store.due_as_of(now), now)
        return ReviewSession(self, queue)

    async def rate_current(
        self,
        session: ReviewSession,
        rating: Rating | str | int,
        now: datetime | None = None,
    ) -> Card:
        """
        Rate the session's current card and persist the result.

        Raises:
            InvalidRating: before any state is touched
            NoCurrentCard: if the session is waiting or done
            CardNotFound: if the card vanished from the store; it leaves the session
            StoreUnavailable: if the write failed; the session is unchanged
        """
        rating = Rating.parse(rating)
        now = self.now(now)
        card = session.current_card(now)

        stored = await self.store.get(card.id)
        if stored is None:
            session.queue.discard(card.id)
            raise CardNotFound(card.id)

        # Schedule from the stored state so edits made outside the session win
        updated = self.scheduler.schedule(stored, rating, now)
        await self.store.upsert(updated)
        session.queue.commit(updated)
        return updated

    # =========================================================================
    # Snapshots
    # =========================================================================

    async def export_snapshot(self) -> list[Card]:
        """Every card in store order, for download or backup."""
        return await self.store.all()

    async def import_snapshot(self, cards: Iterable[Card | Mapping[str, Any]]) -> int:
        """
        Restore cards, overwriting on identity collision.

        Accepts Card objects or snapshot rows. Returns the number of cards written.
        """
        # Validate everything before the first write
        parsed = [
            item if isinstance(item, Card) else CardRecord.model_validate(item).to_card()
            for item in cards
        ]
        for card in parsed:
            await self.store.upsert(card)
        logger.info("Imported {} cards", len(parsed))
        return len(parsed)
