"""
Spaced repetition core for the vocabulary deck.

Components:
- Card, Rating: Flashcard model and learner ratings
- SM2Scheduler: Learning steps + SM-2 review intervals
- ReviewQueue: In-session ordering with short-term relearning
- CardStore: Persistence contract (InMemoryCardStore, SQLCardStore)
- Deck: Learner-facing facade and ReviewSession handles
"""

from .card_store import CardStore, InMemoryCardStore, SQLCardStore
from .deck import AddResult, Deck, DeckStats, ReviewSession
from .models import Card, IntervalPreview, Rating, utc_now
from .review_queue import ReviewQueue, SessionState, WaitingCountdown
from .scheduler import SM2Config, SM2Scheduler, format_interval
from .script import CardSides, card_sides, is_target_script, normalize_card_id
from .snapshot import CardRecord, dumps_snapshot, export_snapshot, loads_snapshot, parse_snapshot

__all__ = [
    # Model
    "Card",
    "Rating",
    "IntervalPreview",
    "utc_now",
    # Scheduling
    "SM2Config",
    "SM2Scheduler",
    "format_interval",
    # Session
    "ReviewQueue",
    "SessionState",
    "WaitingCountdown",
    # Persistence
    "CardStore",
    "InMemoryCardStore",
    "SQLCardStore",
    # Facade
    "Deck",
    "AddResult",
    "DeckStats",
    "ReviewSession",
    # Scripts
    "CardSides",
    "card_sides",
    "is_target_script",
    "normalize_card_id",
    # Snapshots
    "CardRecord",
    "export_snapshot",
    "parse_snapshot",
    "dumps_snapshot",
    "loads_snapshot",
]
