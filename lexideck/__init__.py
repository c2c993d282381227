"""
lexideck: spaced-repetition vocabulary deck.

Words clicked while watching or reading are collected into a flashcard
deck and reviewed with SM-2 scheduling plus short relearning steps.
"""

from .errors import CardNotFound, DeckError, InvalidRating, InvalidWord, NoCurrentCard, StoreUnavailable
from .srs import Card, Deck, InMemoryCardStore, Rating, ReviewSession, SM2Scheduler, SQLCardStore

__version__ = "1.0.0"

__all__ = [
    "Card",
    "Deck",
    "Rating",
    "ReviewSession",
    "SM2Scheduler",
    "InMemoryCardStore",
    "SQLCardStore",
    "DeckError",
    "CardNotFound",
    "InvalidRating",
    "InvalidWord",
    "NoCurrentCard",
    "StoreUnavailable",
]
