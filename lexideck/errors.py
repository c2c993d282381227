"""
Error types raised by the deck core.

Every error is recoverable by the caller: retry the store call, re-fetch the
due cards, or pick a valid rating. Nothing here is fatal to the process.
"""

from __future__ import annotations

from typing import Any


class DeckError(Exception):
    """Base class for all deck errors."""


class CardNotFound(DeckError, KeyError):
    """Raised when rating or removing an identity absent from the store."""

    def __init__(self, card_id: str):
        super().__init__(card_id)
        self.card_id = card_id

    def __str__(self) -> str:
        return f"Card not found: {self.card_id!r}"


class InvalidRating(DeckError, ValueError):
    """Raised for a rating outside Again/Hard/Good/Easy."""

    def __init__(self, value: Any):
        super().__init__(value)
        self.value = value

    def __str__(self) -> str:
        return f"Invalid rating: {self.value!r} (expected again, hard, good or easy)"


class InvalidWord(DeckError, ValueError):
    """Raised when a word normalizes to an empty card identity."""


class StoreUnavailable(DeckError):
    """Raised when the persistence backend fails a read or write."""


class NoCurrentCard(DeckError):
    """Raised when rating a session that has no card to show."""
