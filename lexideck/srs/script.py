"""
Script classification for flashcard sides.

The learner-facing front of a card is whichever of word/translation is
written in the target script, not whichever field it was stored in. Cards
added from a reverse lookup (English clicked, Russian translation) therefore
still show the Russian on the front.
"""

from __future__ import annotations

import unicodedata
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Card

# Inclusive code point ranges per language tag
SCRIPT_RANGES: dict[str, tuple[tuple[int, int], ...]] = {
    "ru": ((0x0400, 0x04FF),),  # Cyrillic
    "uk": ((0x0400, 0x04FF),),
    "bg": ((0x0400, 0x04FF),),
    "th": ((0x0E00, 0x0E7F),),  # Thai
}

# Last code point of Latin Extended-B
_LATIN_END = 0x024F


def _in_ranges(char: str, ranges: tuple[tuple[int, int], ...]) -> bool:
    code = ord(char)
    return any(lo <= code <= hi for lo, hi in ranges)


def is_target_script(text: str | None, language: str | None = None) -> bool:
    """
    Check whether text contains target-script letters.

    Args:
        text: Text to classify
        language: Language tag; known tags use their script range,
            anything else counts any non-Latin letter

    Returns:
        True if at least one character belongs to the target script
    """
    if not text:
        return False

    ranges = SCRIPT_RANGES.get((language or "").lower())
    for char in text:
        if ranges is not None:
            if _in_ranges(char, ranges):
                return True
        elif char.isalpha() and ord(char) > _LATIN_END:
            return True
    return False


def normalize_card_id(text: str) -> str:
    """
    Normalize a word into its card identity.

    Casefolds, drops punctuation, digits and whitespace, and folds
    Cyrillic ё into е so "Ёлка!" and "елка" share one card.
    """
    kept = []
    for char in text.casefold():
        if char.isalpha() or unicodedata.category(char).startswith("M"):
            kept.append(char)
    return "".join(kept).replace("ё", "е")


def identity_text(word: str, translation: str, language: str | None = None) -> str:
    """Pick the side a card's identity is computed from (target script first)."""
    if is_target_script(word, language):
        return word
    if is_target_script(translation, language):
        return translation
    return word


@dataclass(frozen=True)
class CardSides:
    """Learner-facing orientation of a card."""

    front: str
    back: str
    front_context: str | None = None
    back_context: str | None = None


def card_sides(card: Card) -> CardSides:
    """
    Orient a card so the target-script text is on the front.

    Context sentences follow their words: when the fields are swapped,
    context_translation is the target-language sentence.
    """
    swapped = not is_target_script(card.word, card.source_language) and is_target_script(
        card.translation, card.source_language
    )
    if swapped:
        return CardSides(
            front=card.translation,
            back=card.word,
            front_context=card.context_translation,
            back_context=card.context,
        )
    return CardSides(
        front=card.word,
        back=card.translation,
        front_context=card.context,
        back_context=card.context_translation,
    )
