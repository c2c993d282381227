"""
Deck snapshots: transportable export/import of every card field.

Snapshots are JSON arrays of camelCase card objects, the same shape the
browser deck keeps in local storage, so decks move between the two freely.
Unknown keys (dictionary entries and the like) are ignored on import.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .models import Card, ensure_utc


class CardRecord(BaseModel):
    """Serialized form of a Card."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str = Field(min_length=1)
    word: str
    translation: str
    source_language: str
    context: str | None = None
    context_translation: str | None = None
    ease_factor: float = Field(default=2.5, ge=1.3)
    interval: int = Field(default=0, ge=0)
    repetition: int = Field(default=0, ge=0)
    next_review_date: datetime
    added_at: datetime
    last_reviewed_at: datetime | None = None

    @field_validator("next_review_date", "added_at", "last_reviewed_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @classmethod
    def from_card(cls, card: Card) -> CardRecord:
        return cls(
            id=card.id,
            word=card.word,
            translation=card.translation,
            source_language=card.source_language,
            context=card.context,
            context_translation=card.context_translation,
            ease_factor=card.ease_factor,
            interval=card.interval,
            repetition=card.repetition,
            next_review_date=card.next_review_date,
            added_at=card.added_at,
            last_reviewed_at=card.last_reviewed_at,
        )

    def to_card(self) -> Card:
        return Card(
            id=self.id,
            word=self.word,
            translation=self.translation,
            source_language=self.source_language,
            context=self.context,
            context_translation=self.context_translation,
            ease_factor=self.ease_factor,
            interval=self.interval,
            repetition=self.repetition,
            next_review_date=self.next_review_date,
            added_at=self.added_at,
            last_reviewed_at=self.last_reviewed_at,
        )


def export_snapshot(cards: Iterable[Card]) -> list[dict[str, Any]]:
    """Serialize cards to JSON-ready camelCase dicts."""
    return [CardRecord.from_card(card).model_dump(mode="json", by_alias=True) for card in cards]


def parse_snapshot(rows: Iterable[Mapping[str, Any]], skip_invalid: bool = False) -> list[Card]:
    """
    Parse snapshot rows back into cards.

    Args:
        rows: Decoded snapshot rows
        skip_invalid: Log and skip malformed rows instead of raising

    Raises:
        pydantic.ValidationError: on a malformed row when skip_invalid is False
    """
    cards: list[Card] = []
    for index, row in enumerate(rows):
        try:
            cards.append(CardRecord.model_validate(row).to_card())
        except ValidationError as exc:
            if not skip_invalid:
                raise
            logger.warning("Skipping snapshot row {}: {} errors", index, exc.error_count())
    return cards


def dumps_snapshot(cards: Iterable[Card]) -> str:
    """Serialize cards to a JSON snapshot string."""
    return json.dumps(export_snapshot(cards), ensure_ascii=False, indent=2)


def loads_snapshot(text: str, skip_invalid: bool = False) -> list[Card]:
    """
    Parse a JSON snapshot string.

    Raises:
        ValueError: if the document is not a JSON array
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("Snapshot must be a JSON array of cards")
    return parse_snapshot(data, skip_invalid=skip_invalid)
