"""
Card Store: durable collection of flashcards.

The core only needs a key-value collection it can await:
- get / upsert / remove by card identity
- due_as_of(now): cards with next_review_date <= now, in store order
- all(): every card, in store order

Two implementations:
- InMemoryCardStore: dict-backed, for tests and embedding callers
- SQLCardStore: SQLAlchemy Core over SQLite (default) or any SQL backend

Stores guarantee identity integrity and durability of acknowledged writes.
They do not validate scheduling invariants.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from loguru import logger
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..errors import CardNotFound, StoreUnavailable
from .models import Card, ensure_utc

T = TypeVar("T")


@runtime_checkable
class CardStore(Protocol):
    """Read/write contract the deck needs from persistence."""

    async def get(self, card_id: str) -> Card | None: ...

    async def upsert(self, card: Card) -> None: ...

    async def remove(self, card_id: str) -> None: ...

    async def due_as_of(self, now: datetime) -> list[Card]: ...

    async def all(self) -> list[Card]: ...


# =============================================================================
# In-Memory Store
# =============================================================================


class InMemoryCardStore:
    """
    Dict-backed card store.

    Insertion order is store order; replacing an existing id keeps its
    position. Cards are copied on the way in and out so callers cannot
    mutate stored state behind the store's back.
    """

    def __init__(self, cards: list[Card] | None = None):
        self._cards: dict[str, Card] = {}
        for card in cards or []:
            self._cards[card.id] = copy.copy(card)

    async def get(self, card_id: str) -> Card | None:
        card = self._cards.get(card_id)
        return copy.copy(card) if card is not None else None

    async def upsert(self, card: Card) -> None:
        self._cards[card.id] = copy.copy(card)

    async def remove(self, card_id: str) -> None:
        if card_id not in self._cards:
            raise CardNotFound(card_id)
        del self._cards[card_id]

    async def due_as_of(self, now: datetime) -> list[Card]:
        return [copy.copy(c) for c in self._cards.values() if c.is_due(now)]

    async def all(self) -> list[Card]:
        return [copy.copy(c) for c in self._cards.values()]

    def __len__(self) -> int:
        return len(self._cards)


# =============================================================================
# SQL Store
# =============================================================================

metadata = MetaData()

cards_table = Table(
    "cards",
    metadata,
    Column("position", Integer, primary_key=True, autoincrement=True),
    Column("id", String(255), nullable=False, unique=True),
    Column("word", Text, nullable=False),
    Column("translation", Text, nullable=False),
    Column("source_language", String(16), nullable=False),
    Column("context", Text),
    Column("context_translation", Text),
    Column("ease_factor", Float, nullable=False, default=2.5),
    Column("interval_days", Integer, nullable=False, default=0),
    Column("repetition", Integer, nullable=False, default=0),
    Column("next_review_date", DateTime, nullable=False, index=True),
    Column("added_at", DateTime, nullable=False),
    Column("last_reviewed_at", DateTime),
)


def _to_db(value: datetime | None) -> datetime | None:
    """Aware datetime -> naive UTC for storage."""
    if value is None:
        return None
    return ensure_utc(value).replace(tzinfo=None)


def _from_db(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _card_values(card: Card) -> dict:
    return {
        "id": card.id,
        "word": card.word,
        "translation": card.translation,
        "source_language": card.source_language,
        "context": card.context,
        "context_translation": card.context_translation,
        "ease_factor": card.ease_factor,
        "interval_days": card.interval,
        "repetition": card.repetition,
        "next_review_date": _to_db(card.next_review_date),
        "added_at": _to_db(card.added_at),
        "last_reviewed_at": _to_db(card.last_reviewed_at),
    }


def _row_to_card(row) -> Card:
    return Card(
        id=row.id,
        word=row.word,
        translation=row.translation,
        source_language=row.source_language,
        context=row.context,
        context_translation=row.context_translation,
        ease_factor=float(row.ease_factor),
        interval=int(row.interval_days),
        repetition=int(row.repetition),
        next_review_date=_from_db(row.next_review_date),
        added_at=_from_db(row.added_at),
        last_reviewed_at=_from_db(row.last_reviewed_at),
    )


def create_store_engine(database_url: str) -> Engine:
    """
    Create an engine for the card store.

    SQLite files get their parent directory created. In-memory SQLite uses
    a static pool so worker threads share one database.
    """
    url = make_url(database_url)
    kwargs: dict = {"pool_pre_ping": True}

    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
            kwargs.pop("pool_pre_ping")
        else:
            Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    return create_engine(url, **kwargs)


class SQLCardStore:
    """
    SQLAlchemy-backed card store.

    Every write runs in its own transaction, so a rating persisted for one
    card never clobbers a concurrent write for another. Blocking database
    calls run in a worker thread.
    """

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        """
        Initialize the store and create the schema if needed.

        Args:
            database_url: SQLAlchemy URL (defaults to settings.database_url)
            engine: Pre-built engine (takes precedence over database_url)
        """
        if engine is None:
            if database_url is None:
                from ..config import get_settings

                database_url = get_settings().database_url
            engine = create_store_engine(database_url)

        self.engine = engine
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreUnavailable(f"Cannot initialize card store: {exc}") from exc

        logger.info("SQLCardStore initialized at {}", self.engine.url.render_as_string(hide_password=True))

    async def _run(self, fn: Callable[[], T], action: str) -> T:
        try:
            return await asyncio.to_thread(fn)
        except SQLAlchemyError as exc:
            logger.warning("Card store {} failed: {}", action, exc)
            raise StoreUnavailable(f"Card store {action} failed: {exc}") from exc

    # =========================================================================
    # Reads
    # =========================================================================

    async def get(self, card_id: str) -> Card | None:
        def _get() -> Card | None:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(cards_table).where(cards_table.c.id == card_id)
                ).first()
            return _row_to_card(row) if row is not None else None

        return await self._run(_get, "get")

    async def due_as_of(self, now: datetime) -> list[Card]:
        cutoff = _to_db(now)

        def _due() -> list[Card]:
            with self.engine.connect() as conn:
                rows = conn.execute(
                    select(cards_table)
                    .where(cards_table.c.next_review_date <= cutoff)
                    .order_by(cards_table.c.position)
                ).fetchall()
            return [_row_to_card(row) for row in rows]

        return await self._run(_due, "due query")

    async def all(self) -> list[Card]:
        def _all() -> list[Card]:
            with self.engine.connect() as conn:
                rows = conn.execute(select(cards_table).order_by(cards_table.c.position)).fetchall()
            return [_row_to_card(row) for row in rows]

        return await self._run(_all, "read")

    # =========================================================================
    # Writes
    # =========================================================================

    async def upsert(self, card: Card) -> None:
        values = _card_values(card)

        def _upsert() -> None:
            with self.engine.begin() as conn:
                exists = conn.execute(
                    select(cards_table.c.position).where(cards_table.c.id == card.id)
                ).first()
                if exists is None:
                    conn.execute(insert(cards_table).values(**values))
                else:
                    conn.execute(
                        update(cards_table).where(cards_table.c.id == card.id).values(**values)
                    )

        await self._run(_upsert, "upsert")

    async def remove(self, card_id: str) -> None:
        def _remove() -> int:
            with self.engine.begin() as conn:
                result = conn.execute(delete(cards_table).where(cards_table.c.id == card_id))
                return result.rowcount

        if await self._run(_remove, "remove") == 0:
            raise CardNotFound(card_id)

    def close(self) -> None:
        """Dispose of the connection pool."""
        self.engine.dispose()
