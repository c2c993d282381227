"""
lexideck: terminal front-end for the vocabulary deck.

Commands:
- lexideck add       - Add a word to the deck
- lexideck review    - Review due cards
- lexideck stats     - Show deck statistics
- lexideck due       - List due cards
- lexideck remove    - Remove a card
- lexideck reset     - Send a card back to learning
- lexideck export    - Write a JSON snapshot
- lexideck import    - Restore a JSON snapshot
"""
from __future__ import annotations

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .config import get_settings
from .errors import DeckError
from .srs import Card, Deck, Rating, ReviewSession, SQLCardStore, WaitingCountdown
from .srs.scheduler import format_interval
from .srs.script import card_sides
from .srs.snapshot import dumps_snapshot, loads_snapshot

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="lexideck",
    help="lexideck: spaced-repetition vocabulary deck",
    no_args_is_help=True,
)
console = Console()

# Keyboard shortcuts, matching the browser review panel
RATING_KEYS: dict[str, Rating] = {
    "1": Rating.AGAIN,
    "2": Rating.HARD,
    "3": Rating.GOOD,
    "4": Rating.EASY,
}

RATING_STYLES = {
    Rating.AGAIN: "red",
    Rating.HARD: "yellow",
    Rating.GOOD: "green",
    Rating.EASY: "blue",
}


def fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def open_deck() -> Deck:
    """Build a deck over the configured store."""
    settings = get_settings()
    try:
        store = SQLCardStore(settings.database_url)
    except DeckError as e:
        fail(e)
    return Deck(store, default_language=settings.source_language)


# =============================================================================
# Display Helpers
# =============================================================================


def display_front(card: Card, session: ReviewSession) -> None:
    """Display the target-language side of a card."""
    sides = card_sides(card)
    status = "[yellow]Learning[/yellow]  |  " if card.is_learning else ""
    header = f"{status}{session.reviewed_count} reviewed  |  {session.remaining} remaining"

    panel = Panel(
        f"[bold]{sides.front}[/bold]",
        title=header,
        title_align="left",
        border_style="cyan",
        padding=(1, 2),
    )
    console.print(panel)


def display_back(card: Card) -> None:
    """Display the answer side, with context sentences when present."""
    sides = card_sides(card)
    content = sides.back
    if sides.front_context:
        content += f"\n\n[italic]{sides.front_context}[/italic]"
    if sides.back_context:
        content += f"\n[dim italic]{sides.back_context}[/dim italic]"

    console.print(Panel(content, border_style="green", padding=(1, 2)))


def rating_legend(session: ReviewSession, card: Card) -> str:
    previews = session.previews(card)
    parts = []
    for key, rating in RATING_KEYS.items():
        color = RATING_STYLES[rating]
        parts.append(f"[{color}]{key} {rating.label} ({format_interval(previews[rating])})[/{color}]")
    return "  ".join(parts) + "  [dim]r Remove  q Quit[/dim]"


async def ask(prompt: str, **kwargs) -> str:
    """Prompt.ask off the event loop."""
    return await asyncio.to_thread(Prompt.ask, prompt, **kwargs)


async def wait_for_learning_card(countdown: WaitingCountdown) -> None:
    """Count down until the next learning card is ready."""
    with console.status(f"Learning card coming up in {countdown.seconds_left}s...") as status:
        remaining = countdown.seconds_left
        while remaining > 0:
            status.update(f"Learning card coming up in {remaining}s...")
            await asyncio.sleep(1)
            remaining -= 1


# =============================================================================
# Commands
# =============================================================================


@app.command()
def add(
    word: str = typer.Argument(..., help="Word in the language being learned"),
    translation: str = typer.Argument(..., help="Translation shown on the back"),
    language: Optional[str] = typer.Option(None, "--lang", "-l", help="Source language tag"),
    context: Optional[str] = typer.Option(None, "--context", "-c", help="Example sentence"),
    context_translation: Optional[str] = typer.Option(
        None, "--context-translation", "-t", help="Translation of the example sentence"
    ),
) -> None:
    """Add a word to the deck."""
    deck = open_deck()
    try:
        result = asyncio.run(
            deck.add_word(word, translation, language, context, context_translation)
        )
    except DeckError as e:
        fail(e)

    if result.added:
        console.print(f"[green]Added[/green] {result.card.id}")
    else:
        console.print(f"[yellow]Already in deck:[/yellow] {result.card.id}")


@app.command()
def stats() -> None:
    """Show deck statistics."""
    deck = open_deck()
    try:
        deck_stats = asyncio.run(deck.stats())
    except DeckError as e:
        fail(e)

    table = Table(title="Deck", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total cards", str(deck_stats.total))
    table.add_row("Due now", str(deck_stats.due))
    table.add_row("Learning", str(deck_stats.learning))
    table.add_row("Graduated", str(deck_stats.graduated))
    console.print(table)


@app.command()
def due(
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum cards to list"),
) -> None:
    """List cards due for review."""
    deck = open_deck()
    try:
        cards = asyncio.run(deck.store.due_as_of(deck.now()))
    except DeckError as e:
        fail(e)

    if not cards:
        console.print("[green]No cards due[/green]")
        return

    table = Table(title=f"Due cards ({len(cards)})")
    table.add_column("ID")
    table.add_column("Front")
    table.add_column("Back")
    table.add_column("Interval", justify="right")
    table.add_column("Ease", justify="right")

    for card in sorted(cards, key=lambda c: c.next_review_date)[:limit]:
        sides = card_sides(card)
        interval = "learning" if card.is_learning else f"{card.interval}d"
        table.add_row(card.id, sides.front, sides.back, interval, f"{card.ease_factor:.2f}")
    console.print(table)


async def run_review(deck: Deck) -> int:
    """Interactive review loop. Returns the number of ratings applied."""
    session = await deck.start_review()

    if session.size == 0:
        console.print("[green]No cards due[/green]")
        return 0

    while True:
        current = session.current()
        if current is None:
            break
        if isinstance(current, WaitingCountdown):
            await wait_for_learning_card(current)
            continue

        display_front(current, session)
        answer = await ask("[dim]Enter to show answer, q to quit[/dim]", default="", show_default=False)
        if answer.strip().lower() == "q":
            session.close()
            break

        display_back(current)
        console.print(rating_legend(session, current))
        choice = await ask(
            "Rating",
            choices=[*RATING_KEYS, "r", "q"],
            default="3",
            show_choices=False,
        )

        if choice == "q":
            session.close()
            break
        if choice == "r":
            await session.remove_current()
            console.print(f"[red]Removed[/red] {current.id}")
            continue

        rating = RATING_KEYS[choice]
        step = session.previews(current)[rating]
        updated = await session.rate(rating)
        if updated.is_learning:
            console.print(f"[yellow]Again in {format_interval(step)}[/yellow]")

    noun = "card" if session.reviewed_count == 1 else "cards"
    console.print(f"\n[bold green]Reviewed {session.reviewed_count} {noun}[/bold green]")
    return session.reviewed_count


@app.command()
def review() -> None:
    """Review due cards."""
    deck = open_deck()
    try:
        asyncio.run(run_review(deck))
    except DeckError as e:
        fail(e)


@app.command()
def remove(
    card_id: str = typer.Argument(..., help="Card identity"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Remove a card from the deck."""
    if not confirm and not Confirm.ask(f"Remove {card_id}?", default=False):
        raise typer.Exit(0)

    deck = open_deck()
    try:
        asyncio.run(deck.remove_card(card_id))
    except DeckError as e:
        fail(e)
    console.print(f"[green]Removed {card_id}[/green]")


@app.command()
def reset(
    card_id: str = typer.Argument(..., help="Card identity"),
) -> None:
    """Send a card back to the learning phase, due now."""
    deck = open_deck()
    try:
        asyncio.run(deck.reset_card(card_id))
    except DeckError as e:
        fail(e)
    console.print(f"[green]Reset {card_id}[/green]")


@app.command("export")
def export_deck(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Snapshot file"),
) -> None:
    """Write every card to a JSON snapshot."""
    deck = open_deck()
    try:
        cards = asyncio.run(deck.export_snapshot())
    except DeckError as e:
        fail(e)

    if output is None:
        export_dir = get_settings().export_dir
        output = export_dir / f"deck_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(dumps_snapshot(cards), encoding="utf-8")
    console.print(f"[green]Exported {len(cards)} cards to {output}[/green]")


@app.command("import")
def import_deck(
    snapshot: Path = typer.Argument(..., exists=True, dir_okay=False, help="Snapshot file"),
    skip_invalid: bool = typer.Option(False, "--skip-invalid", help="Skip malformed cards"),
) -> None:
    """Restore cards from a JSON snapshot, overwriting on identity collision."""
    try:
        cards = loads_snapshot(snapshot.read_text(encoding="utf-8"), skip_invalid=skip_invalid)
    except (ValueError, ValidationError) as e:
        fail(e)

    deck = open_deck()
    try:
        count = asyncio.run(deck.import_snapshot(cards))
    except DeckError as e:
        fail(e)
    console.print(f"[green]Imported {count} cards[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )

    app()


if __name__ == "__main__":
    main()
