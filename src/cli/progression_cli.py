"""
Progression CLI.

A Rich terminal front-end over ProgressionService, standing in for the web
client's review, visit and reward flows.

Commands:
- progression init-db      - Create tables
- progression seed-badges  - Load the default badge catalog
- progression visit        - Record a day of activity
- progression award        - Grant XP
- progression deck         - Show review status of a deck file
- progression review       - Grade one card of a deck
- progression status       - Show level, streak and badges
- progression history      - Show recent XP transactions
"""
from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table

from config import get_settings
from src.progression import (
    BadgeEarned,
    LevelUp,
    PersistenceError,
    ProgressionEvent,
    ProgressionService,
    StreakBonus,
    ValidationError,
    XPAwarded,
)

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="progression",
    help="Learner progression: spaced repetition, XP, streaks and badges",
    no_args_is_help=True,
)
console = Console()

STATUS_STYLES = {
    "new": "cyan",
    "learning": "yellow",
    "review": "blue",
    "mastered": "green",
}


def _service() -> ProgressionService:
    from src.db.gateway import SqlProgressionGateway

    return ProgressionService(SqlProgressionGateway())


def _load_deck_file(path: Path) -> dict[str, str]:
    """Read a deck JSON file: a list of {"id": ..., "front": ...} objects."""
    try:
        cards = json.loads(path.read_text(encoding="utf-8"))
        return {str(card["id"]): card["front"] for card in cards}
    except json.JSONDecodeError as e:
        console.print(f"[red]{path} is not valid JSON: {e}[/red]")
    except KeyError as e:
        console.print(f"[red]Every card in {path} needs an \"id\" and a \"front\" (missing {e})[/red]")
    except TypeError:
        console.print(f"[red]{path} must hold a list of card objects[/red]")
    raise typer.Exit(code=2)


def _not_saved(error: Exception) -> typer.Exit:
    logger.warning(f"Progress not saved: {error}")
    console.print("[bold yellow]Progress not saved this time.[/bold yellow] Try again later.")
    return typer.Exit(code=1)


# =============================================================================
# Display Helpers
# =============================================================================


def render_events(events: list[ProgressionEvent]) -> None:
    """Print learner-facing notices for engine events."""
    for event in events:
        if isinstance(event, XPAwarded):
            console.print(f"[green]+{event.amount} XP[/green] [dim]{event.description or event.source}[/dim]")
        elif isinstance(event, LevelUp):
            console.print(f"[bold magenta]Level up![/bold magenta] You reached level {event.new_level}")
        elif isinstance(event, BadgeEarned):
            badge = event.badge
            console.print(f"[bold yellow]Badge earned:[/bold yellow] {badge.icon} {badge.name}")
        elif isinstance(event, StreakBonus):
            console.print(f"[bold red]{event.streak_days}-day streak![/bold red]")


# =============================================================================
# Commands
# =============================================================================


@app.command("init-db")
def init_db_command() -> None:
    """Create the progression tables."""
    from src.db.database import init_db

    init_db()
    console.print("[green]Tables ready.[/green]")


@app.command("seed-badges")
def seed_badges_command() -> None:
    """Insert the default badge catalog (existing ids are kept)."""
    from src.db.gateway import SqlProgressionGateway
    from src.progression.catalog import DEFAULT_BADGES

    added = SqlProgressionGateway().seed_badges(DEFAULT_BADGES)
    console.print(f"[green]{added} badges added[/green] ({len(DEFAULT_BADGES)} in default catalog)")


@app.command()
def visit(
    user_id: str = typer.Argument(..., help="Learner id"),
    on: Optional[str] = typer.Option(None, "--date", help="Activity date (YYYY-MM-DD)"),
) -> None:
    """Record a day of study activity."""
    service = _service()
    try:
        update = service.record_activity(user_id, date.fromisoformat(on) if on else None)
    except PersistenceError as e:
        raise _not_saved(e)

    render_events(update.events)
    record = update.record
    if not update.changed:
        console.print(f"[dim]Already counted today. Streak: {record.current_streak}[/dim]")
    else:
        console.print(f"Streak: [bold]{record.current_streak}[/bold] (best {record.longest_streak})")


@app.command()
def award(
    user_id: str = typer.Argument(..., help="Learner id"),
    amount: int = typer.Argument(..., help="XP to grant"),
    source: str = typer.Option("quiz", "--source", "-s", help="Transaction source tag"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
) -> None:
    """Grant XP to a learner."""
    service = _service()
    try:
        result = service.award_xp(user_id, amount, source, description)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    except PersistenceError as e:
        raise _not_saved(e)

    render_events(result.events)
    console.print(f"Total: [bold]{result.new_total_xp} XP[/bold], level {result.new_level}")


@app.command()
def deck(
    user_id: str = typer.Argument(..., help="Learner id"),
    deck_file: Path = typer.Argument(..., exists=True, help="Deck JSON file"),
) -> None:
    """Show review status for every card of a deck."""
    service = _service()
    items = _load_deck_file(deck_file)
    try:
        progress = service.load_deck(user_id, items)
    except PersistenceError as e:
        raise _not_saved(e)
    due = progress.due_ids

    table = Table(title=f"Deck {progress.content_group_key}")
    table.add_column("ID")
    table.add_column("Front")
    table.add_column("Status")
    table.add_column("Next review")

    for item_id, status in progress.statuses.items():
        state = progress.progress.get(item_id)
        color = STATUS_STYLES[status.value]
        next_review = str(state.next_review_at) if state else "-"
        if item_id in due:
            next_review = f"[bold]{next_review} (due)[/bold]"
        table.add_row(item_id, items[item_id][:48], f"[{color}]{status.value}[/{color}]", next_review)

    console.print(table)
    console.print(f"[dim]{len(due)} of {len(items)} cards due[/dim]")


@app.command()
def review(
    user_id: str = typer.Argument(..., help="Learner id"),
    deck_file: Path = typer.Argument(..., exists=True, help="Deck JSON file"),
    item_id: str = typer.Argument(..., help="Card id within the deck"),
    quality: Optional[int] = typer.Option(None, "--quality", "-q", help="Recall quality 0-5"),
    response_ms: Optional[int] = typer.Option(None, "--response-ms", help="Answer time in ms"),
    wrong: bool = typer.Option(False, "--wrong", help="Timed answer was incorrect"),
) -> None:
    """Grade one card, by explicit quality or by answer time."""
    service = _service()
    items = _load_deck_file(deck_file)
    if item_id not in items:
        console.print(f"[red]Card {item_id} is not in {deck_file}[/red]")
        raise typer.Exit(code=2)
    try:
        key = service.load_deck(user_id, items).content_group_key
        if quality is not None:
            outcome = service.record_review(user_id, item_id, key, quality)
        elif response_ms is not None:
            outcome = service.record_response(user_id, item_id, key, response_ms, not wrong)
        else:
            console.print("[red]Pass --quality or --response-ms[/red]")
            raise typer.Exit(code=2)
    except ValidationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    except PersistenceError as e:
        raise _not_saved(e)

    state = outcome.state
    console.print(
        f"Quality {outcome.quality}: next review in [bold]{state.interval_days}[/bold] days "
        f"({state.next_review_at}), ease {state.ease_factor:.2f}"
    )
    render_events(outcome.events)
    if not outcome.progress_saved:
        console.print("[bold yellow]Progress not saved this time.[/bold yellow]")


@app.command()
def status(user_id: str = typer.Argument(..., help="Learner id")) -> None:
    """Show level, streak and earned badges."""
    service = _service()
    try:
        summary = service.summary(user_id)
    except PersistenceError as e:
        raise _not_saved(e)
    progress = summary.progress

    bar = ProgressBar(total=progress.needed, completed=max(progress.current, 0), width=30)
    level_table = Table.grid(padding=(0, 1))
    level_table.add_row(f"[bold]Level {summary.account.level}[/bold]", bar)
    level_table.add_row("", f"{progress.current} / {progress.needed} XP ({progress.percentage:.0f}%)")
    level_table.add_row("", f"[dim]Total: {summary.account.total_xp} XP[/dim]")
    console.print(Panel(level_table, title="Experience"))

    streak = summary.streak
    console.print(
        Panel(
            f"[bold]{streak.current_streak}[/bold] days  [dim]Best: {streak.longest_streak} days[/dim]",
            title="Daily Streak",
        )
    )

    if summary.earned_badges:
        badges = Table(title="Badges")
        badges.add_column("")
        badges.add_column("Name")
        badges.add_column("Description")
        for badge in summary.earned_badges:
            badges.add_row(badge.icon, badge.name, badge.description)
        console.print(badges)
    else:
        console.print("[dim]No badges yet[/dim]")


@app.command()
def history(
    user_id: str = typer.Argument(..., help="Learner id"),
    limit: int = typer.Option(20, "--limit", "-n"),
) -> None:
    """Show the most recent XP transactions."""
    service = _service()
    try:
        transactions = service.gateway.list_transactions(user_id, limit)
    except PersistenceError as e:
        raise _not_saved(e)

    table = Table(title=f"XP history for {user_id}")
    table.add_column("When")
    table.add_column("Amount", justify="right")
    table.add_column("Source")
    table.add_column("Description")
    for tx in transactions:
        when = tx.created_at.strftime("%Y-%m-%d %H:%M") if tx.created_at else "-"
        table.add_row(when, f"{tx.amount:+d}", tx.source, tx.description or "")
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def configure_logging() -> None:
    """Route loguru output to stderr and the configured log file."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)


def main() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
