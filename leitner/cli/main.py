"""
Typer CLI for the Leitner review scheduler.

Commands:
    leitner db init                    - Create database tables
    leitner items add USER ITEM        - Add an item to a learner's library
    leitner items remove USER ITEM     - Soft-delete an item
    leitner answer USER ITEM --correct - Record an answer
    leitner init-progress USER ITEM    - Create progress on first encounter
    leitner review USER --mode due     - Show a review batch
    leitner stats USER                 - Show box distribution

Usage:
    leitner --help
    leitner items add alice q-1 --type flashcard --text "What is TCP?"
    leitner review alice --mode new --limit 5
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings

from ..core.dates import utc_now
from ..core.exceptions import (
    ItemNotFoundError,
    LeitnerError,
    RepositoryError,
    ReviewValidationError,
)
from ..core.modes import ItemType
from ..core.records import ReviewableItem
from ..db.sql_repository import SqlReviewRepository
from ..scheduling.schemas import ReviewItemView
from ..scheduling.service import ReviewService

app = typer.Typer(
    help="Leitner box spaced-repetition scheduler",
    no_args_is_help=True,
)

console = Console()


# ========================================
# Context Builder (Dependency Injection)
# ========================================


def _repository() -> SqlReviewRepository:
    return SqlReviewRepository.from_settings()


def _service() -> ReviewService:
    repository = _repository()
    return ReviewService(repository, answer_log=repository)


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Map domain errors to exit codes: 2 for bad input, 1 for everything else."""
    try:
        yield
    except ReviewValidationError as exc:
        rprint(f"[red]Invalid input:[/red] {exc}")
        raise typer.Exit(code=2)
    except ItemNotFoundError as exc:
        rprint(f"[red]Not found:[/red] {exc}")
        raise typer.Exit(code=1)
    except RepositoryError as exc:
        rprint(f"[red]Storage error:[/red] {exc}")
        raise typer.Exit(code=1)
    except LeitnerError as exc:
        rprint(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1)


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Create tables for items, progress and the answer log.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    with _handle_errors():
        _repository().init_schema()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# ITEM COMMANDS
# ========================================

items_app = typer.Typer(help="Manage a learner's item library")
app.add_typer(items_app, name="items")


@items_app.command("add")
def items_add(
    user_id: str = typer.Argument(..., help="Learner identifier"),
    item_id: str = typer.Argument(..., help="Item identifier"),
    item_type: ItemType = typer.Option(ItemType.QUESTION, "--type", "-t", help="Item type"),
    study_set: int | None = typer.Option(None, "--study-set", "-s", help="Study set id"),
    text: str | None = typer.Option(None, "--text", help="Prompt text stored as content"),
) -> None:
    """Add (or replace) an item in the learner's library."""
    item = ReviewableItem(
        item_id=item_id,
        user_id=user_id,
        item_type=item_type,
        study_set_id=study_set,
        content={"text": text} if text else {},
    )
    with _handle_errors():
        _repository().add_item(item)
    rprint(f"[green]✓[/green] Added {item_type.value} [cyan]{item_id}[/cyan] for {user_id}")


@items_app.command("remove")
def items_remove(
    user_id: str = typer.Argument(..., help="Learner identifier"),
    item_id: str = typer.Argument(..., help="Item identifier"),
) -> None:
    """Soft-delete an item. Its progress is kept but it is no longer reviewed."""
    with _handle_errors():
        removed = _repository().soft_delete_item(user_id, item_id, utc_now())
    if not removed:
        rprint(f"[yellow]⚠[/yellow] No item {item_id} for {user_id}")
        raise typer.Exit(code=1)
    rprint(f"[green]✓[/green] Removed [cyan]{item_id}[/cyan]")


# ========================================
# REVIEW COMMANDS
# ========================================


@app.command("answer")
def answer(
    user_id: str = typer.Argument(..., help="Learner identifier"),
    item_id: str = typer.Argument(..., help="Item identifier"),
    correct: bool = typer.Option(..., "--correct/--incorrect", help="Whether the answer was correct"),
) -> None:
    """Record an answer and show the new schedule."""
    with _handle_errors():
        result = _service().submit_answer(user_id, item_id, correct)

    marker = "[green]✓ correct[/green]" if correct else "[red]✗ incorrect[/red]"
    rprint(
        f"{marker}  box [bold]{result.box_level}[/bold], next review {result.next_review_date} "
        f"({result.times_correct} correct / {result.times_incorrect} incorrect)"
    )


@app.command("init-progress")
def init_progress(
    user_id: str = typer.Argument(..., help="Learner identifier"),
    item_id: str = typer.Argument(..., help="Item identifier"),
    correct: bool = typer.Option(..., "--correct/--incorrect", help="Whether the first answer was correct"),
) -> None:
    """Create progress from a first answer; existing progress is left alone."""
    with _handle_errors():
        result = _service().initialize_progress(user_id, item_id, correct)

    progress = result.progress
    if result.created:
        rprint(f"[green]✓[/green] Created progress at box {progress.box_level}, next review {progress.next_review_date}")
    else:
        rprint(f"[dim]Progress already exists (box {progress.box_level}, next review {progress.next_review_date})[/dim]")


@app.command("review")
def review(
    user_id: str = typer.Argument(..., help="Learner identifier"),
    mode: str = typer.Option("due", "--mode", "-m", help="due, new or random"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Batch size"),
    item_type: str = typer.Option("all", "--type", "-t", help="all, question or flashcard"),
    study_set: int | None = typer.Option(None, "--study-set", "-s", help="Study set id"),
) -> None:
    """Show the next batch of items to review."""
    with _handle_errors():
        batch = _service().request_review_batch(
            user_id, mode, limit=limit, item_type=item_type, study_set_id=study_set
        )

    if not batch:
        rprint(f"[yellow]Nothing to review in {mode} mode.[/yellow]")
        return

    table = Table(title=f"Review batch ({mode}, {len(batch)} items)", show_header=True)
    table.add_column("Item", style="cyan")
    table.add_column("Type", style="dim")
    table.add_column("Box", justify="right", style="green")
    table.add_column("Next Review", justify="right")
    table.add_column("Correct", justify="right", style="green")
    table.add_column("Incorrect", justify="right", style="red")
    table.add_column("Prompt", max_width=40)

    for entry in batch:
        view = ReviewItemView.from_review_item(entry)
        table.add_row(
            view.item_id,
            view.item_type,
            "new" if view.is_new else str(view.box_level),
            str(view.next_review_date or "-"),
            str(view.times_correct),
            str(view.times_incorrect),
            str(view.content.get("text", "")),
        )

    console.print(table)


@app.command("stats")
def stats(
    user_id: str = typer.Argument(..., help="Learner identifier"),
) -> None:
    """Show box distribution and study-mode counts."""
    with _handle_errors():
        service = _service()
        review_stats = service.request_stats(user_id)
        mode_stats = service.request_study_mode_stats(user_id)

    table = Table(title=f"Leitner boxes for {user_id}")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", justify="right", style="green")

    table.add_row("Due today", str(review_stats.questions_due_today))
    table.add_row("Total in system", str(review_stats.total_questions_in_system))
    for level, count in review_stats.box_counts().items():
        table.add_row(f"Box {level}", str(count))

    console.print(table)

    modes = Table(title="Study modes")
    modes.add_column("Mode", style="cyan")
    modes.add_column("Items", justify="right", style="green")
    modes.add_row("due", str(mode_stats.due_count))
    modes.add_row("new", str(mode_stats.new_count))
    modes.add_row("library", str(mode_stats.total_count))

    console.print(modes)


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
