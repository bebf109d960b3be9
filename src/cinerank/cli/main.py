"""Main Typer application for cinerank."""

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from cinerank.cli.errorhandler import handle_cli_errors
from cinerank.cli.prompts import RichComparisonPrompt
from cinerank.community import CommunityAggregator
from cinerank.config import CinerankConfig, config_path_for, load_config, save_config
from cinerank.database import DuckDBStorageManager, RankingStore
from cinerank.exceptions import NotFoundError
from cinerank.logging_setup import LogLevel, configure_logging, console
from cinerank.protocols import Identity
from cinerank.ranking import TIER_ORDER, MediaType, RankedList, SentimentTier, Title, TierPolicy
from cinerank.service import RatingOutcome, RatingService

app = typer.Typer(
    name="cinerank",
    help="Rank the movies and shows you watched by comparing them head to head",
    add_completion=False,
)

logger = logging.getLogger(__name__)

UserOption = Annotated[str, typer.Option("--user", "-u", envvar="CINERANK_USER", help="Whose list to use")]
RootOption = Annotated[Path, typer.Option("--root", help="Directory holding .cinerank/ (config and database)")]
MediaOption = Annotated[MediaType, typer.Option("--media", "-m", case_sensitive=False, help="Movie or TV list")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Show full tracebacks on errors")]


@app.callback()
def main(
    log_level: Annotated[
        LogLevel | None,
        typer.Option("--log-level", case_sensitive=False, help="Defaults to $CINERANK_LOG_LEVEL or INFO"),
    ] = None,
) -> None:
    """Configure logging before any command runs."""
    configure_logging(log_level)


# ==============================================================================
# Engine wiring
# ==============================================================================


@dataclass
class _Engine:
    config: CinerankConfig
    policy: TierPolicy
    store: RankingStore
    aggregator: CommunityAggregator


@contextlib.contextmanager
def _open_engine(root: Path) -> Iterator[_Engine]:
    """Open the database under ``root`` and rebuild the community aggregate from it."""
    config = load_config(root)
    db_path = root / config.storage.database_path
    logger.debug("Opening %s", db_path)
    storage = DuckDBStorageManager(db_path)
    try:
        store = RankingStore(storage)
        aggregator = CommunityAggregator.from_ratings(store.load_global_ratings(), config.community)
        yield _Engine(
            config=config,
            policy=TierPolicy.from_settings(config.scoring),
            store=store,
            aggregator=aggregator,
        )
    finally:
        storage.close()


def _open_service(engine: _Engine, user: str) -> RatingService:
    identity = Identity(user_id=user, username=user)
    service = RatingService(identity, engine.aggregator, engine.store, policy=engine.policy)
    dropped = service.load()
    if dropped:
        console.print(f"[yellow]Dropped {len(dropped)} duplicate title(s) from your list.[/yellow]")
    return service


def _resolve_title(ranked_list: RankedList, ref: str) -> Title:
    """Find a title by id prefix or exact catalog id."""
    matches = [title for title in ranked_list if title.title_id.startswith(ref) or title.catalog_id == ref]
    if not matches:
        raise NotFoundError(ref)
    if len(matches) > 1:
        msg = f"'{ref}' matches {len(matches)} titles; use more of the id"
        raise typer.BadParameter(msg)
    return matches[0]


def _format_score(score: float | None, policy: TierPolicy) -> str:
    return "-" if score is None else f"{score:.{policy.display_precision}f}"


def _report(outcome: RatingOutcome, ranked_list: RankedList, policy: TierPolicy, verb: str) -> None:
    title = outcome.title
    position = ranked_list.position_of(title.title_id) + 1
    size = len(ranked_list.tier_members(title.tier))
    console.print(
        f"[green]{verb}[/green] [bold]{escape(title.display_title)}[/bold] in {title.tier.label} "
        f"at #{position} of {size} with score [magenta]{title.display_score(policy.display_precision)}[/magenta]"
    )
    _report_side_effects(outcome, title.catalog_id)


def _report_side_effects(outcome: RatingOutcome, catalog_id: str | None) -> None:
    for rating in outcome.aggregates:
        if rating.catalog_id == catalog_id:
            console.print(
                f"Community: {rating.average_rating:.2f} average from {rating.number_of_ratings} rating(s)"
            )
    for error in outcome.aggregate_errors:
        console.print(f"[yellow]Community update failed:[/yellow] {escape(str(error))}")
    for failure in outcome.persistence_failures:
        console.print(f"[yellow]Not saved:[/yellow] {escape(str(failure))}")


# ==============================================================================
# Commands
# ==============================================================================


@app.command()
def rate(
    title: Annotated[str, typer.Argument(help="Title to rate")],
    tier: Annotated[
        SentimentTier, typer.Option("--tier", "-t", case_sensitive=False, help="How you felt about it")
    ],
    user: UserOption,
    catalog_id: Annotated[
        str | None, typer.Option("--catalog-id", help="Catalog id; enables community ratings")
    ] = None,
    media: MediaOption = MediaType.MOVIE,
    root: RootOption = Path(),
    debug: DebugOption = False,
) -> None:
    """Rate a new title by comparing it against your list."""
    with handle_cli_errors(debug=debug), _open_engine(root) as engine:
        service = _open_service(engine, user)
        candidate = Title.new(title, tier, media_type=media, catalog_id=catalog_id)
        outcome = service.rate(candidate, RichComparisonPrompt(console))
        if outcome is None:
            console.print("[yellow]Rating cancelled; your list is unchanged.[/yellow]")
            return
        _report(outcome, service.ranked_list(media), engine.policy, "Ranked")


@app.command()
def rerank(
    title_ref: Annotated[str, typer.Argument(help="Title id (or a unique prefix) or catalog id")],
    tier: Annotated[
        SentimentTier, typer.Option("--tier", "-t", case_sensitive=False, help="How you feel about it now")
    ],
    user: UserOption,
    media: MediaOption = MediaType.MOVIE,
    root: RootOption = Path(),
    debug: DebugOption = False,
) -> None:
    """Move a title you already rated by comparing it again."""
    with handle_cli_errors(debug=debug), _open_engine(root) as engine:
        service = _open_service(engine, user)
        ranked_list = service.ranked_list(media)
        title = _resolve_title(ranked_list, title_ref)
        outcome = service.rerank(title.title_id, tier, RichComparisonPrompt(console), media)
        if outcome is None:
            console.print("[yellow]Re-rank cancelled; your list is unchanged.[/yellow]")
            return
        _report(outcome, ranked_list, engine.policy, "Moved")


@app.command()
def remove(
    title_ref: Annotated[str, typer.Argument(help="Title id (or a unique prefix) or catalog id")],
    user: UserOption,
    media: MediaOption = MediaType.MOVIE,
    root: RootOption = Path(),
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip the confirmation")] = False,
    debug: DebugOption = False,
) -> None:
    """Remove a title from your list."""
    with handle_cli_errors(debug=debug), _open_engine(root) as engine:
        service = _open_service(engine, user)
        title = _resolve_title(service.ranked_list(media), title_ref)
        if not yes and not typer.confirm(f"Remove '{title.display_title}'?", default=False):
            console.print("Nothing removed.")
            return
        outcome = service.remove(title.title_id, media)
        console.print(f"[green]Removed[/green] [bold]{escape(title.display_title)}[/bold]")
        _report_side_effects(outcome, title.catalog_id)


@app.command("list")
def list_titles(
    user: UserOption,
    media: MediaOption = MediaType.MOVIE,
    root: RootOption = Path(),
    debug: DebugOption = False,
) -> None:
    """Show your ranked list, best first."""
    with handle_cli_errors(debug=debug), _open_engine(root) as engine:
        service = _open_service(engine, user)
        ranked_list = service.ranked_list(media)
        if not len(ranked_list):
            console.print(f"[dim]No {media.value} titles ranked yet.[/dim]")
            return

        for tier in TIER_ORDER:
            members = ranked_list.tier_members(tier)
            if not members:
                continue
            table = Table(title=tier.label)
            table.add_column("#", style="cyan", justify="right")
            table.add_column("Title", style="green")
            table.add_column("Score", style="magenta", justify="right")
            table.add_column("Original", justify="right")
            table.add_column("Comparisons", justify="right")
            table.add_column("Id", style="dim")
            for position, title in enumerate(members, 1):
                table.add_row(
                    str(position),
                    escape(title.display_title),
                    str(title.display_score(engine.policy.display_precision)),
                    _format_score(title.original_score, engine.policy),
                    str(title.comparisons_count),
                    title.title_id[:8],
                )
            console.print(table)


@app.command()
def community(
    media: Annotated[
        MediaType | None, typer.Option("--media", "-m", case_sensitive=False, help="Only this media type")
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of titles to show")] = 10,
    root: RootOption = Path(),
    debug: DebugOption = False,
) -> None:
    """Show the community leaderboard."""
    with handle_cli_errors(debug=debug), _open_engine(root) as engine:
        entries = engine.aggregator.leaderboard(media, limit=limit)
        if not entries:
            console.print("[dim]No community ratings yet.[/dim]")
            return

        table = Table(title=f"Top {len(entries)} Community Picks")
        table.add_column("Rank", style="cyan", justify="right")
        table.add_column("Title", style="green")
        table.add_column("Score", style="magenta", justify="right")
        table.add_column("Average", justify="right")
        table.add_column("Ratings", justify="right")
        table.add_column("Sentiment")
        for entry in entries:
            rating = entry.rating
            sentiment = rating.sentiment(engine.policy)
            table.add_row(
                str(entry.rank),
                escape(rating.title),
                f"{entry.community_score:.1f}",
                f"{rating.average_rating:.2f}",
                str(rating.number_of_ratings),
                sentiment.label if sentiment else "-",
            )
        console.print(table)


@app.command()
def config(
    root: RootOption = Path(),
    init: Annotated[bool, typer.Option("--init", help="Write the defaults to the config file")] = False,
    debug: DebugOption = False,
) -> None:
    """Show the effective configuration."""
    with handle_cli_errors(debug=debug):
        if init:
            path = config_path_for(root)
            if path.exists():
                console.print(f"[yellow]Config already exists at {path}[/yellow]")
                raise typer.Exit(1)
            save_config(CinerankConfig(), root)
            console.print(f"[green]Wrote default config to {path}[/green]")
            return
        console.print_json(load_config(root).model_dump_json())
