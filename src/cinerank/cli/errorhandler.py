"""CLI error handling utilities."""

from collections.abc import Generator
from contextlib import contextmanager

import duckdb
import typer
from rich.console import Console
from rich.markup import escape

from cinerank.exceptions import (
    AggregateError,
    ConcurrentModificationError,
    ConfigError,
    ConfigValidationError,
    DuplicateTitleError,
    NotFoundError,
    RankingError,
)

console = Console()


@contextmanager
def handle_cli_errors(*, debug: bool = False) -> Generator[None, None, None]:
    """Context manager to handle CLI errors gracefully.

    Args:
        debug: If True, re-raise so the full traceback is shown.

    """
    try:
        yield
    except (KeyboardInterrupt, SystemExit, typer.Exit, typer.Abort, typer.BadParameter):
        raise
    except NotFoundError as e:
        if debug:
            raise
        console.print(f"[bold red]Not found:[/bold red] {escape(str(e))}")
        console.print("Run [bold]cinerank list[/bold] to see the ids in your list.")
        raise typer.Exit(1) from e
    except DuplicateTitleError as e:
        if debug:
            raise
        console.print(f"[bold red]Already ranked:[/bold red] {escape(str(e))}")
        console.print("Use [bold]cinerank rerank[/bold] to move it instead.")
        raise typer.Exit(1) from e
    except ConcurrentModificationError as e:
        if debug:
            raise
        console.print(f"[bold red]List changed while comparing:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except RankingError as e:
        if debug:
            raise
        console.print(f"[bold red]Ranking error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except AggregateError as e:
        if debug:
            raise
        console.print(f"[bold red]Community rating error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except ConfigValidationError as e:
        if debug:
            raise
        console.print(f"[bold red]Invalid configuration:[/bold red] {escape(str(e))}")
        for error in e.errors:
            loc = " -> ".join(str(part) for part in error.get("loc", ()))
            console.print(f"  - {escape(loc)}: {escape(str(error.get('msg', '')))}")
        raise typer.Exit(1) from e
    except ConfigError as e:
        if debug:
            raise
        console.print(f"[bold red]Configuration error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except duckdb.Error as e:
        if debug:
            raise
        console.print(f"[bold red]Storage error:[/bold red] {escape(str(e))}")
        raise typer.Exit(1) from e
    except Exception as e:
        if debug:
            console.print_exception(show_locals=False)
            raise typer.Exit(1) from e

        console.print(f"[bold red]An unexpected error occurred:[/bold red] {escape(str(e))}")
        console.print("[dim]Run with [bold]--debug[/bold] for more details.[/dim]")
        raise typer.Exit(1) from e
