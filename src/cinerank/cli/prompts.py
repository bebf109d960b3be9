"""Rich terminal implementation of the comparison prompt."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.markup import escape
from rich.prompt import Prompt

from cinerank.ranking.models import ComparisonOutcome

if TYPE_CHECKING:
    from rich.console import Console

    from cinerank.ranking.models import ComparisonRequest

CANCEL_CHOICE = "q"

_CHOICES: dict[str, ComparisonOutcome] = {
    "1": ComparisonOutcome.PREFER_CANDIDATE,
    "2": ComparisonOutcome.PREFER_PIVOT,
    "=": ComparisonOutcome.EQUIVALENT,
}


class RichComparisonPrompt:
    """Asks "which did you prefer?" on the terminal."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def __call__(self, request: ComparisonRequest) -> ComparisonOutcome | None:
        self.console.print(
            f"\n[bold]Which did you prefer?[/bold] "
            f"[dim](comparison {request.step} of at most {request.max_steps})[/dim]"
        )
        self.console.print(f"  [cyan]1[/cyan]  {escape(request.candidate.display_title)}")
        self.console.print(f"  [cyan]2[/cyan]  {escape(request.pivot.display_title)}")
        self.console.print("  [cyan]=[/cyan]  Too close to call")
        self.console.print(f"  [cyan]{CANCEL_CHOICE}[/cyan]  Cancel")

        choice = Prompt.ask(
            "Your pick",
            choices=[*_CHOICES, CANCEL_CHOICE],
            console=self.console,
        )
        return _CHOICES.get(choice)
