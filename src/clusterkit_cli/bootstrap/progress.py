"""Live progress rendering for bootstrap runs."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from .types import StepResult, StepStatus

STATUS_STYLES = {
    StepStatus.SUCCESS: ("✓", "green"),
    StepStatus.SKIPPED: ("-", "dim"),
    StepStatus.FAILED: ("✗", "red"),
}


class ConsoleProgressReporter:
    """Print one line per completed step.

    Used as the orchestrator's progress callback; it only writes output.
    """

    def __init__(self, console: Console | None = None, total_steps: int | None = None):
        self.console = console or Console()
        self.total_steps = total_steps
        self.completed = 0

    def __call__(self, result: StepResult) -> None:
        self.completed += 1
        symbol, style = STATUS_STYLES.get(result.status, ("•", "yellow"))
        counter = f"[{self.completed}/{self.total_steps}] " if self.total_steps else ""

        line = f"  [{style}]{symbol}[/{style}] {counter}{escape(result.name)}"
        if result.status == StepStatus.SUCCESS:
            line += f" [dim]({result.duration.total_seconds():.1f}s"
            if result.retries:
                line += f", {result.retries} retries"
            line += ")[/dim]"
        elif result.status == StepStatus.SKIPPED:
            line += " [dim](skipped)[/dim]"
        self.console.print(line)

        if result.status == StepStatus.FAILED:
            self.console.print(f"    [red]{escape(result.message)}[/red]")
