import logging
from typing import Any, Dict, Optional

from rich.console import Console
from rich.panel import Panel
from rich.box import HEAVY, SIMPLE
from rich.text import Text
from rich.table import Table

from genbatch.domain.interfaces.user_interface import UserInterface
from genbatch.infrastructure.monitoring.progress import format_duration

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_progress(self, snapshot: Dict[str, Any]) -> None:
        """Prints a one-block progress update with bar, counts, rate and ETA."""
        lines = [
            f"[cyan][{snapshot['bar']}][/cyan] {snapshot['percentage']}%",
            f"   Processed: {snapshot['processed']}/{snapshot['total']} jobs",
            f"   Success: [green]{snapshot['success']}[/green] | Failed: [red]{snapshot['failed']}[/red]",
            f"   Rate: {snapshot['rate']:.2f} jobs/sec",
        ]
        if snapshot.get('eta'):
            lines.append(f"   ETA: {format_duration(snapshot['eta'])}")
        self.console.print("")
        self.console.print("\n".join(lines))

    def display_summary(self, snapshot: Dict[str, Any]) -> None:
        """Prints the end-of-run summary as a table."""
        processed = snapshot['processed']

        def pct(count: int) -> str:
            return f"{round(count / processed * 100)}%" if processed else "-"

        table = Table(title="FINAL SUMMARY", show_header=False, box=SIMPLE)
        table.add_column("Metric", style="bold")
        table.add_column("Value")
        table.add_row("Total jobs", str(processed))
        table.add_row("Success", f"{snapshot['success']} ({pct(snapshot['success'])})")
        table.add_row("Failed", f"{snapshot['failed']} ({pct(snapshot['failed'])})")
        table.add_row("Deferred", str(snapshot.get('deferred', 0)))
        table.add_row("Retries", str(snapshot.get('retries', 0)))
        table.add_row("Total time", format_duration(snapshot['elapsed']))
        table.add_row("Average rate", f"{snapshot['rate']:.2f} jobs/sec")
        self.console.print(table)
