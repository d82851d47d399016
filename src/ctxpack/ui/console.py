"""Rich-powered console output for ctxpack."""

from __future__ import annotations

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from ctxpack import __version__
from ctxpack.context.models import SelectedChunk
from ctxpack.index.models import Hit


class Console:
    """Terminal output for ctxpack using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        """Show the ctxpack banner."""
        self.console.print(
            Panel(
                f"[bold cyan]ctxpack[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Budgeted context retrieval for LLM prompts[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {escape(message)}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {escape(message)}")

    def progress(self) -> Progress:
        """Create a progress bar for index builds."""
        return Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=self.console,
        )

    def show_stats(self, stats: dict) -> None:
        """Display build statistics in a table."""
        table = Table(title="Index Statistics", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right", style="cyan")

        table.add_row("Documents", str(stats.get("documents", 0)))
        table.add_row("Code files", str(stats.get("code_files", 0)))
        table.add_row("Chunks", str(stats.get("chunks", 0)))
        table.add_row("Tokens", f"{stats.get('tokens', 0):,}")
        table.add_row("Dimensions", str(stats.get("dimension", 0)))

        self.console.print(table)

    def show_hits(self, hits: list[Hit]) -> None:
        """Display search hits in a table."""
        table = Table(border_style="dim")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Score", justify="right", style="cyan")
        table.add_column("Chunk", style="bold")
        table.add_column("Tokens", justify="right")
        table.add_column("Preview")

        for i, hit in enumerate(hits, 1):
            preview = " ".join(hit.text.split())[:80]
            table.add_row(
                str(i), f"{hit.score:.3f}", escape(hit.id), str(hit.meta.token_count), escape(preview)
            )

        self.console.print(table)

    def show_selected(self, selected: list[SelectedChunk]) -> None:
        """Display selector output, best first."""
        for i, item in enumerate(selected, 1):
            self.console.print(
                Panel(escape(item.text), title=f"#{i} score={item.score:.3f}", border_style="cyan")
            )
