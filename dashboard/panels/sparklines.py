"""Score history panel."""
from rich.panel import Panel
from rich.table import Table
from dashboard.widgets import sparkline
from utils.constants import dimension_label


class SparklinesPanel:
    @staticmethod
    def render(histories=None):
        """histories: dimension -> list of scores, oldest first."""
        if not histories:
            return Panel("[dim]Awaiting data...[/dim]", title="Trends", border_style="cyan")

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("metric", style="dim", width=20)
        table.add_column("sparkline")
        table.add_column("latest", width=8)

        for dimension, values in histories.items():
            if values:
                table.add_row(dimension_label(dimension), f"[cyan]{sparkline(values)}[/cyan]",
                              f"{values[-1]:.1f}")

        return Panel(table, title="[bold cyan]Trends (30d)[/bold cyan]", border_style="cyan")
