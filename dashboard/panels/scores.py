"""Control scores panel - latest score per site and dimension."""
from rich.panel import Panel
from rich.table import Table

from dashboard.widgets import score_bar, status_badge
from utils.constants import dimension_label
from utils.formatters import format_score, format_trend


class ScoresPanel:
    @staticmethod
    def render(scores=None, show_site=True):
        if not scores:
            return Panel("[dim]No scores yet. Run a batch first.[/dim]", title="Control Scores",
                         border_style="blue")

        table = Table(box=None, padding=(0, 1), expand=True)
        if show_site:
            table.add_column("Site", style="dim")
        table.add_column("Dimension", width=20)
        table.add_column("Score", justify="right", width=6)
        table.add_column("", width=20)
        table.add_column("Trend", justify="center", width=5)
        table.add_column("Status", width=8)
        table.add_column("Date", style="dim", width=10)

        for s in scores:
            row = [
                dimension_label(s.dimension),
                format_score(s.score, with_color=True),
                score_bar(s.score),
                format_trend(s.trend, with_color=True),
                status_badge(s.score),
                s.date.isoformat() if s.date else "",
            ]
            if show_site:
                row.insert(0, s.site_id)
            table.add_row(*row)

        return Panel(table, title="[bold blue]Control Scores[/bold blue]", border_style="blue")
