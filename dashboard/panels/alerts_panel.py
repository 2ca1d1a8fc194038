"""Alerts status panel."""
from rich.panel import Panel
from rich.table import Table

from utils.constants import dimension_label
from utils.formatters import format_severity, time_ago


class AlertsPanel:
    @staticmethod
    def render(open_alerts=None, alert_stats=None, limit=8):
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("info")

        # Overall status
        if not open_alerts:
            table.add_row("[green]ALL CLEAR[/green] - No open alerts")
        else:
            crits = sum(1 for a in open_alerts if a.severity.value == "critical")
            highs = sum(1 for a in open_alerts if a.severity.value == "high")
            if crits > 0:
                table.add_row(f"[bold red]!!! {crits} CRITICAL[/bold red] | {highs} high")
            elif highs > 0:
                table.add_row(f"[red]!! {highs} HIGH[/red]")
            else:
                table.add_row(f"[yellow]{len(open_alerts)} open alerts[/yellow]")

        # Open alerts, newest first
        for alert in (open_alerts or [])[:limit]:
            ack = " [dim](ack)[/dim]" if alert.status.value == "acknowledged" else ""
            table.add_row(
                f"{format_severity(alert.severity, with_color=True)} "
                f"#{alert.id} {alert.site_id} / {dimension_label(alert.dimension)}: {alert.title}{ack} "
                f"[dim]{time_ago(alert.created_at)}[/dim]"
            )

        # Stats
        if alert_stats:
            stats_str = " | ".join(f"{sev}: {cnt}" for sev, cnt in sorted(alert_stats.items()))
            table.add_row(f"[dim]Open: {stats_str}[/dim]")

        return Panel(table, title="[bold yellow]Alerts[/bold yellow]", border_style="yellow")
