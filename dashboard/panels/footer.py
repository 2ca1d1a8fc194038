"""Footer panel - status bar."""
from rich.panel import Panel
from rich.text import Text


class FooterPanel:
    @staticmethod
    def render(refresh_in=None, sites=None, db_path=None):
        parts = []

        if sites is not None:
            parts.append(f"[dim]{sites} sites[/dim]")
        if db_path:
            parts.append(f"[dim]db: {db_path}[/dim]")
        if refresh_in:
            parts.append(f"[dim]Refresh: {refresh_in}s[/dim]")

        parts.append("[dim]ctrl-c:quit[/dim]")

        return Panel(
            Text.from_markup("  |  ".join(parts)),
            style="dim",
            height=3,
        )
