"""Header panel - title bar."""
from datetime import datetime
from rich.panel import Panel
from rich.text import Text
from rich.columns import Columns
from dashboard.widgets import data_age_indicator


class HeaderPanel:
    @staticmethod
    def render(site_id=None, last_scored=None, overall=None):
        title = Text("  SITE360 CONTROL MONITOR  ", style="bold black on #FFB300")
        now = datetime.now().strftime("%Y-%m-%d %H:%M")
        scope = site_id or "all sites"
        overall_str = f"overall {overall:.1f}" if overall is not None else "overall N/A"

        right = Text(f"{now}  |  {scope}  |  {overall_str}  |  ", style="dim")

        return Panel(
            Columns([title, right, Text.from_markup(data_age_indicator(last_scored))], expand=True),
            style="bold #FFB300",
            height=3,
        )
