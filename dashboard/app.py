"""Main dashboard application."""
import logging
import time
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from dashboard.panels import HeaderPanel, ScoresPanel, SparklinesPanel, AlertsPanel, FooterPanel
from dashboard.theme import DASHBOARD_THEME
from models.enums import ControlDimension
from utils.formatters import format_score

logger = logging.getLogger("site360.dashboard")


class Dashboard:
    def __init__(self, db, config=None, site_id=None):
        self.db = db
        self.config = config or {}
        self.site_id = site_id
        dash_cfg = self.config.get("dashboard", {})
        self.refresh_interval = dash_cfg.get("refresh_interval", 30)
        self.max_alerts = dash_cfg.get("max_alerts", 10)
        self._running = False
        self._last_data = {}
        self._console = Console(theme=DASHBOARD_THEME)

    def _build_layout(self):
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="upper", ratio=3),
            Layout(name="lower", ratio=2),
            Layout(name="footer", size=3),
        )
        layout["lower"].split_row(
            Layout(name="alerts", ratio=2),
            Layout(name="sparklines", ratio=1),
        )
        return layout

    def _refresh_data(self):
        """Gather all data for panels."""
        data = {}
        data["scores"] = self.db.get_latest_scores(self.site_id)
        data["open_alerts"] = self.db.get_open_alerts(self.site_id)
        data["open_alerts"].sort(key=lambda a: (-a.severity.rank, -(a.id or 0)))
        data["alert_stats"] = self.db.get_alert_stats()
        data["sites"] = len({s.site_id for s in data["scores"]})

        overall = [s for s in data["scores"] if s.dimension == ControlDimension.OVERALL_MANAGEMENT]
        data["overall"] = overall[0].score if self.site_id and overall else None
        data["last_scored"] = max((s.calculated_at for s in data["scores"] if s.calculated_at), default=None)

        # Sparkline histories for the selected site
        data["histories"] = {}
        if self.site_id:
            for dimension in ControlDimension:
                history = self.db.get_score_history(self.site_id, dimension)
                if history:
                    data["histories"][dimension] = [s.score for s in history]

        self._last_data = data
        return data

    def _render_panels(self, data, layout):
        layout["header"].update(HeaderPanel.render(self.site_id, data.get("last_scored"), data.get("overall")))
        layout["upper"].update(ScoresPanel.render(data.get("scores"), show_site=self.site_id is None))
        layout["alerts"].update(AlertsPanel.render(data.get("open_alerts"), data.get("alert_stats"),
                                                   limit=self.max_alerts))
        layout["sparklines"].update(SparklinesPanel.render(data.get("histories")))
        layout["footer"].update(FooterPanel.render(self.refresh_interval, data.get("sites"), self.db.db_path))

    def render_once(self):
        """Build a fully rendered layout without entering live mode."""
        layout = self._build_layout()
        self._render_panels(self._refresh_data(), layout)
        return layout

    def run(self):
        """Launch the live terminal dashboard."""
        self._running = True
        layout = self._build_layout()

        self._console.print("[site]Starting Site360 control monitor...[/site]")

        try:
            with Live(layout, console=self._console, refresh_per_second=1, screen=True):
                while self._running:
                    try:
                        data = self._refresh_data()
                    except Exception as e:
                        logger.warning(f"Dashboard refresh error: {e}")
                        data = self._last_data
                    self._render_panels(data, layout)
                    time.sleep(self.refresh_interval)
        except KeyboardInterrupt:
            pass
        finally:
            self._running = False
            self._console.clear()
            open_count = len(self._last_data.get("open_alerts") or [])
            self._console.print(f"[dim]Session ended. {open_count} open alerts.[/dim]")

    def quick_status(self):
        """Return single-line status string."""
        scores = self.db.get_latest_scores(self.site_id)
        if not scores:
            return "Site360: No scores available"
        overall = [s for s in scores if s.dimension == ControlDimension.OVERALL_MANAGEMENT]
        worst = min(scores, key=lambda s: s.score)
        stats = self.db.get_alert_stats()
        open_count = sum(stats.values())
        parts = [f"{len({s.site_id for s in scores})} sites"]
        if overall:
            mean = sum(s.score for s in overall) / len(overall)
            parts.append(f"Overall {format_score(mean)}")
        parts.append(f"Lowest: {worst.site_id}/{worst.dimension.value} {format_score(worst.score)}")
        parts.append(f"Open alerts: {open_count}")
        return "Site360 | " + " | ".join(parts)
