"""Dashboard panels."""
from dashboard.panels.header import HeaderPanel
from dashboard.panels.scores import ScoresPanel
from dashboard.panels.sparklines import SparklinesPanel
from dashboard.panels.alerts_panel import AlertsPanel
from dashboard.panels.footer import FooterPanel
