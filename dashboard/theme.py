"""Dashboard color theme and styles."""
from rich.theme import Theme

SITE_AMBER = "#FFB300"
GOOD_GREEN = "#00C853"
ALERT_RED = "#FF1744"
NEUTRAL_BLUE = "#2196F3"
WARN_YELLOW = "#FFC107"
TEXT_DIM = "#888888"

STATUS_STYLES = {
    "good": GOOD_GREEN,
    "warning": WARN_YELLOW,
    "alert": ALERT_RED,
    "unknown": TEXT_DIM,
}

DASHBOARD_THEME = Theme({
    "site": f"bold {SITE_AMBER}",
    "good": f"bold {GOOD_GREEN}",
    "warning": f"bold {WARN_YELLOW}",
    "alert": f"bold {ALERT_RED}",
    "info": f"{NEUTRAL_BLUE}",
    "dim": f"{TEXT_DIM}",
    "critical": "bold white on red",
    "header": f"bold {SITE_AMBER}",
})
