"""Reusable dashboard UI widgets."""
from datetime import datetime, timezone

from dashboard.theme import STATUS_STYLES
from utils.constants import score_status
from utils.formatters import time_ago

SPARK_CHARS = "▁▂▃▄▅▆▇█"


def sparkline(values, width=20):
    """Generate Unicode sparkline from a list of values."""
    if not values:
        return ""
    vals = [v for v in values if v is not None]
    if not vals:
        return ""
    # Subsample if longer than width
    if len(vals) > width:
        step = len(vals) / width
        vals = [vals[int(i * step)] for i in range(width)]
    mn, mx = min(vals), max(vals)
    rng = mx - mn if mx != mn else 1
    return "".join(SPARK_CHARS[min(7, int((v - mn) / rng * 7))] for v in vals)


def score_bar(score, width=20):
    """Horizontal bar for a 0-100 score, colored by status band."""
    if score is None:
        return "[dim]" + "░" * width + "[/dim]"
    filled = int(round(max(0.0, min(100.0, score)) / 100 * width))
    color = STATUS_STYLES[score_status(score)]
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]"


def status_badge(score):
    status = score_status(score)
    color = STATUS_STYLES[status]
    return f"[{color}]{status.upper()}[/{color}]"


def data_age_indicator(timestamp):
    """Show data freshness with color coding."""
    if timestamp is None:
        return "[red]No data[/red]"
    age_str = time_ago(timestamp)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    age_seconds = (datetime.now(timezone.utc) - timestamp).total_seconds()
    if age_seconds < 86400:
        return f"[green]Scored {age_str}[/green]"
    elif age_seconds < 3 * 86400:
        return f"[yellow]Scored {age_str}[/yellow]"
    else:
        return f"[red]Stale: {age_str}[/red]"
