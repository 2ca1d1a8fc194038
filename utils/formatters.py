"""Formatting utilities for display."""
from datetime import datetime, timezone

from utils.constants import score_status

STATUS_COLORS = {"good": "green", "warning": "yellow", "alert": "red", "unknown": "dim"}
TREND_ARROWS = {"up": "▲", "down": "▼", "flat": "─"}
SEVERITY_COLORS = {"low": "cyan", "medium": "yellow", "high": "red", "critical": "bold red"}


def format_score(value, with_color=False):
    """Format a 0-100 score. Optionally include rich color markup for its status band."""
    if value is None:
        return "N/A"
    formatted = f"{float(value):.1f}"
    if with_color:
        color = STATUS_COLORS[score_status(value)]
        return f"[{color}]{formatted}[/{color}]"
    return formatted


def format_trend(trend, with_color=False):
    if trend is None:
        return ""
    key = getattr(trend, "value", trend)
    arrow = TREND_ARROWS.get(key, "?")
    if with_color:
        color = {"up": "green", "down": "red"}.get(key, "dim")
        return f"[{color}]{arrow}[/{color}]"
    return arrow


def format_severity(severity, with_color=False):
    key = getattr(severity, "value", severity)
    label = str(key).upper()
    if with_color:
        color = SEVERITY_COLORS.get(key, "white")
        return f"[{color}]{label}[/{color}]"
    return label


def format_pct(value, decimals=2):
    """Format percentage with sign."""
    if value is None:
        return "N/A"
    value = float(value)
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{decimals}f}%"


def format_timestamp(ts):
    """Format a datetime to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        return ts
    return ts.strftime("%Y-%m-%d %H:%M UTC")


def time_ago(dt, now=None):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    now = now or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = max(0, int(delta.total_seconds()))

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"
