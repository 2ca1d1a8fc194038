"""Alert notification channels."""
import json
import logging
from pathlib import Path

from rich.console import Console

from utils.constants import dimension_label

logger = logging.getLogger("site360.alerts.channels")


class ConsoleChannel:
    """Print alerts to terminal with rich formatting."""

    severity_styles = {
        "critical": "bold white on red",
        "high": "bold red",
        "medium": "bold yellow",
        "low": "bold blue",
    }

    def __init__(self, console=None):
        self.console = console or Console()

    def send(self, alert):
        sev = alert.severity.value
        style = self.severity_styles.get(sev, "")
        self.console.print(
            f"[{style}][{sev.upper()}][/] {alert.site_id} / {dimension_label(alert.dimension)}: "
            f"{alert.title} - {alert.message}",
            highlight=False,
        )


class FileChannel:
    """Append alerts to a JSON lines log file."""

    def __init__(self, log_path="data/alerts.jsonl"):
        self.log_path = Path(log_path)

    def send(self, alert):
        entry = alert.to_dict()
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry) + "\n")
        except OSError as e:
            logger.warning(f"Failed to write alert to file: {e}")


CHANNEL_TYPES = {
    "console": ConsoleChannel,
    "file": FileChannel,
}


def build_channels(config, interactive=True):
    """Channels from ``alerts.channels``; console only when attached to a terminal."""
    channels = []
    for entry in config.get("alerts", {}).get("channels", []):
        kind = entry.get("type")
        if kind not in CHANNEL_TYPES:
            logger.warning(f"Unknown alert channel type: {kind}")
            continue
        if kind == "console":
            if interactive:
                channels.append(ConsoleChannel())
        else:
            channels.append(FileChannel(entry.get("path", "data/alerts.jsonl")))
    return channels
