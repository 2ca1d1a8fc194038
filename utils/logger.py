"""Logging configuration."""
import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level="INFO", log_file=None):
    """Configure the site360 logger with a rich stderr console and optional file handler."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    root = logging.getLogger("site360")
    root.setLevel(numeric_level)

    if not root.handlers:
        # stderr keeps --json output on stdout clean
        console_handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, markup=False)
        root.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
            file_handler.setFormatter(file_formatter)
            root.addHandler(file_handler)

    for handler in root.handlers:
        handler.setLevel(numeric_level)

    return root
