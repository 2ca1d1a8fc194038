"""Configuration management."""
import os
import yaml
from pathlib import Path

_config = None
_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"
DEFAULT_RULES_PATH = Path(__file__).parent / "alert_rules.yaml"

MIN_WATCH_INTERVAL = 10


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    global _config

    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    # Environment variable overrides
    env_map = {
        "SITE360_DB_PATH": ("database", "path"),
        "SITE360_LOG_LEVEL": ("logging", "level"),
        "SITE360_MAX_WORKERS": ("pipeline", "max_workers"),
        "SITE360_WATCH_INTERVAL": ("pipeline", "watch_interval"),
    }
    for env_key, config_path in env_map.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = int(val)
            except ValueError:
                d[config_path[-1]] = val

    _validate_config(config)
    _config = config
    return config


def get_config():
    """Return cached config, loading defaults if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def rules_path(config):
    """Resolve alerts.rules_path; relative paths fall back to the packaged rules file."""
    configured = config.get("alerts", {}).get("rules_path")
    if configured and Path(configured).exists():
        return Path(configured)
    return DEFAULT_RULES_PATH


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    """Basic config validation."""
    required_sections = ["database", "pipeline", "scoring", "alerts", "dashboard"]
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    workers = config["pipeline"].get("max_workers", 1)
    if not isinstance(workers, int) or workers < 1:
        raise ValueError("pipeline.max_workers must be a positive integer")

    if config["pipeline"].get("watch_interval", MIN_WATCH_INTERVAL) < MIN_WATCH_INTERVAL:
        raise ValueError(f"watch_interval must be >= {MIN_WATCH_INTERVAL} seconds")
