"""Configuration loading from environment variables and an optional YAML file."""

import logging
import os
from dataclasses import dataclass, fields

import yaml

logger = logging.getLogger(__name__)

WATCH_MODES = ("auto", "native", "polling")


@dataclass(frozen=True)
class Config:
    log_dir: str = "./logs"
    file_pattern: str = "*.log"
    host: str = "0.0.0.0"
    port: int = 3000
    max_entries: int = 1000
    page_size: int = 50
    max_page_size: int = 1000
    snapshot_size: int = 50
    poll_interval: float = 0.5
    watch_mode: str = "auto"
    subscriber_queue_size: int = 256
    publish_timeout: float = 0.05
    stream_keepalive: float = 15.0


# Config field -> environment variable
_ENV_VARS = {
    "log_dir": "LOG_DIR",
    "file_pattern": "LOG_PATTERN",
    "host": "HOST",
    "port": "PORT",
    "max_entries": "MAX_ENTRIES",
    "page_size": "PAGE_SIZE",
    "max_page_size": "MAX_PAGE_SIZE",
    "snapshot_size": "SNAPSHOT_SIZE",
    "poll_interval": "POLL_INTERVAL",
    "watch_mode": "WATCH_MODE",
    "subscriber_queue_size": "SUBSCRIBER_QUEUE_SIZE",
    "publish_timeout": "PUBLISH_TIMEOUT",
    "stream_keepalive": "STREAM_KEEPALIVE",
}


def load_yaml_config(path: str | None) -> dict:
    """Load overrides from a YAML file. Returns empty dict if no path or file."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def _coerce(name: str, value, target_type, source: str):
    try:
        return target_type(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for {source}: {value!r}") from None


def load_config(env=None, yaml_path: str | None = None) -> Config:
    """Build Config from defaults, then YAML overrides, then environment variables.

    The YAML path defaults to the ``CONFIG_PATH`` environment variable.
    """
    env = os.environ if env is None else env
    if yaml_path is None:
        yaml_path = env.get("CONFIG_PATH")
    yaml_data = load_yaml_config(yaml_path)

    values = {}
    for f in fields(Config):
        if f.name in yaml_data:
            values[f.name] = _coerce(f.name, yaml_data[f.name], f.type, f"{f.name} in {yaml_path}")
        env_name = _ENV_VARS[f.name]
        if env_name in env:
            values[f.name] = _coerce(f.name, env[env_name], f.type, env_name)

    config = Config(**values)
    _validate(config)
    return config


def _validate(config: Config) -> None:
    if config.watch_mode not in WATCH_MODES:
        raise ValueError(f"Invalid value for WATCH_MODE: {config.watch_mode!r} (expected one of {WATCH_MODES})")
    for name in ("max_entries", "page_size", "max_page_size", "snapshot_size", "subscriber_queue_size"):
        if getattr(config, name) < 1:
            raise ValueError(f"Invalid value for {_ENV_VARS[name]}: must be >= 1")
    for name in ("poll_interval", "publish_timeout", "stream_keepalive"):
        if getattr(config, name) <= 0:
            raise ValueError(f"Invalid value for {_ENV_VARS[name]}: must be > 0")
