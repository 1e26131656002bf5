"""Configuration utilities for the sitelaunch CLI.

The CLI only reads configuration; API keys are looked up per service in
``~/.sitelaunch/config.json``::

    {"api_keys": {"xmit.co": "..."}}
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

API_KEY_ENV = "SITELAUNCH_API_KEY"


def get_config_dir() -> Path:
    """Get the configuration directory for sitelaunch.

    Returns:
        Path to ~/.sitelaunch.
    """
    return Path.home() / ".sitelaunch"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, Any]:
    """Load configuration from config file (empty if absent)."""
    config_file = get_config_file()
    if config_file.exists():
        data = json.loads(config_file.read_text())
        if isinstance(data, dict):
            return data
    return {}


def get_api_key(service: str, explicit: str | None = None) -> str | None:
    """Resolve the API key for a service.

    Order: explicit value, SITELAUNCH_API_KEY, config file entry.
    """
    if explicit:
        return explicit
    from_env = os.environ.get(API_KEY_ENV)
    if from_env:
        return from_env
    keys = load_config().get("api_keys")
    if isinstance(keys, dict):
        key = keys.get(service)
        if isinstance(key, str) and key:
            return key
    return None


def configure_logging(verbose: bool) -> None:
    """Send sitelaunch logs to stderr.

    Only warnings and errors are shown unless verbose.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    package_logger = logging.getLogger("sitelaunch")
    for existing in package_logger.handlers[:]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False
