"""
config.py
PURPOSE: Load the instrument/polling configuration with defaults underneath
"""

import copy
import json
import logging
import os

from scpi_daq_system.control.instrument_registry import parse_instrument_list

logger = logging.getLogger(__name__)

INSTRUMENTS_ENV = "INSTRUMENTS"

DEFAULT_CONFIG = {
    "instruments": [],
    "scpi": {"timeout_s": 1.5},
    "polling": {"interval_ms": 200},
    "logging": {"level": "INFO", "log_to_file": True, "file_prefix": "samples"},
}


def _merge(base, override):
    """Recursively merge override into base (dicts only; lists are replaced)."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_path=None, environ=None):
    """
    Build the runtime configuration.

    Args:
        config_path: JSON file to load; missing or unreadable files fall
                     back to the defaults
        environ: Mapping to read INSTRUMENTS from (default os.environ)

    Returns:
        dict with 'instruments', 'scpi', 'polling' and 'logging' sections
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                _merge(config, json.load(f))
        except (OSError, ValueError) as e:
            logger.error("Error loading config from %s: %s", config_path, e)

    environ = os.environ if environ is None else environ
    extra = parse_instrument_list(environ.get(INSTRUMENTS_ENV, ""))
    for name, host, port in extra:
        config["instruments"].append({"name": name, "host": host, "port": port, "active": True})

    if config["polling"]["interval_ms"] <= 0:
        raise ValueError(f"polling.interval_ms must be positive: {config['polling']['interval_ms']}")
    if config["scpi"]["timeout_s"] <= 0:
        raise ValueError(f"scpi.timeout_s must be positive: {config['scpi']['timeout_s']}")

    return config
