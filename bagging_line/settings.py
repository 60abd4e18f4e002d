"""
Settings loading for the bagging line twin.

Settings live in config/settings.json next to this module. A missing file
falls back to the built-in defaults so the line always starts.
"""

import copy
import json
import logging
import os
from typing import Dict, Any, Optional

logger = logging.getLogger("Settings")

CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config", "settings.json")

# Fallback Defaults
DEFAULT_CONFIG: Dict[str, Any] = {
    "ticks_per_second": 60,
    "seed": 42,
    "feed_size": 9,
    "geometry": {
        "spawn_position": 45.0,
        "scan_position": 274.0,
        "weigh_position": 475.0,
        "disposal_position": 950.0,
        "exit_delay_ticks": 50,
    },
    "swap": {
        "prepare_delay_sec": 4.0,
        "timeout_sec": 30.0,
        "poll_interval_sec": 0.25,
    },
    "profiles": {
        "small": {
            "base_weight": 25.0,
            "container_weight": 0.010,
            "giveaway": 0.020,
            "bagging_tolerance": 0.030,
            "sensor_accuracy": 0.005,
            "range_min": 25.000,
            "range_max": 25.110,
            "throughput_rate": 30000.0,
            "rate_multiplier": 1.0,
            "variant": "SMALL_BAG",
        },
        "large": {
            "base_weight": 750.0,
            "container_weight": 3.5,
            "giveaway": 0.5,
            "bagging_tolerance": 0.015,
            "sensor_accuracy": 0.005,
            "range_min": 753.5,
            "range_max": 754.0,
            "throughput_rate": 30000.0,
            "rate_multiplier": 10.0,
            "variant": "SACK",
        },
    },
    "lines": {
        "line_a": {"name": "Machine A", "profile": "small", "speed": 1.0},
    },
    "orders": {},
    "api": {"host": "0.0.0.0", "port": 8000},
}


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load settings from JSON.

    Args:
        path: Settings file (default: bundled config/settings.json)

    Returns:
        Settings dict. Missing top-level keys are filled from DEFAULT_CONFIG.
    """
    config_path = path or CONFIG_PATH
    config = copy.deepcopy(DEFAULT_CONFIG)
    try:
        with open(config_path, "r") as f:
            loaded = json.load(f)
    except FileNotFoundError:
        logger.warning(f"Settings file not found at {config_path}, using defaults")
        return config

    config.update(loaded)
    return config
