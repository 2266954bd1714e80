"""
Configuration loading utilities for the arbitrage bot.
"""

from pathlib import Path
from typing import Any, Dict

import yaml


CONFIG_DIR = Path(__file__).parent

DEFAULT_CONFIG_FILE = "bot.yaml"


def load_yaml(filename: str | Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of file in config directory, or a path to any file

    Returns:
        Parsed YAML as dict
    """
    filepath = Path(filename)
    if not filepath.is_absolute() and not filepath.exists():
        filepath = CONFIG_DIR / filename
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_bot_yaml() -> Dict[str, Any]:
    """Load the default bot configuration."""
    return load_yaml(DEFAULT_CONFIG_FILE)


def get_network_config(network: str) -> Dict[str, Any]:
    """
    Get raw configuration for one network.

    Args:
        network: Network key (e.g., 'ethereum')

    Returns:
        Network configuration dict
    """
    networks = load_bot_yaml().get("networks", {})
    if network not in networks:
        raise KeyError(f"Unknown network: {network}")
    return networks[network]
