# PATH: config/__init__.py
"""
Configuration loading utilities.
"""

from pathlib import Path
from typing import Any, Dict

import yaml


CONFIG_DIR = Path(__file__).parent

CHAIN_CONFIG_FILE = "arbitrum.yaml"
STRATEGY_CONFIG_FILE = "strategy.yaml"


def load_yaml(filename: str | Path) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of file in config directory, or an absolute path

    Returns:
        Parsed YAML as dict
    """
    filepath = Path(filename)
    if not filepath.is_absolute() and not filepath.exists():
        filepath = CONFIG_DIR / filename
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {filepath} must contain a mapping")
    return data


def load_chain() -> Dict[str, Any]:
    """Load chain configuration (RPC, venues, lendable assets)."""
    return load_yaml(CHAIN_CONFIG_FILE)


def load_strategy() -> Dict[str, Any]:
    """Load strategy thresholds."""
    return load_yaml(STRATEGY_CONFIG_FILE)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
