"""
Screening configuration - default filter criteria and table settings.
Loaded from YAML with built-in fallbacks when no file is present.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / 'config' / 'filter_defaults.yml'

# Keyed by signal category, field names as in the stock-research payload
BUILTIN_FILTER_DEFAULTS: Dict[str, Dict[str, float]] = {
    'volumeSpikes': {'minVolSpike': 30, 'minPriceMove': 0.5, 'minPrice': 30},
    'deepPullbacks': {'maxFromHigh': -50, 'minVol': 5000, 'minPrice': 30},
    'capitulated': {'maxFromHigh': -90, 'minVolSpike': 0, 'minPrice': 10},
    'fiveDayDecliners': {'minDownDays': 3, 'maxReturn': -1.5, 'minPrice': 30},
    'fiveDayClimbers': {'minUpDays': 3, 'minReturn': 1.5, 'minPrice': 30},
    'tightRangeBreakouts': {'maxRange': 15, 'minBoScore': 0, 'minVolSpike': 50, 'minPrice': 30},
}

BUILTIN_SETTINGS: Dict[str, Any] = {
    'page_size': 10,
    'result_limit': 6,
}


class ConfigError(Exception):
    """Raised when a configuration file is malformed."""
    pass


def _validate_filters(filters: Any) -> Dict[str, Dict[str, float]]:
    if not isinstance(filters, dict):
        raise ConfigError("'filters' section must be a mapping")

    merged = copy.deepcopy(BUILTIN_FILTER_DEFAULTS)
    for category, fields in filters.items():
        if category not in BUILTIN_FILTER_DEFAULTS:
            raise ConfigError(f"Unknown filter category: {category}")
        if not isinstance(fields, dict):
            raise ConfigError(f"Filter category {category} must be a mapping")
        for name, value in fields.items():
            if name not in BUILTIN_FILTER_DEFAULTS[category]:
                raise ConfigError(f"Unknown field {name} for filter category {category}")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"{category}.{name} must be numeric, got {value!r}")
            merged[category][name] = value

    return merged


def _validate_settings(settings: Any) -> Dict[str, Any]:
    if not isinstance(settings, dict):
        raise ConfigError("'settings' section must be a mapping")

    merged = dict(BUILTIN_SETTINGS)
    for name, value in settings.items():
        if name not in BUILTIN_SETTINGS:
            raise ConfigError(f"Unknown setting: {name}")
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ConfigError(f"Setting {name} must be a positive integer, got {value!r}")
        merged[name] = value

    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load screening configuration from YAML file.

    Args:
        config_path: Path to config file (default: FILTER_DEFAULTS_PATH env
            var, else config/filter_defaults.yml)

    Returns:
        Dictionary with 'filters' and 'settings' sections, built-in values
        filling anything the file leaves out

    Raises:
        ConfigError: If the file exists but cannot be parsed or validated
    """
    if config_path is None:
        config_path = os.getenv('FILTER_DEFAULTS_PATH', str(DEFAULT_CONFIG_PATH))

    config_file = Path(config_path)
    if not config_file.exists():
        logger.info(f"Config file not found, using built-in defaults: {config_path}")
        return {
            'filters': copy.deepcopy(BUILTIN_FILTER_DEFAULTS),
            'settings': dict(BUILTIN_SETTINGS),
        }

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config {config_path}: {e}")

    if config is None:
        config = {}
    if not isinstance(config, dict):
        raise ConfigError(f"Config {config_path} must be a mapping")

    return {
        'filters': _validate_filters(config.get('filters') or {}),
        'settings': _validate_settings(config.get('settings') or {}),
    }


def load_filter_defaults(config_path: Optional[str] = None) -> Dict[str, Dict[str, float]]:
    """Default filter criteria per signal category."""
    return load_config(config_path)['filters']
