"""
Engine configuration.
Defaults, overridden by an optional YAML file, overridden by environment
variables (a local .env file is loaded first).
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""
    pass


_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')

# Environment variable -> settings attribute
ENV_OVERRIDES = {
    'ANALYTICS_CACHE_TTL_S': 'cache_default_ttl_s',
    'ANALYTICS_CACHE_MAX_SIZE': 'cache_max_size',
    'ANALYTICS_CACHE_CLEANUP_S': 'cache_cleanup_interval_s',
    'ANALYTICS_METRIC_TTL_S': 'metric_ttl_s',
    'ANALYTICS_LOG_LEVEL': 'log_level',
}


@dataclass
class AnalyticsSettings:
    """Cache and logging settings for the engine. Durations are seconds."""
    cache_default_ttl_s: float = 300.0
    cache_max_size: int = 100
    cache_cleanup_interval_s: float = 60.0
    metric_ttl_s: float = 300.0
    log_level: str = 'INFO'

    def __post_init__(self):
        """Coerce and validate values."""
        try:
            self.cache_default_ttl_s = float(self.cache_default_ttl_s)
            self.cache_max_size = int(self.cache_max_size)
            self.cache_cleanup_interval_s = float(self.cache_cleanup_interval_s)
            self.metric_ttl_s = float(self.metric_ttl_s)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid numeric setting: {e}")

        if self.cache_default_ttl_s <= 0:
            raise ConfigError("cache_default_ttl_s must be positive")
        if self.cache_max_size <= 0:
            raise ConfigError("cache_max_size must be positive")
        if self.cache_cleanup_interval_s <= 0:
            raise ConfigError("cache_cleanup_interval_s must be positive")
        if self.metric_ttl_s <= 0:
            raise ConfigError("metric_ttl_s must be positive")

        self.log_level = str(self.log_level).upper()
        if self.log_level not in _LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")


def _read_config_file(config_path: str) -> Dict[str, Any]:
    config_file = Path(config_path)
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to load config: {e}")

    if not isinstance(config, dict):
        raise ConfigError("Config file must contain a mapping")

    section = config.get('analytics') or {}
    if not isinstance(section, dict):
        raise ConfigError("Config 'analytics' section must be a mapping")

    known = {f.name for f in fields(AnalyticsSettings)}
    unknown = set(section) - known
    if unknown:
        raise ConfigError(f"Unknown settings in config: {', '.join(sorted(unknown))}")

    return section


def load_settings(config_path: Optional[str] = None) -> AnalyticsSettings:
    """
    Load engine settings.

    Args:
        config_path: YAML file with an 'analytics' section (defaults to the
            ANALYTICS_CONFIG environment variable; no file if neither is set)

    Returns:
        Validated AnalyticsSettings

    Raises:
        ConfigError: If the file is missing or malformed, or a value is invalid
    """
    if config_path is None:
        config_path = os.getenv('ANALYTICS_CONFIG')

    values: Dict[str, Any] = {}
    if config_path:
        values.update(_read_config_file(config_path))
        logger.debug("Loaded settings from %s", config_path)

    for env_var, attribute in ENV_OVERRIDES.items():
        env_value = os.getenv(env_var)
        if env_value:
            values[attribute] = env_value

    return AnalyticsSettings(**values)
