"""
Settings for the coffee price oracle.

Loaded from config/settings.yaml; environment variables take precedence
over the file. A missing file yields defaults.
"""

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .pricing.errors import ConfigurationError

DEFAULT_CONFIG_PATH = "config/settings.yaml"


@dataclass
class OracleSettings:
    """Resolved runtime settings."""
    base_url: str = "http://localhost:3001"
    timeout_seconds: float = 60.0
    cache_ttl_seconds: float = 300.0
    log_level: str = "INFO"
    log_json: bool = True
    log_file: Optional[str] = None

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)


def load_settings(config_path: str = DEFAULT_CONFIG_PATH) -> Dict:
    """Load raw settings from a YAML file ({} if it does not exist)."""
    path = Path(config_path)
    if not path.exists():
        return {}
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping at the top level")
    return data


def _positive(name: str, value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return number


def resolve_settings(
    config_path: str = DEFAULT_CONFIG_PATH,
    environ: Optional[Dict[str, str]] = None,
) -> OracleSettings:
    """
    Build OracleSettings from YAML plus environment overrides.

    Environment:
        COFFEE_PRICE_API_URL: Quote source base URL
        COFFEE_PRICE_LOG_LEVEL: Logging level
    """
    env = os.environ if environ is None else environ
    raw = load_settings(config_path)
    defaults = OracleSettings()

    pricing = raw.get('pricing', {}) or {}
    source = raw.get('quote_source', {}) or {}
    logging_cfg = raw.get('logging', {}) or {}

    log_level = str(env.get('COFFEE_PRICE_LOG_LEVEL', logging_cfg.get('level', defaults.log_level))).upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigurationError(f"Unknown log level: {log_level}")

    return OracleSettings(
        base_url=env.get('COFFEE_PRICE_API_URL', source.get('base_url', defaults.base_url)),
        timeout_seconds=_positive(
            'quote_source.timeout_seconds', source.get('timeout_seconds', defaults.timeout_seconds)
        ),
        cache_ttl_seconds=_positive(
            'pricing.cache_ttl_seconds', pricing.get('cache_ttl_seconds', defaults.cache_ttl_seconds)
        ),
        log_level=log_level,
        log_json=bool(logging_cfg.get('json', defaults.log_json)),
        log_file=logging_cfg.get('file', defaults.log_file),
    )
