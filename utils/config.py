"""
Configuration loading - .env variables plus an optional YAML file.
Precedence: built-in defaults < YAML file < environment variables.
"""

import os
import logging
import yaml
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional
from dotenv import load_dotenv

from ingestion.providers.yfinance_adapter import BENCHMARK_SYMBOLS

# Load environment variables
load_dotenv()

DEFAULT_CONFIG_PATH = './config/dashboard.yml'


class ConfigError(Exception):
    """Raised when configuration cannot be loaded or is invalid."""
    pass


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the CLIs, analysis job and backfill."""
    db_path: str = './data/portfolio.db'
    output_dir: str = './data/processed/metrics'
    risk_free_rate: float = 0.02
    deposit_rate: float = 0.03
    volatility_windows: List[int] = field(default_factory=lambda: [30, 60, 90])
    top_periods: int = 5
    growth_amount: float = 10000.0
    requests_timeout_s: int = 30
    fetch_retries: int = 3
    fetch_backoff_s: float = 1.0
    default_benchmarks: List[str] = field(default_factory=lambda: ['sha', 'she', 'csi300'])
    benchmark_symbols: Dict[str, str] = field(default_factory=lambda: dict(BENCHMARK_SYMBOLS))
    log_level: str = 'INFO'


# Environment variable -> (settings field, converter)
ENV_OVERRIDES = {
    'PORTFOLIO_DB_PATH': ('db_path', str),
    'METRICS_OUTPUT_DIR': ('output_dir', str),
    'RISK_FREE_RATE': ('risk_free_rate', float),
    'DEPOSIT_RATE': ('deposit_rate', float),
    'REQUESTS_TIMEOUT_S': ('requests_timeout_s', int),
    'FETCH_RETRIES': ('fetch_retries', int),
    'FETCH_BACKOFF_S': ('fetch_backoff_s', float),
    'LOG_LEVEL': ('log_level', str),
}


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load dashboard configuration from YAML file.

    Args:
        config_path: Path to config file; defaults to DASHBOARD_CONFIG or
            ./config/dashboard.yml

    Returns:
        Dictionary with configuration ({} when the default file is absent)

    Raises:
        ConfigError: If an explicitly given file is missing or any file is invalid
    """
    explicit = config_path is not None or os.getenv('DASHBOARD_CONFIG') is not None
    if config_path is None:
        config_path = os.getenv('DASHBOARD_CONFIG', DEFAULT_CONFIG_PATH)

    config_file = Path(config_path)
    if not config_file.exists():
        if explicit:
            raise ConfigError(f"Dashboard config file not found: {config_path}")
        return {}

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load dashboard config: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigError("Dashboard config must be a mapping")

    return config


def _flatten(config: Dict[str, Any]) -> Dict[str, Any]:
    # YAML groups settings into sections; fields are unique across sections
    flat = {}
    for key, value in config.items():
        if key in ('analysis', 'storage', 'fetch', 'benchmarks', 'logging') and isinstance(value, dict):
            if key == 'benchmarks':
                if 'symbols' in value:
                    flat['benchmark_symbols'] = value['symbols']
                if 'default' in value:
                    flat['default_benchmarks'] = value['default']
            else:
                flat.update(value)
        else:
            flat[key] = value
    return flat


def _validate(settings: Settings) -> Settings:
    if not 0 <= settings.risk_free_rate < 1:
        raise ConfigError(f"risk_free_rate must be a decimal in [0, 1), got {settings.risk_free_rate}")
    if not 0 <= settings.deposit_rate < 1:
        raise ConfigError(f"deposit_rate must be a decimal in [0, 1), got {settings.deposit_rate}")
    if not settings.volatility_windows or any(int(w) < 2 for w in settings.volatility_windows):
        raise ConfigError(f"volatility_windows must be integers >= 2, got {settings.volatility_windows}")
    if settings.top_periods < 0:
        raise ConfigError(f"top_periods must be non-negative, got {settings.top_periods}")
    if settings.growth_amount <= 0:
        raise ConfigError(f"growth_amount must be positive, got {settings.growth_amount}")
    if settings.fetch_retries < 1:
        raise ConfigError(f"fetch_retries must be >= 1, got {settings.fetch_retries}")
    if settings.log_level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        raise ConfigError(f"Unknown LOG_LEVEL: {settings.log_level}")
    return replace(
        settings,
        volatility_windows=[int(w) for w in settings.volatility_windows],
        benchmark_symbols={str(k).lower(): str(v) for k, v in settings.benchmark_symbols.items()},
        default_benchmarks=[str(b).lower() for b in settings.default_benchmarks],
        log_level=settings.log_level.upper()
    )


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build Settings from defaults, the YAML file and environment variables.

    Args:
        config_path: Optional YAML path overriding DASHBOARD_CONFIG

    Returns:
        Validated Settings

    Raises:
        ConfigError: If the file or any value is invalid
    """
    values = _flatten(load_yaml_config(config_path))

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    for env_name, (field_name, convert) in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == '':
            continue
        try:
            values[field_name] = convert(raw)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {env_name}: {raw!r}") from e

    if 'benchmark_symbols' in values:
        # Configured symbols extend the built-in table
        values['benchmark_symbols'] = {**BENCHMARK_SYMBOLS, **(values['benchmark_symbols'] or {})}

    try:
        settings = Settings(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    try:
        return _validate(settings)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for CLI entry points."""
    logging.basicConfig(
        level=getattr(logging, (level or os.getenv('LOG_LEVEL', 'INFO')).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )
