"""Configuration validation and normalization for the TradeNavi reconciler."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, Any

import pytz

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and normalize the configuration.

    Checks required sections, validates ranges and fills defaults.

    Args:
        config: Raw configuration dictionary

    Returns:
        Validated and normalized configuration

    Raises:
        ConfigError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ConfigError("Configuration must be a mapping")

    # Check required top-level sections
    required_sections = ['trades', 'reconciler']
    for section in required_sections:
        if section not in config:
            raise ConfigError(f"Missing required configuration section: {section}")

    config = _validate_trades(config)
    config = _validate_reconciler(config)
    config = _validate_logging(config)

    return config


def _validate_trades(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate tax rate and timezone settings."""
    trades = config['trades'] or {}
    config['trades'] = trades

    if 'default_tax_rate' not in trades:
        trades['default_tax_rate'] = '0.10'

    try:
        rate = Decimal(str(trades['default_tax_rate']))
    except InvalidOperation:
        raise ConfigError(f"default_tax_rate is not a number: {trades['default_tax_rate']!r}")

    if not rate.is_finite() or not 0 <= rate <= 1:
        raise ConfigError("default_tax_rate must be between 0 and 1")
    trades['default_tax_rate'] = rate

    if 'timezone' not in trades:
        trades['timezone'] = 'Asia/Tokyo'

    try:
        pytz.timezone(trades['timezone'])
    except pytz.UnknownTimeZoneError:
        raise ConfigError(f"Unknown timezone: {trades['timezone']}")

    return config


def _validate_reconciler(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate write retry settings."""
    reconciler = config['reconciler'] or {}
    config['reconciler'] = reconciler

    if 'max_write_retries' not in reconciler:
        reconciler['max_write_retries'] = 3

    retries = reconciler['max_write_retries']
    if not isinstance(retries, int) or isinstance(retries, bool):
        raise ConfigError("max_write_retries must be an integer")

    if retries < 1 or retries > 10:
        raise ConfigError("max_write_retries must be between 1 and 10")

    return config


def _validate_logging(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate logging settings."""
    logging_cfg = config.get('logging') or {}
    config['logging'] = logging_cfg

    level = str(logging_cfg.get('level', 'INFO')).upper()
    if level not in VALID_LOG_LEVELS:
        logger.warning(f"Unknown log level '{level}', falling back to INFO")
        level = 'INFO'
    logging_cfg['level'] = level

    return config
