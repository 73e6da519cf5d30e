"""
billing_config -- runtime configuration for the billing engines.

``get_active_config()`` is the entry point.  It reads the YAML file named
by ``BILLING_CONFIG_PATH`` (or an explicit path) and falls back to the
built-in defaults when neither is given.  Every call emits a
``BILLING_CONFIG_TRACE`` log record with the configuration checksum.
"""

from __future__ import annotations

import os
from pathlib import Path

from billing_config.loader import compute_checksum, load_config
from billing_config.schema import BillingConfig, CurrencyOverride
from billing_kernel.logging_config import get_logger

_logger = get_logger("config")

CONFIG_PATH_ENV = "BILLING_CONFIG_PATH"


def get_active_config(config_path: Path | str | None = None) -> BillingConfig:
    """Load the active billing configuration."""
    path = config_path or os.environ.get(CONFIG_PATH_ENV)
    if path:
        config = load_config(path)
        source = str(path)
    else:
        config = BillingConfig.with_defaults()
        source = "defaults"

    _logger.info(
        "BILLING_CONFIG_TRACE",
        extra={
            "trace_type": "BILLING_CONFIG_TRACE",
            "source": source,
            "checksum": compute_checksum(config.to_dict()),
            "default_currency": config.default_currency,
        },
    )
    return config


__all__ = [
    "BillingConfig",
    "CONFIG_PATH_ENV",
    "CurrencyOverride",
    "compute_checksum",
    "get_active_config",
    "load_config",
]
