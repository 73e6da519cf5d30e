"""
Configuration Loader (``billing_config.loader``).

Reads a YAML file into a ``BillingConfig``.  The file holds a single
mapping, optionally nested under a top-level ``billing:`` key:

    billing:
      default_currency: EUR
      default_threshold: "1.50"
      hours_per_day: 8
      currencies:
        - {code: EUR, decimal_places: 2}

Failure modes
-------------
* Missing file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import BillingConfig


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_config(data: dict[str, Any]) -> BillingConfig:
    if not isinstance(data, dict):
        raise ValueError("Billing configuration must be a mapping")
    section = data.get("billing", data)
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ValueError("'billing' section must be a mapping")
    return BillingConfig.from_dict(section)


def load_config(path: Path | str) -> BillingConfig:
    return parse_config(load_yaml_file(Path(path)))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form; identical data, identical checksum."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
