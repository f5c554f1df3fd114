"""
Configuration Loader (``bench_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``bench_config.schema.PlatformSettings``.  Runtime code does not call this
directly; the single entry point is ``bench_config.get_platform_settings()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from bench_config.schema import PaymentProviderSettings, PlatformSettings

_DECIMAL_FIELDS = frozenset({
    "matchmaking_fee",
    "founding_member_fee",
    "min_weekly_hours",
    "max_weekly_hours",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(name: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{name}: not a number: {value!r}") from None


def parse_payment_provider(data: dict[str, Any]) -> PaymentProviderSettings:
    known = {f.name for f in fields(PaymentProviderSettings)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown payment_provider settings: {sorted(unknown)}")
    values = dict(data)
    if "timeout_seconds" in values:
        values["timeout_seconds"] = float(values["timeout_seconds"])
    return PaymentProviderSettings(**values)


def parse_settings(data: dict[str, Any]) -> PlatformSettings:
    """Parse a ``PlatformSettings`` from a dict; missing keys keep defaults."""
    known = {f.name for f in fields(PlatformSettings)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown platform settings: {sorted(unknown)}")

    values: dict[str, Any] = {}
    for key, value in data.items():
        if key in _DECIMAL_FIELDS:
            values[key] = parse_decimal(key, value)
        elif key == "payment_provider":
            values[key] = parse_payment_provider(value or {})
        else:
            values[key] = value
    return PlatformSettings(**values)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_settings(path: Path) -> tuple[PlatformSettings, str]:
    """Load, parse and fingerprint a settings file.

    Returns:
        (settings, checksum)
    """
    data = load_yaml_file(path)
    settings_data = data.get("platform", data)
    return parse_settings(settings_data), compute_checksum(settings_data)
