"""
Platform configuration (``bench_config``).

Responsibility:
    The ONLY public configuration entrypoint is ``get_platform_settings()``.
    No other component reads configuration files or environment variables.

Audit relevance:
    Every load emits a ``BENCH_CONFIG_TRACE`` log entry with the source
    path and checksum, tying fees charged and invoice terms back to the
    exact settings that were active.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path

from bench_config.loader import load_settings
from bench_config.schema import PaymentProviderSettings, PlatformSettings

logger = logging.getLogger("bench_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"
_ENV_CONFIG_PATH = "BENCH_CONFIG_PATH"

_cache: dict[Path, PlatformSettings] = {}
_lock = threading.Lock()


def get_platform_settings(config_path: Path | None = None) -> PlatformSettings:
    """Return the active platform settings.

    Resolution order: explicit ``config_path``, then the
    ``BENCH_CONFIG_PATH`` environment variable, then the bundled
    ``sets/default.yaml``.  Results are cached per path.

    Raises:
        FileNotFoundError: the resolved file does not exist.
        ValueError: the file contains unknown keys or invalid values.
    """
    env_path = os.environ.get(_ENV_CONFIG_PATH)
    path = Path(config_path or env_path or _DEFAULT_CONFIG_PATH).resolve()

    with _lock:
        cached = _cache.get(path)
        if cached is not None:
            return cached

        settings, checksum = load_settings(path)
        _cache[path] = settings

    logger.info(
        "BENCH_CONFIG_TRACE",
        extra={
            "trace_type": "BENCH_CONFIG_TRACE",
            "config_path": str(path),
            "checksum": checksum,
            "currency": settings.currency,
            "matchmaking_fee": str(settings.matchmaking_fee),
            "founding_member_fee": str(settings.founding_member_fee),
        },
    )
    return settings


def clear_settings_cache() -> None:
    """Forget loaded settings. FOR TESTING ONLY."""
    with _lock:
        _cache.clear()


__all__ = [
    "PaymentProviderSettings",
    "PlatformSettings",
    "clear_settings_cache",
    "get_platform_settings",
]
