#!/usr/bin/env python3
"""
Typed access to the environment variables of the service.

Values are stripped before use: .env files edited on Windows leave a
trailing "\r" that would otherwise end up in paths and endpoints. A value
that cannot be converted falls back to the default with a warning instead of
failing at import time.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
FALSE_VALUES = frozenset({"false", "0", "no", "off", ""})


def env_str(key: str, default: str | None = None) -> str | None:
    """Stripped value of ``key``, or ``default`` when it is not set."""
    raw = os.environ.get(key)
    if raw is None:
        return default
    value = raw.strip()
    if value != raw:
        logger.debug(f"Stripped surrounding whitespace from {key}")
    return value


def env_flag(key: str, default: bool) -> bool:
    """Boolean switch; an empty value counts as off."""
    value = env_str(key)
    if value is None:
        return default
    if value.lower() in TRUE_VALUES:
        return True
    if value.lower() in FALSE_VALUES:
        return False
    logger.warning(f"{key}={value!r} is not a boolean; using {default}")
    return default


def env_positive_int(key: str, default: int) -> int:
    """Size, timeout or count; zero and negative values are rejected."""
    value = env_str(key)
    if not value:
        return default
    try:
        number = int(value)
    except ValueError:
        logger.warning(f"{key}={value!r} is not an integer; using {default}")
        return default
    if number <= 0:
        logger.warning(f"{key}={number} must be positive; using {default}")
        return default
    return number


def env_path(key: str) -> Path | None:
    """Directory or file named by ``key``; None when unset or empty."""
    value = env_str(key)
    return Path(value).expanduser() if value else None
