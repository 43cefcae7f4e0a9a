"""
Configuration and environment loading for the stock tracker.
Loads .env and exposes helper getters with the tracker defaults.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.05
BULK_TOLERANCE = 0.15
LOOKBACK_MONTHS = 3
FETCH_TIMEOUT_SECONDS = 10.0
DEFAULT_PORT = 80
DEFAULT_WEB_DIR = '/web'


def _try_load_dotenv() -> None:
    if load_dotenv():
        logger.debug("Loaded environment variables from .env file")


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number, using {default}")
        return default


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not an integer, using {default}")
        return default


def get_default_tolerance() -> float:
    """Tolerance used when a caller does not supply one."""
    return _get_float('TRACKER_DEFAULT_TOLERANCE', DEFAULT_TOLERANCE)


def get_bulk_tolerance() -> float:
    """Tolerance applied to every ticker of a bulk-loaded list."""
    return _get_float('TRACKER_BULK_TOLERANCE', BULK_TOLERANCE)


def get_lookback_months() -> int:
    return _get_int('TRACKER_LOOKBACK_MONTHS', LOOKBACK_MONTHS)


def get_fetch_timeout() -> float:
    """Deadline in seconds for one quote history download."""
    return _get_float('TRACKER_FETCH_TIMEOUT', FETCH_TIMEOUT_SECONDS)


def get_server_port() -> int:
    return _get_int('TRACKER_PORT', DEFAULT_PORT)


def get_web_dir() -> str:
    return os.getenv('TRACKER_WEB_DIR', DEFAULT_WEB_DIR)


def get_slack_settings() -> Optional[Tuple[str, str]]:
    """Return (token, channel) from SLACK_TOKEN / SLACK_CHANNEL, or None."""
    token = os.getenv('SLACK_TOKEN')
    channel = os.getenv('SLACK_CHANNEL')
    if token and channel:
        return token, channel
    return None


def get_slack_config_path() -> Optional[str]:
    return os.getenv('SLACK_CONFIG') or None


# Side effect on import: load .env
_try_load_dotenv()
