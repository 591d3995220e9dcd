"""
Config persistence for deckhand.

Settings live in a single JSON file::

    ~/.config/deckhand/config.json
    {
        "poll_timeout_seconds": 200,
        "exit_repeat_threshold": 6,
        "brightness": 40,
        "background": "/home/me/wallpaper.png"
    }

Missing or broken files read as an empty config.  Bad values fall back
to their defaults so a typo never keeps the device from starting.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .constants import (
    BRIGHTNESS_MAX,
    BRIGHTNESS_MIN,
    DEFAULT_EXIT_REPEAT_THRESHOLD,
    DEFAULT_POLL_TIMEOUT_S,
)

log = logging.getLogger(__name__)

CONFIG_DIR = os.path.join(
    os.environ.get('XDG_CONFIG_HOME') or os.path.expanduser('~/.config'),
    'deckhand',
)
CONFIG_PATH = os.path.join(CONFIG_DIR, 'config.json')


@dataclass(frozen=True)
class Settings:
    poll_timeout_seconds: float = DEFAULT_POLL_TIMEOUT_S
    exit_repeat_threshold: int = DEFAULT_EXIT_REPEAT_THRESHOLD
    brightness: Optional[int] = None
    background: Optional[str] = None


def load_config() -> Dict[str, Any]:
    """Load the config dict, {} if missing or corrupt."""
    try:
        with open(CONFIG_PATH) as f:
            data = json.load(f)
    except FileNotFoundError:
        return {}
    except (OSError, json.JSONDecodeError) as e:
        log.warning("Ignoring unreadable config %s: %s", CONFIG_PATH, e)
        return {}
    if not isinstance(data, dict):
        log.warning("Ignoring config %s: top level is not an object", CONFIG_PATH)
        return {}
    return data


def save_config(config: Dict[str, Any]) -> None:
    """Write the config dict, replacing the file."""
    os.makedirs(CONFIG_DIR, exist_ok=True)
    with open(CONFIG_PATH, 'w') as f:
        json.dump(config, f, indent=2)


def _poll_timeout(config: Dict[str, Any]) -> float:
    value = config.get('poll_timeout_seconds', DEFAULT_POLL_TIMEOUT_S)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        log.warning("Invalid poll_timeout_seconds %r, using %s",
                    value, DEFAULT_POLL_TIMEOUT_S)
        return DEFAULT_POLL_TIMEOUT_S
    return float(value)


def _repeat_threshold(config: Dict[str, Any]) -> int:
    value = config.get('exit_repeat_threshold', DEFAULT_EXIT_REPEAT_THRESHOLD)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        log.warning("Invalid exit_repeat_threshold %r, using %s",
                    value, DEFAULT_EXIT_REPEAT_THRESHOLD)
        return DEFAULT_EXIT_REPEAT_THRESHOLD
    return value


def _brightness(config: Dict[str, Any]) -> Optional[int]:
    value = config.get('brightness')
    if value is None:
        return None
    if (isinstance(value, bool) or not isinstance(value, int)
            or not BRIGHTNESS_MIN <= value <= BRIGHTNESS_MAX):
        log.warning("Invalid brightness %r, leaving device default", value)
        return None
    return value


def _background(config: Dict[str, Any]) -> Optional[str]:
    value = config.get('background')
    if not value:
        return None
    if not isinstance(value, str):
        log.warning("Invalid background %r, ignoring", value)
        return None
    return os.path.expanduser(value)


def load_settings() -> Settings:
    """Settings from the config file, defaults for anything missing."""
    config = load_config()
    return Settings(
        poll_timeout_seconds=_poll_timeout(config),
        exit_repeat_threshold=_repeat_threshold(config),
        brightness=_brightness(config),
        background=_background(config),
    )
