"""Persistent user preferences for the meter front end."""

from __future__ import annotations

import configparser
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

log = logging.getLogger(__name__)

_APP_NAME = "owonmeter"
_GENERAL = "General"
_TRUE_FALSE_OFF = {"", "0", "false"}


class Rate(Enum):
    """Measurement rate of the meter."""

    SLOW = 0
    MEDIUM = 1
    FAST = 2


_RATE_NAMES = {Rate.SLOW: "slow", Rate.MEDIUM: "medium", Rate.FAST: "fast"}
_RATES_BY_NAME = {name: rate for rate, name in _RATE_NAMES.items()}


def string_to_rate(value, default):
    """Return the rate named by *value* (case-insensitive), else *default*."""
    return _RATES_BY_NAME.get(str(value).lower(), default)


def rate_to_string(rate):
    """Return the stored name of *rate*."""
    return _RATE_NAMES.get(rate, "unknown")


def default_settings_path() -> Path:
    """Return the per-user location of the settings file."""
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming")
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Preferences"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return base / _APP_NAME / f"{_APP_NAME}.ini"


def _to_int(raw, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return 0


def _to_bool(raw, default: bool) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() not in _TRUE_FALSE_OFF


@dataclass
class Settings:
    """Window geometry, serial device and measurement preferences."""

    window_height: int = 162
    window_width: int = 580
    window_x: int = 100
    window_y: int = 100
    device: str = ""
    rate: Rate = Rate.FAST
    beep_short: bool = True
    beep_diode: bool = True
    beep_resistance: int = 50
    path: Path | None = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        self.path = Path(self.path) if self.path is not None else default_settings_path()

    def load(self) -> None:
        """Read stored values; keys that are missing keep their current value."""
        parser = configparser.ConfigParser(interpolation=None)
        parser.read(self.path, encoding="utf-8")

        def raw(section: str, key: str):
            return parser.get(section, key, fallback=None)

        self.window_height = _to_int(raw("window", "height"), self.window_height)
        self.window_width = _to_int(raw("window", "width"), self.window_width)
        self.window_x = _to_int(raw("window", "x"), self.window_x)
        self.window_y = _to_int(raw("window", "y"), self.window_y)
        device = raw("hardware", "device")
        if device is not None:
            self.device = device
        rate_name = raw(_GENERAL, "rate")
        if rate_name is None:
            rate_name = rate_to_string(self.rate)
        self.rate = string_to_rate(rate_name, self.rate)
        self.beep_short = _to_bool(raw(_GENERAL, "beep_short"), self.beep_short)
        self.beep_diode = _to_bool(raw(_GENERAL, "beep_diode"), self.beep_diode)
        self.beep_resistance = _to_int(
            raw(_GENERAL, "beep_threshold"), self.beep_resistance
        )

    def save(self) -> None:
        """Write all values to the settings file."""
        parser = configparser.ConfigParser(interpolation=None)
        parser[_GENERAL] = {
            "rate": rate_to_string(self.rate),
            "beep_short": str(bool(self.beep_short)).lower(),
            "beep_diode": str(bool(self.beep_diode)).lower(),
            "beep_threshold": str(self.beep_resistance),
        }
        parser["hardware"] = {"device": self.device}
        parser["window"] = {
            "height": str(self.window_height),
            "width": str(self.window_width),
            "x": str(self.window_x),
            "y": str(self.window_y),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as handle:
            parser.write(handle)
        log.info("Settings saved.")