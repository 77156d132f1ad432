# app/core/constants.py
# -*- coding: utf-8 -*-
"""
Miqat — Core constants & small helpers

Purpose
-------
Single source of truth for:
- calculation-method registry (twilight angles / fixed Isha offset)
- Asr shadow-factor registry
- policy constants (Sehri offset, Tahajjud night fraction, horizon depression)
- tiny degree-trig and wrap helpers shared by solar / prayer modules

Design
------
- Pure-Python, no external dependencies.
- Safe to import from any core module.
- Functions are pure; constants are immutable by convention.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Tuple

__all__ = [
    # registries
    "CalculationMethod", "CALCULATION_METHODS", "DEFAULT_METHOD",
    "ASR_FACTORS", "DEFAULT_ASR", "get_method", "get_asr_factor",
    # policy
    "SEHRI_OFFSET_MINUTES", "TAHAJJUD_NIGHT_FRACTION", "HORIZON_DEPRESSION_DEG",
    "UNDEFINED_TIME", "PRAYER_ORDER", "NOTIFY_PRAYERS",
    # astronomy
    "J2000_JD", "GREGORIAN_REFORM_JD",
    # helpers
    "dsin", "dcos", "dtan", "darcsin", "darccos", "darctan", "darctan2",
    "fix_angle", "fix_hour",
]

# ── astronomy epochs ─────────────────────────────────────────────────────────
J2000_JD: float = 2451545.0
GREGORIAN_REFORM_JD: int = 2299161  # 1582-10-15


# ── calculation methods ──────────────────────────────────────────────────────
@dataclass(frozen=True)
class CalculationMethod:
    key: str
    name: str
    fajr_angle: float      # degrees below horizon
    isha_angle: float      # degrees below horizon (0 → fixed offset)
    isha_minutes: float    # minutes after Maghrib (0 → angle based)

    @property
    def uses_fixed_isha(self) -> bool:
        return self.isha_angle == 0

    def to_dict(self) -> Dict[str, object]:
        return {
            "key": self.key,
            "name": self.name,
            "fajr_angle": self.fajr_angle,
            "isha_angle": self.isha_angle,
            "isha_minutes": self.isha_minutes,
        }


CALCULATION_METHODS: Dict[str, CalculationMethod] = {
    "mwl": CalculationMethod("mwl", "Muslim World League", 18.0, 17.0, 0.0),
    "isna": CalculationMethod("isna", "ISNA (North America)", 15.0, 15.0, 0.0),
    "egypt": CalculationMethod("egypt", "Egyptian General Authority", 19.5, 17.5, 0.0),
    "makkah": CalculationMethod("makkah", "Umm al-Qura (Makkah)", 18.5, 0.0, 90.0),
    "karachi": CalculationMethod("karachi", "University of Islamic Sciences, Karachi", 18.0, 18.0, 0.0),
}
DEFAULT_METHOD: str = "mwl"

# Shadow = object length × factor + noon shadow
ASR_FACTORS: Dict[str, int] = {
    "shafii": 1,
    "hanafi": 2,
}
DEFAULT_ASR: str = "shafii"


def get_method(key: str | CalculationMethod | None) -> CalculationMethod:
    """Resolve a method key; unknown keys fall back to MWL."""
    if isinstance(key, CalculationMethod):
        return key
    return CALCULATION_METHODS.get(str(key or "").strip().lower(), CALCULATION_METHODS[DEFAULT_METHOD])


def get_asr_factor(key: str | int | None) -> int:
    """Resolve an Asr convention key (or a raw factor 1/2); unknown → Shafi'i."""
    if isinstance(key, int) and not isinstance(key, bool) and key in ASR_FACTORS.values():
        return key
    return ASR_FACTORS.get(str(key or "").strip().lower(), ASR_FACTORS[DEFAULT_ASR])


# ── policy constants ─────────────────────────────────────────────────────────
SEHRI_OFFSET_MINUTES: float = 10.0
TAHAJJUD_NIGHT_FRACTION: float = 2.0 / 3.0
HORIZON_DEPRESSION_DEG: float = 0.833  # refraction + solar semi-diameter
UNDEFINED_TIME: str = "--:--"

PRAYER_ORDER: Tuple[str, ...] = (
    "sehri", "fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha", "tahajjud",
)
NOTIFY_PRAYERS: Tuple[str, ...] = ("fajr", "dhuhr", "asr", "maghrib", "isha")


# ── degree trig ──────────────────────────────────────────────────────────────
def dsin(d: float) -> float:
    return math.sin(math.radians(d))

def dcos(d: float) -> float:
    return math.cos(math.radians(d))

def dtan(d: float) -> float:
    return math.tan(math.radians(d))

def darcsin(x: float) -> float:
    return math.degrees(math.asin(x))

def darccos(x: float) -> float:
    return math.degrees(math.acos(x))

def darctan(x: float) -> float:
    return math.degrees(math.atan(x))

def darctan2(y: float, x: float) -> float:
    return math.degrees(math.atan2(y, x))


# ── wrap helpers ─────────────────────────────────────────────────────────────
def fix_angle(a: float) -> float:
    """Wrap degrees into [0, 360)."""
    v = float(a) % 360.0
    return 0.0 if v == 360.0 else v

def fix_hour(h: float) -> float:
    """Wrap hours into [0, 24)."""
    v = float(h) % 24.0
    return 0.0 if v == 24.0 else v
