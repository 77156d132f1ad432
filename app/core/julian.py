# app/core/julian.py
from __future__ import annotations
"""
julian.py — Julian Day kernel shared by the calendar and solar modules.

- Meeus calendar ↔ JD algorithm (Astronomical Algorithms, ch. 7).
- Gregorian correction only on/after the 1582-10-15 reform; earlier dates
  are treated as Julian-calendar dates. Negative years are computed with
  floor division, no era special-casing.
- JD convention: civil midnight is X.5, so gregorian_to_jd(...) always ends
  in .5; jd_to_gregorian compensates with +0.5 before splitting.

Public API:
  gregorian_to_jd(year, month, day)  -> float
  jd_to_gregorian(jd)                -> GregorianDate
  julian_day_number(jd)              -> int
  date_to_jd(date)                   -> float
"""
from dataclasses import dataclass, asdict
from datetime import date as _date
from typing import Any, Dict
import math

from app.core.constants import GREGORIAN_REFORM_JD

__all__ = [
    "GregorianDate",
    "gregorian_to_jd",
    "jd_to_gregorian",
    "julian_day_number",
    "date_to_jd",
]


@dataclass(frozen=True)
class GregorianDate:
    year: int
    month: int
    day: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def isoformat(self) -> str:
        return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"

    def to_date(self) -> _date:
        return _date(self.year, self.month, self.day)


# ──────────────────────────────────────────────────────────────────────────────
# Calendar → JD
# ──────────────────────────────────────────────────────────────────────────────
def gregorian_to_jd(year: int, month: int, day: float) -> float:
    """JD at 0h UT of the given civil date (fractional ``day`` is honored)."""
    y, m = int(year), int(month)
    if m <= 2:
        y -= 1
        m += 12
    b = 0
    if (int(year), int(month), day) >= (1582, 10, 15):
        a = y // 100
        b = 2 - a + a // 4
    return math.floor(365.25 * (y + 4716)) + math.floor(30.6001 * (m + 1)) + day + b - 1524.5


def date_to_jd(d: _date) -> float:
    return gregorian_to_jd(d.year, d.month, d.day)


# ──────────────────────────────────────────────────────────────────────────────
# JD → calendar
# ──────────────────────────────────────────────────────────────────────────────
def jd_to_gregorian(jd: float) -> GregorianDate:
    z = math.floor(jd + 0.5)
    if z < GREGORIAN_REFORM_JD:
        a = z
    else:
        alpha = math.floor((z - 1867216.25) / 36524.25)
        a = z + 1 + alpha - alpha // 4
    b = a + 1524
    c = math.floor((b - 122.1) / 365.25)
    d = math.floor(365.25 * c)
    e = math.floor((b - d) / 30.6001)

    day = b - d - math.floor(30.6001 * e)
    month = e - 1 if e < 14 else e - 13
    year = c - 4716 if month > 2 else c - 4715
    return GregorianDate(int(year), int(month), int(day))


def julian_day_number(jd: float) -> int:
    """Integer day number of the civil day containing ``jd`` (noon convention)."""
    return int(math.floor(jd + 0.5))
