# app/core/hijri.py
# -----------------------------------------------------------------------------
# Tabular (civil / Kuwaiti) Hijri calendar
#
# Public API:
#   hijri_to_jd(y, m, d)                       -> int   (day number, noon)
#   jd_to_hijri(jd)                            -> HijriDate
#   gregorian_to_hijri(y, m, d, adjustment)    -> HijriDate
#   hijri_to_gregorian(hy, hm, hd, adjustment) -> GregorianDate
#   day_of_week(hy, hm, hd, adjustment)        -> 0..6 (0 = Sunday)
#   is_hijri_leap_year / hijri_month_length / hijri_year_length
#   HijriConverter(adjustment)                 -> bound converter value
#   set_adjustment / get_adjustment / parse_adjustment
#
# Guarantees:
#   • 30-year cycle, intercalary years {2,5,7,10,13,16,18,21,24,26,29}.
#   • jd_to_hijri(hijri_to_jd(y, m, d)) == (y, m, d) for every valid date.
#   • The adjustment is added on Gregorian→Hijri and subtracted on
#     Hijri→Gregorian, so both directions stay inverse for the same value.
#   • No calendar-input validation (out-of-range fields give arithmetic
#     results, never exceptions).
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, asdict
from datetime import date
from typing import Any, Dict, Optional, Tuple

from app.core.julian import (
    GregorianDate,
    gregorian_to_jd,
    jd_to_gregorian,
    julian_day_number,
)

__all__ = [
    "HijriDate",
    "HijriConverter",
    "INTERCALARY_YEARS",
    "DEFAULT_ADJUSTMENT",
    "is_hijri_leap_year",
    "hijri_month_length",
    "hijri_year_length",
    "hijri_to_jd",
    "jd_to_hijri",
    "gregorian_to_hijri",
    "hijri_to_gregorian",
    "day_of_week",
    "hijri_today",
    "hijri_month_span",
    "shift_hijri_month",
    "parse_adjustment",
    "set_adjustment",
    "get_adjustment",
]

log = logging.getLogger(__name__)

INTERCALARY_YEARS: Tuple[int, ...] = (2, 5, 7, 10, 13, 16, 18, 21, 24, 26, 29)

# Preference default shipped with the app (one day behind the tabular epoch)
DEFAULT_ADJUSTMENT: int = -1

# Civil epoch: 1 Muharram 1 AH = JDN 1948440
_EPOCH_JDN = 1948440
_CYCLE_DAYS = 10631  # days in 30 Hijri years


# ───────────────────────────── Dataclass ─────────────────────────────

@dataclass(frozen=True)
class HijriDate:
    year: int
    month: int
    day: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ───────────────────────────── Leap rules ─────────────────────────────

def is_hijri_leap_year(year: int) -> bool:
    return ((int(year) - 1) % 30) + 1 in INTERCALARY_YEARS

def hijri_month_length(year: int, month: int) -> int:
    """30 for odd months, 29 for even; Dhul Hijjah has 30 in a leap year. 0 if month is out of range."""
    if month < 1 or month > 12:
        return 0
    if month % 2 == 1:
        return 30
    if month == 12 and is_hijri_leap_year(year):
        return 30
    return 29

def hijri_year_length(year: int) -> int:
    return 355 if is_hijri_leap_year(year) else 354


# ───────────────────────────── Hijri ↔ JD ─────────────────────────────

def hijri_to_jd(year: int, month: int, day: int) -> int:
    return (
        (11 * year + 3) // 30
        + 354 * year
        + 30 * month
        - (month - 1) // 2
        + day
        + _EPOCH_JDN
        - 385
    )

def jd_to_hijri(jd: float) -> HijriDate:
    """Inverse of hijri_to_jd; accepts both X.5 (midnight) and integer (noon) JD values."""
    r = julian_day_number(jd) - _EPOCH_JDN + 10632
    n = (r - 1) // _CYCLE_DAYS
    r = r - _CYCLE_DAYS * n + 354
    # position inside the 30-year cycle
    j = ((10985 - r) // 5316) * ((50 * r) // 17719) + (r // 5670) * ((43 * r) // 15238)
    r = r - ((30 - j) // 15) * ((17719 * j) // 50) - (j // 16) * ((15238 * j) // 43) + 29
    month = (24 * r) // 709
    day = r - (709 * month) // 24
    year = 30 * n + j - 30
    return HijriDate(int(year), int(month), int(day))


# ───────────────────────────── Adjustment state ─────────────────────────────

_adjustment: int = 0
_adjustment_lock = threading.Lock()

def parse_adjustment(value: Any) -> int:
    """
    Coerce a stored preference into a day offset.
    Integers and integer strings are accepted; anything else is 0.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else 0
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return 0
    return 0

def set_adjustment(value: Any) -> int:
    """Set the process-wide adjustment used when no explicit value is passed."""
    global _adjustment
    adj = parse_adjustment(value)
    with _adjustment_lock:
        _adjustment = adj
    log.debug("Hijri adjustment set to %d", adj)
    return adj

def get_adjustment() -> int:
    with _adjustment_lock:
        return _adjustment

def _resolve(adjustment: Optional[int]) -> int:
    return get_adjustment() if adjustment is None else parse_adjustment(adjustment)


# ───────────────────────────── Conversions ─────────────────────────────

def gregorian_to_hijri(year: int, month: int, day: int, adjustment: Optional[int] = None) -> HijriDate:
    return jd_to_hijri(gregorian_to_jd(year, month, day) + _resolve(adjustment))

def hijri_to_gregorian(year: int, month: int, day: int, adjustment: Optional[int] = None) -> GregorianDate:
    return jd_to_gregorian(hijri_to_jd(year, month, day) - _resolve(adjustment))

def day_of_week(year: int, month: int, day: int, adjustment: Optional[int] = None) -> int:
    """0 = Sunday … 6 = Saturday."""
    jd = hijri_to_jd(year, month, day) - _resolve(adjustment)
    return int(math.floor(jd + 1.5)) % 7

def hijri_today(today: Optional[date] = None, adjustment: Optional[int] = None) -> HijriDate:
    d = today or date.today()
    return gregorian_to_hijri(d.year, d.month, d.day, adjustment)

def hijri_month_span(year: int, month: int, adjustment: Optional[int] = None) -> Tuple[GregorianDate, GregorianDate]:
    """First and last Gregorian day covered by a Hijri month."""
    adj = _resolve(adjustment)
    first = hijri_to_gregorian(year, month, 1, adj)
    last = hijri_to_gregorian(year, month, hijri_month_length(year, month), adj)
    return first, last

def shift_hijri_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    idx = (int(year) * 12 + (int(month) - 1)) + int(delta)
    return idx // 12, idx % 12 + 1


# ───────────────────────────── Bound converter ─────────────────────────────

@dataclass(frozen=True)
class HijriConverter:
    """Conversions bound to one adjustment value; no shared state involved."""
    adjustment: int = 0

    @classmethod
    def from_preference(cls, value: Any) -> "HijriConverter":
        return cls(parse_adjustment(value))

    def to_hijri(self, year: int, month: int, day: int) -> HijriDate:
        return gregorian_to_hijri(year, month, day, self.adjustment)

    def to_gregorian(self, year: int, month: int, day: int) -> GregorianDate:
        return hijri_to_gregorian(year, month, day, self.adjustment)

    def day_of_week(self, year: int, month: int, day: int) -> int:
        return day_of_week(year, month, day, self.adjustment)

    def today(self, today: Optional[date] = None) -> HijriDate:
        return hijri_today(today, self.adjustment)

    def month_span(self, year: int, month: int) -> Tuple[GregorianDate, GregorianDate]:
        return hijri_month_span(year, month, self.adjustment)
