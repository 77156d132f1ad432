# app/core/prayer_times.py
"""
prayer_times.py — daily prayer instants from solar position.

Pipeline (per civil date):
  JD(0h) → sun_position → Dhuhr (solar noon on the local clock)
         → twilight / horizon hour angles → Fajr, Sunrise, Maghrib, Isha
         → shadow-ratio elevation → Asr
         → policy-derived Sehri / Tahajjud

Unreachable solar angles (high latitude, extreme season) never raise; the
instant is carried as PrayerTime(value=None) and formats to the "--:--"
sentinel. ``raw`` still exposes NaN for callers that want the numeric form.

Tahajjud uses Maghrib→Fajr of the same computed day as the night span.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import calendar
import logging
import math

from app.core.constants import (
    CalculationMethod,
    DEFAULT_ASR,
    DEFAULT_METHOD,
    HORIZON_DEPRESSION_DEG,
    NOTIFY_PRAYERS,
    PRAYER_ORDER,
    SEHRI_OFFSET_MINUTES,
    TAHAJJUD_NIGHT_FRACTION,
    UNDEFINED_TIME,
    darccos,
    darctan,
    dcos,
    dsin,
    dtan,
    fix_hour,
    get_asr_factor,
    get_method,
)
from app.core.julian import gregorian_to_jd
from app.core.solar import sun_position

__all__ = [
    "PrayerTime",
    "PrayerTimeSet",
    "NextPrayer",
    "calculate",
    "get_next_prayer",
    "format_countdown",
    "apply_adjustment",
    "time_adjustment_hours",
    "due_prayers",
    "monthly_timetable",
    "format_hour_24",
    "format_hour_12",
]

log = logging.getLogger(__name__)

# Scan order for "what comes next"; tahajjud is checked separately
_NEXT_SCAN: Tuple[str, ...] = PRAYER_ORDER[:-1]


# ──────────────────────────────────────────────────────────────────────────────
# Formatting
# ──────────────────────────────────────────────────────────────────────────────
def _split_hm(hours: float) -> Tuple[int, int]:
    total = int(round(fix_hour(hours) * 60.0)) % 1440
    return divmod(total, 60)


def format_hour_24(hours: Optional[float]) -> str:
    if hours is None or not math.isfinite(hours):
        return UNDEFINED_TIME
    h, m = _split_hm(hours)
    return f"{h:02d}:{m:02d}"


def format_hour_12(hours: Optional[float]) -> str:
    if hours is None or not math.isfinite(hours):
        return UNDEFINED_TIME
    h, m = _split_hm(hours)
    h12 = 12 if h == 0 else (h - 12 if h > 12 else h)
    meridiem = "AM" if h < 12 else "PM"
    return f"{h12}:{m:02d} {meridiem}"


# ──────────────────────────────────────────────────────────────────────────────
# Result types
# ──────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class PrayerTime:
    name: str
    value: Optional[float]  # clock hours as computed; may lie outside [0, 24)

    @property
    def is_defined(self) -> bool:
        return self.value is not None

    @property
    def raw(self) -> float:
        return float("nan") if self.value is None else float(self.value)

    @property
    def decimal(self) -> float:
        """Hour of day in [0, 24), NaN when undefined."""
        return float("nan") if self.value is None else fix_hour(self.value)

    @property
    def h24(self) -> str:
        return format_hour_24(self.value)

    @property
    def h12(self) -> str:
        return format_hour_12(self.value)

    def shifted(self, delta_hours: float) -> "PrayerTime":
        if self.value is None:
            return self
        return PrayerTime(self.name, self.value + delta_hours)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "h24": self.h24,
            "h12": self.h12,
            "decimal": None if self.value is None else self.decimal,
            "raw": self.value,
            "defined": self.is_defined,
        }


@dataclass(frozen=True)
class PrayerTimeSet:
    sehri: PrayerTime
    fajr: PrayerTime
    sunrise: PrayerTime
    dhuhr: PrayerTime
    asr: PrayerTime
    maghrib: PrayerTime
    isha: PrayerTime
    tahajjud: PrayerTime
    meta: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_values(cls, values: Dict[str, Optional[float]], meta: Optional[Dict[str, Any]] = None) -> "PrayerTimeSet":
        return cls(**{n: PrayerTime(n, values.get(n)) for n in PRAYER_ORDER}, meta=dict(meta or {}))

    def __iter__(self) -> Iterator[PrayerTime]:
        for n in PRAYER_ORDER:
            yield getattr(self, n)

    def get(self, name: str) -> PrayerTime:
        if name not in PRAYER_ORDER:
            raise KeyError(name)
        return getattr(self, name)

    def values(self) -> Dict[str, Optional[float]]:
        return {p.name: p.value for p in self}

    def raw(self) -> Dict[str, float]:
        return {p.name: p.raw for p in self}

    def undefined(self) -> List[str]:
        return [p.name for p in self if not p.is_defined]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {p.name: p.to_dict() for p in self}
        if self.meta:
            out["meta"] = dict(self.meta)
        return out


@dataclass(frozen=True)
class NextPrayer:
    name: str
    time: Optional[float]
    is_tomorrow: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "time": self.time, "is_tomorrow": self.is_tomorrow}


# ──────────────────────────────────────────────────────────────────────────────
# Solar-angle geometry
# ──────────────────────────────────────────────────────────────────────────────
def _hour_angle(cos_h: float) -> Optional[float]:
    if cos_h > 1.0 or cos_h < -1.0:
        return None
    return darccos(cos_h) / 15.0


def _sun_angle_time(angle: float, latitude: float, declination: float, clockwise: bool) -> Optional[float]:
    """Hours from solar noon until the sun sits ``angle`` degrees below the horizon."""
    ratio = (-dsin(angle) - dsin(latitude) * dsin(declination)) / (dcos(latitude) * dcos(declination))
    ha = _hour_angle(ratio)
    if ha is None:
        return None
    return ha if clockwise else -ha


def _asr_hour_angle(factor: int, latitude: float, declination: float) -> Optional[float]:
    elevation = darctan(1.0 / (factor + dtan(abs(latitude - declination))))
    cos_h = (dsin(elevation) - dsin(latitude) * dsin(declination)) / (dcos(latitude) * dcos(declination))
    return _hour_angle(cos_h)


def _plus(base: Optional[float], delta: Optional[float]) -> Optional[float]:
    if base is None or delta is None:
        return None
    return base + delta


# ──────────────────────────────────────────────────────────────────────────────
# Main calculator
# ──────────────────────────────────────────────────────────────────────────────
def calculate(
    on_date: date,
    latitude: float,
    longitude: float,
    utc_offset_hours: float,
    method: str | CalculationMethod = DEFAULT_METHOD,
    asr_convention: str | int = DEFAULT_ASR,
) -> PrayerTimeSet:
    """
    Compute the eight daily instants for ``on_date`` (civil date at the place).

    ``on_date`` may be a ``datetime.date`` or anything exposing year/month/day.
    Unknown method / Asr keys fall back to MWL / Shafi'i.
    """
    m = get_method(method)
    factor = get_asr_factor(asr_convention)
    lat = float(latitude)
    lng = float(longitude)
    tz = float(utc_offset_hours)

    jd = gregorian_to_jd(on_date.year, on_date.month, on_date.day)
    sun = sun_position(jd)
    decl = sun.declination

    dhuhr = fix_hour(12.0 - sun.equation_of_time) + tz - lng / 15.0

    fajr = _plus(dhuhr, _sun_angle_time(m.fajr_angle, lat, decl, clockwise=False))
    sunrise = _plus(dhuhr, _sun_angle_time(HORIZON_DEPRESSION_DEG, lat, decl, clockwise=False))
    asr = _plus(dhuhr, _asr_hour_angle(factor, lat, decl))
    maghrib = _plus(dhuhr, _sun_angle_time(HORIZON_DEPRESSION_DEG, lat, decl, clockwise=True))

    if m.uses_fixed_isha:
        isha = _plus(maghrib, m.isha_minutes / 60.0)
    else:
        isha = _plus(dhuhr, _sun_angle_time(m.isha_angle, lat, decl, clockwise=True))

    sehri = _plus(fajr, -SEHRI_OFFSET_MINUTES / 60.0)

    tahajjud: Optional[float] = None
    if fajr is not None and maghrib is not None:
        night = (fajr + 24.0 - maghrib) % 24.0
        tahajjud = maghrib + night * TAHAJJUD_NIGHT_FRACTION

    values = {
        "sehri": sehri, "fajr": fajr, "sunrise": sunrise, "dhuhr": dhuhr,
        "asr": asr, "maghrib": maghrib, "isha": isha, "tahajjud": tahajjud,
    }
    missing = [k for k, v in values.items() if v is None]
    if missing:
        log.debug(
            "Unreachable solar angle for %s at lat=%.4f on %04d-%02d-%02d (method=%s)",
            ",".join(missing), lat, on_date.year, on_date.month, on_date.day, m.key,
        )

    meta = {
        "date": f"{on_date.year:04d}-{on_date.month:02d}-{on_date.day:02d}",
        "latitude": lat,
        "longitude": lng,
        "utc_offset": tz,
        "method": m.key,
        "asr_factor": factor,
        "jd": jd,
        "declination": decl,
        "equation_of_time": sun.equation_of_time,
    }
    return PrayerTimeSet.from_values(values, meta)


def monthly_timetable(
    year: int,
    month: int,
    latitude: float,
    longitude: float,
    utc_offset_hours: float,
    method: str | CalculationMethod = DEFAULT_METHOD,
    asr_convention: str | int = DEFAULT_ASR,
) -> List[Tuple[date, PrayerTimeSet]]:
    """One PrayerTimeSet per day of a Gregorian month."""
    _, ndays = calendar.monthrange(year, month)
    out: List[Tuple[date, PrayerTimeSet]] = []
    for day in range(1, ndays + 1):
        d = date(year, month, day)
        out.append((d, calculate(d, latitude, longitude, utc_offset_hours, method, asr_convention)))
    return out


# ──────────────────────────────────────────────────────────────────────────────
# Queries against a reference clock
# ──────────────────────────────────────────────────────────────────────────────
def get_next_prayer(times: PrayerTimeSet, current_hour: float) -> NextPrayer:
    for name in _NEXT_SCAN:
        v = times.get(name).value
        if v is not None and v > current_hour:
            return NextPrayer(name, v)
    tahajjud = times.tahajjud.value
    if tahajjud is not None and tahajjud > current_hour:
        return NextPrayer("tahajjud", tahajjud)
    sehri = times.sehri.value
    return NextPrayer("sehri", None if sehri is None else sehri + 24.0, is_tomorrow=True)


def format_countdown(target_hour: Optional[float], current_hour: float) -> str:
    """``"Hh MMm SSs"`` until ``target_hour``, wrapping past midnight."""
    if target_hour is None or not math.isfinite(target_hour):
        return UNDEFINED_TIME
    diff = target_hour - current_hour
    if diff < 0:
        diff += 24.0
    total = int(math.floor(diff * 3600.0 + 1e-6))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h}h {m:02d}m {s:02d}s"


def due_prayers(
    times: PrayerTimeSet,
    current_hour: float,
    window_minutes: float = 1.0,
    names: Sequence[str] = NOTIFY_PRAYERS,
) -> List[str]:
    """Prayers whose time started within the last ``window_minutes`` (notification trigger)."""
    out: List[str] = []
    for name in names:
        p = times.get(name)
        if not p.is_defined:
            continue
        diff = (current_hour - p.decimal) * 60.0
        if 0.0 <= diff < window_minutes:
            out.append(name)
    return out


# ──────────────────────────────────────────────────────────────────────────────
# Caller-side shifts
# ──────────────────────────────────────────────────────────────────────────────
def time_adjustment_hours(sign: Any = "+", minutes: Any = 0, seconds: Any = 0) -> float:
    """Manual clock correction as decimal hours; minutes/seconds clamp to 0..59."""
    def _clamp(v: Any) -> int:
        try:
            n = int(v)
        except (TypeError, ValueError):
            return 0
        return max(0, min(59, n))

    hours = (_clamp(minutes) * 60 + _clamp(seconds)) / 3600.0
    return -hours if str(sign).strip() == "-" else hours


def apply_adjustment(times: PrayerTimeSet, delta_hours: float) -> PrayerTimeSet:
    """Shift every defined instant by ``delta_hours``; undefined stays undefined."""
    if not delta_hours:
        return times
    shifted = {f.name: getattr(times, f.name).shifted(delta_hours) for f in fields(times) if f.name != "meta"}
    meta = dict(times.meta)
    meta["adjustment_hours"] = meta.get("adjustment_hours", 0.0) + delta_hours
    return PrayerTimeSet(**shifted, meta=meta)

