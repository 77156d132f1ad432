# app/core/validators.py
from __future__ import annotations

import re
from datetime import datetime, date
from typing import Any, Dict, List, Optional, Tuple, TypedDict, Union

from app.core.constants import ASR_FACTORS, CALCULATION_METHODS, DEFAULT_ASR, DEFAULT_METHOD
from app.core.hijri import hijri_month_length, parse_adjustment

# First day of the Gregorian reform
FIRST_GREGORIAN_DATE = date(1582, 10, 15)

# ───────────────────────── errors ─────────────────────────

class ValidationError(ValueError):
    """Structured validator error compatible with routes.py (has .errors())."""
    def __init__(self, details: Union[str, Dict[str, Any], List[Dict[str, Any]]]):
        if isinstance(details, str):
            self._details = [{"loc": [], "msg": details, "type": "value_error"}]
            super().__init__(details)
        elif isinstance(details, dict):
            self._details = [details]
            super().__init__(details.get("msg", "validation_error"))
        elif isinstance(details, list):
            self._details = details
            super().__init__(self._details[0]["msg"] if self._details else "validation_error")
        else:
            self._details = [{"loc": [], "msg": "validation_error", "type": "value_error"}]
            super().__init__("validation_error")

    def errors(self) -> List[Dict[str, Any]]:
        return list(self._details)


# ───────────────────────── helpers ─────────────────────────

def _err(loc: List[str] | str, msg: str, typ: str = "value_error") -> Dict[str, Any]:
    return {"loc": [loc] if isinstance(loc, str) else loc, "msg": msg, "type": typ}

def _as_float(v: Any) -> Optional[float]:
    try:
        if v is None or isinstance(v, bool):
            return None
        x = float(v)
        if x != x or x in (float("inf"), float("-inf")):
            return None
        return x
    except (TypeError, ValueError):
        return None

def _as_int(v: Any) -> Optional[int]:
    if isinstance(v, bool) or v is None:
        return None
    if isinstance(v, int):
        return v
    if isinstance(v, float) and v.is_integer():
        return int(v)
    if isinstance(v, str) and re.fullmatch(r"\s*[-+]?\d+\s*", v):
        return int(v)
    return None

def _require_object(body: Any) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError("payload must be an object")
    return body


# ───────────────────────── atomic parsers ─────────────────────────

_TIME_RE = re.compile(r"^\s*(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?\s*$")

def parse_date(s: Any) -> date:
    try:
        d = datetime.strptime(str(s).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(_err("date", "date must be 'YYYY-MM-DD'", "value_error.date"))
    # Earlier dates are Julian-calendar in the JD kernel; Python dates are proleptic Gregorian
    if d < FIRST_GREGORIAN_DATE:
        raise ValidationError(_err("date", "date must be on or after 1582-10-15", "value_error.date"))
    return d

def parse_latlon(lat: Any, lon: Any, lat_key="latitude", lon_key="longitude") -> Tuple[float, float]:
    lat_f = _as_float(lat); lon_f = _as_float(lon)
    if lat_f is None or lon_f is None:
        raise ValidationError(_err([lat_key, lon_key], "latitude/longitude must be finite numbers", "type_error.float"))
    if not (-90.0 <= lat_f <= 90.0):
        raise ValidationError(_err(lat_key, "latitude must be between -90 and 90"))
    if not (-180.0 <= lon_f <= 180.0):
        raise ValidationError(_err(lon_key, "longitude must be between -180 and 180"))
    return float(lat_f), float(lon_f)

def parse_utc_offset(v: Any) -> float:
    """Fixed offset in hours; fractional zones (5.5, 4.5, 5.75) allowed."""
    off = _as_float(v)
    if off is None:
        raise ValidationError(_err("utc_offset", "utc_offset must be a number of hours", "type_error.float"))
    if not (-14.0 <= off <= 14.0):
        raise ValidationError(_err("utc_offset", "utc_offset must be between -14 and 14"))
    return off

def parse_method(v: Any | None, default: str = DEFAULT_METHOD) -> str:
    key = str(v or default).strip().lower()
    if key not in CALCULATION_METHODS:
        raise ValidationError(_err("method", f"method must be one of {sorted(CALCULATION_METHODS)}", "value_error.method"))
    return key

def parse_asr(v: Any | None, default: str = DEFAULT_ASR) -> str:
    key = str(v or default).strip().lower()
    if key not in ASR_FACTORS:
        raise ValidationError(_err("asr", f"asr must be one of {sorted(ASR_FACTORS)}", "value_error.asr"))
    return key

def parse_current_hour(v: Any) -> float:
    """Decimal hour of day, or an 'HH:MM[:SS]' clock string."""
    if isinstance(v, str):
        m = _TIME_RE.match(v)
        if m:
            hh = int(m.group("h")); mm = int(m.group("m")); ss = int(m.group("s") or 0)
            if not (0 <= hh <= 23 and 0 <= mm <= 59 and 0 <= ss <= 59):
                raise ValidationError(_err("current_hour", "time fields out of range", "value_error.time"))
            return hh + mm / 60.0 + ss / 3600.0
    h = _as_float(v)
    if h is None or not (0.0 <= h < 24.0):
        raise ValidationError(_err("current_hour", "current_hour must be in [0, 24) or 'HH:MM[:SS]'"))
    return h

def parse_time_adjustment(v: Any | None) -> Dict[str, Any]:
    """{sign: '+'|'-', minutes: 0..59, seconds: 0..59}; missing → zero shift."""
    if v is None:
        return {"sign": "+", "minutes": 0, "seconds": 0}
    if not isinstance(v, dict):
        raise ValidationError(_err("time_adjustment", "must be an object {sign, minutes, seconds}", "type_error"))
    sign = str(v.get("sign", "+")).strip() or "+"
    if sign not in ("+", "-"):
        raise ValidationError(_err(["time_adjustment", "sign"], "sign must be '+' or '-'"))
    return {"sign": sign, "minutes": v.get("minutes", 0), "seconds": v.get("seconds", 0)}


# ───────────────────────── hijri payloads ─────────────────────────

class HijriPayload(TypedDict, total=False):
    year: int
    month: int
    day: int
    adjustment: Optional[int]

def _adjustment_from(body: Dict[str, Any]) -> Optional[int]:
    # Absent → caller decides (process default); present → parsed like a stored preference
    if "adjustment" not in body or body.get("adjustment") is None:
        return None
    return parse_adjustment(body.get("adjustment"))

def parse_gregorian_payload(body: Any) -> Tuple[date, Optional[int]]:
    body = _require_object(body)
    if not isinstance(body.get("date"), str):
        raise ValidationError(_err("date", "required string", "value_error"))
    return parse_date(body["date"]), _adjustment_from(body)

def parse_hijri_payload(body: Any, require_day: bool = True) -> HijriPayload:
    body = _require_object(body)
    year = _as_int(body.get("year"))
    month = _as_int(body.get("month"))
    errors: List[Dict[str, Any]] = []
    if year is None or year < 1:
        errors.append(_err("year", "year must be a positive integer (AH)"))
    if month is None or not (1 <= month <= 12):
        errors.append(_err("month", "month must be an integer 1..12"))
    if errors:
        raise ValidationError(errors)

    out: HijriPayload = {"year": int(year), "month": int(month), "adjustment": _adjustment_from(body)}
    if require_day:
        day = _as_int(body.get("day"))
        n = hijri_month_length(year, month)
        if day is None or not (1 <= day <= n):
            raise ValidationError(_err("day", f"day must be an integer 1..{n}"))
        out["day"] = int(day)
    return out


# ───────────────────────── prayer payloads ─────────────────────────

class PrayerPayload(TypedDict, total=False):
    date: date
    latitude: float
    longitude: float
    utc_offset: float
    method: str
    asr: str
    time_adjustment: Dict[str, Any]
    current_hour: float

def _place_from(body: Dict[str, Any]) -> Tuple[float, float, float]:
    lat = body.get("latitude") if "latitude" in body else body.get("lat")
    lon = body.get("longitude") if "longitude" in body else body.get("lon")
    lat_f, lon_f = parse_latlon(lat, lon)
    off = body.get("utc_offset") if "utc_offset" in body else body.get("timezone")
    return lat_f, lon_f, parse_utc_offset(off)

def parse_prayer_payload(
    body: Any,
    require_current: bool = False,
    default_method: str = DEFAULT_METHOD,
    default_asr: str = DEFAULT_ASR,
) -> PrayerPayload:
    body = _require_object(body)
    if not isinstance(body.get("date"), str):
        raise ValidationError(_err("date", "required string", "value_error"))
    lat, lon, off = _place_from(body)
    out: PrayerPayload = {
        "date": parse_date(body["date"]),
        "latitude": lat,
        "longitude": lon,
        "utc_offset": off,
        "method": parse_method(body.get("method"), default_method),
        "asr": parse_asr(body.get("asr") or body.get("asr_convention"), default_asr),
        "time_adjustment": parse_time_adjustment(body.get("time_adjustment")),
    }
    if require_current:
        if "current_hour" not in body:
            raise ValidationError(_err("current_hour", "required", "value_error"))
        out["current_hour"] = parse_current_hour(body["current_hour"])
    return out

def parse_timetable_payload(
    body: Any,
    default_method: str = DEFAULT_METHOD,
    default_asr: str = DEFAULT_ASR,
) -> Dict[str, Any]:
    body = _require_object(body)
    year = _as_int(body.get("year"))
    month = _as_int(body.get("month"))
    if year is None or not (FIRST_GREGORIAN_DATE.year < year <= 9999):
        raise ValidationError(_err("year", "year must be an integer 1583..9999"))
    if month is None or not (1 <= month <= 12):
        raise ValidationError(_err("month", "month must be an integer 1..12"))
    lat, lon, off = _place_from(body)
    return {
        "year": year,
        "month": month,
        "latitude": lat,
        "longitude": lon,
        "utc_offset": off,
        "method": parse_method(body.get("method"), default_method),
        "asr": parse_asr(body.get("asr") or body.get("asr_convention"), default_asr),
    }


__all__ = [
    "ValidationError",
    "parse_date",
    "parse_latlon",
    "parse_utc_offset",
    "parse_method",
    "parse_asr",
    "parse_current_hour",
    "parse_time_adjustment",
    "parse_gregorian_payload",
    "parse_hijri_payload",
    "parse_prayer_payload",
    "parse_timetable_payload",
]
