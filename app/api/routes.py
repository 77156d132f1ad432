# app/api/routes.py
"""
Miqat — Canonical API Routes
- Hijri ↔ Gregorian conversion (tabular calendar, day adjustment)
- Hijri month summary (length, leap flag, Gregorian span, first weekday)
- Daily prayer times, next prayer + countdown, monthly timetable
- Ops: /api/health, /api/config

Notes:
- The Hijri adjustment is always passed explicitly into the engine: request
  value if present, else the process-wide value seeded from config at startup.
- Undefined prayer instants serialize with raw=null and the "--:--" sentinel.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

from app.version import VERSION
from app.core.constants import ASR_FACTORS, CALCULATION_METHODS, DEFAULT_ASR, DEFAULT_METHOD
from app.core.hijri import (
    HijriConverter,
    get_adjustment,
    hijri_month_length,
    hijri_year_length,
    is_hijri_leap_year,
)
from app.core.prayer_times import (
    apply_adjustment,
    calculate,
    due_prayers,
    format_countdown,
    get_next_prayer,
    monthly_timetable,
    time_adjustment_hours,
)
from app.core.validators import (
    ValidationError,
    parse_gregorian_payload,
    parse_hijri_payload,
    parse_prayer_payload,
    parse_timetable_payload,
)
from app.utils.cache import LRUCache
from app.utils.metrics import MET_VALIDATION, record_undefined, route_label

log = logging.getLogger(__name__)
api = Blueprint("api", __name__)

TIMETABLE_CACHE_KEY = "miqat_timetable_cache"


# ───────────────────────── helpers ─────────────────────────
def _json_error(code: str, details: Any = None, http: int = 400):
    out: Dict[str, Any] = {"ok": False, "error": code}
    if details is not None:
        out["details"] = details
    return jsonify(out), http


def _body() -> Any:
    # Non-JSON / malformed bodies become a validation error, not a 415/500
    return request.get_json(silent=True)


def _converter(adjustment: Optional[int]) -> HijriConverter:
    return HijriConverter(get_adjustment() if adjustment is None else adjustment)


def _prayer_defaults() -> Dict[str, str]:
    cfg = getattr(current_app, "cfg", None) or {}
    prayer_cfg = cfg.get("prayer", {}) if isinstance(cfg, dict) else {}
    return {
        "default_method": prayer_cfg.get("method", DEFAULT_METHOD),
        "default_asr": prayer_cfg.get("asr", DEFAULT_ASR),
    }


def _timetable_cache() -> LRUCache:
    cache = current_app.extensions.get(TIMETABLE_CACHE_KEY)
    if cache is None:
        cache = LRUCache(256)
        current_app.extensions[TIMETABLE_CACHE_KEY] = cache
    return cache


@api.errorhandler(ValidationError)
def _validation_error(e: ValidationError):
    MET_VALIDATION.labels(route=route_label()).inc()
    log.info("validation_error at %s: %s", request.path, e)
    return _json_error("validation_error", e.errors(), 400)


# ───────────────────────── ops ─────────────────────────
@api.get("/api/health")
def health():
    return jsonify({"ok": True, "status": "ok", "version": VERSION}), 200


@api.get("/api/config")
def config():
    defaults = _prayer_defaults()
    return jsonify({
        "ok": True,
        "version": VERSION,
        "hijri_adjustment": get_adjustment(),
        "methods": {k: m.to_dict() for k, m in CALCULATION_METHODS.items()},
        "asr_conventions": dict(ASR_FACTORS),
        "defaults": {
            "method": defaults["default_method"],
            "asr": defaults["default_asr"],
        },
    }), 200


# ───────────────────────── hijri ─────────────────────────
@api.post("/api/hijri/from-gregorian")
def hijri_from_gregorian():
    d, adj = parse_gregorian_payload(_body())
    conv = _converter(adj)
    h = conv.to_hijri(d.year, d.month, d.day)
    return jsonify({
        "ok": True,
        "gregorian": {"year": d.year, "month": d.month, "day": d.day},
        "hijri": h.to_dict(),
        "weekday": conv.day_of_week(h.year, h.month, h.day),
        "month_length": hijri_month_length(h.year, h.month),
        "leap_year": is_hijri_leap_year(h.year),
        "adjustment": conv.adjustment,
    }), 200


@api.post("/api/hijri/to-gregorian")
def hijri_to_gregorian():
    p = parse_hijri_payload(_body())
    conv = _converter(p.get("adjustment"))
    g = conv.to_gregorian(p["year"], p["month"], p["day"])
    return jsonify({
        "ok": True,
        "hijri": {"year": p["year"], "month": p["month"], "day": p["day"]},
        "gregorian": g.to_dict(),
        "iso": g.isoformat(),
        "weekday": conv.day_of_week(p["year"], p["month"], p["day"]),
        "adjustment": conv.adjustment,
    }), 200


@api.post("/api/hijri/month")
def hijri_month():
    p = parse_hijri_payload(_body(), require_day=False)
    conv = _converter(p.get("adjustment"))
    year, month = p["year"], p["month"]
    first, last = conv.month_span(year, month)
    return jsonify({
        "ok": True,
        "year": year,
        "month": month,
        "length": hijri_month_length(year, month),
        "year_length": hijri_year_length(year),
        "leap_year": is_hijri_leap_year(year),
        "first_weekday": conv.day_of_week(year, month, 1),
        "gregorian_start": first.isoformat(),
        "gregorian_end": last.isoformat(),
        "adjustment": conv.adjustment,
    }), 200


# ───────────────────────── prayer times ─────────────────────────
def _compute_day(p: Dict[str, Any]):
    times = calculate(p["date"], p["latitude"], p["longitude"], p["utc_offset"], p["method"], p["asr"])
    ta = p["time_adjustment"]
    delta = time_adjustment_hours(ta["sign"], ta["minutes"], ta["seconds"])
    times = apply_adjustment(times, delta)
    undefined = times.undefined()
    if undefined:
        record_undefined(undefined)
    return times, undefined


@api.post("/api/prayer-times")
def prayer_times():
    p = parse_prayer_payload(_body(), **_prayer_defaults())
    times, undefined = _compute_day(p)
    return jsonify({"ok": True, "times": times.to_dict(), "undefined": undefined}), 200


@api.post("/api/prayer-times/next")
def next_prayer():
    p = parse_prayer_payload(_body(), require_current=True, **_prayer_defaults())
    times, undefined = _compute_day(p)
    now = p["current_hour"]
    nxt = get_next_prayer(times, now)
    return jsonify({
        "ok": True,
        "next": nxt.to_dict(),
        "countdown": format_countdown(nxt.time, now),
        "due": due_prayers(times, now),
        "undefined": undefined,
    }), 200


@api.post("/api/prayer-times/month")
def prayer_timetable():
    p = parse_timetable_payload(_body(), **_prayer_defaults())
    key = (p["year"], p["month"], p["latitude"], p["longitude"], p["utc_offset"], p["method"], p["asr"])
    cache = _timetable_cache()
    rows = cache.get(key)
    cached = rows is not None
    if rows is None:
        t0 = datetime.now()
        rows = [
            {"date": d.isoformat(), "times": ts.to_dict(), "undefined": ts.undefined()}
            for d, ts in monthly_timetable(
                p["year"], p["month"], p["latitude"], p["longitude"], p["utc_offset"], p["method"], p["asr"]
            )
        ]
        cache.set(key, rows)
        log.debug("timetable %s computed in %.1f ms", key, (datetime.now() - t0).total_seconds() * 1000.0)
    return jsonify({"ok": True, "cached": cached, "days": rows}), 200
