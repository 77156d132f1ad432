# app/utils/metrics.py
from __future__ import annotations
from typing import Final, Iterable

from flask import request
from prometheus_client import Counter, Gauge, Histogram

# Keep names stable: dashboards key on them
MET_REQUESTS: Final = Counter("miqat_api_requests_total", "API requests", ["route"])
REQ_LATENCY: Final = Histogram("miqat_request_seconds", "API request latency", ["route"])
MET_UNDEFINED: Final = Counter(
    "miqat_undefined_prayer_total", "Prayer instants returned as astronomically undefined", ["name"]
)
MET_VALIDATION: Final = Counter("miqat_validation_errors_total", "Rejected payloads", ["route"])
GAUGE_ADJUSTMENT: Final = Gauge("miqat_hijri_adjustment_days", "Process-wide Hijri day adjustment")
GAUGE_APP_UP: Final = Gauge("miqat_app_up", "1 if app is running")


def record_undefined(names: Iterable[str]) -> None:
    for n in names:
        MET_UNDEFINED.labels(name=n).inc()


def route_label() -> str:
    """URL rule matched by the current request, or "unmatched"."""
    rule = request.url_rule
    return rule.rule if rule is not None else "unmatched"
