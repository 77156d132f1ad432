# app/main.py
from __future__ import annotations

import logging
import os
import traceback
from time import perf_counter
from typing import Final

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from app.api.routes import TIMETABLE_CACHE_KEY, api as _routes_bp
from app.core.constants import ASR_FACTORS, CALCULATION_METHODS, DEFAULT_ASR, DEFAULT_METHOD
from app.core.hijri import get_adjustment, set_adjustment
from app.utils.cache import LRUCache
from app.utils.config import load_config
from app.utils.metrics import GAUGE_ADJUSTMENT, GAUGE_APP_UP, MET_REQUESTS, REQ_LATENCY, route_label
from app.version import VERSION

SEEDED_ROUTES: Final = (
    "/", "/api/health", "/api/config",
    "/api/hijri/from-gregorian", "/api/hijri/to-gregorian", "/api/hijri/month",
    "/api/prayer-times", "/api/prayer-times/next", "/api/prayer-times/month",
    "/health", "/healthz", "/metrics", "unmatched",
)

# ───────────────────────── helpers: logging & errors ─────────────────────────
def _configure_logging(app: Flask) -> None:
    gerr = logging.getLogger("gunicorn.error")
    if gerr.handlers:
        app.logger.handlers = gerr.handlers
        app.logger.setLevel(gerr.level)
    else:
        logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

def _register_errors(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        app.logger.warning("HTTP %s at %s %s: %s", e.code, request.method, request.path, e.description)
        return jsonify(
            ok=False,
            error="http_error",
            code=e.code,
            name=e.name,
            message=e.description,
            path=request.path,
        ), e.code

    @app.errorhandler(Exception)
    def _any(e: Exception):
        tb = traceback.format_exc()
        app.logger.error("UNHANDLED %s at %s %s\n%s", type(e).__name__, request.method, request.path, tb)
        return jsonify(
            ok=False,
            error="internal_error",
            type=type(e).__name__,
            message=str(e),
            path=request.path,
        ), 500

# ───────────────────────── health & utils ─────────────────────────
def _register_health(app: Flask) -> None:
    @app.route("/", methods=["GET"])
    def root():
        return jsonify(ok=True, service="miqat-engine", version=VERSION, health="/health"), 200

    @app.route("/health", methods=["GET"])
    @app.route("/healthz", methods=["GET"])
    def health():
        return jsonify(ok=True, status="ok"), 200

def _check_prayer_defaults(app: Flask) -> None:
    prayer = app.cfg.prayer  # type: ignore[attr-defined]
    method = str(prayer.get("method") or "").strip().lower()
    asr = str(prayer.get("asr") or "").strip().lower()
    if method not in CALCULATION_METHODS:
        app.logger.warning("Unknown default method %r in config; using %s", prayer.get("method"), DEFAULT_METHOD)
        method = DEFAULT_METHOD
    if asr not in ASR_FACTORS:
        app.logger.warning("Unknown default asr %r in config; using %s", prayer.get("asr"), DEFAULT_ASR)
        asr = DEFAULT_ASR
    prayer.method = method
    prayer.asr = asr

def _metrics_auth_ok() -> bool:
    auth = request.authorization
    user = os.getenv("METRICS_USER", "")
    pw = os.getenv("METRICS_PASS", "")
    return bool(
        auth and auth.type == "basic" and auth.username == user and auth.password == pw and user and pw
    )

def _tracked(path: str) -> bool:
    return path.startswith("/api/") or path in ("/", "/health", "/healthz")

# ───────────────────────── app factory ─────────────────────────
def create_app(config_path: str | None = None) -> Flask:
    app = Flask(__name__)
    app.json.sort_keys = False
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore

    _configure_logging(app)

    cfg_path = config_path or os.environ.get("MIQAT_CONFIG", "config/defaults.yaml")
    app.cfg = load_config(cfg_path)  # type: ignore[attr-defined]
    _check_prayer_defaults(app)

    # Stored preference → process-wide default for every conversion without an explicit value
    adj = set_adjustment(app.cfg.hijri.adjustment)  # type: ignore[attr-defined]
    GAUGE_ADJUSTMENT.set(adj)
    app.extensions[TIMETABLE_CACHE_KEY] = LRUCache(app.cfg.cache.timetable_size)  # type: ignore[attr-defined]

    for route in SEEDED_ROUTES:
        MET_REQUESTS.labels(route=route).inc(0)
        REQ_LATENCY.labels(route=route).observe(0.0)
    GAUGE_APP_UP.set(1.0)

    @app.before_request
    def _before():
        if _tracked(request.path or ""):
            MET_REQUESTS.labels(route=route_label()).inc()
            request._t0 = perf_counter()  # type: ignore[attr-defined]

    @app.after_request
    def _after(resp):
        if _tracked(request.path or "") and hasattr(request, "_t0"):
            REQ_LATENCY.labels(route=route_label()).observe(perf_counter() - request._t0)  # type: ignore[attr-defined]
        return resp

    _register_health(app)
    _register_errors(app)
    app.register_blueprint(_routes_bp)

    @app.get("/__debug/routes")
    def __debug_routes():
        rules = []
        for r in app.url_map.iter_rules():
            methods = sorted(m for m in (r.methods or []) if m not in ("HEAD", "OPTIONS"))
            rules.append({"rule": str(r), "endpoint": r.endpoint, "methods": methods})
        rules.sort(key=lambda x: x["rule"])
        return jsonify({"count": len(rules), "rules": rules}), 200

    @app.get("/favicon.ico")
    def _noop_favicon():
        return ("", 204)

    # /metrics (Basic Auth)
    @app.route("/metrics", methods=["GET"])
    def metrics_endpoint():
        if not _metrics_auth_ok():
            return Response("Unauthorized", 401, {"WWW-Authenticate": 'Basic realm="metrics"'})
        GAUGE_APP_UP.set(1.0)
        GAUGE_ADJUSTMENT.set(get_adjustment())
        data = generate_latest(REGISTRY)
        return Response(data, mimetype=CONTENT_TYPE_LATEST)

    # CORS for browser UIs
    allowed_origin = os.environ.get("CORS_ALLOW_ORIGIN") or "*"
    CORS(
        app,
        resources={r"/.*": {"origins": allowed_origin}},
        supports_credentials=False,
        methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=600,
    )

    app.logger.info(
        "App initialized; version=%s; hijri_adjustment=%d; method=%s; asr=%s",
        VERSION, adj, app.cfg.prayer.method, app.cfg.prayer.asr,  # type: ignore[attr-defined]
    )
    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)))
