# tests/test_endpoints.py
import re

MECCA = {
    "date": "2024-06-21",
    "latitude": 21.4225,
    "longitude": 39.8262,
    "utc_offset": 3,
    "method": "mwl",
    "asr": "shafii",
}

COUNTDOWN_RE = re.compile(r"^\d+h \d{2}m \d{2}s$")


def test_health(client):
    rv = client.get("/api/health")
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["status"] == "ok"
    assert "version" in data
    assert client.get("/healthz").get_json()["ok"] is True


def test_config(client):
    data = client.get("/api/config").get_json()
    assert data["hijri_adjustment"] == -1
    assert set(data["methods"]) == {"mwl", "isna", "egypt", "makkah", "karachi"}
    assert data["methods"]["makkah"]["isha_minutes"] == 90
    assert data["asr_conventions"] == {"shafii": 1, "hanafi": 2}
    assert data["defaults"] == {"method": "mwl", "asr": "shafii"}


def test_unknown_route_is_json(client):
    rv = client.get("/api/nope")
    assert rv.status_code == 404
    data = rv.get_json()
    assert data["ok"] is False and data["error"] == "http_error"


# ───────────────────────── hijri ─────────────────────────

def test_from_gregorian_uses_configured_adjustment(client):
    rv = client.post("/api/hijri/from-gregorian", json={"date": "2024-01-01"})
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["hijri"] == {"year": 1445, "month": 6, "day": 18}
    assert data["adjustment"] == -1
    assert data["weekday"] == 1
    assert data["leap_year"] is True


def test_from_gregorian_request_adjustment_wins(client):
    rv = client.post("/api/hijri/from-gregorian", json={"date": "2024-01-01", "adjustment": "0"})
    data = rv.get_json()
    assert data["hijri"]["day"] == 19
    assert data["adjustment"] == 0
    # garbage adjustment degrades to zero rather than failing
    data = client.post("/api/hijri/from-gregorian", json={"date": "2024-01-01", "adjustment": "x"}).get_json()
    assert data["adjustment"] == 0


def test_to_gregorian(client):
    rv = client.post("/api/hijri/to-gregorian", json={"year": 1445, "month": 9, "day": 1, "adjustment": 0})
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["iso"] == "2024-03-11"
    assert data["gregorian"] == {"year": 2024, "month": 3, "day": 11}
    assert data["weekday"] == 1


def test_to_gregorian_inverts_from_gregorian(client):
    h = client.post("/api/hijri/from-gregorian", json={"date": "2025-07-04"}).get_json()["hijri"]
    back = client.post("/api/hijri/to-gregorian", json=h).get_json()
    assert back["iso"] == "2025-07-04"


def test_hijri_month(client):
    rv = client.post("/api/hijri/month", json={"year": 1445, "month": 9, "adjustment": 0})
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["length"] == 30
    assert data["year_length"] == 355
    assert data["gregorian_start"] == "2024-03-11"
    assert data["gregorian_end"] == "2024-04-09"
    assert data["first_weekday"] == 1


def test_hijri_validation(client):
    rv = client.post("/api/hijri/to-gregorian", json={"year": 1446, "month": 12, "day": 30})
    assert rv.status_code == 400
    data = rv.get_json()
    assert data["error"] == "validation_error"
    assert data["details"][0]["loc"] == ["day"]

    rv = client.post("/api/hijri/month", json={"year": 0, "month": 13})
    assert rv.status_code == 400
    assert {tuple(d["loc"]) for d in rv.get_json()["details"]} == {("year",), ("month",)}

    rv = client.post("/api/hijri/from-gregorian", json={"date": "2024-02-30"})
    assert rv.status_code == 400

    rv = client.post("/api/hijri/from-gregorian", data="not json", content_type="text/plain")
    assert rv.status_code == 400


# ───────────────────────── prayer times ─────────────────────────

def test_prayer_times(client):
    rv = client.post("/api/prayer-times", json=MECCA)
    assert rv.status_code == 200
    data = rv.get_json()
    times = data["times"]
    assert data["undefined"] == []
    for name in ("sehri", "fajr", "sunrise", "dhuhr", "asr", "maghrib", "isha", "tahajjud"):
        assert times[name]["defined"] is True
        assert re.match(r"^\d{2}:\d{2}$", times[name]["h24"])
    assert times["dhuhr"]["h24"] in ("12:21", "12:22", "12:23", "12:24")
    assert times["meta"]["method"] == "mwl"


def test_prayer_times_aliases_and_adjustment(client):
    base = client.post("/api/prayer-times", json=MECCA).get_json()["times"]
    payload = {
        "date": "2024-06-21", "lat": 21.4225, "lon": 39.8262, "timezone": 3,
        "time_adjustment": {"sign": "-", "minutes": 5, "seconds": 0},
    }
    shifted = client.post("/api/prayer-times", json=payload).get_json()["times"]
    assert abs(shifted["dhuhr"]["raw"] - (base["dhuhr"]["raw"] - 5 / 60)) < 1e-9
    assert shifted["meta"]["adjustment_hours"] < 0


def test_prayer_times_high_latitude_sentinel(client):
    payload = dict(MECCA, latitude=55.0, longitude=-3.0, utc_offset=1)
    data = client.post("/api/prayer-times", json=payload).get_json()
    assert "fajr" in data["undefined"] and "isha" in data["undefined"]
    assert data["times"]["fajr"]["h24"] == "--:--"
    assert data["times"]["fajr"]["raw"] is None
    assert data["times"]["maghrib"]["defined"] is True


def test_prayer_times_validation(client):
    for bad in (
        dict(MECCA, latitude=95),
        dict(MECCA, longitude="east"),
        dict(MECCA, utc_offset=20),
        dict(MECCA, method="nope"),
        dict(MECCA, asr="maliki"),
        dict(MECCA, time_adjustment={"sign": "*"}),
        {k: v for k, v in MECCA.items() if k != "date"},
    ):
        rv = client.post("/api/prayer-times", json=bad)
        assert rv.status_code == 400, bad
        assert rv.get_json()["error"] == "validation_error"


def test_next_prayer(client):
    rv = client.post("/api/prayer-times/next", json=dict(MECCA, current_hour="19:30"))
    assert rv.status_code == 200
    data = rv.get_json()
    assert data["next"]["name"] == "isha"
    assert data["next"]["is_tomorrow"] is False
    assert COUNTDOWN_RE.match(data["countdown"])
    assert data["due"] == []


def test_next_prayer_after_tahajjud_rolls_over(client):
    payload = dict(MECCA, latitude=55.0, longitude=-3.0, utc_offset=1, current_hour=23.5)
    data = client.post("/api/prayer-times/next", json=payload).get_json()
    assert data["next"]["name"] == "sehri"
    assert data["next"]["is_tomorrow"] is True
    assert data["next"]["time"] is None
    assert data["countdown"] == "--:--"


def test_next_prayer_requires_current_hour(client):
    rv = client.post("/api/prayer-times/next", json=MECCA)
    assert rv.status_code == 400
    rv = client.post("/api/prayer-times/next", json=dict(MECCA, current_hour="25:00"))
    assert rv.status_code == 400


def test_monthly_timetable_is_cached(client):
    payload = {"year": 2024, "month": 2, "latitude": 21.4225, "longitude": 39.8262, "utc_offset": 3}
    first = client.post("/api/prayer-times/month", json=payload).get_json()
    assert first["cached"] is False
    assert len(first["days"]) == 29
    assert first["days"][0]["date"] == "2024-02-01"
    second = client.post("/api/prayer-times/month", json=payload).get_json()
    assert second["cached"] is True
    assert second["days"] == first["days"]

    rv = client.post("/api/prayer-times/month", json=dict(payload, month=13))
    assert rv.status_code == 400


# ───────────────────────── metrics ─────────────────────────

def test_metrics_requires_basic_auth(client, monkeypatch):
    monkeypatch.setenv("METRICS_USER", "ops")
    monkeypatch.setenv("METRICS_PASS", "secret")
    assert client.get("/metrics").status_code == 401
    client.get("/api/health")
    rv = client.get("/metrics", auth=("ops", "secret"))
    assert rv.status_code == 200
    body = rv.get_data(as_text=True)
    assert "miqat_api_requests_total" in body
    assert "miqat_hijri_adjustment_days" in body


# ───────────────────────── configured defaults ─────────────────────────

def _client_with_config(tmp_path, text):
    from app.main import create_app

    cfg = tmp_path / "miqat.yaml"
    cfg.write_text(text, encoding="utf-8")
    flask_app = create_app(str(cfg))
    flask_app.testing = True
    return flask_app.test_client()


def _without_prefs(payload):
    return {k: v for k, v in payload.items() if k not in ("method", "asr")}


def test_configured_method_and_asr_drive_calculation(tmp_path, monkeypatch):
    for var in ("MIQAT_DEFAULT_METHOD", "MIQAT_DEFAULT_ASR"):
        monkeypatch.delenv(var, raising=False)
    c = _client_with_config(tmp_path, "prayer:\n  method: isna\n  asr: hanafi\n")
    assert c.get("/api/config").get_json()["defaults"] == {"method": "isna", "asr": "hanafi"}

    implicit = c.post("/api/prayer-times", json=_without_prefs(MECCA)).get_json()["times"]
    explicit = c.post("/api/prayer-times", json=dict(MECCA, method="isna", asr="hanafi")).get_json()["times"]
    assert implicit["meta"]["method"] == "isna"
    assert implicit["meta"]["asr_factor"] == 2
    assert implicit["fajr"] == explicit["fajr"]
    assert implicit["asr"] == explicit["asr"]

    # an explicit request value still wins over the configured default
    mwl = c.post("/api/prayer-times", json=dict(_without_prefs(MECCA), method="mwl")).get_json()["times"]
    assert mwl["meta"]["method"] == "mwl"
    assert mwl["meta"]["asr_factor"] == 2

    nxt = c.post("/api/prayer-times/next", json=dict(_without_prefs(MECCA), current_hour=1.0)).get_json()
    assert nxt["next"]["time"] == implicit["sehri"]["raw"]

    payload = {"year": 2024, "month": 2, "latitude": 21.4225, "longitude": 39.8262, "utc_offset": 3}
    month = c.post("/api/prayer-times/month", json=payload).get_json()
    assert month["days"][0]["times"]["meta"]["method"] == "isna"


def test_env_default_method_reaches_calculation(tmp_path, monkeypatch):
    monkeypatch.setenv("MIQAT_DEFAULT_METHOD", "isna")
    monkeypatch.setenv("MIQAT_DEFAULT_ASR", "hanafi")
    c = _client_with_config(tmp_path, "")
    meta = c.post("/api/prayer-times", json=_without_prefs(MECCA)).get_json()["times"]["meta"]
    assert (meta["method"], meta["asr_factor"]) == ("isna", 2)


def test_unknown_configured_defaults_fall_back(tmp_path, monkeypatch):
    for var in ("MIQAT_DEFAULT_METHOD", "MIQAT_DEFAULT_ASR"):
        monkeypatch.delenv(var, raising=False)
    c = _client_with_config(tmp_path, "prayer:\n  method: bogus\n  asr: ' HANAFI '\n")
    assert c.get("/api/config").get_json()["defaults"] == {"method": "mwl", "asr": "hanafi"}
    rv = c.post("/api/prayer-times", json=_without_prefs(MECCA))
    assert rv.status_code == 200
    assert rv.get_json()["times"]["meta"]["method"] == "mwl"


# ───────────────────────── Gregorian reform bound ─────────────────────────

def test_pre_reform_dates_rejected(client):
    for d in ("1582-10-10", "1582-10-14", "1200-01-01"):
        rv = client.post("/api/hijri/from-gregorian", json={"date": d})
        assert rv.status_code == 400, d
        assert rv.get_json()["details"][0]["loc"] == ["date"]
    rv = client.post("/api/prayer-times", json=dict(MECCA, date="1582-10-10"))
    assert rv.status_code == 400

    payload = {"year": 1582, "month": 10, "latitude": 21.4225, "longitude": 39.8262, "utc_offset": 3}
    assert client.post("/api/prayer-times/month", json=payload).status_code == 400


def test_first_gregorian_day_round_trips(client):
    h = client.post("/api/hijri/from-gregorian", json={"date": "1582-10-15"}).get_json()["hijri"]
    back = client.post("/api/hijri/to-gregorian", json=h).get_json()
    assert back["iso"] == "1582-10-15"


# ───────────────────────── metric labels ─────────────────────────

def test_metric_routes_use_url_rules(client, monkeypatch):
    monkeypatch.setenv("METRICS_USER", "ops")
    monkeypatch.setenv("METRICS_PASS", "secret")
    client.get("/api/no-such-thing-7f3a")
    client.post("/api/hijri/to-gregorian", json={"year": 0, "month": 1, "day": 1})
    body = client.get("/metrics", auth=("ops", "secret")).get_data(as_text=True)
    assert "no-such-thing-7f3a" not in body
    assert 'miqat_api_requests_total{route="unmatched"}' in body
    assert 'miqat_validation_errors_total{route="/api/hijri/to-gregorian"}' in body
