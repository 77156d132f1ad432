# tests/conftest.py
from __future__ import annotations

"""
Pytest configuration for the Miqat engine suite.

- Registers Hypothesis profiles for local dev and CI.
- Restores the process-wide Hijri adjustment around every test.
- Provides a Flask test client built from the app factory.
"""

import os
import pytest
from hypothesis import settings, HealthCheck

from app.core import hijri


# ──────────────────────────────────────────────────────────────────────────────
# Hypothesis profiles
# ──────────────────────────────────────────────────────────────────────────────
settings.register_profile(
    "dev",
    settings(
        deadline=None,           # avoid flaky timeouts on slower runners
        max_examples=200,        # conversions are cheap
        suppress_health_check=[HealthCheck.too_slow],
    ),
)
settings.register_profile(
    "ci",
    settings(
        deadline=None,
        max_examples=1000,
        suppress_health_check=[HealthCheck.too_slow],
    ),
)

_profile = (
    "ci"
    if (os.getenv("CI") or os.getenv("GITHUB_ACTIONS"))
    else os.getenv("HYPOTHESIS_PROFILE", "dev")
)
settings.load_profile(_profile)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "slow: mark test as slow")


def pytest_report_header(config: pytest.Config) -> str:
    return f"Hypothesis profile: '{_profile}'"


# ──────────────────────────────────────────────────────────────────────────────
# Global fixtures
# ──────────────────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def restore_hijri_adjustment():
    """Tests may set the process-wide adjustment; never leak it to the next test."""
    prev = hijri.get_adjustment()
    hijri.set_adjustment(0)
    try:
        yield
    finally:
        hijri.set_adjustment(prev)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    from app.main import create_app

    for var in ("MIQAT_HIJRI_ADJUSTMENT", "MIQAT_DEFAULT_METHOD", "MIQAT_DEFAULT_ASR", "MIQAT_CACHE_SIZE"):
        monkeypatch.delenv(var, raising=False)
    cfg = tmp_path / "miqat.yaml"
    cfg.write_text("hijri:\n  adjustment: -1\ncache:\n  timetable_size: 4\n", encoding="utf-8")
    flask_app = create_app(str(cfg))
    flask_app.testing = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
