# app/core/solar.py
"""
Low-precision solar ephemeris (arc-minute level).

Mean anomaly / mean longitude series around J2000.0, two-term equation of
centre and a linear obliquity. Good enough for prayer-time work; downstream
instants inherit this precision ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict

from app.core.constants import (
    J2000_JD,
    darcsin,
    darctan2,
    dcos,
    dsin,
    fix_angle,
    fix_hour,
)

__all__ = ["SunPosition", "sun_position"]


@dataclass(frozen=True)
class SunPosition:
    declination: float        # degrees
    equation_of_time: float   # hours

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def sun_position(jd: float) -> SunPosition:
    d = jd - J2000_JD
    g = fix_angle(357.529 + 0.98560028 * d)            # mean anomaly
    q = fix_angle(280.459 + 0.98564736 * d)            # mean longitude
    lon = fix_angle(q + 1.915 * dsin(g) + 0.020 * dsin(2 * g))
    e = 23.439 - 0.00000036 * d                        # obliquity

    ra = darctan2(dcos(e) * dsin(lon), dcos(lon)) / 15.0
    decl = darcsin(dsin(e) * dsin(lon))
    eqt = q / 15.0 - fix_hour(ra)
    return SunPosition(declination=decl, equation_of_time=eqt)
