from __future__ import annotations

import math
import statistics

import pytest

from tank_inspection_app.blocks.code_tables import InspectionConfig
from tank_inspection_app.blocks.errors import InvalidInputError

from .models import ElevationPoint
from .settlement import analyze_settlement


def _points(settlements_ft, start_ft: float = 100.0):
    n = len(settlements_ft)
    return [
        ElevationPoint(angle_deg=360.0 * i / n, previous_elevation_ft=start_ft, current_elevation_ft=start_ft - s)
        for i, s in enumerate(settlements_ft)
    ]


def test_uniform_settlement_has_no_tilt() -> None:
    r = analyze_settlement(_points([0.05] * 8), 100.0)
    assert r.differential_settlement_ft == pytest.approx(0.0, abs=1e-12)
    assert r.uniform_settlement_ft == pytest.approx(0.05)
    assert r.tilt_percent == pytest.approx(0.0, abs=1e-9)
    assert r.planar_fit_defined
    assert r.planar_tilt_deg == pytest.approx(0.0, abs=1e-9)
    assert r.compliant


def test_single_high_point_extremity() -> None:
    s = [0.0, 0.0, 0.0, 0.0, 1.0 / 12.0, 0.0, 0.0, 0.0]
    r = analyze_settlement(_points(s), 100.0)
    assert r.max_settlement_ft == pytest.approx(1.0 / 12.0)
    assert r.min_settlement_ft == pytest.approx(0.0, abs=1e-12)
    assert r.differential_settlement_ft == pytest.approx(1.0 / 12.0)
    assert r.max_settlement_in == pytest.approx(1.0)
    assert r.uniform_settlement_ft == pytest.approx(1.0 / 96.0)
    assert r.out_of_plane_ft == pytest.approx(statistics.pstdev(s))


def test_planar_fit_recovers_cosine_tilt() -> None:
    s = [0.01 * math.cos(math.radians(45.0 * i)) for i in range(8)]
    r = analyze_settlement(_points(s), 120.0)
    assert r.planar_fit_defined
    assert r.planar_tilt_deg == pytest.approx(math.degrees(math.atan(0.01)), rel=1e-6)
    assert r.plane_residual_rms_ft == pytest.approx(0.0, abs=1e-12)


def test_fewer_than_three_points_leaves_tilt_undefined() -> None:
    r = analyze_settlement(_points([0.0, 0.02]), 50.0)
    assert r.planar_fit_defined is False
    assert r.planar_tilt_deg is None
    assert r.plane_residual_rms_ft is None
    assert r.differential_settlement_ft == pytest.approx(0.02)


def test_coincident_angles_are_singular() -> None:
    pts = [ElevationPoint(angle_deg=90.0, previous_elevation_ft=10.0, current_elevation_ft=10.0 - d) for d in (0.0, 0.01, 0.02)]
    r = analyze_settlement(pts, 50.0)
    assert r.planar_tilt_deg is None


def test_compliance_threshold() -> None:
    s = [0.0, 0.0, 0.0, 1.5, 0.0, 0.0, 0.0, 0.0]
    r = analyze_settlement(_points(s), 100.0)
    assert r.tilt_percent == pytest.approx(1.5)
    assert not r.compliant
    relaxed = analyze_settlement(_points(s), 100.0, InspectionConfig(settlement_compliance_threshold_percent=2.0))
    assert relaxed.compliant


def test_settlement_is_symmetric_under_rotation() -> None:
    s = [0.0, 0.01, 0.03, 0.02, 0.0, -0.01, 0.0, 0.005]
    a = analyze_settlement(_points(s), 80.0)
    b = analyze_settlement(_points(s[3:] + s[:3]), 80.0)
    assert a.differential_settlement_ft == pytest.approx(b.differential_settlement_ft)
    assert a.planar_tilt_deg == pytest.approx(b.planar_tilt_deg)
    assert a.out_of_plane_ft == pytest.approx(b.out_of_plane_ft)


def test_no_points_rejected() -> None:
    with pytest.raises(InvalidInputError) as ei:
        analyze_settlement([], 100.0)
    assert ei.value.field == "elevation_points"
