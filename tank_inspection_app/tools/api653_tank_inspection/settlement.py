"""Foundation settlement and tilt from a circumferential elevation survey.

Settlement is previous minus current elevation (ft, positive = downward). The planar
tilt is a least-squares fit of z = c + a*cos(theta) + b*sin(theta); it needs at least
three points and a non-singular system, otherwise no angle is reported.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
from loguru import logger

from tank_inspection_app.blocks.code_tables import InspectionConfig
from tank_inspection_app.blocks.errors import InvalidInputError
from tank_inspection_app.blocks.numeric import ft_to_in, require_positive

from .models import ElevationPoint

_SINGULAR_TOL = 1e-12


@dataclass(frozen=True)
class SettlementResult:
    point_count: int
    settlements_ft: Tuple[float, ...]
    max_settlement_ft: float
    min_settlement_ft: float
    differential_settlement_ft: float
    uniform_settlement_ft: float
    out_of_plane_ft: float
    planar_fit_defined: bool
    planar_tilt_deg: Optional[float]
    plane_residual_rms_ft: Optional[float]
    tilt_percent: float
    threshold_percent: float
    compliant: bool

    @property
    def max_settlement_in(self) -> float:
        return ft_to_in(self.max_settlement_ft)

    @property
    def min_settlement_in(self) -> float:
        return ft_to_in(self.min_settlement_ft)

    @property
    def differential_settlement_in(self) -> float:
        return ft_to_in(self.differential_settlement_ft)

    @property
    def uniform_settlement_in(self) -> float:
        return ft_to_in(self.uniform_settlement_ft)

    @property
    def out_of_plane_in(self) -> float:
        return ft_to_in(self.out_of_plane_ft)


def fit_plane(angles_deg: np.ndarray, z: np.ndarray) -> Optional[Tuple[float, float, np.ndarray]]:
    """Return (a, b, residuals) or None when the fit is undefined."""
    if z.size < 3:
        return None
    theta = np.radians(angles_deg)
    x = np.column_stack((np.cos(theta), np.sin(theta)))
    xc = x - x.mean(axis=0)
    zc = z - z.mean()
    normal = xc.T @ xc
    scale = max(float(np.trace(normal)), 1.0)
    if abs(float(np.linalg.det(normal))) <= _SINGULAR_TOL * scale * scale:
        return None
    a, b = np.linalg.solve(normal, xc.T @ zc)
    residuals = zc - xc @ np.array([a, b])
    return float(a), float(b), residuals


def analyze_settlement(
    points: Sequence[ElevationPoint],
    diameter_ft: float,
    config: Optional[InspectionConfig] = None,
) -> SettlementResult:
    config = config or InspectionConfig()
    if not points:
        raise InvalidInputError("elevation_points", "at least one elevation point is required", [])
    diameter = require_positive("tank.diameter_ft", diameter_ft)

    angles = np.array([p.angle_deg for p in points], dtype=float)
    s = np.array([p.settlement_ft for p in points], dtype=float)

    max_s = float(s.max())
    min_s = float(s.min())
    differential = max_s - min_s
    uniform = float(s.mean())
    out_of_plane = float(s.std())  # population

    fit = fit_plane(angles, s)
    if fit is None:
        logger.debug(f"settlement: planar fit undefined for {len(points)} points")
        tilt_deg = None
        residual_rms = None
    else:
        a, b, residuals = fit
        tilt_deg = math.degrees(math.atan(math.hypot(a, b)))
        residual_rms = float(np.sqrt(np.mean(residuals ** 2)))

    tilt_percent = differential / diameter * 100.0
    threshold = config.settlement_compliance_threshold_percent
    return SettlementResult(
        point_count=len(points),
        settlements_ft=tuple(float(v) for v in s),
        max_settlement_ft=max_s,
        min_settlement_ft=min_s,
        differential_settlement_ft=differential,
        uniform_settlement_ft=uniform,
        out_of_plane_ft=out_of_plane,
        planar_fit_defined=fit is not None,
        planar_tilt_deg=tilt_deg,
        plane_residual_rms_ft=residual_rms,
        tilt_percent=tilt_percent,
        threshold_percent=threshold,
        compliant=tilt_percent <= threshold,
    )
