"""Corrosion rate / remaining life model shared by every component calculator.

Units: thickness in inches, corrosion rate in mils per year (mpy), life in years.

Sentinels (never exceptions):
  - elapsed years <= 0            -> corrosion rate 0.0
  - corrosion rate <= 0           -> remaining life math.inf (no finite estimate)
  - thickness already below t-min -> remaining life 0.0
A negative rate (current reading thicker than previous) is returned as computed so the
inconsistency shows up in the report; it is flagged on CorrosionResult.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from loguru import logger

from .numeric import display_remaining_life, in_to_mils, mils_to_in

DAYS_PER_YEAR = 365.25


def corrosion_rate_mpy(previous_in: float, current_in: float, elapsed_years: float) -> float:
    if elapsed_years <= 0.0:
        return 0.0
    return in_to_mils(previous_in - current_in) / elapsed_years


def remaining_life_years(current_in: float, tmin_in: float, rate_mpy: float) -> float:
    if rate_mpy <= 0.0:
        return math.inf
    return max(0.0, (current_in - tmin_in) / mils_to_in(rate_mpy))


def elapsed_years_between(previous: Optional[date], current: Optional[date]) -> float:
    """Years between two inspection dates; missing or reversed dates give 0 (no rate)."""
    if previous is None or current is None:
        return 0.0
    days = (current - previous).days
    if days <= 0:
        return 0.0
    return days / DAYS_PER_YEAR


@dataclass(frozen=True)
class CorrosionResult:
    previous_thickness_in: float
    current_thickness_in: float
    elapsed_years: float
    tmin_in: float

    metal_loss_in: float
    corrosion_rate_mpy: float
    remaining_metal_in: float
    remaining_life_years: float
    remaining_life_display: int

    negative_rate: bool
    below_tmin: bool

    @property
    def rate_defined(self) -> bool:
        return self.elapsed_years > 0.0

    @property
    def remaining_life_unbounded(self) -> bool:
        return math.isinf(self.remaining_life_years)


def assess(
    previous_in: float,
    current_in: float,
    elapsed_years: float,
    tmin_in: float,
    display_ceiling_years: float = 999.0,
) -> CorrosionResult:
    rate = corrosion_rate_mpy(previous_in, current_in, elapsed_years)
    life = remaining_life_years(current_in, tmin_in, rate)
    if elapsed_years <= 0.0:
        logger.debug("elapsed time is zero; corrosion rate reported as 0")
    if math.isinf(life):
        logger.debug(f"corrosion rate {rate:.4g} mpy <= 0; remaining life unbounded")
    return CorrosionResult(
        previous_thickness_in=float(previous_in),
        current_thickness_in=float(current_in),
        elapsed_years=float(elapsed_years),
        tmin_in=float(tmin_in),
        metal_loss_in=float(previous_in - current_in),
        corrosion_rate_mpy=float(rate),
        remaining_metal_in=float(current_in - tmin_in),
        remaining_life_years=float(life),
        remaining_life_display=display_remaining_life(life, display_ceiling_years),
        negative_rate=rate < 0.0,
        below_tmin=current_in < tmin_in,
    )
