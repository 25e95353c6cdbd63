from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from loguru import logger

from tank_inspection_app.blocks.code_tables import InspectionConfig
from tank_inspection_app.blocks.corrosion import (
    CorrosionResult,
    assess,
    corrosion_rate_mpy,
    remaining_life_years,
)
from tank_inspection_app.blocks.numeric import (
    display_remaining_life,
    ft_to_in,
    require_non_negative,
    require_positive,
)

from .models import FloorInputs, RoofInputs


@dataclass(frozen=True)
class PlateResult:
    label: str
    nominal_in: float
    actual_in: float
    tmin_in: float
    corrosion: CorrosionResult

    @property
    def corrosion_rate_mpy(self) -> float:
        return self.corrosion.corrosion_rate_mpy

    @property
    def remaining_life_years(self) -> float:
        return self.corrosion.remaining_life_years

    @property
    def remaining_life_display(self) -> int:
        return self.corrosion.remaining_life_display


@dataclass(frozen=True)
class RoofResult:
    roof_type: str
    total_load_psf: float
    deck_tmin_in: float
    roof_tmin_in: float
    deck: Optional[PlateResult]
    roof: Optional[PlateResult]


@dataclass(frozen=True)
class FloorScanResult:
    location: str
    scan_type: str
    thickness_in: float
    corrosion: CorrosionResult


@dataclass(frozen=True)
class FloorResult:
    floor_type: str
    tmin_in: float
    soil_side_rate_mpy: Optional[float]
    product_side_rate_mpy: Optional[float]
    scans: Tuple[FloorScanResult, ...]

    # Aggregates over scans (None without scan data)
    average_thickness_in: Optional[float]
    minimum_thickness_in: Optional[float]
    average_corrosion_rate_mpy: Optional[float]
    maximum_corrosion_rate_mpy: Optional[float]
    average_remaining_life_years: Optional[float]
    minimum_remaining_life_years: Optional[float]
    average_remaining_life_display: Optional[int]
    minimum_remaining_life_display: Optional[int]

    # Single governing reading when no scans were supplied
    current: Optional[CorrosionResult]

    @property
    def governing_remaining_life_years(self) -> Optional[float]:
        if self.scans:
            return self.minimum_remaining_life_years
        if self.current is not None:
            return self.current.remaining_life_years
        return None


# --------- roof ---------
def minimum_deck_thickness(
    live_load_psf: float,
    snow_load_psf: float,
    rafter_spacing_ft: float,
    supported_by_rafters: bool,
    config: Optional[InspectionConfig] = None,
) -> float:
    """Deck plate t-min (in): plate bending between rafters, never below the roof code minimum."""
    config = config or InspectionConfig()
    floor = config.code_minimum_roof_thickness_in
    if not supported_by_rafters:
        return floor
    require_non_negative("live_load_psf", live_load_psf)
    require_non_negative("snow_load_psf", snow_load_psf)
    spacing_in = ft_to_in(require_positive("rafter_spacing_ft", rafter_spacing_ft))
    total = live_load_psf + snow_load_psf
    t = math.sqrt(total * spacing_in ** 2 / config.roof_bending_constant)
    return max(round(t, 3), floor)


def _plate(label: str, nominal: float, actual: Optional[float], tmin: float, age: float, config: InspectionConfig) -> Optional[PlateResult]:
    if actual is None:
        return None
    corrosion = assess(nominal, actual, age, tmin, config.remaining_life_display_ceiling_years)
    return PlateResult(label=label, nominal_in=nominal, actual_in=actual, tmin_in=tmin, corrosion=corrosion)


def calculate_roof(inputs: RoofInputs, config: Optional[InspectionConfig] = None) -> RoofResult:
    config = config or InspectionConfig()
    deck_tmin = minimum_deck_thickness(
        inputs.live_load_psf,
        inputs.snow_load_psf,
        inputs.rafter_spacing_ft,
        inputs.supported_by_rafters,
        config,
    )
    roof_tmin = config.code_minimum_roof_thickness_in
    return RoofResult(
        roof_type=inputs.roof_type,
        total_load_psf=inputs.live_load_psf + inputs.snow_load_psf,
        deck_tmin_in=deck_tmin,
        roof_tmin_in=roof_tmin,
        deck=_plate("Deck plate", inputs.deck_plate_nominal_in, inputs.deck_plate_actual_in, deck_tmin, inputs.age_years, config),
        roof=_plate("Roof plate", inputs.roof_plate_nominal_in, inputs.roof_plate_actual_in, roof_tmin, inputs.age_years, config),
    )


# --------- floor ---------
def calculate_floor(inputs: FloorInputs, config: Optional[InspectionConfig] = None) -> FloorResult:
    """Floor t-min, per-scan corrosion and the typical / governing remaining life.

    Typical life uses the average thickness at the average rate; governing life uses the
    thinnest reading at the highest per-scan rate.
    """
    config = config or InspectionConfig()
    ceiling = config.remaining_life_display_ceiling_years
    tmin = inputs.minimum_thickness_in if inputs.minimum_thickness_in is not None else config.code_minimum_floor_thickness_in
    original = inputs.original_thickness_in
    age = inputs.age_years

    scans = tuple(
        FloorScanResult(
            location=s.location,
            scan_type=s.scan_type,
            thickness_in=s.thickness_in,
            corrosion=assess(original, s.thickness_in, age, tmin, ceiling),
        )
        for s in inputs.scans
    )

    avg_t = min_t = avg_cr = max_cr = avg_rl = min_rl = None
    avg_disp = min_disp = None
    current = None
    if scans:
        thicknesses = [s.thickness_in for s in scans]
        avg_t = math.fsum(thicknesses) / len(thicknesses)
        min_t = min(thicknesses)
        avg_cr = corrosion_rate_mpy(original, avg_t, age)
        max_cr = max(s.corrosion.corrosion_rate_mpy for s in scans)
        avg_rl = remaining_life_years(avg_t, tmin, avg_cr)
        min_rl = remaining_life_years(min_t, tmin, max_cr)
        avg_disp = display_remaining_life(avg_rl, ceiling)
        min_disp = display_remaining_life(min_rl, ceiling)
        logger.debug(f"floor: {len(scans)} scans, min {min_t:.3f} in, max rate {max_cr:.2f} mpy")
    elif inputs.current_thickness_in is not None:
        current = assess(original, inputs.current_thickness_in, age, tmin, ceiling)
    else:
        logger.debug("floor: no scan data and no current reading; corrosion not assessed")

    return FloorResult(
        floor_type=inputs.floor_type,
        tmin_in=tmin,
        soil_side_rate_mpy=inputs.soil_side_rate_mpy,
        product_side_rate_mpy=inputs.product_side_rate_mpy,
        scans=scans,
        average_thickness_in=avg_t,
        minimum_thickness_in=min_t,
        average_corrosion_rate_mpy=avg_cr,
        maximum_corrosion_rate_mpy=max_cr,
        average_remaining_life_years=avg_rl,
        minimum_remaining_life_years=min_rl,
        average_remaining_life_display=avg_disp,
        minimum_remaining_life_display=min_disp,
        current=current,
    )
