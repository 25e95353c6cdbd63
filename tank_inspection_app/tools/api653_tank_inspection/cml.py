from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from tank_inspection_app.blocks.code_tables import InspectionConfig, auto_tmin, normalize_schedule, schedule_factor
from tank_inspection_app.blocks.corrosion import CorrosionResult, assess
from tank_inspection_app.blocks.numeric import require_positive

from .models import ComponentCML, CorrosionMeasurement, NozzleCML, PracticalTmin

ELEVATION_BAND_FT = 10.0


@dataclass(frozen=True)
class ComponentCMLResult:
    cml_id: str
    component: str
    location: str
    current_thickness_in: float
    tmin_in: float
    tmin_source: str  # record | practical_table | auto
    corrosion: CorrosionResult


@dataclass(frozen=True)
class NozzleResult:
    nozzle_id: str
    description: str
    size_in: float
    schedule: str
    elevation_ft: float
    current_thickness_in: float
    tmin_in: float
    corrosion: CorrosionResult
    next_inspection_years: int
    next_inspection_date: Optional[date]


@dataclass(frozen=True)
class ElevationBand:
    lower_ft: float
    upper_ft: float
    count: int
    average_corrosion_rate_mpy: float
    minimum_remaining_life_years: Optional[float]  # None when every nozzle in the band is unbounded

    @property
    def label(self) -> str:
        return f"{self.lower_ft:g}-{self.upper_ft:g} ft"


def assess_measurement(measurement: CorrosionMeasurement, config: Optional[InspectionConfig] = None) -> CorrosionResult:
    config = config or InspectionConfig()
    return assess(
        measurement.previous_thickness_in,
        measurement.current_thickness_in,
        measurement.elapsed_years,
        measurement.minimum_thickness_in,
        config.remaining_life_display_ceiling_years,
    )


def governing_reading(current_in: Optional[float], readings_in: Sequence[float]) -> float:
    """Explicit current reading wins; otherwise the thinnest of the point readings."""
    if current_in is not None:
        return float(current_in)
    return float(min(readings_in))


# --------- practical t-min resolution ---------
def practical_tmin_table(entries: Iterable[PracticalTmin]) -> Dict[Tuple[str, Optional[str]], float]:
    return {(e.component.strip().lower(), _size_key(e.size)): e.practical_tmin_in for e in entries}


def _size_key(size) -> Optional[str]:
    if size is None:
        return None
    s = str(size).strip().lower().rstrip('"').removesuffix("in").strip()
    if not s:
        return None
    try:
        return f"{float(s):g}"
    except ValueError:
        return s


def resolve_tmin(
    record: ComponentCML,
    table: Dict[Tuple[str, Optional[str]], float],
    config: InspectionConfig,
) -> Tuple[float, str]:
    if record.practical_tmin_in is not None:
        return record.practical_tmin_in, "record"
    component = record.component.strip().lower()
    for key in ((component, _size_key(record.size_in)), (component, None)):
        if key in table:
            return table[key], "practical_table"
    return auto_tmin(record.component, record.size_in, config), "auto"


def assess_component_cml(
    record: ComponentCML,
    default_elapsed_years: float = 0.0,
    practical_tmins: Iterable[PracticalTmin] = (),
    config: Optional[InspectionConfig] = None,
) -> ComponentCMLResult:
    config = config or InspectionConfig()
    tmin, source = resolve_tmin(record, practical_tmin_table(practical_tmins), config)
    current = governing_reading(record.current_thickness_in, record.readings_in)
    elapsed = record.elapsed_years if record.elapsed_years is not None else default_elapsed_years
    return ComponentCMLResult(
        cml_id=record.cml_id,
        component=record.component,
        location=record.location,
        current_thickness_in=current,
        tmin_in=tmin,
        tmin_source=source,
        corrosion=assess(record.previous_thickness_in, current, elapsed, tmin, config.remaining_life_display_ceiling_years),
    )


# --------- nozzles ---------
def nozzle_tmin(size_in: float, schedule: str, config: Optional[InspectionConfig] = None) -> float:
    config = config or InspectionConfig()
    size = require_positive("size_in", size_in)
    return round(size * schedule_factor(schedule, config), 3)


def next_inspection_years(remaining_life: float, config: InspectionConfig) -> int:
    """Half the remaining life in whole years, capped at the maximum interval."""
    interval = min(remaining_life / 2.0, config.max_inspection_interval_years)
    return int(math.floor(max(0.0, interval)))


def add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29 Feb into a non-leap year
        return d.replace(year=d.year + years, day=28)


def assess_nozzle(
    record: NozzleCML,
    elapsed_years: float,
    inspection_date: Optional[date] = None,
    config: Optional[InspectionConfig] = None,
) -> NozzleResult:
    config = config or InspectionConfig()
    schedule = normalize_schedule(record.schedule or "40")
    tmin = record.tmin_in if record.tmin_in is not None else nozzle_tmin(record.size_in, schedule, config)
    current = governing_reading(record.current_thickness_in, record.readings_in)
    corrosion = assess(
        record.previous_thickness_in, current, elapsed_years, tmin, config.remaining_life_display_ceiling_years
    )
    years = next_inspection_years(corrosion.remaining_life_years, config)
    return NozzleResult(
        nozzle_id=record.nozzle_id,
        description=record.description,
        size_in=record.size_in,
        schedule=schedule,
        elevation_ft=record.elevation_ft,
        current_thickness_in=current,
        tmin_in=tmin,
        corrosion=corrosion,
        next_inspection_years=years,
        next_inspection_date=add_years(inspection_date, years) if inspection_date else None,
    )


def elevation_band_summary(results: Sequence[NozzleResult], band_ft: float = ELEVATION_BAND_FT) -> List[ElevationBand]:
    """Group nozzles into fixed-height elevation bands, lowest band first."""
    groups: Dict[int, List[NozzleResult]] = {}
    for r in results:
        groups.setdefault(int(math.floor(r.elevation_ft / band_ft)), []).append(r)

    bands: List[ElevationBand] = []
    for idx in sorted(groups):
        members = groups[idx]
        rates = [m.corrosion.corrosion_rate_mpy for m in members]
        finite = [m.corrosion.remaining_life_years for m in members if not m.corrosion.remaining_life_unbounded]
        bands.append(
            ElevationBand(
                lower_ft=idx * band_ft,
                upper_ft=(idx + 1) * band_ft,
                count=len(members),
                average_corrosion_rate_mpy=math.fsum(rates) / len(rates),
                minimum_remaining_life_years=min(finite) if finite else None,
            )
        )
    logger.debug(f"nozzle elevation summary: {len(results)} nozzles in {len(bands)} bands")
    return bands
