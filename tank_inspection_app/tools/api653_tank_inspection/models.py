from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tank_inspection_app.blocks.code_tables import InspectionConfig

RoofType = Literal["cone", "dome", "umbrella", "floating", "open"]
FloorType = Literal["lap-welded", "butt-welded", "double-bottom"]


class TankGeometry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    diameter_ft: float = Field(120.0, gt=0.0, description="Nominal tank diameter (ft).")
    shell_height_ft: Optional[float] = Field(None, gt=0.0, description="Overall shell height (ft).")


class FluidColumn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fill_height_ft: float = Field(40.0, ge=0.0, description="Maximum fill height above the tank bottom (ft).")
    specific_gravity: float = Field(1.0, gt=0.0, description="Specific gravity of the stored product.")


class ShellCourse(BaseModel):
    """One shell course. Courses are listed bottom (course 1) to top."""

    model_config = ConfigDict(extra="forbid")

    course_number: int = Field(..., ge=1, description="1-based course number, increasing from the bottom.")
    course_height_ft: float = Field(8.0, gt=0.0, description="Course height (ft).")
    material: str = Field("A36", description="Plate material designation (report label only).")
    joint_efficiency: float = Field(0.85, gt=0.0, le=1.0, description="Weld joint efficiency E.")
    allowable_stress_psi: float = Field(26700.0, gt=0.0, description="Allowable product stress S (psi).")
    original_thickness_in: float = Field(0.500, gt=0.0, description="Original / nominal plate thickness (in).")
    actual_thickness_in: float = Field(0.485, ge=0.0, description="Minimum measured thickness (in).")
    age_years: float = Field(10.0, ge=0.0, description="Years in service since the original thickness applied.")


class CorrosionMeasurement(BaseModel):
    """Generic paired thickness reading for any component."""

    model_config = ConfigDict(extra="forbid")

    previous_thickness_in: float = Field(..., ge=0.0, description="Original or previous reading (in).")
    current_thickness_in: float = Field(..., ge=0.0, description="Current reading (in).")
    elapsed_years: float = Field(..., ge=0.0, description="Years between the readings; 0 gives no rate.")
    minimum_thickness_in: float = Field(..., ge=0.0, description="Practical or computed t-min (in).")


class RoofInputs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    roof_type: RoofType = Field("cone")
    roof_plate_nominal_in: float = Field(0.250, gt=0.0, description="Roof plate original thickness (in).")
    roof_plate_actual_in: Optional[float] = Field(None, ge=0.0, description="Roof plate measured thickness (in).")
    deck_plate_nominal_in: float = Field(0.437, gt=0.0, description="Deck plate original thickness (in).")
    deck_plate_actual_in: Optional[float] = Field(None, ge=0.0, description="Deck plate measured thickness (in).")
    age_years: float = Field(20.0, ge=0.0, description="Roof age (years).")

    supported_by_rafters: bool = Field(True, description="Deck plate spans between rafters.")
    rafter_spacing_ft: float = Field(5.0, gt=0.0, description="Rafter spacing (ft).")
    live_load_psf: float = Field(25.0, ge=0.0, description="Roof live load (psf).")
    snow_load_psf: float = Field(0.0, ge=0.0, description="Roof snow load (psf).")


class FloorScan(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location: str = Field("", description="Scan location / plate reference.")
    scan_type: str = Field("MFL", description="Examination method for this reading.")
    thickness_in: float = Field(..., ge=0.0, description="Remaining thickness at the scan point (in).")


class FloorInputs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    floor_type: FloorType = Field("lap-welded")
    original_thickness_in: float = Field(0.250, gt=0.0, description="Original floor plate thickness (in).")
    minimum_thickness_in: Optional[float] = Field(
        None, gt=0.0, description="Floor t-min (in). Blank uses the configured code minimum."
    )
    current_thickness_in: Optional[float] = Field(
        None, ge=0.0, description="Single governing reading when no scan data is available (in)."
    )
    age_years: float = Field(20.0, ge=0.0, description="Floor age (years).")
    soil_side_rate_mpy: Optional[float] = Field(None, ge=0.0, description="Operator-assessed soil-side rate (mpy).")
    product_side_rate_mpy: Optional[float] = Field(None, ge=0.0, description="Operator-assessed product-side rate (mpy).")
    scans: List[FloorScan] = Field(default_factory=list)


class ComponentCML(BaseModel):
    """Component corrosion monitoring location (up to six readings per visit)."""

    model_config = ConfigDict(extra="forbid")

    cml_id: str = Field(..., min_length=1)
    component: str = Field(..., description="Component type, e.g. 'Shell Course', 'Bottom Plate'.")
    location: str = Field("")
    size_in: Optional[float] = Field(None, gt=0.0, description="Nominal size where relevant (in).")
    previous_thickness_in: float = Field(..., ge=0.0, description="Previous or original reading (in).")
    current_thickness_in: Optional[float] = Field(None, ge=0.0, description="Current reading (in).")
    readings_in: List[float] = Field(default_factory=list, max_length=6, description="Individual point readings (in).")
    elapsed_years: Optional[float] = Field(None, ge=0.0, description="Years since previous reading; blank uses the report interval.")
    practical_tmin_in: Optional[float] = Field(None, gt=0.0, description="Recorded practical t-min (in).")
    notes: str = Field("")

    @model_validator(mode="after")
    def _needs_reading(self):
        if self.current_thickness_in is None and not self.readings_in:
            raise ValueError(f"CML {self.cml_id}: provide current_thickness_in or readings_in.")
        if any(r < 0.0 for r in self.readings_in):
            raise ValueError(f"CML {self.cml_id}: readings_in must be >= 0.")
        return self


class NozzleCML(BaseModel):
    model_config = ConfigDict(extra="forbid")

    nozzle_id: str = Field(..., min_length=1)
    description: str = Field("")
    size_in: float = Field(..., gt=0.0, description="Nominal pipe size (in).")
    schedule: str = Field("40", description="Pipe schedule designation (10 ... 160, STD, XS, XXS).")
    service: str = Field("")
    orientation_deg: float = Field(0.0, ge=0.0, le=360.0, description="Orientation from north (deg).")
    elevation_ft: float = Field(0.0, ge=0.0, description="Elevation above the tank bottom (ft).")
    nominal_thickness_in: Optional[float] = Field(None, gt=0.0)
    previous_thickness_in: float = Field(..., ge=0.0)
    current_thickness_in: Optional[float] = Field(None, ge=0.0)
    readings_in: List[float] = Field(default_factory=list, max_length=4)
    tmin_in: Optional[float] = Field(None, gt=0.0, description="Override; blank derives t-min from size and schedule.")
    inspection_method: str = Field("UT")
    notes: str = Field("")

    @model_validator(mode="after")
    def _needs_reading(self):
        if self.current_thickness_in is None and not self.readings_in:
            raise ValueError(f"Nozzle {self.nozzle_id}: provide current_thickness_in or readings_in.")
        if any(r < 0.0 for r in self.readings_in):
            raise ValueError(f"Nozzle {self.nozzle_id}: readings_in must be >= 0.")
        return self


class PracticalTmin(BaseModel):
    model_config = ConfigDict(extra="forbid")

    component: str
    size: Optional[str] = None
    practical_tmin_in: float = Field(..., gt=0.0)


class ElevationPoint(BaseModel):
    model_config = ConfigDict(extra="forbid")

    angle_deg: float = Field(..., ge=0.0, le=360.0, description="Position around the circumference (deg).")
    previous_elevation_ft: float
    current_elevation_ft: float

    @property
    def settlement_ft(self) -> float:
        """Positive = downward movement since the previous survey."""
        return self.previous_elevation_ft - self.current_elevation_ft


def _default_courses() -> List[ShellCourse]:
    return [ShellCourse(course_number=i, original_thickness_in=t, actual_thickness_in=t - 0.015)
            for i, t in enumerate((0.500, 0.437, 0.375, 0.312, 0.250), start=1)]


def _default_points() -> List[ElevationPoint]:
    return [ElevationPoint(angle_deg=45.0 * i, previous_elevation_ft=100.0, current_elevation_ft=100.0)
            for i in range(8)]


class InspectionReportInputs(BaseModel):
    """
    Inputs for one API 653 inspection report calculation run.

    Workflow:
      1) Tank geometry + product (fill height, specific gravity).
      2) Shell courses bottom-to-top with original/actual thickness.
      3) Optional roof, floor, component CML, nozzle CML and settlement survey data.
      4) Code constants come from `config` (defaults, or the host settings file).

    Units are US customary: ft, in, psi, psf, mpy (mils/yr), years.
    """

    model_config = ConfigDict(extra="forbid")

    report_number: str = Field("", description="Report number (label only).")
    tank_id: str = Field("", description="Tank identifier (label only).")
    inspection_date: Optional[date] = Field(None)
    previous_inspection_date: Optional[date] = Field(None)
    service_years: Optional[float] = Field(
        None, ge=0.0, description="Default elapsed years for component CMLs without their own interval."
    )

    tank: TankGeometry = Field(default_factory=TankGeometry)
    fluid: FluidColumn = Field(default_factory=FluidColumn)
    courses: List[ShellCourse] = Field(default_factory=_default_courses)
    roof: Optional[RoofInputs] = None
    floor: Optional[FloorInputs] = None
    component_cmls: List[ComponentCML] = Field(default_factory=list)
    nozzle_cmls: List[NozzleCML] = Field(default_factory=list)
    practical_tmins: List[PracticalTmin] = Field(default_factory=list)
    elevation_points: List[ElevationPoint] = Field(default_factory=_default_points)

    config: InspectionConfig = Field(default_factory=InspectionConfig)

    @model_validator(mode="after")
    def _cross_checks(self):
        numbers = [c.course_number for c in self.courses]
        if any(b <= a for a, b in zip(numbers, numbers[1:])):
            raise ValueError("courses must be ordered bottom-to-top with increasing course_number.")
        if (
            self.inspection_date is not None
            and self.previous_inspection_date is not None
            and self.previous_inspection_date > self.inspection_date
        ):
            raise ValueError("previous_inspection_date must not be after inspection_date.")
        return self
