"""Shell course minimum thickness by the one-foot method (API 653 4.3.3).

Courses are evaluated bottom-up: the liquid head on course i is the fill height
less the heights of the courses below it.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from tank_inspection_app.blocks.code_tables import PSI_PER_FT_WATER, InspectionConfig
from tank_inspection_app.blocks.corrosion import CorrosionResult, assess
from tank_inspection_app.blocks.errors import InvalidInputError
from tank_inspection_app.blocks.numeric import (
    ft_to_in,
    require_efficiency,
    require_non_negative,
    require_positive,
)

from .models import FluidColumn, ShellCourse, TankGeometry


@dataclass(frozen=True)
class ShellCourseResult:
    course_number: int
    liquid_head_ft: float
    pressure_psi: float
    radius_in: float
    t_req_in: float
    tmin_in: float
    allowance_in: float
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

    @property
    def acceptable(self) -> bool:
        return not self.corrosion.below_tmin


def liquid_head_ft(fill_height_ft: float, courses: Sequence[ShellCourse], index: int) -> float:
    below = sum(c.course_height_ft for c in courses[:index])
    return max(0.0, fill_height_ft - below)


def hydrostatic_pressure_psi(head_ft: float, specific_gravity: float) -> float:
    return PSI_PER_FT_WATER * specific_gravity * head_ft


def required_thickness_in(
    pressure_psi: float,
    radius_in: float,
    allowable_stress_psi: float,
    joint_efficiency: float,
    field: str = "allowable_stress_psi",
) -> float:
    """t = P R / (S E - 0.6 P). A non-positive denominator means the course cannot carry the head."""
    denom = allowable_stress_psi * joint_efficiency - 0.6 * pressure_psi
    if denom <= 0.0:
        raise InvalidInputError(
            field,
            f"S*E ({allowable_stress_psi * joint_efficiency:g} psi) must exceed 0.6*P ({0.6 * pressure_psi:g} psi)",
            allowable_stress_psi,
        )
    return pressure_psi * radius_in / denom


def allowance_in(config: InspectionConfig) -> float:
    if config.corrosion_allowance_convention == "flat_allowance":
        return config.shell_corrosion_allowance_in
    return 0.0


def shell_tmin_in(t_req_in: float, config: InspectionConfig) -> float:
    return round(max(t_req_in + allowance_in(config), config.shell_minimum_thickness_in), 3)


def _validate_course(prefix: str, course: ShellCourse) -> None:
    require_positive(f"{prefix}.course_height_ft", course.course_height_ft)
    require_positive(f"{prefix}.allowable_stress_psi", course.allowable_stress_psi)
    require_efficiency(f"{prefix}.joint_efficiency", course.joint_efficiency)
    require_positive(f"{prefix}.original_thickness_in", course.original_thickness_in)
    require_non_negative(f"{prefix}.actual_thickness_in", course.actual_thickness_in)
    require_non_negative(f"{prefix}.age_years", course.age_years)


def calculate_shell_course(
    index: int,
    courses: Sequence[ShellCourse],
    geometry: TankGeometry,
    fluid: FluidColumn,
    config: Optional[InspectionConfig] = None,
) -> ShellCourseResult:
    """Evaluate course `index` (0 = bottom) of a bottom-to-top course list."""
    config = config or InspectionConfig()
    if not 0 <= index < len(courses):
        raise InvalidInputError("courses", f"course index {index} out of range for {len(courses)} courses", index)

    diameter = require_positive("tank.diameter_ft", geometry.diameter_ft)
    fill = require_non_negative("fluid.fill_height_ft", fluid.fill_height_ft)
    sg = require_positive("fluid.specific_gravity", fluid.specific_gravity)

    course = courses[index]
    prefix = f"courses[{index}]"
    _validate_course(prefix, course)
    for i, c in enumerate(courses[:index]):
        require_positive(f"courses[{i}].course_height_ft", c.course_height_ft)

    head = liquid_head_ft(fill, courses, index)
    if head == 0.0:
        logger.debug(f"course {course.course_number}: above the liquid level, hydrostatic head is zero")
    pressure = hydrostatic_pressure_psi(head, sg)
    radius = ft_to_in(diameter) / 2.0
    t_req = required_thickness_in(
        pressure,
        radius,
        course.allowable_stress_psi,
        course.joint_efficiency,
        field=f"{prefix}.allowable_stress_psi",
    )
    tmin = shell_tmin_in(t_req, config)

    corrosion = assess(
        course.original_thickness_in,
        course.actual_thickness_in,
        course.age_years,
        tmin,
        config.remaining_life_display_ceiling_years,
    )
    return ShellCourseResult(
        course_number=course.course_number,
        liquid_head_ft=head,
        pressure_psi=pressure,
        radius_in=radius,
        t_req_in=t_req,
        tmin_in=tmin,
        allowance_in=allowance_in(config),
        corrosion=corrosion,
    )


def calculate_shell(
    geometry: TankGeometry,
    fluid: FluidColumn,
    courses: Sequence[ShellCourse],
    config: Optional[InspectionConfig] = None,
) -> List[ShellCourseResult]:
    """All courses, bottom to top, under one corrosion-allowance convention."""
    config = config or InspectionConfig()
    return [calculate_shell_course(i, courses, geometry, fluid, config) for i in range(len(courses))]
