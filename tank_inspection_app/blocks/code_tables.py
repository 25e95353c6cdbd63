from __future__ import annotations

from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidInputError

CorrosionAllowanceConvention = Literal["none", "flat_allowance"]

# Hydrostatic head: psi per foot of water column (scaled by specific gravity).
PSI_PER_FT_WATER = 0.433

# Key of the config section in settings.json.
SETTINGS_SECTION = "api653"

# Nominal wall factor per pipe schedule (in of wall per in of nominal size).
# Screening values for nozzle t-min; not a substitute for the piping code tables.
_SCHEDULE_FACTORS: Dict[str, float] = {
    "10": 0.065,
    "20": 0.075,
    "30": 0.085,
    "40": 0.095,
    "STD": 0.095,
    "60": 0.110,
    "80": 0.125,
    "XS": 0.125,
    "120": 0.150,
    "160": 0.175,
    "XXS": 0.200,
}

# Default practical t-min by component type (in), used when no t-min is recorded.
_COMPONENT_TMIN: Dict[str, float] = {
    "Shell Nozzle": 0.125,
    "Roof Nozzle": 0.188,
    "Bottom Nozzle": 0.125,
    "Manway": 0.250,
    "Shell Course": 0.100,
    "Bottom Plate": 0.050,
    "Roof": 0.063,
}


class InspectionConfig(BaseModel):
    """Code constants and reporting policy passed explicitly into every calculator.

    Defaults follow the API 653 values the report forms were built around. Standards
    revise these numbers, so hosts override them from the settings file rather than
    editing calculator code (see `from_settings`).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # ---- Minimum thickness floors
    code_minimum_roof_thickness_in: float = Field(0.094, gt=0.0, description="Roof / deck plate minimum thickness (in).")
    code_minimum_floor_thickness_in: float = Field(0.100, gt=0.0, description="Floor plate minimum thickness (in).")
    shell_minimum_thickness_in: float = Field(0.050, gt=0.0, description="Absolute shell t-min floor (in).")

    # ---- Shell corrosion allowance policy
    corrosion_allowance_convention: CorrosionAllowanceConvention = Field(
        "none",
        description="'none': t-min is the one-foot-method required thickness. "
                    "'flat_allowance': t-min = required thickness + shell_corrosion_allowance_in.",
    )
    shell_corrosion_allowance_in: float = Field(0.100, ge=0.0, description="Flat allowance added under 'flat_allowance' (in).")

    # ---- Roof deck bending
    roof_bending_constant: float = Field(
        30000.0 * 4.8, gt=0.0, description="Denominator of the rafter-supported deck plate formula (psi-derived)."
    )

    # ---- Settlement
    settlement_compliance_threshold_percent: float = Field(
        1.0, gt=0.0, description="Maximum differential settlement as % of tank diameter."
    )

    # ---- Reporting
    remaining_life_display_ceiling_years: float = Field(999.0, gt=0.0, description="Cap for displayed remaining life.")
    max_inspection_interval_years: float = Field(10.0, gt=0.0, description="Upper bound on the next-inspection interval.")
    remaining_life_good_years: float = Field(15.0, gt=0.0)
    remaining_life_monitor_years: float = Field(5.0, gt=0.0)

    # ---- Lookup tables
    schedule_factors: Dict[str, float] = Field(default_factory=lambda: dict(_SCHEDULE_FACTORS))
    component_tmin_in: Dict[str, float] = Field(default_factory=lambda: dict(_COMPONENT_TMIN))
    default_component_tmin_in: float = Field(0.125, gt=0.0)

    @field_validator("schedule_factors")
    @classmethod
    def _normalize_schedules(cls, v: Dict[str, float]) -> Dict[str, float]:
        out = {}
        for k, f in v.items():
            if f <= 0.0:
                raise ValueError(f"schedule factor for {k!r} must be > 0")
            out[normalize_schedule(k)] = float(f)
        return out

    @classmethod
    def from_settings(cls, settings: Optional[Mapping[str, Any]] = None) -> "InspectionConfig":
        """Build from the 'api653' section of the host settings dict (missing keys keep defaults)."""
        if settings is None:
            from tank_inspection_app.core.settings import load_section

            return cls.model_validate(load_section(SETTINGS_SECTION))
        return cls.model_validate(dict(settings.get(SETTINGS_SECTION) or {}))


def normalize_schedule(schedule: Any) -> str:
    s = str(schedule).strip().upper()
    if s.startswith("SCH"):
        s = s[3:].strip(" .-")
    return s


def schedule_factor(schedule: Any, config: InspectionConfig) -> float:
    key = normalize_schedule(schedule)
    try:
        return config.schedule_factors[key]
    except KeyError:
        raise InvalidInputError(
            "schedule", f"unknown pipe schedule {schedule!r}; known: {sorted(config.schedule_factors)}", schedule
        ) from None


def auto_tmin(component: str, size_in: Optional[float], config: InspectionConfig) -> float:
    """Default practical t-min for a component type, bumped for large nozzles."""
    t = config.component_tmin_in.get(component, config.default_component_tmin_in)
    if size_in is not None:
        if size_in >= 12.0:
            t += 0.063
        if size_in >= 24.0:
            t += 0.125
    return round(t, 3)
