from __future__ import annotations

import traceback
from typing import Any, Dict

from loguru import logger
from pydantic import ValidationError

from tank_inspection_app.blocks.code_tables import InspectionConfig
from tank_inspection_app.blocks.errors import InvalidInputError
from tank_inspection_app.core.schema_utils import error_fields, format_validation_error
from tank_inspection_app.core.tool_base import ToolMeta

from .calc_trace import CalcTrace
from .engine import ReportResults, evaluate_with_trace
from .exports import export_all
from .logging_utils import get_run_logger, remove_run_logger_sink
from .models import InspectionReportInputs
from .paths import TOOL_ID, compute_input_hash, create_run_dir


def _results_dict(results: ReportResults) -> Dict[str, Any]:
    label, life = results.governing()
    out: Dict[str, Any] = {
        "governing_component": label,
        "governing_remaining_life_years": life,
        "all_above_tmin": results.all_above_tmin,
        "shell_courses": [
            {
                "course_number": s.course_number,
                "t_req_in": s.t_req_in,
                "t_min_in": s.tmin_in,
                "corrosion_rate_mpy": s.corrosion_rate_mpy,
                "remaining_life_years": s.remaining_life_years,
                "remaining_life_display": s.remaining_life_display,
                "acceptable": s.acceptable,
            }
            for s in results.shell
        ],
        "statistics": {
            k: {"count": v.count, "average": v.average, "maximum": v.maximum, "percentile95": v.percentile95}
            for k, v in results.statistics.items()
        },
    }
    if results.roof is not None:
        out["roof"] = {
            "deck_tmin_in": results.roof.deck_tmin_in,
            "roof_tmin_in": results.roof.roof_tmin_in,
            "deck_remaining_life_years": results.roof.deck.remaining_life_years if results.roof.deck else None,
            "roof_remaining_life_years": results.roof.roof.remaining_life_years if results.roof.roof else None,
        }
    if results.floor is not None:
        out["floor"] = {
            "tmin_in": results.floor.tmin_in,
            "average_thickness_in": results.floor.average_thickness_in,
            "minimum_thickness_in": results.floor.minimum_thickness_in,
            "maximum_corrosion_rate_mpy": results.floor.maximum_corrosion_rate_mpy,
            "governing_remaining_life_years": results.floor.governing_remaining_life_years,
        }
    if results.settlement is not None:
        st = results.settlement
        out["settlement"] = {
            "max_settlement_in": st.max_settlement_in,
            "differential_settlement_in": st.differential_settlement_in,
            "uniform_settlement_in": st.uniform_settlement_in,
            "out_of_plane_in": st.out_of_plane_in,
            "planar_tilt_deg": st.planar_tilt_deg,
            "tilt_percent": st.tilt_percent,
            "compliant": st.compliant,
        }
    out["component_cml_count"] = len(results.component_cmls)
    out["nozzle_count"] = len(results.nozzles)
    return out


class Api653TankInspectionTool:
    """API 653 tank inspection calculations.

    Headless tool: run() and run_batch() both perform the deterministic computation and
    write the calc package (HTML/PDF/JSON/XLSX) to a per-run directory.
    """

    meta = ToolMeta(
        id=TOOL_ID,
        name="API 653 Tank Inspection",
        category="Inspection",
        version="1.0.0",
        description="Shell, roof, floor, CML/nozzle corrosion and settlement calculations for API 653 inspection reports.",
        code_basis="API 653 (tank inspection, repair, alteration and reconstruction)",
    )

    InputModel = InspectionReportInputs

    def default_inputs(self) -> dict:
        return self.InputModel().model_dump(mode="json")

    def run_batch(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        """Run the full calculation + exports. Never raises; failures come back as ok=False."""

        raw = dict(inputs)
        sources = {"config": "user"}
        try:
            if "config" not in raw:
                # Host-wide code constants from the settings file
                raw["config"] = InspectionConfig.from_settings().model_dump()
                sources["config"] = "settings"
            model = self.InputModel.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"{self.meta.id}: invalid inputs ({len(e.errors())} errors)")
            return {"ok": False, "error": format_validation_error(e), "fields": error_fields(e), "traceback": traceback.format_exc()}

        inputs_norm = model.model_dump(mode="json")
        input_hash = compute_input_hash(inputs_norm)
        run_dir = create_run_dir(self.meta.id, input_hash)
        log, _log_sink = get_run_logger(run_dir, self.meta.id, input_hash)

        try:
            with logger.contextualize(tool_id=self.meta.id, run_dir=str(run_dir)):
                log.info("Starting API 653 batch run")
                log.debug(f"Inputs (validated): {inputs_norm}")

                trace = CalcTrace.new(
                    tool_id=self.meta.id,
                    tool_version=self.meta.version,
                    code_basis=self.meta.code_basis,
                    inputs=inputs_norm,
                    input_hash=input_hash,
                    input_sources=sources,
                )
                results_obj = evaluate_with_trace(trace, model)

                results: Dict[str, Any] = {
                    "ok": True,
                    "run_dir": str(run_dir),
                    "input_hash": trace.meta.input_hash,
                }
                results.update(_results_dict(results_obj))

                out_paths = export_all(trace, run_dir, results)
                results["outputs"] = {k: str(v) for k, v in out_paths.items()}

                log.info(
                    f"Batch run complete: governing {results['governing_component']} "
                    f"({results['governing_remaining_life_years']:.1f} yr)"
                )
                return results

        except InvalidInputError as e:
            log.error(f"Invalid input: {e}")
            return {
                "ok": False,
                "run_dir": str(run_dir),
                "input_hash": input_hash,
                "error": str(e),
                "fields": [e.field],
                "traceback": traceback.format_exc(),
            }

        except Exception as e:
            log.exception("Batch run failed")
            return {
                "ok": False,
                "run_dir": str(run_dir),
                "input_hash": input_hash,
                "error": str(e),
                "traceback": traceback.format_exc(),
            }

        finally:
            remove_run_logger_sink(_log_sink)

    def run(self, inputs: Dict[str, Any]) -> Dict[str, Any]:
        return self.run_batch(inputs)


TOOL = Api653TankInspectionTool()
