"""Simulation routes: sweeps and their CSV download, plus source presets."""

import logging
import os
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response

from backend.models import (
    DriverResultModel,
    MeasurementPointModel,
    SimulateRequest,
    SimulateResponse,
    SimulationPointModel,
    SourcePresetListResponse,
    SourcePresetModel,
)
from iemsim.crossover import CrossoverElement, TopologyError
from iemsim.ear_simulator import EarSimulatorConfig
from iemsim.export import export_csv
from iemsim.measurements import IMPEDANCE, RESPONSE, MeasurementSeries
from iemsim.simulation import Driver, SimulationSettings, run_sweep
from iemsim.sources import list_presets, resolve_source_voltage

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_GRID_POINTS = int(os.getenv("IEMSIM_MAX_GRID_POINTS", "5000"))


def _series(kind: str, points: Optional[list[MeasurementPointModel]]) -> Optional[MeasurementSeries]:
    if points is None:
        return None
    return MeasurementSeries.from_arrays(
        kind,
        [p.frequency for p in points],
        [p.value for p in points],
        [p.phase for p in points],
    )


def _run(request: SimulateRequest):
    """Convert the request to engine records and run the sweep."""
    if request.options.num_points > MAX_GRID_POINTS:
        raise HTTPException(
            status_code=422,
            detail=f"num_points exceeds the configured maximum of {MAX_GRID_POINTS}",
        )

    try:
        source_voltage = resolve_source_voltage(request.source.preset, request.source.custom_voltage)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    drivers = [
        Driver(
            name=d.name,
            polarity_inverted=d.polarity_inverted,
            response=_series(RESPONSE, d.response),
            impedance=_series(IMPEDANCE, d.impedance),
            response_includes_coupler=d.response_includes_coupler,
        )
        for d in request.drivers
    ]
    elements = [
        CrossoverElement(
            driver=el.driver,
            kind=el.kind.value,
            value=el.value,
            topology=el.topology.value,
            order=el.order,
            parasitic_resistance=el.parasitic_resistance,
        )
        for el in request.elements
    ]
    ear = EarSimulatorConfig(**request.ear_simulator.model_dump())
    opts = request.options
    settings = SimulationSettings(
        freq_start=opts.freq_start,
        freq_end=opts.freq_end,
        num_points=opts.num_points,
        traversal=opts.traversal.value,
        ear_gain_policy=opts.ear_gain_policy.value,
        rolloff_db_per_octave=opts.rolloff_db_per_octave,
    )

    try:
        results = run_sweep(drivers, elements, ear, source_voltage, settings=settings)
    except TopologyError as e:
        raise HTTPException(status_code=422, detail=f"Invalid crossover topology: {e}")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception:
        logger.error("Simulation failed", exc_info=True)
        raise HTTPException(status_code=500, detail="Simulation failed")

    return source_voltage, results


@router.post("/simulate", response_model=SimulateResponse)
async def simulate(request: SimulateRequest):
    """Run a frequency sweep and return per-frequency results."""
    source_voltage, results = _run(request)

    points = [
        SimulationPointModel(
            frequency=p.frequency,
            drivers={
                name: DriverResultModel(
                    spl=r.spl,
                    phase=r.phase,
                    impedance=r.impedance,
                    impedance_phase=r.impedance_phase,
                )
                for name, r in p.drivers.items()
            },
            total_spl=p.total_spl,
            total_impedance=p.total_impedance,
            total_phase=p.total_phase,
        )
        for p in results
    ]
    return SimulateResponse(source_voltage=source_voltage, points=points)


@router.post("/simulate/csv")
async def simulate_csv(request: SimulateRequest):
    """Run a sweep and download the results as CSV."""
    _, results = _run(request)
    csv_content = export_csv(results, include_drivers=request.include_drivers)
    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=iem_simulation.csv"},
    )


@router.get("/source-presets", response_model=SourcePresetListResponse)
async def source_presets():
    """List the named source voltage presets."""
    return SourcePresetListResponse(
        presets=[SourcePresetModel(**p) for p in list_presets()],
    )
