"""
Frequency sweep of a multi-driver IEM.

For every driver with data, the crossover is solved across the whole
frequency grid at once. Drivers share the source voltage, so their loads
combine in parallel (admittances add); their acoustic outputs add as
complex pressures, so phase and polarity decide whether they reinforce or
cancel.

A sweep is a pure function of its inputs: frozen drivers/elements/config
in, a fresh tuple of result points out, ascending in frequency.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from iemsim import complex_math as cm
from iemsim.complex_math import EPSILON
from iemsim.crossover import (
    DRIVER_OUTWARD,
    TRAVERSALS,
    CrossoverElement,
    TopologyError,
    crossover_response,
    driver_impedance,
    validate_chain,
)
from iemsim.ear_simulator import (
    EAR_GAIN_POLICIES,
    GAIN_IF_UNCOMPENSATED,
    EarSimulatorConfig,
    validate_ear_config,
)
from iemsim.interpolation import PHASE, VALUE, interpolate
from iemsim.measurements import IMPEDANCE, RESPONSE, MeasurementSeries

logger = logging.getLogger(__name__)

# Reported total SPL when the summed pressure cancels to silence
SPL_FLOOR_DB = -200.0

# Reported total impedance when the drivers present no invertible load
OPEN_CIRCUIT_IMPEDANCE = 1e9

# Summed pressure below this fraction of the summed magnitudes is silence
SILENCE_RTOL = 1e-12


def generate_frequencies(
    start: float = 20.0,
    end: float = 20000.0,
    num_points: int = 500,
) -> np.ndarray:
    """Generate logarithmically-spaced frequency array (Hz)."""
    if start <= 0 or end <= start:
        raise ValueError(f"Frequency range must satisfy 0 < start < end, got {start}..{end}")
    if num_points < 2:
        raise ValueError(f"num_points must be at least 2, got {num_points}")
    return np.logspace(np.log10(start), np.log10(end), num_points)


@dataclass(frozen=True)
class Driver:
    """
    One IEM driver and its measurements.

    response_includes_coupler marks a response measured on an ear simulator
    already; the simulated coupler gain is then not added a second time.
    """
    name: str
    polarity_inverted: bool = False
    response: Optional[MeasurementSeries] = None
    impedance: Optional[MeasurementSeries] = None
    response_includes_coupler: bool = True

    @property
    def has_response(self) -> bool:
        return self.response is not None and self.response.is_usable

    @property
    def has_impedance(self) -> bool:
        return self.impedance is not None and self.impedance.is_usable


@dataclass(frozen=True)
class SimulationSettings:
    """Grid and solver options for a sweep."""
    freq_start: float = 20.0
    freq_end: float = 20000.0
    num_points: int = 500
    traversal: str = DRIVER_OUTWARD
    ear_gain_policy: str = GAIN_IF_UNCOMPENSATED
    # None holds the top-of-band SPL; a slope extrapolates a roll-off
    rolloff_db_per_octave: Optional[float] = None


@dataclass(frozen=True)
class DriverResult:
    spl: Optional[float] = None
    phase: Optional[float] = None
    impedance: Optional[float] = None
    impedance_phase: Optional[float] = None


@dataclass(frozen=True)
class SimulationResultPoint:
    frequency: float
    drivers: Dict[str, DriverResult] = field(default_factory=dict)
    total_spl: Optional[float] = None
    total_impedance: Optional[float] = None
    total_phase: Optional[float] = None


def validate_topology(
    drivers: Sequence[Driver],
    elements: Sequence[CrossoverElement],
) -> Dict[str, List[CrossoverElement]]:
    """
    Check driver names and crossover chains before a sweep.

    Returns the elements grouped by driver name. Raises TopologyError for
    duplicate driver names, elements that reference an unknown driver and
    duplicate order keys within a chain.
    """
    chains: Dict[str, List[CrossoverElement]] = {}
    for driver in drivers:
        if driver.name in chains:
            raise TopologyError(f"Duplicate driver name '{driver.name}'")
        for series, kind in ((driver.response, RESPONSE), (driver.impedance, IMPEDANCE)):
            if series is not None and series.kind != kind:
                raise TopologyError(
                    f"Driver '{driver.name}' {kind} data holds a '{series.kind}' measurement"
                )
        chains[driver.name] = []

    for element in elements:
        if element.driver not in chains:
            raise TopologyError(f"Crossover element references unknown driver '{element.driver}'")
        chains[element.driver].append(element)

    for chain in chains.values():
        validate_chain(chain)

    return chains


def _validate_settings(settings: SimulationSettings, source_voltage: float) -> None:
    if settings.traversal not in TRAVERSALS:
        raise ValueError(f"Unknown traversal '{settings.traversal}'. Must be one of: {list(TRAVERSALS)}")
    if settings.ear_gain_policy not in EAR_GAIN_POLICIES:
        raise ValueError(
            f"Unknown ear gain policy '{settings.ear_gain_policy}'. Must be one of: {list(EAR_GAIN_POLICIES)}"
        )
    if not np.isfinite(source_voltage) or source_voltage <= 0:
        raise ValueError(f"Source voltage must be positive, got {source_voltage}")


def _optional(values: Optional[np.ndarray], i: int) -> Optional[float]:
    return None if values is None else float(values[i])


def run_sweep(
    drivers: Sequence[Driver],
    elements: Sequence[CrossoverElement] = (),
    ear: EarSimulatorConfig = EarSimulatorConfig(),
    source_voltage: float = 1.0,
    frequencies=None,
    settings: SimulationSettings = SimulationSettings(),
) -> Tuple[SimulationResultPoint, ...]:
    """
    Simulate the full system over a frequency grid.

    Args:
        drivers: Drivers with optional response/impedance measurements.
        elements: Crossover elements of all drivers (keyed by driver name).
        ear: Ear simulator settings, applied identically to every driver.
        source_voltage: Output voltage of the source (V).
        frequencies: Explicit grid (Hz); generated from settings if None,
            sorted ascending otherwise.
        settings: Grid, traversal and gain options.

    Returns:
        One SimulationResultPoint per grid frequency, ascending.

    Raises:
        TopologyError / ValueError for invalid configuration. Numeric edge
        cases inside the sweep never raise.
    """
    chains = validate_topology(drivers, elements)
    validate_ear_config(ear)
    _validate_settings(settings, source_voltage)

    if frequencies is None:
        freqs = generate_frequencies(settings.freq_start, settings.freq_end, settings.num_points)
    else:
        freqs = np.sort(np.atleast_1d(np.asarray(frequencies, dtype=float)))

    total_admittance = np.zeros(freqs.shape, dtype=complex)
    any_load = False
    pressures = []
    per_driver = {}

    for driver in drivers:
        chain = chains[driver.name]
        if not (driver.has_response or driver.has_impedance or chain):
            logger.debug("Driver '%s' has no data or crossover, skipped", driver.name)
            continue

        z_driver = driver_impedance(driver.impedance, freqs)
        result = crossover_response(
            freqs,
            chain,
            z_driver,
            source_voltage,
            ear,
            driver.response_includes_coupler,
            traversal=settings.traversal,
            ear_gain_policy=settings.ear_gain_policy,
        )

        arrays = {'spl': None, 'phase': None, 'impedance': None, 'impedance_phase': None}

        if driver.has_impedance or chain:
            arrays['impedance'] = result.impedance_magnitude
            arrays['impedance_phase'] = result.impedance_phase
            total_admittance = cm.add(total_admittance, cm.reciprocal(result.impedance))
            any_load = True

        if driver.has_response:
            base_spl = interpolate(
                driver.response, freqs, VALUE,
                rolloff_db_per_octave=settings.rolloff_db_per_octave,
            )
            base_phase = interpolate(driver.response, freqs, PHASE)

            spl = base_spl + result.total_gain_db
            phase = base_phase + result.electrical_phase + (180.0 if driver.polarity_inverted else 0.0)

            arrays['spl'] = spl
            arrays['phase'] = phase
            pressures.append(cm.from_polar(10 ** (spl / 20), phase))

        per_driver[driver.name] = arrays

    total_spl = None
    if pressures:
        summed = cm.magnitude(np.sum(pressures, axis=0))
        scale = np.sum([cm.magnitude(p) for p in pressures], axis=0)
        silent = (summed <= EPSILON) | (summed <= SILENCE_RTOL * scale)
        with np.errstate(divide='ignore'):
            total_spl = np.where(silent, SPL_FLOOR_DB, 20 * np.log10(np.where(silent, 1.0, summed)))

    total_impedance = None
    total_phase = None
    # |ΣY|² below EPSILON is an open load
    open_load = cm.magnitude(total_admittance) ** 2 < EPSILON
    if any_load:
        Z_total = cm.reciprocal(total_admittance)
        total_impedance = cm.magnitude(Z_total)
        total_phase = cm.phase_degrees(Z_total)

    points = []
    for i, freq in enumerate(freqs):
        driver_results = {
            name: DriverResult(
                spl=_optional(arrays['spl'], i),
                phase=_optional(arrays['phase'], i),
                impedance=_optional(arrays['impedance'], i),
                impedance_phase=_optional(arrays['impedance_phase'], i),
            )
            for name, arrays in per_driver.items()
        }
        points.append(SimulationResultPoint(
            frequency=float(freq),
            drivers=driver_results,
            total_spl=_optional(total_spl, i),
            total_impedance=OPEN_CIRCUIT_IMPEDANCE if open_load[i] else float(total_impedance[i]),
            total_phase=None if open_load[i] else float(total_phase[i]),
        ))

    logger.debug(
        "Sweep complete: %d points, %d of %d drivers active",
        len(points), len(per_driver), len(drivers),
    )
    return tuple(points)
