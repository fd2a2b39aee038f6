"""
Passive crossover network solver.

Each driver has its own chain of capacitors, inductors and resistors, each
either in series with or in parallel with everything between it and the
driver. The element order key gives its position: the highest order sits
next to the driver terminals, the lowest next to the amplifier.

The chain is walked from the driver outward. Starting from the driver's
own impedance Z and a transfer ratio H = V_driver / V_node = 1:

    series element:    H <- H · Z / (Z_e + Z),   Z <- Z_e + Z
    parallel element:  H unchanged,              Z <- Z || Z_e

After the walk, Z is the load presented to the amplifier and H the voltage
transfer from amplifier to driver terminals. Walking the other way builds a
different circuit whenever series and parallel parts are mixed.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from iemsim import complex_math as cm
from iemsim.complex_math import EPSILON
from iemsim.ear_simulator import (
    GAIN_IF_UNCOMPENSATED,
    EarSimulatorConfig,
    acoustic_gain_db,
)
from iemsim.interpolation import PHASE, VALUE, interpolate
from iemsim.measurements import MeasurementSeries

CAPACITOR = 'capacitor'
INDUCTOR = 'inductor'
RESISTOR = 'resistor'
ELEMENT_KINDS = (CAPACITOR, INDUCTOR, RESISTOR)

SERIES = 'series'
PARALLEL = 'parallel'
TOPOLOGIES = (SERIES, PARALLEL)

# Traversal directions
DRIVER_OUTWARD = 'driver_outward'
SOURCE_INWARD = 'source_inward'
TRAVERSALS = (DRIVER_OUTWARD, SOURCE_INWARD)

# Driver impedance assumed when no ZMA data is available
DEFAULT_DRIVER_IMPEDANCE = 8.0

# Parasitic series resistance defaults (Ohms)
DEFAULT_PARASITIC_RESISTANCE = {
    CAPACITOR: 0.05,   # ESR
    INDUCTOR: 0.1,     # DCR
    RESISTOR: 0.0,
}

# Nominal value units → SI
_UNIT_SCALE = {
    CAPACITOR: 1e-6,   # µF
    INDUCTOR: 1e-3,    # mH
    RESISTOR: 1.0,     # Ω
}

UNIT_LABELS = {
    CAPACITOR: 'uF',
    INDUCTOR: 'mH',
    RESISTOR: 'Ohm',
}


class TopologyError(ValueError):
    """A crossover configuration that cannot be simulated as given."""


@dataclass(frozen=True)
class CrossoverElement:
    """
    A passive part in one driver's crossover chain.

    value is in µF for capacitors, mH for inductors and Ohms for resistors.
    parasitic_resistance (ESR/DCR) defaults per kind when left as None;
    resistors ignore it.
    """
    driver: str
    kind: str
    value: float
    topology: str = SERIES
    order: int = 0
    parasitic_resistance: Optional[float] = None

    @property
    def series_resistance(self) -> float:
        if self.kind == RESISTOR:
            return 0.0
        if self.parasitic_resistance is None:
            return DEFAULT_PARASITIC_RESISTANCE[self.kind]
        return self.parasitic_resistance

    @property
    def si_value(self) -> float:
        return self.value * _UNIT_SCALE[self.kind]


@dataclass(frozen=True)
class NetworkSolution:
    """Complex input impedance and driver-referred voltage transfer."""
    impedance: np.ndarray
    transfer: np.ndarray


@dataclass(frozen=True)
class CrossoverResponse:
    """Electrical network result plus the gains applied to the driver's response."""
    impedance: np.ndarray
    transfer: np.ndarray
    electrical_gain_db: np.ndarray
    source_gain_db: float
    acoustic_gain_db: np.ndarray

    @property
    def total_gain_db(self):
        return self.electrical_gain_db + self.source_gain_db + self.acoustic_gain_db

    @property
    def electrical_phase(self):
        """Phase shift (degrees) the network adds to the driver's acoustic phase."""
        return cm.phase_degrees(self.transfer)

    @property
    def impedance_magnitude(self):
        return cm.magnitude(self.impedance)

    @property
    def impedance_phase(self):
        return cm.phase_degrees(self.impedance)


def validate_element(element: CrossoverElement) -> None:
    if element.kind not in ELEMENT_KINDS:
        raise TopologyError(
            f"Element of driver '{element.driver}' has unknown kind '{element.kind}'. "
            f"Must be one of: {list(ELEMENT_KINDS)}"
        )
    if element.topology not in TOPOLOGIES:
        raise TopologyError(
            f"Element of driver '{element.driver}' has unknown topology '{element.topology}'. "
            f"Must be one of: {list(TOPOLOGIES)}"
        )
    if not np.isfinite(element.value) or element.value < 0:
        raise TopologyError(f"{element.kind} value must be non-negative, got {element.value}")
    if element.parasitic_resistance is not None and element.parasitic_resistance < 0:
        raise TopologyError(
            f"Parasitic resistance must be non-negative, got {element.parasitic_resistance}"
        )


def validate_chain(elements: Sequence[CrossoverElement]) -> None:
    """
    Check one driver's chain: known kinds/topologies and unique order keys.

    Duplicate order keys leave the traversal ambiguous and are rejected.
    """
    seen: Dict[int, CrossoverElement] = {}
    for element in elements:
        validate_element(element)
        if element.order in seen:
            raise TopologyError(
                f"Driver '{element.driver}' has more than one element with order {element.order}"
            )
        seen[element.order] = element


def element_impedance(element: CrossoverElement, omega):
    """
    Complex impedance of a crossover part, including ESR/DCR.

    A DC bin or a 0 µF capacitor reads as a 1/EPSILON open.
    """
    omega = np.asarray(omega, dtype=float)
    if element.kind == CAPACITOR:
        return cm.add(element.series_resistance, cm.inverse_reactance(omega * element.si_value))
    elif element.kind == INDUCTOR:
        return cm.add(element.series_resistance, 1j * omega * element.si_value)
    elif element.kind == RESISTOR:
        return cm.add(np.zeros_like(omega), element.value)
    raise TopologyError(f"Unknown element kind '{element.kind}'")


def traversal_order(
    elements: Iterable[CrossoverElement],
    traversal: str = DRIVER_OUTWARD,
) -> List[CrossoverElement]:
    """Elements in processing order (nearest the driver first by default)."""
    if traversal not in TRAVERSALS:
        raise ValueError(f"Unknown traversal '{traversal}'. Must be one of: {list(TRAVERSALS)}")
    return sorted(elements, key=lambda el: el.order, reverse=(traversal == DRIVER_OUTWARD))


def solve_network(
    frequencies,
    elements: Sequence[CrossoverElement],
    z_driver,
    traversal: str = DRIVER_OUTWARD,
) -> NetworkSolution:
    """
    Total impedance and voltage transfer of a driver plus its crossover.

    Args:
        frequencies: Scalar or array of frequencies (Hz).
        elements: The driver's crossover chain (not modified).
        z_driver: Driver electrical impedance at those frequencies.
        traversal: DRIVER_OUTWARD (correct) or SOURCE_INWARD.

    Returns:
        NetworkSolution with impedance seen by the source and
        H = V_driver / V_source.
    """
    omega = 2 * np.pi * np.asarray(frequencies, dtype=float)

    Z = cm.add(np.zeros_like(omega), z_driver)
    H = cm.add(np.zeros_like(omega), 1.0)

    for element in traversal_order(elements, traversal):
        Z_element = element_impedance(element, omega)
        if element.topology == SERIES:
            Z_new = cm.add(Z_element, Z)
            H = cm.multiply(H, cm.divide(Z, Z_new))
            Z = Z_new
        else:
            Z = cm.parallel(Z, Z_element)

    return NetworkSolution(impedance=Z, transfer=H)


def driver_impedance(impedance: Optional[MeasurementSeries], frequencies):
    """
    Driver electrical impedance from its ZMA data, or 8 Ω resistive.
    """
    if impedance is None or not impedance.is_usable:
        return cm.add(np.zeros_like(frequencies, dtype=float), DEFAULT_DRIVER_IMPEDANCE)

    mag = interpolate(impedance, frequencies, VALUE)
    phase = interpolate(impedance, frequencies, PHASE)
    return cm.from_polar(mag, phase)


def crossover_response(
    frequencies,
    elements: Sequence[CrossoverElement],
    z_driver,
    source_voltage: float,
    ear: EarSimulatorConfig,
    response_includes_coupler: bool,
    traversal: str = DRIVER_OUTWARD,
    ear_gain_policy: str = GAIN_IF_UNCOMPENSATED,
) -> CrossoverResponse:
    """
    Solve a driver's crossover and collect the gains applied to its SPL.

    electrical gain = 20·log10|H|, source gain = 20·log10(V), acoustic gain
    from the ear simulator (see acoustic_gain_db for when it applies).
    """
    solution = solve_network(frequencies, elements, z_driver, traversal)

    electrical_gain_db = 20 * np.log10(np.maximum(cm.magnitude(solution.transfer), EPSILON))
    source_gain_db = 20 * np.log10(max(source_voltage, EPSILON))
    ear_gain = acoustic_gain_db(ear, frequencies, response_includes_coupler, ear_gain_policy)

    return CrossoverResponse(
        impedance=solution.impedance,
        transfer=solution.transfer,
        electrical_gain_db=electrical_gain_db,
        source_gain_db=float(source_gain_db),
        acoustic_gain_db=ear_gain,
    )
