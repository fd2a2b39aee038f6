"""
IEM Crossover Simulator Engine

Frequency-response estimation for multi-driver in-ear monitors: measured
driver data, passive RLC crossovers and an ear-simulator coupler model
combined into impedance, phase and SPL curves over 20 Hz - 20 kHz.

All computation is deterministic and free of session state; every input
is passed explicitly.
"""

from iemsim.complex_math import EPSILON, divide, parallel
from iemsim.measurements import MeasurementPoint, MeasurementSeries, parse_measurement_text, load_measurement_file
from iemsim.interpolation import interpolate
from iemsim.ear_simulator import EarSimulatorConfig, ear_impedance, acoustic_gain_db
from iemsim.crossover import CrossoverElement, TopologyError, solve_network, crossover_response
from iemsim.sources import SOURCE_PRESETS, resolve_source_voltage
from iemsim.simulation import (
    Driver,
    SimulationSettings,
    SimulationResultPoint,
    generate_frequencies,
    run_sweep,
    validate_topology,
)
from iemsim.export import export_csv, export_json

__version__ = "0.1.0"
