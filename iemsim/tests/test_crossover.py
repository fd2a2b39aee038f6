"""
Tests for the crossover network solver.

Validates:
1. Element impedances including ESR/DCR
2. Series resistor into resistive driver = classical voltage divider
3. Parallel-only networks never attenuate the driver voltage
4. Driver-outward traversal differs from source-inward for mixed chains
5. First-order high-pass corner at 1/(2πRC)
6. Chain validation (duplicate order keys)
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from iemsim.crossover import (
    CAPACITOR,
    DEFAULT_DRIVER_IMPEDANCE,
    DRIVER_OUTWARD,
    INDUCTOR,
    PARALLEL,
    RESISTOR,
    SERIES,
    SOURCE_INWARD,
    CrossoverElement,
    TopologyError,
    crossover_response,
    driver_impedance,
    element_impedance,
    solve_network,
    traversal_order,
    validate_chain,
)
from iemsim.ear_simulator import EarSimulatorConfig
from iemsim.measurements import IMPEDANCE, MeasurementSeries


EAR_OFF = EarSimulatorConfig(enabled=False)


def _element(kind, value, topology=SERIES, order=0, **kwargs):
    return CrossoverElement(driver='BA', kind=kind, value=value, topology=topology, order=order, **kwargs)


class TestElementImpedance:
    """Test single-part impedances."""

    def test_capacitor(self):
        cap = _element(CAPACITOR, 10.0)  # 10 µF, default ESR 0.05 Ω
        omega = 2 * np.pi * 1000.0
        Z = element_impedance(cap, omega)
        assert Z.real == pytest.approx(0.05)
        assert Z.imag == pytest.approx(-1.0 / (omega * 10e-6))

    def test_inductor(self):
        ind = _element(INDUCTOR, 0.5, parasitic_resistance=0.3)  # 0.5 mH
        omega = 2 * np.pi * 1000.0
        Z = element_impedance(ind, omega)
        assert Z.real == pytest.approx(0.3)
        assert Z.imag == pytest.approx(omega * 0.5e-3)

    def test_resistor_ignores_parasitic(self):
        res = _element(RESISTOR, 4.7, parasitic_resistance=1.0)
        Z = element_impedance(res, np.array([100.0, 10000.0]))
        np.testing.assert_array_equal(Z, [4.7 + 0j, 4.7 + 0j])

    def test_default_parasitics(self):
        assert _element(CAPACITOR, 1.0).series_resistance == 0.05
        assert _element(INDUCTOR, 1.0).series_resistance == 0.1
        assert _element(RESISTOR, 1.0).series_resistance == 0.0

    def test_capacitor_at_dc_is_open(self):
        cap = _element(CAPACITOR, 10.0, parasitic_resistance=0.0)
        Z = element_impedance(cap, 0.0)
        assert np.isfinite(Z.imag)
        assert abs(Z) > 1e4

    def test_small_capacitor_at_low_frequency(self):
        """47 nF at 20 Hz keeps its full reactance of about 169 kΩ."""
        cap = _element(CAPACITOR, 0.047, parasitic_resistance=0.0)
        omega = 2 * np.pi * 20.0
        Z = element_impedance(cap, omega)
        assert Z.imag == pytest.approx(-1.0 / (omega * 0.047e-6), rel=1e-12)
        assert Z.imag == pytest.approx(-169313.77, rel=1e-6)

    def test_tiny_susceptance_is_not_capped(self):
        cap = _element(CAPACITOR, 0.0047, parasitic_resistance=0.0)
        freqs = np.array([1.0, 20.0, 100.0])
        Z = element_impedance(cap, 2 * np.pi * freqs)
        np.testing.assert_allclose(Z.imag, -1.0 / (2 * np.pi * freqs * 0.0047e-6), rtol=1e-12)

    def test_zero_valued_capacitor_is_open(self):
        cap = _element(CAPACITOR, 0.0, parasitic_resistance=0.0)
        Z = element_impedance(cap, 2 * np.pi * 1000.0)
        assert np.isfinite(Z.imag)
        assert abs(Z) > 1e4


class TestSolveNetwork:
    """Test the driver-outward network walk."""

    def test_no_elements(self):
        solution = solve_network(1000.0, [], 8.0 + 2j)
        assert solution.impedance == 8.0 + 2j
        assert solution.transfer == 1 + 0j

    def test_series_resistor_voltage_divider(self):
        solution = solve_network(1000.0, [_element(RESISTOR, 4.0)], 8.0)
        assert solution.transfer == pytest.approx(8.0 / (4.0 + 8.0), rel=1e-15)
        assert solution.transfer.imag == 0.0
        assert solution.impedance == pytest.approx(12.0)

    def test_parallel_only_keeps_unity_transfer(self):
        elements = [
            _element(CAPACITOR, 4.7, PARALLEL, order=0),
            _element(INDUCTOR, 0.2, PARALLEL, order=1),
            _element(RESISTOR, 33.0, PARALLEL, order=2),
        ]
        freqs = np.logspace(np.log10(20), np.log10(20000), 50)
        solution = solve_network(freqs, elements, 16.0)
        np.testing.assert_array_equal(solution.transfer, np.ones_like(freqs, dtype=complex))
        assert np.all(np.abs(solution.impedance) < 16.0)

    def test_parallel_resistor_impedance(self):
        solution = solve_network(1000.0, [_element(RESISTOR, 8.0, PARALLEL)], 8.0)
        assert solution.impedance == pytest.approx(4.0)

    def test_traversal_order_matters(self):
        """
        Series 4 Ω far from the driver, parallel 8 Ω next to it.

        Driver-outward: 8||8 = 4, then divider 4/(4+4) -> H = 0.5, Z = 8.
        Source-inward builds a different circuit: H = 8/12, Z = 12||8 = 4.8.
        """
        elements = [
            _element(RESISTOR, 4.0, SERIES, order=0),
            _element(RESISTOR, 8.0, PARALLEL, order=1),
        ]
        correct = solve_network(1000.0, elements, 8.0, DRIVER_OUTWARD)
        reversed_ = solve_network(1000.0, elements, 8.0, SOURCE_INWARD)

        assert correct.transfer == pytest.approx(0.5)
        assert correct.impedance == pytest.approx(8.0)
        assert reversed_.transfer == pytest.approx(8.0 / 12.0)
        assert reversed_.impedance == pytest.approx(4.8)
        assert correct.transfer != pytest.approx(reversed_.transfer)

    def test_traversal_order_matters_reactive(self):
        """Series inductor + shunt capacitor low-pass across the band."""
        elements = [
            _element(INDUCTOR, 0.3, SERIES, order=0),
            _element(CAPACITOR, 6.8, PARALLEL, order=1),
        ]
        freqs = np.array([500.0, 2000.0, 8000.0])
        correct = solve_network(freqs, elements, 16.0, DRIVER_OUTWARD)
        reversed_ = solve_network(freqs, elements, 16.0, SOURCE_INWARD)
        assert not np.allclose(correct.transfer, reversed_.transfer)
        assert not np.allclose(correct.impedance, reversed_.impedance)

    def test_inputs_not_mutated(self):
        elements = [
            _element(RESISTOR, 4.0, SERIES, order=0),
            _element(RESISTOR, 8.0, PARALLEL, order=1),
        ]
        snapshot = list(elements)
        solve_network(1000.0, elements, 8.0)
        assert elements == snapshot

    def test_traversal_order_sorting(self):
        elements = [_element(RESISTOR, 1.0, order=n) for n in (2, 0, 1)]
        assert [e.order for e in traversal_order(elements)] == [2, 1, 0]
        assert [e.order for e in traversal_order(elements, SOURCE_INWARD)] == [0, 1, 2]
        with pytest.raises(ValueError):
            traversal_order(elements, 'sideways')

    def test_zero_impedance_series_is_guarded(self):
        """A shorted driver behind a zero-ohm series part gives H = 0, not NaN."""
        solution = solve_network(1000.0, [_element(RESISTOR, 0.0)], 0.0)
        assert solution.transfer == 0j


class TestHighPassCorner:
    """First-order high-pass: series capacitor into 8 Ω."""

    def test_minus_3db_at_corner(self):
        R, C = 8.0, 10e-6
        fc = 1.0 / (2 * np.pi * R * C)  # ≈ 1989 Hz
        cap = _element(CAPACITOR, 10.0, parasitic_resistance=0.0)

        solution = solve_network(fc, [cap], R)
        gain_db = 20 * np.log10(abs(solution.transfer))
        assert gain_db == pytest.approx(-3.0103, abs=1e-3)
        assert abs(solution.impedance) == pytest.approx(R * np.sqrt(2))

    def test_matches_closed_form(self):
        R, C = 8.0, 10e-6
        freqs = np.logspace(np.log10(20), np.log10(20000), 100)
        cap = _element(CAPACITOR, 10.0, parasitic_resistance=0.0)

        solution = solve_network(freqs, [cap], R)
        expected = R / (R + 1.0 / (1j * 2 * np.pi * freqs * C))
        np.testing.assert_allclose(solution.transfer, expected, rtol=1e-12)


class TestCrossoverResponse:
    """Test the gain bookkeeping around the network."""

    def test_source_voltage_gain(self):
        result = crossover_response(1000.0, [], 8.0, 2.0, EAR_OFF, True)
        assert result.source_gain_db == pytest.approx(6.0206, abs=1e-4)
        assert result.total_gain_db == pytest.approx(6.0206, abs=1e-4)

    def test_unity_system_has_zero_gain(self):
        result = crossover_response(1000.0, [], 8.0, 1.0, EAR_OFF, True)
        assert result.total_gain_db == pytest.approx(0.0, abs=1e-12)
        assert result.electrical_phase == pytest.approx(0.0)
        assert result.impedance_magnitude == pytest.approx(8.0)

    def test_ear_gain_only_when_uncompensated(self):
        ear = EarSimulatorConfig()
        compensated = crossover_response(3000.0, [], 8.0, 1.0, ear, True)
        uncompensated = crossover_response(3000.0, [], 8.0, 1.0, ear, False)
        assert compensated.acoustic_gain_db == 0.0
        assert uncompensated.acoustic_gain_db != pytest.approx(0.0)

    def test_electrical_phase_of_highpass(self):
        """Series capacitor leads: +45° at the corner."""
        fc = 1.0 / (2 * np.pi * 8.0 * 10e-6)
        cap = _element(CAPACITOR, 10.0, parasitic_resistance=0.0)
        result = crossover_response(fc, [cap], 8.0, 1.0, EAR_OFF, True)
        assert result.electrical_phase == pytest.approx(45.0, abs=1e-6)


class TestDriverImpedance:
    """Test driver impedance lookup."""

    def test_default_without_zma(self):
        Z = driver_impedance(None, np.array([20.0, 20000.0]))
        np.testing.assert_array_equal(Z, [DEFAULT_DRIVER_IMPEDANCE + 0j] * 2)

    def test_default_for_empty_series(self):
        Z = driver_impedance(MeasurementSeries(kind=IMPEDANCE), 1000.0)
        assert Z == DEFAULT_DRIVER_IMPEDANCE + 0j

    def test_from_zma(self):
        zma = MeasurementSeries.from_arrays(IMPEDANCE, [100.0, 10000.0], [10.0, 10.0], [0.0, 90.0])
        Z = driver_impedance(zma, 1000.0)
        assert abs(Z) == pytest.approx(10.0)
        assert np.degrees(np.angle(Z)) == pytest.approx(45.0)


class TestValidateChain:
    """Test crossover chain validation."""

    def test_valid_chain(self):
        validate_chain([_element(RESISTOR, 1.0, order=0), _element(CAPACITOR, 1.0, order=1)])

    def test_duplicate_order_rejected(self):
        with pytest.raises(TopologyError):
            validate_chain([_element(RESISTOR, 1.0, order=0), _element(CAPACITOR, 1.0, order=0)])

    def test_unknown_kind_rejected(self):
        with pytest.raises(TopologyError):
            validate_chain([_element('transformer', 1.0)])

    def test_unknown_topology_rejected(self):
        with pytest.raises(TopologyError):
            validate_chain([_element(RESISTOR, 1.0, topology='bridge')])

    def test_negative_value_rejected(self):
        with pytest.raises(TopologyError):
            validate_chain([_element(RESISTOR, -1.0)])

    def test_topology_error_is_value_error(self):
        assert issubclass(TopologyError, ValueError)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
