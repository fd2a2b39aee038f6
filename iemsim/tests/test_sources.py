"""
Tests for source voltage presets.

Validates:
1. Named presets resolve to their voltages
2. Custom voltage applies only to the 'custom' preset
3. Unknown presets and non-positive voltages are rejected
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from iemsim.sources import DEFAULT_PRESET, SOURCE_PRESETS, list_presets, resolve_source_voltage


class TestResolveSourceVoltage:
    """Test preset resolution."""

    def test_named_presets(self):
        assert resolve_source_voltage('raw') == 0.5
        assert resolve_source_voltage('apple') == 1.0
        assert resolve_source_voltage('jcally') == 2.0
        assert resolve_source_voltage('desktop') == 4.0

    def test_default(self):
        assert resolve_source_voltage() == SOURCE_PRESETS[DEFAULT_PRESET]['voltage']

    def test_custom_voltage(self):
        assert resolve_source_voltage('custom', 3.3) == 3.3
        assert resolve_source_voltage('custom') == 1.0

    def test_custom_voltage_ignored_for_named_preset(self):
        assert resolve_source_voltage('desktop', 3.3) == 4.0

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            resolve_source_voltage('tube_amp')

    def test_non_positive_custom_voltage(self):
        with pytest.raises(ValueError):
            resolve_source_voltage('custom', 0.0)


class TestListPresets:
    """Test preset listing."""

    def test_all_presets_listed(self):
        presets = list_presets()
        assert {p['key'] for p in presets} == set(SOURCE_PRESETS)
        assert all(p['voltage'] > 0 for p in presets)

    def test_entries_carry_display_name(self):
        apple = next(p for p in list_presets() if p['key'] == 'apple')
        assert apple == {'key': 'apple', 'name': 'Apple Dongle', 'voltage': 1.0}


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
