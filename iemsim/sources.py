"""Source (amplifier/DAC) output voltage presets."""

from typing import Dict, List, Optional

CUSTOM = 'custom'

# Typical line/headphone output levels (V RMS)
SOURCE_PRESETS: Dict[str, Dict] = {
    'raw': {'name': 'Raw Audio (Phone)', 'voltage': 0.5},
    'apple': {'name': 'Apple Dongle', 'voltage': 1.0},
    'jcally': {'name': 'JCally JA04', 'voltage': 2.0},
    'desktop': {'name': 'Desktop DAC', 'voltage': 4.0},
    CUSTOM: {'name': 'Custom', 'voltage': 1.0},
}

DEFAULT_PRESET = 'apple'


def resolve_source_voltage(preset: str = DEFAULT_PRESET, custom_voltage: Optional[float] = None) -> float:
    """
    Voltage for a named preset, or the custom value when preset is 'custom'.

    Raises ValueError for an unknown preset or a non-positive custom voltage.
    """
    if preset not in SOURCE_PRESETS:
        raise ValueError(f"Unknown source preset '{preset}'. Available: {list(SOURCE_PRESETS.keys())}")

    if preset == CUSTOM and custom_voltage is not None:
        if custom_voltage <= 0:
            raise ValueError(f"Custom source voltage must be positive, got {custom_voltage}")
        return float(custom_voltage)

    return SOURCE_PRESETS[preset]['voltage']


def list_presets() -> List[Dict]:
    return [
        {'key': key, 'name': info['name'], 'voltage': info['voltage']}
        for key, info in SOURCE_PRESETS.items()
    ]
