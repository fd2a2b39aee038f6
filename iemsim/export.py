"""
Export of sweep results as CSV or JSON.
"""

import csv
import io
import json
from dataclasses import asdict
from typing import Dict, List, Optional, Sequence

from iemsim.simulation import SimulationResultPoint

CSV_HEADER = ['Frequency(Hz)', 'Total SPL(dB)', 'Total Impedance(Ohm)', 'Total Phase(deg)']


def _fmt(value: Optional[float]) -> str:
    return '' if value is None else f"{value:.2f}"


def export_csv(results: Sequence[SimulationResultPoint], include_drivers: bool = False) -> str:
    """
    Render results as CSV, one row per frequency, two decimals.

    Undefined values (no SPL, open-load phase) are left blank. With
    include_drivers, SPL/impedance columns per driver follow the totals.
    """
    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')

    driver_names: List[str] = []
    if include_drivers:
        for point in results:
            for name in point.drivers:
                if name not in driver_names:
                    driver_names.append(name)

    header = list(CSV_HEADER)
    for name in driver_names:
        header.extend([f'{name} SPL(dB)', f'{name} Impedance(Ohm)', f'{name} Phase(deg)'])
    writer.writerow(header)

    for point in results:
        row = [
            _fmt(point.frequency),
            _fmt(point.total_spl),
            _fmt(point.total_impedance),
            _fmt(point.total_phase),
        ]
        for name in driver_names:
            driver = point.drivers.get(name)
            if driver is None:
                row.extend(['', '', ''])
            else:
                row.extend([_fmt(driver.spl), _fmt(driver.impedance), _fmt(driver.impedance_phase)])
        writer.writerow(row)

    return output.getvalue()


def results_to_dicts(results: Sequence[SimulationResultPoint]) -> List[Dict]:
    return [asdict(point) for point in results]


def export_json(results: Sequence[SimulationResultPoint]) -> str:
    """Export results as a JSON string."""
    export_data = {
        'points': results_to_dicts(results),
        'num_points': len(results),
        'generated_by': 'iemsim',
    }
    return json.dumps(export_data, indent=2)
