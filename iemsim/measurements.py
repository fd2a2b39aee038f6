"""
Driver measurement data: FRD-style response and ZMA-style impedance series.

Text format (one sample per row, whitespace-delimited):

    * comment lines start with '*' or '#'
    20.0    92.1    -12.5
    25.0    92.4    -10.2

Response rows are `frequency spl [phase]`, impedance rows are
`frequency magnitude [phase]`. A missing or unreadable phase column is 0°.
Rows that cannot be read are skipped rather than failing the whole file.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Tuple, Union

import numpy as np

logger = logging.getLogger(__name__)

RESPONSE = 'response'
IMPEDANCE = 'impedance'
MEASUREMENT_KINDS = (RESPONSE, IMPEDANCE)

# Conventional file extensions for each kind
_EXTENSION_KINDS = {
    '.frd': RESPONSE,
    '.zma': IMPEDANCE,
}

_COMMENT_PREFIXES = ('*', '#')


@dataclass(frozen=True)
class MeasurementPoint:
    """One measured sample: frequency (Hz), value (dB SPL or Ohms), phase (degrees)."""
    frequency: float
    value: float
    phase: float = 0.0


@dataclass(frozen=True)
class MeasurementSeries:
    """
    Frequency-ordered measurement of a single driver.

    Points are sorted by frequency on construction (stable, so samples that
    share a frequency keep their file order).
    """
    kind: str
    points: Tuple[MeasurementPoint, ...] = ()

    def __post_init__(self):
        if self.kind not in MEASUREMENT_KINDS:
            raise ValueError(f"Unknown measurement kind '{self.kind}'. Must be one of: {list(MEASUREMENT_KINDS)}")
        ordered = tuple(sorted(self.points, key=lambda p: p.frequency))
        object.__setattr__(self, 'points', ordered)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def is_usable(self) -> bool:
        return len(self.points) > 0

    @property
    def frequencies(self) -> np.ndarray:
        return np.array([p.frequency for p in self.points], dtype=float)

    @property
    def values(self) -> np.ndarray:
        return np.array([p.value for p in self.points], dtype=float)

    @property
    def phases(self) -> np.ndarray:
        return np.array([p.phase for p in self.points], dtype=float)

    @classmethod
    def from_arrays(
        cls,
        kind: str,
        frequencies: Iterable[float],
        values: Iterable[float],
        phases: Iterable[float] = None,
    ) -> 'MeasurementSeries':
        """Build a series from parallel sequences (phase defaults to 0°)."""
        frequencies = list(frequencies)
        values = list(values)
        if len(frequencies) != len(values):
            raise ValueError(
                f"frequencies and values differ in length ({len(frequencies)} vs {len(values)})"
            )
        phases = [0.0] * len(frequencies) if phases is None else list(phases)
        if len(phases) != len(frequencies):
            raise ValueError(
                f"frequencies and phases differ in length ({len(frequencies)} vs {len(phases)})"
            )
        points = tuple(
            MeasurementPoint(float(f), float(v), float(p))
            for f, v, p in zip(frequencies, values, phases)
        )
        return cls(kind=kind, points=points)


def _parse_row(line: str):
    parts = line.split()
    if len(parts) < 2:
        return None
    try:
        freq = float(parts[0])
        value = float(parts[1])
    except ValueError:
        return None
    if not (np.isfinite(freq) and np.isfinite(value)) or freq <= 0:
        return None

    phase = 0.0
    if len(parts) >= 3:
        try:
            phase = float(parts[2])
        except ValueError:
            phase = 0.0
        if not np.isfinite(phase):
            phase = 0.0

    return MeasurementPoint(freq, value, phase)


def parse_measurement_text(text: str, kind: str) -> MeasurementSeries:
    """
    Parse FRD/ZMA text into a MeasurementSeries.

    Never raises on bad rows; an input with no readable rows gives an empty
    (unusable) series.
    """
    points = []
    skipped = 0

    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(_COMMENT_PREFIXES):
            continue
        point = _parse_row(line)
        if point is None:
            skipped += 1
            continue
        points.append(point)

    if skipped:
        logger.debug("Skipped %d malformed %s rows", skipped, kind)

    return MeasurementSeries(kind=kind, points=tuple(points))


def kind_from_filename(path: Union[str, Path]) -> str:
    """Guess the measurement kind from a .frd/.zma extension."""
    suffix = Path(path).suffix.lower()
    if suffix not in _EXTENSION_KINDS:
        raise ValueError(f"Cannot infer measurement kind from '{path}' (expected .frd or .zma)")
    return _EXTENSION_KINDS[suffix]


def load_measurement_file(path: Union[str, Path], kind: str = None) -> MeasurementSeries:
    """Read a measurement file from disk; kind is inferred from the extension if omitted."""
    if kind is None:
        kind = kind_from_filename(path)
    text = Path(path).read_text(encoding='utf-8', errors='replace')
    return parse_measurement_text(text, kind)
