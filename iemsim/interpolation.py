"""
Interpolation of measured driver data onto arbitrary frequencies.

Frequency is interpolated on a log10 axis. Magnitudes (SPL in dB, |Z| in
Ohms) are interpolated in the log10-of-value domain, phases linearly in
degrees. Phase is not unwrapped: a ±180° jump between neighbouring samples
is traversed through the short arc, not the physically continuous one.

Outside the measured band the nearest boundary sample is held. An explicit
roll-off slope can be requested above the band; nothing is extrapolated
unless asked for.
"""

from typing import Optional

import numpy as np

from iemsim.complex_math import EPSILON
from iemsim.measurements import MeasurementSeries

VALUE = 'value'
PHASE = 'phase'


def interpolate_samples(
    freqs: np.ndarray,
    values: np.ndarray,
    target_freqs,
    log_values: bool = True,
    rolloff_db_per_octave: Optional[float] = None,
):
    """
    Interpolate sorted samples (freqs ascending) at target_freqs.

    Args:
        freqs: Sample frequencies (Hz), non-decreasing.
        values: Sample values.
        target_freqs: Scalar or array of query frequencies (Hz).
        log_values: Interpolate in the log10-of-value domain (magnitudes).
            Falls back to linear where a bracketing value is <= EPSILON.
        rolloff_db_per_octave: If given, values above the last sample fall
            by this many units per octave instead of being held.

    Returns:
        Float for a scalar query, array otherwise.
    """
    freqs = np.asarray(freqs, dtype=float)
    values = np.asarray(values, dtype=float)
    if freqs.size == 0:
        raise ValueError("Cannot interpolate an empty measurement series")

    scalar = np.ndim(target_freqs) == 0
    target = np.atleast_1d(np.asarray(target_freqs, dtype=float))

    if freqs.size == 1:
        result = np.full(target.shape, values[0])
    else:
        # freqs[hi] is the first sample at or above the target
        hi = np.clip(np.searchsorted(freqs, target, side='left'), 1, freqs.size - 1)
        lo = hi - 1
        f_lo, f_hi = freqs[lo], freqs[hi]
        v_lo, v_hi = values[lo], values[hi]

        with np.errstate(divide='ignore', invalid='ignore'):
            log_span = np.log10(f_hi) - np.log10(f_lo)
            t = (np.log10(target) - np.log10(f_lo)) / log_span
            linear = v_lo + (v_hi - v_lo) * t
            if log_values:
                positive = (v_lo > EPSILON) & (v_hi > EPSILON)
                log_lo = np.log10(np.where(positive, v_lo, 1.0))
                log_hi = np.log10(np.where(positive, v_hi, 1.0))
                logarithmic = 10 ** (log_lo + (log_hi - log_lo) * t)
                result = np.where(positive, logarithmic, linear)
            else:
                result = linear

        # Coincident bracketing samples
        result = np.where(log_span < EPSILON, v_lo, result)

        # Exact sample frequencies return the stored value untouched
        exact_idx = np.clip(np.searchsorted(freqs, target, side='left'), 0, freqs.size - 1)
        exact = freqs[exact_idx] == target
        result = np.where(exact, values[exact_idx], result)

        result = np.where(target <= freqs[0], values[0], result)
        result = np.where(target >= freqs[-1], values[-1], result)

    if rolloff_db_per_octave is not None:
        above = target > freqs[-1]
        with np.errstate(divide='ignore', invalid='ignore'):
            octaves = np.log2(np.where(above, target, freqs[-1]) / freqs[-1])
        result = np.where(above, values[-1] - rolloff_db_per_octave * octaves, result)

    return float(result[0]) if scalar else result


def interpolate(
    series: MeasurementSeries,
    target_freqs,
    field: str = VALUE,
    rolloff_db_per_octave: Optional[float] = None,
):
    """
    Interpolate one field of a MeasurementSeries at target_freqs.

    field='value' interpolates the magnitude (SPL or |Z|) in the log domain;
    field='phase' interpolates phase linearly in degrees. The roll-off option
    only applies to magnitudes.
    """
    if field == VALUE:
        return interpolate_samples(
            series.frequencies, series.values, target_freqs,
            log_values=True, rolloff_db_per_octave=rolloff_db_per_octave,
        )
    if field == PHASE:
        return interpolate_samples(
            series.frequencies, series.phases, target_freqs, log_values=False,
        )
    raise ValueError(f"Unknown field '{field}'. Must be '{VALUE}' or '{PHASE}'")
