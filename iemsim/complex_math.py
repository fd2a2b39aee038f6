"""
Complex impedance arithmetic with guarded division.

Works on Python complex scalars and on numpy complex arrays (one value per
frequency of a sweep). Scalars in give a Python complex out; arrays in give
an array out.

Every complex division in the simulator goes through divide(): a
denominator whose squared magnitude falls below EPSILON yields an exact
zero instead of NaN/Inf. Capacitor and inductor reactances go through
inverse_reactance(), which keeps tiny terms exact and turns a zero term
into an open.
"""

import numpy as np

# Floor for denominators and logarithm arguments
EPSILON = 1e-12


def _as_result(value):
    """Return a Python complex for 0-d results, the array otherwise."""
    if np.ndim(value) == 0:
        return complex(value)
    return value


def add(a, b):
    return _as_result(np.add(a, b, dtype=complex))


def multiply(a, b):
    return _as_result(np.multiply(a, b, dtype=complex))


def divide(a, b):
    """
    Guarded complex division a / b.

    Where |b|² < EPSILON the result is 0 (never NaN or Infinity).
    """
    a = np.asarray(a, dtype=complex)
    b = np.asarray(b, dtype=complex)
    denom = b.real ** 2 + b.imag ** 2
    degenerate = denom < EPSILON

    with np.errstate(divide='ignore', invalid='ignore'):
        quotient = a / np.where(degenerate, 1.0, b)

    return _as_result(np.where(degenerate, 0j, quotient))


def reciprocal(z):
    """Admittance of an impedance (or vice versa), guarded."""
    return divide(1.0, z)


def magnitude(z):
    mag = np.abs(np.asarray(z, dtype=complex))
    return float(mag) if mag.ndim == 0 else mag


def phase_degrees(z):
    """Phase angle in degrees, atan2(imag, real)."""
    z = np.asarray(z, dtype=complex)
    phase = np.degrees(np.arctan2(z.imag, z.real))
    return float(phase) if phase.ndim == 0 else phase


def from_polar(mag, phase_deg):
    """Build a complex value from magnitude and phase in degrees."""
    return _as_result(np.asarray(mag, dtype=float) * np.exp(1j * np.radians(phase_deg)))


def parallel(z1, z2):
    """Parallel combination z1·z2 / (z1 + z2)."""
    return divide(multiply(z1, z2), add(z1, z2))


def inverse_reactance(x):
    """
    -j/x for a non-negative reactance term x (ωC of a capacitor, ωL of an
    inductor).

    Exact for any x above EPSILON. Smaller terms are floored at EPSILON, so
    a DC bin or a zero-valued part gives a 1/EPSILON open rather than the
    zero that divide() returns.
    """
    x = np.maximum(np.asarray(x, dtype=float), EPSILON)
    return _as_result(-1j / x)
