"""
Acoustic impedance of an occluded-ear simulator (coupler).

Lumped model after the IEC 60318-4 (711-type) equivalent circuit:

    Z_ear(f) = (R0 + jωL0) + Z_rlc(R1, L1, C1) + Z_rlc(R2, L2, C2)

The series R0/L0 branch models the residual canal, the two parallel RLC
branches model the two main acoustic resonances. Each parallel branch is
computed from its admittance:

    Y = 1/R + 1/(jωL) + jωC,    Z = 1/Y

User settings scale the reference parts: L0 with canal length (nominal
1.2 cm), C1 with coupler volume (nominal 1.0 cc), C2 with the eardrum
compliance multiplier. A leaky seal places a resistance in parallel with
the whole network, falling to an acoustic short at full leakage.

The acoustic gain applied to a driver's response is the coupler magnitude
relative to Z_EAR_REF_MAG, so a disabled simulator contributes 0 dB.
"""

from dataclasses import dataclass

import numpy as np

from iemsim import complex_math as cm
from iemsim.complex_math import EPSILON

# Reference equivalent-circuit parts (acoustic Ohms, Henries, Farads)
R0 = 155.8
L0 = 0.0076
R1 = 292.0
L1 = 0.021
C1 = 200e-9
R2 = 1437.0
L2 = 0.106
C2 = 30e-9

NOMINAL_CANAL_LENGTH_CM = 1.2
NOMINAL_CANAL_VOLUME_CC = 1.0

# Coupler magnitude taken as 0 dB acoustic gain
Z_EAR_REF_MAG = 163.5

# Floor for the seal-leak resistance (full leakage)
LEAK_R_MIN = 1.0

# Ear-gain policies
GAIN_IF_UNCOMPENSATED = 'if_uncompensated'
GAIN_ALWAYS = 'always'
EAR_GAIN_POLICIES = (GAIN_IF_UNCOMPENSATED, GAIN_ALWAYS)


@dataclass(frozen=True)
class EarSimulatorConfig:
    """User-adjustable coupler settings."""
    enabled: bool = True
    canal_length: float = NOMINAL_CANAL_LENGTH_CM   # cm
    canal_volume: float = NOMINAL_CANAL_VOLUME_CC   # cc
    drum_compliance: float = 1.0                    # multiplier
    leakage: float = 0.0                            # 0 (sealed) .. 1 (open)


def validate_ear_config(config: EarSimulatorConfig) -> None:
    """Raise ValueError for settings outside their physical range."""
    for name in ('canal_length', 'canal_volume', 'drum_compliance'):
        value = getattr(config, name)
        if not np.isfinite(value) or value <= 0:
            raise ValueError(f"Ear simulator {name} must be positive, got {value}")
    if not 0.0 <= config.leakage <= 1.0:
        raise ValueError(f"Ear simulator leakage must be within [0, 1], got {config.leakage}")


def parallel_rlc(R: float, L: float, C: float, omega):
    """Impedance of R, L and C in parallel at angular frequency omega."""
    R = max(R, EPSILON)
    L = max(L, EPSILON)
    C = max(C, EPSILON)
    omega = np.maximum(omega, EPSILON)

    Y_R = 1.0 / R
    Y_L = cm.inverse_reactance(omega * L)
    Y_C = 1j * omega * C
    return cm.reciprocal(cm.add(Y_R, cm.add(Y_L, Y_C)))


def leak_resistance(leakage: float) -> float:
    """
    Seal-leak resistance; infinite when sealed, decreasing monotonically to
    LEAK_R_MIN as leakage approaches 1.
    """
    if leakage <= 0:
        return float('inf')
    return max(Z_EAR_REF_MAG * (1.0 - leakage) / leakage, LEAK_R_MIN)


def ear_impedance(config: EarSimulatorConfig, frequencies):
    """
    Complex acoustic impedance of the coupler.

    Args:
        config: Ear simulator settings.
        frequencies: Scalar or array of frequencies (Hz).

    Returns:
        Complex impedance (scalar or array matching frequencies).
    """
    if not config.enabled:
        return cm.add(np.zeros_like(frequencies, dtype=float), Z_EAR_REF_MAG)

    omega = 2 * np.pi * np.asarray(frequencies, dtype=float)

    L0_scaled = L0 * (config.canal_length / NOMINAL_CANAL_LENGTH_CM)
    C1_scaled = C1 * (config.canal_volume / NOMINAL_CANAL_VOLUME_CC)
    C2_scaled = C2 * config.drum_compliance

    Z_branch0 = R0 + 1j * omega * L0_scaled
    Z_branch1 = parallel_rlc(R1, L1, C1_scaled, omega)
    Z_branch2 = parallel_rlc(R2, L2, C2_scaled, omega)

    Z_ear = cm.add(Z_branch0, cm.add(Z_branch1, Z_branch2))

    if config.leakage > 0:
        Z_ear = cm.parallel(Z_ear, leak_resistance(config.leakage))

    return Z_ear


def acoustic_gain_db(
    config: EarSimulatorConfig,
    frequencies,
    response_includes_coupler: bool,
    policy: str = GAIN_IF_UNCOMPENSATED,
):
    """
    Gain (dB) the coupler adds to a driver's measured response.

    With the default policy the gain is applied only when the simulator is
    enabled and the measurement does not already include a coupler, so a
    coupler-measured response is not counted twice. GAIN_ALWAYS applies it
    whenever the simulator is enabled.
    """
    if policy not in EAR_GAIN_POLICIES:
        raise ValueError(f"Unknown ear gain policy '{policy}'. Must be one of: {list(EAR_GAIN_POLICIES)}")

    zeros = np.zeros_like(frequencies, dtype=float)
    if not config.enabled:
        return float(zeros) if zeros.ndim == 0 else zeros
    if policy == GAIN_IF_UNCOMPENSATED and response_includes_coupler:
        return float(zeros) if zeros.ndim == 0 else zeros

    ratio = cm.magnitude(ear_impedance(config, frequencies)) / Z_EAR_REF_MAG
    gain = 20 * np.log10(np.maximum(ratio, EPSILON))
    return float(gain) if np.ndim(gain) == 0 else gain
