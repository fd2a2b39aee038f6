"""Pydantic models for IEM simulator API requests and responses."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


# --- Enums ---

class MeasurementKind(str, Enum):
    RESPONSE = "response"
    IMPEDANCE = "impedance"


class ElementKind(str, Enum):
    CAPACITOR = "capacitor"
    INDUCTOR = "inductor"
    RESISTOR = "resistor"


class ElementTopology(str, Enum):
    SERIES = "series"
    PARALLEL = "parallel"


class Traversal(str, Enum):
    DRIVER_OUTWARD = "driver_outward"
    SOURCE_INWARD = "source_inward"


class EarGainPolicy(str, Enum):
    IF_UNCOMPENSATED = "if_uncompensated"
    ALWAYS = "always"


# --- Measurements ---

class MeasurementPointModel(BaseModel):
    frequency: float = Field(..., gt=0, description="Frequency (Hz)")
    value: float = Field(..., description="SPL (dB) or impedance magnitude (Ohms)")
    phase: float = Field(0.0, description="Phase (degrees)")


class MeasurementSeriesModel(BaseModel):
    kind: MeasurementKind
    points: list[MeasurementPointModel] = []


class ParseMeasurementRequest(BaseModel):
    text: str = Field(..., max_length=5_000_000)
    kind: MeasurementKind


# --- System definition ---

class DriverModel(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    polarity_inverted: bool = False
    response: Optional[list[MeasurementPointModel]] = None
    impedance: Optional[list[MeasurementPointModel]] = None
    response_includes_coupler: bool = True


class CrossoverElementModel(BaseModel):
    driver: str = Field(..., description="Name of the driver this element belongs to")
    kind: ElementKind
    value: float = Field(..., ge=0, description="µF, mH or Ohms depending on kind")
    topology: ElementTopology = ElementTopology.SERIES
    order: int = Field(0, description="Chain position; highest is nearest the driver")
    parasitic_resistance: Optional[float] = Field(None, ge=0, description="ESR/DCR (Ohms)")


class EarSimulatorModel(BaseModel):
    enabled: bool = True
    canal_length: float = Field(1.2, gt=0, description="Canal length (cm)")
    canal_volume: float = Field(1.0, gt=0, description="Coupler volume (cc)")
    drum_compliance: float = Field(1.0, gt=0, description="Eardrum compliance multiplier")
    leakage: float = Field(0.0, ge=0, le=1, description="Seal leakage fraction")


class SourceModel(BaseModel):
    preset: str = "apple"
    custom_voltage: Optional[float] = Field(None, gt=0, description="Volts, used with preset 'custom'")


class SweepOptions(BaseModel):
    freq_start: float = Field(20.0, gt=0)
    freq_end: float = Field(20000.0, gt=0)
    num_points: int = Field(500, ge=2, le=5000)
    traversal: Traversal = Traversal.DRIVER_OUTWARD
    ear_gain_policy: EarGainPolicy = EarGainPolicy.IF_UNCOMPENSATED
    rolloff_db_per_octave: Optional[float] = Field(None, ge=0)

    @field_validator("freq_end")
    @classmethod
    def _end_above_start(cls, v, info):
        start = info.data.get("freq_start")
        if start is not None and v <= start:
            raise ValueError("freq_end must be greater than freq_start")
        return v


class SimulateRequest(BaseModel):
    drivers: list[DriverModel] = Field(..., max_length=16)
    elements: list[CrossoverElementModel] = []
    ear_simulator: EarSimulatorModel = EarSimulatorModel()
    source: SourceModel = SourceModel()
    options: SweepOptions = SweepOptions()
    include_drivers: bool = Field(False, description="Per-driver columns in CSV export")


# --- Results ---

class DriverResultModel(BaseModel):
    spl: Optional[float] = None
    phase: Optional[float] = None
    impedance: Optional[float] = None
    impedance_phase: Optional[float] = None


class SimulationPointModel(BaseModel):
    frequency: float
    drivers: dict[str, DriverResultModel] = {}
    total_spl: Optional[float] = None
    total_impedance: Optional[float] = None
    total_phase: Optional[float] = None


class SimulateResponse(BaseModel):
    source_voltage: float
    points: list[SimulationPointModel]


class SourcePresetModel(BaseModel):
    key: str
    name: str
    voltage: float


class SourcePresetListResponse(BaseModel):
    presets: list[SourcePresetModel]
