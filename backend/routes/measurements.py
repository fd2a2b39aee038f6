"""Measurement routes: FRD/ZMA parsing from text or uploaded files."""

from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from backend.models import (
    MeasurementKind,
    MeasurementPointModel,
    MeasurementSeriesModel,
    ParseMeasurementRequest,
)
from iemsim.measurements import MeasurementSeries, kind_from_filename, parse_measurement_text

router = APIRouter()

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
MAX_ROWS = 50000


def _to_model(series: MeasurementSeries) -> MeasurementSeriesModel:
    if len(series) > MAX_ROWS:
        raise HTTPException(status_code=400, detail=f"Too many data points. Maximum {MAX_ROWS} rows.")
    return MeasurementSeriesModel(
        kind=MeasurementKind(series.kind),
        points=[
            MeasurementPointModel(frequency=p.frequency, value=p.value, phase=p.phase)
            for p in series.points
        ],
    )


@router.post("/parse-measurement", response_model=MeasurementSeriesModel)
async def parse_measurement(request: ParseMeasurementRequest):
    """Parse FRD/ZMA text. Unreadable rows are skipped."""
    series = parse_measurement_text(request.text, request.kind.value)
    return _to_model(series)


@router.post("/upload-measurement", response_model=MeasurementSeriesModel)
async def upload_measurement(
    file: UploadFile = File(...),
    kind: Optional[MeasurementKind] = Form(None),
):
    """Upload a .frd or .zma file.

    The measurement kind is taken from the form field, or from the file
    extension when omitted. Maximum 5MB.
    """
    if kind is None:
        try:
            kind_value = kind_from_filename(file.filename or "")
        except ValueError:
            raise HTTPException(status_code=400, detail="Only .frd and .zma files are accepted without an explicit kind.")
    else:
        kind_value = kind.value

    # Read file in chunks to bound memory use
    chunks = []
    total_size = 0
    while True:
        chunk = await file.read(8192)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=413, detail="File too large. Maximum 5MB.")
        chunks.append(chunk)

    text = b"".join(chunks).decode("utf-8", errors="replace")
    return _to_model(parse_measurement_text(text, kind_value))
