"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from app.schemas import DatasetResponse, NarrativeRecord, PredictionResponse, Verdict
from models.records import EmptyDatasetError
from services.monitor import MonitorService, build_default_monitor
from services.parser import IngestionError

router = APIRouter()


def get_monitor() -> MonitorService:
    return build_default_monitor()


@router.post(
    "/datasets",
    response_model=DatasetResponse,
    summary="Upload a CSV file to replace the current dataset.",
)
async def upload_dataset(
    file: Optional[UploadFile] = File(None, description="CSV file with ph, turbidity and hardness columns."),
    monitor: MonitorService = Depends(get_monitor),
) -> DatasetResponse:
    if file is None:
        return DatasetResponse.from_dataset(monitor.current_dataset())

    try:
        contents = await file.read()
        dataset = await run_in_threadpool(monitor.ingest_upload, contents, file.filename)
    except IngestionError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    finally:
        await file.close()
    return DatasetResponse.from_dataset(dataset or monitor.current_dataset())


@router.get(
    "/datasets/current",
    response_model=DatasetResponse,
    summary="Return the dataset currently used for classification.",
)
async def get_current_dataset(
    monitor: MonitorService = Depends(get_monitor),
) -> DatasetResponse:
    return DatasetResponse.from_dataset(monitor.current_dataset())


@router.get(
    "/verdict",
    response_model=Verdict,
    summary="Classify the latest sample of the current dataset.",
)
async def get_verdict(
    monitor: MonitorService = Depends(get_monitor),
) -> Verdict:
    try:
        return monitor.verdict()
    except EmptyDatasetError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc


@router.post(
    "/predict",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=PredictionResponse,
    summary="Classify the latest sample and request a narrative analysis.",
)
async def predict(
    monitor: MonitorService = Depends(get_monitor),
) -> PredictionResponse:
    try:
        return monitor.predict()
    except EmptyDatasetError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc


@router.get(
    "/narratives",
    response_model=List[NarrativeRecord],
    summary="List narrative requests, newest first.",
)
async def list_narratives(
    monitor: MonitorService = Depends(get_monitor),
) -> List[NarrativeRecord]:
    return monitor.list_narratives()


@router.get(
    "/narratives/{narrative_id}",
    response_model=NarrativeRecord,
    summary="Fetch the status and text of a narrative analysis.",
)
async def get_narrative(
    narrative_id: str,
    monitor: MonitorService = Depends(get_monitor),
) -> NarrativeRecord:
    try:
        return monitor.fetch_narrative(narrative_id)
    except KeyError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
