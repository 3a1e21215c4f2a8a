"""Sync trigger and status routes."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlmodel import Session, select

from stagesync.errors import (
    BatchSyncError,
    InvalidIdentity,
    ProductionSyncError,
    UnknownTable,
)
from stagesync.keys import Identity
from stagesync.models.sync import SyncLog
from stagesync.staging.synchronizer import Synchronizer

router = APIRouter()


def get_synchronizer(request: Request) -> Synchronizer:
    return request.app.state.synchronizer


class SyncRecordRequest(BaseModel):
    table_name: str
    record_id: int


class SyncResponse(BaseModel):
    synchronized: int


class SyncStatusResponse(BaseModel):
    status: str
    kind: Optional[str]
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    records_synced: Optional[int]
    error_message: Optional[str]


class RecordStatusResponse(BaseModel):
    table_name: str
    record_id: int
    status: str
    pending_entries: int


class FailureDetail(BaseModel):
    table_name: str
    record_id: int
    cause: str


def _failure(exc: ProductionSyncError) -> dict:
    return FailureDetail(
        table_name=exc.identity[0],
        record_id=exc.identity[1],
        cause=str(exc.cause),
    ).model_dump()


@router.post("", response_model=SyncResponse)
def sync_all(synchronizer: Synchronizer = Depends(get_synchronizer)):
    """Replay every uncontained change logged before the oldest open commit."""
    try:
        return SyncResponse(synchronized=synchronizer.sync())
    except BatchSyncError as exc:
        raise HTTPException(
            status_code=502,
            detail={
                "error": "BatchSyncError",
                "synchronized": exc.synchronized,
                "failures": [_failure(f) for f in exc.failures],
            },
        )


@router.post("/record", response_model=SyncResponse)
def sync_record(
    request: SyncRecordRequest,
    synchronizer: Synchronizer = Depends(get_synchronizer),
):
    """Sync one record and clear the commits related to it."""
    try:
        count = synchronizer.sync_record(Identity(request.table_name, request.record_id))
    except (InvalidIdentity, UnknownTable) as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": type(exc).__name__, "message": str(exc)},
        )
    except ProductionSyncError as exc:
        raise HTTPException(
            status_code=502,
            detail={"error": "ProductionSyncError", "failures": [_failure(exc)]},
        )
    return SyncResponse(synchronized=count)


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(synchronizer: Synchronizer = Depends(get_synchronizer)):
    """Return the outcome of the most recent synchronizer run."""
    with Session(synchronizer.staging_engine) as session:
        log = session.exec(
            select(SyncLog).order_by(SyncLog.started_at.desc(), SyncLog.id.desc())
        ).first()
    if not log:
        return SyncStatusResponse(
            status="never_run",
            kind=None,
            started_at=None,
            finished_at=None,
            records_synced=None,
            error_message=None,
        )
    return SyncStatusResponse(
        status=log.status,
        kind=log.kind,
        started_at=log.started_at,
        finished_at=log.finished_at,
        records_synced=log.records_synced,
        error_message=log.error_message,
    )


@router.get("/records/{table_name}/{record_id}", response_model=RecordStatusResponse)
def record_status(
    table_name: str,
    record_id: int,
    synchronizer: Synchronizer = Depends(get_synchronizer),
):
    """Report how production relates to staging for one record."""
    identity = Identity(table_name, record_id)
    try:
        status = synchronizer.status(identity)
    except UnknownTable as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return RecordStatusResponse(
        table_name=table_name,
        record_id=record_id,
        status=status.value,
        pending_entries=len(synchronizer.log.matching(identity)),
    )


@router.get("/log")
def log_stats(synchronizer: Synchronizer = Depends(get_synchronizer)):
    """Entry counts and the current safe frontier."""
    return synchronizer.log.stats()
