"""Sync audit log model."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncLog(SQLModel, table=True):
    """Records each synchronizer run for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: str = Field(default="sync", index=True)  # "sync", "sync_record", "sync_now"
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    status: str = "running"  # "running", "success", "partial", "error"
    records_synced: int = 0
    error_message: Optional[str] = None
