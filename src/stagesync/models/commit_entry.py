"""Operation log entry model: one row per content mutation or commit boundary."""
from datetime import datetime
from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

START_OPERATION = "commit_start"
END_OPERATION = "commit_end"
INSERT_OPERATION = "insert"
UPDATE_OPERATION = "update"
DELETE_OPERATION = "delete"

BOUNDARY_OPERATIONS = (START_OPERATION, END_OPERATION)
SAVE_OPERATIONS = (INSERT_OPERATION, UPDATE_OPERATION)
CONTENT_OPERATIONS = SAVE_OPERATIONS + (DELETE_OPERATION,)


class CommitEntry(SQLModel, table=True):
    """
    A single log entry. `id` is the global sequence number.

    sqlite_autoincrement keeps SQLite from handing out the id of a deleted
    tail row again, so sequence numbers are never reused.
    """

    __tablename__ = "sync_commit_entries"
    __table_args__ = (
        # Closure and matching queries filter on identity and commit together
        Index("ix_sync_commit_entries_identity", "table_name", "record_id"),
        Index("ix_sync_commit_entries_commit_operation", "commit_id", "operation"),
        {"sqlite_autoincrement": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    operation: str = Field(index=True)  # one of the *_OPERATION constants
    commit_id: Optional[str] = Field(default=None, index=True)
    table_name: Optional[str] = Field(default=None, index=True)
    record_id: Optional[int] = Field(default=None, index=True)
    session: Optional[str] = Field(default=None, index=True)  # sync_now scope token
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def identity(self):
        from stagesync.keys import Identity

        if self.table_name is None or self.record_id is None:
            return None
        return Identity(self.table_name, self.record_id)

    @property
    def is_content(self) -> bool:
        return self.identity is not None

    @property
    def is_contained(self) -> bool:
        return self.commit_id is not None

    def is_start(self) -> bool:
        return self.operation == START_OPERATION

    def is_end(self) -> bool:
        return self.operation == END_OPERATION

    def is_insert(self) -> bool:
        return self.operation == INSERT_OPERATION

    def is_update(self) -> bool:
        return self.operation == UPDATE_OPERATION

    def is_delete(self) -> bool:
        return self.operation == DELETE_OPERATION
