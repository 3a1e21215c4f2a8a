"""Per-record sync status: how production relates to staging."""
from enum import Enum
from typing import Any, Dict, Optional

from stagesync.keys import derive_identity
from stagesync.models.commit_entry import CommitEntry


class SyncStatus(str, Enum):
    NEW = "new"
    MODIFIED = "modified"
    NOT_MODIFIED = "not_modified"


class StatusResolver:
    """
    Compares a record's staging and production representations.

    Pure read: never writes to either store and tolerates either row being
    absent.
    """

    def __init__(self, staging, production, freshness_column: str = "updated_at"):
        """
        Args:
            staging: RecordStore for the staging database.
            production: RecordStore for the production database.
            freshness_column: modification marker compared between the two copies.
        """
        self.staging = staging
        self.production = production
        self.freshness_column = freshness_column

    def status(self, reference, table_name: Optional[str] = None) -> SyncStatus:
        identity = derive_identity(reference, table_name=table_name)

        production_row = self.production.lookup(*identity)
        if production_row is None:
            return SyncStatus.NEW

        staging_row = self.staging.lookup(*identity)
        if staging_row is None and _is_record_instance(reference):
            # Deleted from staging; the caller's instance still holds its last state.
            staging_row = _instance_attributes(reference)
        if staging_row is None:
            return SyncStatus.NOT_MODIFIED

        if self._is_newer(staging_row, production_row):
            return SyncStatus.MODIFIED
        return SyncStatus.NOT_MODIFIED

    def _is_newer(self, staging_row: Dict[str, Any], production_row: Dict[str, Any]) -> bool:
        column = self.freshness_column
        if column in staging_row and column in production_row:
            staged, produced = staging_row[column], production_row[column]
            if staged is None or produced is None:
                return staged is not None
            return staged > produced
        shared = set(staging_row) & set(production_row)
        return any(staging_row[k] != production_row[k] for k in shared)


def _instance_attributes(record) -> Dict[str, Any]:
    return {column.key: getattr(record, column.key, None) for column in record.__table__.columns}


def _is_record_instance(reference) -> bool:
    return hasattr(reference, "__table__") and not isinstance(reference, CommitEntry)
