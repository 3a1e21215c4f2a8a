"""Exceptions raised by the change log and synchronizer."""
from typing import List, Optional


class StagesyncError(Exception):
    """Base class for every error this package raises on purpose."""


# ── Configuration ─────────────────────────────────────────────────────────────

class StagingDatabaseNotSet(StagesyncError):
    """Raised when the staging database URL is read but was never configured."""


class ProductionDatabaseNotSet(StagesyncError):
    """Raised when the production database URL is read but was never configured."""


# ── Caller errors ─────────────────────────────────────────────────────────────

class SyncBlockRequired(StagesyncError):
    """Raised when sync_now() is called without any work to run."""


class InvalidIdentity(StagesyncError):
    """Raised when a (table_name, record_id) pair cannot be derived from a reference."""


class UnknownTable(StagesyncError):
    """Raised when a record store cannot find the requested table."""


# ── Replay failures ───────────────────────────────────────────────────────────

class ProductionSyncError(StagesyncError):
    """
    Raised when applying an identity's effective operation to production fails.

    The identity's log entries are left in place so a later run retries them.
    """

    def __init__(self, identity, cause: Optional[BaseException] = None):
        self.identity = identity
        self.cause = cause
        super().__init__(f"Failed to sync {identity[0]}#{identity[1]}: {cause}")


class BatchSyncError(StagesyncError):
    """
    Raised by batch operations after every selected identity was attempted
    and at least one of them failed.
    """

    def __init__(self, synchronized: int, failures: List[ProductionSyncError]):
        self.synchronized = synchronized
        self.failures = failures
        super().__init__(
            f"{len(failures)} record(s) failed to sync "
            f"({synchronized} synchronized)"
        )
