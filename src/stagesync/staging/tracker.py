"""
ChangeTracker appends a content entry for every ORM write to a tracked
staging model.

Entries are written with the flushing connection, so they share the
mutation's transaction and exist before control returns to the caller.
Only ORM unit-of-work writes are seen; bulk Core statements bypass mapper
events and must be logged by hand through OperationLog.append().
"""
import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import event, insert

from stagesync.keys import derive_identity
from stagesync.models.commit_entry import (
    DELETE_OPERATION,
    INSERT_OPERATION,
    UPDATE_OPERATION,
    CommitEntry,
)
from stagesync.staging.context import current_commit_id, current_session

logger = logging.getLogger(__name__)

_EVENTS = (
    ("after_insert", INSERT_OPERATION),
    ("after_update", UPDATE_OPERATION),
    ("after_delete", DELETE_OPERATION),
)


class ChangeTracker:
    """Registers mapper listeners that log staging writes made on `engine`."""

    def __init__(self, engine):
        self.engine = engine
        self._listeners: List[Tuple[type, str, object]] = []

    def track(self, *models) -> "ChangeTracker":
        for model in models:
            for event_name, operation in _EVENTS:
                listener = self._listener(operation)
                event.listen(model, event_name, listener)
                self._listeners.append((model, event_name, listener))
            logger.debug("Tracking %s", model.__name__)
        return self

    def untrack(self) -> None:
        for model, event_name, listener in self._listeners:
            event.remove(model, event_name, listener)
        self._listeners.clear()

    def _listener(self, operation: str):
        def _log_write(mapper, connection, target):
            if connection.engine is not self.engine:
                return
            identity = derive_identity(target)
            connection.execute(
                insert(CommitEntry.__table__).values(
                    operation=operation,
                    table_name=identity.table_name,
                    record_id=identity.record_id,
                    commit_id=current_commit_id.get(),
                    session=current_session.get(),
                    created_at=datetime.utcnow(),
                )
            )

        return _log_write
