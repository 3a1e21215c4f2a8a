"""
OperationLog: append-only store of CommitEntry rows in the staging database.

The entry id is the total order over every operation. Entries are never
updated: corrections happen only by appending new entries or deleting
consumed ones.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, delete, func
from sqlalchemy.orm import aliased
from sqlmodel import Session, col, select

from stagesync.keys import Identity, derive_identity
from stagesync.models.commit_entry import (
    CONTENT_OPERATIONS,
    END_OPERATION,
    START_OPERATION,
    CommitEntry,
)

logger = logging.getLogger(__name__)


def _content_filter():
    return and_(
        col(CommitEntry.table_name).is_not(None),
        col(CommitEntry.record_id).is_not(None),
    )


class OperationLog:
    """Query and mutation surface over the sync_commit_entries table."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine of the staging database (which holds the log).
        """
        self.engine = engine

    # ─── Mutation ─────────────────────────────────────────────────────────────

    def append(self, entry: CommitEntry) -> CommitEntry:
        """
        Persist `entry`, assigning it the next sequence number.

        Raises:
            ValueError: for a content operation without a full identity, or a
                boundary entry that carries one.
        """
        if entry.operation in CONTENT_OPERATIONS and entry.identity is None:
            raise ValueError(
                f"{entry.operation} entries need both table_name and record_id"
            )
        if entry.operation not in CONTENT_OPERATIONS and (
            entry.table_name is not None or entry.record_id is not None
        ):
            raise ValueError(f"{entry.operation} entries cannot reference a record")

        with Session(self.engine, expire_on_commit=False) as s:
            s.add(entry)
            s.commit()
            s.refresh(entry)
        logger.debug(
            "Appended %s entry %s (commit=%s)", entry.operation, entry.id, entry.commit_id
        )
        return entry

    def delete(self, entries: Iterable[CommitEntry]) -> int:
        """Delete exactly the given entries. Returns the number removed."""
        ids = sorted({e.id for e in entries if e.id is not None})
        if not ids:
            return 0
        with Session(self.engine) as s:
            result = s.exec(delete(CommitEntry).where(col(CommitEntry.id).in_(ids)))
            s.commit()
        logger.debug("Deleted %d log entries", result.rowcount)
        return result.rowcount

    # ─── Queries ──────────────────────────────────────────────────────────────

    def matching(self, reference) -> List[CommitEntry]:
        """All content entries for a record identity, in sequence order."""
        identity = derive_identity(reference)
        statement = (
            select(CommitEntry)
            .where(CommitEntry.table_name == identity.table_name)
            .where(CommitEntry.record_id == identity.record_id)
            .order_by(CommitEntry.id)
        )
        return self._all(statement)

    def content_entries(self) -> List[CommitEntry]:
        return self._all(select(CommitEntry).where(_content_filter()).order_by(CommitEntry.id))

    def uncontained(self, before: Optional[int] = None) -> List[CommitEntry]:
        """Content entries with no commit id, optionally only those below `before`."""
        statement = (
            select(CommitEntry)
            .where(_content_filter())
            .where(col(CommitEntry.commit_id).is_(None))
        )
        if before is not None:
            statement = statement.where(CommitEntry.id < before)
        return self._all(statement.order_by(CommitEntry.id))

    def in_session(self, session_token: str, after: int = 0) -> List[CommitEntry]:
        """Uncontained content entries tagged with a sync_now token, above `after`."""
        statement = (
            select(CommitEntry)
            .where(_content_filter())
            .where(col(CommitEntry.commit_id).is_(None))
            .where(CommitEntry.session == session_token)
            .where(CommitEntry.id > after)
            .order_by(CommitEntry.id)
        )
        return self._all(statement)

    def for_commits(self, commit_ids: Iterable[str]) -> List[CommitEntry]:
        """Every entry (content and boundary) belonging to the given commits."""
        ids = list(set(commit_ids))
        if not ids:
            return []
        statement = (
            select(CommitEntry)
            .where(col(CommitEntry.commit_id).in_(ids))
            .order_by(CommitEntry.id)
        )
        return self._all(statement)

    def members(self, commit_ids: Iterable[str]) -> List[CommitEntry]:
        """Content entries belonging to the given commits."""
        return [e for e in self.for_commits(commit_ids) if e.is_content]

    def identities_in(self, commit_ids: Iterable[str]) -> Set[Identity]:
        return {e.identity for e in self.members(commit_ids)}

    def commits_for(self, identities: Iterable[Identity]) -> Set[str]:
        """Commit ids referenced by any content entry of the given identities."""
        commit_ids = set()
        for identity in set(identities):
            statement = (
                select(CommitEntry.commit_id)
                .where(CommitEntry.table_name == identity.table_name)
                .where(CommitEntry.record_id == identity.record_id)
                .where(col(CommitEntry.commit_id).is_not(None))
                .distinct()
            )
            with Session(self.engine) as s:
                commit_ids.update(s.exec(statement).all())
        return commit_ids

    def contained_identities(self) -> Set[Identity]:
        """Identities with at least one entry tagged with a commit id."""
        statement = (
            select(CommitEntry.table_name, CommitEntry.record_id)
            .where(_content_filter())
            .where(col(CommitEntry.commit_id).is_not(None))
            .distinct()
        )
        with Session(self.engine) as s:
            return {Identity(t, r) for t, r in s.exec(statement).all()}

    def earliest_open_commit_sequence(self) -> Optional[int]:
        """Sequence of the oldest START entry with no matching END, or None."""
        end = aliased(CommitEntry)
        ended = (
            select(end.id)
            .where(end.operation == END_OPERATION)
            .where(end.commit_id == CommitEntry.commit_id)
            .exists()
        )
        statement = (
            select(func.min(CommitEntry.id))
            .where(CommitEntry.operation == START_OPERATION)
            .where(~ended)
        )
        with Session(self.engine) as s:
            return s.exec(statement).one()

    def open_commit_ids(self) -> Set[str]:
        starts = {
            e.commit_id
            for e in self._all(select(CommitEntry).where(CommitEntry.operation == START_OPERATION))
        }
        ends = {
            e.commit_id
            for e in self._all(select(CommitEntry).where(CommitEntry.operation == END_OPERATION))
        }
        return starts - ends

    def last_sequence(self) -> int:
        """Highest sequence number currently in the log, or 0 if empty."""
        with Session(self.engine) as s:
            return s.exec(select(func.max(CommitEntry.id))).one() or 0

    def stats(self) -> Dict[str, Any]:
        """Entry counts for status reporting."""
        with Session(self.engine) as s:
            total = s.exec(select(func.count(CommitEntry.id))).one()
            content = s.exec(select(func.count(CommitEntry.id)).where(_content_filter())).one()
            uncontained = s.exec(
                select(func.count(CommitEntry.id))
                .where(_content_filter())
                .where(col(CommitEntry.commit_id).is_(None))
            ).one()
        return {
            "total_entries": total,
            "content_entries": content,
            "uncontained_entries": uncontained,
            "open_commits": len(self.open_commit_ids()),
            "safe_frontier": self.earliest_open_commit_sequence(),
        }

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _all(self, statement) -> List[CommitEntry]:
        with Session(self.engine, expire_on_commit=False) as s:
            return list(s.exec(statement).all())
