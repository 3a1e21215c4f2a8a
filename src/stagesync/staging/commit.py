"""
Commit: a group of operations bracketed by START and END log entries.

Usage:
    commit = Commit.capture(log, lambda: edit_two_records(session))

    with Commit.open(log) as commit:
        edit_two_records(session)

    commit.entries   # re-read from the log on every access
"""
import inspect
import logging
import uuid
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional

from sqlmodel import Session, select

from stagesync.models.commit_entry import END_OPERATION, START_OPERATION, CommitEntry
from stagesync.staging.context import current_commit_id

logger = logging.getLogger(__name__)


class Commit:
    """Handle on one commit in the operation log."""

    def __init__(self, log, commit_id: str):
        self.log = log
        self.commit_id = commit_id

    def __repr__(self) -> str:
        return f"Commit({self.commit_id!r})"

    @classmethod
    def capture(cls, log, work: Callable[[], object]) -> "Commit":
        """
        Run `work` inside a new commit and return its handle.

        Raises:
            TypeError: if `work` is a coroutine function; nothing is logged.
        """
        if inspect.iscoroutinefunction(work):
            raise TypeError("Commit.capture() runs work synchronously; got a coroutine function")
        with cls.open(log) as commit:
            work()
        return commit

    @classmethod
    @contextmanager
    def open(cls, log) -> Iterator["Commit"]:
        """
        Context-manager form of capture().

        END is appended on every exit path, including when the block raises.
        Nested blocks get their own commit id; the enclosing id is restored
        when the inner block ends.
        """
        commit = cls(log, uuid.uuid4().hex)
        log.append(CommitEntry(operation=START_OPERATION, commit_id=commit.commit_id))
        token = current_commit_id.set(commit.commit_id)
        logger.debug("Commit %s started", commit.commit_id)
        try:
            yield commit
        finally:
            current_commit_id.reset(token)
            log.append(CommitEntry(operation=END_OPERATION, commit_id=commit.commit_id))
            logger.debug("Commit %s ended", commit.commit_id)

    @classmethod
    def find(cls, log, commit_id: str) -> Optional["Commit"]:
        """Re-attach a handle to an existing commit, or None if its START is gone."""
        with Session(log.engine) as s:
            start = s.exec(
                select(CommitEntry)
                .where(CommitEntry.commit_id == commit_id)
                .where(CommitEntry.operation == START_OPERATION)
            ).first()
        return cls(log, commit_id) if start else None

    @property
    def entries(self) -> List[CommitEntry]:
        """Live content entries tagged with this commit (shrinks as they are consumed)."""
        return self.log.members([self.commit_id])

    @property
    def is_closed(self) -> bool:
        return any(e.is_end() for e in self.log.for_commits([self.commit_id]))
