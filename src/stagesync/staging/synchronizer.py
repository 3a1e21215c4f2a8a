"""
Synchronizer: replays logged staging operations onto production.

Three entry points:
  sync_record(ref)  one identity, regardless of commits. Afterwards every
                    commit connected to it through shared records is torn
                    down.
  sync()            every uncontained entry below the safe frontier (the
                    START of the oldest open commit), skipping identities
                    that belong to any commit.
  sync_now(work)    runs `work` and immediately syncs the uncontained
                    entries it produced, and only those.

The log records *that* a record changed, not its content: saves copy the
staging row as it is at apply time.

Each run is recorded in SyncLog. When production I/O fails for an
identity its entries are kept for the next run; batch runs carry on with
the other identities and raise BatchSyncError at the end.
"""
import inspect
import logging
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from stagesync.errors import (
    BatchSyncError,
    ProductionSyncError,
    SyncBlockRequired,
    UnknownTable,
)
from stagesync.keys import Identity, derive_identity
from stagesync.models.commit_entry import CommitEntry
from stagesync.models.sync import SyncLog
from stagesync.staging.closure import related_commits
from stagesync.staging.context import current_session
from stagesync.staging.log import OperationLog
from stagesync.status import StatusResolver, SyncStatus
from stagesync.stores import RecordStore

logger = logging.getLogger(__name__)


class Synchronizer:
    """Replays the staging operation log onto the production database."""

    def __init__(
        self,
        staging_engine,
        production_engine,
        *,
        ghost_mode: bool = False,
        freshness_column: str = "updated_at",
    ):
        """
        Args:
            staging_engine: engine of the staging database (holds the log).
            production_engine: engine of the production database.
            ghost_mode: staging and production are the same database; commit
                grouping and the safe frontier are ignored by sync().
            freshness_column: modification marker used for status comparison.
        """
        self.staging_engine = staging_engine
        self.production_engine = production_engine
        self.ghost_mode = ghost_mode
        self.log = OperationLog(staging_engine)
        self.staging = RecordStore(staging_engine)
        self.production = RecordStore(production_engine)
        self.resolver = StatusResolver(self.staging, self.production, freshness_column)

    @classmethod
    def from_settings(cls, settings=None) -> "Synchronizer":
        from stagesync.config import get_settings
        from stagesync.db.engine import get_production_engine, get_staging_engine

        settings = settings or get_settings()
        return cls(
            get_staging_engine(),
            get_production_engine(),
            ghost_mode=settings.ghost_mode,
            freshness_column=settings.freshness_column,
        )

    def status(self, reference, table_name: Optional[str] = None) -> SyncStatus:
        return self.resolver.status(reference, table_name=table_name)

    # ─── Public operations ────────────────────────────────────────────────────

    def sync_record(self, reference, table_name: Optional[str] = None) -> int:
        """
        Sync one record and tear down every commit related to it.

        Returns:
            Number of production records mutated (0 or 1).

        Raises:
            InvalidIdentity: before touching the log, if `reference` is unusable.
            UnknownTable: before touching the log, if staging has no such table.
            ProductionSyncError: if applying to production fails; nothing is
                deleted from the log in that case.
        """
        identity = derive_identity(reference, table_name=table_name)
        self.staging.table(identity.table_name)
        run = self._create_sync_log("sync_record")

        try:
            entries = self.log.matching(identity)
            count = self._apply(identity, entries)

            seed = {e.commit_id for e in entries if e.commit_id is not None}
            commit_ids, related = related_commits(
                seed, self.log.identities_in, self.log.commits_for
            )
            consumed = {e.id: e for e in entries}
            consumed.update((e.id, e) for e in self.log.for_commits(commit_ids))
            self.log.delete(consumed.values())
        except Exception as exc:
            self._finish_sync_log(run, status="error", error_message=str(exc))
            raise

        if commit_ids:
            logger.info(
                "Cleared %d related commit(s) touching %d record(s) after syncing %s",
                len(commit_ids), len(related), identity,
            )
        self._finish_sync_log(run, status="success", records_synced=count)
        return count

    def sync(self) -> int:
        """
        Sync every uncontained entry logged before the oldest open commit.

        Returns:
            Number of production records mutated.

        Raises:
            BatchSyncError: after attempting every identity, if any failed.
        """
        run = self._create_sync_log("sync")

        if self.ghost_mode:
            entries = self.log.content_entries()
            withheld: Set[Identity] = set()
        else:
            frontier = self.log.earliest_open_commit_sequence()
            if frontier is not None:
                logger.info("Commit in progress; withholding entries from #%d on", frontier)
            entries = self.log.uncontained(before=frontier)
            withheld = self.log.contained_identities()

        count, failures = self._replay(entries, withheld)
        if self.ghost_mode:
            self._clear_finished_commits({e.commit_id for e in entries if e.commit_id})

        return self._finish_batch(run, count, failures)

    def sync_now(self, work: Optional[Callable] = None, *args, **kwargs) -> int:
        """
        Run `work(*args, **kwargs)` and sync the records it changed outside
        of any commit.

        Raises:
            SyncBlockRequired: if `work` is missing, not callable, or a coroutine
                function.
            BatchSyncError: if any of the affected records failed to sync.
        """
        if work is None or not callable(work):
            raise SyncBlockRequired("sync_now() needs a callable to run")
        if inspect.iscoroutinefunction(work):
            raise SyncBlockRequired("sync_now() runs work synchronously; got a coroutine function")

        before = self.log.last_sequence()
        token = uuid.uuid4().hex
        reset = current_session.set(token)
        try:
            work(*args, **kwargs)
        finally:
            current_session.reset(reset)

        run = self._create_sync_log("sync_now")
        entries = self.log.in_session(token, after=before)
        count, failures = self._replay(entries, self.log.contained_identities())
        return self._finish_batch(run, count, failures)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _replay(
        self, entries: Iterable[CommitEntry], withheld: Set[Identity]
    ) -> Tuple[int, List[ProductionSyncError]]:
        """Apply and consume entries grouped by identity, continuing past failures."""
        grouped: Dict[Identity, List[CommitEntry]] = {}
        for entry in entries:
            if entry.identity in withheld:
                continue
            grouped.setdefault(entry.identity, []).append(entry)

        count = 0
        failures: List[ProductionSyncError] = []
        for identity, group in grouped.items():
            try:
                count += self._apply(identity, group)
            except ProductionSyncError as exc:
                logger.error("%s", exc)
                failures.append(exc)
                continue
            self.log.delete(group)
        return count, failures

    def _apply(self, identity: Identity, entries: List[CommitEntry]) -> int:
        """Apply the effective operation for `identity`. Returns 1 if production changed."""
        try:
            if not entries:
                mutated = self._reconcile(identity)
            elif entries[-1].is_delete():
                mutated = self.production.delete(*identity)
            else:
                mutated = self._copy(identity, self.staging.lookup(*identity))
        except (SQLAlchemyError, UnknownTable) as exc:
            raise ProductionSyncError(identity, exc) from exc

        logger.debug("Applied %s (%s)", identity, "changed" if mutated else "no-op")
        return 1 if mutated else 0

    def _reconcile(self, identity: Identity) -> bool:
        """No pending entries: bring production in line by status alone."""
        staging_row = self.staging.lookup(*identity)
        if staging_row is None:
            return self.production.delete(*identity)
        if self.resolver.status(identity) == SyncStatus.NOT_MODIFIED:
            return False
        return self._copy(identity, staging_row)

    def _copy(self, identity: Identity, staging_row) -> bool:
        if staging_row is None:
            # Saved, then removed without a logged delete.
            return self.production.delete(*identity)
        self.production.save(identity.table_name, staging_row)
        return True

    def _clear_finished_commits(self, commit_ids: Set[str]) -> None:
        finished = commit_ids - self.log.open_commit_ids()
        emptied = [cid for cid in finished if not self.log.members([cid])]
        self.log.delete(self.log.for_commits(emptied))

    def _finish_batch(
        self, run: SyncLog, count: int, failures: List[ProductionSyncError]
    ) -> int:
        if failures:
            self._finish_sync_log(
                run,
                status="partial",
                records_synced=count,
                error_message="; ".join(str(f) for f in failures),
            )
            raise BatchSyncError(count, failures)

        logger.info("%s synchronized %d record(s)", run.kind, count)
        self._finish_sync_log(run, status="success", records_synced=count)
        return count

    def _create_sync_log(self, kind: str) -> SyncLog:
        log = SyncLog(kind=kind, started_at=datetime.utcnow(), status="running")
        with Session(self.staging_engine) as s:
            s.add(log)
            s.commit()
            s.refresh(log)
        return log

    def _finish_sync_log(
        self,
        log: SyncLog,
        *,
        status: str,
        records_synced: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        with Session(self.staging_engine) as s:
            db_log = s.get(SyncLog, log.id)
            db_log.status = status
            db_log.finished_at = datetime.utcnow()
            db_log.records_synced = records_synced
            db_log.error_message = error_message
            s.add(db_log)
            s.commit()
