"""Tests for ChangeTracker instrumentation."""
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from stagesync.models.commit_entry import (
    DELETE_OPERATION,
    INSERT_OPERATION,
    UPDATE_OPERATION,
)
from stagesync.staging.context import current_commit_id, current_session
from stagesync.staging.log import OperationLog
from stagesync.staging.tracker import ChangeTracker

from records import SourceRecord, create, destroy, touch


class TestChangeTracker:
    def test_logs_insert_update_delete(self, log, staging_session):
        record = create(staging_session, SourceRecord)
        touch(staging_session, record)
        destroy(staging_session, record)

        operations = [e.operation for e in log.matching(("source_records", record.id))]
        assert operations == [INSERT_OPERATION, UPDATE_OPERATION, DELETE_OPERATION]

    def test_tags_active_commit_and_session(self, log, staging_session):
        commit_token = current_commit_id.set("c1")
        session_token = current_session.set("s1")
        try:
            record = create(staging_session, SourceRecord)
        finally:
            current_session.reset(session_token)
            current_commit_id.reset(commit_token)

        entry = log.matching(record)[0]
        assert entry.commit_id == "c1"
        assert entry.session == "s1"

    def test_ignores_other_engines(self, log, tracker):
        other = create_engine(
            "sqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        SQLModel.metadata.create_all(other)
        with Session(other) as s:
            s.add(SourceRecord(name="elsewhere"))
            s.commit()

        assert log.content_entries() == []
        assert OperationLog(other).content_entries() == []

    def test_untrack_stops_logging(self, staging_engine, log):
        tracker = ChangeTracker(staging_engine).track(SourceRecord)
        tracker.untrack()
        with Session(staging_engine) as s:
            s.add(SourceRecord(name="untracked"))
            s.commit()
        assert log.content_entries() == []

    def test_entry_rolls_back_with_its_write(self, log, staging_engine, tracker):
        with Session(staging_engine) as s:
            s.add(SourceRecord(name="rolled back"))
            s.flush()
            s.rollback()
        assert log.content_entries() == []
