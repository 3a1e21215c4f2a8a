"""Tests for Commit boundaries, membership and nesting."""
import pytest

from stagesync.models.commit_entry import END_OPERATION, START_OPERATION
from stagesync.staging.commit import Commit
from stagesync.staging.context import current_commit_id

from records import OtherRecord, create, touch


class TestCapture:
    def test_writes_start_and_end(self, log, staging_session, source_record):
        commit = Commit.capture(log, lambda: touch(staging_session, source_record))
        operations = [e.operation for e in log.for_commits([commit.commit_id])]
        assert operations[0] == START_OPERATION
        assert operations[-1] == END_OPERATION
        assert commit.is_closed

    def test_members_are_tagged(self, log, staging_session, source_record):
        commit = Commit.capture(log, lambda: touch(staging_session, source_record))
        assert [e.record_id for e in commit.entries] == [source_record.id]
        assert all(e.commit_id == commit.commit_id for e in commit.entries)

    def test_empty_commit(self, log):
        commit = Commit.capture(log, lambda: None)
        assert commit.entries == []
        assert commit.is_closed

    def test_rejects_coroutine_function(self, log):
        async def async_work():
            pass

        with pytest.raises(TypeError):
            Commit.capture(log, async_work)
        assert log.last_sequence() == 0

    def test_each_capture_gets_new_id(self, log):
        assert Commit.capture(log, lambda: None).commit_id != Commit.capture(log, lambda: None).commit_id

    def test_end_written_when_work_raises(self, log, staging_session, source_record):
        def failing_work():
            touch(staging_session, source_record)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            Commit.capture(log, failing_work)

        assert log.earliest_open_commit_sequence() is None
        assert current_commit_id.get() is None

    def test_entries_outside_capture_are_uncontained(self, log, staging_session, source_record):
        Commit.capture(log, lambda: None)
        touch(staging_session, source_record)
        assert all(e.commit_id is None for e in log.matching(source_record))

    def test_entries_are_live(self, log, staging_session, source_record):
        commit = Commit.capture(log, lambda: touch(staging_session, source_record))
        log.delete(commit.entries)
        assert commit.entries == []


class TestOpen:
    def test_commit_is_open_inside_block(self, log):
        with Commit.open(log) as commit:
            assert log.earliest_open_commit_sequence() is not None
            assert not commit.is_closed
        assert commit.is_closed

    def test_find_reattaches(self, log):
        commit = Commit.capture(log, lambda: None)
        assert Commit.find(log, commit.commit_id).commit_id == commit.commit_id
        assert Commit.find(log, "missing") is None


class TestNesting:
    def test_inner_commit_gets_inner_id(self, log, staging_session, source_record):
        with Commit.open(log) as outer:
            inner = Commit.capture(log, lambda: touch(staging_session, source_record))
        assert inner.commit_id != outer.commit_id
        assert [e.record_id for e in inner.entries] == [source_record.id]
        assert outer.entries == []

    def test_outer_id_applies_around_inner_block(self, log, staging_session, source_record):
        with Commit.open(log) as outer:
            before_inner = create(staging_session, OtherRecord, name="before")
            inner = Commit.capture(log, lambda: touch(staging_session, source_record))
            after_inner = create(staging_session, OtherRecord, name="after")

        outer_ids = {e.record_id for e in outer.entries}
        assert outer_ids == {before_inner.id, after_inner.id}
        assert {e.record_id for e in inner.entries} == {source_record.id}
        assert current_commit_id.get() is None
