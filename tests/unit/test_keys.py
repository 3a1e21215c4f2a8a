"""Tests for record identity derivation."""
import pytest

from stagesync.errors import InvalidIdentity
from stagesync.keys import Identity, derive_identity
from stagesync.models.commit_entry import INSERT_OPERATION, START_OPERATION, CommitEntry

from records import SourceRecord


class TestDeriveIdentity:
    def test_identity_passes_through(self):
        identity = Identity("source_records", 3)
        assert derive_identity(identity) == identity

    def test_plain_pair(self):
        assert derive_identity(("source_records", 7)) == Identity("source_records", 7)

    def test_content_entry(self):
        entry = CommitEntry(operation=INSERT_OPERATION, table_name="source_records", record_id=9)
        assert derive_identity(entry) == Identity("source_records", 9)

    def test_live_record(self):
        record = SourceRecord(id=5, name="x")
        assert derive_identity(record) == Identity("source_records", 5)

    def test_raw_id_with_table_name(self):
        assert derive_identity(11, table_name="source_records") == Identity("source_records", 11)

    def test_raw_id_without_table_name_raises(self):
        with pytest.raises(InvalidIdentity):
            derive_identity(11)

    def test_unsaved_record_raises(self):
        with pytest.raises(InvalidIdentity):
            derive_identity(SourceRecord(name="never saved"))

    def test_boundary_entry_raises(self):
        with pytest.raises(InvalidIdentity):
            derive_identity(CommitEntry(operation=START_OPERATION, commit_id="abc"))

    @pytest.mark.parametrize("reference", ["source_records", None, 3.5, {"id": 1}, ("a", 1, 2)])
    def test_unrecognised_shapes_raise(self, reference):
        with pytest.raises(InvalidIdentity):
            derive_identity(reference)

    def test_allow_nil_returns_none(self):
        assert derive_identity(None, allow_nil=True) is None

    def test_str_is_readable(self):
        assert str(Identity("source_records", 4)) == "source_records#4"

    def test_model_class_is_not_a_record(self):
        with pytest.raises(InvalidIdentity):
            derive_identity(SourceRecord)
