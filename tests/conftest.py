"""Shared test fixtures."""
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from stagesync.models.commit_entry import CommitEntry  # noqa: F401
from stagesync.models.sync import SyncLog  # noqa: F401
from stagesync.staging.log import OperationLog
from stagesync.staging.synchronizer import Synchronizer
from stagesync.staging.tracker import ChangeTracker

from records import OtherRecord, SourceRecord, Unversioned, create


def _memory_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="staging_engine")
def staging_engine_fixture():
    """In-memory staging database holding records, the log and the audit table."""
    engine = _memory_engine()
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="production_engine")
def production_engine_fixture():
    """Separate in-memory production database."""
    engine = _memory_engine()
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="tracker")
def tracker_fixture(staging_engine):
    """Logs ORM writes to the test record models on the staging engine."""
    tracker = ChangeTracker(staging_engine).track(SourceRecord, OtherRecord, Unversioned)
    yield tracker
    tracker.untrack()


@pytest.fixture(name="staging_session")
def staging_session_fixture(staging_engine, tracker) -> Generator[Session, None, None]:
    """Staging session; instances keep their attributes after commit/delete."""
    with Session(staging_engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture(name="log")
def log_fixture(staging_engine) -> OperationLog:
    return OperationLog(staging_engine)


@pytest.fixture(name="synchronizer")
def synchronizer_fixture(staging_engine, production_engine, tracker) -> Synchronizer:
    return Synchronizer(staging_engine, production_engine)


@pytest.fixture(name="source_record")
def source_record_fixture(staging_session) -> SourceRecord:
    """A staging record with one uncontained INSERT entry logged."""
    return create(staging_session, SourceRecord, name="source")


@pytest.fixture(name="other_record")
def other_record_fixture(staging_session) -> OtherRecord:
    return create(staging_session, OtherRecord, name="other")
