"""Staging and production engine singletons."""
from sqlmodel import create_engine

from stagesync.config import get_settings

_staging_engine = None
_production_engine = None


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}  # SQLite only; safe for FastAPI
    return {}


def prepare_staging(engine) -> None:
    """Create the log and audit tables on a staging engine and migrate them."""
    from stagesync.db.migrations import run_migrations
    from stagesync.models.commit_entry import CommitEntry
    from stagesync.models.sync import SyncLog

    CommitEntry.__table__.create(engine, checkfirst=True)
    SyncLog.__table__.create(engine, checkfirst=True)
    run_migrations(engine)


def get_staging_engine():
    """Return the staging engine, creating it (and the log tables) on first call."""
    global _staging_engine
    if _staging_engine is None:
        url = get_settings().staging_url()
        _staging_engine = create_engine(url, connect_args=_connect_args(url))
        prepare_staging(_staging_engine)
    return _staging_engine


def get_production_engine():
    """Return the production engine. In ghost mode this is the staging engine."""
    global _production_engine
    settings = get_settings()
    if settings.ghost_mode:
        return get_staging_engine()
    if _production_engine is None:
        url = settings.production_url()
        _production_engine = create_engine(url, connect_args=_connect_args(url))
    return _production_engine
