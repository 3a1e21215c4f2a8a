"""
Schema migrations for the operation log.

Each migration is idempotent and goes through the SQLAlchemy inspector and
DDL constructs, so it runs on any staging dialect SQLAlchemy supports.

Called from prepare_staging() after the tables are created: a fresh table
already has every index, while a log table created before an index was
declared on CommitEntry gets it added here.
"""
import logging

from sqlalchemy import inspect

from stagesync.models.commit_entry import CommitEntry

logger = logging.getLogger(__name__)


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times; checks index existence before creating.

    Args:
        engine: SQLAlchemy engine of the staging database.
    """
    _create_missing_indexes(engine, CommitEntry.__table__)


def _create_missing_indexes(engine, table) -> None:
    """Create every index declared on `table` that the database lacks.

    Args:
        engine: SQLAlchemy engine (or connection) to inspect and alter.
        table: SQLAlchemy Table whose declared indexes should exist.
    """
    existing = {ix["name"] for ix in inspect(engine).get_indexes(table.name)}
    for index in sorted(table.indexes, key=lambda ix: str(ix.name)):
        if index.name not in existing:
            logger.info("Creating index %s on %s", index.name, table.name)
            index.create(engine)
