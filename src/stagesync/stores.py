"""
RecordStore: row-level lookup/save/delete against one database.

Staging and production are both RecordStores over their own engine. Work
goes through SQLAlchemy Core rather than ORM sessions, so production writes
never fire the staging change tracker's mapper events.

Tables come from the SQLModel metadata when the model is imported, otherwise
they are reflected from the database on first use.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import MetaData, Table, delete, insert, select, update
from sqlalchemy.exc import NoSuchTableError
from sqlmodel import SQLModel

from stagesync.errors import UnknownTable

logger = logging.getLogger(__name__)


class RecordStore:
    """Generic access to the replicated tables of one database."""

    def __init__(self, engine, metadata: Optional[MetaData] = None):
        """
        Args:
            engine: SQLAlchemy engine for this store.
            metadata: MetaData holding known tables (defaults to SQLModel's).
        """
        self.engine = engine
        self.metadata = metadata if metadata is not None else SQLModel.metadata
        self._reflected = MetaData()

    def table(self, table_name: str) -> Table:
        """Return the Table for `table_name`, reflecting it if necessary."""
        known = self.metadata.tables.get(table_name)
        if known is not None:
            return known
        reflected = self._reflected.tables.get(table_name)
        if reflected is not None:
            return reflected
        try:
            return Table(table_name, self._reflected, autoload_with=self.engine)
        except NoSuchTableError as exc:
            raise UnknownTable(f"No table named {table_name!r}") from exc

    def lookup(self, table_name: str, record_id) -> Optional[Dict[str, Any]]:
        """Return the row as a column → value dict, or None if absent."""
        table = self.table(table_name)
        pk = _primary_key(table)
        with self.engine.connect() as conn:
            row = conn.execute(select(table).where(pk == record_id)).mappings().first()
        return dict(row) if row is not None else None

    def exists(self, table_name: str, record_id) -> bool:
        return self.lookup(table_name, record_id) is not None

    def save(self, table_name: str, attributes: Dict[str, Any]) -> None:
        """Insert or update the row identified by the primary key in `attributes`."""
        table = self.table(table_name)
        pk = _primary_key(table)
        values = {k: v for k, v in attributes.items() if k in table.c}
        record_id = values[pk.key]

        with self.engine.begin() as conn:
            existing = conn.execute(select(pk).where(pk == record_id)).first()
            if existing:
                conn.execute(update(table).where(pk == record_id).values(**values))
            else:
                conn.execute(insert(table).values(**values))
        logger.debug("Saved %s#%s", table_name, record_id)

    def delete(self, table_name: str, record_id) -> bool:
        """Delete the row. Returns True if a row was removed."""
        table = self.table(table_name)
        pk = _primary_key(table)
        with self.engine.begin() as conn:
            result = conn.execute(delete(table).where(pk == record_id))
        logger.debug("Deleted %s#%s (%d row(s))", table_name, record_id, result.rowcount)
        return result.rowcount > 0


def _primary_key(table: Table):
    columns = list(table.primary_key.columns)
    if len(columns) != 1:
        raise UnknownTable(
            f"Table {table.name!r} needs exactly one primary key column to be synced"
        )
    return columns[0]
