"""
Record identity: the (table_name, record_id) pair that correlates staging
rows, production rows and log entries.

derive_identity() is the single conversion point for every reference shape
the public entry points accept.
"""
from typing import NamedTuple, Optional

from stagesync.errors import InvalidIdentity


class Identity(NamedTuple):
    table_name: str
    record_id: int

    def __str__(self) -> str:
        return f"{self.table_name}#{self.record_id}"


def derive_identity(
    reference,
    table_name: Optional[str] = None,
    allow_nil: bool = False,
) -> Optional[Identity]:
    """
    Resolve a record reference to its canonical Identity.

    Accepted shapes:
        - Identity or a (table_name, record_id) tuple/list
        - a CommitEntry (content entries only)
        - a live SQLModel table instance (uses __tablename__ and its primary key)
        - a raw record id, together with an explicit `table_name`

    Raises:
        InvalidIdentity: if no pair can be derived and `allow_nil` is False.
    """
    from stagesync.models.commit_entry import CommitEntry

    resolved_table = None
    resolved_id = None

    if isinstance(reference, CommitEntry):
        resolved_table, resolved_id = reference.table_name, reference.record_id
    elif isinstance(reference, (tuple, list)):
        if len(reference) == 2:
            resolved_table, resolved_id = reference
    elif hasattr(reference, "__table__") and not isinstance(reference, type):
        resolved_table = reference.__table__.name
        resolved_id = _primary_key_value(reference)
    elif isinstance(reference, int) and not isinstance(reference, bool):
        resolved_table, resolved_id = table_name, reference

    if resolved_table and resolved_id is not None:
        return Identity(str(resolved_table), resolved_id)
    if allow_nil:
        return None
    raise InvalidIdentity(f"Cannot derive a record identity from {reference!r}")


def _primary_key_value(record):
    columns = list(record.__table__.primary_key.columns)
    if len(columns) != 1:
        return None
    return getattr(record, columns[0].key, None)
