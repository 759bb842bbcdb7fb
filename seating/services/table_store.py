"""
In-memory table store for one event
"""

import logging
from typing import Dict, Iterable, List, Optional

from seating.core.errors import NotFoundError
from seating.schemas.table import SHAPE_KINDS, TableKind, TableRecord, TableShape

logger = logging.getLogger(__name__)

class TableStore:
    """Authoritative list of tables for one event.

    Lifecycle: created empty for an event, filled by ``load`` after every
    fetch from the record store. Records are immutable; external edits
    replace them whole. A capacity cut is applied as-is, existing
    assignments are never evicted here.
    """

    def __init__(self, event_id: str):
        self.event_id = event_id
        self._tables: Dict[str, TableRecord] = {}

    def load(self, tables: Iterable[TableRecord]) -> None:
        """Replace the held tables with a fresh snapshot"""
        self._tables = {table.id: table for table in tables}
        logger.debug(f"Loaded {len(self._tables)} tables for event {self.event_id}")

    def list_tables(self, event_id: Optional[str] = None) -> List[TableRecord]:
        """All tables in load order"""
        if event_id is not None and event_id != self.event_id:
            raise NotFoundError("Tables for event", event_id)
        return list(self._tables.values())

    def get(self, table_id: str) -> TableRecord:
        table = self._tables.get(table_id)
        if table is None:
            raise NotFoundError("Table", table_id)
        return table

    def contains(self, table_id: str) -> bool:
        return table_id in self._tables

    def replace(self, table: TableRecord) -> None:
        """Insert a new table or swap an existing record for an edited one"""
        self._tables[table.id] = table

    def remove(self, table_id: str) -> None:
        if self._tables.pop(table_id, None) is None:
            raise NotFoundError("Table", table_id)

    def __len__(self) -> int:
        return len(self._tables)

    @staticmethod
    def total_capacity(tables: Iterable[TableRecord]) -> int:
        """Sum of every capacity, regular and reserve alike"""
        return sum(table.capacity for table in tables)

    @staticmethod
    def table_kind(shape: TableShape) -> TableKind:
        return SHAPE_KINDS[TableShape(shape)]

    @staticmethod
    def is_reserve(table: TableRecord) -> bool:
        return TableStore.table_kind(table.shape) is TableKind.RESERVE
