"""
In-memory record store.

Used by tests, demos and single-process deployments. All operations run
under one re-entrant lock; a transaction holds the lock for its whole body
and, if the body raises, undoes the writes it made by replaying an undo
log backwards. Transactions nest: an inner failure undoes only its own
writes.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

from vetscheduler.errors import NotFound, ValidationError
from vetscheduler.store.base import TABLES, Filters, RecordOperations, RecordStore, Row, matches_filters
from vetscheduler.utils import utc_now

logger = logging.getLogger(__name__)

# (table, row id, row before the write or None when the write created it)
UndoEntry = tuple[str, str, Optional[Row]]


class InMemoryRecordStore(RecordStore):
    """Dict-backed store keyed by table name then row id."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, Row]] = {name: {} for name in TABLES}
        self._lock = threading.RLock()
        self._undo: Optional[list[UndoEntry]] = None

    def _table(self, table: str) -> dict[str, Row]:
        if table not in self._tables:
            raise ValueError(f"Unknown table {table!r}. Known tables: {list(self._tables)}")
        return self._tables[table]

    def _record(self, table: str, record_id: str, previous: Optional[Row]) -> None:
        if self._undo is not None:
            self._undo.append((table, record_id, previous))

    def _rollback_to(self, mark: int) -> None:
        assert self._undo is not None
        for table, record_id, previous in reversed(self._undo[mark:]):
            rows = self._tables[table]
            if previous is None:
                rows.pop(record_id, None)
            else:
                rows[record_id] = previous
        del self._undo[mark:]

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        with self._lock:
            rows = [dict(row) for row in self._table(table).values() if matches_filters(row, filters)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)))
        return rows

    def get(self, table: str, record_id: str) -> Optional[Row]:
        with self._lock:
            row = self._table(table).get(record_id)
            return dict(row) if row is not None else None

    def insert(self, table: str, record: Row) -> Row:
        with self._lock:
            rows = self._table(table)
            row = dict(record)
            row.setdefault("id", str(uuid.uuid4()))
            if row["id"] in rows:
                raise ValidationError({"id": f"{table} row {row['id']!r} already exists"})
            now = utc_now()
            row.setdefault("created_at", now)
            row.setdefault("updated_at", now)
            self._record(table, row["id"], None)
            rows[row["id"]] = row
            return dict(row)

    def update(self, table: str, record_id: str, patch: Row) -> Row:
        with self._lock:
            rows = self._table(table)
            if record_id not in rows:
                raise NotFound(table, record_id)
            self._record(table, record_id, rows[record_id])
            row = dict(rows[record_id])
            row.update({k: v for k, v in patch.items() if k != "id"})
            row["updated_at"] = utc_now()
            rows[record_id] = row
            return dict(row)

    def delete(self, table: str, record_id: str) -> None:
        with self._lock:
            rows = self._table(table)
            if record_id not in rows:
                raise NotFound(table, record_id)
            self._record(table, record_id, rows.pop(record_id))

    @contextmanager
    def transaction(self) -> Iterator[RecordOperations]:
        with self._lock:
            outermost = self._undo is None
            if outermost:
                self._undo = []
            mark = len(self._undo)
            try:
                yield self
            except BaseException:
                self._rollback_to(mark)
                logger.debug("In-memory transaction rolled back")
                raise
            finally:
                if outermost:
                    self._undo = None

    def reset(self) -> None:
        """Drop all rows. Used by test fixtures for isolation."""
        with self._lock:
            for rows in self._tables.values():
                rows.clear()
