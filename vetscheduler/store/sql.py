"""
SQLAlchemy-backed record store.

Tables are declared with SQLAlchemy Core. Bookings store their end instant
next to their start so overlap reads are a plain range query. A partial
unique index on ``(professional_id, scheduled_at)`` restricted to active
statuses rejects two active bookings starting at the same instant.

Commits for one professional are serialized by the database, not only by
the in-process lock: the committer reads the professional row with
``SELECT ... FOR UPDATE``, and SQLite connections open every transaction
with ``BEGIN IMMEDIATE``, which takes the database write lock up front.
On PostgreSQL a SERIALIZABLE transaction that loses a race on bookings
fails with SQLSTATE 40001; that surfaces as ``SlotConflict``.

Timestamps are stored as naive UTC and returned timezone-aware.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Time,
    and_,
    create_engine,
    delete,
    event,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from vetscheduler.errors import NotFound, SlotConflict, StoreUnavailable, ValidationError
from vetscheduler.store.base import BOOKINGS, Filters, RecordOperations, RecordStore, Row, normalize_conditions
from vetscheduler.utils import utc_now

logger = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator):
    """Aware datetimes in, aware UTC datetimes out."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime {value!r} cannot be stored; attach a timezone")
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


metadata = MetaData()


def _timestamps() -> list[Column]:
    return [
        Column("created_at", UTCDateTime, nullable=False),
        Column("updated_at", UTCDateTime, nullable=False),
    ]


professionals = Table(
    "professionals",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(200), nullable=False),
    Column("timezone", String(64), nullable=True),
    *_timestamps(),
)

clients = Table(
    "clients",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("name", String(200), nullable=False),
    *_timestamps(),
)

subjects = Table(
    "subjects",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("client_id", String(64), ForeignKey("clients.id"), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("species", String(100), nullable=True),
    *_timestamps(),
)

services = Table(
    "services",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("professional_id", String(64), ForeignKey("professionals.id"), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("price", Float, nullable=False, default=0.0),
    Column("duration_minutes", Integer, nullable=False),
    Column("description", Text, nullable=True),
    *_timestamps(),
)

availability_windows = Table(
    "availability_windows",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("professional_id", String(64), ForeignKey("professionals.id"), nullable=False),
    Column("day_of_week", Integer, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("slot_interval_minutes", Integer, nullable=False),
    *_timestamps(),
    Index("ix_availability_windows_professional_day", "professional_id", "day_of_week"),
)

bookings = Table(
    "bookings",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("professional_id", String(64), ForeignKey("professionals.id"), nullable=False),
    Column("client_id", String(64), ForeignKey("clients.id"), nullable=False, index=True),
    Column("subject_id", String(64), ForeignKey("subjects.id"), nullable=False),
    Column("service_id", String(64), ForeignKey("services.id"), nullable=False),
    Column("scheduled_at", UTCDateTime, nullable=False),
    Column("ends_at", UTCDateTime, nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("status", String(20), nullable=False, default="pending"),
    Column("amount_paid", Float, nullable=False, default=0.0),
    Column("cancellation_reason", Text, nullable=True),
    Column("rating", Integer, nullable=True),
    Column("review_comment", Text, nullable=True),
    *_timestamps(),
    Index("ix_bookings_professional_scheduled", "professional_id", "scheduled_at"),
    Index("ix_bookings_professional_ends", "professional_id", "ends_at"),
)

_ACTIVE_SLOT_CLAUSE = "status IN ('pending', 'confirmed')"

Index(
    "uq_bookings_active_slot",
    bookings.c.professional_id,
    bookings.c.scheduled_at,
    unique=True,
    sqlite_where=text(_ACTIVE_SLOT_CLAUSE),
    postgresql_where=text(_ACTIVE_SLOT_CLAUSE),
)


def _plain(value: Any) -> Any:
    return value.value if hasattr(value, "value") and isinstance(value, str) else value


def _clean(record: Row) -> Row:
    return {key: _plain(value) for key, value in record.items()}


def _begin_immediate(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock at BEGIN.

    pysqlite defers BEGIN until the first write, so a read-then-insert would
    otherwise run its read outside any transaction. Autocommit at the driver
    level plus an explicit ``BEGIN IMMEDIATE`` hands transaction control to
    SQLAlchemy.
    """
    if event.contains(engine, "begin", _emit_begin_immediate):
        return
    event.listen(engine, "connect", _disable_driver_transactions)
    event.listen(engine, "begin", _emit_begin_immediate)


def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
    dbapi_connection.isolation_level = None


def _emit_begin_immediate(conn: Connection) -> None:
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_sql_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine, sharing a single connection for in-memory SQLite."""
    if url.startswith("sqlite"):
        if url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url:
            engine = create_engine(
                url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            engine = create_engine(
                url, echo=echo, connect_args={"check_same_thread": False, "timeout": 30}
            )
        _begin_immediate(engine)
        return engine
    return create_engine(url, echo=echo, pool_pre_ping=True)


class _SqlOperations(RecordOperations):
    """Record operations bound to one open connection and transaction."""

    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        # Professional a booking was inserted for in this transaction, if any.
        self.booking_scope: Optional[str] = None

    @staticmethod
    def _table(table: str) -> Table:
        if table not in metadata.tables:
            raise ValueError(f"Unknown table {table!r}. Known tables: {list(metadata.tables)}")
        return metadata.tables[table]

    @staticmethod
    def _where(tbl: Table, filters: Optional[Filters]) -> list[Any]:
        clauses = []
        for field_name, condition in (filters or {}).items():
            column = tbl.c[field_name]
            for op, operand in normalize_conditions(condition):
                if op == "in":
                    clauses.append(column.in_([_plain(v) for v in operand]))
                    continue
                operand = _plain(operand)
                if op == "=":
                    clauses.append(column.is_(None) if operand is None else column == operand)
                elif op == "!=":
                    clauses.append(column.is_not(None) if operand is None else column != operand)
                elif op == "<":
                    clauses.append(column < operand)
                elif op == "<=":
                    clauses.append(column <= operand)
                elif op == ">":
                    clauses.append(column > operand)
                elif op == ">=":
                    clauses.append(column >= operand)
        return clauses

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        tbl = self._table(table)
        stmt = select(tbl)
        clauses = self._where(tbl, filters)
        if clauses:
            stmt = stmt.where(and_(*clauses))
        if order_by:
            stmt = stmt.order_by(tbl.c[order_by])
        with _translate_errors(table, booking_scope=self.booking_scope):
            return [dict(row._mapping) for row in self._conn.execute(stmt)]

    def get(self, table: str, record_id: str) -> Optional[Row]:
        return self._select_one(table, record_id, for_update=False)

    def get_for_update(self, table: str, record_id: str) -> Optional[Row]:
        return self._select_one(table, record_id, for_update=True)

    def _select_one(self, table: str, record_id: str, for_update: bool) -> Optional[Row]:
        tbl = self._table(table)
        stmt = select(tbl).where(tbl.c.id == record_id)
        if for_update:
            # Rendered as FOR UPDATE where supported; SQLite is locked at BEGIN.
            stmt = stmt.with_for_update()
        with _translate_errors(table, booking_scope=self.booking_scope):
            row = self._conn.execute(stmt).first()
        return dict(row._mapping) if row is not None else None

    def insert(self, table: str, record: Row) -> Row:
        tbl = self._table(table)
        row = _clean(record)
        row.setdefault("id", str(uuid.uuid4()))
        now = utc_now()
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        if table == BOOKINGS and self.booking_scope is None:
            self.booking_scope = str(row.get("professional_id", ""))
        with _translate_errors(table, row, booking_scope=self.booking_scope):
            self._conn.execute(insert(tbl).values(**row))
        return self.get(table, row["id"])  # type: ignore[return-value]

    def update(self, table: str, record_id: str, patch: Row) -> Row:
        tbl = self._table(table)
        values = {k: v for k, v in _clean(patch).items() if k != "id"}
        values["updated_at"] = utc_now()
        current = self.get(table, record_id) or {}
        with _translate_errors(table, current, booking_scope=self.booking_scope):
            result = self._conn.execute(update(tbl).where(tbl.c.id == record_id).values(**values))
        if result.rowcount == 0:
            raise NotFound(table, record_id)
        return self.get(table, record_id)  # type: ignore[return-value]

    def delete(self, table: str, record_id: str) -> None:
        tbl = self._table(table)
        with _translate_errors(table, booking_scope=self.booking_scope):
            result = self._conn.execute(delete(tbl).where(tbl.c.id == record_id))
        if result.rowcount == 0:
            raise NotFound(table, record_id)


# SQLSTATEs for serialization failure and deadlock.
_SERIALIZATION_FAILURES = frozenset({"40001", "40P01"})


def is_serialization_failure(exc: BaseException) -> bool:
    """True when the driver reports a lost serializable race or a deadlock."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return code in _SERIALIZATION_FAILURES


@contextmanager
def _translate_errors(
    table: Optional[str] = None,
    row: Optional[Row] = None,
    booking_scope: Optional[str] = None,
) -> Iterator[None]:
    """
    Map driver errors onto the scheduler's error taxonomy.

    ``booking_scope`` is the professional whose bookings the surrounding
    transaction touched; a serialization failure there is a lost race for
    a slot, not an outage.
    """
    try:
        yield
    except IntegrityError as exc:
        if table == BOOKINGS:
            professional_id = (row or {}).get("professional_id", "")
            logger.warning("Active slot index rejected booking for %s: %s", professional_id, exc.orig)
            raise SlotConflict(professional_id) from exc
        raise ValidationError({"id": f"{table} row violates a constraint: {exc.orig}"}) from exc
    except SQLAlchemyError as exc:
        if booking_scope is not None and is_serialization_failure(exc):
            logger.warning("Serialization failure on bookings of %s: %s", booking_scope, exc.orig)
            raise SlotConflict(booking_scope) from exc
        logger.error("Record store failure: %s", exc)
        raise StoreUnavailable(f"Record store failure: {exc.__class__.__name__}") from exc


class SqlRecordStore(RecordStore):
    """
    Relational store over any SQLAlchemy engine.

    Transactions are serialized in-process by a lock and across processes
    by the database. On SQLite every transaction begins IMMEDIATE; elsewhere
    transactions run at ``isolation_level`` and the committer locks the
    professional row. The partial unique index on bookings is the backstop.
    """

    def __init__(
        self,
        url: str = "sqlite://",
        engine: Optional[Engine] = None,
        echo: bool = False,
        create_tables: bool = True,
        isolation_level: Optional[str] = "SERIALIZABLE",
    ) -> None:
        self._engine = engine or create_sql_engine(url, echo=echo)
        if self._engine.dialect.name == "sqlite":
            _begin_immediate(self._engine)
            # Driver-level isolation stays off; BEGIN IMMEDIATE is already exclusive.
            isolation_level = None
        self._isolation_level = isolation_level
        self._lock = threading.RLock()
        if create_tables:
            self.create_tables()

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_tables(self) -> None:
        with _translate_errors():
            metadata.create_all(self._engine)
        logger.info("Record store tables ensured on %s", self._engine.url.render_as_string(hide_password=True))

    def drop_tables(self) -> None:
        with _translate_errors():
            metadata.drop_all(self._engine)

    @contextmanager
    def transaction(self) -> Iterator[RecordOperations]:
        with self._lock:
            with _translate_errors():
                conn = self._engine.connect()
            try:
                if self._isolation_level:
                    conn.execution_options(isolation_level=self._isolation_level)
                with _translate_errors():
                    tx = conn.begin()
                ops = _SqlOperations(conn)
                try:
                    yield ops
                except BaseException:
                    tx.rollback()
                    raise
                with _translate_errors(booking_scope=ops.booking_scope):
                    try:
                        tx.commit()
                    except BaseException:
                        # A failed COMMIT can leave the driver inside its transaction.
                        if not conn.invalidated:
                            conn.connection.dbapi_connection.rollback()
                        raise
            finally:
                conn.close()

    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        with self.transaction() as tx:
            return tx.query(table, filters, order_by)

    def get(self, table: str, record_id: str) -> Optional[Row]:
        with self.transaction() as tx:
            return tx.get(table, record_id)

    def insert(self, table: str, record: Row) -> Row:
        with self.transaction() as tx:
            return tx.insert(table, record)

    def update(self, table: str, record_id: str, patch: Row) -> Row:
        with self.transaction() as tx:
            return tx.update(table, record_id, patch)

    def delete(self, table: str, record_id: str) -> None:
        with self.transaction() as tx:
            tx.delete(table, record_id)
