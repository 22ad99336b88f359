"""
Record store contract consumed by the scheduler.

A store exposes simple create/read/update/delete/query operations over
named tables of dict rows, plus a ``transaction()`` context manager whose
handle offers the same operations and commits atomically.

Filters follow a small operator vocabulary:

    {"professional_id": "vet-1"}                      # equality
    {"status": ["in", ["pending", "confirmed"]]}      # membership
    {"scheduled_at": [">=", start]}                   # comparison

A field may carry several conditions by passing a list of [op, value] pairs:

    {"scheduled_at": [[">=", start], ["<", end]]}
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Optional

PROFESSIONALS = "professionals"
CLIENTS = "clients"
SUBJECTS = "subjects"
SERVICES = "services"
AVAILABILITY_WINDOWS = "availability_windows"
BOOKINGS = "bookings"

TABLES = (PROFESSIONALS, CLIENTS, SUBJECTS, SERVICES, AVAILABILITY_WINDOWS, BOOKINGS)

OPERATORS = ("=", "!=", "<", "<=", ">", ">=", "in")

Row = dict[str, Any]
Filters = dict[str, Any]


def normalize_conditions(condition: Any) -> list[tuple[str, Any]]:
    """Turn one filter value into a list of (operator, operand) pairs."""
    if isinstance(condition, (list, tuple)) and condition:
        if isinstance(condition[0], str) and condition[0] in OPERATORS and len(condition) == 2:
            return [(condition[0], condition[1])]
        if all(isinstance(c, (list, tuple)) and len(c) == 2 for c in condition):
            pairs = [(c[0], c[1]) for c in condition]
            for op, _ in pairs:
                if op not in OPERATORS:
                    raise ValueError(f"Unsupported filter operator {op!r}")
            return pairs
    return [("=", condition)]


def _plain(value: Any) -> Any:
    # str-Enums compare by value
    return value.value if hasattr(value, "value") and isinstance(value, str) else value


def evaluate(op: str, actual: Any, operand: Any) -> bool:
    actual = _plain(actual)
    if op == "in":
        return actual in [_plain(v) for v in operand]
    operand = _plain(operand)
    if op == "=":
        return actual == operand
    if op == "!=":
        return actual != operand
    if actual is None or operand is None:
        return False
    if op == "<":
        return actual < operand
    if op == "<=":
        return actual <= operand
    if op == ">":
        return actual > operand
    if op == ">=":
        return actual >= operand
    raise ValueError(f"Unsupported filter operator {op!r}")


def matches_filters(row: Row, filters: Optional[Filters]) -> bool:
    """Check a row against a filter dict."""
    if not filters:
        return True
    for field_name, condition in filters.items():
        actual = row.get(field_name)
        for op, operand in normalize_conditions(condition):
            if not evaluate(op, actual, operand):
                return False
    return True


class RecordOperations(ABC):
    """Operations available both on a store and inside its transactions."""

    @abstractmethod
    def query(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
    ) -> list[Row]:
        """Return all rows of ``table`` matching ``filters``."""

    @abstractmethod
    def get(self, table: str, record_id: str) -> Optional[Row]:
        """Return one row by id, or None."""

    def get_for_update(self, table: str, record_id: str) -> Optional[Row]:
        """Like ``get``, but the row stays locked until the transaction ends.

        Stores whose transactions are already exclusive inherit ``get``.
        """
        return self.get(table, record_id)

    @abstractmethod
    def insert(self, table: str, record: Row) -> Row:
        """Insert a row, assigning ``id`` and timestamps when missing."""

    @abstractmethod
    def update(self, table: str, record_id: str, patch: Row) -> Row:
        """Apply ``patch`` to a row and return the updated row.

        Raises:
            NotFound: If the row does not exist.
        """

    @abstractmethod
    def delete(self, table: str, record_id: str) -> None:
        """Delete a row.

        Raises:
            NotFound: If the row does not exist.
        """


class RecordStore(RecordOperations):
    """A record store. ``transaction()`` serializes and commits atomically."""

    @abstractmethod
    def transaction(self) -> AbstractContextManager[RecordOperations]:
        """Open a unit of work. Writes inside it are all applied or none are."""
