"""In-memory row store with a query-builder client.

The builder mirrors the hosted backend's client: chain a verb, filters and
modifiers, then ``execute()`` to get a :class:`Result` whose ``error`` is
``None`` on success. Tables declare their columns so that a lagging schema
(a column the code expects but the store lacks) can be reproduced.
"""

from __future__ import annotations

import copy
import logging
import re
import uuid
from datetime import date, datetime, timezone
from typing import Any, Callable

from dateutil.parser import isoparse
from pydantic import BaseModel

from kyndra.domain.errors import SCHEMA_CACHE_MISS, UNDEFINED_COLUMN, StoreError

logger = logging.getLogger(__name__)

KYNDRA_SCHEMA: dict[str, tuple[str, ...]] = {
    "birthdays": (
        "id",
        "user_id",
        "space_id",
        "name",
        "birthdate",
        "notes",
        "email",
        "relationship",
        "linked_profile_id",
        "created_at",
    ),
    "events": (
        "id",
        "space_id",
        "title",
        "description",
        "starts_at",
        "ends_at",
        "created_at",
    ),
    "event_reminders": (
        "id",
        "event_id",
        "space_id",
        "remind_minutes_before",
        "created_at",
    ),
    "spaces": ("id", "name", "owner_id", "created_at"),
    "profiles": ("id", "email", "full_name", "avatar_url", "created_at"),
}

NO_SINGLE_ROW = "PGRST116"
UNDEFINED_TABLE = "42P01"


class Result(BaseModel):
    data: Any = None
    error: StoreError | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _comparable(value: Any) -> tuple[int, Any] | None:
    """Rank a cell value so mixed types never compare against each other."""
    if value is None:
        return None
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, (int, float)):
        return (0, value)
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            moment = isoparse(value)
        except ValueError:
            return (2, value)
    else:
        return (3, str(value))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (1, moment)


def _like_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a SQL ``LIKE`` pattern (``%``, ``_``, backslash escapes)."""
    parts: list[str] = []
    escaped = False
    for char in pattern:
        if escaped:
            parts.append(re.escape(char))
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def _matches(row: dict, op: str, column: str, value: Any) -> bool:
    cell = row.get(column)
    if op == "eq":
        return cell is not None and cell == value
    if op == "neq":
        return cell is not None and cell != value
    if op == "is":
        return cell is value
    if op == "ilike":
        return isinstance(cell, str) and _like_pattern(value).fullmatch(cell) is not None

    left, right = _comparable(cell), _comparable(value)
    if left is None or right is None or left[0] != right[0]:
        return False
    if op == "gt":
        return left[1] > right[1]
    if op == "gte":
        return left[1] >= right[1]
    if op == "lt":
        return left[1] < right[1]
    if op == "lte":
        return left[1] <= right[1]
    raise ValueError(f"Unsupported filter operator: {op}")


class TableQuery:
    """A single request against one table, built up by chaining."""

    def __init__(self, store: MemoryRowStore, table: str) -> None:
        self._store = store
        self._table = table
        self._action = "select"
        self._columns: list[str] | None = None
        self._payload: list[dict] = []
        self._on_conflict: list[str] = ["id"]
        self._filters: list[tuple[str, str, Any]] = []
        self._orders: list[tuple[str, bool]] = []
        self._limit: int | None = None
        self._single: str | None = None

    # -- verbs ---------------------------------------------------------------

    def select(self, columns: str = "*") -> TableQuery:
        # After a write, select() only chooses the returned columns
        self._columns = [c.strip() for c in columns.split(",") if c.strip()]
        return self

    def insert(self, payload: dict | list[dict]) -> TableQuery:
        return self._write("insert", payload)

    def update(self, payload: dict) -> TableQuery:
        return self._write("update", payload)

    def upsert(self, payload: dict | list[dict], on_conflict: str = "id") -> TableQuery:
        self._on_conflict = [c.strip() for c in on_conflict.split(",") if c.strip()]
        return self._write("upsert", payload)

    def delete(self) -> TableQuery:
        self._action = "delete"
        return self

    def _write(self, action: str, payload: dict | list[dict]) -> TableQuery:
        self._action = action
        rows = payload if isinstance(payload, list) else [payload]
        self._payload = [dict(row) for row in rows]
        return self

    # -- filters -------------------------------------------------------------

    def eq(self, column: str, value: Any) -> TableQuery:
        return self._filter("eq", column, value)

    def neq(self, column: str, value: Any) -> TableQuery:
        return self._filter("neq", column, value)

    def gt(self, column: str, value: Any) -> TableQuery:
        return self._filter("gt", column, value)

    def gte(self, column: str, value: Any) -> TableQuery:
        return self._filter("gte", column, value)

    def lt(self, column: str, value: Any) -> TableQuery:
        return self._filter("lt", column, value)

    def lte(self, column: str, value: Any) -> TableQuery:
        return self._filter("lte", column, value)

    def is_(self, column: str, value: None) -> TableQuery:
        return self._filter("is", column, value)

    def ilike(self, column: str, pattern: str) -> TableQuery:
        return self._filter("ilike", column, pattern)

    def _filter(self, op: str, column: str, value: Any) -> TableQuery:
        self._filters.append((op, column, value))
        return self

    # -- modifiers -----------------------------------------------------------

    def order(self, column: str, ascending: bool = True) -> TableQuery:
        self._orders.append((column, ascending))
        return self

    def limit(self, count: int) -> TableQuery:
        self._limit = count
        return self

    def single(self) -> TableQuery:
        self._single = "single"
        return self

    def maybe_single(self) -> TableQuery:
        self._single = "maybe"
        return self

    # -- execution -----------------------------------------------------------

    def execute(self) -> Result:
        result = self._run()
        if result.error is not None:
            logger.warning(
                "%s on %s failed: %s (%s)",
                self._action,
                self._table,
                result.error.message,
                result.error.code,
            )
        else:
            logger.debug("%s on %s ok", self._action, self._table)
        return result

    def _run(self) -> Result:
        injected = self._store.take_injected_error(self._table)
        if injected is not None:
            return Result(error=injected)

        schema = self._store.columns(self._table)
        if schema is None:
            return Result(
                error=StoreError(
                    message=f'relation "public.{self._table}" does not exist',
                    code=UNDEFINED_TABLE,
                )
            )

        read_columns = [c for c in (self._columns or []) if c != "*"]
        read_columns += [column for _, column, _ in self._filters]
        read_columns += [column for column, _ in self._orders]
        for column in read_columns:
            if column not in schema:
                return Result(
                    error=StoreError(
                        message=f"column {self._table}.{column} does not exist",
                        code=UNDEFINED_COLUMN,
                    )
                )
        for row in self._payload:
            for column in row:
                if column not in schema:
                    return Result(
                        error=StoreError(
                            message=(
                                f"Could not find the '{column}' column of "
                                f"'{self._table}' in the schema cache"
                            ),
                            code=SCHEMA_CACHE_MISS,
                        )
                    )

        rows = getattr(self, f"_do_{self._action}")()
        return self._shape(rows)

    def _selected(self) -> list[dict]:
        rows = [
            row
            for row in self._store.rows(self._table)
            if all(_matches(row, op, column, value) for op, column, value in self._filters)
        ]
        # apply the last key first; Python's sort is stable
        for column, ascending in reversed(self._orders):
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: _comparable(r[column]), reverse=not ascending)
            # nulls last ascending, first descending
            rows = present + missing if ascending else missing + present
        if self._limit is not None:
            rows = rows[: self._limit]
        return rows

    def _do_select(self) -> list[dict]:
        return self._selected()

    def _do_insert(self) -> list[dict]:
        return [self._store.append(self._table, row) for row in self._payload]

    def _do_update(self) -> list[dict]:
        targets = self._selected()
        for row in targets:
            row.update(self._payload[0])
        return targets

    def _do_upsert(self) -> list[dict]:
        written = []
        table_rows = self._store.rows(self._table)
        for payload in self._payload:
            existing = next(
                (
                    row
                    for row in table_rows
                    if all(
                        column in payload and row.get(column) == payload[column]
                        for column in self._on_conflict
                    )
                ),
                None,
            )
            if existing is None:
                written.append(self._store.append(self._table, payload))
            else:
                existing.update(payload)
                written.append(existing)
        return written

    def _do_delete(self) -> list[dict]:
        targets = self._selected()
        self._store.remove(self._table, targets)
        return targets

    def _shape(self, rows: list[dict]) -> Result:
        columns = [c for c in (self._columns or []) if c != "*"]
        data = [
            {c: row.get(c) for c in columns} if columns else copy.deepcopy(row)
            for row in rows
        ]
        if self._single is None:
            return Result(data=data)
        if len(data) == 1:
            return Result(data=data[0])
        if not data and self._single == "maybe":
            return Result(data=None)
        return Result(
            error=StoreError(
                message="JSON object requested, multiple (or no) rows returned",
                code=NO_SINGLE_ROW,
                details=f"The result contains {len(data)} rows",
            )
        )


class MemoryRowStore:
    """Dict-backed tables keyed by name, each a list of row dicts."""

    def __init__(
        self,
        schema: dict[str, tuple[str, ...]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._declared = schema or KYNDRA_SCHEMA
        self._schema = {name: set(cols) for name, cols in self._declared.items()}
        self._tables: dict[str, list[dict]] = {name: [] for name in self._schema}
        self._injected: dict[str, StoreError] = {}
        self._clock = clock

    def table(self, name: str) -> TableQuery:
        return TableQuery(self, name)

    # -- storage primitives used by TableQuery ---------------------------------

    def columns(self, table: str) -> set[str] | None:
        return self._schema.get(table)

    def rows(self, table: str) -> list[dict]:
        return self._tables.setdefault(table, [])

    def append(self, table: str, payload: dict) -> dict:
        row = dict(payload)
        schema = self._schema[table]
        if "id" in schema and not row.get("id"):
            row["id"] = str(uuid.uuid4())
        if "created_at" in schema and not row.get("created_at"):
            row["created_at"] = self._clock().isoformat()
        self.rows(table).append(row)
        return row

    def remove(self, table: str, targets: list[dict]) -> None:
        doomed = {id(row) for row in targets}
        self._tables[table] = [row for row in self.rows(table) if id(row) not in doomed]

    # -- test and migration helpers ---------------------------------------------

    def drop_column(self, table: str, column: str) -> None:
        """Forget *column*, as a backend whose schema cache lags behind would."""
        self._schema[table].discard(column)
        for row in self.rows(table):
            row.pop(column, None)

    def add_column(self, table: str, column: str) -> None:
        self._schema[table].add(column)

    def inject_error(self, table: str, error: StoreError) -> None:
        """Fail the next request against *table* with *error*."""
        self._injected[table] = error

    def take_injected_error(self, table: str) -> StoreError | None:
        return self._injected.pop(table, None)

    def clear(self) -> None:
        """Drop every row and restore the declared schema."""
        self._schema = {name: set(cols) for name, cols in self._declared.items()}
        self._tables = {name: [] for name in self._schema}
        self._injected.clear()
