"""Asynchronous record store used by the repositories.

The store exposes a small chainable query object in the style of a hosted
REST database client: pick a table, choose an action, narrow it with filters,
then ``await query.execute()``. Every failure surfaces as :class:`StorageFault`.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import enum
import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence

from .database import RELATIONS, get_connection, initialize_database, table_columns

logger = logging.getLogger(__name__)

OPERATORS = {"eq": "=", "gte": ">=", "lte": "<="}


class StorageFault(RuntimeError):
    """Raised when the store cannot complete a request."""


class RowCountFault(StorageFault):
    """Raised when a single row was requested but zero or several matched."""

    def __init__(self, rows: int) -> None:
        super().__init__(
            f"JSON object requested, multiple (or no) rows returned ({rows} rows)"
        )
        self.rows = rows


@dataclass
class Result:
    data: Any
    count: int | None = None


def _to_param(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value


class Query:
    """A pending request against one table."""

    def __init__(self, store: "SqliteStore", table: str) -> None:
        self._store = store
        self.table = table
        self.action = "select"
        self.columns: Sequence[str] | str = "*"
        self.embed: dict[str, Sequence[str] | str] = {}
        self.with_count = False
        self.conditions: list[tuple[str, str, Any]] = []
        self.or_groups: list[list[tuple[str, Any]]] = []
        self.ordering: list[tuple[str, bool]] = []
        self.bounds: tuple[int, int] | None = None
        self.payload: Any = None
        self.expect_single = False

    # Actions ---------------------------------------------------------------
    def select(
        self,
        columns: Sequence[str] | str = "*",
        *,
        embed: dict[str, Sequence[str] | str] | None = None,
        count: bool = False,
    ) -> "Query":
        self.action = "select"
        self.columns = columns
        self.embed = dict(embed or {})
        self.with_count = count
        return self

    def insert(self, records: dict | Iterable[dict]) -> "Query":
        self.action = "insert"
        self.payload = [records] if isinstance(records, dict) else list(records)
        return self

    def update(self, fields: dict) -> "Query":
        self.action = "update"
        self.payload = dict(fields)
        return self

    def delete(self) -> "Query":
        self.action = "delete"
        return self

    # Filters ---------------------------------------------------------------
    def eq(self, field: str, value: Any) -> "Query":
        self.conditions.append((field, "eq", value))
        return self

    def gte(self, field: str, value: Any) -> "Query":
        self.conditions.append((field, "gte", value))
        return self

    def lte(self, field: str, value: Any) -> "Query":
        self.conditions.append((field, "lte", value))
        return self

    def or_(self, groups: Iterable[Iterable[tuple[str, Any]]]) -> "Query":
        """Match rows satisfying any group, where each group is an AND of equalities."""

        self.or_groups.append([list(group) for group in groups])
        return self

    def order(self, field: str, *, ascending: bool = True) -> "Query":
        self.ordering.append((field, ascending))
        return self

    def range(self, from_: int, to: int) -> "Query":
        """Restrict rows to offsets ``from_`` through ``to``, both inclusive."""

        self.bounds = (from_, to)
        return self

    def single(self) -> "Query":
        self.expect_single = True
        return self

    async def execute(self) -> Result:
        return await self._store.execute(self)


class SqliteStore:
    """Store backed by a single SQLite connection."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.conn = get_connection(db_path)
        initialize_database(self.conn)
        self._lock = threading.Lock()
        self._columns = {
            table: table_columns(self.conn, table) for table in ("cabins", "guests", "bookings")
        }

    def table(self, name: str) -> Query:
        return Query(self, name)

    async def execute(self, query: Query) -> Result:
        return await asyncio.to_thread(self._run, query)

    def close(self) -> None:
        self.conn.close()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    def _run(self, query: Query) -> Result:
        with self._lock:
            try:
                handler = getattr(self, f"_{query.action}")
                result = handler(query)
                self.conn.commit()
            except sqlite3.Error as exc:
                self.conn.rollback()
                logger.debug("SQLite error on %s %s: %s", query.action, query.table, exc)
                raise StorageFault(str(exc)) from exc
            except StorageFault:
                self.conn.rollback()
                raise
        if query.expect_single:
            if len(result.data) != 1:
                raise RowCountFault(len(result.data))
            result.data = result.data[0]
        return result

    def _check_table(self, table: str) -> list[str]:
        if table not in self._columns:
            raise StorageFault(f'relation "{table}" does not exist')
        return self._columns[table]

    def _check_column(self, table: str, column: str) -> str:
        if column not in self._check_table(table):
            raise StorageFault(f"column {table}.{column} does not exist")
        return column

    def _resolve_columns(self, table: str, columns: Sequence[str] | str) -> list[str]:
        if columns == "*":
            return list(self._check_table(table))
        if isinstance(columns, str):
            columns = [part.strip() for part in columns.split(",") if part.strip()]
        return [self._check_column(table, column) for column in columns]

    def _where(self, query: Query) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for field, op, value in query.conditions:
            self._check_column(query.table, field)
            clauses.append(f"{field} {OPERATORS[op]} ?")
            params.append(_to_param(value))
        for groups in query.or_groups:
            alternatives = []
            for group in groups:
                parts = []
                for field, value in group:
                    self._check_column(query.table, field)
                    parts.append(f"{field} = ?")
                    params.append(_to_param(value))
                alternatives.append("(" + " AND ".join(parts) + ")")
            clauses.append("(" + " OR ".join(alternatives) + ")")
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params

    def _matching_ids(self, query: Query) -> list[int]:
        where, params = self._where(query)
        if not where:
            raise StorageFault(f"{query.action.upper()} on {query.table} requires a filter")
        rows = self.conn.execute(f"SELECT id FROM {query.table}{where}", params).fetchall()
        return [row["id"] for row in rows]

    def _rows_by_id(self, table: str, ids: Sequence[int]) -> list[dict]:
        if not ids:
            return []
        marks = ", ".join("?" for _ in ids)
        return self.conn.execute(
            f"SELECT * FROM {table} WHERE id IN ({marks}) ORDER BY id", list(ids)
        ).fetchall()

    def _select(self, query: Query) -> Result:
        columns = self._resolve_columns(query.table, query.columns)
        relations = RELATIONS.get(query.table, {})
        for related in query.embed:
            if related not in relations:
                raise StorageFault(
                    f"Could not find a relationship between '{query.table}' and '{related}'"
                )
        hidden = [relations[related] for related in query.embed if relations[related] not in columns]
        where, params = self._where(query)

        sql = f"SELECT {', '.join(columns + hidden)} FROM {query.table}{where}"
        if query.ordering:
            order = [
                f"{self._check_column(query.table, field)} {'ASC' if ascending else 'DESC'}"
                for field, ascending in query.ordering
            ]
            sql += " ORDER BY " + ", ".join(order + ["id ASC"])
        else:
            sql += " ORDER BY id ASC"
        if query.bounds is not None:
            from_, to = query.bounds
            sql += " LIMIT ? OFFSET ?"
            params = params + [max(to - from_ + 1, 0), from_]
        rows = self.conn.execute(sql, params).fetchall()

        for related, related_columns in query.embed.items():
            fk = relations[related]
            wanted = self._resolve_columns(related, related_columns)
            for row in rows:
                embedded = self.conn.execute(
                    f"SELECT {', '.join(wanted)} FROM {related} WHERE id = ?", (row[fk],)
                ).fetchone()
                row[related] = embedded
        for fk in hidden:
            for row in rows:
                row.pop(fk, None)

        count = None
        if query.with_count:
            count_where, count_params = self._where(query)
            count = self.conn.execute(
                f"SELECT COUNT(*) AS total FROM {query.table}{count_where}", count_params
            ).fetchone()["total"]
        return Result(data=rows, count=count)

    def _insert(self, query: Query) -> Result:
        ids: list[int] = []
        for record in query.payload:
            fields = [self._check_column(query.table, field) for field in record]
            marks = ", ".join("?" for _ in fields)
            cur = self.conn.execute(
                f"INSERT INTO {query.table}({', '.join(fields)}) VALUES ({marks})",
                [_to_param(value) for value in record.values()],
            )
            ids.append(cur.lastrowid)
        return Result(data=self._rows_by_id(query.table, ids))

    def _update(self, query: Query) -> Result:
        if not query.payload:
            raise StorageFault("UPDATE requires at least one field")
        ids = self._matching_ids(query)
        fields = [self._check_column(query.table, field) for field in query.payload]
        if ids:
            assignments = ", ".join(f"{field} = ?" for field in fields)
            marks = ", ".join("?" for _ in ids)
            self.conn.execute(
                f"UPDATE {query.table} SET {assignments} WHERE id IN ({marks})",
                [_to_param(value) for value in query.payload.values()] + ids,
            )
        return Result(data=self._rows_by_id(query.table, ids))

    def _delete(self, query: Query) -> Result:
        ids = self._matching_ids(query)
        rows = self._rows_by_id(query.table, ids)
        if ids:
            marks = ", ".join("?" for _ in ids)
            self.conn.execute(f"DELETE FROM {query.table} WHERE id IN ({marks})", ids)
        return Result(data=rows)


__all__ = ["Query", "Result", "RowCountFault", "SqliteStore", "StorageFault"]
