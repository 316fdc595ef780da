"""
Generic persistent-record store.

Services talk to a ``RecordStore`` (query / insert / update / delete over named
collections of plain dict records) instead of raw SQL, so the same service code
runs against the live SQLite database or the read-only demo dataset.
Which one is used is decided once, at startup, by ``open_store``.
"""
from __future__ import annotations

import copy
import logging
import sqlite3
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Sequence, Union

from core.db import connect, ensure_schema, get_conn, q, table_columns, x, xr
from core.errors import BackendUnavailable, DuplicateKey, ValidationError
from core.schema import COLLECTIONS
from core.utils import iso_now

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Filters = Optional[dict[str, Any]]
OrderBy = Union[None, str, Sequence[str]]


def _order_fields(order_by: OrderBy) -> list[tuple[str, bool]]:
    """'name' -> ascending, '-name' -> descending."""
    if not order_by:
        return []
    fields = [order_by] if isinstance(order_by, str) else list(order_by)
    out = []
    for f in fields:
        f = str(f).strip()
        if f.startswith("-"):
            out.append((f[1:], True))
        else:
            out.append((f, False))
    return out


class RecordStore(ABC):
    read_only = False
    label = "store"

    @abstractmethod
    def query(self, collection: str, filters: Filters = None, order_by: OrderBy = None) -> list[Record]:
        ...

    @abstractmethod
    def insert(self, collection: str, record: Record) -> Record:
        ...

    @abstractmethod
    def update(self, collection: str, record_id: Any, patch: Record) -> None:
        ...

    @abstractmethod
    def delete(self, collection: str, record_id: Any) -> None:
        ...

    @abstractmethod
    def decrement(self, collection: str, record_id: Any, field: str, amount: int) -> bool:
        """
        Atomically subtract ``amount`` from ``field`` only if the result stays >= 0.
        Returns False when the row is missing or holds less than ``amount``.
        """

    def get(self, collection: str, record_id: Any) -> Optional[Record]:
        rows = self.query(collection, {"id": record_id})
        return rows[0] if rows else None

    def clear(self, collection: str) -> None:
        for r in self.query(collection):
            self.delete(collection, r["id"])


class SqliteStore(RecordStore):
    label = "SQLite"

    def __init__(self, conn: sqlite3.Connection, *, retries: int = 2, retry_delay: float = 0.05):
        self.conn = conn
        self.retries = max(0, int(retries))
        self.retry_delay = float(retry_delay)
        self._columns: dict[str, list[str]] = {}

    @classmethod
    def open(cls, db_path: Union[Path, str], **kwargs) -> "SqliteStore":
        """Uncached store over its own connection (":memory:" for tests)."""
        try:
            conn = connect(db_path)
            ensure_schema(conn)
        except sqlite3.Error as e:
            raise BackendUnavailable(f"Cannot open database {db_path}: {e}") from e
        return cls(conn, **kwargs)

    # ---- plumbing ----

    def _cols(self, collection: str) -> list[str]:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection!r}")
        if collection not in self._columns:
            self._columns[collection] = table_columns(self.conn, collection)
        return self._columns[collection]

    def _check_fields(self, collection: str, fields: Iterable[str]) -> None:
        cols = self._cols(collection)
        unknown = [f for f in fields if f not in cols]
        if unknown:
            raise ValueError(f"Unknown field(s) for {collection}: {', '.join(unknown)}")

    def _run(self, collection: str, fn: Callable[..., Any], *args: Any) -> Any:
        attempt = 0
        while True:
            try:
                return fn(*args)
            except sqlite3.IntegrityError as e:
                self.conn.rollback()
                msg = str(e)
                if "UNIQUE" in msg.upper():
                    raise DuplicateKey(collection, msg) from e
                raise ValidationError(f"{collection}: {msg}") from e
            except sqlite3.OperationalError as e:
                self.conn.rollback()
                if "locked" in str(e).lower() and attempt < self.retries:
                    attempt += 1
                    logger.warning("Database locked on %s, retry %d/%d", collection, attempt, self.retries)
                    time.sleep(self.retry_delay * attempt)
                    continue
                logger.error("Database error on %s: %s", collection, e)
                raise BackendUnavailable(str(e)) from e
            except sqlite3.DatabaseError as e:
                logger.error("Database error on %s: %s", collection, e)
                raise BackendUnavailable(str(e)) from e

    # ---- contract ----

    def query(self, collection: str, filters: Filters = None, order_by: OrderBy = None) -> list[Record]:
        filters = dict(filters or {})
        order = _order_fields(order_by)
        self._check_fields(collection, list(filters) + [f for f, _ in order])

        where, params = [], []
        for k, v in filters.items():
            if v is None:
                where.append(f"{k} IS NULL")
            elif isinstance(v, (list, tuple, set, frozenset)):
                values = list(v)
                if not values:
                    return []
                where.append(f"{k} IN ({', '.join('?' for _ in values)})")
                params.extend(values)
            else:
                where.append(f"{k} = ?")
                params.append(v)

        sql = f"SELECT * FROM {collection}"
        if where:
            sql += " WHERE " + " AND ".join(where)
        order_sql = [f"{f} {'DESC' if desc else 'ASC'}" for f, desc in order]
        sql += " ORDER BY " + ", ".join(order_sql + ["id ASC"])

        rows = self._run(collection, q, self.conn, sql, params)
        return [dict(r) for r in rows]

    def insert(self, collection: str, record: Record) -> Record:
        data = {k: v for k, v in record.items() if k != "id"}
        cols = self._cols(collection)
        now = iso_now()
        for stamp in ("created_at", "updated_at"):
            if stamp in cols and not data.get(stamp):
                data[stamp] = now
        self._check_fields(collection, data)

        names = list(data)
        sql = f"INSERT INTO {collection} ({', '.join(names)}) VALUES ({', '.join('?' for _ in names)})"
        new_id = self._run(collection, x, self.conn, sql, [data[n] for n in names])
        return self.get(collection, new_id) or {**data, "id": new_id}

    def update(self, collection: str, record_id: Any, patch: Record) -> None:
        data = {k: v for k, v in patch.items() if k != "id"}
        if "updated_at" in self._cols(collection):
            data["updated_at"] = iso_now()
        self._check_fields(collection, data)
        if not data:
            return
        sets = ", ".join(f"{k} = ?" for k in data)
        self._run(collection, x, self.conn, f"UPDATE {collection} SET {sets} WHERE id = ?", [*data.values(), record_id])

    def delete(self, collection: str, record_id: Any) -> None:
        self._cols(collection)
        self._run(collection, x, self.conn, f"DELETE FROM {collection} WHERE id = ?", (record_id,))

    def decrement(self, collection: str, record_id: Any, field: str, amount: int) -> bool:
        self._check_fields(collection, [field])
        stamp = ", updated_at = ?" if "updated_at" in self._cols(collection) else ""
        params: list[Any] = [int(amount)]
        if stamp:
            params.append(iso_now())
        params.extend([record_id, int(amount)])
        n = self._run(
            collection,
            xr,
            self.conn,
            f"UPDATE {collection} SET {field} = {field} - ?{stamp} WHERE id = ? AND {field} >= ?",
            params,
        )
        return n == 1

    def clear(self, collection: str) -> None:
        self._cols(collection)
        self._run(collection, x, self.conn, f"DELETE FROM {collection};")


class DemoStore(RecordStore):
    """
    Read-only store over the static demonstration dataset.

    Used when the backend is configured as ``demo`` or the database cannot be
    opened. Every write raises ``BackendUnavailable`` so screens show a notice
    instead of pretending the change was saved.
    """

    read_only = True
    label = "Demo"

    def __init__(self, records: Optional[dict[str, list[Record]]] = None, reason: Optional[str] = None):
        if records is None:
            from core.services.demo_data import demo_records

            records = demo_records()
        self._data = {c: copy.deepcopy(records.get(c, [])) for c in COLLECTIONS}
        self.reason = reason

    def _refuse(self, action: str) -> BackendUnavailable:
        detail = f" ({self.reason})" if self.reason else ""
        return BackendUnavailable(f"Demo mode{detail}: connect a database to {action}.")

    def query(self, collection: str, filters: Filters = None, order_by: OrderBy = None) -> list[Record]:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection!r}")

        def matches(r: Record) -> bool:
            for k, v in (filters or {}).items():
                if isinstance(v, (list, tuple, set, frozenset)):
                    if r.get(k) not in v:
                        return False
                elif r.get(k) != v:
                    return False
            return True

        rows = [copy.deepcopy(r) for r in self._data[collection] if matches(r)]
        rows.sort(key=lambda r: r.get("id") or 0)
        # Apply keys last-to-first so the first field wins (sorts are stable).
        for f, desc in reversed(_order_fields(order_by)):
            present = [r for r in rows if r.get(f) is not None]
            missing = [r for r in rows if r.get(f) is None]
            present.sort(key=lambda r: r[f], reverse=desc)
            rows = present + missing
        return rows

    def insert(self, collection: str, record: Record) -> Record:
        raise self._refuse(f"add {collection}")

    def update(self, collection: str, record_id: Any, patch: Record) -> None:
        raise self._refuse(f"update {collection}")

    def delete(self, collection: str, record_id: Any) -> None:
        raise self._refuse(f"delete {collection}")

    def decrement(self, collection: str, record_id: Any, field: str, amount: int) -> bool:
        raise self._refuse(f"update {collection}")

    def clear(self, collection: str) -> None:
        raise self._refuse(f"clear {collection}")


def open_store(settings) -> RecordStore:
    if settings.demo_mode:
        logger.info("Backend configured as demo; using the demonstration dataset")
        return DemoStore()
    try:
        conn = get_conn(settings.db_path)
        ensure_schema(conn)
    except sqlite3.Error as e:
        logger.error("Database %s unavailable, falling back to demo data: %s", settings.db_path, e)
        return DemoStore(reason=f"database unavailable: {e}")
    return SqliteStore(conn, retries=settings.store_retries)
