from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Iterable, Union

import streamlit as st

from core.schema import SCHEMA_SQL


def _connect(db_path: Union[Path, str]) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    # the stock monitor thread shares this connection with page reruns
    conn.execute("PRAGMA busy_timeout = 3000;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    return _connect(db_path)


def connect(db_path: Union[Path, str]) -> sqlite3.Connection:
    """Uncached connection (tests, scripts, in-memory databases)."""
    return _connect(db_path)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    return column in table_columns(conn, table)


def table_columns(conn: sqlite3.Connection, table: str) -> list[str]:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    return [r["name"] for r in rows]


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs ----
    # initial_quantity arrived after the first release; backfill from current stock
    if not _column_exists(conn, "inventory", "initial_quantity"):
        conn.execute("ALTER TABLE inventory ADD COLUMN initial_quantity INTEGER NOT NULL DEFAULT 0;")
        conn.execute("UPDATE inventory SET initial_quantity = quantity WHERE initial_quantity = 0;")

    if not _column_exists(conn, "tasks", "due_date"):
        conn.execute("ALTER TABLE tasks ADD COLUMN due_date TEXT;")

    conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    cur = conn.execute(sql, tuple(params))
    conn.commit()
    last = cur.lastrowid
    cur.close()
    return int(last or 0)


def xr(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Execute + commit, returning the number of affected rows."""
    cur = conn.execute(sql, tuple(params))
    conn.commit()
    n = cur.rowcount
    cur.close()
    return int(n)
