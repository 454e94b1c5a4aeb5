from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import streamlit as st

from bgsport.schema import SCHEMA_SQL

log = logging.getLogger(__name__)

OPTIONAL_TABLES = ("order_status_history",)


def _connect(db_path: Path | str) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    log.info("Opening database %s", db_path)
    return _connect(db_path)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?",
        (table,),
    ).fetchone()
    return row is not None


def is_missing_table_error(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "no such table" in str(exc).lower()


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs ----
    # Cached profit column came after the first release of the orders table
    if not _column_exists(conn, "orders", "profit"):
        conn.execute("ALTER TABLE orders ADD COLUMN profit INTEGER NOT NULL DEFAULT 0;")
        conn.execute("UPDATE orders SET profit = net_total - factory_cost;")

    # Due dates were added together with the payment ledgers
    for col in ("customer_remaining_due_at", "factory_payment_due_at", "factory_paid_full_at"):
        if not _column_exists(conn, "orders", col):
            conn.execute(f"ALTER TABLE orders ADD COLUMN {col} TEXT;")

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


@contextmanager
def tx(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Run several writes as one unit: commit at the end, roll back everything
    if any statement fails. Use conn.execute inside (x() commits on its own).
    """
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()
