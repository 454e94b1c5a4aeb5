from __future__ import annotations

import logging
import sqlite3

from bgsport.db import is_missing_table_error, q
from bgsport.utils import iso_now

log = logging.getLogger(__name__)


def record_history(conn: sqlite3.Connection, order_id: int, action: str, detail: str = "", *, commit: bool = True) -> bool:
    """
    Best-effort audit row. The table is optional: when it is not provisioned
    the call is a no-op. Any other database error propagates.
    """
    try:
        conn.execute(
            "INSERT INTO order_status_history (order_id, action, detail, action_at) VALUES (?, ?, ?, ?)",
            (int(order_id), str(action), detail or None, iso_now()),
        )
    except sqlite3.OperationalError as e:
        if is_missing_table_error(e):
            log.debug("order_status_history not provisioned; skipped %s for order %s", action, order_id)
            return False
        raise
    if commit:
        conn.commit()
    return True


def list_history(conn: sqlite3.Connection, order_id: int) -> list[sqlite3.Row]:
    try:
        return q(
            conn,
            "SELECT action, detail, action_at FROM order_status_history WHERE order_id=? ORDER BY id DESC",
            (int(order_id),),
        )
    except sqlite3.OperationalError as e:
        if is_missing_table_error(e):
            return []
        raise
