from __future__ import annotations

import logging
from typing import Optional

from bgsport.db import q, x
from bgsport.utils import clamp_int, iso_now

log = logging.getLogger(__name__)

DEFAULT_LONG_ADD = 20000


def list_fabrics(conn, *, active_only: bool = False):
    where = "WHERE is_active=1" if active_only else ""
    return q(
        conn,
        f"""
        SELECT id, name, short_price, long_add, long_price, is_active, updated_at
        FROM fabrics
        {where}
        ORDER BY name
        """,
    )


def get_fabric(conn, fabric_id: int):
    rows = q(conn, "SELECT * FROM fabrics WHERE id=?", (int(fabric_id),))
    return rows[0] if rows else None


def create_fabric(conn, *, name: str, short_price: int, long_add: int = DEFAULT_LONG_ADD) -> int:
    name = str(name or "").strip()
    if not name:
        raise ValueError("Fabric name is required.")

    sp = clamp_int(short_price)
    la = clamp_int(long_add)
    fabric_id = x(
        conn,
        """
        INSERT INTO fabrics (name, short_price, long_add, long_price, is_active, updated_at)
        VALUES (?, ?, ?, ?, 1, ?)
        """,
        (name, sp, la, sp + la, iso_now()),
    )
    log.info("Created fabric %s (%s)", fabric_id, name)
    return fabric_id


def update_fabric(
    conn,
    fabric_id: int,
    *,
    name: Optional[str] = None,
    short_price: Optional[int] = None,
    long_add: Optional[int] = None,
    is_active: Optional[bool] = None,
) -> None:
    """
    Change the price list. Existing orders keep the prices they were created
    with, so nothing here touches the orders table.
    """
    current = get_fabric(conn, fabric_id)
    if current is None:
        raise ValueError("Fabric not found.")

    new_name = (str(name).strip() if name is not None else "") or current["name"]
    sp = clamp_int(short_price) if short_price is not None else int(current["short_price"])
    la = clamp_int(long_add) if long_add is not None else int(current["long_add"])
    active = int(bool(is_active)) if is_active is not None else int(current["is_active"])

    x(
        conn,
        """
        UPDATE fabrics
        SET name=?, short_price=?, long_add=?, long_price=?, is_active=?, updated_at=?
        WHERE id=?
        """,
        (new_name, sp, la, sp + la, active, iso_now(), int(fabric_id)),
    )
    log.info("Updated fabric %s: short=%s long=%s active=%s", fabric_id, sp, sp + la, active)
