from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional, Union

from bgsport.config import DEFAULT_PAGE_SIZE, DEFAULT_SIZE_UPCHARGE
from bgsport.db import is_missing_table_error, q, tx, x
from bgsport.services.fabrics import get_fabric
from bgsport.services.history import record_history
from bgsport.services.settlement import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    Settlement,
    SettlementInputs,
    completion_blockers,
    compute_settlement,
    customer_received,
)
from bgsport.services.users import get_user
from bgsport.utils import clamp_int, date_to_iso, iso_now

log = logging.getLogger(__name__)

LEDGER_TABLES = {"customer": "payment_transactions", "factory": "factory_payments"}

LIST_COLUMNS = (
    "id, order_code, order_date, customer_phone, factory_bill_code, fabric_name, "
    "net_total, initial_deposit, balance, factory_cost, status, updated_at"
)


@dataclass
class OrderInput:
    order_code: str
    order_date: Union[str, date]
    fabric_id: Optional[int] = None
    customer_phone: Optional[str] = None
    factory_bill_code: Optional[str] = None
    admin_user_id: Optional[int] = None
    graphic_user_id: Optional[int] = None
    short_qty: int = 0
    long_qty: int = 0
    free_qty: int = 0
    qty_3xl: int = 0
    qty_4xl: int = 0
    qty_5xl: int = 0
    extra_charge: int = 0
    design_deposit: int = 0
    initial_deposit: int = 0
    factory_cost: int = 0
    customer_remaining_due_on: Optional[Union[str, date]] = None
    factory_payment_due_on: Optional[Union[str, date]] = None
    production_completed_on: Optional[Union[str, date]] = None


@dataclass
class OrderFilters:
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    status: str = "all"            # all / in_progress / completed
    prefix: str = "ALL"            # ALL, OTHER (leading digit) or an order-code prefix
    query: str = ""                # order code / factory bill / phone
    payment: str = "all"           # all / paid / unpaid
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


def _escape_like(s: str) -> str:
    return s.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_order_query(
    filters: OrderFilters,
    columns: str = LIST_COLUMNS,
    *,
    paginate: bool = True,
    ordered: bool = True,
) -> tuple[str, list[Any]]:
    """Turn list filters into one SELECT over orders (no I/O)."""
    where: list[str] = []
    params: list[Any] = []

    if filters.date_from:
        where.append("order_date >= ?")
        params.append(str(filters.date_from)[:10])
    if filters.date_to:
        where.append("order_date <= ?")
        params.append(str(filters.date_to)[:10])
    if filters.status and filters.status != "all":
        where.append("status = ?")
        params.append(filters.status)
    if filters.payment == "paid":
        where.append("balance = 0")
    elif filters.payment == "unpaid":
        where.append("balance > 0")
    if filters.prefix == "OTHER":
        where.append("order_code GLOB '[0-9]*'")
    elif filters.prefix and filters.prefix != "ALL":
        where.append("order_code LIKE ? ESCAPE '\\'")
        params.append(_escape_like(filters.prefix) + "%")

    s = str(filters.query or "").strip()
    if s:
        pattern = f"%{_escape_like(s)}%"
        where.append(
            "(order_code LIKE ? ESCAPE '\\' OR COALESCE(factory_bill_code,'') LIKE ? ESCAPE '\\' "
            "OR COALESCE(customer_phone,'') LIKE ? ESCAPE '\\')"
        )
        params.extend([pattern, pattern, pattern])

    sql = f"SELECT {columns} FROM orders"
    if where:
        sql += " WHERE " + " AND ".join(where)
    if ordered:
        sql += " ORDER BY order_date DESC, created_at DESC, id DESC"
    if paginate:
        page = max(1, int(filters.page or 1))
        size = max(1, int(filters.page_size or DEFAULT_PAGE_SIZE))
        sql += " LIMIT ? OFFSET ?"
        params.extend([size, (page - 1) * size])
    return sql, params


def list_orders(conn, filters: OrderFilters, columns: str = LIST_COLUMNS, *, paginate: bool = True):
    sql, params = build_order_query(filters, columns, paginate=paginate)
    return q(conn, sql, params)


def count_orders(conn, filters: OrderFilters) -> int:
    sql, params = build_order_query(filters, "COUNT(*) AS n", paginate=False, ordered=False)
    return int(q(conn, sql, params)[0]["n"])


def get_order(conn, order_id: int):
    rows = q(conn, "SELECT * FROM orders WHERE id=?", (int(order_id),))
    return rows[0] if rows else None


def get_order_by_code(conn, order_code: str):
    rows = q(conn, "SELECT * FROM orders WHERE order_code=?", (str(order_code).strip(),))
    return rows[0] if rows else None


def ledger_amounts(conn, kind: str, order_id: int) -> list[int]:
    table = LEDGER_TABLES[kind]
    try:
        rows = q(conn, f"SELECT amount FROM {table} WHERE order_id=?", (int(order_id),))
    except sqlite3.OperationalError as e:
        if is_missing_table_error(e):
            return []
        raise
    return [int(r["amount"]) for r in rows]


def order_settlement(conn, order) -> Settlement:
    """
    Settlement recomputed from the order's snapshot inputs and both ledgers.
    The cached gross/net/balance columns are never read here.
    """
    if not hasattr(order, "keys"):
        order = get_order(conn, int(order))
        if order is None:
            raise ValueError("Order not found.")
    received = customer_received(ledger_amounts(conn, "customer", order["id"]), order["initial_deposit"])
    factory_paid = sum(ledger_amounts(conn, "factory", order["id"]))
    return compute_settlement(
        SettlementInputs.from_order(order, customer_payments_total=received, factory_payments_total=factory_paid)
    )


def _check_staff(conn, user_id: Optional[int], role: str, label: str, *, required: bool) -> Optional[int]:
    if not user_id:
        if required:
            raise ValueError(f"Please select {label}.")
        return None
    user = get_user(conn, int(user_id))
    if user is None or user["role"] != role:
        raise ValueError(f"Selected {label} is not a {role} user.")
    return int(user["id"])


def _quantities(data: OrderInput) -> dict[str, int]:
    return {
        "short_qty": clamp_int(data.short_qty),
        "long_qty": clamp_int(data.long_qty),
        "free_qty": clamp_int(data.free_qty),
        "qty_3xl": clamp_int(data.qty_3xl),
        "qty_4xl": clamp_int(data.qty_4xl),
        "qty_5xl": clamp_int(data.qty_5xl),
        "extra_charge": clamp_int(data.extra_charge),
        "design_deposit": clamp_int(data.design_deposit),
        "factory_cost": clamp_int(data.factory_cost),
    }


def _order_date(value) -> str:
    s = value.isoformat() if isinstance(value, date) else str(value or "").strip()
    if not s:
        raise ValueError("Order date is required.")
    return s[:10]


def create_order(conn, data: OrderInput, *, size_upcharge: int = DEFAULT_SIZE_UPCHARGE) -> int:
    """
    Insert a new in-progress order. The fabric's current prices are copied
    onto the order; later fabric edits never change this order.
    """
    code = str(data.order_code or "").strip()
    if not code:
        raise ValueError("Order code is required.")
    if data.fabric_id is None:
        raise ValueError("Please select a fabric.")
    fabric = get_fabric(conn, int(data.fabric_id))
    if fabric is None:
        raise ValueError("Fabric not found.")
    if get_order_by_code(conn, code) is not None:
        raise ValueError(f"Order code {code} already exists.")

    admin_id = _check_staff(conn, data.admin_user_id, "admin", "admin", required=False)
    graphic_id = _check_staff(conn, data.graphic_user_id, "graphic", "graphic", required=False)

    qty = _quantities(data)
    deposit = clamp_int(data.initial_deposit)
    upcharge = clamp_int(size_upcharge) or DEFAULT_SIZE_UPCHARGE
    s = compute_settlement(
        SettlementInputs(
            fabric_short_price=int(fabric["short_price"]),
            fabric_long_price=int(fabric["long_price"]),
            size_upcharge=upcharge,
            customer_payments_total=deposit,
            **qty,
        )
    )
    if deposit > s.net_total:
        raise ValueError(f"Deposit exceeds the net total ({s.net_total:,}).")

    now = iso_now()
    order_day = _order_date(data.order_date)
    row = {
        "order_code": code,
        "order_date": order_day,
        "customer_phone": str(data.customer_phone or "").strip() or None,
        "factory_bill_code": str(data.factory_bill_code or "").strip() or None,
        "admin_user_id": admin_id,
        "graphic_user_id": graphic_id,
        "fabric_id": int(fabric["id"]),
        "fabric_name": str(fabric["name"]),
        "fabric_short_price": int(fabric["short_price"]),
        "fabric_long_price": int(fabric["long_price"]),
        "size_upcharge": upcharge,
        **qty,
        **s.cached_columns(),
        "status": STATUS_IN_PROGRESS,
        "customer_remaining_due_at": date_to_iso(data.customer_remaining_due_on),
        "factory_payment_due_at": date_to_iso(data.factory_payment_due_on),
        "production_completed_at": date_to_iso(data.production_completed_on),
        "customer_paid_full_at": date_to_iso(order_day) if s.net_total > 0 and s.customer_balance == 0 else None,
        "created_at": now,
        "updated_at": now,
    }
    cols = ", ".join(row)
    marks = ", ".join("?" for _ in row)
    with tx(conn):
        cur = conn.execute(f"INSERT INTO orders ({cols}) VALUES ({marks})", list(row.values()))
        order_id = int(cur.lastrowid)
        if deposit > 0:
            conn.execute(
                "INSERT INTO payment_transactions (order_id, amount, paid_at, note, created_at) VALUES (?, ?, ?, ?, ?)",
                (order_id, deposit, date_to_iso(order_day), "Deposit at order intake", now),
            )
    log.info("Created order %s (%s) net_total=%s", order_id, code, s.net_total)
    return order_id


def update_order(conn, order_id: int, data: OrderInput) -> Settlement:
    """
    Save edited order details. Totals are recomputed from the order's own
    price snapshot and the payment ledgers.
    """
    order = get_order(conn, order_id)
    if order is None:
        raise ValueError("Order not found.")
    if order["status"] == STATUS_COMPLETED:
        raise ValueError("Completed orders cannot be edited.")

    code = str(data.order_code or "").strip()
    if not code:
        raise ValueError("Order code is required.")
    other = get_order_by_code(conn, code)
    if other is not None and int(other["id"]) != int(order_id):
        raise ValueError(f"Order code {code} already exists.")

    admin_id = _check_staff(conn, data.admin_user_id, "admin", "admin", required=True)
    graphic_id = _check_staff(conn, data.graphic_user_id, "graphic", "graphic", required=True)

    qty = _quantities(data)
    received = customer_received(ledger_amounts(conn, "customer", order_id), order["initial_deposit"])
    factory_paid = sum(ledger_amounts(conn, "factory", order_id))
    s = compute_settlement(
        SettlementInputs(
            fabric_short_price=int(order["fabric_short_price"]),
            fabric_long_price=int(order["fabric_long_price"]),
            size_upcharge=int(order["size_upcharge"] or DEFAULT_SIZE_UPCHARGE),
            customer_payments_total=received,
            factory_payments_total=factory_paid,
            **qty,
        )
    )
    if received > s.net_total:
        raise ValueError(f"Customer has already paid {received:,}, more than the new net total ({s.net_total:,}).")
    if factory_paid > s.factory_cost:
        raise ValueError(f"Factory has already been paid {factory_paid:,}, more than the new factory cost ({s.factory_cost:,}).")

    now = iso_now()
    changes = {
        "order_code": code,
        "order_date": _order_date(data.order_date),
        "customer_phone": str(data.customer_phone or "").strip() or None,
        "factory_bill_code": str(data.factory_bill_code or "").strip() or None,
        "admin_user_id": admin_id,
        "graphic_user_id": graphic_id,
        **qty,
        **s.cached_columns(),
        "customer_remaining_due_at": date_to_iso(data.customer_remaining_due_on),
        "factory_payment_due_at": date_to_iso(data.factory_payment_due_on),
        "production_completed_at": date_to_iso(data.production_completed_on),
        "updated_at": now,
    }
    # "Paid in full" stamps track the recomputed balances in both directions.
    if s.customer_balance > 0:
        changes["customer_paid_full_at"] = None
    elif s.net_total > 0 and not order["customer_paid_full_at"]:
        changes["customer_paid_full_at"] = now
    if s.factory_balance > 0:
        changes["factory_paid_full_at"] = None
    elif s.factory_cost > 0 and not order["factory_paid_full_at"]:
        changes["factory_paid_full_at"] = now

    assignments = ", ".join(f"{k}=?" for k in changes)
    with tx(conn):
        conn.execute(f"UPDATE orders SET {assignments} WHERE id=?", [*changes.values(), int(order_id)])
        record_history(conn, order_id, "update_order", "Updated order details and recalculated totals", commit=False)
    log.info("Updated order %s (%s) net_total=%s balance=%s", order_id, code, s.net_total, s.customer_balance)
    return s


def refresh_cached_totals(conn, order_id: int) -> Settlement:
    s = order_settlement(conn, int(order_id))
    cols = s.cached_columns()
    assignments = ", ".join(f"{k}=?" for k in cols)
    x(conn, f"UPDATE orders SET {assignments}, updated_at=? WHERE id=?", [*cols.values(), iso_now(), int(order_id)])
    return s


def mark_production_completed(conn, order_id: int, on_date) -> None:
    stamp = date_to_iso(on_date)
    if not stamp:
        raise ValueError("Please pick the production completed date.")
    if get_order(conn, order_id) is None:
        raise ValueError("Order not found.")
    with tx(conn):
        conn.execute(
            "UPDATE orders SET production_completed_at=?, updated_at=? WHERE id=?",
            (stamp, iso_now(), int(order_id)),
        )
        record_history(conn, order_id, "production_completed", "Marked production completed", commit=False)


def close_order(conn, order_id: int, *, require_factory: bool = True) -> None:
    """
    in_progress -> completed. Rejected (ValueError) while the customer, or
    the factory when `require_factory` is set, still has a balance.
    """
    order = get_order(conn, order_id)
    if order is None:
        raise ValueError("Order not found.")
    if order["status"] == STATUS_COMPLETED:
        raise ValueError("Order is already completed.")

    s = order_settlement(conn, order)
    blockers = completion_blockers(s, require_factory=require_factory)
    if blockers:
        log.warning("Refused to close order %s: %s", order_id, " ".join(blockers))
        raise ValueError("Cannot close order: " + " ".join(blockers))

    now = iso_now()
    with tx(conn):
        conn.execute(
            """
            UPDATE orders
            SET status=?, completed_at=?, closed_at=?,
                customer_paid_full_at=COALESCE(customer_paid_full_at, ?),
                factory_paid_full_at=COALESCE(factory_paid_full_at, ?),
                updated_at=?
            WHERE id=?
            """,
            (STATUS_COMPLETED, now, now, now, now, now, int(order_id)),
        )
        record_history(conn, order_id, "close_order", "Closed order (completed)", commit=False)
    log.info("Closed order %s (%s)", order_id, order["order_code"])


def delete_orders(conn, order_ids: Iterable[int]) -> int:
    ids = [int(i) for i in order_ids]
    if not ids:
        return 0
    marks = ",".join("?" for _ in ids)
    with tx(conn):
        cur = conn.execute(f"DELETE FROM orders WHERE id IN ({marks})", ids)
        deleted = cur.rowcount
    log.warning("Deleted %s order(s): %s", deleted, ids)
    return int(deleted)
