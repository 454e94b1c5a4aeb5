from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

from bgsport.db import is_missing_table_error, q, tx
from bgsport.services.history import record_history
from bgsport.services.orders import (
    LEDGER_TABLES,
    OrderFilters,
    get_order,
    ledger_amounts,
    list_orders,
    order_settlement,
)
from bgsport.services.settlement import STATUS_IN_PROGRESS, Settlement, check_payment_amount
from bgsport.utils import date_to_iso, iso_now, safe_pct

log = logging.getLogger(__name__)

OPENING_DEPOSIT_NOTE = "Opening deposit"


@dataclass(frozen=True)
class PaymentResult:
    payment_id: int
    amount: int
    outstanding: int
    paid_in_full: bool


def _list_ledger(conn, kind: str, order_id: int):
    table = LEDGER_TABLES[kind]
    try:
        return q(
            conn,
            f"""
            SELECT id, order_id, amount, paid_at, note, created_at
            FROM {table}
            WHERE order_id=?
            ORDER BY paid_at DESC, created_at DESC, id DESC
            """,
            (int(order_id),),
        )
    except sqlite3.OperationalError as e:
        if is_missing_table_error(e):
            return []
        raise


def list_customer_payments(conn, order_id: int):
    return _list_ledger(conn, "customer", order_id)


def list_factory_payments(conn, order_id: int):
    return _list_ledger(conn, "factory", order_id)


def _record_payment(conn, kind: str, order_id: int, amount: Any, paid_on=None, note: Optional[str] = None) -> PaymentResult:
    order = get_order(conn, order_id)
    if order is None:
        raise ValueError("Order not found.")

    before: Settlement = order_settlement(conn, order)
    outstanding = before.customer_balance if kind == "customer" else before.factory_balance
    try:
        value = check_payment_amount(amount, outstanding)
    except ValueError:
        log.warning("Rejected %s payment of %r on order %s (outstanding %s)", kind, amount, order_id, outstanding)
        raise

    paid_at = date_to_iso(paid_on) or iso_now()
    now = iso_now()
    legacy_deposit = (
        int(order["initial_deposit"] or 0)
        if kind == "customer" and not ledger_amounts(conn, "customer", order_id)
        else 0
    )

    # Ledger row and cached order columns are written in one transaction.
    with tx(conn):
        if legacy_deposit > 0:
            # Deposit recorded before the ledger existed becomes its first row.
            conn.execute(
                "INSERT INTO payment_transactions (order_id, amount, paid_at, note, created_at) VALUES (?, ?, ?, ?, ?)",
                (int(order_id), legacy_deposit, date_to_iso(order["order_date"]), OPENING_DEPOSIT_NOTE, now),
            )
        cur = conn.execute(
            f"INSERT INTO {LEDGER_TABLES[kind]} (order_id, amount, paid_at, note, created_at) VALUES (?, ?, ?, ?, ?)",
            (int(order_id), value, paid_at, str(note or "").strip() or None, now),
        )
        payment_id = int(cur.lastrowid)

        if kind == "customer":
            received = before.customer_received + value
            next_outstanding = max(0, before.net_total - received)
            conn.execute(
                "UPDATE orders SET initial_deposit=?, balance=?, customer_paid_full_at=?, updated_at=? WHERE id=?",
                (received, next_outstanding, paid_at if next_outstanding == 0 else None, now, int(order_id)),
            )
            record_history(conn, order_id, "receive_customer_payment", f"Received {value}", commit=False)
        else:
            next_outstanding = max(0, before.factory_cost - (before.factory_paid + value))
            conn.execute(
                "UPDATE orders SET factory_paid_full_at=?, updated_at=? WHERE id=?",
                (paid_at if next_outstanding == 0 else None, now, int(order_id)),
            )
            record_history(conn, order_id, "pay_factory", f"Paid factory {value}", commit=False)

    log.info("Recorded %s payment %s of %s on order %s; outstanding %s", kind, payment_id, value, order_id, next_outstanding)
    return PaymentResult(
        payment_id=payment_id,
        amount=value,
        outstanding=next_outstanding,
        paid_in_full=next_outstanding == 0,
    )


def record_customer_payment(conn, order_id: int, amount: Any, paid_on=None, note: Optional[str] = None) -> PaymentResult:
    """
    Append a customer payment. The amount must be > 0 and no more than the
    outstanding customer balance; a payment that clears the balance stamps
    customer_paid_full_at with the payment date.
    """
    return _record_payment(conn, "customer", order_id, amount, paid_on, note)


def record_factory_payment(conn, order_id: int, amount: Any, paid_on=None, note: Optional[str] = None) -> PaymentResult:
    return _record_payment(conn, "factory", order_id, amount, paid_on, note)


def payments_overview(conn, filters: OrderFilters) -> tuple[list[dict], dict]:
    """
    Per-order billed / received / outstanding rows plus the summary block
    of the Payments page.
    """
    orders = list_orders(
        conn,
        filters,
        "id, order_code, order_date, customer_phone, factory_bill_code, net_total, initial_deposit, balance, status",
        paginate=False,
    )

    try:
        txs = q(conn, "SELECT order_id, amount FROM payment_transactions")
    except sqlite3.OperationalError as e:
        if not is_missing_table_error(e):
            raise
        txs = []

    received_by_order: dict[int, int] = {}
    for t in txs:
        received_by_order[int(t["order_id"])] = received_by_order.get(int(t["order_id"]), 0) + int(t["amount"])

    rows: list[dict] = []
    for o in orders:
        received = received_by_order.get(int(o["id"]), int(o["initial_deposit"] or 0))
        rows.append(
            {
                "id": int(o["id"]),
                "order_code": o["order_code"],
                "order_date": o["order_date"],
                "customer_phone": o["customer_phone"],
                "factory_bill_code": o["factory_bill_code"],
                "net_total": int(o["net_total"]),
                "received": received,
                "balance": int(o["balance"]),
                "paid": int(o["balance"]) == 0,
                "status": o["status"],
            }
        )

    total_billed = sum(r["net_total"] for r in rows)
    total_received = sum(r["received"] for r in rows)
    summary = {
        "total_billed": total_billed,
        "total_received": total_received,
        "total_outstanding": sum(r["balance"] for r in rows),
        "paid_orders": sum(1 for r in rows if r["paid"]),
        "in_progress": sum(1 for r in rows if r["status"] == STATUS_IN_PROGRESS),
        "ready_to_close": sum(1 for r in rows if r["status"] == STATUS_IN_PROGRESS and r["paid"]),
        "collection_rate": safe_pct(total_received, total_billed),
        "tx_count": len(txs),
    }
    return rows, summary
