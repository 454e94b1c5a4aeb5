from __future__ import annotations

from bgsport.db import q
from bgsport.services.demo_data import load_demo_data, upsert_reference_data, wipe_all
from bgsport.services.orders import order_settlement


def _count(conn, table: str) -> int:
    return int(q(conn, f"SELECT COUNT(*) AS n FROM {table}")[0]["n"])


def test_reference_data_is_idempotent(conn):
    upsert_reference_data(conn)
    upsert_reference_data(conn)
    assert _count(conn, "fabrics") == 3
    assert _count(conn, "users") == 5


def test_demo_data_is_consistent(conn):
    load_demo_data(conn, count=9)
    assert _count(conn, "orders") == 9
    assert _count(conn, "payment_transactions") >= 9
    assert q(conn, "SELECT COUNT(*) AS n FROM orders WHERE status='completed'")[0]["n"] == 3

    for o in q(conn, "SELECT * FROM orders"):
        s = order_settlement(conn, o)
        assert o["balance"] == s.customer_balance
        assert o["initial_deposit"] == s.customer_received
        if o["status"] == "completed":
            assert s.customer_balance == 0 and s.factory_balance == 0


def test_wipe_all(conn):
    load_demo_data(conn, count=3)
    wipe_all(conn)
    for t in ("orders", "payment_transactions", "factory_payments", "order_status_history", "users", "fabrics"):
        assert _count(conn, t) == 0
