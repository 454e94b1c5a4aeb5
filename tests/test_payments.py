from __future__ import annotations

import pytest

from bgsport.db import q
from bgsport.services.history import list_history, record_history
from bgsport.services.orders import OrderFilters, get_order, order_settlement
from bgsport.services.payments import (
    OPENING_DEPOSIT_NOTE,
    list_customer_payments,
    list_factory_payments,
    payments_overview,
    record_customer_payment,
    record_factory_payment,
)


def test_partial_then_full_payment(conn, make_order):
    oid = make_order()
    res = record_customer_payment(conn, oid, 300000, paid_on="2026-01-20", note="first")
    assert res.outstanding == 580000
    assert not res.paid_in_full
    o = get_order(conn, oid)
    assert o["initial_deposit"] == 300000
    assert o["balance"] == 580000
    assert o["customer_paid_full_at"] is None

    res = record_customer_payment(conn, oid, 580000, paid_on="2026-01-25")
    assert res.paid_in_full
    o = get_order(conn, oid)
    assert o["balance"] == 0
    assert o["customer_paid_full_at"] == "2026-01-25T12:00:00+00:00"
    assert [p["amount"] for p in list_customer_payments(conn, oid)] == [580000, 300000]


def test_overpayment_is_rejected_without_any_write(conn, make_order):
    oid = make_order()
    record_customer_payment(conn, oid, 880000)
    before = q(conn, "SELECT COUNT(*) AS n FROM payment_transactions")[0]["n"]
    with pytest.raises(ValueError, match="Amount exceeds outstanding balance"):
        record_customer_payment(conn, oid, 1)
    assert q(conn, "SELECT COUNT(*) AS n FROM payment_transactions")[0]["n"] == before
    assert get_order(conn, oid)["balance"] == 0


@pytest.mark.parametrize("amount", [0, -5])
def test_non_positive_amount_rejected(make_order, conn, amount):
    oid = make_order()
    with pytest.raises(ValueError, match="greater than 0"):
        record_customer_payment(conn, oid, amount)


def test_unknown_order(conn):
    with pytest.raises(ValueError, match="Order not found"):
        record_customer_payment(conn, 12345, 10)


def test_legacy_deposit_moves_into_ledger_on_first_payment(conn, make_order):
    oid = make_order()
    # Older rows carry a deposit in the orders table but no ledger row.
    conn.execute("UPDATE orders SET initial_deposit=200000, balance=680000 WHERE id=?", (oid,))
    conn.commit()
    assert order_settlement(conn, oid).customer_received == 200000

    res = record_customer_payment(conn, oid, 100000)
    assert res.outstanding == 580000
    ledger = list_customer_payments(conn, oid)
    assert sorted(p["amount"] for p in ledger) == [100000, 200000]
    assert OPENING_DEPOSIT_NOTE in [p["note"] for p in ledger]
    assert order_settlement(conn, oid).customer_received == 300000


def test_factory_payments(conn, make_order):
    oid = make_order()
    res = record_factory_payment(conn, oid, 250000)
    assert res.outstanding == 350000
    with pytest.raises(ValueError, match="exceeds outstanding"):
        record_factory_payment(conn, oid, 350001)
    res = record_factory_payment(conn, oid, 350000, paid_on="2026-02-02")
    assert res.paid_in_full
    assert get_order(conn, oid)["factory_paid_full_at"] == "2026-02-02T12:00:00+00:00"
    assert len(list_factory_payments(conn, oid)) == 2
    # customer side is untouched
    assert get_order(conn, oid)["balance"] == 880000


def test_payments_write_history(conn, make_order):
    oid = make_order()
    record_customer_payment(conn, oid, 1000)
    record_factory_payment(conn, oid, 1000)
    actions = [h["action"] for h in list_history(conn, oid)]
    assert actions == ["pay_factory", "receive_customer_payment"]


def test_missing_history_table_is_tolerated(conn, make_order):
    oid = make_order()
    conn.execute("DROP TABLE order_status_history")
    conn.commit()
    assert record_history(conn, oid, "noop") is False
    assert list_history(conn, oid) == []
    res = record_customer_payment(conn, oid, 1000)
    assert res.outstanding == 879000


def test_payments_overview(conn, make_order):
    a = make_order(order_code="PKF26-001")
    make_order(order_code="PKF26-002", initial_deposit=80000)
    record_customer_payment(conn, a, 880000)

    rows, summary = payments_overview(conn, OrderFilters())
    by_code = {r["order_code"]: r for r in rows}
    assert by_code["PKF26-001"]["paid"] is True
    assert by_code["PKF26-002"]["received"] == 80000
    assert summary["total_billed"] == 1_760_000
    assert summary["total_received"] == 960000
    assert summary["total_outstanding"] == 800000
    assert summary["paid_orders"] == 1
    assert summary["ready_to_close"] == 1
    assert summary["tx_count"] == 2
    assert summary["collection_rate"] == pytest.approx(960000 / 1_760_000 * 100)
