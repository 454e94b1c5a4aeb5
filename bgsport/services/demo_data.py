from __future__ import annotations

import logging
import random
from datetime import date, timedelta

from bgsport.db import ensure_schema, q, tx, x
from bgsport.services.fabrics import DEFAULT_LONG_ADD
from bgsport.services.orders import OrderInput, close_order, create_order, get_order_by_code, mark_production_completed
from bgsport.services.payments import record_customer_payment, record_factory_payment
from bgsport.services.reports import PREFIXES
from bgsport.utils import iso_now

log = logging.getLogger(__name__)

DEFAULT_FABRICS = [
    ("Sport Micro", 75000),
    ("Cool Max", 85000),
    ("Thai Jersey", 95000),
]
DEFAULT_STAFF = [
    ("Admin Noy", "admin"),
    ("Admin Kham", "admin"),
    ("Graphic Ton", "graphic"),
    ("Graphic Mint", "graphic"),
    ("Manager Vong", "manager"),
]


def upsert_reference_data(conn) -> None:
    ensure_schema(conn)
    now = iso_now()

    for name, short_price in DEFAULT_FABRICS:
        x(
            conn,
            """
            INSERT OR IGNORE INTO fabrics (name, short_price, long_add, long_price, is_active, updated_at)
            VALUES (?, ?, ?, ?, 1, ?)
            """,
            (name, short_price, DEFAULT_LONG_ADD, short_price + DEFAULT_LONG_ADD, now),
        )

    for full_name, role in DEFAULT_STAFF:
        if q(conn, "SELECT id FROM users WHERE full_name=? AND role=?", (full_name, role)):
            continue
        x(
            conn,
            "INSERT INTO users (full_name, role, is_active, created_at, updated_at) VALUES (?, ?, 1, ?, ?)",
            (full_name, role, now, now),
        )


def wipe_all(conn) -> None:
    # Keep schema, delete data (children first for FKs).
    with tx(conn):
        for t in ["order_status_history", "factory_payments", "payment_transactions", "orders", "users", "fabrics"]:
            conn.execute(f"DELETE FROM {t};")
    log.warning("Wiped all data")


def load_demo_data(conn, *, seed: int = 7, count: int = 12) -> None:
    random.seed(seed)
    upsert_reference_data(conn)

    fabrics = q(conn, "SELECT * FROM fabrics WHERE is_active=1 ORDER BY id")
    admins = q(conn, "SELECT id FROM users WHERE role='admin' AND is_active=1 ORDER BY id")
    graphics = q(conn, "SELECT id FROM users WHERE role='graphic' AND is_active=1 ORDER BY id")

    base_date = date.today() - timedelta(days=40)
    for i in range(count):
        order_date = base_date + timedelta(days=i * 3)
        code = f"{random.choice(PREFIXES)}-{order_date.strftime('%m%d')}-{i + 1:03d}"
        if get_order_by_code(conn, code) is not None:
            continue

        fabric = random.choice(fabrics)
        short_qty = random.randint(10, 30)
        long_qty = random.randint(0, 15)
        factory_cost = (short_qty + long_qty) * random.choice([45000, 50000, 55000])

        order_id = create_order(
            conn,
            OrderInput(
                order_code=code,
                order_date=order_date,
                fabric_id=int(fabric["id"]),
                customer_phone=f"020{random.randint(10000000, 99999999)}",
                factory_bill_code=f"FB-{i + 1:03d}",
                admin_user_id=int(random.choice(admins)["id"]),
                graphic_user_id=int(random.choice(graphics)["id"]),
                short_qty=short_qty,
                long_qty=long_qty,
                free_qty=random.choice([0, 0, 1, 2]),
                qty_3xl=random.choice([0, 0, 1]),
                qty_4xl=random.choice([0, 0, 1]),
                extra_charge=random.choice([0, 0, 50000]),
                design_deposit=random.choice([0, 0, 100000]),
                initial_deposit=500000,
                factory_cost=factory_cost,
            ),
        )

        # Older orders are settled and closed; newer ones carry partial payments.
        if i < count // 3:
            result = record_customer_payment(conn, order_id, _outstanding(conn, order_id), paid_on=order_date + timedelta(days=7))
            record_factory_payment(conn, order_id, factory_cost, paid_on=order_date + timedelta(days=7))
            mark_production_completed(conn, order_id, order_date + timedelta(days=6))
            if result.paid_in_full:
                close_order(conn, order_id)
        elif i % 2 == 0:
            part = _outstanding(conn, order_id) // 2
            if part > 0:
                record_customer_payment(conn, order_id, part, paid_on=order_date + timedelta(days=5), note="Partial")

    log.info("Loaded demo data (%s orders requested)", count)


def _outstanding(conn, order_id: int) -> int:
    return int(q(conn, "SELECT balance FROM orders WHERE id=?", (int(order_id),))[0]["balance"])
