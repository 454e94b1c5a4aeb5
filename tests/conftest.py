# tests/conftest.py
# ---------------------------------------------------------------------
# - Every test gets its own in-memory SQLite DB built by ensure_schema
# - conn.row_factory = sqlite3.Row, PRAGMA foreign_keys=ON (via _connect)
# - Handy ids for one fabric, one admin and one graphic user
# - make_order() builds a valid order with overridable fields
# ---------------------------------------------------------------------

from __future__ import annotations

import sqlite3

import pytest

from bgsport.db import _connect, ensure_schema
from bgsport.services.fabrics import create_fabric
from bgsport.services.orders import OrderInput, create_order
from bgsport.services.users import create_user


@pytest.fixture
def conn() -> sqlite3.Connection:
    c = _connect(":memory:")
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture
def fabric_id(conn) -> int:
    # short 50000, long 70000
    return create_fabric(conn, name="Sport Micro", short_price=50000, long_add=20000)


@pytest.fixture
def admin_id(conn) -> int:
    return create_user(conn, full_name="Admin Noy", role="admin")


@pytest.fixture
def graphic_id(conn) -> int:
    return create_user(conn, full_name="Graphic Ton", role="graphic")


@pytest.fixture
def make_order(conn, fabric_id, admin_id, graphic_id):
    counter = {"n": 0}

    def _make(**overrides) -> int:
        counter["n"] += 1
        fields = dict(
            order_code=f"PKF26-{counter['n']:03d}",
            order_date="2026-01-15",
            fabric_id=fabric_id,
            admin_user_id=admin_id,
            graphic_user_id=graphic_id,
            short_qty=10,
            long_qty=5,
            qty_3xl=2,
            extra_charge=10000,
            design_deposit=20000,
            factory_cost=600000,
        )
        fields.update(overrides)
        return create_order(conn, OrderInput(**fields))

    return _make
