from __future__ import annotations

import io
from datetime import date

import openpyxl
import pandas as pd
import pytest

from bgsport.services.reports import (
    ALL,
    admin_sales_report,
    dashboard_stats,
    date_mode_range,
    graphic_work_report,
    load_report_orders,
    match_prefix,
    orders_report,
    period_label,
    period_range,
    recent_orders,
    sales_profit_report,
    staff_totals,
    year_options,
)
from bgsport.spreadsheets import export_workbook, read_workbook


def _order(code, order_date, **kw):
    row = {
        "id": kw.pop("id", 1),
        "order_code": code,
        "order_date": order_date,
        "production_completed_at": None,
        "customer_phone": None,
        "admin_user_id": None,
        "graphic_user_id": None,
        "short_qty": 0,
        "long_qty": 0,
        "free_qty": 0,
        "net_total": 0,
        "initial_deposit": 0,
        "balance": 0,
        "factory_cost": 0,
        "profit": 0,
        "status": "in_progress",
    }
    row.update(kw)
    return row


USERS = [
    {"id": 1, "full_name": "Admin Noy", "role": "admin", "is_active": 1},
    {"id": 2, "full_name": "Sale Kham", "role": "sale-admin", "is_active": 1},
    {"id": 3, "full_name": "Graphic Ton", "role": "designer", "is_active": 1},
]


@pytest.mark.parametrize(
    "code,prefix,expected",
    [
        ("PKF26-001", ALL, True),
        ("PKF26-001", "PKF26", True),
        ("PKLF26-001", "PKF26", False),
        ("123-9", "OTHER", True),
        ("PKF26-001", "OTHER", False),
        (None, "OTHER", False),
    ],
)
def test_match_prefix(code, prefix, expected):
    assert match_prefix(code, prefix) is expected


def test_period_range():
    assert period_range(2026, 2) == ("2026-02-01", "2026-03-01")
    assert period_range(2026, 12) == ("2026-12-01", "2027-01-01")
    assert period_range(2026, ALL) == ("2026-01-01", "2027-01-01")
    with pytest.raises(ValueError):
        period_range(2026, 13)
    assert period_label(2026, 3) == "2026-03"
    assert period_label(2026, ALL) == "2026-ALL"


def test_date_mode_range():
    d = date(2024, 2, 10)
    assert date_mode_range("day", d) == ("2024-02-10", "2024-02-10")
    assert date_mode_range("month", d) == ("2024-02-01", "2024-02-29")
    assert date_mode_range("year", d) == ("2024-01-01", "2024-12-31")


def test_year_options():
    assert year_options(today=date(2026, 5, 1)) == [2022, 2023, 2024, 2025, 2026, 2027]


def test_sales_profit_uses_production_date_for_profit():
    orders = [
        _order("PKF26-1", "2026-01-10", short_qty=10, long_qty=2, net_total=1000, factory_cost=400,
               production_completed_at="2026-02-03T12:00:00+00:00"),
        _order("PKF26-2", "2026-02-05", short_qty=1, net_total=500, factory_cost=100),
        _order("MKF26-3", "2026-02-07", short_qty=3, net_total=700, factory_cost=200,
               production_completed_at="2026-02-20T12:00:00+00:00"),
    ]
    rows, summary = sales_profit_report(orders, 2026, 2)
    assert [r["order_code"] for r in rows] == ["PKF26-2", "MKF26-3"]
    assert summary == {"total_sales": 1200, "total_shirts": 4, "total_orders": 2, "total_profit": 600 + 500}

    _, only_pk = sales_profit_report(orders, 2026, 2, prefix="PKF26")
    assert only_pk["total_sales"] == 500
    assert only_pk["total_profit"] == 600


def test_admin_sales_groups_and_sorts():
    orders = [
        _order("A", "2026-03-01", admin_user_id=1, short_qty=2, long_qty=1, net_total=100),
        _order("B", "2026-03-02", admin_user_id=2, short_qty=1, net_total=500),
        _order("C", "2026-03-03", admin_user_id=1, short_qty=1, net_total=50),
        _order("D", "2026-03-04", admin_user_id=99, net_total=10),
        _order("E", "2026-03-05", admin_user_id=None, net_total=1000),
    ]
    rows = admin_sales_report(orders, USERS, 2026, 3)
    assert [(r["name"], r["orders_total"], r["shirts_total"], r["sales_total"]) for r in rows] == [
        ("Sale Kham", 1, 1, 500),
        ("Admin Noy", 2, 4, 150),
        ("Unknown", 1, 0, 10),
    ]
    assert staff_totals(rows) == {"shirts_total": 5, "orders_total": 4, "sales_total": 660}
    only = admin_sales_report(orders, USERS, 2026, 3, admin_id="1")
    assert [r["name"] for r in only] == ["Admin Noy"]


def test_graphic_work_sorts_by_order_count():
    orders = [
        _order("A", "2026-03-01", graphic_user_id=3, net_total=900),
        _order("B", "2026-03-02", graphic_user_id=7, net_total=10),
        _order("C", "2026-03-03", graphic_user_id=7, net_total=10),
    ]
    rows = graphic_work_report(orders, USERS, 2026, ALL)
    assert [(r["name"], r["orders_total"]) for r in rows] == [("Unassigned", 2), ("Graphic Ton", 1)]


def test_orders_report_paid_split():
    orders = [
        _order("A", "2026-04-01", net_total=100, initial_deposit=100, balance=0, status="completed"),
        _order("B", "2026-04-02", net_total=300, initial_deposit=50, balance=250),
        _order("C", "2025-04-02", net_total=300, balance=300),
    ]
    rows, summary = orders_report(orders, 2026, 4)
    assert [r["payment_status"] for r in rows] == ["paid", "unpaid"]
    assert summary == {"paid_amount": 150, "outstanding_amount": 250, "paid_orders": 1, "unpaid_orders": 1}
    unpaid, _ = orders_report(orders, 2026, 4, payment="unpaid")
    assert [r["order_code"] for r in unpaid] == ["B"]
    done, _ = orders_report(orders, 2026, 4, production="completed")
    assert [r["order_code"] for r in done] == ["A"]


def test_dashboard_stats():
    orders = [
        _order("A", "2026-05-01", status="completed", profit=300, balance=0, factory_cost=700,
               short_qty=5, long_qty=2, free_qty=1),
        _order("B", "2026-05-03", profit=999, balance=400, factory_cost=500, short_qty=1),
        _order("C", "2026-06-01", status="completed", profit=50, balance=0),
    ]
    s = dashboard_stats(orders, "2026-05-01", "2026-05-31")
    assert s["total_profit"] == 300
    assert s["customer_balance"] == 400
    assert s["factory_balance"] == 500
    assert (s["completed_orders"], s["in_progress_orders"], s["total_orders"]) == (1, 1, 2)
    assert (s["short_sleeves"], s["long_sleeves"], s["giveaway_shirts"], s["total_shirts"]) == (6, 2, 1, 9)
    assert dashboard_stats(orders)["total_orders"] == 3


def test_loaders_against_database(conn, make_order):
    for i in range(7):
        make_order(order_date=f"2026-01-{i + 1:02d}")
    assert len(load_report_orders(conn)) == 7
    recent = recent_orders(conn, "2026-01-02", "2026-01-06")
    assert [r["order_date"] for r in recent] == ["2026-01-06", "2026-01-05", "2026-01-04", "2026-01-03", "2026-01-02"]
    assert len(recent_orders(conn)) == 5


def test_export_workbook_appends_summary_row():
    df = pd.DataFrame([{"name": "Admin Noy", "sales_total": 150}, {"name": "Sale Kham", "sales_total": 500}])
    data = export_workbook(df, "admin_sales_report", {"name": "TOTAL", "sales_total": 650})
    wb = openpyxl.load_workbook(io.BytesIO(data))
    ws = wb["admin_sales_report"]
    values = [tuple(c.value for c in row) for row in ws.iter_rows()]
    assert values[0] == ("name", "sales_total")
    assert values[-1] == ("TOTAL", 650)
    assert len(values) == 4


def test_read_workbook_round_trips_first_sheet():
    df = pd.DataFrame([{"order_code": "PKF26-1", "short_qty": 3, "phone": None}])
    rows = read_workbook(export_workbook(df, "orders"))
    assert rows[0]["order_code"] == "PKF26-1"
    assert rows[0]["phone"] == ""


def test_read_workbook_rejects_empty_sheet():
    with pytest.raises(ValueError, match="no data rows"):
        read_workbook(export_workbook(pd.DataFrame(columns=["order_code"]), "orders"))
