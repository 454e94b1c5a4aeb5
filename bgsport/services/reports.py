"""
Period reports over orders.

Every report takes plain order rows (sqlite3.Row or dicts) so the same
filters serve the page, the export and the tests. Loaders at the bottom
pull the rows the reports need.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional, Union

from bgsport.db import q
from bgsport.services.settlement import STATUS_COMPLETED, STATUS_IN_PROGRESS
from bgsport.services.users import ADMIN_ROLE_ALIASES, GRAPHIC_ROLE_ALIASES

PREFIXES = ("PKF26", "PKLF26", "MKF26", "MKLF26", "PMF26", "PMLF26", "MMF26", "MMLF26")
PREFIX_OPTIONS = ("ALL", *PREFIXES, "OTHER")
ALL = "ALL"

Month = Union[int, str]


def match_prefix(order_code: Any, prefix: str) -> bool:
    code = str(order_code or "")
    if prefix == ALL:
        return True
    if prefix == "OTHER":
        return bool(re.match(r"^\d", code))
    return code.startswith(prefix)


def period_range(year: int, month: Month) -> tuple[str, str]:
    """(start, end_exclusive) as YYYY-MM-DD for a month, or the whole year when month is ALL."""
    y = int(year)
    if month == ALL:
        return date(y, 1, 1).isoformat(), date(y + 1, 1, 1).isoformat()
    m = int(month)
    if not 1 <= m <= 12:
        raise ValueError("Month must be between 1 and 12.")
    end = date(y + 1, 1, 1) if m == 12 else date(y, m + 1, 1)
    return date(y, m, 1).isoformat(), end.isoformat()


def date_mode_range(mode: str, day: date) -> tuple[str, str]:
    """Inclusive (first, last) day around `day` for the day / month / year search modes."""
    if mode == "day":
        return day.isoformat(), day.isoformat()
    if mode == "month":
        start, end = period_range(day.year, day.month)
    elif mode == "year":
        start, end = period_range(day.year, ALL)
    else:
        raise ValueError("Date mode must be day, month or year.")
    return start, (date.fromisoformat(end) - timedelta(days=1)).isoformat()


def period_label(year: int, month: Month) -> str:
    return f"{year}-ALL" if month == ALL else f"{year}-{int(month):02d}"


def month_options() -> list[Month]:
    return [ALL, *range(1, 13)]


def year_options(back: int = 4, forward: int = 1, today: Optional[date] = None) -> list[int]:
    now = (today or date.today()).year
    return list(range(now - back, now + forward + 1))


def _day(value: Any) -> str:
    return str(value or "")[:10]


def _in_period(value: Any, start: str, end: str) -> bool:
    d = _day(value)
    return bool(d) and start <= d < end


def _num(row: Mapping[str, Any], key: str) -> int:
    try:
        return int(row[key] or 0)
    except (KeyError, IndexError, TypeError, ValueError):
        return 0


def _shirts(row: Mapping[str, Any]) -> int:
    return _num(row, "short_qty") + _num(row, "long_qty")


def sales_profit_report(
    orders: Iterable[Mapping[str, Any]],
    year: int,
    month: Month,
    prefix: str = ALL,
    status: str = "all",
) -> tuple[list[dict], dict]:
    """
    Sales, shirts and order count follow order_date. Profit only counts
    orders whose production was completed inside the period.
    """
    start, end = period_range(year, month)
    orders = list(orders)

    def keep(r) -> bool:
        if not match_prefix(r["order_code"], prefix):
            return False
        return status == "all" or r["status"] == status

    by_order_date = [r for r in orders if _in_period(r["order_date"], start, end) and keep(r)]
    for_profit = [r for r in orders if _in_period(r["production_completed_at"], start, end) and keep(r)]

    rows = [
        {
            "order_date": _day(r["order_date"]),
            "production_completed_date": _day(r["production_completed_at"]),
            "order_code": r["order_code"],
            "shirts": _shirts(r),
            "short_qty": _num(r, "short_qty"),
            "long_qty": _num(r, "long_qty"),
            "net_total": _num(r, "net_total"),
            "factory_cost": _num(r, "factory_cost"),
            "profit": _num(r, "net_total") - _num(r, "factory_cost"),
            "status": r["status"],
        }
        for r in by_order_date
    ]
    summary = {
        "total_sales": sum(_num(r, "net_total") for r in by_order_date),
        "total_shirts": sum(_shirts(r) for r in by_order_date),
        "total_orders": len(by_order_date),
        "total_profit": sum(_num(r, "net_total") - _num(r, "factory_cost") for r in for_profit),
    }
    return rows, summary


def _staff_report(
    orders: Iterable[Mapping[str, Any]],
    users: Iterable[Mapping[str, Any]],
    *,
    user_key: str,
    aliases: frozenset,
    unknown: str,
    year: int,
    month: Month,
    prefix: str,
    user_filter: Any,
) -> list[dict]:
    start, end = period_range(year, month)
    names = {
        str(u["id"]): u["full_name"]
        for u in users
        if str(u["role"] or "").lower() in aliases
    }
    grouped: dict[str, dict] = {}
    for r in orders:
        if not _in_period(r["order_date"], start, end):
            continue
        if not match_prefix(r["order_code"], prefix):
            continue
        if not r[user_key]:
            continue
        key = str(r[user_key])
        if user_filter not in (None, ALL) and key != str(user_filter):
            continue
        g = grouped.setdefault(
            key,
            {"user_id": key, "name": names.get(key) or unknown, "shirts_total": 0, "orders_total": 0, "sales_total": 0},
        )
        g["shirts_total"] += _shirts(r)
        g["orders_total"] += 1
        g["sales_total"] += _num(r, "net_total")
    return list(grouped.values())


def admin_sales_report(orders, users, year: int, month: Month, prefix: str = ALL, admin_id: Any = ALL) -> list[dict]:
    rows = _staff_report(
        orders, users, user_key="admin_user_id", aliases=ADMIN_ROLE_ALIASES, unknown="Unknown",
        year=year, month=month, prefix=prefix, user_filter=admin_id,
    )
    return sorted(rows, key=lambda r: r["sales_total"], reverse=True)


def graphic_work_report(orders, users, year: int, month: Month, prefix: str = ALL, graphic_id: Any = ALL) -> list[dict]:
    rows = _staff_report(
        orders, users, user_key="graphic_user_id", aliases=GRAPHIC_ROLE_ALIASES, unknown="Unassigned",
        year=year, month=month, prefix=prefix, user_filter=graphic_id,
    )
    return sorted(rows, key=lambda r: r["orders_total"], reverse=True)


def staff_totals(rows: Iterable[Mapping[str, Any]]) -> dict:
    rows = list(rows)
    return {
        "shirts_total": sum(r["shirts_total"] for r in rows),
        "orders_total": sum(r["orders_total"] for r in rows),
        "sales_total": sum(r["sales_total"] for r in rows),
    }


def orders_report(
    orders: Iterable[Mapping[str, Any]],
    year: int,
    month: Month,
    prefix: str = ALL,
    payment: str = "all",
    production: str = "all",
) -> tuple[list[dict], dict]:
    """An order counts as paid when its customer balance is zero."""
    start, end = period_range(year, month)
    rows: list[dict] = []
    for r in orders:
        if not _in_period(r["order_date"], start, end):
            continue
        if not match_prefix(r["order_code"], prefix):
            continue
        paid = _num(r, "balance") == 0
        if payment == "paid" and not paid:
            continue
        if payment == "unpaid" and paid:
            continue
        if production != "all" and r["status"] != production:
            continue
        rows.append(
            {
                "order_code": r["order_code"],
                "customer_phone": r["customer_phone"] or "",
                "order_date": _day(r["order_date"]),
                "production_completed_date": _day(r["production_completed_at"]),
                "net_total": _num(r, "net_total"),
                "paid_amount": _num(r, "initial_deposit"),
                "outstanding_amount": _num(r, "balance"),
                "payment_status": "paid" if paid else "unpaid",
                "production_status": r["status"],
            }
        )
    paid_orders = sum(1 for r in rows if r["payment_status"] == "paid")
    summary = {
        "paid_amount": sum(r["paid_amount"] for r in rows),
        "outstanding_amount": sum(r["outstanding_amount"] for r in rows),
        "paid_orders": paid_orders,
        "unpaid_orders": len(rows) - paid_orders,
    }
    return rows, summary


def dashboard_stats(orders: Iterable[Mapping[str, Any]], start: Optional[str] = None, end: Optional[str] = None) -> dict:
    """Headline numbers for orders dated within [start, end] (both inclusive, either optional)."""
    picked = [
        r
        for r in orders
        if (not start or _day(r["order_date"]) >= str(start)[:10])
        and (not end or _day(r["order_date"]) <= str(end)[:10])
    ]
    completed = [r for r in picked if r["status"] == STATUS_COMPLETED]
    in_progress = [r for r in picked if r["status"] == STATUS_IN_PROGRESS]
    short = sum(_num(r, "short_qty") for r in picked)
    long_ = sum(_num(r, "long_qty") for r in picked)
    free = sum(_num(r, "free_qty") for r in picked)
    return {
        "total_profit": sum(_num(r, "profit") for r in completed),
        "customer_balance": sum(_num(r, "balance") for r in picked),
        # Factory money still tied up in orders that are not closed yet.
        "factory_balance": sum(_num(r, "factory_cost") for r in in_progress),
        "in_progress_orders": len(in_progress),
        "completed_orders": len(completed),
        "total_orders": len(picked),
        "total_shirts": short + long_ + free,
        "short_sleeves": short,
        "long_sleeves": long_,
        "giveaway_shirts": free,
    }


REPORT_COLUMNS = (
    "id, order_code, order_date, production_completed_at, customer_phone, admin_user_id, graphic_user_id, "
    "short_qty, long_qty, free_qty, net_total, initial_deposit, balance, factory_cost, profit, status"
)


def load_report_orders(conn):
    return q(conn, f"SELECT {REPORT_COLUMNS} FROM orders ORDER BY order_date DESC, id DESC")


def load_report_users(conn):
    return q(conn, "SELECT id, full_name, role, is_active FROM users ORDER BY full_name")


def recent_orders(conn, start: Optional[str] = None, end: Optional[str] = None, limit: int = 5):
    sql = "SELECT id, order_code, order_date, fabric_name, net_total, balance, status FROM orders WHERE 1=1"
    params: list[Any] = []
    if start:
        sql += " AND order_date >= ?"
        params.append(str(start)[:10])
    if end:
        sql += " AND order_date <= ?"
        params.append(str(end)[:10])
    sql += " ORDER BY order_date DESC, created_at DESC, id DESC LIMIT ?"
    params.append(int(limit))
    return q(conn, sql, params)
