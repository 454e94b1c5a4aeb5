"""
Bulk order import from a spreadsheet.

Each row is validated on its own and either becomes an orders payload or
carries a rejection reason; a bad row never stops the batch. Totals come
from the settlement calculator with the fixed 20000 size upcharge.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from bgsport.config import DEFAULT_SIZE_UPCHARGE
from bgsport.db import q, tx
from bgsport.services.fabrics import list_fabrics
from bgsport.services.orders import refresh_cached_totals
from bgsport.services.settlement import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    SettlementInputs,
    compute_settlement,
)
from bgsport.services.users import active_staff, resolve_user
from bgsport.utils import date_to_iso, iso_now, iso_today

log = logging.getLogger(__name__)

MODE_INSERT_ONLY = "insert_only"
MODE_UPSERT = "upsert"
IMPORT_MODES = (MODE_INSERT_ONLY, MODE_UPSERT)

SPREADSHEET_EPOCH = datetime(1899, 12, 30)
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NUMBER = re.compile(r"^\d+(\.\d+)?$")

TEMPLATE_COLUMNS = [
    "order_date",
    "production_completed_at",
    "customer_remaining_due_at",
    "factory_payment_due_at",
    "order_code",
    "customer_phone",
    "factory_bill_code",
    "fabric_name",
    "fabric_id",
    "short_qty",
    "long_qty",
    "free_qty",
    "qty_3xl",
    "qty_4xl",
    "qty_5xl",
    "extra_charge",
    "design_deposit",
    "initial_deposit",
    "factory_cost",
    "admin_name",
    "admin_user_id",
    "graphic_name",
    "graphic_user_id",
    "status",
]


@dataclass
class ImportRefs:
    fabrics: list = field(default_factory=list)
    users: list = field(default_factory=list)

    def fabric(self, fabric_id: str, fabric_name: str):
        if fabric_id:
            hit = next((f for f in self.fabrics if str(f["id"]) == fabric_id), None)
            if hit is not None:
                return hit
        if fabric_name:
            lowered = fabric_name.lower()
            return next((f for f in self.fabrics if str(f["name"]).strip().lower() == lowered), None)
        return None


@dataclass
class PreviewRow:
    row_no: int
    valid: bool
    reason: Optional[str]
    order_code: str
    order_date: str
    admin_name: str
    graphic_name: str
    payload: Optional[dict] = None


@dataclass(frozen=True)
class ImportResult:
    inserted: int
    updated: int
    skipped: int


def load_import_refs(conn) -> ImportRefs:
    return ImportRefs(
        fabrics=list(list_fabrics(conn)),
        users=list(active_staff(conn, roles=("admin", "graphic"))),
    )


def _blank(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, float) and math.isnan(v):
        return True
    return str(v).strip() == ""


def read_first(row: Mapping[str, Any], keys: Iterable[str]) -> str:
    for k in keys:
        v = row.get(k)
        if not _blank(v):
            return str(v).strip()
    return ""


def to_number(v: Any) -> int:
    s = str(v if v is not None else "").replace(",", "").strip()
    try:
        n = float(s)
    except ValueError:
        return 0
    if math.isnan(n) or math.isinf(n):
        return 0
    return int(round(n))


def parse_date_only(value: Any) -> str:
    """
    YYYY-MM-DD, else a spreadsheet day serial (days since 1899-12-30),
    else any date string pandas understands. "" when nothing fits.
    """
    if isinstance(value, (datetime, date)):
        return (value.date() if isinstance(value, datetime) else value).isoformat()
    raw = str(value if value is not None else "").strip()
    if not raw:
        return ""
    if _ISO_DATE.match(raw):
        return raw
    if _NUMBER.match(raw):
        serial = float(raw)
        if serial >= 1:
            try:
                return (SPREADSHEET_EPOCH + timedelta(days=serial)).date().isoformat()
            except OverflowError:
                return ""
    try:
        ts = pd.to_datetime(raw)
    except (ValueError, TypeError, OverflowError):
        return ""
    if pd.isna(ts):
        return ""
    return ts.date().isoformat()


def _optional_iso(value: str) -> Optional[str]:
    day = parse_date_only(value)
    return date_to_iso(day) if day else None


def _reject(row_no: int, reason: str, code: str, order_date: str, admin: str, graphic: str) -> PreviewRow:
    return PreviewRow(row_no, False, reason, code, order_date, admin, graphic, None)


def build_preview_rows(raw_rows: list[Mapping[str, Any]], refs: ImportRefs) -> list[PreviewRow]:
    out: list[PreviewRow] = []
    for idx, row in enumerate(raw_rows):
        row_no = idx + 2  # header is spreadsheet row 1
        order_date = parse_date_only(read_first(row, ["order_date", "date"]))
        order_code = read_first(row, ["order_code"])
        admin_name = read_first(row, ["admin_name"])
        graphic_name = read_first(row, ["graphic_name"])

        if not order_date:
            out.append(_reject(row_no, "missing order_date", order_code, order_date, admin_name, graphic_name))
            continue
        if not order_code:
            out.append(_reject(row_no, "missing order_code", order_code, order_date, admin_name, graphic_name))
            continue

        fabric = refs.fabric(read_first(row, ["fabric_id"]), read_first(row, ["fabric_name"]))
        if fabric is None:
            out.append(_reject(row_no, "fabric not found", order_code, order_date, admin_name, graphic_name))
            continue

        admin = resolve_user(refs.users, "admin", read_first(row, ["admin_user_id"]), name=admin_name)
        if admin is None:
            out.append(_reject(row_no, "admin not found", order_code, order_date, admin_name, graphic_name))
            continue

        graphic = resolve_user(refs.users, "graphic", read_first(row, ["graphic_user_id"]), name=graphic_name)
        if graphic is None:
            out.append(_reject(row_no, "graphic not found", order_code, order_date, admin_name, graphic_name))
            continue

        amounts = {
            k: max(0, to_number(read_first(row, [k])))
            for k in (
                "short_qty", "long_qty", "free_qty", "qty_3xl", "qty_4xl", "qty_5xl",
                "extra_charge", "design_deposit", "factory_cost",
            )
        }
        initial_deposit = max(0, to_number(read_first(row, ["initial_deposit"])))
        short_price = max(0, to_number(fabric["short_price"]))
        long_price = max(0, to_number(fabric["long_price"]))

        s = compute_settlement(
            SettlementInputs(
                fabric_short_price=short_price,
                fabric_long_price=long_price,
                size_upcharge=DEFAULT_SIZE_UPCHARGE,
                customer_payments_total=initial_deposit,
                **amounts,
            )
        )
        status = read_first(row, ["status"]).lower()
        if initial_deposit > s.net_total:
            out.append(_reject(row_no, "deposit exceeds net total", order_code, order_date, admin_name, graphic_name))
            continue
        if status == STATUS_COMPLETED and s.customer_balance > 0:
            out.append(
                _reject(row_no, "completed with outstanding balance", order_code, order_date, admin_name, graphic_name)
            )
            continue

        payload = {
            "order_date": order_date,
            "production_completed_at": _optional_iso(read_first(row, ["production_completed_at"])),
            "customer_remaining_due_at": _optional_iso(read_first(row, ["customer_remaining_due_at"])),
            "factory_payment_due_at": _optional_iso(read_first(row, ["factory_payment_due_at"])),
            "order_code": order_code,
            "customer_phone": read_first(row, ["customer_phone", "phone"]) or None,
            "factory_bill_code": read_first(row, ["factory_bill_code"]) or None,
            "admin_user_id": int(admin["id"]),
            "graphic_user_id": int(graphic["id"]),
            "fabric_id": int(fabric["id"]),
            "fabric_name": str(fabric["name"]),
            "fabric_short_price": short_price,
            "fabric_long_price": long_price,
            "size_upcharge": DEFAULT_SIZE_UPCHARGE,
            **amounts,
            "gross_total": s.gross_total,
            "net_total": s.net_total,
            "initial_deposit": initial_deposit,
            "balance": s.customer_balance,
            "profit": s.profit,
            "status": STATUS_COMPLETED if status == STATUS_COMPLETED else STATUS_IN_PROGRESS,
        }
        out.append(
            PreviewRow(row_no, True, None, order_code, order_date, str(admin["full_name"]), str(graphic["full_name"]), payload)
        )
    return out


def dedupe_payloads(payloads: Iterable[dict]) -> list[dict]:
    """One payload per order_code; the last row for a code wins."""
    by_code: dict[str, dict] = {}
    for p in payloads:
        code = str(p.get("order_code") or "").strip()
        if not code:
            continue
        by_code.pop(code, None)
        by_code[code] = {**p, "order_code": code}
    return list(by_code.values())


def _existing_codes(conn, codes: list[str]) -> set[str]:
    if not codes:
        return set()
    marks = ",".join("?" for _ in codes)
    rows = q(conn, f"SELECT order_code FROM orders WHERE order_code IN ({marks})", codes)
    return {str(r["order_code"]) for r in rows}


def apply_import(conn, preview_rows: list[PreviewRow], mode: str = MODE_INSERT_ONLY) -> ImportResult:
    if mode not in IMPORT_MODES:
        raise ValueError(f"Invalid import mode. Use one of: {', '.join(IMPORT_MODES)}.")
    payloads = dedupe_payloads(r.payload for r in preview_rows if r.valid and r.payload)
    if not payloads:
        raise ValueError("No valid rows to import.")

    existing = _existing_codes(conn, [p["order_code"] for p in payloads])
    now = iso_now()

    if mode == MODE_INSERT_ONLY:
        todo = [p for p in payloads if p["order_code"] not in existing]
        skipped = len(payloads) - len(todo)
    else:
        todo = payloads
        skipped = 0

    with tx(conn):
        for p in todo:
            row = {**p, "created_at": now, "updated_at": now}
            cols = list(row)
            sql = f"INSERT INTO orders ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})"
            if mode == MODE_UPSERT:
                updates = ", ".join(f"{c}=excluded.{c}" for c in cols if c not in ("order_code", "created_at"))
                sql += f" ON CONFLICT(order_code) DO UPDATE SET {updates}"
            conn.execute(sql, [row[c] for c in cols])

    updated = 0
    if mode == MODE_UPSERT and existing:
        # Overwritten orders may already have ledger rows; re-derive their caches.
        codes = sorted(existing)
        marks = ",".join("?" for _ in codes)
        for r in q(conn, f"SELECT id FROM orders WHERE order_code IN ({marks})", codes):
            refresh_cached_totals(conn, int(r["id"]))
            updated += 1

    inserted = len(todo) - updated
    log.info("Import (%s): inserted=%s updated=%s skipped=%s", mode, inserted, updated, skipped)
    return ImportResult(inserted=inserted, updated=updated, skipped=skipped)


def template_frame(refs: ImportRefs) -> pd.DataFrame:
    """One example row carrying every accepted column, for the download button."""
    admin = next((u["full_name"] for u in refs.users if u["role"] == "admin"), "Admin 1")
    graphic = next((u["full_name"] for u in refs.users if u["role"] == "graphic"), "Graphic 1")
    fabric = refs.fabrics[0]["name"] if refs.fabrics else "Sport Fabric"
    example = {c: "" for c in TEMPLATE_COLUMNS}
    example.update(
        {
            "order_date": iso_today(),
            "order_code": "PKF26-001",
            "customer_phone": "020XXXXXXXX",
            "factory_bill_code": "FB-001",
            "fabric_name": fabric,
            "short_qty": 10,
            "long_qty": 5,
            "free_qty": 0,
            "qty_3xl": 0,
            "qty_4xl": 0,
            "qty_5xl": 0,
            "extra_charge": 0,
            "design_deposit": 0,
            "initial_deposit": 500000,
            "factory_cost": 700000,
            "admin_name": admin,
            "graphic_name": graphic,
            "status": STATUS_IN_PROGRESS,
        }
    )
    return pd.DataFrame([example], columns=TEMPLATE_COLUMNS)
