from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def date_to_iso(value: Any) -> Optional[str]:
    """Calendar day -> ISO timestamp at noon UTC (so it never shifts a day)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        value = value.isoformat()
    return f"{str(value)[:10]}T12:00:00+00:00"


def to_date_only(value: Optional[str]) -> str:
    if not value:
        return ""
    return str(value)[:10]


def clamp_int(value: Any) -> int:
    try:
        return max(0, int(round(float(value or 0))))
    except (TypeError, ValueError):
        return 0


def safe_pct(n: float, d: float) -> float:
    return float(n) / float(d) * 100.0 if d else 0.0


def fmt_kip(amount: Any, currency: str = "LAK") -> str:
    symbol = "₭" if currency == "LAK" else currency
    return f"{symbol} {int(amount or 0):,}"
