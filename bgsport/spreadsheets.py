from __future__ import annotations

import io
from typing import Any, BinaryIO, Mapping, Optional, Union

import pandas as pd

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def read_workbook(source: Union[str, bytes, BinaryIO]) -> list[dict[str, Any]]:
    """
    First sheet of a workbook as a list of {header: value} dicts.
    Empty cells come back as "" so callers never see NaN.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    df = pd.read_excel(source, sheet_name=0, dtype=object, engine="openpyxl")
    if df.empty:
        raise ValueError("The workbook has no data rows.")
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), "")
    return df.to_dict(orient="records")


def export_workbook(
    frame: pd.DataFrame,
    sheet_name: str,
    summary_row: Optional[Mapping[str, Any]] = None,
) -> bytes:
    """Single-sheet .xlsx; `summary_row` is appended after the data rows."""
    out = frame.copy()
    if summary_row is not None:
        out = pd.concat([out, pd.DataFrame([dict(summary_row)], columns=out.columns)], ignore_index=True)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        out.to_excel(writer, sheet_name=sheet_name[:31], index=False)
    return buf.getvalue()
