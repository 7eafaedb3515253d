"""Portfolio valuation workbook parser producing a single integer GAV input."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO
from pathlib import Path

import pandas as pd

from nav_ledger.infrastructure.parsing.utils import (
    compute_file_hash,
    ensure_bytes,
    parse_decimal,
    to_minor_units,
)

DEFAULT_SHEET_NAME = "Valuation"

KNOWN_VALUE_COLUMNS = [
    "Market Value",
    "Market Value (Base)",
    "Book Market Value",
    "Value",
]


@dataclass(frozen=True)
class PortfolioValuation:
    total: Decimal
    minor_units: int
    positions: int
    file_hash: str


def _is_excel(raw: bytes) -> bool:
    # xlsx is a zip archive, legacy xls an OLE2 compound file
    return raw[:4] == b"PK\x03\x04" or raw[:8] == b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


def _pick_sheet(source: BytesIO, preferred: str) -> str | int:
    sheets = pd.ExcelFile(source, engine="openpyxl").sheet_names
    if not sheets:
        raise ValueError("Valuation workbook has no sheets")
    if preferred in sheets:
        return preferred
    lower_map = {name.lower(): name for name in sheets}
    if preferred.lower() in lower_map:
        return lower_map[preferred.lower()]
    for name in sheets:
        if preferred.lower() in name.lower():
            return name
    return sheets[0]


def read_valuation_raw(raw: bytes, sheet_name: str = DEFAULT_SHEET_NAME) -> pd.DataFrame:
    if _is_excel(raw):
        chosen = _pick_sheet(BytesIO(raw), sheet_name)
        return pd.read_excel(BytesIO(raw), sheet_name=chosen, engine="openpyxl", dtype=str)
    return pd.read_csv(BytesIO(raw), dtype=str, keep_default_na=False)


def pick_value_column(df: pd.DataFrame, preferred: str | None = None) -> str:
    candidates = [preferred] if preferred else KNOWN_VALUE_COLUMNS
    lower_map = {str(col).strip().lower(): col for col in df.columns}
    for column in candidates:
        if column and column.lower() in lower_map:
            return lower_map[column.lower()]
    raise ValueError(f"No market value column found; expected one of {candidates}")


def parse_portfolio_valuation(
    source: BytesIO | Path | bytes,
    value_column: str | None = None,
    sheet_name: str = DEFAULT_SHEET_NAME,
    decimals: int = 2,
) -> PortfolioValuation:
    raw = ensure_bytes(source)
    dataframe = read_valuation_raw(raw, sheet_name=sheet_name)
    column = pick_value_column(dataframe, value_column)
    values = [parse_decimal(value) for value in dataframe[column].tolist()]
    total = sum(values, Decimal("0"))
    return PortfolioValuation(
        total=total,
        minor_units=to_minor_units(total, decimals),
        positions=len(values),
        file_hash=compute_file_hash(raw),
    )
