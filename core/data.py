from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, localcontext
from pathlib import Path
from typing import IO, Any, Dict, Iterable, List, Literal, Optional, TypedDict, Union

import pandas as pd

from core.headers import (
    OPENING_INVENTORY_ALIASES,
    PRODUCT_ID_ALIASES,
    PRODUCT_NAME_ALIASES,
    day_aliases,
    resolve_field,
)
from core.settings import DAY_OFFSETS, DAYS

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]
DayIndex = Literal[1, 2, 3]


class MetricRow(TypedDict):
    product_id: str
    product_name: str
    day: str
    day_index: DayIndex
    opening_inventory_day1: Optional[float]
    procurement_qty: Optional[float]
    procurement_price: Optional[float]
    sales_qty: Optional[float]
    sales_price: Optional[float]


METRIC_ROW_COLUMNS = list(MetricRow.__annotations__.keys())


@dataclass
class NormalizationResult:
    rows: List[MetricRow] = field(default_factory=list)
    skipped: int = 0

    @property
    def empty(self) -> bool:
        return not self.rows


# ---------------- Spreadsheet decoding ----------------
def read_excel_records(
    source: Union[str, Path, IO[bytes]],
    sheet_name: Optional[str] = None,
) -> List[RawRecord]:
    """Read a workbook sheet (row 1 = headers) into raw dicts.

    Missing cells become None and fully empty rows are dropped. Header labels
    are kept exactly as the supplier wrote them. Columns are read as objects so
    a gap in a numeric ID column does not turn 1001 into 1001.0.
    """
    if isinstance(source, (str, Path)):
        source = Path(source).expanduser().resolve()
        if not source.exists():
            raise FileNotFoundError(f"Excel file not found: {source}")

    try:
        df = pd.read_excel(source, sheet_name=sheet_name if sheet_name else 0, header=0, dtype=object)
    except Exception as exc:
        raise ValueError(f"Cannot read Excel file (is it corrupted or wrong format?): {exc}") from exc

    df = df.dropna(how="all")
    df.columns = [str(c).strip() for c in df.columns]
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


# ---------------- Coercion ----------------
def to_number(value: object) -> Optional[float]:
    """Convert a raw cell to a finite float; anything else becomes None."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(out):
        return None
    return out


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    """Round half away from zero on the value's shortest decimal text.

    2.345 -> 2.35 and 1.005 -> 1.01, where binary fixed-point rounding would
    give 1.00. Infinities pass through unchanged.
    """
    if value is None or pd.isna(value):
        return None
    d = Decimal(str(value))
    if not d.is_finite():
        return float(d)
    with localcontext() as ctx:
        # quantize needs every integer digit plus ndigits of precision
        ctx.prec = max(ctx.prec, d.adjusted() + ndigits + 2)
        return float(d.quantize(Decimal(10) ** -ndigits, rounding=ROUND_HALF_UP))


# ---------------- Dates ----------------
def day_for_index(day_index: int, now: Union[date, datetime]) -> str:
    """Calendar date (YYYY-MM-DD) for a window position; Day 3 is `now`."""
    if day_index not in DAY_OFFSETS:
        raise ValueError(f"day_index must be one of {DAYS}, got {day_index!r}")
    today = now.date() if isinstance(now, datetime) else now
    return (today + timedelta(days=DAY_OFFSETS[day_index])).strftime("%Y-%m-%d")


# ---------------- Normalization ----------------
def _text(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value if value is not None else "").strip()


def normalize_record(record: RawRecord, now: Union[date, datetime]) -> List[MetricRow]:
    """Expand one spreadsheet row into one MetricRow per day (or none)."""
    product_id = _text(resolve_field(record, PRODUCT_ID_ALIASES))
    product_name = _text(resolve_field(record, PRODUCT_NAME_ALIASES))
    if not product_id or not product_name:
        return []

    opening = to_number(resolve_field(record, OPENING_INVENTORY_ALIASES))

    out: List[MetricRow] = []
    for d in DAYS:
        out.append(
            MetricRow(
                product_id=product_id,
                product_name=product_name,
                day=day_for_index(d, now),
                day_index=d,
                opening_inventory_day1=opening if d == 1 else None,
                procurement_qty=to_number(resolve_field(record, day_aliases("procurement_qty", d))),
                procurement_price=to_number(resolve_field(record, day_aliases("procurement_price", d))),
                sales_qty=to_number(resolve_field(record, day_aliases("sales_qty", d))),
                sales_price=to_number(resolve_field(record, day_aliases("sales_price", d))),
            )
        )
    return out


def normalize_records(records: Iterable[RawRecord], now: Union[date, datetime]) -> NormalizationResult:
    result = NormalizationResult()
    for record in records:
        rows = normalize_record(record, now)
        if not rows:
            result.skipped += 1
            continue
        result.rows.extend(rows)
    if result.skipped:
        logger.info("normalize_records: skipped %d record(s) without product id/name", result.skipped)
    return result


def rows_to_frame(rows: Iterable[Dict[str, Any]]) -> pd.DataFrame:
    """Canonical rows as a DataFrame with the persisted column order."""
    df = pd.DataFrame(list(rows))
    for col in METRIC_ROW_COLUMNS:
        if col not in df.columns:
            df[col] = None
    return df[METRIC_ROW_COLUMNS]
