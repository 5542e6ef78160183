from __future__ import annotations

import math
from dataclasses import asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, TypedDict

import pandas as pd

from core.charts import build_legend, build_series_chart, build_styles, series_key, to_vega_spec
from core.data import round_half_up, to_number
from core.filters import DashboardFilters
from core.settings import DAY_LABELS, DAYS


class SeriesPoint(TypedDict):
    inventory: int
    procurement_amount: float
    sales_amount: float


ProductSeries = Dict[int, SeriesPoint]


def _day_index(value: object) -> Optional[int]:
    n = to_number(value)
    if n is None or not n.is_integer():
        return None
    return int(n)


def _sort_key(row: Mapping[str, Any]) -> float:
    d = _day_index(row.get("day_index"))
    return float(d) if d is not None else float("inf")


def _stored_inventory(running: float) -> float:
    # a balance past the float range stays infinite; JSON renders it as null
    if math.isinf(running):
        return running if running > 0 else 0
    return max(0, int(round_half_up(running)))


def _product_series(rows: List[Mapping[str, Any]]) -> ProductSeries:
    ordered = sorted(rows, key=_sort_key)

    openings = (to_number(r.get("opening_inventory_day1")) for r in ordered)
    opening = next((v for v in openings if v is not None), None)
    running = opening if opening is not None else 0.0

    points: ProductSeries = {}
    for r in ordered:
        d = _day_index(r.get("day_index"))
        if d not in DAYS:
            continue

        pq = to_number(r.get("procurement_qty")) or 0.0
        pp = to_number(r.get("procurement_price")) or 0.0
        sq = to_number(r.get("sales_qty")) or 0.0
        sp = to_number(r.get("sales_price")) or 0.0

        if d == 1 and opening is not None:
            running = opening
        running = running + pq - sq

        points[d] = SeriesPoint(
            inventory=_stored_inventory(running),
            procurement_amount=round_half_up(pq * pp, 2),
            sales_amount=round_half_up(sq * sp, 2),
        )
    return points


def aggregate_series(
    product_ids: Optional[Iterable[str]],
    rows: Iterable[Mapping[str, Any]],
) -> Dict[str, ProductSeries]:
    """Running inventory and daily amounts per product.

    Inventory starts from the first opening value found (else 0), moves by
    procurement minus sales each day and is floored at zero when stored.
    Products without any rows are left out. `product_ids=None` keeps every
    product present in `rows`.
    Amounts are rounded half-up on their decimal text (1.005 -> 1.01), not on
    the binary value.
    """
    grouped: Dict[str, List[Mapping[str, Any]]] = {}
    for r in rows:
        pid = str(r.get("product_id") or "").strip()
        if not pid:
            continue
        grouped.setdefault(pid, []).append(r)

    if product_ids is None:
        wanted = list(grouped)
    else:
        wanted = [str(p).strip() for p in product_ids]

    return {pid: _product_series(grouped[pid]) for pid in dict.fromkeys(wanted) if pid in grouped}


def build_pivot(series: Mapping[str, ProductSeries]) -> List[Dict[str, Any]]:
    """One row per day label; keys only where a point was computed."""
    by_day: Dict[int, Dict[str, Any]] = {d: {"label": DAY_LABELS[d]} for d in DAYS}
    for pid, points in series.items():
        for d, point in points.items():
            if d not in by_day:
                continue
            row = by_day[d]
            row[series_key(pid, "inventory")] = point["inventory"]
            row[series_key(pid, "procAmt")] = point["procurement_amount"]
            row[series_key(pid, "salesAmt")] = point["sales_amount"]
    return [by_day[d] for d in DAYS]


def pivot_frame(pivot: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    records = []
    for row in pivot:
        label = row["label"]
        for key, value in row.items():
            if key == "label":
                continue
            pid, metric = key.rsplit("__", 1)
            if isinstance(value, float) and not math.isfinite(value):
                value = None
            records.append({"label": label, "key": key, "product_id": pid, "metric": metric, "value": value})
    return pd.DataFrame(records, columns=["label", "key", "product_id", "metric", "value"])


def compute_series(filters: DashboardFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    rows: List[Mapping[str, Any]] = ctx.get("rows", [])
    products: List[Dict[str, str]] = ctx.get("products", [])
    selected = filters.selected_products

    pivot = build_pivot(aggregate_series(selected, rows))
    legend = build_legend(selected, products)
    chart = build_series_chart(pivot_frame(pivot), legend)

    return {
        "filters": asdict(filters),
        "pivot": pivot,
        "legend": legend,
        "styles": build_styles(selected),
        "chart": to_vega_spec(chart) if chart is not None else None,
    }
