"""Column alias tables and header resolution.

Spreadsheet exports name the same field in different ways ("Procurement Qty
(Day 1)", "采购 数量 (day 1)", "SKU", ...). Each logical field has a
prioritized list of accepted spellings; `resolve_field` picks the value of
the best matching column in a raw record.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

PRODUCT_ID_ALIASES = ["id", "product id", "product_id", "sku", "货号", "编码"]
PRODUCT_NAME_ALIASES = ["product name", "product_name", "产品名称", "商品名称"]
OPENING_INVENTORY_ALIASES = ["opening inventory on day 1", "opening inventory", "开库存", "期初库存"]

# Per-day templates, formatted with the day index.
DAY_FIELD_TEMPLATES: Dict[str, List[str]] = {
    "procurement_qty": [
        "procurement qty (day {d})",
        "procurement quantity (day {d})",
        "采购 数量 (day {d})",
    ],
    "procurement_price": [
        "procurement price (day {d})",
        "采购 单价 (day {d})",
    ],
    "sales_qty": [
        "sales qty (day {d})",
        "sales quantity (day {d})",
        "销售 数量 (day {d})",
    ],
    "sales_price": [
        "sales price (day {d})",
        "销售 单价 (day {d})",
    ],
}


def day_aliases(field: str, day_index: int) -> List[str]:
    """Aliases for a per-day field, e.g. `day_aliases("sales_qty", 2)`."""
    return [t.format(d=day_index) for t in DAY_FIELD_TEMPLATES[field]]


def _lc(value: object) -> str:
    return str(value if value is not None else "").strip().lower()


def resolve_field(record: Mapping[Any, Any], aliases: Sequence[str]) -> Optional[Any]:
    """Return the value of the column matching one of `aliases`, or None.

    Exact (case-insensitive) matches are tried for every alias before any
    substring match, so "ID" beats "Product ID" for the alias "id" even
    though "product id" contains it.
    """
    keys = list(record.keys())
    lowered = [_lc(k) for k in keys]

    for alias in aliases:
        a = _lc(alias)
        for key, lk in zip(keys, lowered):
            if lk == a:
                return record[key]

    for alias in aliases:
        a = _lc(alias)
        for key, lk in zip(keys, lowered):
            if a in lk:
                return record[key]

    return None
