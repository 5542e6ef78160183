from __future__ import annotations

import io
from datetime import date
from typing import Any, Dict, List, Optional

import pytest
from openpyxl import Workbook

from core.auth import SessionUser, StaticSessionGate
from core.store import InMemoryMetricsStore

ANCHOR = date(2024, 3, 10)

HEADERS = [
    "ID",
    "Product Name",
    "Opening Inventory",
    "Procurement Qty (Day 1)",
    "Procurement Price (Day 1)",
    "Sales Qty (Day 1)",
    "Sales Price (Day 1)",
    "Procurement Qty (Day 2)",
    "Procurement Price (Day 2)",
    "Sales Qty (Day 2)",
    "Sales Price (Day 2)",
    "Procurement Qty (Day 3)",
    "Procurement Price (Day 3)",
    "Sales Qty (Day 3)",
    "Sales Price (Day 3)",
]


def make_record(
    pid: Optional[str] = "P001",
    name: Optional[str] = "Widget",
    opening: Any = 100,
    days: Optional[Dict[int, tuple]] = None,
) -> Dict[str, Any]:
    """Raw spreadsheet row; `days` maps day index -> (pq, pp, sq, sp)."""
    record: Dict[str, Any] = {"ID": pid, "Product Name": name, "Opening Inventory": opening}
    for d in (1, 2, 3):
        pq, pp, sq, sp = (days or {}).get(d, (None, None, None, None))
        record[f"Procurement Qty (Day {d})"] = pq
        record[f"Procurement Price (Day {d})"] = pp
        record[f"Sales Qty (Day {d})"] = sq
        record[f"Sales Price (Day {d})"] = sp
    return record


def workbook_bytes(rows: List[List[Any]], headers: Optional[List[str]] = None) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(headers or HEADERS)
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def store():
    return InMemoryMetricsStore()


@pytest.fixture
def signed_in():
    return StaticSessionGate(SessionUser(id="user-1", email="buyer@example.com"))


@pytest.fixture
def signed_out():
    return StaticSessionGate(None)
