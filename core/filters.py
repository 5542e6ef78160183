from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from core.settings import DEFAULT_SELECTION_SIZE


@dataclass(frozen=True)
class DashboardFilters:
    selected_products: List[str] = field(default_factory=list)


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return out


def normalize_filters(raw: dict, *, available_products: Optional[List[str]] = None) -> DashboardFilters:
    """Trim and dedupe the selection; default to the first products listed."""
    selected = _as_str_list(raw.get("selected_products"))
    if not selected:
        selected = list((available_products or [])[:DEFAULT_SELECTION_SIZE])
    return DashboardFilters(selected_products=selected)
