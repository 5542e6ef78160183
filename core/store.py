"""Persistence for canonical daily metric rows.

`SupabaseMetricsStore` talks to the `daily_metrics` table through the
supabase client. `InMemoryMetricsStore` is used in dev mode and tests and
honours the same ordering contract.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from core.data import METRIC_ROW_COLUMNS, MetricRow
from core.filters import DashboardFilters, normalize_filters
from core.settings import TABLE_NAME, Settings

logger = logging.getLogger(__name__)

_MISSING_DAY = 999


class StorageError(Exception):
    """Raised when a persistence operation fails; message is the backend's text."""


class MetricsStore(ABC):
    @abstractmethod
    def insert(self, rows: Sequence[MetricRow]) -> None:
        """Insert one batch atomically or raise StorageError."""

    @abstractmethod
    def list_product_rows(self) -> List[Dict[str, Any]]:
        """`product_id, product_name` for rows with a non-empty id, by id ascending."""

    @abstractmethod
    def fetch_rows(self, product_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Rows for the given products, by day_index then day ascending."""


class InMemoryMetricsStore(MetricsStore):
    def __init__(self) -> None:
        self._rows: List[Dict[str, Any]] = []

    def __len__(self) -> int:
        return len(self._rows)

    def insert(self, rows: Sequence[MetricRow]) -> None:
        self._rows.extend({c: r.get(c) for c in METRIC_ROW_COLUMNS} for r in rows)

    def list_product_rows(self) -> List[Dict[str, Any]]:
        hits = [
            {"product_id": r["product_id"], "product_name": r["product_name"]}
            for r in self._rows
            if r.get("product_id") not in (None, "")
        ]
        return sorted(hits, key=lambda r: str(r["product_id"]))

    def fetch_rows(self, product_ids: Sequence[str]) -> List[Dict[str, Any]]:
        wanted = set(product_ids)
        hits = [dict(r) for r in self._rows if r.get("product_id") in wanted]
        return sorted(
            hits,
            key=lambda r: (
                r["day_index"] if r.get("day_index") is not None else _MISSING_DAY,
                str(r.get("day") or ""),
            ),
        )


class SupabaseMetricsStore(MetricsStore):
    """Reads and writes `daily_metrics`; with an access token, as that user.

    Row-level security policies then see the signed-in user rather than the
    project key.
    """

    def __init__(self, client: Client, table: str = TABLE_NAME, access_token: Optional[str] = None) -> None:
        self._client = client
        self._table = table
        if access_token:
            client.postgrest.auth(access_token)

    def _query(self):
        return self._client.table(self._table)

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except APIError as exc:
            logger.error("SupabaseMetricsStore: %s failed: %s", action, exc.message)
            raise StorageError(exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            logger.error("SupabaseMetricsStore: %s failed: %s", action, exc)
            raise StorageError(str(exc)) from exc

    def insert(self, rows: Sequence[MetricRow]) -> None:
        self._execute(self._query().insert([dict(r) for r in rows]), "insert")

    def list_product_rows(self) -> List[Dict[str, Any]]:
        query = self._query().select("product_id, product_name").neq("product_id", "").order("product_id", desc=False)
        resp = self._execute(query, "list products")
        return list(resp.data or [])

    def fetch_rows(self, product_ids: Sequence[str]) -> List[Dict[str, Any]]:
        if not product_ids:
            return []
        query = (
            self._query()
            .select(", ".join(METRIC_ROW_COLUMNS))
            .in_("product_id", list(product_ids))
            .order("day_index", desc=False)
            .order("day", desc=False)
        )
        resp = self._execute(query, "fetch rows")
        return list(resp.data or [])


def create_supabase_client(settings: Settings) -> Client:
    return create_client(settings.supabase_url, settings.supabase_key)


_dev_store: Optional[InMemoryMetricsStore] = None


def build_store(settings: Settings, access_token: Optional[str] = None) -> MetricsStore:
    """Supabase when configured, otherwise a process-wide in-memory store."""
    global _dev_store
    if settings.supabase_configured and not settings.dev_mode:
        return SupabaseMetricsStore(create_supabase_client(settings), access_token=access_token)
    if _dev_store is None:
        logger.info("Supabase not configured (or dev mode); using in-memory store")
        _dev_store = InMemoryMetricsStore()
    return _dev_store


# ---------------- Product listing ----------------
def list_products(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Distinct products (first occurrence wins); name falls back to the id."""
    seen = set()
    options: List[Dict[str, str]] = []
    for r in rows:
        pid = str(r.get("product_id") or "").strip()
        if not pid or pid in seen:
            continue
        seen.add(pid)
        options.append({"id": pid, "name": str(r.get("product_name") or "").strip() or pid})
    return options


# ---------------- Public API (Streamlit + FastAPI use) ----------------
def load_dashboard_data(store: MetricsStore) -> Dict[str, object]:
    products = list_products(store.list_product_rows())
    return {"products": products, "product_ids": [p["id"] for p in products]}


def prepare_context(filters: dict | DashboardFilters, data_ctx: Dict[str, object], store: MetricsStore) -> Dict[str, object]:
    available = data_ctx.get("product_ids") or []
    filt = filters if isinstance(filters, DashboardFilters) else normalize_filters(filters, available_products=available)
    return {
        "filters": filt,
        "products": data_ctx.get("products", []),
        "rows": store.fetch_rows(filt.selected_products),
    }
