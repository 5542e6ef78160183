from __future__ import annotations

import io
import logging
import math
from datetime import datetime
from typing import Optional

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, File, Header, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import DashboardFiltersModel, ErrorResponse, ImportResponse, MetaProductsResponse, SessionResponse
from core.auth import SessionGate, SupabaseSessionGate, bearer_token, dev_gate
from core.data import read_excel_records, rows_to_frame
from core.filters import DashboardFilters, normalize_filters
from core.importer import BatchWriteFailure, EmptyInput, ImportFailure, NoRecognizedRows, NotAuthenticated, run_import
from core.metrics_series import compute_series
from core.settings import Settings, get_settings
from core.store import MetricsStore, build_store, create_supabase_client, load_dashboard_data, prepare_context


app = FastAPI(title="Daily Metrics Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_FAILURE_STATUS = {
    EmptyInput: 400,
    NoRecognizedRows: 400,
    NotAuthenticated: 401,
    BatchWriteFailure: 502,
}


def get_store(
    settings: Settings = Depends(get_settings),
    authorization: Optional[str] = Header(default=None),
) -> MetricsStore:
    return build_store(settings, access_token=bearer_token(authorization))


def get_session_gate(
    settings: Settings = Depends(get_settings),
    authorization: Optional[str] = Header(default=None),
) -> SessionGate:
    if settings.dev_mode or not settings.supabase_configured:
        return dev_gate(settings)
    return SupabaseSessionGate(create_supabase_client(settings), bearer_token(authorization))


def _filters_from_model(model: DashboardFiltersModel, *, available_products: list[str]) -> DashboardFilters:
    raw = model.model_dump()
    return normalize_filters(raw, available_products=available_products)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    body = ErrorResponse(error=str(exc), type=type(exc).__name__)
    if isinstance(exc, ImportFailure):
        body.error = exc.message
    if isinstance(exc, BatchWriteFailure):
        body.offset = exc.offset
        body.inserted = exc.inserted
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.get("/meta/products")
def meta_products(store: MetricsStore = Depends(get_store)):
    try:
        data_ctx = load_dashboard_data(store)
        return _json(MetaProductsResponse(products=data_ctx["products"]).model_dump())
    except Exception as exc:
        logger.exception("meta_products failed")
        return _error(exc)


@app.get("/session")
def session(gate: SessionGate = Depends(get_session_gate)):
    user = gate.current_user()
    if user is None:
        return _json(SessionResponse(authenticated=False).model_dump())
    return _json(SessionResponse(authenticated=True, email=user.email, user_id=user.id).model_dump())


@app.post("/series")
def series(filters: DashboardFiltersModel, store: MetricsStore = Depends(get_store)):
    try:
        data_ctx = load_dashboard_data(store)
        f = _filters_from_model(filters, available_products=data_ctx.get("product_ids", []))
        ctx = prepare_context(f, data_ctx, store)
        return _json(compute_series(f, ctx))
    except Exception as exc:
        logger.exception("series failed")
        return _error(exc)


@app.post("/import")
async def import_file(
    file: UploadFile = File(...),
    store: MetricsStore = Depends(get_store),
    gate: SessionGate = Depends(get_session_gate),
    settings: Settings = Depends(get_settings),
):
    try:
        payload = await file.read()
        records = read_excel_records(io.BytesIO(payload))
    except ValueError as exc:
        logger.warning("import_file: unreadable upload %s: %s", file.filename, exc)
        return _error(exc, status_code=400)

    try:
        outcome = run_import(records, store, gate, datetime.now(), chunk_size=settings.chunk_size)
    except ImportFailure as exc:
        logger.warning("import_file: %s", exc.message)
        return _error(exc, status_code=_FAILURE_STATUS.get(type(exc), 400))
    except Exception as exc:
        logger.exception("import_file failed")
        return _error(exc)

    return _json(
        ImportResponse(
            inserted=outcome.inserted,
            total=outcome.total,
            skipped=outcome.skipped,
            message=outcome.message,
        ).model_dump()
    )


@app.post("/export/rows")
def export_rows(filters: DashboardFiltersModel, store: MetricsStore = Depends(get_store)):
    data_ctx = load_dashboard_data(store)
    f = _filters_from_model(filters, available_products=data_ctx.get("product_ids", []))
    ctx = prepare_context(f, data_ctx, store)
    csv_bytes = rows_to_frame(ctx["rows"]).to_csv(index=False).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=daily_metrics.csv"})
