import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.auth import SessionGate, SupabaseSessionGate, dev_gate
from core.data import read_excel_records, rows_to_frame
from core.filters import DashboardFilters
from core.importer import ImportFailure, run_import
from core.metrics_series import compute_series
from core.settings import get_settings
from core.store import build_store, create_supabase_client, load_dashboard_data, prepare_context

alt.data_transformers.disable_max_rows()
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_selection_summary(selected: List[str], products: List[Dict[str, str]]) -> str:
    names = {p["id"]: p["name"] for p in products}
    chips = [names.get(pid, pid) for pid in selected] or ["No products selected"]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, summary_html: str = "", export_df: Optional[pd.DataFrame] = None):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name="daily_metrics.csv",
                mime="text/csv",
            )
    if summary_html:
        st.markdown(f"<div class='chip-row'>{summary_html}</div>", unsafe_allow_html=True)


# ---------- Session ----------
def session_gate() -> SessionGate:
    if settings.dev_mode or not settings.supabase_configured:
        return dev_gate(settings)
    return SupabaseSessionGate(create_supabase_client(settings), st.session_state.get("access_token"))


def render_auth_bar(gate: SessionGate):
    user = gate.current_user()
    if user is not None:
        st.caption(f"Signed in as {user.email or user.id}")
        if not settings.dev_mode and settings.supabase_configured and st.button("Sign out"):
            create_supabase_client(settings).auth.sign_out()
            st.session_state.pop("access_token", None)
            st.rerun()
        return
    with st.form("sign_in"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Sign in"):
            try:
                resp = create_supabase_client(settings).auth.sign_in_with_password({"email": email, "password": password})
            except Exception as exc:
                logger.warning("sign in failed: %s", exc)
                st.error(f"Sign in failed: {exc}")
            else:
                st.session_state["access_token"] = resp.session.access_token if resp.session else None
                st.rerun()


# ---------- UI setup ----------
st.set_page_config(page_title="Daily Inventory Dashboard", layout="wide")
inject_base_styles()
st.title("Daily Inventory Dashboard")
st.caption("Day 1 → Day 2 → Day 3: inventory (left axis), procurement / sales amounts (right axis).")

settings = get_settings()
store = build_store(settings, access_token=st.session_state.get("access_token"))
gate = session_gate()

with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", ["Dashboard", "Import"], index=0)
    st.markdown("---")
    render_auth_bar(gate)


def render_dashboard():
    try:
        data_ctx = load_dashboard_data(store)
    except Exception as exc:
        logger.exception("loading products failed")
        st.error(str(exc))
        return
    products = data_ctx["products"]
    if not products:
        st.info("No data yet. Use the Import page to upload an Excel file.")
        return

    labels = {p["id"]: p["name"] for p in products}
    with st.sidebar:
        st.markdown("### Products")
        selected = st.multiselect(
            "Select products",
            options=data_ctx["product_ids"],
            default=data_ctx["product_ids"][:2],
            format_func=lambda pid: labels.get(pid, pid),
        )

    try:
        ctx = prepare_context(DashboardFilters(selected_products=selected), data_ctx, store)
    except Exception as exc:
        logger.exception("loading rows failed")
        st.error(str(exc))
        return
    filters = ctx["filters"]
    payload = compute_series(filters, ctx)

    render_page_header(
        "Dashboard",
        "Home / Dashboard",
        format_selection_summary(filters.selected_products, products),
        export_df=rows_to_frame(ctx["rows"]),
    )

    if not filters.selected_products or not ctx["rows"]:
        st.info("No data. Select products or import an Excel file.")
        return

    with card("Inventory and amounts by day"):
        if payload["chart"] is not None:
            st.vega_lite_chart(spec=payload["chart"], use_container_width=True)

    with card("Daily values"):
        table = pd.DataFrame(payload["pivot"]).set_index("label")
        table = table.rename(columns={k: v["label"] for k, v in payload["legend"].items()})
        st.dataframe(table, use_container_width=True)


def render_import():
    render_page_header("Excel import (Day 1-3)", "Home / Import")
    st.caption(
        "Example headers: ID, Product Name, Opening Inventory, "
        "Procurement Qty/Price (Day 1/2/3), Sales Qty/Price (Day 1/2/3)"
    )
    upload = st.file_uploader("Excel file", type=["xlsx", "xls"])
    if not st.button("Start import", disabled=upload is None):
        return

    status = st.empty()
    progress = st.progress(0.0)
    status.info("Parsing…")
    try:
        records = read_excel_records(upload)
    except ValueError as exc:
        status.error(str(exc))
        return

    def on_progress(inserted: int, total: int):
        progress.progress(inserted / total if total else 1.0)
        status.info(f"Inserted {inserted}/{total} rows…")

    try:
        outcome = run_import(records, store, gate, datetime.now(), chunk_size=settings.chunk_size, on_progress=on_progress)
    except ImportFailure as exc:
        status.error(exc.message)
        return
    status.success(outcome.message)


if nav_choice == "Import":
    render_import()
else:
    render_dashboard()
