"""
Sales Dashboard

A Streamlit front end for the filtering & aggregation engine.
Run with: streamlit run app.py
"""

import asyncio
from dataclasses import asdict
from datetime import date

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from salesboard.clients.backend import BackendClient
from salesboard.config import Settings, configure_logging
from salesboard.core import (
    DateRange,
    DashboardSession,
    Facet,
    FetchError,
    WarehouseMode,
)

st.set_page_config(page_title="Sales Dashboard", page_icon="📊", layout="wide")

settings = Settings()
configure_logging(settings)


def run_backend(action):
    """Run ``action(client)`` with a client carrying this browser session's tokens."""

    async def runner():
        async with BackendClient.from_settings(settings) as client:
            client.access_token = st.session_state.get("access_token")
            client.refresh_token = st.session_state.get("refresh_token")
            try:
                return await action(client)
            finally:
                st.session_state["access_token"] = client.access_token
                st.session_state["refresh_token"] = client.refresh_token

    return asyncio.run(runner())


def get_session() -> DashboardSession:
    if "session" not in st.session_state:
        st.session_state["session"] = DashboardSession(client=None, settings=settings)
    return st.session_state["session"]


def reload(session: DashboardSession, **kwargs):
    async def action(client):
        session.store.client = client
        return await session.reload(**kwargs)

    with st.spinner("Loading records..."):
        result = run_backend(action)
    if not result.ok:
        st.error(f"Loading failed ({result.kind.value}): {result.error}")
    st.session_state["loaded"] = (session.date_range, session.mode)
    return result


# --- Login gate ---
try:
    user = run_backend(lambda client: client.get_user())
except FetchError as exc:
    st.error(f"Backend unavailable: {exc}")
    st.stop()

if user is None:
    st.title("📊 Sales Dashboard")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Log in"):
            try:
                run_backend(lambda client: client.login(email, password))
                st.rerun()
            except FetchError as exc:
                st.error(f"Login failed: {exc}")
    st.stop()

session = get_session()

# --- Sidebar: mode, dates, facets ---
with st.sidebar:
    st.caption(f"Signed in as {user.get('email', '')}")
    if st.button("Log out"):
        run_backend(lambda client: client.logout())
        st.session_state.clear()
        st.rerun()

    person_mode = st.toggle("Salesperson mode", value=session.mode is WarehouseMode.PERSON)
    if person_mode != (session.mode is WarehouseMode.PERSON):
        async def switch(client):
            session.store.client = client
            return await session.switch_mode()

        run_backend(switch)
        st.session_state["loaded"] = (session.date_range, session.mode)
        st.rerun()

    picked = st.date_input(
        "Sale date",
        value=(session.date_range.start, session.date_range.end),
        max_value=date.today(),
    )
    if isinstance(picked, tuple) and len(picked) == 2:
        session.date_range = DateRange(start=picked[0], end=picked[1])

    if st.session_state.get("loaded") != (session.date_range, session.mode):
        reload(session)

    mode = session.applied_mode
    options = session.options
    labels = {
        Facet.LOCATION: "Salesperson" if mode is WarehouseMode.PERSON else "Warehouse",
        Facet.BRAND: "Brand",
        Facet.PRODUCT: "Product",
        Facet.CUSTOMER: "Customer",
    }
    product_names = {p.product_id: p.product_name for p in options.product}

    for facet in Facet:
        if facet is Facet.CUSTOMER and mode is not WarehouseMode.PERSON:
            continue
        candidates = (
            list(product_names) if facet is Facet.PRODUCT else getattr(options, facet.value)
        )
        current = [v for v in candidates if v in session.filters.selection.get(facet)]
        chosen = st.multiselect(
            labels[facet],
            candidates,
            default=current,
            format_func=lambda v, f=facet: product_names.get(v, v) if f is Facet.PRODUCT else v,
            key=f"facet-{facet.value}-{len(candidates)}",
        )
        if set(chosen) != set(current):
            session.select(facet, chosen)
            st.rerun()

    if st.button("Clear filters"):
        async def clear(client):
            session.store.client = client
            return await session.clear_filters()

        run_backend(clear)
        st.session_state["loaded"] = (session.date_range, session.mode)
        st.rerun()

report = session.query().value
summary = report.summary
totals = summary.totals

title = "Salesperson sales" if mode is WarehouseMode.PERSON else "Warehouse sales"
st.title(f"📊 {title}")
st.caption(f"{session.date_range.start} → {session.date_range.end} | {report.record_count:,} records")

# --- Key Metrics Row ---
col1, col2, col3, col4 = st.columns(4)
col1.metric("Total pieces" if mode is WarehouseMode.DEFAULT else "Total quantity", f"{totals.total_quantity:,.0f}")
col2.metric("Total amount", f"¥{totals.total_amount:,.2f}")
col3.metric("Products", f"{totals.product_count:,}")
if mode is WarehouseMode.PERSON:
    col4.metric("Free issue", f"¥{totals.free_issue:,.2f}")
    st.metric("Gross profit", f"¥{totals.total_profit:,.2f}")
else:
    col4.metric("Brands", f"{totals.brand_count:,}")

st.divider()

left_col, right_col = st.columns([2, 1])

with left_col:
    heading = f"By salesperson ({summary.pivot_brand})" if summary.is_pivoted else "By brand"
    st.subheader(heading)
    if summary.rows:
        summary_df = pd.DataFrame([asdict(r) for r in summary.rows])
        if mode is WarehouseMode.DEFAULT:
            summary_df = summary_df[["brand", "total_quantity", "total_amount"]]
        st.dataframe(summary_df, use_container_width=True, hide_index=True)
    else:
        st.info("No summary data")

with right_col:
    if summary.rows:
        label_key = "person" if summary.is_pivoted else "brand"
        fig = go.Figure(
            data=[
                go.Pie(
                    labels=[getattr(r, label_key) for r in summary.rows],
                    values=[r.total_amount for r in summary.rows],
                    hole=0.4,
                )
            ]
        )
        fig.update_layout(title="Amount share", height=320, margin=dict(t=40, b=20, l=20, r=20))
        st.plotly_chart(fig, use_container_width=True)

# --- Reconciliation (warehouse table only) ---
if mode is WarehouseMode.DEFAULT:
    st.divider()
    st.subheader("🔍 Inbound vs sold vs returned")
    recon = report.reconciliation
    t = recon.totals
    fig_recon = go.Figure(
        data=[
            go.Bar(
                x=["Inbound", "Sold", "Returns", "Sorting diff", "Difference"],
                y=[t.inbounds, t.sold_quantity, t.returns, t.sorting_difference, t.difference],
                text=[f"{v:,.0f}" for v in (t.inbounds, t.sold_quantity, t.returns, t.sorting_difference, t.difference)],
                textposition="outside",
            )
        ]
    )
    fig_recon.update_layout(height=280, margin=dict(t=20, b=20, l=20, r=20))
    st.plotly_chart(fig_recon, use_container_width=True)

    if recon.has_discrepancies:
        st.dataframe(pd.DataFrame([asdict(r) for r in recon.rows]), use_container_width=True, hide_index=True)
    else:
        st.success("Inbound - sold - returns balances for every product")

with st.expander(f"📋 Detail records ({report.record_count:,})"):
    st.dataframe(session.details(), use_container_width=True, hide_index=True)
