"""Streamlit dashboard for asset-register."""

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st

from asset_register.financial.depreciation import depreciation_schedule
from asset_register.ingestion.asset_loader import load_assets, load_depreciation_groups
from asset_register.models.database import (
    get_engine,
    get_session_factory,
    init_db,
)
from asset_register.models.reference import Department, categories_for
from asset_register.registry.service import AssetRegistry
from asset_register.reporting.summary import build_summary


@st.cache_resource
def get_db_factory():
    engine = get_engine()
    init_db(engine)
    return get_session_factory(engine)


def get_session():
    factory = get_db_factory()
    return factory()


def rupiah(value: float) -> str:
    return f"Rp {value:,.0f}".replace(",", ".")


# ── Page config ──────────────────────────────────────────────────────
st.set_page_config(page_title="Asset Register", layout="wide")

# ── Sidebar ──────────────────────────────────────────────────────────
st.sidebar.title("Asset Register")
page = st.sidebar.radio("Navigation", ["Overview", "Asset Detail", "Scan History"])

session = get_session()
assets = load_assets(session)

# Global filters
departments = {d.label: d for d in Department}
department_filter = st.sidebar.selectbox(
    "Department", ["All"] + list(departments.keys())
)
department = departments.get(department_filter)

category = None
if department is not None and categories_for(department):
    category_options = {label: code for code, label in categories_for(department).items()}
    category_filter = st.sidebar.selectbox(
        "Category", ["All"] + list(category_options.keys())
    )
    category = category_options.get(category_filter)

years = sorted({a.year for a in assets}, reverse=True)
year_filter = st.sidebar.selectbox("Year", ["All"] + [str(y) for y in years])
year = None if year_filter == "All" else int(year_filter)

# ═══════════════════════════════════════════════════════════════════════
# PAGE 1: Overview
# ═══════════════════════════════════════════════════════════════════════
if page == "Overview":
    st.title("Register Overview")

    if not assets:
        st.warning(
            "No assets found. Run `asset-register init-db` and `generate-data` first."
        )
        session.close()
        st.stop()

    summary = build_summary(assets, department, category, year)

    # ── KPI Cards ──
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Assets", f"{summary.total_assets:,}")
    col2.metric("Acquisition Value", rupiah(summary.total_acquisition_value))
    col3.metric("Book Value", rupiah(summary.total_book_value))
    col4.metric("Active NFC Tags", f"{summary.active_nfc_tags:,}")

    # ── Group breakdown ──
    st.subheader("By Category" if department else "By Department")
    metric = st.radio(
        "Metric",
        ["Count", "Acquisition Value", "Book Value", "NFC Tags"],
        horizontal=True,
    )
    field = {
        "Count": "count",
        "Acquisition Value": "acquisition_value",
        "Book Value": "book_value",
        "NFC Tags": "nfc_count",
    }[metric]
    group_df = pd.DataFrame(
        [
            {"Group": s.label, metric: getattr(s, field)}
            for s in summary.group_stats.values()
        ]
    )
    if not group_df.empty:
        fig_group = px.pie(group_df, names="Group", values=metric, hole=0.4)
        fig_group.update_layout(height=350)
        st.plotly_chart(fig_group, width="stretch")

    # ── Value trend ──
    st.subheader("Cumulative Value by Year")
    if summary.value_trend:
        trend_df = pd.DataFrame([p.model_dump() for p in summary.value_trend])
        fig_trend = go.Figure()
        fig_trend.add_trace(
            go.Scatter(
                x=trend_df["year"],
                y=trend_df["cumulative_acquisition_value"],
                mode="lines+markers",
                name="Acquisition Value",
            )
        )
        fig_trend.add_trace(
            go.Scatter(
                x=trend_df["year"],
                y=trend_df["cumulative_book_value"],
                mode="lines+markers",
                name="Book Value",
            )
        )
        fig_trend.update_layout(
            height=400,
            xaxis_title="Year",
            yaxis_title="Value (Rp)",
            legend=dict(orientation="h", yanchor="bottom", y=1.02),
        )
        st.plotly_chart(fig_trend, width="stretch")

# ═══════════════════════════════════════════════════════════════════════
# PAGE 2: Asset Detail
# ═══════════════════════════════════════════════════════════════════════
elif page == "Asset Detail":
    st.title("Asset Detail")

    registry = AssetRegistry(session)
    listed = [
        a
        for a in sorted(assets, key=lambda a: a.asset_number)
        if (department is None or a.department == department.value)
        and (category is None or a.category == category)
        and (year is None or a.year == year)
    ]
    if not listed:
        st.warning("No assets found.")
        session.close()
        st.stop()

    options = {f"{a.asset_number} - {a.name}": a for a in listed}
    selected_label = st.selectbox("Select Asset", list(options.keys()))
    asset = options[selected_label]

    groups = load_depreciation_groups(session)
    group = groups.get(asset.depreciation_group_id)
    valuation = registry.valuate(asset)

    col1, col2, col3 = st.columns(3)
    col1.markdown(
        f"**{asset.asset_number}**  \n"
        f"{asset.name} ({asset.brand or 'No Brand'})  \n"
        f"NFC: `{asset.nfc_uid or '-'}`"
    )
    col2.markdown(
        f"**Department:** {Department(asset.department).label}  \n"
        f"**Category:** {categories_for(Department(asset.department)).get(asset.category or '', '-')}  \n"
        f"**Group:** {group.name if group else '-'}"
    )
    col3.metric("Acquisition Value", rupiah(valuation.acquisition_value))
    col3.metric("Book Value", rupiah(valuation.book_value))

    # ── Depreciation schedule ──
    st.subheader("Depreciation Schedule")
    schedule = depreciation_schedule(
        float(asset.acquisition_value), asset.year, group
    )
    schedule_df = pd.DataFrame([row.model_dump() for row in schedule])
    fig_schedule = px.bar(
        schedule_df,
        x="year",
        y="book_value",
        labels={"year": "Year", "book_value": "Book Value (Rp)"},
    )
    fig_schedule.update_layout(height=350)
    st.plotly_chart(fig_schedule, width="stretch")
    st.dataframe(schedule_df, width="stretch", hide_index=True)

# ═══════════════════════════════════════════════════════════════════════
# PAGE 3: Scan History
# ═══════════════════════════════════════════════════════════════════════
elif page == "Scan History":
    st.title("NFC Scan History")

    scans = AssetRegistry(session).scan_history(limit=200)
    if not scans:
        st.info("No scans recorded yet.")
    else:
        st.dataframe(
            pd.DataFrame(
                [
                    {
                        "Scanned At": s.scanned_at,
                        "Asset Number": s.asset.asset_number,
                        "Name": s.asset.name,
                        "Device": s.device_id or "-",
                    }
                    for s in scans
                ]
            ),
            width="stretch",
            hide_index=True,
        )

session.close()
