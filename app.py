"""
JJM Maharashtra: Interactive Dashboard

Run with:  streamlit run app.py
Set JJM_DEMO=1 to render simulated data without a database.
"""

import logging

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import psycopg
import streamlit as st

from jjm_dashboard.config import LPCD_THRESHOLD, REGIONS, SCHEME_STATUSES, demo_mode
from jjm_dashboard.dashboard import (
    get_lpcd_distribution,
    get_overview,
    get_region_table,
    get_scheme_table,
    get_status_hierarchy,
    get_zero_supply_villages,
)
from jjm_dashboard.db import connect
from jjm_dashboard.simulator import generate_all
from jjm_dashboard.storage import PostgresStorage
from jjm_dashboard.transforms import build_region_summary

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title="JJM Maharashtra Dashboard",
    page_icon="💧",
    layout="wide",
    initial_sidebar_state="expanded",
)

STATUS_COLORS = {
    "Fully-Completed": "#2ecc71",
    "Partial": "#f39c12",
    "Not-Connected": "#e74c3c",
}

BAND_COLORS = {
    "No supply": "#e74c3c",
    f"Below {LPCD_THRESHOLD:g}": "#f39c12",
    f"{LPCD_THRESHOLD:g} and above": "#2ecc71",
}


# ---------------------------------------------------------------------------
# Data loading (cached)
# ---------------------------------------------------------------------------
@st.cache_data(ttl=300)
def load_all_data() -> dict:
    """Frames for every page; simulator data in demo mode or without a DB."""
    if not demo_mode():
        try:
            with connect() as conn:
                storage = PostgresStorage(conn)
                return {
                    "source": "database",
                    "regions": storage.list_regions(),
                    "schemes": pd.DataFrame(storage.list_schemes()),
                    "villages": pd.DataFrame(storage.list_villages()),
                    "esrs": pd.DataFrame(storage.list_esrs()),
                }
        except psycopg.OperationalError:
            logger.exception("Database unavailable; showing simulated data")

    data = generate_all()
    return {
        "source": "simulated",
        "regions": build_region_summary(data["schemes"]).to_dict("records"),
        **data,
    }


data = load_all_data()
schemes = data["schemes"]
villages = data["villages"]
esrs = data["esrs"]

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title("JJM Maharashtra")
st.sidebar.markdown("Water Scheme Monitoring Dashboard")
st.sidebar.divider()

region_options = ["all"] + sorted({*REGIONS, *(r["region_name"] for r in data["regions"])})
selected_region = st.sidebar.selectbox(
    "Region", region_options, format_func=lambda r: "All Regions" if r == "all" else r
)

page = st.sidebar.radio(
    "Navigate",
    ["Overview", "Schemes", "Water Supply (LPCD)", "ESR Sensors"],
)

st.sidebar.divider()
if data["source"] == "simulated":
    st.sidebar.warning("Showing simulated data")
st.sidebar.caption("Data: Jal Jeevan Mission, Maharashtra")


def _pct(part: int, whole: int) -> str:
    return f"{part / whole * 100:.1f}%" if whole else "0.0%"


# ===================================================================
# PAGE: Overview
# ===================================================================
if page == "Overview":
    st.title("Maharashtra Water Infrastructure")
    overview = get_overview(schemes, villages, esrs, selected_region)
    summary = overview["summary"]

    cols = st.columns(4)
    cards = [
        ("Schemes", "total_schemes_integrated", "fully_completed_schemes"),
        ("Villages", "total_villages_integrated", "fully_completed_villages"),
        ("ESRs", "total_esr_integrated", "fully_completed_esr"),
    ]
    for col, (label, total_key, done_key) in zip(cols, cards):
        with col:
            st.metric(
                f"{label} Integrated",
                f"{summary[total_key]:,}",
                delta=f"{summary[done_key]:,} fully completed ({_pct(summary[done_key], summary[total_key])})",
                delta_color="off",
            )
    with cols[3]:
        st.metric(
            "Sensors",
            f"{summary['flow_meter_integrated'] + summary['rca_integrated'] + summary['pressure_transmitter_integrated']:,}",
            delta=(
                f"FM {summary['flow_meter_integrated']:,} | RCA {summary['rca_integrated']:,} "
                f"| PT {summary['pressure_transmitter_integrated']:,}"
            ),
            delta_color="off",
        )

    st.divider()
    col1, col2 = st.columns([3, 2])
    with col1:
        st.subheader("Scheme status by region")
        hierarchy = get_status_hierarchy(schemes)
        if selected_region != "all":
            hierarchy = hierarchy[hierarchy["region"] == selected_region]
        if hierarchy.empty:
            st.info("No schemes loaded.")
        else:
            fig = px.sunburst(
                hierarchy.astype({"scheme_status": str}),
                path=["region", "scheme_status", "scheme_name"],
                values="villages",
                color="scheme_status",
                color_discrete_map={**STATUS_COLORS, "(?)": "#bdc3c7"},
            )
            fig.update_layout(height=520, margin=dict(t=10, l=10, r=10, b=10))
            st.plotly_chart(fig, use_container_width=True)

    with col2:
        st.subheader("Region progress")
        region_table = get_region_table(data["regions"])
        st.dataframe(
            region_table[[
                "region_name", "total_schemes_integrated", "pct_schemes_completed",
                "total_villages_integrated", "pct_villages_completed", "pct_esr_completed",
            ]],
            use_container_width=True,
            hide_index=True,
        )

# ===================================================================
# PAGE: Schemes
# ===================================================================
elif page == "Schemes":
    st.title("Scheme Status")
    status = st.selectbox("Status", ["All", *SCHEME_STATUSES])
    table = get_scheme_table(schemes, selected_region, None if status == "All" else status)
    st.caption(f"{len(table):,} schemes")
    st.dataframe(
        table,
        use_container_width=True,
        hide_index=True,
        column_config={
            "dashboard_url": st.column_config.LinkColumn("PI Vision", display_text="Open"),
        },
    )

    if not table.empty:
        counts = table["scheme_status"].value_counts().reindex(SCHEME_STATUSES, fill_value=0)
        fig = go.Figure(go.Bar(
            x=list(counts.index),
            y=list(counts.values),
            marker_color=[STATUS_COLORS[s] for s in counts.index],
        ))
        fig.update_layout(height=320, yaxis_title="Schemes", margin=dict(t=20))
        st.plotly_chart(fig, use_container_width=True)

# ===================================================================
# PAGE: Water Supply (LPCD)
# ===================================================================
elif page == "Water Supply (LPCD)":
    st.title("Village Water Supply")
    pop = get_overview(schemes, villages, esrs, selected_region)["population"]

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Villages", f"{pop['total_villages']:,}")
    with col2:
        st.metric(
            "Villages with water", f"{pop['villages_with_water']:,}",
            delta=f"{pop['percent_villages_with_water']:.2f}%", delta_color="off",
        )
    with col3:
        st.metric(
            "Population with water", f"{pop['population_with_water']:,}",
            delta=f"{pop['percent_population_with_water']:.2f}%", delta_color="off",
        )
    with col4:
        st.metric(
            f"LPCD >= {LPCD_THRESHOLD:g}", f"{pop['villages_lpcd_above_55']:,}",
            delta=f"{pop['villages_lpcd_below_55']:,} below", delta_color="off",
        )

    dist = get_lpcd_distribution(villages)
    if selected_region != "all":
        dist = dist[dist["region"] == selected_region]
    if dist.empty:
        st.info("No village data loaded.")
    else:
        fig = px.histogram(
            dist, x="latest_lpcd", color="band", nbins=40,
            color_discrete_map=BAND_COLORS,
            labels={"latest_lpcd": "Latest LPCD"},
        )
        fig.add_vline(x=LPCD_THRESHOLD, line_dash="dash", line_color="grey")
        fig.update_layout(height=380, margin=dict(t=20))
        st.plotly_chart(fig, use_container_width=True)

    zero = get_zero_supply_villages(villages)
    if selected_region != "all" and not zero.empty:
        zero = zero[zero["region"] == selected_region]
    with st.expander(f"Zero supply all week ({len(zero):,} villages)"):
        st.dataframe(
            zero.reindex(columns=["region", "scheme_name", "village_name", "population", "dashboard_url"]),
            use_container_width=True,
            hide_index=True,
            column_config={"dashboard_url": st.column_config.LinkColumn("PI Vision", display_text="Open")},
        )

# ===================================================================
# PAGE: ESR Sensors
# ===================================================================
elif page == "ESR Sensors":
    st.title("ESR Sensor Connectivity")
    stats = get_overview(schemes, villages, esrs, selected_region)["esr"]

    cols = st.columns(4)
    with cols[0]:
        st.metric("ESRs", f"{stats['total_esr']:,}")
    with cols[1]:
        st.metric("Chlorine connected", f"{stats['chlorine_connected']:,}")
    with cols[2]:
        st.metric("Pressure connected", f"{stats['pressure_connected']:,}")
    with cols[3]:
        st.metric("Flow meter connected", f"{stats['flow_meter_connected']:,}")

    esr_view = esrs if selected_region == "all" or esrs.empty else esrs[esrs["region"] == selected_region]
    st.dataframe(
        esr_view.reindex(columns=[
            "region", "scheme_name", "village_name", "esr_name",
            "chlorine_status", "pressure_status", "flow_meter_status", "overall_status", "dashboard_url",
        ]),
        use_container_width=True,
        hide_index=True,
        column_config={"dashboard_url": st.column_config.LinkColumn("PI Vision", display_text="Open")},
    )
