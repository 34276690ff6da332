"""
JIT Dashboard — Interactive Dashboard

Run with:  streamlit run app.py
The API must be reachable at JIT_API_URL (default http://localhost:8000).
"""

import logging
from datetime import datetime

import streamlit as st

from jit_dashboard.charts import (
    good_vs_rejected_chart,
    machine_comparison_chart,
    machine_utilization_chart,
    material_consumption_chart,
    operator_performance_chart,
    production_by_machine_chart,
    production_trend_chart,
    top_articles_chart,
    trs_components_chart,
    trs_trend_chart,
)
from jit_dashboard.client import DashboardClient, DashboardFilters, fetch_or_last
from jit_dashboard.config import (
    API_BASE_URL,
    DASHBOARD_TITLE,
    RAG_COLORS,
    REFRESH_INTERVAL_SECONDS,
)
from jit_dashboard.dashboard import (
    DATE_PRESETS,
    get_analytics_view,
    get_balanced_view,
    get_overview,
    get_production_view,
    get_trs_view,
    preset_range,
)
from jit_dashboard.kpis import format_kpi_value

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    datefmt="%H:%M:%S",
)

# ---------------------------------------------------------------------------
# Page config
# ---------------------------------------------------------------------------
st.set_page_config(
    page_title=DASHBOARD_TITLE,
    page_icon="🏭",
    layout="wide",
    initial_sidebar_state="expanded",
)

TREND_COLORS = {
    "up": RAG_COLORS["green"],
    "down": RAG_COLORS["red"],
    "neutral": RAG_COLORS["grey"],
}
TREND_ARROWS = {"up": "▲", "down": "▼", "neutral": "●"}


@st.cache_resource
def get_client() -> DashboardClient:
    return DashboardClient(API_BASE_URL, raise_errors=True)


client = get_client()


def fetch(key: str, loader, default):
    """Call the API, falling back to the last good result for this key.

    Loaders raise on failure so st.cache_data never stores an empty result.
    """
    value, error = fetch_or_last(st.session_state, f"last_good:{key}", loader, default)
    if error is not None:
        st.warning(f"Could not refresh data from the API ({error}). Showing the last loaded values.")
    return value


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------
st.sidebar.title(DASHBOARD_TITLE)
st.sidebar.markdown("Manufacturing analytics")
st.sidebar.divider()

page = st.sidebar.radio(
    "Navigate",
    ["Overview", "Production", "Balanced Quantities", "TRS & Efficiency", "Analytics"],
)

st.sidebar.divider()

if "date_range" not in st.session_state:
    st.session_state["date_range"] = preset_range("month")

preset_cols = st.sidebar.columns(len(DATE_PRESETS))
for col, preset in zip(preset_cols, DATE_PRESETS):
    if col.button(preset.capitalize(), use_container_width=True):
        st.session_state["date_range"] = preset_range(preset)

date_range = st.sidebar.date_input("Date range", value=st.session_state["date_range"])
# date_input returns a 1-tuple while the user is mid-selection
if isinstance(date_range, (tuple, list)) and len(date_range) == 2:
    start_date, end_date = date_range
else:
    start_date, end_date = st.session_state["date_range"]

options = fetch("filters", client.filters, {"machines": [], "articles": []})
machines = {m["machine_name"]: m["machine_key"] for m in options.get("machines", [])}
machine_name = st.sidebar.selectbox("Machine", ["All machines", *machines])

filters = DashboardFilters(
    start_date=start_date,
    end_date=end_date,
    machine_id=machines.get(machine_name),
)

if st.sidebar.button("Refresh data", use_container_width=True):
    st.cache_data.clear()
    st.rerun()

st.sidebar.divider()
st.sidebar.caption(f"Last updated: {datetime.now():%H:%M:%S}")


# ---------------------------------------------------------------------------
# Data loading (cached per filter set; failed fetches raise and are not cached)
# ---------------------------------------------------------------------------
@st.cache_data(ttl=REFRESH_INTERVAL_SECONDS)
def load_production(_client, params: tuple):
    f = DashboardFilters(*params)
    return _client.production(f), _client.production_kpis(f)


@st.cache_data(ttl=REFRESH_INTERVAL_SECONDS)
def load_trs(_client, params: tuple):
    return _client.trs(DashboardFilters(*params))


@st.cache_data(ttl=REFRESH_INTERVAL_SECONDS)
def load_analytics(_client, params: tuple):
    f = DashboardFilters(*params)
    return _client.analytics(f), _client.material(f)


params = (filters.start_date, filters.end_date, filters.machine_id)


# ---------------------------------------------------------------------------
# Helper: KPI card
# ---------------------------------------------------------------------------
def kpi_card(card: dict):
    trend = card.get("trend")
    color = TREND_COLORS.get(trend, RAG_COLORS["grey"])
    arrow = f"<span style='color: {color};'>{TREND_ARROWS[trend]}</span>" if trend else ""

    st.markdown(
        f"""
        <div style="background: linear-gradient(135deg, {color}22, {color}11);
                    border-left: 4px solid {color};
                    border-radius: 8px; padding: 16px; margin-bottom: 8px;">
            <div style="font-size: 13px; color: #888; font-weight: 600; text-transform: uppercase;">{card['title']}</div>
            <div style="font-size: 28px; font-weight: 700; color: #222; margin: 4px 0;">{format_kpi_value(card['value'], card['format'])} {arrow}</div>
            <div style="font-size: 13px; color: #666;">{card['description']}</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


def card_row(cards: list[dict]):
    cols = st.columns(len(cards))
    for col, card in zip(cols, cards):
        with col:
            kpi_card(card)


def chart(title: str, fig, empty_message: str = "No data available"):
    st.subheader(title)
    if not fig.data:
        st.info(empty_message)
    else:
        st.plotly_chart(fig, use_container_width=True)


# ===========================================================================
# PAGE: Overview
# ===========================================================================
if page == "Overview":
    st.title("Dashboard Overview")
    st.caption(f"Period: **{start_date} to {end_date}**")

    production_rows, kpis = fetch(
        f"production:{params}", lambda: load_production(client, params), ([], {})
    )
    trs_rows = fetch(f"trs:{params}", lambda: load_trs(client, params), [])
    overview = get_overview(production_rows, trs_rows, kpis)

    card_row(overview["cards"])
    st.divider()

    col1, col2 = st.columns(2)
    with col1:
        chart("Production Trend", production_trend_chart(overview["production_trend"]))
    with col2:
        chart("TRS Trend", trs_trend_chart(overview["trs_trend"]))


# ===========================================================================
# PAGE: Production
# ===========================================================================
elif page == "Production":
    st.title("Production Analytics")
    st.caption(f"Period: **{start_date} to {end_date}**")

    production_rows, kpis = fetch(
        f"production:{params}", lambda: load_production(client, params), ([], {})
    )
    view = get_production_view(production_rows, kpis)

    card_row(view["cards"])
    st.divider()

    chart("Production Trend", production_trend_chart(view["by_date"]))

    col1, col2 = st.columns(2)
    with col1:
        chart("Production by Machine", production_by_machine_chart(view["by_machine"]))
    with col2:
        chart("Good vs Rejected", good_vs_rejected_chart(view["by_date"]))

    st.subheader("Top Articles")
    top = view["top_articles"]
    if top.empty:
        st.info("No production data for the selected period.")
    else:
        display_df = top.copy()
        display_df["rejectionRate"] = display_df["rejectionRate"].apply(
            lambda x: format_kpi_value(x, "percentage")
        )
        st.dataframe(display_df, use_container_width=True, hide_index=True)


# ===========================================================================
# PAGE: Balanced Quantities
# ===========================================================================
elif page == "Balanced Quantities":
    st.title("Balanced Quantities")
    st.caption("Fiscaux ready for transfer to the assembly workshop")

    auto_refresh = st.toggle("Auto-refresh", value=True)

    @st.fragment(run_every=REFRESH_INTERVAL_SECONDS if auto_refresh else None)
    def balanced_panel():
        view = get_balanced_view(fetch("balanced", client.balanced, []))
        alert = view["alert"]

        if alert["level"] == "success":
            st.success(f"**{alert['title']}**  \n{alert['message']}")
        else:
            st.warning(f"**{alert['title']}**  \n{alert['message']}")

        st.metric(
            "Ready Fiscaux",
            view["summary"]["readyCount"],
            help=f"{view['summary']['totalBalanced']:,} balanced units",
        )

        table = view["table"]
        if table.empty:
            st.info("No balanced quantities available.")
        else:
            st.dataframe(
                table[["fiscauxCode", "fiscauxName", "balancedUnits",
                       "readyPositions", "requiredPositions", "status", "date"]],
                use_container_width=True,
                hide_index=True,
            )
        st.caption(f"Refreshed at {datetime.now():%H:%M:%S}")

    balanced_panel()


# ===========================================================================
# PAGE: TRS & Efficiency
# ===========================================================================
elif page == "TRS & Efficiency":
    st.title("TRS & Efficiency")
    st.caption(f"Period: **{start_date} to {end_date}**")

    view = get_trs_view(fetch(f"trs:{params}", lambda: load_trs(client, params), []))

    card_row(view["cards"])
    card_row(view["time_cards"])
    st.divider()

    chart("TRS Trend", trs_trend_chart(view["trend"]))

    col1, col2 = st.columns(2)
    with col1:
        chart("TRS Components by Machine", trs_components_chart(view["components"]))
    with col2:
        chart("Machine Comparison", machine_comparison_chart(view["comparison"]))


# ===========================================================================
# PAGE: Analytics
# ===========================================================================
elif page == "Analytics":
    st.title("Advanced Analytics")
    st.caption(f"Period: **{start_date} to {end_date}**")

    analytics, material_rows = fetch(
        f"analytics:{params}", lambda: load_analytics(client, params), ({}, [])
    )
    view = get_analytics_view(analytics, material_rows)

    card_row(view["cards"])
    st.divider()

    col1, col2 = st.columns(2)
    with col1:
        chart("Top Producing Articles", top_articles_chart(view["top_articles"]))
    with col2:
        chart("Operator Performance", operator_performance_chart(view["operators"]))

    chart("Machine Utilization", machine_utilization_chart(view["utilization"]))
    chart("Material Consumption", material_consumption_chart(view["materials"]))

    if not view["materials"].empty:
        st.dataframe(view["materials"], use_container_width=True, hide_index=True)
