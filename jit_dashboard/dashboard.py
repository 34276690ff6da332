"""
Dashboard-ready output functions.

These are the primary entry points for the Streamlit front end. Each
function takes payloads fetched from the API and returns plain dicts and
DataFrames suitable for rendering cards, charts, and tables.
"""

import logging
from datetime import date, timedelta

import pandas as pd

from .kpis import minutes_to_hours, rejection_rate, trs_trend
from .transforms import (
    machine_comparison,
    normalise_balanced,
    production_by_date,
    production_by_machine,
    rows_to_frame,
    summarise_balanced,
    summarise_trs,
    top_articles,
    trs_by_date,
    trs_by_machine,
)

logger = logging.getLogger(__name__)

DATE_PRESETS = ("today", "week", "month", "year")


def card(
    title: str,
    value,
    fmt: str = "number",
    description: str = "",
    trend: str | None = None,
) -> dict:
    """One KPI card: title, value, display format, caption and trend arrow."""
    return {
        "title": title,
        "value": value,
        "format": fmt,
        "description": description,
        "trend": trend,
    }


def preset_range(preset: str, today: date | None = None) -> tuple[date, date]:
    """Return (start, end) for a sidebar date preset.

    'today' is a single day; 'week' is 7 days back; 'month' and 'year'
    step back one calendar month or year (clamped to month end).
    """
    today = today or date.today()

    if preset == "today":
        return today, today
    if preset == "week":
        return today - timedelta(days=7), today
    if preset == "month":
        start = (pd.Timestamp(today) - pd.DateOffset(months=1)).date()
        return start, today
    if preset == "year":
        start = (pd.Timestamp(today) - pd.DateOffset(years=1)).date()
        return start, today

    raise ValueError(f"Unknown date preset '{preset}', expected one of {DATE_PRESETS}")


def get_overview(production_rows: list, trs_rows: list, kpis: dict) -> dict:
    """Overview page: four headline cards plus production and TRS trends."""
    kpis = kpis or {}
    summary = summarise_trs(trs_rows)

    cards = [
        card("Total Production", kpis.get("totalGood", 0), description="Good pieces produced"),
        card(
            "Rejection Rate",
            rejection_rate(kpis.get("totalRejected", 0), kpis.get("totalPieces", 0)),
            "percentage",
            "Quality metric",
        ),
        card("Active Machines", kpis.get("activeMachines", 0), description="Currently in production"),
        card("Average TRS", summary["trs"], "percentage", "Overall Equipment Effectiveness"),
    ]

    return {
        "cards": cards,
        "production_trend": production_by_date(production_rows),
        "trs_trend": trs_by_date(trs_rows),
    }


def get_production_view(production_rows: list, kpis: dict) -> dict:
    """Production page: KPI cards, trends, per-machine split and top articles."""
    kpis = kpis or {}

    cards = [
        card("Total Good Pieces", kpis.get("totalGood", 0), description="Successfully produced"),
        card(
            "Total Rejected",
            kpis.get("totalRejected", 0),
            description="Defective pieces",
            trend="down",
        ),
        card(
            "Rejection Rate",
            rejection_rate(kpis.get("totalRejected", 0), kpis.get("totalPieces", 0)),
            "percentage",
            "Quality metric",
        ),
        card("Production Runs", kpis.get("totalProductions", 0), description="Total production batches"),
    ]

    return {
        "cards": cards,
        "by_date": production_by_date(production_rows),
        "by_machine": production_by_machine(production_rows),
        "top_articles": top_articles(production_rows),
    }


def get_trs_view(trs_rows: list) -> dict:
    """TRS page: component averages, time totals and machine comparison."""
    summary = summarise_trs(trs_rows)

    cards = [
        card(
            "Average TRS",
            summary["trs"],
            "percentage",
            "Overall Equipment Effectiveness",
            trend=trs_trend(summary["trs"]) if trs_rows else None,
        ),
        card("Availability", summary["availability"], "percentage", "Uptime percentage"),
        card("Performance", summary["performance"], "percentage", "Speed efficiency"),
        card("Quality", summary["quality"], "percentage", "Good pieces rate"),
    ]

    time_cards = [
        card(
            "Total Productive Time",
            f"{minutes_to_hours(summary['productiveMinutes'])} hours",
            description="Time spent in production",
        ),
        card(
            "Total Downtime",
            f"{minutes_to_hours(summary['downtimeMinutes'])} hours",
            description="Time lost to downtime",
            trend="down",
        ),
    ]

    return {
        "cards": cards,
        "time_cards": time_cards,
        "trend": trs_by_date(trs_rows),
        "components": trs_by_machine(trs_rows),
        "comparison": machine_comparison(trs_rows),
    }


def get_balanced_view(balanced_rows: list) -> dict:
    """Balanced-quantities page: alert banner, summary badge and table."""
    table = normalise_balanced(balanced_rows)
    summary = summarise_balanced(table)

    if summary["readyCount"] > 0:
        alert = {
            "level": "success",
            "title": f"{summary['readyCount']} fiscaux ready for assembly",
            "message": (
                f"{summary['totalBalanced']:,} balanced units available for transfer "
                "to assembly workshop"
            ),
        }
    else:
        alert = {
            "level": "warning",
            "title": "No fiscaux ready for assembly",
            "message": "Waiting for all required positions to be available in balanced quantities",
        }

    return {"summary": summary, "alert": alert, "table": table}


def get_analytics_view(analytics: dict, material_rows: list | None = None) -> dict:
    """Analytics page: efficiency cards, rankings, utilisation and materials."""
    analytics = analytics or {}

    articles = rows_to_frame(
        analytics.get("topProducingArticles"), ["articleCode", "totalGood"], ["totalGood"]
    )
    operators = rows_to_frame(
        analytics.get("operatorPerformance"),
        ["operatorName", "totalProduction", "averageQuality"],
        ["totalProduction", "averageQuality"],
    )
    utilization = rows_to_frame(
        analytics.get("machineUtilization"), ["machineName", "utilizationRate"], ["utilizationRate"]
    )
    materials = rows_to_frame(
        material_rows,
        ["materialCode", "materialType", "totalUsed", "goodUsed", "scrapUsed", "unitOfMeasure"],
        ["totalUsed", "goodUsed", "scrapUsed"],
    )

    cards = [
        card(
            "Production Efficiency",
            analytics.get("productionEfficiency") or 0,
            "percentage",
            "Good pieces vs requested",
        ),
        card(
            "Average Rejection Rate",
            analytics.get("averageRejectionRate") or 0,
            "percentage",
            "Overall quality metric",
            trend="down",
        ),
        card("Top Articles", len(articles), description="Articles tracked"),
        card("Active Operators", len(operators), description="Operators in system"),
    ]

    return {
        "cards": cards,
        "top_articles": articles,
        "operators": operators,
        "utilization": utilization,
        "materials": materials,
    }
